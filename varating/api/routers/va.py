"""
VA Lighthouse proxy routes.
"""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from varating.integrations.va_api import va_facilities_proxy, va_forms_proxy

router = APIRouter(tags=["va"])


@router.get("/va-forms")
@router.get("/va-forms/{path:path}")
def va_forms(request: Request, path: str = ""):
    result = va_forms_proxy(path, query=dict(request.query_params))
    if isinstance(result["body"], dict):
        return JSONResponse(status_code=result["status_code"], content=result["body"])
    return Response(content=result["body"], status_code=result["status_code"], media_type="application/json")


@router.api_route("/va-facilities", methods=["GET", "POST"])
@router.api_route("/va-facilities/{path:path}", methods=["GET", "POST"])
def va_facilities(request: Request, path: str = ""):
    result = va_facilities_proxy(request.method, path, query=dict(request.query_params), stage=None)
    return JSONResponse(status_code=result["status_code"], content=result["body"])
