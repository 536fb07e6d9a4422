"""
VA Lighthouse proxies: VA Forms and VA Facilities (sandbox APIs).

Both proxies forward a path and query string with the ``apikey`` header and
relay the upstream status. They return ``{'status_code', 'body'}`` where body
is a str (forms: upstream text as is) or a JSON-serializable dict.
"""

import logging
from typing import Optional

import httpx

from varating.database.config.config import settings

logger = logging.getLogger("uvicorn")


def normalize_path(path: Optional[str], default: str, stage: Optional[str] = None) -> str:
    """
    Upstream path of a proxied request.

    The API Gateway stage prefix (``/<stage>``) is removed and an empty path
    becomes ``default``.
    """
    path = path or default
    if not path.startswith("/"):
        path = f"/{path}"
    if stage:
        prefix = f"/{stage}"
        if path == prefix or path.startswith(f"{prefix}/"):
            path = path[len(prefix):]
    if path in ("", "/"):
        path = default
    return path


def va_forms_proxy(path: Optional[str], query: Optional[dict] = None, stage: Optional[str] = None, client: Optional[httpx.Client] = None) -> dict:
    """
    GET ``<VA_FORMS_API_URL><path>``.

    Returns
    -------
    dict
        Upstream status and text, or 500 ``{'error'}`` on transport failure.
    """
    url = settings.VA_FORMS_API_URL + normalize_path(path, "/forms", stage)
    headers = {"Accept": "application/json", "Content-Type": "application/json", "apikey": settings.VA_FORMS_API_KEY or ""}
    try:
        if client is not None:
            response = client.get(url, params=query or None, headers=headers)
        else:
            response = httpx.get(url, params=query or None, headers=headers, timeout=settings.HTTP_TIMEOUT)
    except httpx.HTTPError as e:
        logger.error(f"VA Forms request failed: {e}")
        return {"status_code": 500, "body": {"error": str(e)}}
    return {"status_code": response.status_code, "body": response.text}


def va_facilities_proxy(
    method: str,
    path: Optional[str],
    query: Optional[dict] = None,
    stage: Optional[str] = "prod",
    client: Optional[httpx.Client] = None,
) -> dict:
    """
    Forward a request to ``<VA_FACILITIES_API_URL><path>``.

    Returns
    -------
    dict
        Upstream status and JSON body; upstream errors are relayed with
        ``{'message', 'data'}`` and transport failures answer 500.
    """
    url = settings.VA_FACILITIES_API_URL + normalize_path(path, "/facilities", stage)
    headers = {"apikey": settings.VA_FACILITIES_API_KEY or "", "Accept": "application/json"}
    try:
        if client is not None:
            response = client.request(method or "GET", url, params=query or None, headers=headers)
        else:
            response = httpx.request(method or "GET", url, params=query or None, headers=headers, timeout=settings.HTTP_TIMEOUT)
    except httpx.HTTPError as e:
        logger.error(f"VA Facilities request failed: {e}")
        return {"status_code": 500, "body": {"message": str(e), "data": None}}

    try:
        data = response.json()
    except ValueError:
        data = response.text
    if response.is_error:
        return {
            "status_code": response.status_code,
            "body": {"message": f"Request failed with status code {response.status_code}", "data": data},
        }
    return {"status_code": response.status_code, "body": data}
