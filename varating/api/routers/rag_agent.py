"""
RAG agent routes: reprocess a document, list conditions, condition detail.

Callers are the user named in the path, or the service presenting the RAG
agent API key.
"""

import logging
from uuid import UUID

from botocore.exceptions import ClientError
from fastapi import APIRouter, Depends, HTTPException

from varating.api.models import ReprocessRequest
from varating.api.utils import get_rag_caller, unwrap
from varating.processing.rag_agent import get_condition_detail, get_conditions, process_document

router = APIRouter(prefix="/rag-agent", tags=["rag-agent"])
logger = logging.getLogger("uvicorn")


def _check_caller(caller: dict, user_id: UUID) -> None:
    if not caller["service"] and caller["id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/{user_id}/reprocess")
def reprocess(user_id: UUID, data: ReprocessRequest, caller: dict = Depends(get_rag_caller)):
    """
    Extract the conditions of a document again.

    Response:
        200: {'message', 'uniqueConditionsFound', 'conditions'}
        404: "Document not found"
        500: the results could not be stored
    """
    _check_caller(caller, user_id)
    try:
        document_id = UUID(data.document_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Document not found")
    try:
        return unwrap(process_document(user_id=user_id, document_id=document_id))
    except ClientError as e:
        logger.error(f"Reprocessing {document_id} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{user_id}")
def list_conditions(user_id: UUID, caller: dict = Depends(get_rag_caller)):
    _check_caller(caller, user_id)
    return unwrap(get_conditions(user_id=user_id))


@router.get("/{user_id}/conditions/{condition_id}")
def condition_detail(user_id: UUID, condition_id: UUID, caller: dict = Depends(get_rag_caller)):
    """One condition with its CFR text and a rating recommendation."""
    _check_caller(caller, user_id)
    return unwrap(get_condition_detail(user_id=user_id, condition_id=condition_id))
