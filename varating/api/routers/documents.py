"""
Document and storage routes: presigned URLs, validated uploads, rename,
delete and RAG reprocessing requests.
"""

import logging

import httpx
from botocore.exceptions import ClientError
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from varating.api.models import (
    DeleteDocumentRequest,
    NotifyRagAgentRequest,
    PresignRequest,
    RenameDocumentRequest,
    S3UrlRequest,
)
from varating.api.utils import get_current_user, unwrap
from varating.database.core.document_funcs import (
    delete_document,
    generate_presigned_url,
    get_s3_url,
    notify_rag_agent,
    rename_document,
    secure_upload,
)

router = APIRouter(tags=["documents"])
logger = logging.getLogger("uvicorn")


@router.post("/generate-presigned-url")
def presigned_url(data: PresignRequest, user: dict = Depends(get_current_user)):
    """
    Presigned PUT URL for ``<userId>/<fileName>``.

    Response:
        200: {'url': str, 'key': str}
        400: missing field, 403: userId is not the caller
    """
    try:
        result = generate_presigned_url(
            caller_id=user["id"], user_id=data.userId, file_name=data.fileName, file_type=data.fileType
        )
    except ClientError as e:
        logger.error(f"Failed to presign upload for {user['id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate presigned URL")
    return unwrap(result)


@router.post("/secure-upload")
async def upload_document(file: UploadFile = File(None), user: dict = Depends(get_current_user)):
    """
    Store an upload after checking its magic bytes.

    Response:
        200: {'success': True, 'key': str, 'fileType': str}
        400: "No file provided" or "Unsupported or invalid file type"
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    content = await file.read()
    try:
        result = secure_upload(user_id=user["id"], file_name=file.filename, content=content)
    except ClientError as e:
        logger.error(f"Failed to store upload of {user['id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store file")
    return unwrap(result)


@router.post("/get-s3-url")
def download_url(data: S3UrlRequest, user: dict = Depends(get_current_user)):
    return unwrap(get_s3_url(user_id=user["id"], key=data.key))


@router.post("/rename-document")
def rename(data: RenameDocumentRequest, user: dict = Depends(get_current_user)):
    result = rename_document(
        user_id=user["id"],
        document_id=data.document_id,
        old_file_name=data.old_file_name,
        new_file_name=data.new_file_name,
    )
    return unwrap(result)


@router.api_route("/delete-document", methods=["POST", "DELETE"])
def remove_document(data: DeleteDocumentRequest, user: dict = Depends(get_current_user)):
    """
    Delete a document, its storage object and everything derived from it.

    Response:
        200: {'success': True, 'message': str, 'documentId': str}
        400 missing id, 403 not the owner, 404 unknown, 500 storage failure
    """
    return unwrap(delete_document(user_id=user["id"], document_id=data.document_id or data.documentId))


@router.post("/notify-rag-agent")
def notify_agent(data: NotifyRagAgentRequest, user: dict = Depends(get_current_user)):
    """Relay a reprocess request to the RAG agent API, status included."""
    try:
        result = notify_rag_agent(caller_id=user["id"], user_id=data.user_id, document_id=data.document_id)
    except httpx.HTTPError as e:
        logger.error(f"RAG agent request failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to reach RAG agent")
    # agent answers keep their own status
    if isinstance(result["detail"], dict):
        return JSONResponse(status_code=result["status_code"], content=result["detail"])
    return unwrap(result)
