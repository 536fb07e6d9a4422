"""
Service-layer operations for documents, storage and the OCR pipeline.

User-facing operations (presign, secure upload, signed download, rename,
delete) check ownership against the authenticated caller. The ingestion
helpers at the bottom are called by the S3/SNS Lambda handlers and keep each
step in its own short transaction, so a failure half-way leaves the
document row in an explicit ``failed`` state instead of rolling it away.
"""

import logging
import os
from typing import Optional
from uuid import UUID

import httpx
from botocore.exceptions import ClientError
from sqlalchemy.orm import Session

from varating.api.aws_funcs.funcs import delete_object, download, object_url, upload, upload_url
from varating.database.config.config import settings
from varating.database.daos.document_dao import DocumentDao
from varating.database.entities.documents import Document, DocumentChunk, MedicalEntity, TextractJob
from varating.database.helpers.columns import utcnow
from varating.database.helpers.transactionManagement import transactional

logger = logging.getLogger("uvicorn")

FILE_SIGNATURES = (
    (b"%PDF", "application/pdf"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG", "image/png"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"\xd0\xcf\x11\xe0", "application/msword"),
)
"""Magic-byte prefixes of the accepted upload types."""

DOCX_SIGNATURE = b"PK\x03\x04"
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def detect_file_type(content: bytes, file_name: str) -> Optional[str]:
    """
    Detect the content type of an upload from its leading bytes.

    Parameters
    ----------
    content : bytes
        File body.
    file_name : str
        Original name; only used for DOCX (a ZIP container) and plain text.

    Returns
    -------
    str | None
        The MIME type, or None when the file is not an accepted type.
    """
    for signature, mime in FILE_SIGNATURES:
        if content.startswith(signature):
            return mime
    lowered = (file_name or "").lower()
    if content.startswith(DOCX_SIGNATURE) and lowered.endswith(".docx"):
        return DOCX_TYPE
    if lowered.endswith(".txt"):
        head = content[:16]
        if not any(byte < 0x09 or 0x0E <= byte <= 0x1F for byte in head):
            return "text/plain"
    return None


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


def generate_presigned_url(caller_id: UUID, user_id, file_name, file_type) -> dict:
    """
    Presigned PUT URL for ``<userId>/<fileName>``.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {'url', 'key'}}`` or a 400/403 failure.
    """
    if not user_id or not file_name or not file_type:
        return {"res": False, "detail": "Missing userId, fileName, or fileType", "status_code": 400}
    if str(user_id) != str(caller_id):
        return {"res": False, "detail": "Forbidden", "status_code": 403}
    key = f"{user_id}/{file_name}"
    url = upload_url(key, content_type=file_type)
    return {"res": True, "detail": {"url": url, "key": key}}


def secure_upload(user_id: UUID, file_name: str, content: bytes) -> dict:
    """
    Validate an upload by magic bytes and store it under the caller's prefix.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {'success', 'key', 'fileType'}}`` or a 400
        failure for unsupported files.
    """
    base_name = os.path.basename(file_name or "")
    if not base_name or not content:
        return {"res": False, "detail": "No file provided", "status_code": 400}
    file_type = detect_file_type(content, base_name)
    if file_type is None:
        return {"res": False, "detail": "Unsupported or invalid file type", "status_code": 400}
    key = f"{user_id}/{base_name}"
    upload(content, key, content_type=file_type)
    logger.info(f"Stored {key} ({file_type}, {len(content)} bytes)")
    return {"res": True, "detail": {"success": True, "key": key, "fileType": file_type}}


@transactional
def get_s3_url(session: Session, user_id: UUID, key: str) -> dict:
    """
    Presigned GET URL for a key the caller owns a document for.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {'url'}}`` or 403 "Unauthorized or file not found".
    """
    if not key:
        return {"res": False, "detail": "Missing key", "status_code": 400}
    document = DocumentDao().fetchDocumentByKeySuffix(session, user_id, key)
    if document is None:
        return {"res": False, "detail": "Unauthorized or file not found", "status_code": 403}
    return {"res": True, "detail": {"url": download(key)}}


# ---------------------------------------------------------------------------
# Document management
# ---------------------------------------------------------------------------


@transactional
def rename_document(session: Session, user_id: UUID, document_id, old_file_name, new_file_name) -> dict:
    """
    Point a document at a new file name.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {'success': True, 'file_url'}}`` or a 400/404
        failure.
    """
    if not document_id or not old_file_name or not new_file_name:
        return {
            "res": False,
            "detail": "Missing document_id, old_file_name, or new_file_name",
            "status_code": 400,
        }
    try:
        document_id = UUID(str(document_id))
    except ValueError:
        return {"res": False, "detail": "Document not found", "status_code": 404}
    document = DocumentDao().fetchOwnedDocument(session, document_id, user_id)
    if document is None:
        return {"res": False, "detail": "Document not found", "status_code": 404}
    file_url = object_url(new_file_name)
    document.file_name = new_file_name.split("/")[-1]
    document.file_url = file_url
    document.updated_at = utcnow()
    return {"res": True, "detail": {"success": True, "file_url": file_url}}


@transactional
def fetch_document_for_deletion(session: Session, document_id: UUID) -> Optional[dict]:
    document = DocumentDao().fetchDocumentById(session, document_id)
    if document is None:
        return None
    return {
        "id": document.id,
        "user_id": document.user_id,
        "file_name": document.file_name,
        "file_url": document.file_url,
    }


@transactional
def delete_document_rows(session: Session, document_id: UUID) -> None:
    DocumentDao().deleteDocumentWithDependents(session, document_id)


def delete_document(user_id: UUID, document_id) -> dict:
    """
    Delete a document: storage object first, then the row and its dependents.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {success, message, documentId}}``
        - On failure: 400 (missing id), 404 (unknown), 403 (not the owner) or
          500 (storage failure; the row is kept).
    """
    if not document_id:
        return {"res": False, "detail": "Missing document ID", "status_code": 400}
    try:
        document_uuid = UUID(str(document_id))
    except ValueError:
        return {"res": False, "detail": "Document not found", "status_code": 404}

    document = fetch_document_for_deletion(document_id=document_uuid)
    if document is None:
        return {"res": False, "detail": "Document not found", "status_code": 404}
    if document["user_id"] != user_id:
        return {"res": False, "detail": "Unauthorized", "status_code": 403}

    if document["file_url"]:
        key = f"{document['user_id']}/{document['file_name']}"
        try:
            delete_object(key)
        except ClientError as e:
            logger.error(f"Failed to delete S3 object {key}: {e}")
            return {"res": False, "detail": "Failed to delete file from storage", "status_code": 500}

    delete_document_rows(document_id=document_uuid)
    logger.info(f"Deleted document {document_uuid} of {user_id}")
    return {
        "res": True,
        "detail": {"success": True, "message": "Document deleted successfully", "documentId": str(document_uuid)},
    }


@transactional
def user_owns_document(session: Session, user_id: UUID, document_id: UUID) -> bool:
    return DocumentDao().fetchOwnedDocument(session, document_id, user_id) is not None


def notify_rag_agent(caller_id: UUID, user_id, document_id) -> dict:
    """
    Ask the RAG agent API to reprocess one of the caller's documents.

    Returns
    -------
    dict
        ``{'res': bool, 'status_code': int, 'detail': <agent body>}`` relaying
        the agent's answer and status, or a 400/403/404 failure.

    Raises
    ------
    httpx.HTTPError
        On transport failures.
    """
    if not user_id or not document_id:
        return {"res": False, "detail": "Missing user_id or document_id", "status_code": 400}
    if str(user_id) != str(caller_id):
        return {"res": False, "detail": "Forbidden", "status_code": 403}
    try:
        document_uuid = UUID(str(document_id))
    except ValueError:
        return {"res": False, "detail": "Document not found", "status_code": 404}
    if not user_owns_document(user_id=caller_id, document_id=document_uuid):
        return {"res": False, "detail": "Document not found", "status_code": 404}
    if not settings.RAG_AGENT_URL:
        return {"res": False, "detail": "RAG agent is not configured", "status_code": 500}

    response = httpx.post(
        f"{settings.RAG_AGENT_URL.rstrip('/')}/rag-agent/{user_id}/reprocess",
        json={"document_id": str(document_uuid)},
        headers={"Authorization": f"Bearer {settings.RAG_AGENT_API_KEY}"},
        timeout=settings.HTTP_TIMEOUT,
    )
    try:
        body = response.json()
    except ValueError:
        body = {"message": response.text}
    return {"res": response.is_success, "status_code": response.status_code, "detail": body}


# ---------------------------------------------------------------------------
# Ingestion persistence (S3 -> Textract -> chunks)
# ---------------------------------------------------------------------------


@transactional
def register_uploaded_document(session: Session, user_id: UUID, file_name: str, file_url: str) -> dict:
    """
    Create the document row for a new upload, or decide what to do with an
    existing one.

    Returns
    -------
    dict
        ``{'status': str, 'document_id': UUID}`` where status is one of
        ``created``, ``retry``, ``duplicate_skipped``, ``already_completed``,
        ``duplicate_found``.

    Raises
    ------
    sqlalchemy.exc.IntegrityError
        When a concurrent upload event inserted the same file first.
    """
    dao = DocumentDao()
    existing = dao.fetchDocumentByFileUrl(session, user_id, file_url)
    if existing is not None:
        if existing.processing_status == "processing" and existing.textract_status == "processing":
            return {"status": "duplicate_skipped", "document_id": existing.id}
        if existing.processing_status == "completed":
            return {"status": "already_completed", "document_id": existing.id}
        if existing.processing_status == "failed" or existing.textract_status in ("pending", "failed"):
            dao.updateDocumentStatus(session, existing.id, processing_status="processing", textract_status="processing")
            return {"status": "retry", "document_id": existing.id}
        return {"status": "duplicate_found", "document_id": existing.id}

    document = Document(
        user_id=user_id,
        file_name=file_name,
        file_url=file_url,
        document_name=os.path.splitext(file_name)[0],
        processing_status="processing",
        textract_status="processing",
    )
    dao.createDocument(session, document)
    return {"status": "created", "document_id": document.id}


@transactional
def find_document_by_file_url(session: Session, user_id: UUID, file_url: str) -> Optional[UUID]:
    document = DocumentDao().fetchDocumentByFileUrl(session, user_id, file_url)
    return document.id if document else None


@transactional
def record_textract_job(session: Session, document_id: UUID, aws_job_id: str) -> None:
    dao = DocumentDao()
    dao.createTextractJob(session, TextractJob(document_id=document_id, aws_job_id=aws_job_id))
    dao.updateDocumentStatus(session, document_id, textract_job_id=aws_job_id)


@transactional
def mark_document_failed(session: Session, document_id: UUID, error_message: str, textract: bool = True) -> None:
    DocumentDao().updateDocumentStatus(
        session,
        document_id,
        processing_status="failed",
        textract_status="failed" if textract else None,
        error_message=error_message,
    )


@transactional
def mark_textract_job_failed(session: Session, aws_job_id: str, error_message: str) -> None:
    DocumentDao().updateTextractJob(session, aws_job_id, status="FAILED", error_message=error_message)


@transactional
def resolve_textract_job(session: Session, aws_job_id: str) -> Optional[dict]:
    """
    Job and document ids of an AWS Textract job.

    Returns
    -------
    dict | None
        ``{'document_id', 'user_id'}``; None when the job or its document is
        unknown.
    """
    dao = DocumentDao()
    job = dao.fetchTextractJob(session, aws_job_id)
    if job is None:
        return None
    document = dao.fetchDocumentById(session, job.document_id)
    if document is None:
        return None
    return {"document_id": document.id, "user_id": document.user_id}


@transactional
def store_textract_results(session: Session, document_id: UUID, aws_job_id: str, result: dict, blocks: list) -> int:
    """
    Persist a finished analysis: chunks, entities, document totals and the
    job's raw output.

    Parameters
    ----------
    result : dict
        Output of ``varating.processing.textract_results.analyze_blocks``.
    blocks : list
        Raw Textract blocks; the first 1000 are kept on the job row.

    Returns
    -------
    int
        Number of chunks stored.
    """
    dao = DocumentDao()
    chunks = [
        DocumentChunk(
            document_id=document_id,
            chunk_index=chunk["chunk_index"],
            page_number=chunk["page_number"],
            content=chunk["content"],
            content_type="text",
            word_count=chunk["word_count"],
            char_count=chunk["char_count"],
            confidence_score=result["average_confidence"] / 100,
            created_at=utcnow(),
        )
        for chunk in result["chunks"]
    ]
    stored = dao.replaceChunks(session, document_id, chunks)

    entities = [
        MedicalEntity(
            document_id=document_id,
            entity_type=entity["entity_type"],
            entity_value=entity["entity_value"],
            confidence_score=entity["confidence"] / 100,
            bounding_box=entity["bounding_box"],
            page_number=entity.get("page_number"),
            created_at=utcnow(),
        )
        for entity in result["entities"]
    ]
    if entities:
        dao.createEntities(session, entities)

    dao.updateDocumentStatus(
        session,
        document_id,
        processing_status="completed",
        textract_status="completed",
        total_chunks=stored,
        total_pages=result["total_pages"],
        textract_form_fields=result["form_fields"],
        textract_confidence=result["average_confidence"],
        has_signatures=result["signature_count"] > 0,
        signature_count=result["signature_count"],
        processed_at=utcnow(),
    )
    dao.updateTextractJob(session, aws_job_id, status="SUCCEEDED", raw_output=blocks[:1000])
    return stored
