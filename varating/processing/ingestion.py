"""
Document ingestion pipeline
===========================

S3 upload -> Textract analysis -> chunks and entities -> RAG work queue.

Flow
----
1. ``handle_s3_upload``: an ``ObjectCreated`` record registers the document
   (idempotent on ``(user_id, file_url)``) and starts Textract.
2. ``handle_sns_notification``: Textract publishes the job outcome on SNS
   (directly, or wrapped in an SQS message).
3. ``handle_textract_completion``: blocks are fetched, parsed and stored.
4. ``notify_rag_agent_via_sqs``: the document is queued for condition
   extraction.

Every step that fails leaves the document row in ``failed`` before the error
propagates to the Lambda boundary.
"""

import json
import logging
import re
from typing import Optional
from urllib.parse import unquote_plus
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from varating.api.aws_funcs.funcs import object_url
from varating.api.aws_funcs.sqs import send_rag_work_message
from varating.api.aws_funcs.textract import get_document_analysis, start_document_analysis
from varating.database.config.config import settings
from varating.database.core.document_funcs import (
    find_document_by_file_url,
    mark_document_failed,
    mark_textract_job_failed,
    record_textract_job,
    register_uploaded_document,
    resolve_textract_job,
    store_textract_results,
)
from varating.processing.responses import lambda_response
from varating.processing.textract_results import analyze_blocks

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)
JOB_ID_PATTERN = re.compile(r"JobId[\"']?[:\s]*([^,}]+)")
STATUS_PATTERN = re.compile(r"Status[\"']?[:\s]*([^,}]+)")

EXISTING_DOCUMENT_MESSAGES = {
    "duplicate_skipped": "Document already exists and is being processed",
    "already_completed": "Document already completed",
    "duplicate_found": "Document already exists",
}


class TextractJobNotFound(LookupError):
    """Raised when a completion arrives for a job nothing was recorded for."""


def parse_upload_key(raw_key: str) -> dict:
    """
    Split an S3 event key into owner and file name.

    Parameters
    ----------
    raw_key : str
        Key as found in the event record (URL-encoded, ``+`` for spaces).

    Returns
    -------
    dict
        ``{'key', 'user_id', 'file_name'}`` on success, or ``{'error'}`` with
        "Invalid file path format" (root-level key) or "Invalid user ID format".
    """
    key = unquote_plus(raw_key)
    parts = key.split("/")
    if len(parts) < 2 or not parts[-1]:
        return {"error": "Invalid file path format"}
    if not USER_ID_PATTERN.match(parts[0]):
        return {"error": "Invalid user ID format"}
    return {"key": key, "user_id": UUID(parts[0]), "file_name": parts[-1]}


def handle_s3_upload(record: dict, request_id: Optional[str] = None) -> dict:
    """
    Register an uploaded file and start its analysis.

    Parameters
    ----------
    record : dict
        One ``aws:s3`` event record.

    Returns
    -------
    dict
        Lambda envelope; 400 for a foreign bucket or a malformed key, 200 with
        a ``status`` for uploads that were already known.
    """
    bucket = record["s3"]["bucket"]["name"]
    if bucket != settings.BUCKET_NAME:
        logger.error(f"Unexpected bucket {bucket}, expected {settings.BUCKET_NAME}")
        return lambda_response(400, {"error": "Invalid bucket", "requestId": request_id})

    parsed = parse_upload_key(record["s3"]["object"]["key"])
    if "error" in parsed:
        logger.error(f"{parsed['error']}: {record['s3']['object']['key']}")
        return lambda_response(400, {"error": parsed["error"], "requestId": request_id})

    key, user_id = parsed["key"], parsed["user_id"]
    file_url = object_url(key)
    try:
        registration = register_uploaded_document(user_id=user_id, file_name=parsed["file_name"], file_url=file_url)
    except IntegrityError:
        # A concurrent event for the same object won the insert.
        registration = {
            "status": "duplicate_found",
            "document_id": find_document_by_file_url(user_id=user_id, file_url=file_url),
        }

    status = registration["status"]
    document_id = registration["document_id"]
    if status in EXISTING_DOCUMENT_MESSAGES:
        logger.info(f"Skipping {key}: {status} ({document_id})")
        return lambda_response(
            200,
            {
                "message": EXISTING_DOCUMENT_MESSAGES[status],
                "documentId": str(document_id),
                "status": status,
                "requestId": request_id,
            },
        )

    logger.info(f"Document {document_id} {status} for {key}; starting Textract")
    return start_textract_processing(bucket, key, document_id, request_id)


def start_textract_processing(bucket: str, key: str, document_id: UUID, request_id: Optional[str] = None) -> dict:
    """
    Start the Textract job of a document and record it.

    Raises
    ------
    Exception
        Whatever Textract or the database raised, after the document has been
        marked failed.
    """
    try:
        job_id = start_document_analysis(bucket, key, str(document_id))
        record_textract_job(document_id=document_id, aws_job_id=job_id)
    except Exception as e:
        logger.error(f"Textract processing error for document {document_id}: {e}")
        mark_document_failed(document_id=document_id, error_message=f"Failed to start Textract: {e}")
        raise

    logger.info(f"Started Textract job {job_id} for document {document_id}")
    return lambda_response(
        200,
        {
            "message": "Textract processing started successfully",
            "jobId": job_id,
            "documentId": str(document_id),
            "requestId": request_id,
            "s3Location": f"s3://{bucket}/{key}",
        },
    )


def handle_textract_completion(job_id: str) -> dict:
    """
    Fetch, parse and store the results of a finished job.

    Returns
    -------
    dict
        ``{'document_id', 'user_id', 'chunks'}``.

    Raises
    ------
    TextractJobNotFound
        When the job id is unknown.
    """
    job = resolve_textract_job(aws_job_id=job_id)
    if job is None:
        raise TextractJobNotFound(f"No document found for Textract job {job_id}")

    document_id = job["document_id"]
    try:
        blocks = get_document_analysis(job_id)
        result = analyze_blocks(blocks)
        stored = store_textract_results(document_id=document_id, aws_job_id=job_id, result=result, blocks=blocks)
    except Exception as e:
        logger.error(f"Error processing Textract job {job_id}: {e}")
        mark_document_failed(document_id=document_id, error_message=f"Textract processing failed: {e}")
        mark_textract_job_failed(aws_job_id=job_id, error_message=str(e))
        raise

    logger.info(f"Stored {stored} chunks and {len(result['entities'])} entities for document {document_id}")
    return {"document_id": document_id, "user_id": job["user_id"], "chunks": stored}


def notify_rag_agent_via_sqs(user_id: UUID, document_id: UUID) -> str:
    """
    Queue a processed document for condition extraction.

    Returns
    -------
    str
        The SQS message id.
    """
    try:
        message_id = send_rag_work_message(str(user_id), str(document_id))
    except Exception as e:
        logger.error(f"Failed to send RAG work message for document {document_id}: {e}")
        mark_document_failed(document_id=document_id, error_message="Failed to queue for RAG processing.", textract=False)
        raise
    logger.info(f"Queued document {document_id} for condition extraction")
    return message_id


def parse_sns_message(message: str) -> dict:
    """
    Decode a Textract completion message.

    Falls back to pulling ``JobId`` and ``Status`` out with regular
    expressions when the message is not valid JSON.

    Raises
    ------
    ValueError
        When neither field can be found.
    """
    try:
        return json.loads(message)
    except json.JSONDecodeError:
        logger.warning("SNS message is not valid JSON; extracting JobId and Status manually")
    job_id = JOB_ID_PATTERN.search(message)
    status = STATUS_PATTERN.search(message)
    if not job_id or not status:
        raise ValueError("Could not extract JobId and Status from message")
    return {
        "JobId": job_id.group(1).strip().strip("'\""),
        "Status": status.group(1).strip().strip("'\""),
    }


def handle_sns_notification(message: str, request_id: Optional[str] = None) -> dict:
    """
    React to a Textract job outcome.

    Parameters
    ----------
    message : str
        The SNS ``Message`` field.

    Returns
    -------
    dict
        Lambda envelope; 500 when processing failed.
    """
    try:
        notification = parse_sns_message(message)
        job_id = notification.get("JobId")
        status = notification.get("Status")
        logger.info(f"Textract job {job_id} reported {status}")

        if status == "SUCCEEDED":
            completed = handle_textract_completion(job_id)
            notify_rag_agent_via_sqs(completed["user_id"], completed["document_id"])
            return lambda_response(
                200, {"message": "Document processed successfully", "documentId": str(completed["document_id"])}
            )
        if status == "FAILED":
            mark_textract_job_failed(aws_job_id=job_id, error_message=notification.get("StatusMessage") or "Job failed")
        else:
            logger.warning(f"Unknown Textract status {status} for job {job_id}")

        return lambda_response(
            200,
            {"message": "SNS notification processed successfully", "jobId": job_id, "status": status, "requestId": request_id},
        )
    except Exception as e:
        logger.exception(f"Error processing SNS notification: {e}")
        return lambda_response(500, {"error": str(e), "requestId": request_id})
