"""
Lambda entry points
===================

``document_processor_handler``
    S3 uploads, Textract completions (SNS, or SNS wrapped in SQS) and direct
    ``{key, userId}`` presign invocations.
``rag_agent_handler``
    RAG work messages from SQS and Bedrock agent action-group calls.
``ecfr_handler``
    eCFR direct lookups and agent functions.

Handled errors are answered as ``{statusCode, headers, body}`` envelopes.
"""

import json
import logging
import uuid
from uuid import UUID

from varating.database.core.document_funcs import get_s3_url
from varating.processing.cfr_search import handle_ecfr_event
from varating.processing.ingestion import handle_s3_upload, handle_sns_notification
from varating.processing.rag_agent import handle_agent_action, handle_work_message
from varating.processing.responses import create_error_response, lambda_response

logger = logging.getLogger(__name__)


def _request_id(context) -> str:
    return getattr(context, "aws_request_id", None) or str(uuid.uuid4())


def _first_record(event: dict) -> dict:
    records = event.get("Records") or []
    return records[0] if records else {}


def _source(record: dict) -> str:
    return record.get("eventSource") or record.get("EventSource") or ""


def handle_presign_invocation(event: dict, request_id: str) -> dict:
    user_id = event.get("userId") or event.get("userid")
    try:
        user_id = UUID(str(user_id))
    except ValueError:
        return lambda_response(400, {"error": "Missing or invalid userId", "requestId": request_id})
    result = get_s3_url(user_id=user_id, key=event["key"])
    if not result["res"]:
        return lambda_response(result["status_code"], {"error": result["detail"], "requestId": request_id})
    return lambda_response(200, result["detail"])


def document_processor_handler(event: dict, context=None) -> dict:
    request_id = _request_id(context)
    record = _first_record(event)
    source = _source(record)
    try:
        if source == "aws:s3" and "ObjectCreated" in (record.get("eventName") or ""):
            return handle_s3_upload(record, request_id)

        if source == "aws:sqs":
            body = json.loads(record["body"])
            if body.get("Type") == "Notification" and body.get("TopicArn") and body.get("Message"):
                return handle_sns_notification(body["Message"], request_id)
            logger.error(f"Unexpected message format in Textract completion queue: {body}")
            return lambda_response(400, {"error": "Unexpected message format", "requestId": request_id})

        if source == "aws:sns" or (record.get("Sns") and record.get("EventSubscriptionArn")):
            return handle_sns_notification(record["Sns"]["Message"], request_id)

        if event.get("key"):
            return handle_presign_invocation(event, request_id)
    except Exception as e:
        logger.exception(f"Handler error: {e}")
        return lambda_response(500, {"error": str(e), "requestId": request_id})

    logger.error(f"Unsupported event type: records={bool(record)} source={source or None}")
    return lambda_response(400, {"error": "Unsupported event type", "requestId": request_id})


def rag_agent_handler(event: dict, context=None) -> dict:
    record = _first_record(event)
    try:
        if _source(record) == "aws:sqs":
            return handle_work_message(record["body"])
        if event.get("messageVersion") and event.get("function") and event.get("agent"):
            return handle_agent_action(event)
    except Exception as e:
        logger.exception(f"Handler error: {e}")
        return create_error_response(500, str(e))

    logger.error("Invalid endpoint or event type")
    return create_error_response(400, "Invalid endpoint or event type")


def ecfr_handler(event: dict, context=None) -> dict:
    return handle_ecfr_event(event)
