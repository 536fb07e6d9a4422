import json
import uuid

import pytest
from sqlalchemy import select

from varating.database.config.config import settings
from varating.database.entities.documents import Document, DocumentChunk, TextractJob
from varating.processing import handlers, ingestion
from varating.processing.ingestion import handle_s3_upload, parse_sns_message, parse_upload_key

BODY = "Assessment: chronic lumbar strain with radiating pain into the left leg. " * 10


def s3_record(key, bucket=None):
    return {
        "eventSource": "aws:s3",
        "eventName": "ObjectCreated:Put",
        "s3": {"bucket": {"name": bucket or settings.BUCKET_NAME}, "object": {"key": key}},
    }


@pytest.fixture
def aws(monkeypatch):
    calls = {"started": [], "queued": []}

    def start(bucket, key, document_id):
        calls["started"].append((bucket, key, document_id))
        return "job-1"

    def queue(user_id, document_id):
        calls["queued"].append((user_id, document_id))
        return "msg-1"

    blocks = [
        {"Id": "l1", "BlockType": "LINE", "Text": "Patient: John Doe", "Page": 1, "Confidence": 99.0},
        {"Id": "l2", "BlockType": "LINE", "Text": BODY, "Page": 1, "Confidence": 97.0},
    ]
    monkeypatch.setattr(ingestion, "start_document_analysis", start)
    monkeypatch.setattr(ingestion, "send_rag_work_message", queue)
    monkeypatch.setattr(ingestion, "get_document_analysis", lambda job_id: blocks)
    return calls


def test_parse_upload_key():
    user_id = uuid.uuid4()
    parsed = parse_upload_key(f"{user_id}/My+Records.pdf")
    assert parsed["user_id"] == user_id
    assert parsed["file_name"] == "My Records.pdf"
    assert parse_upload_key("file.pdf") == {"error": "Invalid file path format"}
    assert parse_upload_key("not-a-uuid/file.pdf") == {"error": "Invalid user ID format"}


def test_parse_sns_message_regex_fallback():
    assert parse_sns_message('{"JobId": "j1", "Status": "SUCCEEDED"}')["Status"] == "SUCCEEDED"
    assert parse_sns_message("{JobId: j2, Status: FAILED}") == {"JobId": "j2", "Status": "FAILED"}
    with pytest.raises(ValueError):
        parse_sns_message("garbage")


def test_upload_from_other_bucket_is_rejected(aws):
    response = handle_s3_upload(s3_record(f"{uuid.uuid4()}/a.pdf", bucket="other"))
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "Invalid bucket"


def test_upload_registers_document_and_starts_textract(aws, db, user_id):
    response = handle_s3_upload(s3_record(f"{user_id}/scan.pdf"), "req-1")

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["jobId"] == "job-1"
    document = db.scalars(select(Document)).one()
    assert document.document_name == "scan"
    assert document.textract_job_id == "job-1"
    assert db.scalars(select(TextractJob)).one().status == "PROCESSING"


def test_duplicate_upload_is_skipped(aws, user_id):
    handle_s3_upload(s3_record(f"{user_id}/scan.pdf"))
    response = handle_s3_upload(s3_record(f"{user_id}/scan.pdf"))
    assert json.loads(response["body"])["status"] == "duplicate_skipped"
    assert len(aws["started"]) == 1


def test_failed_start_marks_document_failed(aws, monkeypatch, db, user_id):
    def broken(bucket, key, document_id):
        raise RuntimeError("throttled")

    monkeypatch.setattr(ingestion, "start_document_analysis", broken)
    with pytest.raises(RuntimeError):
        handle_s3_upload(s3_record(f"{user_id}/scan.pdf"))
    document = db.scalars(select(Document)).one()
    assert document.processing_status == "failed"
    assert "throttled" in document.error_message


def test_completion_stores_chunks_and_queues_work(aws, db, user_id):
    handle_s3_upload(s3_record(f"{user_id}/scan.pdf"))

    response = ingestion.handle_sns_notification(json.dumps({"JobId": "job-1", "Status": "SUCCEEDED"}))

    assert response["statusCode"] == 200
    document = db.scalars(select(Document)).one()
    assert document.processing_status == "completed"
    assert document.total_chunks == 1
    assert db.scalars(select(DocumentChunk)).one().page_number == 1
    assert db.scalars(select(TextractJob)).one().status == "SUCCEEDED"
    assert aws["queued"] == [(str(user_id), str(document.id))]


def test_failed_job_is_recorded(aws, db, user_id):
    handle_s3_upload(s3_record(f"{user_id}/scan.pdf"))
    ingestion.handle_sns_notification(json.dumps({"JobId": "job-1", "Status": "FAILED", "StatusMessage": "bad pdf"}))
    job = db.scalars(select(TextractJob)).one()
    assert job.status == "FAILED"
    assert job.error_message == "bad pdf"


def test_unknown_job_answers_500(aws):
    response = ingestion.handle_sns_notification(json.dumps({"JobId": "nope", "Status": "SUCCEEDED"}))
    assert response["statusCode"] == 500


def test_handler_routes_sqs_wrapped_sns(aws, user_id):
    handle_s3_upload(s3_record(f"{user_id}/scan.pdf"))
    sns = {"Type": "Notification", "TopicArn": "arn:aws:sns:topic", "Message": json.dumps({"JobId": "job-1", "Status": "SUCCEEDED"})}
    event = {"Records": [{"eventSource": "aws:sqs", "body": json.dumps(sns)}]}
    response = handlers.document_processor_handler(event)
    assert json.loads(response["body"])["message"] == "Document processed successfully"


def test_handler_rejects_unknown_events():
    response = handlers.document_processor_handler({"Records": [{"eventSource": "aws:dynamodb"}]})
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "Unsupported event type"


def test_handler_rejects_unexpected_queue_messages():
    event = {"Records": [{"eventSource": "aws:sqs", "body": json.dumps({"hello": "world"})}]}
    response = handlers.document_processor_handler(event)
    assert json.loads(response["body"])["error"] == "Unexpected message format"
