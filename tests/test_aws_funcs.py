import io
import json
from unittest import mock

import pytest

from varating.api.aws_funcs import bedrock, funcs, sqs, textract
from varating.api.aws_funcs.textract import TextractJobError
from varating.database.config.config import settings


def test_delete_prefix_deletes_every_page():
    client = mock.Mock()
    client.get_paginator.return_value.paginate.return_value = [
        {"Contents": [{"Key": "u/a.pdf"}, {"Key": "u/b.pdf"}]},
        {},
        {"Contents": [{"Key": "u/c.pdf"}]},
    ]

    assert funcs.delete_prefix("u/", s3_client=client) == 3
    assert client.delete_objects.call_count == 2
    first = client.delete_objects.call_args_list[0].kwargs
    assert first == {"Bucket": "va-docs", "Delete": {"Objects": [{"Key": "u/a.pdf"}, {"Key": "u/b.pdf"}], "Quiet": True}}


def test_upload_url_signs_content_type():
    client = mock.Mock()
    client.generate_presigned_url.return_value = "https://signed"

    assert funcs.upload_url("u/a.pdf", "application/pdf", s3_client=client) == "https://signed"
    client.generate_presigned_url.assert_called_once_with(
        "put_object",
        Params={"Bucket": "va-docs", "Key": "u/a.pdf", "ContentType": "application/pdf"},
        ExpiresIn=settings.PRESIGNED_URL_EXPIRES,
    )


def test_object_url():
    assert funcs.object_url("u/a.pdf") == "https://va-docs.s3.us-east-2.amazonaws.com/u/a.pdf"


def test_invoke_agent_joins_chunks(monkeypatch):
    monkeypatch.setattr(settings, "BEDROCK_AGENT_ID", "agent")
    monkeypatch.setattr(settings, "BEDROCK_AGENT_ALIAS_ID", "alias")
    client = mock.Mock()
    client.invoke_agent.return_value = {
        "completion": [{"chunk": {"bytes": b"Hello "}}, {"trace": {}}, {"chunk": {"bytes": b"veteran"}}],
        "ResponseMetadata": {"RequestId": "req-9"},
    }

    result = bedrock.invoke_agent("s-1", "hi", agent_client=client)

    assert result == {"text": "Hello veteran", "request_id": "req-9"}


def test_invoke_agent_requires_configuration(monkeypatch):
    monkeypatch.setattr(settings, "BEDROCK_AGENT_ID", None)

    with pytest.raises(ValueError):
        bedrock.invoke_agent("s-1", "hi", agent_client=mock.Mock())


def test_invoke_model_sends_messages_body():
    client = mock.Mock()
    client.invoke_model.return_value = {"body": io.BytesIO(b'{"content": [{"text": "ok"}]}')}

    assert bedrock.invoke_model("prompt", max_tokens=50, runtime_client=client) == {"content": [{"text": "ok"}]}
    body = json.loads(client.invoke_model.call_args.kwargs["body"])
    assert body["max_tokens"] == 50
    assert body["messages"] == [{"role": "user", "content": "prompt"}]


def test_fifo_work_message():
    client = mock.Mock()
    client.send_message.return_value = {"MessageId": "m-1"}

    assert sqs.send_rag_work_message("u", "d", queue_url="https://sqs/work.fifo", sqs_client=client) == "m-1"
    params = client.send_message.call_args.kwargs
    assert params["MessageGroupId"] == "d"
    assert params["MessageDeduplicationId"].startswith("d-")
    assert json.loads(params["MessageBody"])["source"] == "document_processor"


def test_work_message_requires_queue(monkeypatch):
    monkeypatch.setattr(settings, "RAG_WORK_QUEUE_URL", None)

    with pytest.raises(ValueError):
        sqs.send_rag_work_message("u", "d", sqs_client=mock.Mock())


def test_get_document_analysis_follows_pages():
    client = mock.Mock()
    client.get_document_analysis.side_effect = [
        {"JobStatus": "SUCCEEDED", "Blocks": [{"Id": "1"}], "NextToken": "t"},
        {"JobStatus": "SUCCEEDED", "Blocks": [{"Id": "2"}]},
    ]

    assert textract.get_document_analysis("job", textract_client=client) == [{"Id": "1"}, {"Id": "2"}]
    assert client.get_document_analysis.call_args_list[1].kwargs == {"JobId": "job", "NextToken": "t"}


def test_get_document_analysis_failed_job():
    client = mock.Mock()
    client.get_document_analysis.return_value = {"JobStatus": "FAILED", "StatusMessage": "bad pdf"}

    with pytest.raises(TextractJobError, match="bad pdf"):
        textract.get_document_analysis("job", textract_client=client)
