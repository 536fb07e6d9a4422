import uuid
from unittest import mock

import httpx
import pytest
from botocore.exceptions import ClientError

from conftest import make_token
from varating.database.config.config import settings
from varating.database.core import document_funcs
from varating.database.core.document_funcs import detect_file_type
from varating.database.entities.documents import Document, DocumentChunk

PDF = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n1 0 obj"


@pytest.fixture
def storage(monkeypatch):
    fakes = mock.Mock()
    fakes.upload_url.return_value = "https://va-docs.s3.amazonaws.com/put?sig=1"
    fakes.download.return_value = "https://va-docs.s3.amazonaws.com/get?sig=1"
    for name in ("upload_url", "upload", "download", "delete_object"):
        monkeypatch.setattr(document_funcs, name, getattr(fakes, name))
    return fakes


@pytest.fixture
def document(db, user_id):
    row = Document(
        user_id=user_id,
        file_name="dd214.pdf",
        file_url=f"https://va-docs.s3.us-east-2.amazonaws.com/{user_id}/dd214.pdf",
        processing_status="completed",
    )
    db.add(row)
    db.flush()
    db.add(DocumentChunk(document_id=row.id, chunk_index=0, page_number=1, content="service record"))
    db.commit()
    return row.id


@pytest.mark.parametrize(
    "content, name, expected",
    [
        (PDF, "a.pdf", "application/pdf"),
        (b"\xff\xd8\xff\xe0JFIF", "scan.jpg", "image/jpeg"),
        (b"\x89PNG\r\n\x1a\n", "scan.png", "image/png"),
        (b"PK\x03\x04rest", "letter.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
        (b"PK\x03\x04rest", "archive.zip", None),
        (b"Service treatment notes", "notes.txt", "text/plain"),
        (b"\x00\x01binary", "notes.txt", None),
        (b"MZ\x90\x00", "evil.pdf", None),
    ],
)
def test_detect_file_type(content, name, expected):
    assert detect_file_type(content, name) == expected


def test_presigned_url(client, auth_headers, user_id, storage):
    response = client.post(
        "/generate-presigned-url",
        json={"userId": str(user_id), "fileName": "dd214.pdf", "fileType": "application/pdf"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://va-docs.s3.amazonaws.com/put?sig=1", "key": f"{user_id}/dd214.pdf"}
    storage.upload_url.assert_called_once_with(f"{user_id}/dd214.pdf", content_type="application/pdf")


def test_presigned_url_for_someone_else(client, auth_headers, storage):
    response = client.post(
        "/generate-presigned-url",
        json={"userId": str(uuid.uuid4()), "fileName": "dd214.pdf", "fileType": "application/pdf"},
        headers=auth_headers,
    )

    assert response.status_code == 403
    storage.upload_url.assert_not_called()


def test_presigned_url_missing_fields(client, auth_headers, user_id, storage):
    response = client.post("/generate-presigned-url", json={"userId": str(user_id)}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing userId, fileName, or fileType"


def test_presigned_url_storage_error(client, auth_headers, user_id, storage):
    storage.upload_url.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "PutObject")

    response = client.post(
        "/generate-presigned-url",
        json={"userId": str(user_id), "fileName": "a.pdf", "fileType": "application/pdf"},
        headers=auth_headers,
    )

    assert response.status_code == 500


def test_secure_upload_stores_valid_file(client, auth_headers, user_id, storage):
    response = client.post(
        "/secure-upload", files={"file": ("dd214.pdf", PDF, "application/pdf")}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "key": f"{user_id}/dd214.pdf", "fileType": "application/pdf"}
    storage.upload.assert_called_once_with(PDF, f"{user_id}/dd214.pdf", content_type="application/pdf")


def test_secure_upload_rejects_disguised_file(client, auth_headers, storage):
    response = client.post(
        "/secure-upload", files={"file": ("dd214.pdf", b"MZ\x90\x00payload", "application/pdf")}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Unsupported or invalid file type"
    storage.upload.assert_not_called()


def test_secure_upload_without_file(client, auth_headers, storage):
    response = client.post("/secure-upload", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "No file provided"


def test_get_s3_url_for_owned_key(client, auth_headers, user_id, document, storage):
    response = client.post("/get-s3-url", json={"key": f"{user_id}/dd214.pdf"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"url": "https://va-docs.s3.amazonaws.com/get?sig=1"}


def test_get_s3_url_for_unknown_key(client, auth_headers, user_id, document, storage):
    response = client.post("/get-s3-url", json={"key": f"{uuid.uuid4()}/dd214.pdf"}, headers=auth_headers)

    assert response.status_code == 403
    storage.download.assert_not_called()


def test_rename_document(client, db, auth_headers, user_id, document):
    response = client.post(
        "/rename-document",
        json={
            "document_id": str(document),
            "old_file_name": f"{user_id}/dd214.pdf",
            "new_file_name": f"{user_id}/discharge.pdf",
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    expected_url = f"https://va-docs.s3.us-east-2.amazonaws.com/{user_id}/discharge.pdf"
    assert response.json() == {"success": True, "file_url": expected_url}
    row = db.get(Document, document)
    assert (row.file_name, row.file_url) == ("discharge.pdf", expected_url)


def test_rename_unknown_document(client, auth_headers):
    response = client.post(
        "/rename-document",
        json={"document_id": "not-a-uuid", "old_file_name": "a", "new_file_name": "b"},
        headers=auth_headers,
    )

    assert response.status_code == 404


def test_delete_document(client, db, auth_headers, user_id, document, storage):
    response = client.request("DELETE", "/delete-document", json={"documentId": str(document)}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["documentId"] == str(document)
    storage.delete_object.assert_called_once_with(f"{user_id}/dd214.pdf")
    assert db.get(Document, document) is None
    assert db.query(DocumentChunk).count() == 0


def test_delete_document_of_other_user(client, document, storage):
    stranger = {"Authorization": f"Bearer {make_token(uuid.uuid4())}"}
    response = client.post("/delete-document", json={"document_id": str(document)}, headers=stranger)

    assert response.status_code == 403
    storage.delete_object.assert_not_called()


def test_delete_keeps_row_when_storage_fails(client, db, auth_headers, document, storage):
    storage.delete_object.side_effect = ClientError({"Error": {"Code": "InternalError"}}, "DeleteObject")

    response = client.post("/delete-document", json={"document_id": str(document)}, headers=auth_headers)

    assert response.status_code == 500
    assert db.get(Document, document) is not None


def test_notify_rag_agent_relays_answer(client, auth_headers, user_id, document, monkeypatch):
    monkeypatch.setattr(settings, "RAG_AGENT_URL", "https://rag.example.com/")
    post = mock.Mock(return_value=httpx.Response(202, json={"message": "queued"}))
    monkeypatch.setattr(document_funcs.httpx, "post", post)

    response = client.post(
        "/notify-rag-agent", json={"user_id": str(user_id), "document_id": str(document)}, headers=auth_headers
    )

    assert response.status_code == 202
    assert response.json() == {"message": "queued"}
    assert post.call_args.args[0] == f"https://rag.example.com/rag-agent/{user_id}/reprocess"
    assert post.call_args.kwargs["headers"] == {"Authorization": "Bearer rag-key"}


def test_notify_rag_agent_transport_failure(client, auth_headers, user_id, document, monkeypatch):
    monkeypatch.setattr(settings, "RAG_AGENT_URL", "https://rag.example.com")
    monkeypatch.setattr(document_funcs.httpx, "post", mock.Mock(side_effect=httpx.ConnectError("refused")))

    response = client.post(
        "/notify-rag-agent", json={"user_id": str(user_id), "document_id": str(document)}, headers=auth_headers
    )

    assert response.status_code == 502


def test_notify_rag_agent_for_other_user(client, auth_headers, document):
    response = client.post(
        "/notify-rag-agent", json={"user_id": str(uuid.uuid4()), "document_id": str(document)}, headers=auth_headers
    )

    assert response.status_code == 403
