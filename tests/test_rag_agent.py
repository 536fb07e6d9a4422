import json
import uuid
from unittest import mock

import pytest
from botocore.exceptions import ClientError
from sqlalchemy import select

from conftest import make_token
from varating.database.entities.conditions import ConditionUpdate, DisabilityEstimate, UserCondition
from varating.database.entities.documents import Document, DocumentChunk
from varating.processing import rag_agent
from varating.processing.rag_agent import batch_chunks, handle_work_message, process_document

AGENT_ANSWER = json.dumps(
    {
        "conditions": [
            {"name": "Tinnitus", "rating": "10%", "severity": "mild", "excerpt": "ringing", "keywords": ["ear"]},
            {"name": "Bilateral tinnitus", "rating": 10, "excerpt": "constant", "keywords": ["noise"]},
            {"name": "Lower back strain", "rating": 20, "severity": "moderate", "excerpt": "back pain"},
        ]
    }
)


@pytest.fixture
def document(db, user_id):
    row = Document(user_id=user_id, file_name="scan.pdf", file_url="https://bucket/scan.pdf", processing_status="completed")
    db.add(row)
    db.flush()
    for index, page in enumerate([1, 1, 2, 3]):
        db.add(DocumentChunk(document_id=row.id, chunk_index=index, page_number=page, content=f"text {index}"))
    db.commit()
    return row.id


@pytest.fixture
def agent(monkeypatch):
    answers = mock.Mock(return_value={"text": AGENT_ANSWER, "request_id": "r1"})
    monkeypatch.setattr(rag_agent, "invoke_agent", answers)
    monkeypatch.setattr(
        rag_agent,
        "search_conditions",
        lambda name, body_system, keywords: {
            "sections": [{"identifier": "4.87", "label": "Ear", "description": "", "content": "Recurrent tinnitus"}]
        },
    )
    return answers


def test_batch_chunks():
    chunks = [{"page_number": n, "content": f"c{n}"} for n in range(1, 5)]
    batches = batch_chunks(chunks, batch_size=3)
    assert batches == ["Page 1: c1\n\nPage 2: c2\n\nPage 3: c3", "Page 4: c4"]


def test_process_document_stores_unique_conditions(agent, db, user_id, document):
    result = process_document(user_id, document)

    assert result["res"]
    detail = result["detail"]
    assert detail["message"] == "Document processed successfully"
    assert detail["uniqueConditionsFound"] == 2
    # four chunks in batches of three
    assert agent.call_count == 2
    assert agent.call_args_list[0].args[0] == f"{user_id}-{document}-0"

    names = {c.name: c for c in db.scalars(select(UserCondition))}
    assert set(names) == {"Tinnitus", "Lower back strain"}
    assert names["Tinnitus"].rating == 10
    assert names["Tinnitus"].cfr_link.endswith("section-4.87")
    assert names["Lower back strain"].body_system == "musculoskeletal"
    estimates = db.scalars(select(DisabilityEstimate)).all()
    assert {e.combined_rating for e in estimates} == {20}
    assert db.scalars(select(ConditionUpdate)).one().notification_sent is False
    assert db.get(Document, document).rag_status == "completed"


def test_failing_batch_is_skipped(agent, user_id, document):
    error = ClientError({"Error": {"Code": "ThrottlingException", "Message": "slow"}}, "InvokeAgent")
    agent.side_effect = [error, {"text": AGENT_ANSWER, "request_id": "r2"}]
    result = process_document(user_id, document)
    assert result["detail"]["uniqueConditionsFound"] == 2


def test_unknown_document(agent, user_id):
    result = process_document(user_id, uuid.uuid4())
    assert result == {"res": False, "detail": "Document not found", "status_code": 404}


def test_document_without_chunks(agent, db, user_id):
    row = Document(user_id=user_id, file_name="empty.pdf")
    db.add(row)
    db.commit()
    assert process_document(user_id, row.id)["detail"] == {"message": "No content to process."}
    agent.assert_not_called()


def test_work_message_validation():
    response = handle_work_message(json.dumps({"user_id": "x"}))
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "Invalid work message format"


def test_work_message_processes_document(agent, user_id, document):
    body = json.dumps({"user_id": str(user_id), "document_id": str(document), "source": "document_processor"})
    response = handle_work_message(body)
    payload = json.loads(response["body"])
    assert response["statusCode"] == 200
    assert payload["success"] is True
    assert payload["data"]["uniqueConditionsFound"] == 2


def test_agent_action_envelope(agent):
    event = {"function": "searchCFR", "actionGroup": "ratingGroup", "parameters": [{"name": "searchQuery", "value": "tinnitus"}]}
    response = rag_agent.handle_agent_action(event)
    assert response["response"]["actionGroup"] == "ratingGroup"
    assert "38 CFR § 4.87" in response["response"]["functionResponse"]["responseBody"]["TEXT"]["body"]


def test_routes_require_matching_user(client, agent, user_id, document):
    other = {"Authorization": f"Bearer {make_token(uuid.uuid4())}"}
    response = client.post(f"/rag-agent/{user_id}/reprocess", json={"document_id": str(document)}, headers=other)
    assert response.status_code == 403


def test_reprocess_with_api_key(client, agent, user_id, document):
    response = client.post(
        f"/rag-agent/{user_id}/reprocess",
        json={"document_id": str(document)},
        headers={"Authorization": "Bearer rag-key"},
    )
    assert response.status_code == 200
    assert response.json()["uniqueConditionsFound"] == 2


def test_list_and_detail_routes(client, agent, user_id, document, auth_headers):
    process_document(user_id, document)
    listed = client.get(f"/rag-agent/{user_id}", headers=auth_headers)
    assert listed.status_code == 200
    assert len(listed.json()) == 2

    condition_id = listed.json()[0]["id"]
    recommendation = {"summary": "Rated under 6260", "recommendedPercentage": 10, "supportingFactors": ["Recurrent"]}
    with mock.patch.object(rag_agent, "generate_recommendation", return_value=recommendation):
        detail = client.get(f"/rag-agent/{user_id}/conditions/{condition_id}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["recommendedPercentage"] == 10

    missing = client.get(f"/rag-agent/{user_id}/conditions/{uuid.uuid4()}", headers=auth_headers)
    assert missing.status_code == 404
