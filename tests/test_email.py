import uuid
from unittest import mock

import httpx
import pytest

from varating.database.config.config import settings
from varating.database.entities.conditions import ConditionUpdate
from varating.database.entities.profile import Profile
from varating.integrations import email_funcs


@pytest.fixture
def pica(monkeypatch):
    send = mock.Mock(return_value={"id": "email_1"})
    monkeypatch.setattr(email_funcs, "send_pica_email", send)
    return send


def test_send_email_forwards_payload(client, auth_headers, pica):
    payload = {"from": "a@example.com", "to": ["b@example.com"], "subject": "Hi", "html": "<p>x</p>"}
    payload["tags"] = [{"name": "trigger", "value": "manual"}]

    response = client.post("/send-email", json=payload, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"id": "email_1"}
    pica.assert_called_once_with(payload)


def test_send_email_names_missing_fields(client, auth_headers, pica):
    response = client.post("/send-email", json={"from": "a@example.com", "subject": "Hi"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields: to, tags"
    pica.assert_not_called()


def test_send_email_provider_failure(client, auth_headers, pica):
    pica.side_effect = email_funcs.EmailDeliveryError("Failed to send email: quota")
    payload = {"from": "a@example.com", "to": ["b@example.com"], "subject": "Hi", "tags": [{"name": "t", "value": "v"}]}

    response = client.post("/send-email", json=payload, headers=auth_headers)

    assert response.status_code == 500


def test_contact_email(client, pica):
    response = client.post(
        "/send-contact-email",
        json={"name": "Jo", "email": "jo@example.com", "subject": "Question", "message": "Line one\n<b>two</b>"},
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Contact email sent successfully"}
    payload = pica.call_args.args[0]
    assert payload["to"] == [settings.CONTACT_EMAIL]
    assert payload["reply_to"] == "jo@example.com"
    assert payload["subject"] == "[Contact] Question"
    assert "Line one<br/>&lt;b&gt;two&lt;/b&gt;" in payload["html"]


def test_contact_email_requires_all_fields(client, pica):
    response = client.post("/send-contact-email", json={"name": "Jo", "email": "jo@example.com"})

    assert response.status_code == 400
    pica.assert_not_called()


def test_pica_requires_keys(monkeypatch):
    monkeypatch.setattr(settings, "PICA_SECRET_KEY", None)

    with pytest.raises(email_funcs.EmailDeliveryError, match="Missing Pica API keys"):
        email_funcs.send_pica_email({"to": ["a@example.com"]})


def test_resend_rejection(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_123")
    monkeypatch.setattr(email_funcs.httpx, "post", mock.Mock(return_value=httpx.Response(422, text="bad sender")))

    with pytest.raises(email_funcs.EmailDeliveryError, match="bad sender"):
        email_funcs.send_resend_email("a@example.com", "Subject", "<p>hi</p>")


def test_notify_condition_updates(client, db, profile, user_id, service_headers, pica):
    quiet = Profile(id=uuid.uuid4(), email="quiet@example.com", full_name="Quiet", email_notifications_enabled=False)
    db.add(quiet)
    db.add(ConditionUpdate(user_id=user_id, document_id=None, conditions=[{"name": "Tinnitus"}]))
    db.add(ConditionUpdate(user_id=quiet.id, document_id=None, conditions=[{"name": "Tinnitus"}]))
    db.commit()

    first = client.post("/notify-condition-updates", headers=service_headers)
    second = client.post("/notify-condition-updates", headers=service_headers)

    assert first.json() == {"processed": 1, "notified": 1, "failed": 0}
    assert second.json() == {"processed": 1, "notified": 0, "failed": 0}
    payload = pica.call_args.args[0]
    assert payload["to"] == ["vet@example.com"]
    assert "Jane Vet" in payload["html"]
    db.expire_all()
    sent = db.query(ConditionUpdate).filter(ConditionUpdate.user_id == user_id).one()
    assert sent.notification_sent is True


def test_notify_condition_updates_continues_after_failure(client, db, profile, user_id, service_headers, pica):
    db.add(ConditionUpdate(user_id=user_id, document_id=None, conditions=[{"name": "Tinnitus"}]))
    db.commit()
    pica.side_effect = email_funcs.EmailDeliveryError("down")

    response = client.post("/notify-condition-updates", headers=service_headers)

    assert response.json() == {"processed": 1, "notified": 0, "failed": 1}


def test_notify_condition_updates_requires_service_role(client, auth_headers):
    assert client.post("/notify-condition-updates", headers=auth_headers).status_code == 403
