import uuid
from unittest import mock

import httpx
import pytest
import stripe
from sqlalchemy import select

from conftest import make_token
from varating.api.utils import verify_token
from varating.database.core import account_funcs
from varating.database.core.token_funcs import add_user_tokens
from varating.database.daos.stripe_customer_dao import StripeCustomerDao
from varating.database.entities.admin_activity import AdminActivityLog
from varating.database.entities.billing import UserTokens
from varating.database.entities.profile import Profile
from varating.database.entities.upload_session import UploadSession
from varating.integrations import stripe_funcs, supabase_admin


@pytest.fixture
def gotrue(monkeypatch):
    fakes = mock.Mock()
    monkeypatch.setattr(supabase_admin, "create_user", fakes.create_user)
    monkeypatch.setattr(supabase_admin, "list_users", fakes.list_users)
    monkeypatch.setattr(supabase_admin, "delete_user", fakes.delete_user)
    return fakes


@pytest.fixture
def admin(db):
    row = Profile(id=uuid.uuid4(), email="admin@example.com", full_name="Admin", role="admin", admin_level="super_admin")
    db.add(row)
    db.commit()
    return {"id": row.id, "headers": {"Authorization": f"Bearer {make_token(row.id, 'admin@example.com')}"}}


def test_register_creates_profile(client, db, gotrue):
    new_id = uuid.uuid4()
    gotrue.create_user.return_value = {"id": str(new_id), "email": "new@example.com"}

    response = client.post(
        "/register", json={"email": "new@example.com", "password": "s3cret-pass", "fullName": "New Vet"}
    )

    assert response.status_code == 200
    assert response.json() == {"user": {"id": str(new_id), "email": "new@example.com"}}
    row = db.get(Profile, new_id)
    assert (row.email, row.full_name, row.role) == ("new@example.com", "New Vet", "veteran")


@pytest.mark.parametrize(
    "body, detail",
    [
        ({"email": "a@example.com", "password": "long-enough"}, "Missing required fields: email, password, fullName"),
        ({"email": "a@example.com", "password": "short", "fullName": "A"}, "Password must be at least 8 characters"),
    ],
)
def test_register_validation(client, gotrue, body, detail):
    response = client.post("/register", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == detail
    gotrue.create_user.assert_not_called()


def test_register_relays_auth_rejection(client, gotrue):
    gotrue.create_user.side_effect = supabase_admin.SupabaseAdminError("User already registered")

    response = client.post("/register", json={"email": "a@example.com", "password": "long-enough", "fullName": "A"})

    assert response.status_code == 400
    assert response.json()["detail"] == "User already registered"


def test_create_user_error_message(monkeypatch):
    rejected = httpx.Response(422, json={"msg": "Password should be stronger"})
    monkeypatch.setattr(supabase_admin.httpx, "post", mock.Mock(return_value=rejected))

    with pytest.raises(supabase_admin.SupabaseAdminError, match="Password should be stronger"):
        supabase_admin.create_user("a@example.com", "password1", "A")


def test_delete_account_removes_everything(client, db, user_id, auth_headers, profile, gotrue, monkeypatch):
    add_user_tokens(user_id=user_id, tokens=5)
    client.post("/upload-sessions", json={"files": []}, headers=auth_headers)
    StripeCustomerDao().upsertCustomer(db, user_id=user_id, customer_id="cus_1")
    db.commit()
    subscriptions = [{"id": "sub_1", "status": "active"}, {"id": "sub_0", "status": "canceled"}]
    monkeypatch.setattr(stripe_funcs, "list_subscriptions", mock.Mock(return_value=subscriptions))
    cancel = mock.Mock()
    monkeypatch.setattr(stripe_funcs, "cancel_subscription", cancel)
    monkeypatch.setattr(stripe_funcs, "delete_customer", mock.Mock())
    delete_prefix = mock.Mock()
    monkeypatch.setattr(account_funcs, "delete_prefix", delete_prefix)

    response = client.delete("/delete-account", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["details"]["customerId"] == "cus_1"
    cancel.assert_called_once_with("sub_1")
    delete_prefix.assert_called_once_with(f"{user_id}/")
    gotrue.delete_user.assert_called_once_with(user_id)
    db.expire_all()
    assert db.get(Profile, user_id) is None
    assert db.get(UserTokens, user_id) is None
    assert db.scalars(select(UploadSession)).all() == []


def test_delete_account_tolerates_missing_stripe_customer(client, db, user_id, auth_headers, gotrue, monkeypatch):
    StripeCustomerDao().upsertCustomer(db, user_id=user_id, customer_id="cus_gone")
    db.commit()
    error = stripe.InvalidRequestError("No such customer: 'cus_gone'", "id", code="resource_missing")
    monkeypatch.setattr(stripe_funcs, "list_subscriptions", mock.Mock(side_effect=error))
    monkeypatch.setattr(account_funcs, "delete_prefix", mock.Mock())

    response = client.delete("/delete-account", headers=auth_headers)

    assert response.status_code == 200


def test_delete_account_auth_failure(client, user_id, auth_headers, gotrue, monkeypatch):
    monkeypatch.setattr(account_funcs, "delete_prefix", mock.Mock())
    gotrue.delete_user.side_effect = httpx.HTTPStatusError(
        "boom", request=httpx.Request("DELETE", "https://x"), response=httpx.Response(500)
    )

    response = client.delete("/delete-account", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["detail"].startswith("Failed to delete account")


def test_delete_account_other_methods(client, auth_headers):
    assert client.get("/delete-account", headers=auth_headers).status_code == 405
    assert client.post("/delete-account", headers=auth_headers).status_code == 405


def test_reconcile_creates_missing_profiles(client, db, profile, user_id, service_headers, gotrue):
    missing = uuid.uuid4()
    gotrue.list_users.return_value = [
        {"id": str(user_id), "email": "vet@example.com"},
        {"id": str(missing), "email": "late@example.com", "user_metadata": {"full_name": "Late Vet"}},
    ]

    first = client.post("/reconcile-users", headers=service_headers)

    assert first.json() == {"message": "Successfully created 1 missing profiles.", "created": 1}
    assert db.get(Profile, missing).full_name == "Late Vet"
    second = client.post("/reconcile-users", headers=service_headers)
    assert second.json() == {"message": "All users are reconciled.", "created": 0}


def test_reconcile_requires_service_role(client, auth_headers, gotrue):
    assert client.post("/reconcile-users", headers=auth_headers).status_code == 403
    service_jwt = make_token(uuid.uuid4(), role="service_role")
    gotrue.list_users.return_value = []
    assert client.post("/reconcile-users", headers={"Authorization": f"Bearer {service_jwt}"}).status_code == 200


def test_impersonate_issues_token_and_logs(client, db, admin, profile, user_id):
    response = client.post("/impersonate-user", json={"user_id": str(user_id)}, headers=admin["headers"])

    assert response.status_code == 200
    session = response.json()["session"]
    assert session["user"] == {"id": str(user_id), "email": "vet@example.com", "full_name": "Jane Vet"}
    claims = verify_token(session["access_token"])
    assert claims["sub"] == str(user_id)
    assert claims["impersonated_by"] == str(admin["id"])
    entry = db.scalars(select(AdminActivityLog)).one()
    assert (entry.admin_id, entry.action, entry.target_user_id) == (admin["id"], "impersonate_user", user_id)


def test_impersonate_requires_super_admin(client, auth_headers, profile, user_id):
    response = client.post("/impersonate-user", json={"user_id": str(user_id)}, headers=auth_headers)

    assert response.status_code == 403


def test_impersonate_unknown_user(client, admin):
    response = client.post("/impersonate-user", json={"user_id": str(uuid.uuid4())}, headers=admin["headers"])

    assert response.status_code == 404
