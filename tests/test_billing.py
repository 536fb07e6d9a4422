from unittest import mock

import pytest
import stripe

from varating.database.daos.stripe_customer_dao import StripeCustomerDao
from varating.database.entities.billing import StripeCustomer
from varating.integrations import stripe_funcs

CHECKOUT = {"id": "cs_123", "url": "https://checkout.stripe.com/c/cs_123"}


@pytest.fixture
def fake_stripe(monkeypatch):
    fakes = mock.Mock()
    fakes.find_or_create_price.return_value = "price_tokens_100"
    fakes.create_customer.return_value = "cus_new"
    fakes.create_checkout_session.return_value = CHECKOUT
    fakes.create_portal_session.return_value = "https://billing.stripe.com/p/session"
    for name in (
        "find_or_create_price",
        "create_customer",
        "delete_customer",
        "create_checkout_session",
        "create_portal_session",
        "fetch_latest_subscription",
        "list_invoices",
    ):
        monkeypatch.setattr(stripe_funcs, name, getattr(fakes, name))
    return fakes


@pytest.fixture
def customer(db, user_id):
    StripeCustomerDao().upsertCustomer(db, user_id=user_id, customer_id="cus_existing")
    db.commit()
    return "cus_existing"


def test_token_pack_checkout(client, db, auth_headers, user_id, profile, fake_stripe):
    response = client.post(
        "/create-checkout-session",
        json={"success_url": "https://app/ok", "cancel_url": "https://app/cancel", "product_type": "tokens-100"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"url": CHECKOUT["url"]}
    fake_stripe.create_customer.assert_called_once_with(email="vet@example.com", metadata={"user_id": str(user_id)})
    params = fake_stripe.create_checkout_session.call_args.kwargs
    assert params["mode"] == "payment"
    assert params["customer"] == "cus_new"
    assert params["line_items"] == [{"price": "price_tokens_100", "quantity": 1}]
    assert params["metadata"] == {"user_id": str(user_id), "product_type": "tokens-100", "tokens": "100"}
    assert params["payment_intent_data"] == {"metadata": params["metadata"]}
    assert db.query(StripeCustomer).filter(StripeCustomer.user_id == user_id).one().customer_id == "cus_new"


def test_checkout_reuses_customer(client, auth_headers, profile, customer, fake_stripe):
    client.post(
        "/create-checkout-session",
        json={"success_url": "https://app/ok", "cancel_url": "https://app/cancel", "product_type": "starter"},
        headers=auth_headers,
    )

    fake_stripe.create_customer.assert_not_called()
    assert fake_stripe.create_checkout_session.call_args.kwargs["customer"] == customer


def test_checkout_without_price(client, auth_headers, profile, fake_stripe):
    response = client.post(
        "/create-checkout-session",
        json={"success_url": "https://app/ok", "cancel_url": "https://app/cancel", "product_type": "mystery"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Price ID not found for product: mystery"


def test_checkout_without_profile(client, auth_headers, fake_stripe):
    response = client.post(
        "/create-checkout-session",
        json={"success_url": "https://app/ok", "cancel_url": "https://app/cancel", "product_type": "tokens-100"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User profile not found"


def test_checkout_stripe_error(client, auth_headers, profile, fake_stripe):
    fake_stripe.find_or_create_price.side_effect = stripe.APIConnectionError("network down")

    response = client.post(
        "/create-checkout-session",
        json={"success_url": "https://app/ok", "cancel_url": "https://app/cancel", "product_type": "tokens-100"},
        headers=auth_headers,
    )

    assert response.status_code == 400


@pytest.mark.parametrize(
    "body, detail",
    [
        ({"success_url": "a", "cancel_url": "b", "mode": "payment"}, "Missing required parameter price_id"),
        ({"price_id": 5, "success_url": "a", "cancel_url": "b", "mode": "payment"}, "Expected parameter price_id to be a string got 5"),
        ({"price_id": "p", "success_url": "a", "cancel_url": "b", "mode": "gift"}, "Expected parameter mode to be one of payment, subscription"),
    ],
)
def test_stripe_checkout_validation(client, auth_headers, fake_stripe, body, detail):
    response = client.post("/stripe-checkout", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_stripe_checkout_subscription(client, auth_headers, user_id, fake_stripe):
    body = {"price_id": "price_sub", "success_url": "https://app/ok", "cancel_url": "https://app/no", "mode": "subscription"}

    response = client.post("/stripe-checkout", json=body, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_123", "url": CHECKOUT["url"]}
    fake_stripe.create_customer.assert_called_once_with(email="vet@example.com", metadata={"userId": str(user_id)})


def test_portal_session_uses_origin(client, auth_headers, customer, fake_stripe):
    response = client.post(
        "/create-customer-portal-session", headers={**auth_headers, "Origin": "https://app.example.com/"}
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://billing.stripe.com/p/session"}
    fake_stripe.create_portal_session.assert_called_once_with(
        customer, return_url="https://app.example.com/profile"
    )


def test_portal_session_without_customer(client, auth_headers, fake_stripe):
    response = client.post("/create-customer-portal-session", headers=auth_headers)

    assert response.status_code == 404


def test_billing_info(client, auth_headers, customer, fake_stripe):
    fake_stripe.fetch_latest_subscription.return_value = {"id": "sub_1", "status": "active"}
    fake_stripe.list_invoices.return_value = [{"id": "in_1"}]

    response = client.get("/get-stripe-billing-info", headers=auth_headers)

    assert response.json() == {"subscription": {"id": "sub_1", "status": "active"}, "invoices": [{"id": "in_1"}]}
    fake_stripe.list_invoices.assert_called_once_with(customer, limit=20)


def test_billing_info_without_customer(client, auth_headers, fake_stripe):
    response = client.get("/get-stripe-billing-info", headers=auth_headers)

    assert response.json() == {"subscription": None, "invoices": []}
