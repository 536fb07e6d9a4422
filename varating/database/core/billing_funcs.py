"""
Service-layer operations for Stripe billing and payment reconciliation.

Two kinds of functions live here:

- Orchestrators (``create_checkout_session``, ``stripe_checkout``,
  ``create_portal_session``, ``get_billing_info``) that talk to Stripe and
  call small transactional helpers. They are not transactional themselves so
  that a Stripe call never holds a database transaction open, and so that a
  failed mapping insert can be compensated by deleting the Stripe customer.
- ``process_stripe_event`` and ``sync_customer_from_stripe``, which are
  `@transactional`. The event id is recorded in `processed_webhook_events`
  in the same transaction as the event's side effects, so a redelivered event
  is acknowledged without being applied twice.

Orchestrators return ``{'res': bool, 'detail': ..., 'status_code': int}``
dicts on expected failures; the router maps them to HTTP errors.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import stripe
from sqlalchemy.orm import Session

from varating.database.core.token_funcs import add_user_tokens
from varating.database.daos.payment_dao import PaymentDao
from varating.database.daos.profile_dao import ProfileDao
from varating.database.daos.stripe_customer_dao import StripeCustomerDao
from varating.database.daos.stripe_subscription_dao import StripeOrderDao, StripeSubscriptionDao
from varating.database.daos.token_dao import TokenDao
from varating.database.daos.webhook_event_dao import WebhookEventDao
from varating.database.helpers.transactionManagement import transactional
from varating.integrations import stripe_funcs

logger = logging.getLogger("uvicorn")

SUBSCRIPTION_SYNC_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.paid",
)
"""Events that trigger a full subscription sync for their customer."""

CHECKOUT_PARAMETERS = {
    "price_id": "string",
    "success_url": "string",
    "cancel_url": "string",
    "mode": {"values": ["payment", "subscription"]},
}
"""Required parameters of ``stripe_checkout`` and their expected shape."""


# ---------------------------------------------------------------------------
# Small transactional helpers
# ---------------------------------------------------------------------------


@transactional
def get_active_customer_id(session: Session, user_id: UUID) -> Optional[str]:
    """Stripe customer id of the user's non-deleted mapping, or None."""
    customer = StripeCustomerDao().fetchActiveCustomerByUserId(session, user_id)
    return customer.customer_id if customer else None


@transactional
def store_customer_mapping(session: Session, user_id: UUID, customer_id: str) -> None:
    StripeCustomerDao().upsertCustomer(session, user_id=user_id, customer_id=customer_id)


@transactional
def ensure_subscription_row(session: Session, customer_id: str) -> None:
    StripeSubscriptionDao().ensureSubscriptionRow(session, customer_id)


@transactional
def get_profile_email(session: Session, user_id: UUID) -> Optional[str]:
    """Email of the user's profile, or None when the profile does not exist."""
    profile = ProfileDao().fetchProfileById(session, user_id)
    return profile.email if profile else None


# ---------------------------------------------------------------------------
# Checkout / portal / billing info
# ---------------------------------------------------------------------------


def create_checkout_session(
    user_id: UUID,
    mode: Optional[str],
    success_url: str,
    cancel_url: str,
    product_type: Optional[str] = None,
) -> dict:
    """
    Create a Stripe Checkout Session for a token pack or a legacy price.

    Parameters
    ----------
    user_id : UUID
        Authenticated user.
    mode : str | None
        ``"subscription"`` or anything else (treated as ``"payment"``).
    success_url, cancel_url : str
        Redirect targets after checkout.
    product_type : str, optional
        Key of ``PRODUCT_CONFIG``. Unknown or absent keys fall back to the
        configured legacy prices.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {'url': str}}``
        - On failure: ``{'res': False, 'detail': str, 'status_code': 400}``
    """
    checkout_mode = "subscription" if mode == "subscription" else "payment"
    config = stripe_funcs.PRODUCT_CONFIG.get(product_type) if product_type else None

    try:
        if config:
            price_id = stripe_funcs.find_or_create_price(product_type)
        else:
            price_id = stripe_funcs.legacy_price_id(mode)
        if not price_id:
            return {"res": False, "detail": f"Price ID not found for product: {product_type}", "status_code": 400}

        email = get_profile_email(user_id=user_id)
        if email is None:
            return {"res": False, "detail": "User profile not found", "status_code": 400}

        customer_id = get_active_customer_id(user_id=user_id)
        if customer_id is None:
            customer_id = stripe_funcs.create_customer(email=email, metadata={"user_id": str(user_id)})
            store_customer_mapping(user_id=user_id, customer_id=customer_id)
            logger.info(f"Created Stripe customer {customer_id} for user {user_id}")

        metadata = {"user_id": str(user_id)}
        if config:
            metadata["product_type"] = product_type
            metadata["tokens"] = str(config["tokens"])

        params = {
            "customer": customer_id,
            "mode": checkout_mode,
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if checkout_mode == "subscription":
            params["subscription_data"] = {"metadata": metadata}
        else:
            params["payment_intent_data"] = {"metadata": metadata}

        checkout = stripe_funcs.create_checkout_session(**params)
        return {"res": True, "detail": {"url": checkout["url"]}}
    except stripe.StripeError as e:
        logger.error(f"Stripe error while creating checkout session for {user_id}: {e}")
        return {"res": False, "detail": e.user_message or str(e), "status_code": 400}


def validate_checkout_parameters(values: dict) -> Optional[str]:
    """
    Validate the body of ``stripe_checkout``.

    Returns
    -------
    str | None
        The first validation error, or None when the body is valid.
    """
    for parameter, expected in CHECKOUT_PARAMETERS.items():
        value = values.get(parameter)
        if not value:
            return f"Missing required parameter {parameter}"
        if expected == "string":
            if not isinstance(value, str):
                return f"Expected parameter {parameter} to be a string got {json.dumps(value)}"
        elif value not in expected["values"]:
            return f"Expected parameter {parameter} to be one of {', '.join(expected['values'])}"
    return None


def stripe_checkout(user_id: UUID, email: Optional[str], values: dict) -> dict:
    """
    Create a checkout session for an explicit Stripe price.

    Parameters
    ----------
    user_id : UUID
        Authenticated user.
    email : str | None
        Email of the caller, used when a Stripe customer must be created.
    values : dict
        Raw request body: ``price_id``, ``success_url``, ``cancel_url``,
        ``mode``.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {'sessionId': str, 'url': str}}``
        - On failure: ``{'res': False, 'detail': str, 'status_code': int}``
    """
    error = validate_checkout_parameters(values)
    if error:
        return {"res": False, "detail": error, "status_code": 400}

    try:
        customer_id = get_active_customer_id(user_id=user_id)
        if customer_id is None:
            try:
                customer_id = stripe_funcs.create_customer(email=email, metadata={"userId": str(user_id)})
            except stripe.StripeError as e:
                logger.error(f"Failed to create Stripe customer for {user_id}: {e}")
                return {"res": False, "detail": "Failed to create Stripe customer", "status_code": 500}
            try:
                store_customer_mapping(user_id=user_id, customer_id=customer_id)
            except Exception as e:
                logger.error(f"Failed to save customer mapping for {user_id}: {e}")
                try:
                    stripe_funcs.delete_customer(customer_id)
                except stripe.StripeError as delete_error:
                    logger.error(f"Failed to delete Stripe customer {customer_id} after mapping error: {delete_error}")
                return {"res": False, "detail": "Failed to create customer mapping", "status_code": 500}
            logger.info(f"Created Stripe customer {customer_id} for user {user_id}")

        if values["mode"] == "subscription":
            ensure_subscription_row(customer_id=customer_id)

        checkout = stripe_funcs.create_checkout_session(
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": values["price_id"], "quantity": 1}],
            mode=values["mode"],
            success_url=values["success_url"],
            cancel_url=values["cancel_url"],
            metadata={"user_id": str(user_id)},
        )
        logger.info(f"Created checkout session {checkout['id']} for customer {customer_id}")
        return {"res": True, "detail": {"sessionId": checkout["id"], "url": checkout["url"]}}
    except stripe.StripeError as e:
        logger.error(f"Checkout error for {user_id}: {e}")
        return {"res": False, "detail": e.user_message or str(e), "status_code": 500}


def create_portal_session(user_id: UUID, origin: str) -> dict:
    """
    Create a Stripe billing-portal session returning to ``<origin>/profile``.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {'url': str}}`` or a 404 failure when the
        user has no Stripe customer.
    """
    customer_id = get_active_customer_id(user_id=user_id)
    if customer_id is None:
        return {"res": False, "detail": "Stripe customer not found for user", "status_code": 404}
    try:
        url = stripe_funcs.create_portal_session(customer_id, return_url=f"{origin.rstrip('/')}/profile")
    except stripe.StripeError as e:
        logger.error(f"Failed to create portal session for {user_id}: {e}")
        return {"res": False, "detail": e.user_message or str(e), "status_code": 500}
    return {"res": True, "detail": {"url": url}}


def get_billing_info(user_id: UUID) -> dict:
    """
    Latest subscription and recent invoices of the user.

    Returns
    -------
    dict
        ``{'subscription': dict | None, 'invoices': list}``; empty when the user
        never became a Stripe customer.
    """
    customer_id = get_active_customer_id(user_id=user_id)
    if customer_id is None:
        return {"subscription": None, "invoices": []}
    return {
        "subscription": stripe_funcs.fetch_latest_subscription(customer_id),
        "invoices": stripe_funcs.list_invoices(customer_id, limit=20),
    }


# ---------------------------------------------------------------------------
# Webhook processing
# ---------------------------------------------------------------------------


def _period_bounds(subscription: dict) -> tuple:
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    items = (subscription.get("items") or {}).get("data") or []
    if items:
        start = start or items[0].get("current_period_start")
        end = end or items[0].get("current_period_end")
    return start, end


@transactional
def sync_customer_from_stripe(session: Session, customer_id: str) -> dict:
    """
    Mirror the latest Stripe subscription of a customer into the database.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    customer_id : str
        Stripe customer id.

    Returns
    -------
    dict
        ``{'res': True, 'detail': <status>}``.

    Notes
    -----
    - No subscription: the row is upserted with status ``not_started``.
    - The legacy `payments` summary is updated only when the mapped user
      already has a payments row.
    """
    subscription_dao = StripeSubscriptionDao()
    subscription = stripe_funcs.fetch_latest_subscription(customer_id)
    if subscription is None:
        logger.info(f"No subscriptions found for customer {customer_id}")
        subscription_dao.upsertSubscription(session, customer_id, status="not_started")
        return {"res": True, "detail": "not_started"}

    start, end = _period_bounds(subscription)
    items = (subscription.get("items") or {}).get("data") or []
    fields = {
        "subscription_id": subscription.get("id"),
        "price_id": ((items[0].get("price") or {}).get("id")) if items else None,
        "current_period_start": start,
        "current_period_end": end,
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        "status": subscription.get("status"),
    }
    payment_method = subscription.get("default_payment_method")
    if isinstance(payment_method, dict):
        card = payment_method.get("card") or {}
        fields["payment_method_brand"] = card.get("brand")
        fields["payment_method_last4"] = card.get("last4")
    subscription_dao.upsertSubscription(session, customer_id, **fields)

    mapping = StripeCustomerDao().fetchActiveCustomerByCustomerId(session, customer_id)
    if mapping is not None:
        end_date = datetime.fromtimestamp(end, tz=timezone.utc) if end else None
        PaymentDao().updateSubscriptionSummary(
            session, mapping.user_id, subscription_status=fields["status"], subscription_end_date=end_date
        )
    logger.info(f"Synced subscription for customer {customer_id}: {fields['status']}")
    return {"res": True, "detail": fields["status"]}


def _metadata_user_id(metadata: dict) -> Optional[UUID]:
    raw = (metadata or {}).get("user_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        logger.warning(f"Ignoring malformed metadata.user_id {raw!r}")
        return None


def _handle_one_time_payment(session: Session, checkout: dict, customer_id: str) -> Optional[UUID]:
    metadata = checkout.get("metadata") or {}
    customer_dao = StripeCustomerDao()

    metadata_user = _metadata_user_id(metadata)
    if metadata_user is not None:
        customer_dao.upsertCustomer(session, user_id=metadata_user, customer_id=customer_id)

    mapping = customer_dao.fetchActiveCustomerByCustomerId(session, customer_id)
    if mapping is None:
        logger.error(f"No user found for Stripe customer {customer_id}; order not recorded")
        return None
    user_id = mapping.user_id

    StripeOrderDao().createOrder(
        session,
        checkout_session_id=checkout.get("id"),
        payment_intent_id=checkout.get("payment_intent"),
        customer_id=customer_id,
        amount_subtotal=checkout.get("amount_subtotal"),
        amount_total=checkout.get("amount_total"),
        currency=checkout.get("currency"),
        payment_status=checkout.get("payment_status"),
    )

    product_type = metadata.get("product_type")
    tokens = metadata.get("tokens")
    if product_type and tokens:
        tokens = int(tokens)
        TokenDao().createPurchase(
            session,
            user_id=user_id,
            payment_intent_id=checkout.get("payment_intent"),
            product_type=product_type,
            tokens_purchased=tokens,
            amount_paid=checkout.get("amount_total"),
        )
        balance = add_user_tokens(user_id=user_id, tokens=tokens)
        logger.info(f"Token purchase {product_type} for {user_id}: +{tokens}, balance {balance}")
    else:
        credits = PaymentDao().incrementUploadCredits(session, user_id, stripe_customer_id=customer_id)
        logger.info(f"Legacy upload credit for {user_id}; credits now {credits}")
    return user_id


@transactional
def process_stripe_event(session: Session, event: dict) -> dict:
    """
    Apply a verified Stripe event exactly once.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    event : dict
        Verified event (``id``, ``type``, ``data.object``).

    Returns
    -------
    dict
        ``{'received': True}``, plus ``'duplicate': True`` when the event was
        already processed.

    Raises
    ------
    sqlalchemy.exc.IntegrityError
        When a concurrent delivery of the same event committed first, or when
        a side effect violates a unique key. The caller checks
        ``is_event_processed`` to tell them apart.
    Exception
        Any other failure rolls the whole event back so Stripe retries it.
    """
    event_dao = WebhookEventDao()
    event_id = event.get("id")
    event_type = event.get("type")

    if event_dao.fetchEvent(session, event_id) is not None:
        logger.info(f"Stripe event {event_id} already processed")
        return {"received": True, "duplicate": True}

    record = event_dao.createEvent(session, event_id=event_id, event_type=event_type)

    data = (event.get("data") or {}).get("object") or {}
    if not data or event_type == "payment_intent.succeeded" or "customer" not in data:
        return {"received": True}

    customer_id = data.get("customer")
    if not isinstance(customer_id, str):
        logger.error(f"Received event {event_id} with a non-string customer id")
        return {"received": True}

    if event_type == "checkout.session.completed":
        mode = data.get("mode")
        if mode == "subscription":
            metadata_user = _metadata_user_id(data.get("metadata"))
            if metadata_user is not None:
                StripeCustomerDao().upsertCustomer(session, user_id=metadata_user, customer_id=customer_id)
                record.user_id = metadata_user
            sync_customer_from_stripe(customer_id=customer_id)
        elif mode == "payment" and data.get("payment_status") == "paid":
            record.user_id = _handle_one_time_payment(session, data, customer_id)
    elif event_type in SUBSCRIPTION_SYNC_EVENTS:
        sync_customer_from_stripe(customer_id=customer_id)

    session.flush()
    return {"received": True}


@transactional
def is_event_processed(session: Session, event_id: Optional[str]) -> bool:
    """
    Whether ``event_id`` is recorded in `processed_webhook_events`.

    Used after an ``IntegrityError`` to tell a concurrent delivery of the same
    event (recorded) from a failing side effect (not recorded).
    """
    if not event_id:
        return False
    return WebhookEventDao().eventExists(session, event_id)
