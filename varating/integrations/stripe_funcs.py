"""
Stripe Utilities: Catalog • Customers • Checkout • Portal • Subscriptions
==========================================================================

Purpose
-------
Thin wrappers over the official `stripe` SDK used by the billing service:
- Token-pack catalog (``PRODUCT_CONFIG``) and find-or-create of its products/prices
- Customer create/delete
- Checkout and billing-portal sessions
- Subscription/invoice listing and cancellation
- Webhook signature verification

Configuration (from `varating.database.config.config.settings`)
-----------------------------------------------------------------
- STRIPE_SECRET_KEY              : API key (set on the module at import)
- STRIPE_WEBHOOK_SECRET          : endpoint signing secret
- STRIPE_SUBSCRIPTION_PRICE_ID   : legacy subscription price
- STRIPE_SINGLE_UPLOAD_PRICE_ID  : legacy single-upload price

Notes
-----
Every value handed back to callers is a plain ``dict`` (see ``to_dict``) so the
service layer never depends on ``StripeObject`` behaviour.
"""

import logging
from typing import Optional

import stripe

from varating.database.config.config import settings

logger = logging.getLogger("uvicorn")

stripe.api_key = settings.STRIPE_SECRET_KEY

PRODUCT_CONFIG = {
    "starter": {
        "name": "Starter Pack",
        "description": "Analyze up to 50 pages with AI-powered condition identification",
        "price": 2999,
        "tokens": 50,
    },
    "file-review": {
        "name": "File Review Pack",
        "description": "Analyze up to 150 pages with priority processing and enhanced analysis",
        "price": 4999,
        "tokens": 150,
    },
    "full-review": {
        "name": "Full Review Pack",
        "description": "Analyze up to 500 pages with comprehensive medical record analysis",
        "price": 8999,
        "tokens": 500,
    },
    "tokens-100": {
        "name": "Token Boost",
        "description": "100 additional tokens for document analysis",
        "price": 1999,
        "tokens": 100,
    },
    "tokens-250": {
        "name": "Token Pack",
        "description": "250 additional tokens for document analysis",
        "price": 3999,
        "tokens": 250,
    },
    "tokens-500": {
        "name": "Token Bundle",
        "description": "500 additional tokens for document analysis",
        "price": 6999,
        "tokens": 500,
    },
}
"""Token packs sold through checkout. Prices are in cents."""


def to_dict(obj) -> dict:
    """
    Convert a `StripeObject` (or an already plain value) into a plain dict.
    """
    if obj is None or isinstance(obj, dict):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return obj.to_dict_recursive()


def legacy_price_id(mode: Optional[str]) -> Optional[str]:
    """Configured price for checkouts that carry no known product type."""
    if mode == "subscription":
        return settings.STRIPE_SUBSCRIPTION_PRICE_ID
    return settings.STRIPE_SINGLE_UPLOAD_PRICE_ID


def find_or_create_price(product_type: str) -> str:
    """
    Resolve the Stripe price of a catalog product, creating product and price
    on first use.

    Parameters
    ----------
    product_type : str
        Key of ``PRODUCT_CONFIG``.

    Returns
    -------
    str
        Stripe price id.

    Raises
    ------
    stripe.StripeError
        On any API failure.
    """
    config = PRODUCT_CONFIG[product_type]
    metadata = {"product_type": product_type, "tokens": str(config["tokens"])}

    products = to_dict(stripe.Product.list(limit=100))
    product = next(
        (p for p in products.get("data", []) if (p.get("metadata") or {}).get("product_type") == product_type),
        None,
    )
    if product is None:
        product = to_dict(
            stripe.Product.create(name=config["name"], description=config["description"], metadata=metadata)
        )
        logger.info(f"Created Stripe product {product['id']} for {product_type}")

    prices = to_dict(stripe.Price.list(product=product["id"], limit=10))
    price = next((p for p in prices.get("data", []) if p.get("unit_amount") == config["price"]), None)
    if price is None:
        price = to_dict(
            stripe.Price.create(product=product["id"], unit_amount=config["price"], currency="usd", metadata=metadata)
        )
        logger.info(f"Created Stripe price {price['id']} for {product_type}")
    return price["id"]


def create_customer(email: str, metadata: dict) -> str:
    customer = to_dict(stripe.Customer.create(email=email, metadata=metadata))
    return customer["id"]


def delete_customer(customer_id: str) -> None:
    stripe.Customer.delete(customer_id)


def create_checkout_session(**params) -> dict:
    """Create a Checkout Session; ``params`` are passed through unchanged."""
    return to_dict(stripe.checkout.Session.create(**params))


def create_portal_session(customer_id: str, return_url: str) -> str:
    session = to_dict(stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url))
    return session["url"]


def fetch_latest_subscription(customer_id: str) -> Optional[dict]:
    """
    Latest subscription of a customer, any status, with its default payment
    method expanded.

    Returns
    -------
    dict | None
        None when the customer never subscribed.
    """
    subscriptions = to_dict(
        stripe.Subscription.list(
            customer=customer_id, limit=1, status="all", expand=["data.default_payment_method"]
        )
    )
    data = subscriptions.get("data") or []
    return data[0] if data else None


def list_subscriptions(customer_id: str) -> list:
    subscriptions = to_dict(stripe.Subscription.list(customer=customer_id, status="all", limit=100))
    return subscriptions.get("data") or []


def cancel_subscription(subscription_id: str) -> None:
    stripe.Subscription.cancel(subscription_id)


def list_invoices(customer_id: str, limit: int = 20) -> list:
    invoices = to_dict(stripe.Invoice.list(customer=customer_id, limit=limit))
    return invoices.get("data") or []


def verify_webhook(payload: bytes, signature: str):
    """
    Verify the ``Stripe-Signature`` header of a webhook delivery.

    Raises
    ------
    stripe.SignatureVerificationError
        When the signature does not match.
    ValueError
        When the payload is not valid JSON.
    """
    return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
