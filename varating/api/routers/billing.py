"""
Billing routes: Stripe checkout, customer portal and billing info.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Header

from varating.api.models import CheckoutSessionRequest
from varating.api.utils import get_current_user, unwrap
from varating.database.config.config import settings
from varating.database.core.billing_funcs import (
    create_checkout_session,
    create_portal_session,
    get_billing_info,
    stripe_checkout,
)

router = APIRouter(tags=["billing"])


@router.post("/create-checkout-session")
def checkout_session(data: CheckoutSessionRequest, user: dict = Depends(get_current_user)):
    """
    Start a Stripe Checkout for a token pack (``product_type``) or the legacy
    subscription / single-upload price.

    Response:
        200: {'url': str}
        400: unknown price, missing profile or Stripe error
    """
    result = create_checkout_session(
        user_id=user["id"],
        mode=data.mode,
        success_url=data.success_url,
        cancel_url=data.cancel_url,
        product_type=data.product_type,
    )
    return unwrap(result)


@router.post("/stripe-checkout")
def checkout_with_price(values: dict = Body(...), user: dict = Depends(get_current_user)):
    """Checkout for an explicit ``price_id``; the body is validated field by field."""
    return unwrap(stripe_checkout(user_id=user["id"], email=user["email"], values=values))


@router.post("/create-customer-portal-session")
def customer_portal(origin: Optional[str] = Header(None), user: dict = Depends(get_current_user)):
    return unwrap(create_portal_session(user_id=user["id"], origin=origin or settings.SITE_URL))


@router.get("/get-stripe-billing-info")
def billing_info(user: dict = Depends(get_current_user)):
    return get_billing_info(user_id=user["id"])
