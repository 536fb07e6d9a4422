"""
Email routes: generic send, contact form and condition-update digests.
"""

import logging

import httpx
from fastapi import APIRouter, Body, Depends, HTTPException

from varating.api.models import ContactRequest
from varating.api.utils import get_current_user, require_service_role, unwrap
from varating.database.core.notification_funcs import notify_condition_updates, send_contact_email, send_email
from varating.integrations.email_funcs import EmailDeliveryError

router = APIRouter(tags=["email"])
logger = logging.getLogger("uvicorn")


@router.post("/send-email")
def forward_email(body: dict = Body(...), _: dict = Depends(get_current_user)):
    """
    Send an email through the Pica passthrough.

    Request body:
        {'from', 'to', 'subject', 'tags', ...}; extra fields pass through.

    Response:
        200: provider response
        400: "Missing required fields: ..."
        500: provider rejected the message
    """
    try:
        return unwrap(send_email(body))
    except (EmailDeliveryError, httpx.HTTPError) as e:
        logger.error(f"Email delivery failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/send-contact-email")
def contact(data: ContactRequest):
    try:
        result = send_contact_email(name=data.name, email=data.email, subject=data.subject, message=data.message)
    except (EmailDeliveryError, httpx.HTTPError) as e:
        logger.error(f"Contact email failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return unwrap(result)


@router.post("/notify-condition-updates")
def condition_updates(_: str = Depends(require_service_role)):
    """Cron target: one digest per opted-in user with unsent updates."""
    return notify_condition_updates()
