"""
Service-layer operations for outgoing email: token alerts, the generic send
and contact endpoints, and the condition-update notifier run by cron.
"""

import logging
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from varating.database.core.condition_funcs import (
    get_notification_recipients,
    get_pending_condition_updates,
    mark_condition_updates_sent,
)
from varating.database.daos.profile_dao import ProfileDao
from varating.database.helpers.transactionManagement import transactional
from varating.integrations import email_funcs

logger = logging.getLogger("uvicorn")

ALERT_TYPES = ("insufficient_tokens", "low_balance")
REQUIRED_EMAIL_FIELDS = ("from", "to", "subject", "tags")


@transactional
def get_profile_contact(session: Session, user_id: UUID):
    profile = ProfileDao().fetchProfileById(session, user_id)
    if profile is None:
        return None
    return {"email": profile.email, "full_name": profile.full_name}


def send_token_alert(user_id: UUID, alert_type, pages_required=None, current_balance=None, shortage=None) -> dict:
    """
    Email the user about an insufficient or low token balance.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {success, message, email_id}}``
        - On failure: 400 (bad alert type) or 404 (no profile)
    """
    if not alert_type:
        return {"res": False, "detail": "Missing alert_type parameter", "status_code": 400}
    if alert_type not in ALERT_TYPES:
        return {"res": False, "detail": "Invalid alert_type", "status_code": 400}
    profile = get_profile_contact(user_id=user_id)
    if profile is None:
        return {"res": False, "detail": "User profile not found", "status_code": 404}

    subject, html_content = email_funcs.token_alert_email(
        alert_type, profile["full_name"], pages_required, current_balance, shortage
    )
    result = email_funcs.send_resend_email(profile["email"], subject, html_content)
    logger.info(f"Sent {alert_type} alert to {user_id}")
    return {
        "res": True,
        "detail": {"success": True, "message": "Alert email sent successfully", "email_id": result.get("id")},
    }


def send_email(body: dict) -> dict:
    """
    Forward an arbitrary email through Pica.

    Returns
    -------
    dict
        ``{'res': True, 'detail': <provider response>}`` or a 400 failure
        naming the missing fields.
    """
    missing = [field for field in REQUIRED_EMAIL_FIELDS if not body.get(field)]
    if missing:
        return {"res": False, "detail": f"Missing required fields: {', '.join(missing)}", "status_code": 400}
    return {"res": True, "detail": email_funcs.send_pica_email(body)}


def send_contact_email(name, email, subject, message) -> dict:
    if not name or not email or not subject or not message:
        return {"res": False, "detail": "Missing required fields", "status_code": 400}
    email_funcs.send_pica_email(email_funcs.contact_email(name, email, subject, message))
    return {"res": True, "detail": {"message": "Contact email sent successfully"}}


def notify_condition_updates() -> dict:
    """
    Email every opted-in user who has unsent condition updates, once.

    Returns
    -------
    dict
        ``{'processed': int, 'notified': int, 'failed': int}`` where processed
        counts the opted-in profiles examined.

    Notes
    -----
    A failure for one user is logged and the run continues with the next.
    """
    processed = notified = failed = 0
    for profile in get_notification_recipients():
        processed += 1
        try:
            updates = get_pending_condition_updates(user_id=profile["id"])
            if not updates:
                continue
            payload = email_funcs.condition_update_email(profile["email"], profile["full_name"] or "Veteran")
            email_funcs.send_pica_email(payload)
            mark_condition_updates_sent(update_ids=[u["id"] for u in updates])
            notified += 1
            logger.info(f"Notified {profile['id']} of {len(updates)} condition updates")
        except (email_funcs.EmailDeliveryError, httpx.HTTPError) as e:
            failed += 1
            logger.error(f"Error processing notifications for user {profile['id']}: {e}")
    return {"processed": processed, "notified": notified, "failed": failed}
