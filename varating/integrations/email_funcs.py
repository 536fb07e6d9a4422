"""
Email Utilities: Resend • Pica passthrough • Templates
=======================================================

Purpose
-------
- ``send_resend_email``: direct Resend API call (token alerts)
- ``send_pica_email``: Resend through the Pica passthrough (contact form,
  condition notifications, generic send)
- HTML/text templates for each message

Configuration (from `varating.database.config.config.settings`)
-----------------------------------------------------------------
- RESEND_API_URL / RESEND_API_KEY
- PICA_API_URL / PICA_SECRET_KEY / PICA_RESEND_CONNECTION_KEY / PICA_ACTION_ID
- ALERT_SENDER, NOTIFICATION_SENDER, CONTACT_EMAIL, SITE_URL

Errors
------
Non-2xx provider answers raise ``EmailDeliveryError`` carrying the provider's
text; transport errors surface as ``httpx.HTTPError``.
"""

import html
import logging

import httpx

from varating.database.config.config import settings
from varating.integrations.stripe_funcs import PRODUCT_CONFIG

logger = logging.getLogger("uvicorn")

ALERT_PACKS = ("tokens-100", "tokens-250", "tokens-500")
"""Token packs advertised in alert emails."""

APP_TAG = {"name": "app", "value": "va_rating_assistant"}


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects a message."""


def _raise_for_provider(response: httpx.Response) -> dict:
    if response.status_code >= 400:
        raise EmailDeliveryError(f"Failed to send email: {response.text}")
    return response.json()


def send_resend_email(to: str, subject: str, html_content: str, sender: str = None) -> dict:
    """
    Send an HTML email with the Resend API.

    Returns
    -------
    dict
        Resend response (``{'id': ...}``).
    """
    if not settings.RESEND_API_KEY:
        raise EmailDeliveryError("RESEND_API_KEY not configured")
    response = httpx.post(
        settings.RESEND_API_URL,
        json={"from": sender or settings.ALERT_SENDER, "to": [to], "subject": subject, "html": html_content},
        headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
        timeout=settings.HTTP_TIMEOUT,
    )
    return _raise_for_provider(response)


def send_pica_email(payload: dict) -> dict:
    """
    Send an email through the Pica passthrough.

    Parameters
    ----------
    payload : dict
        Resend ``emails`` body (``from``, ``to``, ``subject``, ``html``,
        ``tags``...), forwarded unchanged.

    Returns
    -------
    dict
        Provider response.
    """
    if not settings.PICA_SECRET_KEY or not settings.PICA_RESEND_CONNECTION_KEY:
        raise EmailDeliveryError("Missing Pica API keys")
    response = httpx.post(
        settings.PICA_API_URL,
        json=payload,
        headers={
            "x-pica-secret": settings.PICA_SECRET_KEY,
            "x-pica-connection-key": settings.PICA_RESEND_CONNECTION_KEY,
            "x-pica-action-id": settings.PICA_ACTION_ID,
        },
        timeout=settings.HTTP_TIMEOUT,
    )
    return _raise_for_provider(response)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _pack_list() -> str:
    items = []
    for key in ALERT_PACKS:
        pack = PRODUCT_CONFIG[key]
        items.append(f"<li><strong>{pack['name']}:</strong> {pack['tokens']} tokens for ${pack['price'] / 100:.2f}</li>")
    return "\n".join(items)


def token_alert_email(alert_type: str, full_name, pages_required, current_balance, shortage) -> tuple:
    """
    Subject and HTML body of a token alert.

    Parameters
    ----------
    alert_type : str
        ``"insufficient_tokens"`` or ``"low_balance"``.

    Returns
    -------
    tuple[str, str]

    Raises
    ------
    ValueError
        For any other alert type.
    """
    name = html.escape(full_name or "there")
    pricing_url = f"{settings.SITE_URL.rstrip('/')}/pricing"
    if alert_type == "insufficient_tokens":
        subject = "Insufficient Tokens - VA Rating Assistant"
        body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #1f2937;">Insufficient Tokens</h2>
  <p>Hi {name},</p>
  <p>You attempted to analyze a document that requires <strong>{pages_required} tokens</strong>, but you currently have only <strong>{current_balance} tokens</strong> in your account.</p>
  <p>You need <strong>{shortage} more tokens</strong> to complete this analysis.</p>
  <div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h3 style="color: #374151; margin-top: 0;">Purchase More Tokens</h3>
    <p>Choose from our token packages:</p>
    <ul>
{_pack_list()}
    </ul>
    <a href="{pricing_url}" style="background-color: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block; margin-top: 10px;">Buy Tokens Now</a>
  </div>
  <p>Thank you for using VA Rating Assistant!</p>
</div>
"""
    elif alert_type == "low_balance":
        subject = "Low Token Balance - VA Rating Assistant"
        body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #f59e0b;">Low Token Balance</h2>
  <p>Hi {name},</p>
  <p>Your token balance is running low. You currently have <strong>{current_balance} tokens</strong> remaining.</p>
  <p>To avoid interruptions in your document analysis, consider purchasing more tokens.</p>
  <div style="background-color: #fef3c7; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h3 style="color: #92400e; margin-top: 0;">Recommended Action</h3>
    <p>Purchase additional tokens to continue analyzing your documents:</p>
    <ul>
{_pack_list()}
    </ul>
    <a href="{pricing_url}" style="background-color: #f59e0b; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block; margin-top: 10px;">Buy Tokens Now</a>
  </div>
  <p>Thank you for using VA Rating Assistant!</p>
</div>
"""
    else:
        raise ValueError(f"Unknown alert type {alert_type}")
    return subject, body


def contact_email(name: str, email: str, subject: str, message: str) -> dict:
    """Pica payload of a contact-form message addressed to support."""
    safe_message = html.escape(message).replace("\n", "<br/>")
    html_content = f"""
<div style="background:#0a2a66;padding:32px 0;font-family:sans-serif;">
  <table style="max-width:600px;margin:0 auto;background:#fff;border-radius:12px;overflow:hidden;">
    <tr><td style="background:#0a2a66;padding:24px 0;text-align:center;">
      <h1 style="color:#fff;font-size:1.5rem;margin:0;">New Contact Form Submission</h1>
    </td></tr>
    <tr><td style="padding:32px;">
      <h2 style="color:#0a2a66;font-size:1.25rem;margin-bottom:16px;">{html.escape(subject)}</h2>
      <p style="margin:0 0 16px 0;color:#222;font-size:1rem;"><strong>From:</strong> {html.escape(name)} ({html.escape(email)})</p>
      <div style="background:#f3f6fa;padding:16px 20px;border-radius:8px;color:#222;font-size:1rem;line-height:1.6;">{safe_message}</div>
    </td></tr>
    <tr><td style="background:#f3f6fa;padding:16px;text-align:center;color:#0a2a66;font-size:0.95rem;">VA Rating Assistant &mdash; Veteran Owned &amp; Operated</td></tr>
  </table>
</div>
"""
    return {
        "from": settings.NOTIFICATION_SENDER,
        "to": [settings.CONTACT_EMAIL],
        "reply_to": email,
        "subject": f"[Contact] {subject}",
        "html": html_content,
        "text": f"Contact form submission from {name} ({email})\nSubject: {subject}\n\n{message}",
        "tags": [{"name": "trigger", "value": "contact_form"}, APP_TAG],
    }


def condition_update_email(to: str, user_name: str) -> dict:
    """Pica payload of the "new conditions" notification."""
    site = settings.SITE_URL.rstrip("/")
    dashboard_url = f"{site}/dashboard"
    profile_url = f"{site}/profile"
    name = html.escape(user_name)
    html_content = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #1f2937;">New Conditions Detected</h2>
  <p>Hi {name},</p>
  <p>We've detected new or updated conditions in your medical documents. Visit your dashboard to view the details.</p>
  <div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h3 style="color: #374151; margin-top: 0;">Next Steps</h3>
    <p>1. Review your updated conditions and ratings</p>
    <p>2. Check if any new conditions were identified</p>
    <p>3. View detailed breakdowns of each condition</p>
    <a href="{dashboard_url}" style="background-color: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block; margin-top: 10px;">View Your Dashboard</a>
  </div>
  <p style="color: #6b7280; font-size: 0.875rem;">To stop receiving these notifications, you can <a href="{profile_url}" style="color: #3b82f6; text-decoration: none;">update your email preferences</a> in your profile settings.</p>
</div>
"""
    text_content = (
        f"Hi {user_name},\n"
        "We've detected new or updated conditions in your medical documents. "
        "Visit your dashboard to view the details.\n"
        f"View your dashboard: {dashboard_url}\n"
        f"To stop receiving these notifications, update your email preferences: {profile_url}\n"
    )
    return {
        "from": settings.NOTIFICATION_SENDER,
        "to": [to],
        "subject": "New Conditions Detected - VA Rating Assistant",
        "html": html_content,
        "text": text_content,
        "tags": [{"name": "trigger", "value": "condition_update"}, APP_TAG],
    }
