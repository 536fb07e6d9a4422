"""
Supabase Auth admin client (GoTrue ``/auth/v1/admin``) over `httpx`.

Only the three calls the account service needs: create, list and delete users.
All calls authenticate with the service-role key and raise
``httpx.HTTPStatusError`` on non-2xx answers.
"""

import logging
from uuid import UUID

import httpx

from varating.database.config.config import settings

logger = logging.getLogger("uvicorn")


class SupabaseAdminError(Exception):
    """Raised when the Auth admin API rejects a request (message is user-facing)."""


def _headers() -> dict:
    return {
        "apikey": settings.SUPABASE_SERVICE_ROLE_KEY,
        "Authorization": f"Bearer {settings.SUPABASE_SERVICE_ROLE_KEY}",
        "Content-Type": "application/json",
    }


def _url(path: str = "") -> str:
    return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/admin/users{path}"


def create_user(email: str, password: str, full_name: str) -> dict:
    """
    Create a confirmed auth user.

    Returns
    -------
    dict
        The created user object.

    Raises
    ------
    SupabaseAdminError
        When GoTrue refuses the user (duplicate email, weak password...).
    """
    payload = {
        "email": email,
        "password": password,
        "email_confirm": True,
        "user_metadata": {"full_name": full_name},
    }
    response = httpx.post(_url(), json=payload, headers=_headers(), timeout=settings.HTTP_TIMEOUT)
    if response.status_code >= 400:
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("msg") or body.get("message") or body.get("error_description") or response.text
        raise SupabaseAdminError(message)
    return response.json()


def list_users(per_page: int = 1000) -> list:
    """
    Every auth user, following GoTrue pagination.

    Returns
    -------
    list[dict]
    """
    users = []
    page = 1
    with httpx.Client(headers=_headers(), timeout=settings.HTTP_TIMEOUT) as client:
        while True:
            response = client.get(_url(), params={"page": page, "per_page": per_page})
            response.raise_for_status()
            batch = response.json().get("users") or []
            users.extend(batch)
            if len(batch) < per_page:
                break
            page += 1
    return users


def delete_user(user_id: UUID) -> None:
    response = httpx.delete(_url(f"/{user_id}"), headers=_headers(), timeout=settings.HTTP_TIMEOUT)
    response.raise_for_status()
    logger.info(f"Deleted auth user {user_id}")
