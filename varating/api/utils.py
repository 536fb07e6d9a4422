"""
JWT utilities and FastAPI auth dependencies.

Functions
---------
create_access_token(claims: dict, expires_minutes: int | None) -> str
    Creates a signed JWT access token with an expiration (`exp`) claim.
verify_token(token: str) -> dict | None
    Verify a Supabase JWT's signature, expiration and audience and return its claims.
get_current_user(authorization) -> dict
    Dependency resolving ``Authorization: Bearer <jwt>`` into ``{id, email, role}``.
require_service_role(authorization) -> str
    Dependency for cron/service endpoints.
get_rag_caller(authorization) -> dict
    Dependency for the RAG agent routes (user token or RAG API key).
unwrap(result: dict)
    Service-layer result -> response body, or HTTPException.

Environment contract (from `settings`)
--------------------------------------
SUPABASE_JWT_SECRET : str
    HMAC key shared with Supabase Auth.
ALGORITHM : str
    JWT signing algorithm ("HS256").
JWT_AUDIENCE : str
    Expected `aud` claim ("authenticated").
ACCESS_TOKEN_EXPIRE_MINUTES : int
    Default lifetime of tokens issued here.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from varating.database.config.config import settings

logger = logging.getLogger("uvicorn")


def create_access_token(claims: dict, expires_minutes: Optional[int] = None) -> str:
    """
    Create a signed JWT access token.

    Parameters
    ----------
    claims : dict
        Claims to embed in the token.
    expires_minutes : int, optional
        Lifetime; defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``.

    Returns
    -------
    str
        Encoded JWT string.
    """
    lifetime = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = int(datetime.now(timezone.utc).timestamp())
    encoding = claims.copy()
    # exp is a NumericDate (seconds since epoch)
    encoding.update({"iat": now, "exp": now + int(lifetime) * 60})
    return jwt.encode(encoding, settings.SUPABASE_JWT_SECRET, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify a JWT and return its claims.

    Returns
    -------
    dict | None
        The decoded claims when signature, expiry and audience are valid,
        otherwise None.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.info(f"Rejected token: {e}")
        return None


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    """
    Resolve the authenticated user of a request.

    Returns
    -------
    dict
        ``{'id': UUID, 'email': str | None, 'role': str | None}``.

    Raises
    ------
    HTTPException
        401 when the header is missing or the token is invalid.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    token = _bearer(authorization)
    claims = verify_token(token) if token else None
    if not claims:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return {"id": user_id, "email": claims.get("email"), "role": claims.get("role")}


def require_service_role(authorization: Optional[str] = Header(None)) -> str:
    """
    Allow only the service-role key, or a JWT whose role is ``service_role``.

    Raises
    ------
    HTTPException
        401 without credentials, 403 for any other caller.
    """
    token = _bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    if token == settings.SUPABASE_SERVICE_ROLE_KEY:
        return "service_role"
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if claims.get("role") != "service_role":
        raise HTTPException(status_code=403, detail="Forbidden")
    try:
        jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return "service_role"


def get_rag_caller(authorization: Optional[str] = Header(None)) -> dict:
    """
    Caller of the RAG agent routes: a user token or the RAG agent API key.

    Returns
    -------
    dict
        ``{'service': True}`` for the API key, otherwise the user dict of
        ``get_current_user``.
    """
    token = _bearer(authorization)
    if token and settings.RAG_AGENT_API_KEY and token == settings.RAG_AGENT_API_KEY:
        return {"service": True}
    user = get_current_user(authorization)
    user["service"] = False
    return user


def unwrap(result: dict):
    """
    Detail of a successful service result; failures become ``HTTPException``.
    """
    if result["res"]:
        return result["detail"]
    raise HTTPException(status_code=result.get("status_code", 400), detail=result["detail"])
