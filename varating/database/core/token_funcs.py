"""
Service-layer operations for the token ledger.

A token is a prepaid analysis credit: one analyzed page costs one token.
Balances live in `user_tokens`; every write goes through a row lock
(``SELECT ... FOR UPDATE``) so concurrent credits and debits serialize.

All functions are wrapped with `@transactional`. When called from another
transactional function (e.g. the Stripe webhook), they join its session and
commit or roll back with it.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.config.config import settings
from varating.database.daos.token_dao import TokenDao
from varating.database.helpers.columns import utcnow
from varating.database.helpers.transactionManagement import transactional

logger = logging.getLogger("uvicorn")


@transactional
def get_token_balance(session: Session, user_id: UUID) -> int:
    """
    Available tokens of a user.

    Returns
    -------
    int
        0 when the user has no ledger row.
    """
    row = TokenDao().fetchLedgerRow(session, user_id)
    return row.tokens_available if row else 0


@transactional
def add_user_tokens(session: Session, user_id: UUID, tokens: int) -> int:
    """
    Credit tokens to a user, creating the ledger row when absent.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        Ledger owner.
    tokens : int
        Tokens to add (must be positive).

    Returns
    -------
    int
        The new available balance.
    """
    if tokens <= 0:
        raise ValueError("tokens must be positive")
    row = TokenDao().lockLedgerRow(session, user_id, create=True)
    row.tokens_available = (row.tokens_available or 0) + tokens
    row.updated_at = utcnow()
    session.flush()
    logger.info(f"Credited {tokens} tokens to {user_id}; balance {row.tokens_available}")
    return row.tokens_available


@transactional
def consume_tokens(session: Session, user_id: UUID, tokens: int) -> dict:
    """
    Move tokens from available to used, atomically.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'remaining': int, 'low_balance': bool}``
        - On insufficient balance: ``{'res': False, 'detail': str,
          'current_balance': int, 'shortage': int}`` and nothing changes.
    """
    if tokens <= 0:
        raise ValueError("tokens must be positive")
    row = TokenDao().lockLedgerRow(session, user_id)
    balance = row.tokens_available if row else 0
    if row is None or balance < tokens:
        return {
            "res": False,
            "detail": "Insufficient tokens",
            "current_balance": balance,
            "shortage": tokens - balance,
        }
    row.tokens_available = balance - tokens
    row.tokens_used = (row.tokens_used or 0) + tokens
    row.updated_at = utcnow()
    session.flush()
    return {
        "res": True,
        "remaining": row.tokens_available,
        "low_balance": row.tokens_available < settings.LOW_BALANCE_THRESHOLD,
    }


def validate_tokens(user_id: UUID, pages_required) -> dict:
    """
    Check whether a user can afford ``pages_required`` pages.

    Returns
    -------
    dict
        ``{'res': False, 'detail': ..., 'status_code': 400}`` for an invalid page count, otherwise
        ``{'res': True, 'detail': {...}}`` where ``detail`` is the body
        returned to the client.
    """
    if isinstance(pages_required, bool) or not isinstance(pages_required, (int, float)) or pages_required <= 0:
        return {"res": False, "detail": "Invalid pages_required parameter", "status_code": 400}

    required = int(pages_required)
    balance = get_token_balance(user_id=user_id)
    if balance < required:
        shortage = required - balance
        return {
            "res": True,
            "detail": {
                "valid": False,
                "current_balance": balance,
                "required": required,
                "shortage": shortage,
                "message": (
                    f"Insufficient tokens. You need {required} tokens but only have {balance}. "
                    "Please purchase more tokens to continue."
                ),
            },
        }
    return {
        "res": True,
        "detail": {
            "valid": True,
            "current_balance": balance,
            "required": required,
            "remaining_after": balance - required,
            "message": "Sufficient tokens available",
        },
    }
