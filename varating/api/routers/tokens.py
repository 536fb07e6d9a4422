"""
Token ledger routes: balance, validation, consumption and alert emails.
"""

from fastapi import APIRouter, Depends, HTTPException

from varating.api.models import ConsumeTokensRequest, TokenAlertRequest, ValidateTokensRequest
from varating.api.utils import get_current_user, unwrap
from varating.database.core.notification_funcs import send_token_alert
from varating.database.core.token_funcs import consume_tokens, get_token_balance, validate_tokens

router = APIRouter(tags=["tokens"])


@router.get("/tokens/balance")
def token_balance(user: dict = Depends(get_current_user)):
    return {"tokens_available": get_token_balance(user_id=user["id"])}


@router.post("/validate-tokens")
def validate(data: ValidateTokensRequest, user: dict = Depends(get_current_user)):
    """
    Check whether the caller can afford ``pages_required`` pages.

    Response:
        200: {'valid': bool, 'current_balance', 'required', ...}
        400: "Invalid pages_required parameter"
    """
    return unwrap(validate_tokens(user_id=user["id"], pages_required=data.pages_required))


@router.post("/tokens/consume")
def consume(data: ConsumeTokensRequest, user: dict = Depends(get_current_user)):
    """
    Spend tokens; 402 with the balance and shortage when they do not suffice.
    """
    result = consume_tokens(user_id=user["id"], tokens=data.tokens)
    if not result["res"]:
        raise HTTPException(
            status_code=402,
            detail={
                "message": result["detail"],
                "current_balance": result["current_balance"],
                "shortage": result["shortage"],
            },
        )
    return {"remaining": result["remaining"], "low_balance": result["low_balance"]}


@router.post("/send-token-alert")
def token_alert(data: TokenAlertRequest, user: dict = Depends(get_current_user)):
    result = send_token_alert(
        user_id=user["id"],
        alert_type=data.alert_type,
        pages_required=data.pages_required,
        current_balance=data.current_balance,
        shortage=data.shortage,
    )
    return unwrap(result)
