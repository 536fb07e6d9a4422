"""
Account routes: registration, account deletion, profile reconciliation and
admin impersonation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from varating.api.models import ImpersonateRequest, RegisterRequest
from varating.api.utils import get_current_user, require_service_role, unwrap
from varating.database.core.account_funcs import delete_account, impersonate_user, reconcile_users, register_user

router = APIRouter(tags=["account"])
logger = logging.getLogger("uvicorn")


@router.post("/register")
def register(data: RegisterRequest):
    """
    Create an auth user and its profile.

    Response:
        200: {'user': dict}
        400: missing fields, short password or rejected by Supabase Auth
    """
    return unwrap(register_user(email=data.email, password=data.password, full_name=data.fullName))


@router.delete("/delete-account")
def remove_account(user: dict = Depends(get_current_user)):
    """
    Delete the caller's account: Stripe, storage, database rows, auth user.

    Response:
        200: {'success': True, 'message': 'Account successfully deleted', 'details': {...}}
        500: the database or auth phase failed
    """
    try:
        return delete_account(user_id=user["id"])
    except Exception as e:
        logger.exception(f"Account deletion failed for {user['id']}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete account: {e}")


@router.api_route("/delete-account", methods=["GET", "POST", "PUT", "PATCH"], include_in_schema=False)
def delete_account_other_methods():
    raise HTTPException(status_code=405, detail="Method not allowed")


@router.post("/reconcile-users")
def reconcile(_: str = Depends(require_service_role)):
    return reconcile_users()


@router.post("/impersonate-user")
def impersonate(data: ImpersonateRequest, user: dict = Depends(get_current_user)):
    return unwrap(impersonate_user(admin_id=user["id"], target_user_id=data.user_id))
