"""
Service-layer operations for accounts: registration, deletion, profile
reconciliation and admin impersonation.

Account deletion runs in four phases:

1. Stripe: cancel live subscriptions, delete the customer.
2. Storage: remove every object under ``<userId>/``.
3. Database: one transaction deleting the user's rows in dependency order.
4. Auth: delete the Supabase auth user last, so a failed database phase
   leaves a user who can still sign in and retry.

Phases 1 and 2 log and continue on failure; phases 3 and 4 raise.
"""

import logging
from typing import Optional
from uuid import UUID

import stripe
from botocore.exceptions import ClientError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from varating.api.aws_funcs.funcs import delete_prefix
from varating.api.utils import create_access_token
from varating.database.config.config import settings
from varating.database.daos.admin_activity_dao import AdminActivityDao
from varating.database.daos.condition_dao import ConditionDao
from varating.database.daos.document_dao import DocumentDao
from varating.database.daos.payment_dao import PaymentDao
from varating.database.daos.profile_dao import ProfileDao
from varating.database.daos.stripe_customer_dao import StripeCustomerDao
from varating.database.daos.stripe_subscription_dao import StripeOrderDao, StripeSubscriptionDao
from varating.database.daos.token_dao import TokenDao
from varating.database.daos.upload_session_dao import UploadSessionDao
from varating.database.daos.webhook_event_dao import WebhookEventDao
from varating.database.entities.admin_activity import AdminActivityLog
from varating.database.entities.profile import Profile
from varating.database.helpers.columns import utcnow
from varating.database.helpers.transactionManagement import transactional
from varating.integrations import stripe_funcs, supabase_admin

logger = logging.getLogger("uvicorn")

MIN_PASSWORD_LENGTH = 8


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@transactional
def create_profile(session: Session, user_id: UUID, email: str, full_name: Optional[str]) -> None:
    ProfileDao().createProfile(session, Profile(id=user_id, email=email, full_name=full_name))


def register_user(email, password, full_name) -> dict:
    """
    Create an auth user and its profile.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {'user': dict}}``
        - On failure: ``{'res': False, 'detail': str, 'status_code': 400}``
    """
    if not email or not password or not full_name:
        return {"res": False, "detail": "Missing required fields: email, password, fullName", "status_code": 400}
    if len(password) < MIN_PASSWORD_LENGTH:
        return {"res": False, "detail": "Password must be at least 8 characters", "status_code": 400}
    try:
        user = supabase_admin.create_user(email=email, password=password, full_name=full_name)
    except supabase_admin.SupabaseAdminError as e:
        return {"res": False, "detail": str(e), "status_code": 400}
    create_profile(user_id=UUID(user["id"]), email=email, full_name=full_name)
    logger.info(f"Registered user {user['id']}")
    return {"res": True, "detail": {"user": user}}


# ---------------------------------------------------------------------------
# Account deletion
# ---------------------------------------------------------------------------


@transactional
def get_customer_id(session: Session, user_id: UUID) -> Optional[str]:
    customer = StripeCustomerDao().fetchActiveCustomerByUserId(session, user_id)
    return customer.customer_id if customer else None


def _is_missing_resource(error: stripe.StripeError) -> bool:
    return getattr(error, "code", None) == "resource_missing" or "No such customer" in str(error)


def cleanup_stripe_customer(customer_id: str) -> None:
    """
    Cancel every non-canceled subscription, then delete the customer.

    A customer already gone from Stripe is fine; other Stripe errors are
    logged and do not stop the account deletion.
    """
    try:
        for subscription in stripe_funcs.list_subscriptions(customer_id):
            if subscription.get("status") == "canceled":
                continue
            try:
                stripe_funcs.cancel_subscription(subscription["id"])
                logger.info(f"Canceled subscription {subscription['id']}")
            except stripe.StripeError as e:
                logger.warning(f"Failed to cancel subscription {subscription['id']}: {e}")
        stripe_funcs.delete_customer(customer_id)
        logger.info(f"Deleted Stripe customer {customer_id}")
    except stripe.StripeError as e:
        if _is_missing_resource(e):
            logger.info(f"Stripe customer {customer_id} already deleted")
        else:
            logger.error(f"Stripe cleanup failed for {customer_id}: {e}")


def cleanup_storage(user_id: UUID) -> None:
    try:
        delete_prefix(f"{user_id}/")
    except ClientError as e:
        logger.warning(f"Storage cleanup failed for {user_id}: {e}")


def _delete_tolerated(session: Session, label: str, delete) -> int:
    """Run ``delete`` in a savepoint; a failure is logged and rolled back alone."""
    try:
        with session.begin_nested():
            return delete()
    except SQLAlchemyError as e:
        logger.warning(f"Failed to delete {label}: {e}")
        return 0


@transactional
def delete_user_data(session: Session, user_id: UUID) -> dict:
    """
    Delete every row belonging to a user, in dependency order.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        User being deleted.

    Returns
    -------
    dict
        Deleted row count per table.
    """
    document_dao = DocumentDao()
    condition_dao = ConditionDao()
    token_dao = TokenDao()
    customer_ids = StripeCustomerDao().fetchCustomerIdsByUserId(session, user_id)
    document_ids = document_dao.fetchDocumentIdsByUserId(session, user_id)

    counts = {}
    condition_counts = condition_dao.deleteByUserId(session, user_id)
    counts["condition_updates"] = condition_counts["condition_updates"]
    counts["document_chunks"] = document_dao.deleteChunksByDocumentIds(session, document_ids)
    counts["medical_entities"] = document_dao.deleteEntitiesByDocumentIds(session, document_ids)
    counts["textract_jobs"] = document_dao.deleteTextractJobsByDocumentIds(session, document_ids)
    counts["disability_estimates"] = condition_counts["disability_estimates"]
    counts["user_conditions"] = condition_counts["user_conditions"]
    counts["documents"] = document_dao.deleteDocumentsByUserId(session, user_id)
    counts["upload_sessions"] = UploadSessionDao().deleteByUserId(session, user_id)
    counts["token_purchases"] = token_dao.deletePurchasesByUserId(session, user_id)
    counts["user_tokens"] = token_dao.deleteLedgerByUserId(session, user_id)
    counts["payments"] = PaymentDao().deleteByUserId(session, user_id)
    counts["stripe_orders"] = StripeOrderDao().deleteByCustomerIds(session, customer_ids)
    counts["stripe_subscriptions"] = StripeSubscriptionDao().deleteByCustomerIds(session, customer_ids)
    counts["stripe_customers"] = StripeCustomerDao().deleteByUserId(session, user_id)
    counts["admin_activity_log"] = _delete_tolerated(
        session, "admin activity", lambda: AdminActivityDao().deleteByUserId(session, user_id)
    )
    counts["processed_webhook_events"] = _delete_tolerated(
        session, "processed webhook events", lambda: WebhookEventDao().deleteByUserId(session, user_id)
    )
    counts["profiles"] = ProfileDao().deleteProfile(session, user_id)
    return counts


def delete_account(user_id: UUID) -> dict:
    """
    Delete a user's account and every trace of it.

    Returns
    -------
    dict
        ``{'success': True, 'message': 'Account successfully deleted',
        'details': {'userId', 'customerId', 'deletedAt'}}``

    Raises
    ------
    Exception
        When the database phase or the auth deletion fails.
    """
    customer_id = get_customer_id(user_id=user_id)
    if customer_id:
        cleanup_stripe_customer(customer_id)
    cleanup_storage(user_id)

    counts = delete_user_data(user_id=user_id)
    logger.info(f"Deleted data of {user_id}: {counts}")

    supabase_admin.delete_user(user_id)
    return {
        "success": True,
        "message": "Account successfully deleted",
        "details": {"userId": str(user_id), "customerId": customer_id, "deletedAt": utcnow().isoformat()},
    }


# ---------------------------------------------------------------------------
# Reconciliation / impersonation
# ---------------------------------------------------------------------------


@transactional
def reconcile_users(session: Session) -> dict:
    """
    Create missing profiles for auth users.

    Returns
    -------
    dict
        ``{'message': str, 'created': int}``.
    """
    dao = ProfileDao()
    existing = dao.fetchAllProfileIds(session)
    created = 0
    for user in supabase_admin.list_users():
        user_id = UUID(user["id"])
        if user_id in existing:
            continue
        email = user.get("email") or ""
        full_name = (user.get("user_metadata") or {}).get("full_name") or email
        dao.createProfile(session, Profile(id=user_id, email=email, full_name=full_name, role="veteran"))
        created += 1

    if created == 0:
        return {"message": "All users are reconciled.", "created": 0}
    logger.info(f"Created {created} missing profiles")
    return {"message": f"Successfully created {created} missing profiles.", "created": created}


@transactional
def impersonate_user(session: Session, admin_id: UUID, target_user_id) -> dict:
    """
    Issue a short-lived access token for another user.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    admin_id : UUID
        Caller; must have ``admin_level == "super_admin"``.
    target_user_id : UUID | str
        User to impersonate.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {'session': {...}}}``
        - On failure: 400/403/404 failure dict
    """
    dao = ProfileDao()
    admin = dao.fetchProfileById(session, admin_id)
    if admin is None or admin.admin_level != "super_admin":
        return {"res": False, "detail": "Not authorized", "status_code": 403}
    if not target_user_id:
        return {"res": False, "detail": "Missing user_id", "status_code": 400}
    try:
        target_uuid = UUID(str(target_user_id))
    except ValueError:
        return {"res": False, "detail": "User not found", "status_code": 404}
    target = dao.fetchProfileById(session, target_uuid)
    if target is None:
        return {"res": False, "detail": "User not found", "status_code": 404}

    expires_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    access_token = create_access_token(
        {
            "sub": str(target.id),
            "email": target.email,
            "role": "authenticated",
            "aud": settings.JWT_AUDIENCE,
            "impersonated_by": str(admin_id),
        },
        expires_minutes=expires_minutes,
    )
    AdminActivityDao().createEntry(
        session,
        AdminActivityLog(
            admin_id=admin_id,
            action="impersonate_user",
            target_user_id=target.id,
            details={"target_email": target.email},
        ),
    )
    logger.info(f"Admin {admin_id} impersonating {target.id}")
    return {
        "res": True,
        "detail": {
            "session": {
                "access_token": access_token,
                "token_type": "bearer",
                "expires_in": expires_minutes * 60,
                "user": {"id": str(target.id), "email": target.email, "full_name": target.full_name},
            }
        },
    }
