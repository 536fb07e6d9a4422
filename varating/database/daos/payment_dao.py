"""
Payment DAO

Purpose
-------
Persistence for the legacy per-user billing record (`payments`): upload credits
and the subscription summary mirrored from Stripe.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.billing import Payment
from varating.database.helpers.columns import utcnow

logger = logging.getLogger("uvicorn")


class PaymentDao:
    """
    Data Access Object (DAO) for the `payments` table.
    """

    def fetchPaymentByUserId(self, session: Session, user_id: UUID, lock: bool = False):
        """
        Fetch the payment record of a user.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Owner of the record.
        lock : bool, optional
            Issue ``SELECT ... FOR UPDATE`` (ignored by SQLite).

        Returns
        -------
        Payment | None
        """
        try:
            query = session.query(Payment).filter(Payment.user_id == user_id)
            if lock:
                query = query.with_for_update()
            return query.one_or_none()
        except Exception as e:
            logger.error(f"Error in PaymentDao.fetchPaymentByUserId. Error: {e}")
            raise e

    def incrementUploadCredits(
        self, session: Session, user_id: UUID, stripe_customer_id: Optional[str] = None, credits: int = 1
    ) -> int:
        """
        Add upload credits, creating the record when absent.

        Returns
        -------
        int
            The new credit count.
        """
        try:
            payment = self.fetchPaymentByUserId(session, user_id, lock=True)
            if payment is None:
                payment = Payment(user_id=user_id, upload_credits=0)
                session.add(payment)
            if stripe_customer_id:
                payment.stripe_customer_id = stripe_customer_id
            payment.upload_credits = (payment.upload_credits or 0) + credits
            payment.updated_at = utcnow()
            session.flush()
            return payment.upload_credits
        except Exception as e:
            logger.error(f"Error in PaymentDao.incrementUploadCredits. Error: {e}")
            raise e

    def updateSubscriptionSummary(
        self,
        session: Session,
        user_id: UUID,
        subscription_status: str,
        subscription_end_date: Optional[datetime],
    ) -> bool:
        """
        Mirror the subscription status onto an existing payment record.

        Returns
        -------
        bool
            False when the user has no payment record (nothing is created).
        """
        try:
            payment = self.fetchPaymentByUserId(session, user_id, lock=True)
            if payment is None:
                return False
            payment.subscription_status = subscription_status
            payment.subscription_end_date = subscription_end_date
            payment.updated_at = utcnow()
            session.flush()
            return True
        except Exception as e:
            logger.error(f"Error in PaymentDao.updateSubscriptionSummary. Error: {e}")
            raise e

    def deleteByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return session.query(Payment).filter(Payment.user_id == user_id).delete(synchronize_session=False)
        except Exception as e:
            logger.error(f"Error in PaymentDao.deleteByUserId. Error: {e}")
            raise e
