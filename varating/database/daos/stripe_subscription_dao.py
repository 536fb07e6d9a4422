"""
StripeSubscription / StripeOrder DAO

Purpose
-------
Persistence for Stripe-mirrored state keyed by Stripe customer id:
- `stripe_subscriptions`: one row per customer, upserted on ``customer_id``
- `stripe_orders`: one row per paid one-time checkout session
"""

import logging

from sqlalchemy.orm import Session

from varating.database.entities.billing import StripeOrder, StripeSubscription
from varating.database.helpers.columns import utcnow

logger = logging.getLogger("uvicorn")


class StripeSubscriptionDao:
    """
    Data Access Object (DAO) for the `stripe_subscriptions` table.
    """

    def fetchSubscriptionByCustomerId(self, session: Session, customer_id: str):
        try:
            return (
                session.query(StripeSubscription)
                .filter(StripeSubscription.customer_id == customer_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in StripeSubscriptionDao.fetchSubscriptionByCustomerId. Error: {e}")
            raise e

    def upsertSubscription(self, session: Session, customer_id: str, **fields) -> StripeSubscription:
        """
        Insert or update the subscription row of a customer.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        customer_id : str
            Stripe customer id (conflict key).
        **fields
            Column values to set, e.g. ``status``, ``price_id``,
            ``current_period_end``.

        Returns
        -------
        StripeSubscription
        """
        try:
            subscription = self.fetchSubscriptionByCustomerId(session, customer_id)
            if subscription is None:
                subscription = StripeSubscription(customer_id=customer_id)
                session.add(subscription)
            for column, value in fields.items():
                setattr(subscription, column, value)
            subscription.updated_at = utcnow()
            session.flush()
            return subscription
        except Exception as e:
            logger.error(f"Error in StripeSubscriptionDao.upsertSubscription. Error: {e}")
            raise e

    def ensureSubscriptionRow(self, session: Session, customer_id: str) -> StripeSubscription:
        """Create a ``not_started`` row for the customer unless one exists."""
        try:
            subscription = self.fetchSubscriptionByCustomerId(session, customer_id)
            if subscription is None:
                subscription = StripeSubscription(customer_id=customer_id, status="not_started")
                session.add(subscription)
                session.flush()
            return subscription
        except Exception as e:
            logger.error(f"Error in StripeSubscriptionDao.ensureSubscriptionRow. Error: {e}")
            raise e

    def deleteByCustomerIds(self, session: Session, customer_ids: list) -> int:
        try:
            if not customer_ids:
                return 0
            return (
                session.query(StripeSubscription)
                .filter(StripeSubscription.customer_id.in_(customer_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in StripeSubscriptionDao.deleteByCustomerIds. Error: {e}")
            raise e


class StripeOrderDao:
    """
    Data Access Object (DAO) for the `stripe_orders` table.
    """

    def fetchOrderByCheckoutSession(self, session: Session, checkout_session_id: str):
        try:
            return (
                session.query(StripeOrder)
                .filter(StripeOrder.checkout_session_id == checkout_session_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in StripeOrderDao.fetchOrderByCheckoutSession. Error: {e}")
            raise e

    def createOrder(
        self,
        session: Session,
        checkout_session_id: str,
        payment_intent_id,
        customer_id: str,
        amount_subtotal: int,
        amount_total: int,
        currency: str,
        payment_status: str,
    ) -> StripeOrder:
        """
        Stage a completed one-time order.

        Returns
        -------
        StripeOrder
            The staged row (status ``completed``).
        """
        try:
            order = StripeOrder(
                checkout_session_id=checkout_session_id,
                payment_intent_id=payment_intent_id,
                customer_id=customer_id,
                amount_subtotal=amount_subtotal or 0,
                amount_total=amount_total or 0,
                currency=currency or "usd",
                payment_status=payment_status,
                status="completed",
            )
            session.add(order)
            session.flush()
            return order
        except Exception as e:
            logger.error(f"Error in StripeOrderDao.createOrder. Error: {e}")
            raise e

    def deleteByCustomerIds(self, session: Session, customer_ids: list) -> int:
        try:
            if not customer_ids:
                return 0
            return (
                session.query(StripeOrder)
                .filter(StripeOrder.customer_id.in_(customer_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in StripeOrderDao.deleteByCustomerIds. Error: {e}")
            raise e
