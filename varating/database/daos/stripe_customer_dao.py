"""
StripeCustomer DAO

Purpose
-------
Persistence for the user ↔ Stripe customer mapping (`stripe_customers`).

- Only rows with ``deleted_at IS NULL`` count as active mappings.
- ``upsertCustomer`` keys on ``user_id``: a user has at most one mapping, and
  re-mapping revives a soft-deleted row.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.billing import StripeCustomer
from varating.database.helpers.columns import utcnow

logger = logging.getLogger("uvicorn")


class StripeCustomerDao:
    """
    Data Access Object (DAO) for the `stripe_customers` table.
    """

    def fetchActiveCustomerByUserId(self, session: Session, user_id: UUID):
        """
        Fetch the non-deleted mapping of a user.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Application user id.

        Returns
        -------
        StripeCustomer | None
        """
        try:
            return (
                session.query(StripeCustomer)
                .filter(StripeCustomer.user_id == user_id, StripeCustomer.deleted_at.is_(None))
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in StripeCustomerDao.fetchActiveCustomerByUserId. Error: {e}")
            raise e

    def fetchActiveCustomerByCustomerId(self, session: Session, customer_id: str):
        """
        Fetch the non-deleted mapping of a Stripe customer id.

        Returns
        -------
        StripeCustomer | None
        """
        try:
            return (
                session.query(StripeCustomer)
                .filter(StripeCustomer.customer_id == customer_id, StripeCustomer.deleted_at.is_(None))
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in StripeCustomerDao.fetchActiveCustomerByCustomerId. Error: {e}")
            raise e

    def fetchCustomerIdsByUserId(self, session: Session, user_id: UUID) -> list:
        """All Stripe customer ids ever mapped to the user, deleted ones included."""
        try:
            rows = session.query(StripeCustomer.customer_id).filter(StripeCustomer.user_id == user_id).all()
            return [row[0] for row in rows]
        except Exception as e:
            logger.error(f"Error in StripeCustomerDao.fetchCustomerIdsByUserId. Error: {e}")
            raise e

    def createCustomer(self, session: Session, user_id: UUID, customer_id: str) -> StripeCustomer:
        try:
            customer = StripeCustomer(user_id=user_id, customer_id=customer_id)
            session.add(customer)
            session.flush()
            return customer
        except Exception as e:
            logger.error(f"Error in StripeCustomerDao.createCustomer. Error: {e}")
            raise e

    def upsertCustomer(self, session: Session, user_id: UUID, customer_id: str) -> StripeCustomer:
        """
        Insert or update the mapping of ``user_id``.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Application user id (conflict key).
        customer_id : str
            Stripe customer id to store.

        Returns
        -------
        StripeCustomer
            The inserted or updated row.
        """
        try:
            customer = session.query(StripeCustomer).filter(StripeCustomer.user_id == user_id).one_or_none()
            if customer is None:
                return self.createCustomer(session, user_id=user_id, customer_id=customer_id)
            customer.customer_id = customer_id
            customer.deleted_at = None
            customer.updated_at = utcnow()
            return customer
        except Exception as e:
            logger.error(f"Error in StripeCustomerDao.upsertCustomer. Error: {e}")
            raise e

    def deleteByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return (
                session.query(StripeCustomer)
                .filter(StripeCustomer.user_id == user_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in StripeCustomerDao.deleteByUserId. Error: {e}")
            raise e
