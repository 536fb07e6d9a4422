"""
Token DAO

Purpose
-------
Persistence for the token ledger (`user_tokens`) and its purchase audit trail
(`token_purchases`).

Concurrency
-----------
Writers go through ``lockLedgerRow``, which issues ``SELECT ... FOR UPDATE`` on
PostgreSQL, so a credit and a debit racing on the same user serialize inside
their transactions.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.billing import TokenPurchase, UserTokens

logger = logging.getLogger("uvicorn")


class TokenDao:
    """
    Data Access Object (DAO) for the token ledger.
    """

    def fetchLedgerRow(self, session: Session, user_id: UUID):
        try:
            return session.query(UserTokens).filter(UserTokens.user_id == user_id).one_or_none()
        except Exception as e:
            logger.error(f"Error in TokenDao.fetchLedgerRow. Error: {e}")
            raise e

    def lockLedgerRow(self, session: Session, user_id: UUID, create: bool = False):
        """
        Fetch the ledger row of a user with a row lock.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Ledger owner.
        create : bool, optional
            Insert an empty row when none exists.

        Returns
        -------
        UserTokens | None
        """
        try:
            row = (
                session.query(UserTokens)
                .filter(UserTokens.user_id == user_id)
                .with_for_update()
                .one_or_none()
            )
            if row is None and create:
                row = UserTokens(user_id=user_id)
                session.add(row)
                session.flush()
            return row
        except Exception as e:
            logger.error(f"Error in TokenDao.lockLedgerRow. Error: {e}")
            raise e

    def fetchPurchaseByPaymentIntent(self, session: Session, payment_intent_id: str):
        try:
            return (
                session.query(TokenPurchase)
                .filter(TokenPurchase.stripe_payment_intent_id == payment_intent_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in TokenDao.fetchPurchaseByPaymentIntent. Error: {e}")
            raise e

    def createPurchase(
        self,
        session: Session,
        user_id: UUID,
        payment_intent_id,
        product_type: str,
        tokens_purchased: int,
        amount_paid: int,
    ) -> TokenPurchase:
        """
        Stage a completed token purchase.

        A second purchase for the same payment intent violates the unique key
        on flush.
        """
        try:
            purchase = TokenPurchase(
                user_id=user_id,
                stripe_payment_intent_id=payment_intent_id,
                product_type=product_type,
                tokens_purchased=tokens_purchased,
                amount_paid=amount_paid or 0,
                status="completed",
            )
            session.add(purchase)
            session.flush()
            return purchase
        except Exception as e:
            logger.error(f"Error in TokenDao.createPurchase. Error: {e}")
            raise e

    def deletePurchasesByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return (
                session.query(TokenPurchase)
                .filter(TokenPurchase.user_id == user_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in TokenDao.deletePurchasesByUserId. Error: {e}")
            raise e

    def deleteLedgerByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return session.query(UserTokens).filter(UserTokens.user_id == user_id).delete(synchronize_session=False)
        except Exception as e:
            logger.error(f"Error in TokenDao.deleteLedgerByUserId. Error: {e}")
            raise e
