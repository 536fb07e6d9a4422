"""
Billing ORM Models
==================

Tables that mirror Stripe state and hold the token ledger.

Contents
--------
- StripeCustomer (``stripe_customers``)
    One-to-one mapping between an application user and a Stripe customer.
    Soft-deleted via ``deleted_at``.
- StripeSubscription (``stripe_subscriptions``)
    Latest known subscription state per Stripe customer (one row per customer).
- StripeOrder (``stripe_orders``)
    One row per paid one-time checkout session.
- Payment (``payments``)
    Legacy per-user billing record: upload credits and subscription summary.
- TokenPurchase (``token_purchases``)
    Audit row for each token pack bought; unique per payment intent.
- UserTokens (``user_tokens``)
    The token ledger: available and used tokens per user.
- ProcessedWebhookEvent (``processed_webhook_events``)
    Stripe event ids already applied. Makes webhook delivery idempotent.
"""

from varating.database.config.connection_engine import declarativeBase
from varating.database.helpers.columns import utcnow
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Boolean, DateTime, Integer, BigInteger, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional
import uuid


class StripeCustomer(declarativeBase):
    """
    ORM model for the `stripe_customers` table.

    Attributes
    ----------
    id : int
        Surrogate key.
    user_id : UUID
        Application user (unique).
    customer_id : str
        Stripe customer id, e.g. ``cus_...`` (unique).
    deleted_at : datetime | None
        Set when the mapping is retired.
    """

    __tablename__ = "stripe_customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, unique=True)
    customer_id: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __init__(self, user_id: UUID, customer_id: str):
        self.user_id = user_id
        self.customer_id = customer_id
        self.created_at = utcnow()
        self.updated_at = self.created_at

    def __str__(self) -> str:
        return f"StripeCustomer: user_id:{self.user_id}, customer_id: {self.customer_id}"


class StripeSubscription(declarativeBase):
    """
    ORM model for the `stripe_subscriptions` table.

    ``status`` follows Stripe's subscription statuses plus ``not_started`` for
    customers that have never subscribed. Period bounds are Unix timestamps as
    delivered by Stripe.
    """

    __tablename__ = "stripe_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    subscription_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    price_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    current_period_start: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    current_period_end: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    cancel_at_period_end: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=False)
    payment_method_brand: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    payment_method_last4: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="not_started")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class StripeOrder(declarativeBase):
    """ORM model for the `stripe_orders` table (paid one-time checkouts)."""

    __tablename__ = "stripe_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    checkout_session_id: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    payment_intent_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    customer_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    amount_subtotal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(TEXT, nullable=False, default="usd")
    payment_status: Mapped[str] = mapped_column(TEXT, nullable=False)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="completed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Payment(declarativeBase):
    """
    ORM model for the `payments` table.

    Attributes
    ----------
    user_id : UUID
        Owner of the record (one row per user).
    upload_credits : int
        Legacy single-upload credits.
    subscription_status : str | None
        Mirrors the Stripe subscription status.
    subscription_end_date : datetime | None
        End of the current billing period.
    """

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, unique=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    upload_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_status: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class TokenPurchase(declarativeBase):
    """ORM model for the `token_purchases` table."""

    __tablename__ = "token_purchases"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True, unique=True)
    product_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    tokens_purchased: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="completed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class UserTokens(declarativeBase):
    """
    ORM model for the `user_tokens` table (the token ledger).

    Attributes
    ----------
    user_id : UUID
        Primary key.
    tokens_available : int
        Spendable tokens.
    tokens_used : int
        Tokens consumed so far.
    """

    __tablename__ = "user_tokens"

    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    tokens_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        self.tokens_available = 0
        self.tokens_used = 0
        self.updated_at = utcnow()


class ProcessedWebhookEvent(declarativeBase):
    """
    ORM model for the `processed_webhook_events` table.

    The primary key is the Stripe event id, so a second insert for the same
    event violates the key and rolls its transaction back.
    """

    __tablename__ = "processed_webhook_events"
    __table_args__ = (UniqueConstraint("event_id", name="uq_processed_webhook_events_event_id"),)

    event_id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    event_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    user_id: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True, index=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __init__(self, event_id: str, event_type: str, user_id: Optional[UUID] = None):
        self.event_id = event_id
        self.event_type = event_type
        self.user_id = user_id
        self.processed_at = utcnow()
