"""
Condition ORM Models
====================

Results of the condition extractor.

- ``UserCondition`` (``user_conditions``): one row per user and condition name,
  upserted every time a document mentions the condition.
- ``DisabilityEstimate`` (``disability_estimates``): per-document estimate,
  unique on ``(user_id, document_id, condition)``.
- ``ConditionUpdate`` (``condition_updates``): outbox of "new conditions found"
  notifications, drained by the notification job.
"""

from varating.database.config.connection_engine import declarativeBase
from varating.database.helpers.columns import JSONDocument, utcnow
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Boolean, DateTime, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional
import uuid


class UserCondition(declarativeBase):
    """
    ORM model for the `user_conditions` table.

    Attributes
    ----------
    name : str
        Condition name as reported by the agent.
    summary : str | None
        Merged document excerpts.
    body_system : str
        Rating-schedule body system ("general" when unknown).
    keywords : list[str]
        Keywords used for the CFR lookup.
    rating : int | None
        Estimated rating percentage.
    cfr_criteria : str | None
        Citation returned by the agent.
    cfr_link : str | None
        eCFR URL of the best matching section.
    """

    __tablename__ = "user_conditions"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_user_conditions_user_name"),)

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    body_system: Mapped[str] = mapped_column(TEXT, nullable=False, default="general")
    keywords: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cfr_criteria: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    cfr_link: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __str__(self) -> str:
        return f"UserCondition: user_id:{self.user_id}, name: {self.name}, rating: {self.rating}"


class DisabilityEstimate(declarativeBase):
    """ORM model for the `disability_estimates` table."""

    __tablename__ = "disability_estimates"
    __table_args__ = (
        UniqueConstraint("user_id", "document_id", "condition", name="uq_disability_estimates_user_doc_condition"),
    )

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    document_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    condition: Mapped[str] = mapped_column(TEXT, nullable=False)
    condition_display: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    estimated_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    combined_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cfr_criteria: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    excerpt: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    matched_keywords: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    severity: Mapped[str] = mapped_column(TEXT, nullable=False, default="mild")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ConditionUpdate(declarativeBase):
    """
    ORM model for the `condition_updates` table.

    Attributes
    ----------
    conditions : list[str]
        Names of the conditions found in the document.
    notification_sent : bool
        Set once the user has been emailed about this row.
    """

    __tablename__ = "condition_updates"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    document_id: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True)
    conditions: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    conditions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __init__(self, user_id: UUID, document_id: Optional[UUID], conditions: list):
        self.id = uuid.uuid4()
        self.user_id = user_id
        self.document_id = document_id
        self.conditions = list(conditions)
        self.conditions_count = len(conditions)
        self.notification_sent = False
        self.created_at = utcnow()
