"""
AdminActivityLog ORM Model
==========================

Audit trail of privileged actions (currently user impersonation).
"""

from varating.database.config.connection_engine import declarativeBase
from varating.database.helpers.columns import JSONDocument, utcnow
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional
import uuid


class AdminActivityLog(declarativeBase):
    """
    ORM model for the `admin_activity_log` table.

    Attributes
    ----------
    admin_id : UUID
        Administrator who performed the action.
    action : str
        Action name, e.g. "impersonate_user".
    target_user_id : UUID | None
        User the action was performed on.
    details : dict | None
        Free-form context.
    """

    __tablename__ = "admin_activity_log"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(TEXT, nullable=False)
    target_user_id: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True, index=True)
    details: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __init__(self, admin_id: UUID, action: str, target_user_id: Optional[UUID] = None, details: Optional[dict] = None):
        self.id = uuid.uuid4()
        self.admin_id = admin_id
        self.action = action
        self.target_user_id = target_user_id
        self.details = details
        self.created_at = utcnow()
