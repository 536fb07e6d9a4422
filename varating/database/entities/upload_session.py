"""
UploadSession ORM Model
=======================

Short-lived server record tracking the progress of a multi-file upload.

``version`` is registered as the mapper's ``version_id_col``: every UPDATE is
issued as ``... WHERE id = :id AND version = :expected`` and raises
``StaleDataError`` when another writer got there first.
"""

from varating.database.config.connection_engine import declarativeBase
from varating.database.helpers.columns import JSONDocument, utcnow
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime, timedelta
import uuid


class UploadSession(declarativeBase):
    """
    ORM model for the `upload_sessions` table.

    Attributes
    ----------
    id : UUID
        Session id handed to the client.
    user_id : UUID
        Creator; the only user allowed to see the session.
    files : list[dict]
        Client-supplied file metadata.
    progress : int
        Upload progress, 0..100.
    audit_log : list[dict]
        Append-only list of ``{timestamp, action, userId, ...}`` entries.
    version : int
        Optimistic-concurrency counter.
    expires_at : datetime
        After this instant the session can no longer be updated.
    """

    __tablename__ = "upload_sessions"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    files: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    audit_log: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, user_id: UUID, files: list, ttl_minutes: int):
        now = utcnow()
        self.id = uuid.uuid4()
        self.user_id = user_id
        self.files = files
        self.progress = 0
        self.audit_log = [{"timestamp": now.isoformat(), "action": "created", "userId": str(user_id)}]
        self.created_at = now
        self.updated_at = now
        self.expires_at = now + timedelta(minutes=ttl_minutes)

    def __str__(self) -> str:
        return f"UploadSession: id:{self.id}, user_id: {self.user_id}, progress: {self.progress}"
