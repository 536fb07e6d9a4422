"""
Profile ORM Model
=================

The ``Profile`` model mirrors a Supabase Auth user inside the application
schema. It maps to the ``profiles`` table; its primary key is the auth user id.

Key features
~~~~~~~~~~~~
- PostgreSQL-native UUID primary key shared with ``auth.users``
- Contact data used for billing and notification emails
- Role (``veteran`` by default) and optional admin level (``super_admin`` etc.)
- Opt-in flag for condition-update emails
"""

from varating.database.config.connection_engine import declarativeBase
from varating.database.helpers.columns import utcnow
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import VARCHAR, Boolean, TEXT, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional


class Profile(declarativeBase):
    """
    ORM model for the `profiles` table.

    Attributes
    ----------
    id : UUID
        Primary key, equal to the Supabase auth user id.
    email : str
        Email address of the user.
    full_name : str | None
        Display name used in emails.
    role : str
        Application role (default "veteran").
    admin_level : str | None
        Administrative level, e.g. "super_admin".
    email_notifications_enabled : bool
        Whether condition-update emails may be sent.
    created_at : datetime
        Creation timestamp (UTC).
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    """Primary key. UUID of the auth user."""

    email: Mapped[str] = mapped_column(VARCHAR(255), nullable=False)
    """Email address of the user (max length 255)."""

    full_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    """Full name of the user."""

    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="veteran")
    """Application role."""

    admin_level: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    """Administrative level (None for regular users)."""

    email_notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    """Opt-in flag for notification emails."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    """Datetime when the profile was created."""

    def __init__(
        self,
        id: UUID,
        email: str,
        full_name: Optional[str] = None,
        role: str = "veteran",
        admin_level: Optional[str] = None,
        email_notifications_enabled: bool = True,
    ):
        """
        Initialize a new Profile object.

        Parameters
        ----------
        id : UUID
            Auth user id.
        email : str
            Email address of the user.
        full_name : str, optional
            Display name.
        role : str, optional
            Application role, "veteran" by default.
        admin_level : str, optional
            Administrative level.
        email_notifications_enabled : bool, optional
            Notification opt-in, True by default.
        """
        self.id = id
        self.email = email
        self.full_name = full_name
        self.role = role
        self.admin_level = admin_level
        self.email_notifications_enabled = email_notifications_enabled
        self.created_at = utcnow()

    def __str__(self) -> str:
        return f"Profile: id:{self.id}, email: {self.email}, role: {self.role}"
