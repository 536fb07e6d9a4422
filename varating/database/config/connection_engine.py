"""
Connection Engine (SQLAlchemy)

Purpose
-------
Centralizes database initialization for the application:
- Builds the SQLAlchemy connection URL from environment-backed settings.
- Creates the Engine (connection pool + SQL execution entry point).
- Defines shared MetaData for table and schema objects.
- Exposes a Declarative Base class for ORM models.

Notes
-----
- `DB_URL` wins when set (tests point it at in-memory SQLite); otherwise the URL
  is assembled with `URL.create(...)` from the `DB_*` settings of the Supabase
  Postgres instance.
- In-memory SQLite gets a `StaticPool` so every session sees the same database.
- All ORM models must inherit from `declarativeBase`.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.schema import MetaData
from varating.database.config.config import settings


def build_connection_url():
    """
    Build the SQLAlchemy URL.

    Returns
    -------
    sqlalchemy.engine.URL
        `DB_URL` parsed as-is, or a URL assembled from the discrete settings.
    """
    if settings.DB_URL:
        return make_url(settings.DB_URL)
    return URL.create(
        drivername=settings.DB_DRIVER_NAME,
        username=settings.DB_USERNAME,
        password=settings.DB_PASSWORD,
        host=settings.DB_HOST,
        port=settings.DB_PORT,
        database=settings.DB_DATABASE_NAME,
    )


connection_url = build_connection_url()
"""SQLAlchemy connection URL built from Settings."""


def _engine_options(url) -> dict:
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


connection_engine = create_engine(connection_url, **_engine_options(connection_url))
"""Engine object: Core interface to the database.
Responsible for managing connections, executing SQL, and pooling.
"""

metadata = MetaData()
"""Stores schema-level information about tables, constraints, indexes. Shared across all models."""

declarativeBase = declarative_base(metadata=metadata)
"""Declarative Base: Root class for ORM models."""
