"""
The `database` package is responsible for all interactions with the application's database.

Contents:
    - config:
        Settings (pydantic-settings) and the SQLAlchemy engine, metadata and
        declarative base.

    - entities:
        SQLAlchemy entity models for profiles, billing, tokens, documents,
        conditions, upload sessions and admin activity.

    - daos:
        Data Access Objects holding the queries for those entities.

    - core:
        Service-layer functions used by the routers and Lambda handlers.
        They return ``{'res', 'detail', 'status_code'}`` dicts for expected
        failures and raise on unexpected ones.

    - helpers:
        Transaction management and shared column helpers.
"""
