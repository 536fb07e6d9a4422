"""
The `helpers` package provides utilities shared by DAOs and services.

Contents
--------
- transactionManagement
    Context variable (`db_session_context`) propagating the active session,
    and the `@transactional` decorator:
        - Reuses an existing session if one is active in context
        - Creates, commits, and closes a new session otherwise
        - Rolls back the session on errors
- columns
    `utcnow()`, `as_utc()`, `iso()` and the `JSONDocument` column type.
"""
