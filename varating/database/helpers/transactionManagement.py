"""
Database Transaction Management
===============================

Utilities for managing SQLAlchemy sessions through a context variable and a
decorator-based transaction wrapper.

A session opened by the outermost ``@transactional`` call is propagated to every
nested ``@transactional`` call made while it is active, so a webhook handler
that credits tokens, records an order and marks the event processed commits
(or rolls back) all of it as one unit.

Key features
~~~~~~~~~~~~
- Context variable holding the active session
- Implicit reuse of an existing session
- Flush + commit on success, rollback on failure
- Session closed and context cleared on exit
"""

from functools import wraps
from sqlalchemy.orm import sessionmaker
import contextvars
from varating.database.config.connection_engine import connection_engine

db_session_context = contextvars.ContextVar("db_session_context", default=None)
"""Context variable storing the active SQLAlchemy session."""

SessionFactory = sessionmaker(bind=connection_engine)
"""Session factory bound to the application engine."""


def transactional(func):
    """
    Decorator to wrap functions in a managed SQLAlchemy transaction.

    Ensures that:
    - If a session already exists in context, it is reused.
    - Otherwise, a new session is created, committed, and closed.
    - On errors, the session is rolled back and closed.

    Parameters
    ----------
    func : callable
        The function to wrap. It must accept a `session` keyword argument.

    Returns
    -------
    callable
        The wrapped function, executed within a database transaction.

    Example
    -------
    >>> @transactional
    ... def create_profile(session, profile):
    ...     session.add(profile)
    ...     return {"res": True}
    """
    @wraps(func)
    def wrap_func(*args, **kwargs):
        session = db_session_context.get()
        if session:
            return func(*args, session=session, **kwargs)

        session = SessionFactory()
        token = db_session_context.set(session)

        try:
            result = func(*args, session=session, **kwargs)
            session.flush()
            session.commit()
        except Exception as e:
            session.rollback()
            raise e
        finally:
            session.close()
            db_session_context.reset(token)

        return result

    return wrap_func
