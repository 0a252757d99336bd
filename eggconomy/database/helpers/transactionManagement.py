"""
Database Transaction Management
===============================

This module provides utilities for managing async SQLAlchemy sessions
using Python context variables and a decorator-based transaction wrapper.

It allows a session to propagate across coroutine calls without explicitly
threading it through arguments. Store methods decorated with
``@transactional`` run inside a managed transaction.

Key features
~~~~~~~~~~~~
- Context variable to store the active session
- Implicit reuse of existing sessions
- Automatic commit and rollback handling
- Clean session closure after execution
- Decorator pattern for method-level transaction management

The decorated method's owner must expose a ``session_factory``
(an ``async_sessionmaker``).
"""

import contextvars
from functools import wraps

# --------------------------------------------------------------------
# Context variable to store the current database session.
# --------------------------------------------------------------------
db_session_context = contextvars.ContextVar("db_session_context", default=None)
"""Context variable storing the active SQLAlchemy AsyncSession."""


def transactional(func):
    """
    Decorator to wrap async store methods in a managed SQLAlchemy transaction.

    Ensures that:
    - If a session already exists in context, it is reused.
    - Otherwise, a new session is created from ``self.session_factory``,
      committed, and closed.
    - On errors, the session is rolled back and closed.

    Parameters
    ----------
    func : coroutine function
        The method to wrap. It must accept a `session` keyword argument.

    Returns
    -------
    coroutine function
        The wrapped method, executed within a database transaction.

    Example
    -------
    >>> class Store:
    ...     @transactional
    ...     async def insert(self, entity, record, session=None):
    ...         session.add(...)
    """
    @wraps(func)
    async def wrap_func(self, *args, **kwargs):
        session = db_session_context.get()
        if session:
            return await func(self, *args, session=session, **kwargs)

        session = self.session_factory()
        token = db_session_context.set(session)

        try:
            result = await func(self, *args, session=session, **kwargs)
            await session.flush()
            await session.commit()
        except Exception as e:
            await session.rollback()
            raise e
        finally:
            await session.close()
            db_session_context.reset(token)

        return result

    return wrap_func
