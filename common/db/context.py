"""
Database session context.

Repositories never own a session. They ask `common.db.scoped.get_session()`,
which reuses the session bound to the current task by `transaction()` or
opens a short-lived one. The bindings live in ContextVars so that concurrent
requests on one event loop never share a session.
"""

from contextvars import ContextVar
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)
_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """Session bound by an enclosing transaction(), if any."""
    if readonly:
        return _read_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> object:
    """Bind session to the current context. Returns the reset token."""
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: object, readonly: bool = False) -> None:
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)
