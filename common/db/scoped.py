"""
Operation-scoped database sessions.

Sessions are acquired lazily and released as soon as the operation (or the
enclosing transaction) finishes, so no connection is held while waiting on
Redis, RabbitMQ or the billing provider.

    # Single operation - acquires and releases immediately
    async with get_session() as session:
        result = await session.get(MeetingEntity, meeting_id)

    # Check-and-write that must commit together
    async with transaction():
        decision = await evaluator.can_start_meeting(user_id)
        meeting = await meeting_repo.create_open_meeting(user_id)

Store failures that are worth retrying (connection drops, pool exhaustion,
statement or command timeouts) surface as TransientStoreError.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.exceptions import TransientStoreError
from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
)

logger = get_logger(__name__)


def is_transient_error(error: BaseException) -> bool:
    """True for store failures that a caller may retry with backoff."""
    if isinstance(error, (sa_exc.OperationalError, sa_exc.TimeoutError, TimeoutError)):
        return True
    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return True
    return False


def _translate(error: Exception) -> Exception:
    if is_transient_error(error):
        return TransientStoreError(f"Transient store failure: {type(error).__name__}")
    return error


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session, and a nested transaction()
    joins it. Commits on success (unless readonly), rolls back on exception.

    Raises:
        TransientStoreError: connection or timeout failure, safe to retry
    """
    existing = get_current_session(readonly=readonly)
    if existing:
        # Nested boundary joins the outer transaction
        yield existing
        return

    session_factory = AsyncSessionLocalReadonly if readonly else AsyncSessionLocal

    start = time.perf_counter()
    async with session_factory() as session:
        logger.debug(
            f"Transaction session acquire: {(time.perf_counter() - start) * 1000:.2f}ms, readonly={readonly}"
        )

        token = set_current_session(session, readonly=readonly)
        try:
            yield session
            if not readonly:
                await session.commit()
        except Exception as e:
            logger.warning(f"Transaction rollback due to: {type(e).__name__}: {e}")
            await session.rollback()
            translated = _translate(e)
            if translated is e:
                raise
            raise translated from e
        finally:
            reset_current_session(token, readonly=readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session of an enclosing transaction(); otherwise acquires a
    new one, commits and releases it when the block exits.
    """
    existing = get_current_session(readonly=readonly)

    if existing:
        # Inside a transaction - the transaction owns commit/rollback
        yield existing
        return

    session_factory = AsyncSessionLocalReadonly if readonly else AsyncSessionLocal
    async with session_factory() as session:
        try:
            yield session
            if not readonly:
                await session.commit()
        except Exception as e:
            logger.warning(f"Operation rollback due to: {type(e).__name__}: {e}")
            await session.rollback()
            translated = _translate(e)
            if translated is e:
                raise
            raise translated from e
