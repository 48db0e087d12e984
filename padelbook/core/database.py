"""Async database engine, session management and the write-transaction runner.

Every admission or mutation runs through run_in_transaction(): the validation
reads and the writes share one transaction, and transient store failures are
retried on a rolled-back session before surfacing as InfrastructureError.
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from padelbook.core.config import settings
from padelbook.core.errors import BookingError, Conflict, InfrastructureError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATEs worth retrying: serialization failure, deadlock detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_timeout=settings.database_pool_timeout_seconds,
    pool_pre_ping=True,
    connect_args={"command_timeout": settings.database_command_timeout_seconds},
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session. Used as a FastAPI dependency."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def is_transient(exc: BaseException) -> bool:
    """True for store failures that a fresh transaction may not hit again."""
    if isinstance(exc, TimeoutError | OperationalError):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        orig = exc.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        return code in _RETRYABLE_SQLSTATES
    return False


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
) -> T:
    """Run operation() and commit, all-or-nothing.

    Domain errors roll back and propagate untouched. A unique-index violation
    at flush/commit time means a concurrent writer took the same court slot
    and is reported as Conflict. Transient failures are retried up to
    `attempts` times, then reported as InfrastructureError.
    """
    attempts = attempts or settings.transaction_attempts
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            await db.commit()
            return result
        except BookingError:
            await db.rollback()
            raise
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("Integrity violation on commit, reporting conflict: %s", exc.orig)
            raise Conflict() from exc
        except (DBAPIError, TimeoutError) as exc:
            await db.rollback()
            if not is_transient(exc):
                raise
            last_error = exc
            logger.warning("Transient store failure (attempt %s/%s): %s", attempt, attempts, exc)

    raise InfrastructureError() from last_error
