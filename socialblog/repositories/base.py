"""
Base repository class with shared utilities.
"""
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from opentelemetry import trace
from sqlalchemy import CursorResult, Insert, insert
from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from socialblog.exceptions import BlogError, RepositoryError, StorageConnectionError
from socialblog.invalidation import ViewInvalidator
from socialblog.telemetry import REPOSITORY_ERRORS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")


class BaseRepository:
    """
    Base class for all repositories.

    Holds the request-scoped session and the view invalidator that mutating
    operations notify once their writes are flushed.
    """

    def __init__(self, session: AsyncSession, invalidator: ViewInvalidator) -> None:
        self._session = session
        self._invalidator = invalidator

    @property
    def session(self) -> AsyncSession:
        """Expose the underlying session for transaction management."""
        return self._session

    async def _invalidate(self, *paths: str) -> None:
        await self._invalidator.invalidate(*paths)


def insert_ignore_stmt(model: type, **values: Any) -> Insert:
    """INSERT that skips rows colliding with an existing primary key.

    Compiles to ``INSERT IGNORE`` on MySQL/TiDB and ``INSERT OR IGNORE`` on
    SQLite.
    """
    return (
        insert(model)
        .values(**values)
        .prefix_with("IGNORE", dialect="mysql")
        .prefix_with("OR IGNORE", dialect="sqlite")
    )


async def insert_ignore(session: AsyncSession, model: type, **values: Any) -> bool:
    """Insert one edge row; returns False when it already existed."""
    result: CursorResult[Any] = await session.execute(  # type: ignore[assignment]
        insert_ignore_stmt(model, **values)
    )
    return bool(result.rowcount)


def _is_connection_failure(exc: BaseException) -> bool:
    if isinstance(exc, (DisconnectionError, OSError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def storage_errors(
    message: str, code: str
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Run a repository coroutine inside a span and translate its failures.

    Domain errors pass through unchanged. Storage failures are logged and
    re-raised as StorageConnectionError (store unreachable) or
    RepositoryError carrying ``code``.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            with tracer.start_as_current_span(func.__name__):
                try:
                    return await func(*args, **kwargs)
                except BlogError:
                    raise
                except (SQLAlchemyError, OSError) as exc:
                    logger.error("%s: %s", message, exc)
                    if _is_connection_failure(exc):
                        REPOSITORY_ERRORS_TOTAL.labels(
                            code=StorageConnectionError.default_code
                        ).inc()
                        raise StorageConnectionError(
                            "Failed to connect to database", original=exc
                        ) from exc
                    REPOSITORY_ERRORS_TOTAL.labels(code=code).inc()
                    raise RepositoryError(message, code=code, original=exc) from exc

        return wrapper

    return decorator


__all__ = ["BaseRepository", "insert_ignore", "insert_ignore_stmt", "storage_errors"]
