# ABOUTME: Engine and unit-of-work handling for the subscription database.
# ABOUTME: One session per request or CLI command, committed as a single transaction.

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from newsletter_service.config import Settings, get_settings
from newsletter_service.db.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

_engine: "AsyncEngine | None" = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(settings: Settings) -> dict[str, Any]:
    # SQLite (tests, local dev) has no connection pool to size
    options: dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if settings.database_url.startswith("postgresql"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_pool_max_overflow,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> "AsyncEngine":
    """Return the process-wide engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **_engine_options(settings))
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        # Rows stay readable after commit so responses can be built from them
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession]:
    """Open a unit of work for one subscription operation.

    Everything done through the session commits together on a clean exit.
    Any exception, including cancellation from a request deadline, rolls it
    all back: a consumed token never outlives a failed status change.

        async with get_session() as session:
            tokens = SubscriptionTokenRepository(session)
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """Request-scoped session; the services in web.dependencies are built on it."""
    async with get_session() as session:
        yield session


async def init_db() -> None:
    """Create the subscription tables if missing.

    Runs at app startup and from the ``init-db`` command. Schema changes on
    Postgres go through ``alembic upgrade head``.
    """
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine so the next get_engine() starts fresh."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
