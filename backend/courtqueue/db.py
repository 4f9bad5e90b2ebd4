import os
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool, StaticPool


engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[sessionmaker] = None
Base = declarative_base()


def database_url() -> str:
    """Return ``DATABASE_URL`` rewritten for an async driver."""

    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL environment variable is required")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _engine_options(url: str) -> dict[str, Any]:
    if not url.startswith("sqlite+aiosqlite://"):
        return {"pool_pre_ping": True}
    if ":memory:" in url:
        # One shared connection, otherwise every checkout sees an empty database.
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {"poolclass": NullPool}


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first use.

    Nothing touches the database at import time, so tests and scripts can
    set ``DATABASE_URL`` before the first call.
    """

    global engine, AsyncSessionLocal

    if engine is None:
        url = database_url()
        engine = create_async_engine(url, echo=False, **_engine_options(url))
        AsyncSessionLocal = sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    return engine


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""

    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


async def get_session() -> AsyncSession:
    """Provide a database session for FastAPI dependencies.

    Routes commit explicitly once an operation succeeds. Anything left
    uncommitted when the request ends, including the partial work of an
    operation that raised, is rolled back when the session closes.
    """

    if AsyncSessionLocal is None:
        get_engine()

    assert AsyncSessionLocal is not None  # for type checkers
    async with AsyncSessionLocal() as session:
        yield session
