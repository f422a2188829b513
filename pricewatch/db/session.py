"""Async database engine and session factory configuration."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pricewatch.models.base import Base


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine suited to the database behind ``database_url``.

    In-memory SQLite shares a single connection so every session sees the
    same database.
    """
    # SQLite doesn't support pool_size / max_overflow / pool_pre_ping
    is_sqlite = database_url.startswith("sqlite")

    engine_kwargs: dict = {"echo": echo}
    if is_sqlite:
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+aiosqlite://"):
            engine_kwargs.update(poolclass=StaticPool)
    else:
        engine_kwargs.update(pool_size=20, max_overflow=10, pool_pre_ping=True)

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used by the SQL storage."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
