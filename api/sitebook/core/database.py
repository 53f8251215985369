"""Async database engine and session management.

PostgreSQL (asyncpg) in deployment, SQLite (aiosqlite) for tests and local runs.
Every mutating service operation wraps its work in ``unit_of_work``, which
commits on success and rolls back on any exception.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sitebook.core.config import settings

_is_sqlite = settings.database_url.startswith("sqlite")

engine_kwargs: dict = {"echo": settings.database_echo, "pool_pre_ping": True}
if not _is_sqlite:
    engine_kwargs.update(pool_size=20, max_overflow=10)

engine = create_async_engine(settings.database_url, **engine_kwargs)

if _is_sqlite:

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


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


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Commit everything done inside the block, or roll it all back."""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
