"""
Async database setup with SQLAlchemy and aiosqlite.
"""
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy import text

from speechtask.config import DATABASE_URL, ensure_directories
from speechtask.errors import PersistenceError
from speechtask.models import Base


# Create async engine
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)


# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def enable_wal_mode(db_engine: AsyncEngine = engine):
    """Enable WAL mode for SQLite concurrent read/write access."""
    if db_engine.dialect.name != 'sqlite':
        return
    async with db_engine.begin() as conn:
        await conn.execute(text('PRAGMA journal_mode=WAL'))
        await conn.execute(text('PRAGMA synchronous=NORMAL'))


async def init_db(db_engine: AsyncEngine = engine):
    """Initialize database - create tables if they don't exist."""
    ensure_directories()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Enable WAL mode after tables are created
    await enable_wal_mode(db_engine)


async def close_db(db_engine: AsyncEngine = engine):
    """Close database connections."""
    await db_engine.dispose()


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker = async_session_factory):
    """
    Provide a session that rolls back on error.

    Database failures surface as PersistenceError so callers never see
    driver-specific exceptions.
    """
    try:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
    except SQLAlchemyError as e:
        raise PersistenceError(f'Database error: {e}') from e
