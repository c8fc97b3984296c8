"""
Database connection and session management.
Uses SQLAlchemy 2.0 async pattern.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cfplanner.config import get_settings

settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with per-backend options."""
    if database_url.startswith("sqlite"):
        # NullPool: every session gets its own connection
        engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode + foreign keys on every new SQLite connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url, echo=settings.debug)
async_session_maker = build_session_maker(engine)


async def init_db(target: AsyncEngine = engine) -> None:
    """Create tables for all registered models."""
    from cfplanner.kernel.models import Base

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
