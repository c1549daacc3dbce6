"""
Async SQLAlchemy engine + session factory for TiDB (MySQL-protocol).

TiDB is wire-compatible with MySQL 5.7, so we use the aiomysql driver.
The engine is created once at startup and reused across all requests.
A DATABASE_URL pointing at SQLite (aiosqlite) is accepted for local runs.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from taste_api.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 10}


engine = create_async_engine(
    settings.db_url,
    echo=False,
    **_engine_options(settings.db_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    # Register models on Base.metadata before create_all
    from taste_api import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
