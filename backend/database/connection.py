"""
Database Connection Management
Async SQLite connection using aiosqlite
"""
from typing import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from loguru import logger

from .models import Base
from config import settings

# Async engine
_engine = None
_session_factory = None


def get_engine():
    """Get or create async engine"""
    global _engine
    if _engine is None:
        db_url = settings.DATABASE_URL
        engine_kwargs = {"echo": False}
        if db_url.startswith("sqlite"):
            if ":memory:" not in db_url:
                # Ensure data directory exists
                settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            engine_kwargs["poolclass"] = StaticPool

        logger.info(f"Creating database engine: {db_url}")

        _engine = create_async_engine(db_url, **engine_kwargs)
    return _engine


def get_session_factory():
    """Get or create session factory"""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def init_db():
    """Initialize database - create tables if not exist"""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized successfully")

    # Seed the default glossary categories
    await init_default_categories()


async def close_db():
    """Close database connection"""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connection closed")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session as async context manager"""
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            await session.close()


async def init_default_categories():
    """Create the configured default categories if they don't exist"""
    from .repository import GlossaryCategoryRepository

    async with get_db() as session:
        repo = GlossaryCategoryRepository(session)
        created = 0
        for name in settings.DEFAULT_CATEGORIES:
            if not await repo.get_by_name(name):
                await repo.create(name)
                created += 1
        if created:
            logger.info(f"Seeded {created} default glossary categories")
