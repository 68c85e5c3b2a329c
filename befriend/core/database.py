from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from befriend.core.config import settings

Base = declarative_base()


def make_engine(url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Async engine for url, defaulting to the configured database.

    Pooling is off unless a poolclass is passed.
    """
    kwargs.setdefault("echo", settings.DEBUG)
    kwargs.setdefault("poolclass", NullPool)
    return create_async_engine(url or settings.DATABASE_URL, **kwargs)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Repositories read attributes after commit, so keep them loaded
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


engine = make_engine()
AsyncSessionLocal = make_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session per unit of work: committed on success, rolled back on error"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables registered on Base"""
    # Register models on the metadata before create_all
    import befriend.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind: Optional[AsyncEngine] = None) -> None:
    """Drop all tables registered on Base"""
    import befriend.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
