# backend/app/db/session.py
"""
Async database session management for SQLAlchemy.

- aiosqlite for SQLite (local development, tests)
- asyncpg for PostgreSQL (production), with connection pooling
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from backend.app.core.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create and configure an async SQLAlchemy engine for `url`.

    SQLite:
    - NullPool, a fresh connection per session
    - check_same_thread=False for async compatibility

    PostgreSQL:
    - pool_size=5 / max_overflow=10
    - pool_pre_ping=True to drop stale connections
    - pool_recycle=300 for hosts that close idle connections
    """
    if "sqlite" in url.lower():
        return create_async_engine(
            url,
            echo=echo,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        url,
        echo=echo,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: attributes stay readable after commit
    # autoflush=False: writes happen only when the store flushes/commits
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Global engine and session factory, created once at module load
# ─────────────────────────────────────────────────────────────────────────────
engine: AsyncEngine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

AsyncSessionLocal: async_sessionmaker[AsyncSession] = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for database sessions.

    Usage in FastAPI endpoints:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...

    This does NOT auto-commit; the account store commits its own updates.
    """
    async with AsyncSessionLocal() as session:
        yield session
