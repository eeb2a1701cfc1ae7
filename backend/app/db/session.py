from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def build_database_url(raw_url: str) -> str:
    # Convert postgresql:// to postgresql+asyncpg:// for async driver
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw_url


def create_engine_from_settings(url: Optional[str] = None) -> AsyncEngine:
    database_url = url or settings.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL is not configured")
    return create_async_engine(
        build_database_url(database_url),
        echo=settings.DATABASE_ECHO,
        future=True,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
