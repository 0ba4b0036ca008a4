# backend/libs/db.py
from typing import Optional
from urllib.parse import quote_plus

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from libs.config import Config


def build_database_url() -> str:
    """
    Return DATABASE_URL, or build it from the individual DATABASE_* variables.

    Kubernetes deployments set the components separately.
    """
    if Config.DATABASE_URL:
        return Config.DATABASE_URL

    # URL encode password if it contains special characters
    db_password_encoded = quote_plus(Config.DATABASE_PASSWORD) if Config.DATABASE_PASSWORD else ""

    return (
        f"postgresql+asyncpg://{Config.DATABASE_USER}:{db_password_encoded}"
        f"@{Config.DATABASE_HOST}:{Config.DATABASE_PORT}/{Config.DATABASE_NAME}"
    )


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            build_database_url(),
            echo=Config.DATABASE_ECHO,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get or create the session factory bound to the process-wide engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
