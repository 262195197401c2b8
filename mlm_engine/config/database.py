"""
Database configuration.

Async SQLAlchemy engine and session factory for the process that hosts the
callables. Background tasks use their own engine, see ``jobs.utils``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mlm_engine.config.settings import settings


async_engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)
