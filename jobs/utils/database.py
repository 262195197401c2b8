"""
Database access for background tasks.

Worker threads each run their own event loop (see ``jobs.async_runner``),
so tasks use an engine without a connection pool instead of the shared
application engine.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.config.settings import settings
from mlm_engine.services.config_service import ConfigService


task_engine = create_async_engine(settings.database_url, echo=False, poolclass=NullPool)
task_session_maker = async_sessionmaker(
    bind=task_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def task_session() -> AsyncIterator[AsyncSession]:
    """Session for one task run."""
    async with task_session_maker() as session:
        yield session


@asynccontextmanager
async def task_context() -> AsyncIterator[tuple[AsyncSession, ConfigSnapshot]]:
    """
    Session plus the admin config snapshot for one task run.

    The snapshot is read once, so a long batch never mixes two versions of
    the configuration.
    """
    async with task_session_maker() as session:
        config = await ConfigService(session).get_snapshot()
        yield session, config
