import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.pool import NullPool

from app.config import settings
from app.database import make_engine, make_session_factory
from app.dependencies import ServiceContainer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def task_container() -> AsyncIterator[ServiceContainer]:
    """
    Services bound to a fresh engine for one task run.

    Each task calls asyncio.run, so pooled connections from a previous event
    loop cannot be reused; NullPool opens and closes them per session.
    """
    engine = make_engine(settings.sqlalchemy_database_url, poolclass=NullPool)
    try:
        yield ServiceContainer(make_session_factory(engine))
    finally:
        await engine.dispose()
        logger.debug("Task database engine disposed")


async def run_analyze_and_store(post_id: str, content: str, media_url: str):
    async with task_container() as container:
        return await container.moderation.analyze_and_store(post_id, content, media_url)


async def run_backfill_pending(limit: int) -> int:
    async with task_container() as container:
        return await container.moderation.backfill_pending(limit)


async def run_resume_accepted_requests(limit: int) -> int:
    async with task_container() as container:
        return await container.relationships.resume_accepted_requests(limit)


async def run_purge_expired_stories() -> int:
    async with task_container() as container:
        return await container.stories.purge_expired()
