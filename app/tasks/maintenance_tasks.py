import asyncio

from celery.utils.log import get_task_logger

from app.tasks.base import BaseTaskWithRetry
from app.tasks.celery_app import celery_app
from app.tasks.utils import run_purge_expired_stories, run_resume_accepted_requests

logger = get_task_logger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTaskWithRetry,
    name="maintenance.resume_accepted_requests"
)
def resume_accepted_requests(self, limit: int = 100) -> dict:
    """Finish accepts whose friendship rows or pending marks were left behind."""
    try:
        repaired = asyncio.run(run_resume_accepted_requests(limit))
    except Exception as exc:
        logger.error(f"Resume of accepted requests failed: {exc}")
        raise self.retry(exc=exc)
    return {"status": "success", "repaired": repaired}


@celery_app.task(
    bind=True,
    base=BaseTaskWithRetry,
    name="maintenance.purge_expired_stories"
)
def purge_expired_stories(self) -> dict:
    removed = asyncio.run(run_purge_expired_stories())
    logger.info(f"Removed {removed} expired stories")
    return {"status": "success", "removed": removed}
