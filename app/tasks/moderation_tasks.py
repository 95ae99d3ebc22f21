import asyncio
from typing import Optional

from celery.utils.log import get_task_logger

from app.config import settings
from app.tasks.base import BaseTaskWithRetry
from app.tasks.celery_app import celery_app
from app.tasks.utils import run_analyze_and_store, run_backfill_pending

logger = get_task_logger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTaskWithRetry,
    name="moderation.analyze_and_store"
)
def analyze_and_store(self, post_id: str, content: str, media_url: str = "") -> dict:
    """
    Analyse a freshly created post and write the verdict back.
    Classifier failures leave the post Pending with an error note.
    """
    logger.info("Starting moderation", extra={"post_id": post_id})

    verdict = asyncio.run(run_analyze_and_store(post_id, content, media_url))

    if verdict is None:
        return {"status": "skipped", "post_id": post_id}
    return {
        "status": "error" if verdict.error else "success",
        "post_id": post_id,
        "tag": verdict.tag.value,
    }


@celery_app.task(
    bind=True,
    base=BaseTaskWithRetry,
    name="moderation.backfill_pending"
)
def backfill_pending(self, limit: Optional[int] = None) -> dict:
    """Re-run analysis for posts that are still Pending."""
    attempted = asyncio.run(run_backfill_pending(limit or settings.moderation_backfill_limit))
    logger.info("Backfill finished", extra={"attempted": attempted})
    return {"status": "success", "attempted": attempted}
