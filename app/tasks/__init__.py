from app.tasks.celery_app import celery_app
from app.tasks.moderation_tasks import analyze_and_store, backfill_pending
from app.tasks.maintenance_tasks import purge_expired_stories, resume_accepted_requests

__all__ = [
    "celery_app",
    "analyze_and_store",
    "backfill_pending",
    "purge_expired_stories",
    "resume_accepted_requests"
]
