from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "feed_backend",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,  # Using Redis as result backend
    include=["app.tasks.moderation_tasks", "app.tasks.maintenance_tasks"]
)

# Celery Configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    worker_max_tasks_per_child=100,  # Restart worker after 100 tasks
    worker_prefetch_multiplier=1,  # One task per worker
)

celery_app.conf.task_routes = {
    "moderation.*": {"queue": "moderation"},
    "maintenance.*": {"queue": "maintenance"},
}

celery_app.conf.beat_schedule = {
    "resume-accepted-requests": {
        "task": "maintenance.resume_accepted_requests",
        "schedule": crontab(minute="*/5"),
    },
    "purge-expired-stories": {
        "task": "maintenance.purge_expired_stories",
        "schedule": crontab(minute=0),
    },
    "backfill-pending-posts": {
        "task": "moderation.backfill_pending",
        "schedule": crontab(minute="*/10"),
    },
}

# Retry policy
celery_app.conf.task_default_retry_delay = 60  # 1 minute
celery_app.conf.task_max_retries = 1  # Retry once
