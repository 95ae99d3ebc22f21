from celery import Task
from celery.utils.log import get_task_logger

logger = get_task_logger(__name__)


class BaseTaskWithRetry(Task):
    """Base task class with retry logic."""
    max_retries = 1
    default_retry_delay = 60  # 1 minute

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Log task failure using Celery's task logger."""
        logger.error(
            "Task failed: %s (task_id: %s, task_args: %s, task_kwargs: %s)",
            str(exc),
            task_id,
            args,
            kwargs,
            exc_info=exc
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)
