import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class DeferredTaskRunner:
    """
    In-process fire-and-forget runner.

    Submitted coroutines start once the submitting coroutine yields. The runner
    holds a strong reference to every task until it finishes, logs failures
    and lets tests or shutdown wait for everything with `drain()`.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Deferred task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Deferred task {task.get_name()} failed: {exc}", exc_info=exc)

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for every submitted task, including ones submitted while waiting. False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                logger.warning(f"Timed out draining {len(self._tasks)} deferred tasks")
                return False
            await asyncio.wait(set(self._tasks), timeout=remaining)
        return True


class InlineModerationScheduler:
    """Runs post analysis on the in-process runner."""

    def __init__(self, runner: DeferredTaskRunner):
        self.runner = runner

    def schedule(self, pipeline, post_id: str, content: str, media_url: str) -> None:
        self.runner.submit(pipeline.analyze_and_store(post_id, content, media_url), name=f"moderation:{post_id}")


class CeleryModerationScheduler:
    """Hands post analysis to the Celery worker; the worker runs the same pipeline code."""

    task_name = "moderation.analyze_and_store"

    def __init__(self, celery_app=None):
        if celery_app is None:
            from app.tasks.celery_app import celery_app
        self.celery_app = celery_app

    def schedule(self, pipeline, post_id: str, content: str, media_url: str) -> None:
        self.celery_app.send_task(self.task_name, args=[post_id, content, media_url])
        logger.info(f"Queued {self.task_name} for post {post_id}")
