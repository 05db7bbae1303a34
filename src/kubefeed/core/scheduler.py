import asyncio
import logging
from typing import Callable, Coroutine, List

from .config import parse_duration_seconds

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Runs the feeder's periodic passes as asyncio tasks. Each job is awaited to
    completion before its interval starts again, so passes of one job never overlap.
    """

    def __init__(self):
        self.tasks: List[asyncio.Task] = []

    async def _run_periodically(self, interval_seconds: int, job_func: Callable[[], Coroutine], name: str):
        try:
            while True:
                try:
                    await job_func()
                except Exception as e:
                    logger.error(f"Error in scheduled job '{name}': {e}", exc_info=True)

                await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info(f"Job '{name}' cancelled.")
            raise

    def add_job(self, job_func: Callable[[], Coroutine], interval_seconds: int, name: str = None) -> asyncio.Task:
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive, got {interval_seconds}.")
        name = name or getattr(job_func, "__name__", "job")
        task = asyncio.create_task(self._run_periodically(interval_seconds, job_func, name))
        self.tasks.append(task)
        logger.info(f"Scheduled job '{name}' to run every {interval_seconds}s.")
        return task

    def add_job_from_string(self, job_func: Callable[[], Coroutine], interval_str: str, name: str = None):
        """
        Adds a job based on a Prometheus-style duration string like '1m' or '10m'.
        """
        return self.add_job(job_func, parse_duration_seconds(interval_str), name=name)

    async def stop(self):
        """Cancels all scheduled tasks."""
        logger.info("Stopping scheduler...")
        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()
