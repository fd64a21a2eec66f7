"""
Background Scheduler
====================

Thin wrapper around APScheduler's AsyncIOScheduler for the periodic jobs
(SLA sweep, badge poll). Each job runs at most one instance at a time; a
run that is still busy when the next tick fires makes that tick skip.
"""

from typing import Awaitable, Callable, List, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from supportdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

JobFunc = Callable[[], Awaitable[None]]


class JobScheduler:
    """
    Manages the lifecycle of the scheduler and its interval jobs.

    Jobs are registered before `start()`; an interval of 0 leaves the job
    out.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: List[Tuple[str, str, JobFunc, int]] = []
        self._running = False

    def add_interval_job(self, job_id: str, name: str, func: JobFunc, seconds: int) -> None:
        if seconds <= 0:
            logger.info("Job disabled", extra={"job_id": job_id})
            return
        self._jobs.append((job_id, name, func, seconds))

    async def start(self) -> None:
        """Start the scheduler with the registered jobs."""
        if self._running:
            logger.warning("Scheduler already running")
            return
        if not self._jobs:
            logger.info("No background jobs registered, scheduler not started")
            return

        self._scheduler = AsyncIOScheduler()

        for job_id, name, func, seconds in self._jobs:
            self._scheduler.add_job(
                func,
                "interval",
                seconds=seconds,
                id=job_id,
                name=name,
                misfire_grace_time=seconds,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Scheduler started",
            extra={"jobs": {job_id: seconds for job_id, _, _, seconds in self._jobs}}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
