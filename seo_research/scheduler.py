"""Maintenance scheduler built on APScheduler's asyncio scheduler."""

import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from seo_research.modules.orchestration.task_orchestrator import TaskOrchestrator
from seo_research.modules.summarization.job_queue import SummarizationJobQueue

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "task_sweep"
TASK_EVICTION_JOB_ID = "task_eviction"
JOB_EVICTION_JOB_ID = "summary_eviction"


class ResearchScheduler:
    """Wrapper around APScheduler for the orchestrator's background upkeep.

    Jobs run on the event loop that is current when :meth:`start` is
    called, so they share state with the orchestrator without locking.
    Jobs hold bound methods, which is why the job store is in memory.

    Usage::

        sched = ResearchScheduler()
        sched.register_maintenance(orchestrator, summaries)
        sched.start()
        sched.list_jobs()
        sched.stop()
    """

    def __init__(self, timezone: str = "UTC"):
        job_defaults = {
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        }
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults=job_defaults,
            timezone=timezone,
        )
        self._running = False
        logger.info("ResearchScheduler initialized (tz=%s)", timezone)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the scheduler on the running event loop."""
        if self._running:
            logger.warning("Scheduler is already running.")
            return
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started.")

    def stop(self, wait: bool = False) -> None:
        if not self._running:
            return
        self._scheduler.shutdown(wait=wait)
        self._running = False
        logger.info("Scheduler stopped.")

    def add_interval_job(
        self,
        job_id: str,
        func: Callable,
        seconds: float,
        kwargs: Optional[dict[str, Any]] = None,
    ) -> None:
        """Add or replace a job that runs every ``seconds``."""
        if seconds <= 0:
            raise ValueError(f"Interval must be positive, got {seconds!r}")
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            kwargs=kwargs or {},
            replace_existing=True,
        )
        logger.info("Job added: %s [every %ss]", job_id, seconds)

    def register_maintenance(
        self,
        orchestrator: TaskOrchestrator,
        summaries: SummarizationJobQueue,
        sweep_interval: float = 30,
        eviction_interval: float = 3600,
        task_retention_hours: float = 24,
        job_retention_hours: float = 48,
    ) -> None:
        """Periodic task sweep plus eviction of old terminal tasks and summary jobs."""
        self.add_interval_job(SWEEP_JOB_ID, orchestrator.sweep, sweep_interval)
        self.add_interval_job(
            TASK_EVICTION_JOB_ID,
            orchestrator.evict_completed,
            eviction_interval,
            kwargs={"older_than": timedelta(hours=task_retention_hours)},
        )
        self.add_interval_job(
            JOB_EVICTION_JOB_ID,
            summaries.evict_completed,
            eviction_interval,
            kwargs={"older_than": timedelta(hours=job_retention_hours)},
        )

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job by ID.

        Returns:
            True if the job was found and removed, False otherwise.
        """
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.warning("Job not found: %s", job_id)
            return False
        logger.info("Job removed: %s", job_id)
        return True

    def list_jobs(self) -> list[dict[str, Any]]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run_time": (
                    job.next_run_time.isoformat()
                    if getattr(job, "next_run_time", None) else None
                ),
            }
            for job in self._scheduler.get_jobs()
        ]
