# app/services/scheduler_service.py
"""
In-process job scheduler on asyncio tasks.

Each job owns one looping task that sleeps until its next wall-clock trigger
(UTC) and then fires the job in a task of its own, so a slow run never
delays the next one.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from app.core.config import EXPIRY_THRESHOLD_DAYS
from app.utiles.custom_helpers import _now_utc, _as_utc
from app.utiles.logger import get_logger

logger = get_logger(__name__)

WEEKDAYS = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]


@dataclass(frozen=True)
class DailyTrigger:
    """Fires at ``hour:minute`` UTC every day, or only on ``weekday`` (0=Monday)."""

    hour: int
    minute: int = 0
    weekday: Optional[int] = None

    def next_run(self, after: Optional[datetime] = None) -> datetime:
        after = _as_utc(after) or _now_utc()
        candidate = after.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= after:
            candidate += timedelta(days=1)
        if self.weekday is not None:
            candidate += timedelta(days=(self.weekday - candidate.weekday()) % 7)
        return candidate

    def describe(self) -> str:
        day = WEEKDAYS[self.weekday] if self.weekday is not None else "daily"
        return f"{day} {self.hour:02d}:{self.minute:02d} UTC"


@dataclass
class Job:
    name: str
    trigger: DailyTrigger
    task: Callable[[], Awaitable[Any]]
    loop_task: Optional[asyncio.Task] = None
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None
    run_count: int = 0
    runs: Set[asyncio.Task] = field(default_factory=set)


class SchedulerService:
    def __init__(self):
        self.jobs: Dict[str, Job] = {}

    def schedule_job(self, name: str, trigger: DailyTrigger, task: Callable[[], Awaitable[Any]]) -> Job:
        """Register ``task`` under ``name``; an existing job of that name is replaced."""
        if name in self.jobs:
            self.stop_job(name)

        job = Job(name=name, trigger=trigger, task=task)
        job.next_run = trigger.next_run()
        job.loop_task = asyncio.create_task(self._loop(job), name=f"scheduler:{name}")
        self.jobs[name] = job
        logger.info("Job scheduled: %s (%s), next run %s", name, trigger.describe(), job.next_run.isoformat())
        return job

    async def _loop(self, job: Job):
        while True:
            delay = (job.next_run - _now_utc()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
            run = asyncio.create_task(self.run_job(job))
            job.runs.add(run)
            run.add_done_callback(job.runs.discard)
            job.next_run = job.trigger.next_run(job.next_run)

    async def run_job(self, job: Job) -> Any:
        """Run one job invocation; errors are logged and recorded, never raised."""
        job.last_run = _now_utc()
        job.run_count += 1
        logger.info("Running job: %s", job.name)
        try:
            result = await job.task()
            job.last_error = None
            logger.info("Job %s completed: %s", job.name, result)
            return result
        except Exception as e:
            job.last_error = str(e)
            logger.exception("Job %s failed: %s", job.name, e)
            return None

    def stop_job(self, name: str) -> bool:
        job = self.jobs.pop(name, None)
        if not job:
            return False
        if job.loop_task:
            job.loop_task.cancel()
        for run in list(job.runs):
            run.cancel()
        logger.info("Job stopped: %s (cancelled %s in-flight runs)", name, len(job.runs))
        return True

    def stop_all_jobs(self):
        for name in list(self.jobs):
            self.stop_job(name)
        logger.info("All scheduled jobs stopped")

    def is_running(self, name: str) -> bool:
        job = self.jobs.get(name)
        return bool(job and job.loop_task and not job.loop_task.done())

    def get_job_status(self, name: str) -> Optional[Dict[str, Any]]:
        job = self.jobs.get(name)
        if not job:
            return None
        return {
            "name": job.name,
            "schedule": job.trigger.describe(),
            "running": self.is_running(name),
            "active_runs": len(job.runs),
            "next_run": job.next_run,
            "last_run": job.last_run,
            "last_error": job.last_error,
            "run_count": job.run_count,
        }

    def get_all_job_statuses(self) -> Dict[str, Dict[str, Any]]:
        return {name: self.get_job_status(name) for name in self.jobs}


def schedule_compliance_jobs(scheduler: SchedulerService, documents) -> SchedulerService:
    """Wire the document compliance jobs onto a scheduler."""
    scheduler.schedule_job(
        "check_expiring_documents",
        DailyTrigger(hour=9),
        lambda: documents.check_and_notify_expiring_documents(EXPIRY_THRESHOLD_DAYS),
    )
    scheduler.schedule_job(
        "generate_compliance_reports",
        DailyTrigger(hour=8, weekday=0),
        documents.generate_compliance_reports,
    )
    scheduler.schedule_job(
        "mark_expired_documents",
        DailyTrigger(hour=1, weekday=6),
        documents.mark_expired_documents,
    )
    return scheduler
