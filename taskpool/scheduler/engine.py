"""TaskScheduler — APScheduler lifecycle and job management on the shared pool."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from taskpool.config import settings
from taskpool.scheduler.executor import WorkerPoolExecutor
from taskpool.scheduler.models import CRON, CRON_FIELDS, FIXED_DELAY, FIXED_RATE, ONE_OFF

if TYPE_CHECKING:
    from apscheduler.events import JobExecutionEvent
    from apscheduler.job import Job

    from taskpool.pool.worker_pool import WorkerPool
    from taskpool.scheduler.models import ScheduledTask
    from taskpool.scheduler.registrar import ScheduledTaskRegistrar

logger = logging.getLogger(__name__)

_UNSET = object()


class TaskScheduler:
    """Maps ScheduledTasks to APScheduler jobs that run on the shared pool.

    The scheduler thread only works out when jobs are due; every run is
    executed by the WorkerPool, so background concurrency stays capped at the
    pool size. Runs of one task never overlap and missed runs are coalesced.

    Args:
        pool: The shared WorkerPool. Not shut down by ``stop()``.
        timezone: IANA timezone string (default from settings).
        misfire_grace_time: Seconds a late run may still start. None runs
            late jobs regardless of how late they are.
    """

    def __init__(
        self,
        pool: WorkerPool,
        timezone: str | None = None,
        misfire_grace_time: int | None | object = _UNSET,
    ) -> None:
        if misfire_grace_time is _UNSET:
            misfire_grace_time = settings.scheduler_misfire_grace_seconds
        self._pool = pool
        self._timezone = timezone or settings.scheduler_timezone
        self._executor = WorkerPoolExecutor(pool)
        self._scheduler = BackgroundScheduler(
            executors={"default": self._executor},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": misfire_grace_time,
            },
            timezone=self._timezone,
        )
        self._scheduler.add_listener(
            self._on_job_done, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED
        )
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def executor(self) -> WorkerPoolExecutor:
        return self._executor

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the scheduler. Tasks scheduled earlier begin firing now."""
        if self._running:
            return
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started with %d task(s) (tz=%s)", len(self._tasks), self._timezone
        )

    def stop(self) -> None:
        """Shut down the scheduler. Runs already on the pool are left alone."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Task management -------------------------------------------------------

    def configure_tasks(self, registrar: ScheduledTaskRegistrar) -> None:
        """Schedule every task collected by the registrar."""
        for task in registrar.tasks:
            self.schedule_task(task)
        logger.info("Configured %d task(s) from registrar", len(registrar.tasks))

    def schedule_task(self, task: ScheduledTask) -> ScheduledTask:
        """Add a task to the live scheduler, replacing one with the same ID."""
        self._tasks[task.id] = task
        self._add_job(task)
        logger.info("Scheduled %s task: %s (%s)", task.task_type, task.name, task.id)
        return task

    def cancel_task(self, task_id: str) -> bool:
        """Remove a task. Returns False if it was not scheduled."""
        task = self._tasks.pop(task_id, None)
        try:
            self._scheduler.remove_job(task_id)
        except JobLookupError:
            logger.debug("Job %s not found in scheduler (may already be removed)", task_id)
        if task is None:
            return False
        logger.info("Cancelled task: %s (%s)", task.name, task_id)
        return True

    def get_task(self, task_id: str) -> ScheduledTask | None:
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    def next_run_time(self, task_id: str) -> datetime | None:
        """Return when the task fires next, or None if it is not pending."""
        job = self._scheduler.get_job(task_id)
        if job is None:
            return None
        return getattr(job, "next_run_time", None)

    # -- Internal --------------------------------------------------------------

    def _add_job(self, task: ScheduledTask) -> Job:
        """Create an APScheduler job for the given task. Returns the Job."""
        return self._scheduler.add_job(
            task.run,
            trigger=self._build_trigger(task),
            id=task.id,
            name=task.name,
            replace_existing=True,
        )

    def _on_job_done(self, event: JobExecutionEvent) -> None:
        """Push fixed-delay tasks back and forget one-off tasks after they fire."""
        task = self._tasks.get(event.job_id)
        if task is None:
            return
        if task.is_one_off:
            self._tasks.pop(task.id, None)
            logger.debug("One-off task finished: %s (%s)", task.name, task.id)
        elif task.is_fixed_delay and self._running:
            if event.code == EVENT_JOB_MISSED:
                # Rejected runs are reported from inside the scheduler's processing
                # pass, which rewrites the job afterwards; re-arm once it is done
                threading.Thread(
                    target=self._rearm, args=(task,), name="rearm-" + task.id[:8], daemon=True
                ).start()
            else:
                self._rearm(task)

    def _rearm(self, task: ScheduledTask) -> None:
        run_at = datetime.now(UTC) + timedelta(seconds=task.interval)
        try:
            self._scheduler.modify_job(task.id, next_run_time=run_at)
        except JobLookupError:
            logger.debug("Fixed-delay task %s was removed before re-arming", task.id)

    def _build_trigger(self, task: ScheduledTask):
        """Convert a task's schedule dict into an APScheduler trigger."""
        schedule = task.schedule

        if task.task_type in (FIXED_RATE, FIXED_DELAY):
            # Fixed-delay jobs are pushed back after each run by _on_job_done
            return IntervalTrigger(
                seconds=task.interval,
                start_date=datetime.now(UTC) + timedelta(seconds=task.initial_delay),
                timezone=self._timezone,
            )

        if task.task_type == ONE_OFF:
            return DateTrigger(run_date=schedule["run_at"], timezone=self._timezone)

        if task.task_type == CRON:
            if "cron" in schedule:
                return parse_cron(schedule["cron"], self._timezone)
            cron_kwargs = {k: v for k, v in schedule.items() if k in CRON_FIELDS}
            return CronTrigger(timezone=self._timezone, **cron_kwargs)

        return task.trigger


def parse_cron(expression: str, timezone: str) -> CronTrigger:
    """Build a CronTrigger from a 5-field crontab, or 6 fields with seconds first.

    Numeric day-of-week values follow APScheduler, where 0 is Monday, not the
    crontab convention where 0 is Sunday: ``1-5`` means Tuesday to Saturday.
    Use names (``mon-fri``) to avoid the ambiguity.
    """
    fields = expression.split()
    if len(fields) == 5:
        return CronTrigger.from_crontab(expression, timezone=timezone)
    if len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
            timezone=timezone,
        )
    msg = f"Cron expression must have 5 or 6 fields, got {len(fields)}: {expression!r}"
    raise ValueError(msg)
