"""WorkerPoolExecutor — runs APScheduler jobs on the shared worker pool."""

from __future__ import annotations

import logging
import traceback
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.executors.base import BaseExecutor

from taskpool.pool.models import Task

if TYPE_CHECKING:
    from apscheduler.job import Job

    from taskpool.pool.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


class WorkerPoolExecutor(BaseExecutor):
    """Hands every due job run to a WorkerPool instead of a private pool.

    A job that raises is re-raised on the worker so the pool's error handler
    reports it; it is not logged here as well. The pool is shared, so
    ``shutdown()`` leaves it running.

    Args:
        pool: The shared WorkerPool.
    """

    def __init__(self, pool: WorkerPool) -> None:
        super().__init__()
        self._pool = pool

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    def _do_submit_job(self, job: Job, run_times: list[datetime]) -> None:
        task = Task(self._run, args=(job, run_times), name=f"scheduled job '{job.name}'")
        if not self._pool.execute(task):
            # Report the runs as missed and release the instance slot
            events = [
                JobExecutionEvent(EVENT_JOB_MISSED, job.id, job._jobstore_alias, run_time)
                for run_time in run_times
            ]
            self._run_job_success(job.id, events)

    def _run(self, job: Job, run_times: list[datetime]) -> None:
        events = []
        error = None
        for run_time in run_times:
            if job.misfire_grace_time is not None:
                late_by = datetime.now(UTC) - run_time
                if late_by > timedelta(seconds=job.misfire_grace_time):
                    logger.warning('Run time of job "%s" was missed by %s', job, late_by)
                    events.append(
                        JobExecutionEvent(EVENT_JOB_MISSED, job.id, job._jobstore_alias, run_time)
                    )
                    continue

            logger.debug('Running job "%s" (scheduled at %s)', job, run_time)
            try:
                retval = job.func(*job.args, **job.kwargs)
            except BaseException as exc:
                events.append(
                    JobExecutionEvent(
                        EVENT_JOB_ERROR,
                        job.id,
                        job._jobstore_alias,
                        run_time,
                        exception=exc,
                        traceback="".join(traceback.format_tb(exc.__traceback__)),
                    )
                )
                error = error or exc
            else:
                events.append(
                    JobExecutionEvent(
                        EVENT_JOB_EXECUTED, job.id, job._jobstore_alias, run_time, retval=retval
                    )
                )

        self._run_job_success(job.id, events)
        if error is not None:
            raise error
