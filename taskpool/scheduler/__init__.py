"""Scheduled task system — models, registration, pool-backed execution, and scheduling."""

from taskpool.scheduler.engine import TaskScheduler, parse_cron
from taskpool.scheduler.executor import WorkerPoolExecutor
from taskpool.scheduler.models import ScheduledTask
from taskpool.scheduler.registrar import ScheduledTaskRegistrar

__all__ = [
    "ScheduledTask",
    "ScheduledTaskRegistrar",
    "TaskScheduler",
    "WorkerPoolExecutor",
    "parse_cron",
]
