"""ScheduledTaskRegistrar — collects scheduled task definitions before startup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from taskpool.pool.models import callable_name
from taskpool.scheduler.models import (
    CRON,
    FIXED_DELAY,
    FIXED_RATE,
    ONE_OFF,
    TRIGGER,
    ScheduledTask,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

logger = logging.getLogger(__name__)


class ScheduledTaskRegistrar:
    """Holds the tasks a TaskScheduler should run once it is configured.

    Registration order is preserved. The registrar never runs anything itself;
    ``TaskScheduler.configure_tasks()`` turns each entry into a job.
    """

    def __init__(self) -> None:
        self._tasks: list[ScheduledTask] = []

    @property
    def tasks(self) -> list[ScheduledTask]:
        return list(self._tasks)

    def has_tasks(self) -> bool:
        return bool(self._tasks)

    def add_task(self, task: ScheduledTask) -> ScheduledTask:
        self._tasks.append(task)
        logger.debug("Registered %s task: %s (%s)", task.task_type, task.name, task.id)
        return task

    def add_fixed_rate_task(
        self,
        func: Callable[..., Any],
        interval: float,
        initial_delay: float = 0,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run ``func`` every ``interval`` seconds, measured between starts."""
        return self.add_task(
            ScheduledTask(
                name=name or callable_name(func),
                task_type=FIXED_RATE,
                schedule={"interval": interval, "initial_delay": initial_delay},
                func=func,
            )
        )

    def add_fixed_delay_task(
        self,
        func: Callable[..., Any],
        delay: float,
        initial_delay: float = 0,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run ``func`` repeatedly, ``delay`` seconds after each run finishes."""
        return self.add_task(
            ScheduledTask(
                name=name or callable_name(func),
                task_type=FIXED_DELAY,
                schedule={"interval": delay, "initial_delay": initial_delay},
                func=func,
            )
        )

    def add_cron_task(
        self,
        func: Callable[..., Any],
        expression: str,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run ``func`` on a crontab expression (5 fields, or 6 with seconds first)."""
        return self.add_task(
            ScheduledTask(
                name=name or callable_name(func),
                task_type=CRON,
                schedule={"cron": expression},
                func=func,
            )
        )

    def add_one_off_task(
        self,
        func: Callable[..., Any],
        run_at: datetime | str,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run ``func`` once at ``run_at``."""
        return self.add_task(
            ScheduledTask(
                name=name or callable_name(func),
                task_type=ONE_OFF,
                schedule={"run_at": run_at},
                func=func,
            )
        )

    def add_trigger_task(
        self,
        func: Callable[..., Any],
        trigger: Any,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run ``func`` whenever an APScheduler trigger fires."""
        return self.add_task(
            ScheduledTask(
                name=name or callable_name(func),
                task_type=TRIGGER,
                schedule={},
                func=func,
                trigger=trigger,
            )
        )

    def scheduled(
        self,
        *,
        cron: str | None = None,
        fixed_rate: float | None = None,
        fixed_delay: float | None = None,
        initial_delay: float = 0,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form. Exactly one of ``cron``, ``fixed_rate`` or
        ``fixed_delay`` must be given; ``initial_delay`` only applies to the
        last two. The function is returned unchanged.
        """
        given = [opt for opt in (cron, fixed_rate, fixed_delay) if opt is not None]
        if len(given) != 1:
            msg = "Exactly one of cron, fixed_rate or fixed_delay is required"
            raise ValueError(msg)
        if cron is not None and initial_delay:
            msg = "initial_delay cannot be combined with cron"
            raise ValueError(msg)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            if cron is not None:
                self.add_cron_task(func, cron, name=name)
            elif fixed_rate is not None:
                self.add_fixed_rate_task(func, fixed_rate, initial_delay, name=name)
            else:
                self.add_fixed_delay_task(func, fixed_delay, initial_delay, name=name)
            return func

        return decorator
