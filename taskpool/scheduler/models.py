"""ScheduledTask data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from taskpool.pool.models import make_task_id

if TYPE_CHECKING:
    from collections.abc import Callable

FIXED_RATE = "fixed_rate"
FIXED_DELAY = "fixed_delay"
CRON = "cron"
ONE_OFF = "one_off"
TRIGGER = "trigger"

TASK_TYPES = frozenset({FIXED_RATE, FIXED_DELAY, CRON, ONE_OFF, TRIGGER})

CRON_FIELDS = frozenset(
    {"year", "month", "day", "week", "day_of_week", "hour", "minute", "second"}
)


@dataclass
class ScheduledTask:
    """A callable to be run by the scheduler.

    Attributes:
        name: Human-readable name.
        task_type: One of ``fixed_rate``, ``fixed_delay``, ``cron``,
            ``one_off`` or ``trigger``.
        schedule: Timing config — ``{"interval": 30, "initial_delay": 5}``
            for fixed rate/delay, ``{"cron": "*/5 * * * *"}`` or field-based
            ``{"hour": 9}`` for cron, ``{"run_at": "ISO"}`` for one-off.
        func: The callable to run.
        args: Positional arguments for ``func``.
        kwargs: Keyword arguments for ``func``.
        trigger: An APScheduler trigger, for ``trigger`` tasks only.
        id: Unique identifier (UUID hex).
        created_at: ISO 8601 timestamp.
    """

    name: str
    task_type: str
    schedule: dict[str, Any]
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    trigger: Any = None
    id: str = field(default_factory=make_task_id)
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()
        self._validate()

    # -- Convenience properties ------------------------------------------------

    @property
    def is_one_off(self) -> bool:
        return self.task_type == ONE_OFF

    @property
    def is_fixed_delay(self) -> bool:
        return self.task_type == FIXED_DELAY

    @property
    def interval(self) -> float:
        """Seconds between runs for fixed rate/delay tasks."""
        return float(self.schedule["interval"])

    @property
    def initial_delay(self) -> float:
        return float(self.schedule.get("initial_delay", 0))

    def run(self) -> None:
        self.func(*self.args, **self.kwargs)

    # -- Validation ------------------------------------------------------------

    def _validate(self) -> None:
        if self.task_type not in TASK_TYPES:
            msg = f"Unknown task type: {self.task_type}"
            raise ValueError(msg)
        if not callable(self.func):
            msg = f"Task '{self.name}' has a non-callable func: {self.func!r}"
            raise ValueError(msg)

        if self.task_type in (FIXED_RATE, FIXED_DELAY):
            if "interval" not in self.schedule or self.interval <= 0:
                msg = f"Task '{self.name}' needs a positive interval"
                raise ValueError(msg)
            if self.initial_delay < 0:
                msg = f"Task '{self.name}' has a negative initial delay"
                raise ValueError(msg)
        elif self.task_type == CRON:
            if "cron" not in self.schedule and not CRON_FIELDS & self.schedule.keys():
                msg = f"Task '{self.name}' needs a cron expression or cron fields"
                raise ValueError(msg)
        elif self.task_type == ONE_OFF:
            if not self.schedule.get("run_at"):
                msg = f"Task '{self.name}' needs a run_at time"
                raise ValueError(msg)
        elif self.trigger is None:
            msg = f"Task '{self.name}' needs a trigger"
            raise ValueError(msg)
