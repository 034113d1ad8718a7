"""Worker pool data model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


def make_task_id() -> str:
    """Generate a new task ID."""
    return uuid.uuid4().hex


def callable_name(fn: Callable[..., Any]) -> str:
    """Return a diagnostic name for any callable, including partials."""
    return getattr(fn, "__qualname__", None) or repr(fn)


class PoolState(Enum):
    """Lifecycle of a WorkerPool. No transition leaves ``STOPPED``."""

    CREATED = "created"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


@dataclass
class Task:
    """A single unit of work submitted to the pool.

    Attributes:
        fn: The callable to run.
        args: Positional arguments for ``fn``.
        kwargs: Keyword arguments for ``fn``.
        name: Diagnostic name (defaults to the callable's qualified name).
        id: Unique identifier (UUID hex).
    """

    fn: Callable[..., Any]
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    name: str = ""
    id: str = field(default_factory=make_task_id)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = callable_name(self.fn)

    def run(self) -> None:
        self.fn(*self.args, **self.kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.id[:8]})"

