"""Failure events reported by the worker pool.

These are exception types so they can carry a cause chain and be logged with
a traceback, but the pool never raises them to a submitter: they are handed
to the error and rejection sinks instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskpool.pool.models import Task

REASON_SATURATED = "saturated"
REASON_SHUTDOWN = "shutdown"


class TaskPoolError(Exception):
    """Base class for worker pool failure events."""

    def __init__(self, task: Task, message: str) -> None:
        super().__init__(message)
        self.task = task


class ExecutionError(TaskPoolError):
    """A task raised while running on a worker."""

    def __init__(self, task: Task, cause: BaseException) -> None:
        super().__init__(task, f"Task {task} failed: {type(cause).__name__}: {cause}")
        self.cause = cause
        self.__cause__ = cause


class RejectionError(TaskPoolError):
    """A task was refused because the pool is saturated or shut down."""

    def __init__(self, task: Task, reason: str = REASON_SATURATED) -> None:
        super().__init__(task, f"Task {task} rejected ({reason})")
        self.reason = reason
