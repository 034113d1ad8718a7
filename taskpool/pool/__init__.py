"""Bounded worker pool — tasks, failure events, and the pool itself."""

from taskpool.pool.errors import ExecutionError, RejectionError, TaskPoolError
from taskpool.pool.handlers import log_execution_error, log_rejection
from taskpool.pool.models import PoolState, Task
from taskpool.pool.worker_pool import WorkerPool, interrupted

__all__ = [
    "ExecutionError",
    "PoolState",
    "RejectionError",
    "Task",
    "TaskPoolError",
    "WorkerPool",
    "interrupted",
    "log_execution_error",
    "log_rejection",
]
