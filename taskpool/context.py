"""RootContext — builds the shared worker pool once and wires its consumers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from taskpool.async_executor import AsyncExecutor
from taskpool.config import settings
from taskpool.pool.worker_pool import WorkerPool
from taskpool.scheduler.engine import TaskScheduler
from taskpool.scheduler.registrar import ScheduledTaskRegistrar

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskpool.config import Settings
    from taskpool.pool.errors import ExecutionError, RejectionError

logger = logging.getLogger(__name__)


class RootContext:
    """Owns the process-wide WorkerPool and hands it to both consumers.

    The async executor and the scheduler receive the same pool instance, so
    all background work shares one concurrency bound.

    Args:
        config: Settings to build from (default: module-level settings).
        error_handler: Sink for task execution errors (default: log).
        rejection_handler: Sink for rejected submissions (default: log).
    """

    def __init__(
        self,
        config: Settings | None = None,
        error_handler: Callable[[ExecutionError], None] | None = None,
        rejection_handler: Callable[[RejectionError], None] | None = None,
    ) -> None:
        cfg = config or settings
        logger.info(
            "Setting up worker pool with %d thread(s).", cfg.task_pool_size
        )
        self.pool = WorkerPool(
            size=cfg.task_pool_size,
            thread_name_prefix=cfg.task_thread_name_prefix,
            await_termination=cfg.task_await_termination_seconds,
            wait_for_tasks_on_shutdown=cfg.task_wait_for_tasks_on_shutdown,
            queue_capacity=cfg.task_queue_capacity,
            error_handler=error_handler,
            rejection_handler=rejection_handler,
        )

        self.async_executor = AsyncExecutor(self.pool)
        logger.info("Configuring asynchronous method executor %r.", self.async_executor)

        self.scheduler = TaskScheduler(
            self.pool,
            timezone=cfg.scheduler_timezone,
            misfire_grace_time=cfg.scheduler_misfire_grace_seconds,
        )
        logger.info("Configuring scheduled method executor %r.", self.pool)

        self.registrar = ScheduledTaskRegistrar()

    def start(self) -> None:
        """Schedule the registered tasks and start the scheduler."""
        self.scheduler.configure_tasks(self.registrar)
        self.scheduler.start()

    def close(self) -> bool:
        """Stop the scheduler, then drain the pool. Safe to call twice.

        Returns:
            True if every worker terminated within the configured timeout.
        """
        self.scheduler.stop()
        return self.pool.shutdown()

    def __enter__(self) -> RootContext:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
