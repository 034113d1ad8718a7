"""Default failure sinks: log execution errors and rejections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskpool.pool.errors import ExecutionError, RejectionError

scheduling_logger = logging.getLogger("taskpool.scheduling")


def log_execution_error(error: ExecutionError) -> None:
    scheduling_logger.error(
        "Unknown error occurred while executing task %s.",
        error.task,
        exc_info=error.cause,
    )


def log_rejection(error: RejectionError) -> None:
    scheduling_logger.error(
        "Execution of task %s was rejected (%s).", error.task, error.reason
    )
