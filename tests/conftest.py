"""Shared test fixtures."""

import time
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from taskpool.pool.worker_pool import WorkerPool


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def error_handler() -> MagicMock:
    return MagicMock()


@pytest.fixture
def rejection_handler() -> MagicMock:
    return MagicMock()


@pytest.fixture
def pool(error_handler: MagicMock, rejection_handler: MagicMock):
    """A 4-thread pool with mock failure sinks, shut down after the test."""
    p = WorkerPool(
        size=4,
        thread_name_prefix="test-",
        await_termination=2,
        error_handler=error_handler,
        rejection_handler=rejection_handler,
    )
    yield p
    p.shutdown(wait=False)
