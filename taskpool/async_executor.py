"""AsyncExecutor — fire-and-forget method calls on the shared worker pool."""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any

from taskpool.pool.models import Task, callable_name

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskpool.pool.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


class AsyncExecutor:
    """Submits calls to a WorkerPool without waiting for them.

    Args:
        pool: The shared WorkerPool. Never owned or shut down here.
    """

    def __init__(self, pool: WorkerPool) -> None:
        self._pool = pool

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    def execute(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """Run ``fn(*args, **kwargs)`` in the background. Returns False if rejected."""
        return self._pool.submit(fn, *args, **kwargs)

    def method(self, fn: Callable[..., Any]) -> Callable[..., None]:
        """Decorate ``fn`` so every call runs on the pool and returns None.

        The undecorated function stays available as ``__wrapped__``.
        """

        name = callable_name(fn)

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> None:
            self._pool.execute(Task(fn, args, kwargs, name=name))

        logger.debug("Registered asynchronous method %s", name)
        return wrapper

    def __repr__(self) -> str:
        return f"AsyncExecutor({self._pool!r})"
