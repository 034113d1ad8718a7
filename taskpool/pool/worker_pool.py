"""WorkerPool — fixed-size thread pool shared by async calls and scheduled jobs."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import TYPE_CHECKING, Any

from taskpool.pool.errors import (
    REASON_SATURATED,
    REASON_SHUTDOWN,
    ExecutionError,
    RejectionError,
)
from taskpool.pool.handlers import log_execution_error, log_rejection
from taskpool.pool.models import PoolState, Task

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_STOP = object()
_local = threading.local()


def interrupted() -> bool:
    """Return True if the pool running the current task has interrupted it.

    Threads cannot be killed, so a forced shutdown only raises this flag.
    Long-running tasks should poll it and return early. Always False outside
    a pool worker.
    """
    event = getattr(_local, "interrupt", None)
    return event is not None and event.is_set()


class WorkerPool:
    """A fixed number of worker threads fed from one internal queue.

    Workers start on construction. Submission never blocks: a task is either
    accepted or handed to the rejection handler. Errors raised by a task are
    handed to the error handler and the worker carries on.

    Args:
        size: Number of worker threads.
        thread_name_prefix: Worker threads are named ``<prefix><n>``.
        await_termination: Seconds ``shutdown()`` waits for running tasks.
        wait_for_tasks_on_shutdown: Whether ``shutdown()`` lets queued tasks
            finish (True) or discards them and interrupts running ones.
        queue_capacity: Tasks allowed to wait for a worker. None is unbounded.
        error_handler: Called with an ExecutionError when a task raises.
        rejection_handler: Called with a RejectionError when a task is refused.
    """

    def __init__(
        self,
        size: int,
        thread_name_prefix: str = "task-",
        await_termination: float = 60.0,
        wait_for_tasks_on_shutdown: bool = True,
        queue_capacity: int | None = None,
        error_handler: Callable[[ExecutionError], None] | None = None,
        rejection_handler: Callable[[RejectionError], None] | None = None,
    ) -> None:
        if size < 1:
            msg = f"Pool size must be at least 1, got {size}"
            raise ValueError(msg)
        if not thread_name_prefix:
            msg = "Thread name prefix must not be empty"
            raise ValueError(msg)
        if await_termination < 0:
            msg = f"Await termination must not be negative, got {await_termination}"
            raise ValueError(msg)
        if queue_capacity is not None and queue_capacity < 0:
            msg = f"Queue capacity must not be negative, got {queue_capacity}"
            raise ValueError(msg)

        self._size = size
        self._thread_name_prefix = thread_name_prefix
        self._await_termination = await_termination
        self._wait_for_tasks_on_shutdown = wait_for_tasks_on_shutdown
        self._queue_capacity = queue_capacity
        self._error_handler = error_handler or log_execution_error
        self._rejection_handler = rejection_handler or log_rejection

        # Sentinels must always fit, so capacity is enforced by _outstanding
        self._queue: queue.Queue[Any] = queue.Queue()
        self._lock = threading.Lock()
        self._interrupt = threading.Event()
        self._stopped = threading.Event()
        self._outstanding = 0
        self._active = 0
        self._completed = 0
        self._terminated: bool | None = None
        self._state = PoolState.CREATED

        self._threads = [
            threading.Thread(
                target=self._work,
                name=f"{thread_name_prefix}{i}",
                daemon=True,
            )
            for i in range(1, size + 1)
        ]
        for thread in self._threads:
            thread.start()
        self._state = PoolState.RUNNING
        logger.info(
            "Worker pool started with %d thread(s) (prefix=%r, queue=%s)",
            size,
            thread_name_prefix,
            "unbounded" if queue_capacity is None else queue_capacity,
        )

    # -- Properties ------------------------------------------------------------

    @property
    def size(self) -> int:
        return self._size

    @property
    def thread_name_prefix(self) -> str:
        return self._thread_name_prefix

    @property
    def queue_capacity(self) -> int | None:
        return self._queue_capacity

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def active_count(self) -> int:
        """Number of tasks currently running on a worker."""
        return self._active

    @property
    def queue_size(self) -> int:
        """Number of accepted tasks still waiting for a worker."""
        with self._lock:
            return self._outstanding - self._active

    @property
    def completed_count(self) -> int:
        """Number of tasks that finished, successfully or not."""
        return self._completed

    # -- Submission ------------------------------------------------------------

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """Run ``fn(*args, **kwargs)`` on a worker. Returns False if rejected."""
        return self.execute(Task(fn, args, kwargs))

    def execute(self, task: Task) -> bool:
        """Queue a task for execution. Returns False if it was rejected."""
        with self._lock:
            if self._state is not PoolState.RUNNING:
                reason = REASON_SHUTDOWN
            elif self._saturated():
                reason = REASON_SATURATED
            else:
                self._outstanding += 1
                self._queue.put(task)
                return True
        self._report(self._rejection_handler, RejectionError(task, reason))
        return False

    def _saturated(self) -> bool:
        if self._queue_capacity is None:
            return False
        return self._outstanding >= self._size + self._queue_capacity

    # -- Shutdown --------------------------------------------------------------

    def shutdown(self, wait: bool | None = None, timeout: float | None = None) -> bool:
        """Stop accepting tasks and wind the workers down.

        Args:
            wait: Let queued tasks finish and block up to ``timeout``.
                Defaults to ``wait_for_tasks_on_shutdown``.
            timeout: Seconds to wait. Defaults to ``await_termination``.

        Returns:
            True if every worker terminated before returning. A call made
            while another shutdown is in progress waits for it to finish and
            returns its outcome.
        """
        wait = self._wait_for_tasks_on_shutdown if wait is None else wait
        timeout = self._await_termination if timeout is None else timeout

        with self._lock:
            in_progress = self._state is not PoolState.RUNNING
            if not in_progress:
                self._state = PoolState.SHUTTING_DOWN
        if in_progress:
            logger.debug("Worker pool already %s", self._state.value)
            self._stopped.wait()
            return bool(self._terminated)

        logger.info("Shutting down worker pool (wait=%s, timeout=%ss)", wait, timeout)
        if not wait:
            dropped = self._drain_queue()
            if dropped:
                logger.warning("Discarded %d queued task(s) on shutdown", dropped)
            self._interrupt.set()

        for _ in self._threads:
            self._queue.put(_STOP)

        terminated = self._join(timeout if wait else 0)
        if not terminated:
            self._interrupt.set()
            if wait:
                logger.warning(
                    "Worker pool did not terminate within %ss; interrupted %d running task(s)",
                    timeout,
                    self._active,
                )

        with self._lock:
            self._terminated = terminated
            self._state = PoolState.STOPPED
        self._stopped.set()
        logger.info("Worker pool stopped (%d task(s) completed)", self._completed)
        return terminated

    def _drain_queue(self) -> int:
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                dropped += 1
        with self._lock:
            self._outstanding -= dropped
        return dropped

    def _join(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        for thread in self._threads:
            thread.join(max(0.0, deadline - time.monotonic()))
        return not any(thread.is_alive() for thread in self._threads)

    # -- Workers ---------------------------------------------------------------

    def _work(self) -> None:
        _local.interrupt = self._interrupt
        while True:
            task = self._queue.get()
            if task is _STOP:
                break
            with self._lock:
                self._active += 1
            try:
                task.run()
            except BaseException as exc:
                # SystemExit and KeyboardInterrupt from a task must not kill the worker
                self._report(self._error_handler, ExecutionError(task, exc))
            finally:
                with self._lock:
                    self._active -= 1
                    self._outstanding -= 1
                    self._completed += 1

    def _report(self, handler: Callable[[Any], None], error: Exception) -> None:
        try:
            handler(error)
        except Exception:
            logger.exception("Failure handler raised while reporting: %s", error)

    def __repr__(self) -> str:
        return (
            f"WorkerPool(size={self._size}, prefix={self._thread_name_prefix!r}, "
            f"state={self._state.value})"
        )
