"""Tests for WorkerPool — bounded execution, failure reporting, shutdown."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from taskpool.pool.errors import ExecutionError, RejectionError
from taskpool.pool.models import PoolState, Task
from taskpool.pool.worker_pool import WorkerPool, interrupted
from tests.conftest import wait_for


def _make_pool(size: int = 2, **kwargs) -> WorkerPool:
    kwargs.setdefault("error_handler", MagicMock())
    kwargs.setdefault("rejection_handler", MagicMock())
    return WorkerPool(size=size, thread_name_prefix="t-", await_termination=2, **kwargs)


# -- Construction --------------------------------------------------------------


class TestConstruction:
    def test_running_after_construction(self, pool: WorkerPool) -> None:
        assert pool.state is PoolState.RUNNING
        assert pool.size == 4

    def test_threads_named_with_prefix(self) -> None:
        p = _make_pool(size=3)
        try:
            names = []
            done = threading.Event()
            barrier = threading.Barrier(3)

            def record() -> None:
                barrier.wait(timeout=2)
                names.append(threading.current_thread().name)
                if len(names) == 3:
                    done.set()

            for _ in range(3):
                p.submit(record)
            assert done.wait(2)
            assert sorted(names) == ["t-1", "t-2", "t-3"]
        finally:
            p.shutdown()

    @pytest.mark.parametrize("size", [0, -1])
    def test_invalid_size(self, size: int) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            WorkerPool(size=size)

    def test_empty_prefix(self) -> None:
        with pytest.raises(ValueError, match="prefix"):
            WorkerPool(size=1, thread_name_prefix="")

    def test_negative_timeout(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            WorkerPool(size=1, await_termination=-1)

    def test_negative_queue_capacity(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            WorkerPool(size=1, queue_capacity=-1)


# -- Submission ----------------------------------------------------------------


class TestSubmit:
    def test_runs_task_with_arguments(self, pool: WorkerPool) -> None:
        results = []
        assert pool.submit(lambda a, b=0: results.append(a + b), 1, b=2) is True
        assert wait_for(lambda: results == [3])

    def test_execute_named_task(self, pool: WorkerPool) -> None:
        done = threading.Event()
        task = Task(done.set, name="flag")
        assert pool.execute(task) is True
        assert done.wait(2)

    def test_submit_does_not_block(self, pool: WorkerPool) -> None:
        release = threading.Event()
        start = time.monotonic()
        for _ in range(10):
            pool.submit(release.wait, 2)
        assert time.monotonic() - start < 0.5
        release.set()

    def test_at_most_size_tasks_run_concurrently(self) -> None:
        p = _make_pool(size=3)
        lock = threading.Lock()
        current = 0
        peak = 0

        def work() -> None:
            nonlocal current, peak
            with lock:
                current += 1
                peak = max(peak, current)
            time.sleep(0.02)
            with lock:
                current -= 1

        for _ in range(20):
            p.submit(work)
        assert p.shutdown(wait=True, timeout=5)
        assert peak <= 3
        assert p.completed_count == 20

    def test_unbounded_queue_accepts_everything(
        self, pool: WorkerPool, rejection_handler: MagicMock
    ) -> None:
        release = threading.Event()
        accepted = [pool.submit(release.wait, 2) for _ in range(100)]
        assert all(accepted)
        rejection_handler.assert_not_called()
        release.set()

    def test_counters(self, pool: WorkerPool) -> None:
        release = threading.Event()
        for _ in range(6):
            pool.submit(release.wait, 2)
        assert wait_for(lambda: pool.active_count == 4)
        assert pool.queue_size == 2
        release.set()
        assert wait_for(lambda: pool.completed_count == 6)
        assert pool.queue_size == 0


# -- Execution errors ----------------------------------------------------------


class TestExecutionError:
    def test_error_reported_once_with_task_and_cause(
        self, pool: WorkerPool, error_handler: MagicMock
    ) -> None:
        boom = RuntimeError("boom")

        def fail() -> None:
            raise boom

        task = Task(fail, name="failing")
        pool.execute(task)
        assert wait_for(lambda: error_handler.call_count == 1)

        error = error_handler.call_args.args[0]
        assert isinstance(error, ExecutionError)
        assert error.task is task
        assert error.cause is boom
        assert error.__cause__ is boom
        time.sleep(0.05)
        assert error_handler.call_count == 1

    def test_worker_survives_error(self, error_handler: MagicMock) -> None:
        p = _make_pool(size=1, error_handler=error_handler)
        try:
            done = threading.Event()
            p.submit(lambda: 1 / 0)
            assert p.submit(done.set) is True
            assert done.wait(2)
            assert error_handler.call_count == 1
            assert p.state is PoolState.RUNNING
        finally:
            p.shutdown()

    @pytest.mark.parametrize("exc", [SystemExit(3), KeyboardInterrupt()])
    def test_worker_survives_base_exception(
        self, exc: BaseException, error_handler: MagicMock
    ) -> None:
        p = _make_pool(size=1, error_handler=error_handler)
        try:
            done = threading.Event()

            def bail() -> None:
                raise exc

            p.submit(bail)
            assert p.submit(done.set) is True
            assert done.wait(2)
            error_handler.assert_called_once()
            assert error_handler.call_args.args[0].cause is exc
            assert all(t.is_alive() for t in p._threads)
        finally:
            p.shutdown()

    def test_failing_handler_does_not_kill_worker(self) -> None:
        handler = MagicMock(side_effect=ValueError("sink down"))
        p = _make_pool(size=1, error_handler=handler)
        try:
            done = threading.Event()
            p.submit(lambda: 1 / 0)
            p.submit(done.set)
            assert done.wait(2)
            handler.assert_called_once()
        finally:
            p.shutdown()

    def test_default_handler_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        p = WorkerPool(size=1)
        try:
            p.submit(lambda: 1 / 0)
            assert wait_for(lambda: p.completed_count == 1)
        finally:
            p.shutdown()
        records = [r for r in caplog.records if r.name == "taskpool.scheduling"]
        assert len(records) == 1
        assert "Unknown error occurred while executing task" in records[0].getMessage()
        assert records[0].exc_info is not None


# -- Rejection -----------------------------------------------------------------


class TestRejection:
    def test_rejects_when_workers_and_queue_full(self, rejection_handler: MagicMock) -> None:
        p = _make_pool(size=1, queue_capacity=1, rejection_handler=rejection_handler)
        release = threading.Event()
        ran = []
        try:
            assert p.submit(release.wait, 2) is True
            assert p.submit(ran.append, "queued") is True

            rejected = [Task(ran.append, args=(f"rejected-{i}",)) for i in range(3)]
            assert [p.execute(t) for t in rejected] == [False, False, False]

            assert rejection_handler.call_count == 3
            reported = [call.args[0] for call in rejection_handler.call_args_list]
            assert all(isinstance(e, RejectionError) for e in reported)
            assert [e.task for e in reported] == rejected
            assert {e.reason for e in reported} == {"saturated"}
        finally:
            release.set()
            p.shutdown()
        assert ran == ["queued"]

    def test_zero_capacity_only_uses_idle_workers(self, rejection_handler: MagicMock) -> None:
        p = _make_pool(size=2, queue_capacity=0, rejection_handler=rejection_handler)
        release = threading.Event()
        try:
            assert p.submit(release.wait, 2) is True
            assert p.submit(release.wait, 2) is True
            assert p.submit(release.wait, 2) is False
            rejection_handler.assert_called_once()
        finally:
            release.set()
            p.shutdown()

    def test_capacity_frees_up_after_completion(self, rejection_handler: MagicMock) -> None:
        p = _make_pool(size=1, queue_capacity=0, rejection_handler=rejection_handler)
        try:
            done = threading.Event()
            assert p.submit(done.set) is True
            assert done.wait(2)
            assert wait_for(lambda: p.completed_count == 1)
            assert p.submit(lambda: None) is True
            rejection_handler.assert_not_called()
        finally:
            p.shutdown()

    def test_rejects_after_shutdown(self, rejection_handler: MagicMock) -> None:
        p = _make_pool(size=1, rejection_handler=rejection_handler)
        p.shutdown()
        ran = []
        assert p.submit(ran.append, 1) is False
        error = rejection_handler.call_args.args[0]
        assert error.reason == "shutdown"
        assert ran == []


# -- Shutdown ------------------------------------------------------------------


class TestShutdown:
    def test_drains_in_batches(self) -> None:
        p = _make_pool(size=2)
        start = time.monotonic()
        for _ in range(5):
            p.submit(time.sleep, 0.1)
        assert p.shutdown(wait=True, timeout=1) is True
        elapsed = time.monotonic() - start
        assert 0.25 <= elapsed < 1
        assert p.completed_count == 5
        assert p.state is PoolState.STOPPED

    def test_wait_lets_queued_tasks_finish(self) -> None:
        p = _make_pool(size=1)
        ran = []
        for i in range(5):
            p.submit(ran.append, i)
        assert p.shutdown(wait=True, timeout=2)
        assert ran == [0, 1, 2, 3, 4]

    def test_timeout_interrupts_running_tasks(self) -> None:
        p = _make_pool(size=1)
        saw_interrupt = threading.Event()

        def long_running() -> None:
            while not interrupted():
                time.sleep(0.01)
            saw_interrupt.set()

        p.submit(long_running)
        assert wait_for(lambda: p.active_count == 1)
        start = time.monotonic()
        assert p.shutdown(wait=True, timeout=0.2) is False
        assert time.monotonic() - start < 1
        assert p.state is PoolState.STOPPED
        assert saw_interrupt.wait(2)

    def test_no_wait_discards_queue_and_returns_promptly(self) -> None:
        p = _make_pool(size=1)
        ran = []

        def blocker() -> None:
            while not interrupted():
                time.sleep(0.01)

        p.submit(blocker)
        assert wait_for(lambda: p.active_count == 1)
        for i in range(5):
            p.submit(ran.append, i)

        start = time.monotonic()
        p.shutdown(wait=False)
        assert time.monotonic() - start < 0.5
        assert p.state is PoolState.STOPPED
        assert wait_for(lambda: p.active_count == 0)
        assert ran == []

    def test_defaults_from_constructor(self) -> None:
        p = WorkerPool(size=1, await_termination=0.1, wait_for_tasks_on_shutdown=True)
        p.submit(time.sleep, 0.5)
        assert wait_for(lambda: p.active_count == 1)
        start = time.monotonic()
        assert p.shutdown() is False
        assert time.monotonic() - start < 0.4

    def test_idempotent(self) -> None:
        p = _make_pool(size=2)
        first = p.shutdown()
        second = p.shutdown()
        assert first is True
        assert second is True
        assert p.state is PoolState.STOPPED

    def test_concurrent_shutdown_waits_for_first(self) -> None:
        p = _make_pool(size=1)
        p.submit(time.sleep, 0.3)
        assert wait_for(lambda: p.active_count == 1)

        first = []
        closer = threading.Thread(target=lambda: first.append(p.shutdown(wait=True, timeout=2)))
        closer.start()
        assert wait_for(lambda: p.state is PoolState.SHUTTING_DOWN)

        assert p.shutdown() is True
        assert p.state is PoolState.STOPPED
        closer.join(2)
        assert first == [True]

    def test_interrupted_false_outside_pool(self) -> None:
        assert interrupted() is False


def test_repr_mentions_size_and_state(pool: WorkerPool) -> None:
    assert "size=4" in repr(pool)
    assert "running" in repr(pool)
