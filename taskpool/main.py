"""taskpool entry point."""

import logging
import signal
import threading

from taskpool.config import settings
from taskpool.context import RootContext

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def log_pool_stats(context: RootContext) -> None:
    """Log a one-line summary of the shared pool."""
    pool = context.pool
    logger.info(
        "Pool stats: active=%d/%d queued=%d completed=%d scheduled_tasks=%d",
        pool.active_count,
        pool.size,
        pool.queue_size,
        pool.completed_count,
        len(context.scheduler.list_tasks()),
    )


def main() -> None:
    """Start the shared pool and scheduler, then run until SIGINT/SIGTERM."""
    stop = threading.Event()

    def _handle_signal(signum, frame) -> None:
        logger.info("Received %s, shutting down...", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    context = RootContext()
    if settings.pool_stats_interval_seconds:
        context.registrar.add_fixed_rate_task(
            lambda: log_pool_stats(context),
            settings.pool_stats_interval_seconds,
            initial_delay=settings.pool_stats_interval_seconds,
            name="pool-stats",
        )

    logger.info("Starting taskpool...")
    with context:
        stop.wait()
    logger.info("taskpool stopped")


if __name__ == "__main__":
    main()
