"""
Unattended Schedule Background Task.

Runs a reconciliation pass after an initial delay and then at a fixed
interval until cancelled. Each pass runs in a worker thread so that SIGINT
and SIGTERM are honoured between passes.
"""

import asyncio
import signal

from aliasync.clients.base import SyncClients
from aliasync.config import SyncConfig
from aliasync.triggers import run_unattended
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Background Task
# =============================================================================


async def run_schedule(
    cfg: SyncConfig,
    clients: SyncClients,
    audit=None,
    max_passes: int | None = None,
) -> int:
    """
    Run unattended passes periodically.

    Args:
        cfg: Sync configuration (initial delay and interval).
        clients: Cloud, cluster and probe clients.
        audit: Optional audit sink.
        max_passes: Stop after this many passes (None = run until cancelled).

    Returns:
        Number of passes started.
    """
    passes = 0
    delay = cfg.SCHEDULE_INITIAL_DELAY_SECONDS
    logger.info(
        f"Alias sync schedule started: first pass in {delay}s, "
        f"then every {cfg.SCHEDULE_INTERVAL_SECONDS}s"
    )

    while max_passes is None or passes < max_passes:
        await asyncio.sleep(delay)
        delay = cfg.SCHEDULE_INTERVAL_SECONDS
        passes += 1

        try:
            await asyncio.to_thread(run_unattended, cfg, clients, audit)
        except Exception as e:
            logger.exception(f"Unexpected error in scheduled alias sync: {e}")

    return passes


def serve(cfg: SyncConfig, clients: SyncClients, audit=None) -> None:
    """Run the schedule in the foreground until SIGINT or SIGTERM."""

    async def _main() -> None:
        task = asyncio.create_task(run_schedule(cfg, clients, audit))
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, task.cancel)

        try:
            await task
        except asyncio.CancelledError:
            logger.info("Alias sync schedule stopped")

    asyncio.run(_main())
