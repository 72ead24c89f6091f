"""
Periodic sync task.

Runs SyncJob passes on a fixed period until shutdown is signaled, or back
to back until the exchange has nothing new. The pass itself is blocking
(requests + sqlite), so the periodic task runs it in the default executor
to keep the event loop responsive to signals.
"""

import asyncio
import logging
from typing import Callable, Optional

from .coordinator import PassResult
from .job import SyncJob

logger = logging.getLogger(__name__)


def run_until_caught_up(
    job: SyncJob,
    max_passes: int,
    progress: Optional[Callable[[int, PassResult], None]] = None,
) -> int:
    """
    Run passes back to back until the exchange has nothing new.

    A pass that fetched trades which were all already stored still moves
    on, so only an empty fetch ends the catch-up. A skipped pass or a
    failed group stops it early.

    Args:
        job: Job to run
        max_passes: Upper bound on passes
        progress: Called with (pass_number, result) after each completed pass

    Returns:
        Total number of trades stored
    """
    total = 0

    for pass_number in range(1, max_passes + 1):
        result = job.run()

        if result.skipped:
            logger.warning("Sync lock busy, stopping catch-up")
            break

        total += result.total_stored
        if progress is not None:
            progress(pass_number, result)

        if result.failed_groups:
            logger.error(f"Groups failed: {', '.join(result.failed_groups)}")
            break

        if result.total_fetched == 0:
            break
    else:
        logger.info(f"Stopped after {max_passes} passes, more trades may remain")

    return total


async def run_once(job: SyncJob) -> PassResult:
    """Run a single pass off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, job.run)


async def run_periodic(
    job: SyncJob,
    shutdown_event: asyncio.Event,
    interval: Optional[float] = None,
) -> int:
    """
    Background task that runs periodic sync passes.

    Args:
        job: Job to run
        shutdown_event: Event signaling shutdown
        interval: Seconds between passes (defaults to job.period())

    Returns:
        Number of passes attempted
    """
    period = interval if interval is not None else job.period()
    passes = 0

    logger.info(f"Scheduling '{job.tag()}' every {period:.0f}s")

    try:
        while not shutdown_event.is_set():
            passes += 1
            try:
                result = await run_once(job)
                if result.skipped:
                    logger.info("Pass skipped, lock busy")
            except Exception as e:
                logger.error(f"Unexpected error in sync pass: {e}")

            # Wait for next pass or shutdown
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=period)
                break
            except asyncio.TimeoutError:
                continue

    except asyncio.CancelledError:
        logger.debug("Sync task cancelled")

    return passes
