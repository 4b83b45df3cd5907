"""
Periodic maintenance task.

Runs for the lifetime of the app and currently only logs a heartbeat;
it is the hook for housekeeping jobs.
"""

import asyncio

from app.logging_config import get_logger

logger = get_logger(__name__)


async def run_periodic_maintenance(interval_seconds: float) -> None:
    """Log a maintenance heartbeat every ``interval_seconds`` until cancelled."""
    logger.info("Periodic maintenance scheduled", interval_seconds=interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        logger.info("Running periodic maintenance")
