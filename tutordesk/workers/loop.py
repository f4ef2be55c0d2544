"""Polling loop shared by worker entrypoints."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


async def run_periodically(
    name: str,
    cycle: Callable[[], Awaitable[Any]],
    *,
    interval_seconds: float,
    once: bool = False,
) -> None:
    """Run ``cycle`` forever, logging its result; a failed cycle does not stop the loop."""
    if once:
        logger.info("%s finished: %s", name, await cycle())
        return

    while True:
        try:
            logger.info("%s finished: %s", name, await cycle())
        except Exception:
            logger.exception("%s cycle failed", name)
        await asyncio.sleep(interval_seconds)
