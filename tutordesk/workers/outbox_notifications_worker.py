"""Materialise pending outbox events into notification intents.

Configured through ``OUTBOX_WORKER_*`` environment variables; ``OUTBOX_WORKER_MODE=loop``
keeps polling, anything else runs a single cycle.
"""

from __future__ import annotations

import asyncio
import logging
import os

from tutordesk.core.database import session_scope
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.notifications.outbox_worker import NotificationsOutboxWorker
from tutordesk.modules.notifications.repository import NotificationsRepository
from tutordesk.workers.loop import run_periodically


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(f"OUTBOX_WORKER_{name}", str(default)))


async def run_cycle() -> dict[str, int]:
    async with session_scope() as session:
        worker = NotificationsOutboxWorker(
            AuditRepository(session),
            NotificationsRepository(session),
            batch_size=_env_int("BATCH_SIZE", 100),
            max_retries=_env_int("MAX_RETRIES", 5),
            base_backoff_seconds=_env_int("BASE_BACKOFF_SECONDS", 30),
            max_backoff_seconds=_env_int("MAX_BACKOFF_SECONDS", 300),
        )
        return await worker.run_once()


async def main() -> None:
    logging.basicConfig(level=os.getenv("OUTBOX_WORKER_LOG_LEVEL", "INFO"))
    await run_periodically(
        "Outbox notifications worker",
        run_cycle,
        interval_seconds=_env_int("POLL_SECONDS", 10),
        once=os.getenv("OUTBOX_WORKER_MODE", "once").strip().lower() != "loop",
    )


if __name__ == "__main__":
    asyncio.run(main())
