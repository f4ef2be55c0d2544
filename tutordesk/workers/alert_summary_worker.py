"""Executable worker that queues the daily alert digest for every teacher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

from tutordesk.core.database import session_scope
from tutordesk.core.enums import AlertLevelEnum
from tutordesk.modules.alerts.service import AlertsService, build_alerts_service
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.workers.loop import run_periodically

logger = logging.getLogger(__name__)


async def queue_summaries(alerts_service: AlertsService, audit_repository: AuditRepository) -> int:
    """Emit one ``alerts.daily_summary`` event per teacher with red or yellow alerts."""
    queued = 0
    for teacher_id in await alerts_service.learners_repository.list_teacher_ids():
        alerts = await alerts_service.daily_summary(teacher_id)
        if not alerts:
            continue
        await audit_repository.create_outbox_event(
            aggregate_type="alerts",
            aggregate_id=str(teacher_id),
            event_type="alerts.daily_summary",
            payload={
                "teacher_id": str(teacher_id),
                "red": sum(1 for alert in alerts if alert.level == AlertLevelEnum.RED),
                "yellow": sum(1 for alert in alerts if alert.level == AlertLevelEnum.YELLOW),
                "titles": [alert.title for alert in alerts],
            },
        )
        queued += 1
    return queued


async def run_cycle() -> int:
    async with session_scope() as session:
        return await queue_summaries(build_alerts_service(session), AuditRepository(session))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Queue daily alert summaries for teachers.")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    parser.add_argument("--interval-hours", type=float, default=24.0)
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=os.getenv("ALERT_SUMMARY_LOG_LEVEL", "INFO"))
    await run_periodically(
        "Alert summary worker",
        run_cycle,
        interval_seconds=args.interval_hours * 3600,
        once=args.once,
    )


if __name__ == "__main__":
    asyncio.run(main())
