"""Time-window rules deciding whether a schedule change applies now or waits for approval.

All comparisons are made between absolute UTC instants, so the outcome does not
depend on the server's local clock.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from tutordesk.core.enums import GateDecisionEnum
from tutordesk.shared.utils import ensure_utc, local_to_utc

CANCEL_WINDOW_HOURS = 24
RESCHEDULE_WINDOW_HOURS = 12


def hours_until_session(starts_at: datetime, now: datetime) -> float:
    """Hours from now to the session start; negative once it has started."""
    return (ensure_utc(starts_at) - ensure_utc(now)).total_seconds() / 3600


def decide_booking(is_new_learner: bool) -> GateDecisionEnum:
    if is_new_learner:
        return GateDecisionEnum.DEFERRED
    return GateDecisionEnum.IMMEDIATE


def decide_cancel(hours_until: float, window_hours: int = CANCEL_WINDOW_HOURS) -> GateDecisionEnum:
    if hours_until >= window_hours:
        return GateDecisionEnum.IMMEDIATE
    return GateDecisionEnum.DEFERRED


def decide_reschedule(hours_until: float, window_hours: int = RESCHEDULE_WINDOW_HOURS) -> GateDecisionEnum:
    if hours_until >= window_hours:
        return GateDecisionEnum.IMMEDIATE
    return GateDecisionEnum.DEFERRED


def decide_pause() -> GateDecisionEnum:
    return GateDecisionEnum.DEFERRED


def slot_instants(
    lesson_date: date,
    start_time: time,
    duration_hours: Decimal,
    zone: ZoneInfo,
) -> tuple[datetime, datetime, time]:
    """Return (starts_at, ends_at, end_time) for a wall-clock slot in zone."""
    starts_at = local_to_utc(lesson_date, start_time, zone)
    ends_at = starts_at + timedelta(hours=float(duration_hours))
    end_time = ends_at.astimezone(zone).time().replace(tzinfo=None)
    return starts_at, ends_at, end_time
