"""Shared utility functions."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

HOURS_QUANTUM = Decimal("0.01")


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_hours(value: Decimal | float | int | str) -> Decimal:
    """Coerce an hours amount to the ledger's two-decimal precision."""
    return Decimal(str(value)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def resolve_zone(name: str | None, fallback: str = "UTC") -> ZoneInfo:
    """Return a ZoneInfo for the name, or the fallback zone if it is unknown."""
    try:
        return ZoneInfo(name or fallback)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(fallback)


def local_to_utc(day: date, at: time, zone: ZoneInfo) -> datetime:
    """Interpret a wall-clock date and time in zone and return the UTC instant."""
    return datetime.combine(day, at, tzinfo=zone).astimezone(timezone.utc)
