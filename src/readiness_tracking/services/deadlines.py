from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
import logging
import re
from typing import Any

from readiness_tracking.domain.constants import DEFAULT_TZ_OFFSET_HOURS, FALLBACK_DEADLINE_HOURS

LOGGER = logging.getLogger(__name__)

_MANUAL_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")
_SHIFT_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d):([0-5]\d)$")


def _parse_clock(value: Any, pattern: re.Pattern[str]) -> time | None:
    if not value or not isinstance(value, str):
        return None
    match = pattern.match(value.strip())
    if not match:
        return None
    hour, minute, second = match.groups()
    return time(int(hour), int(minute), int(second or 0))


def local_to_utc(day: date, clock: time, tz_offset_hours: float) -> datetime:
    local_tz = timezone(timedelta(hours=tz_offset_hours))
    return datetime.combine(day, clock, tzinfo=local_tz).astimezone(timezone.utc)


def _fallback(now: datetime, reason: str) -> tuple[datetime, dict[str, Any]]:
    LOGGER.info("Using fallback deadline: %s", reason)
    return now + timedelta(hours=FALLBACK_DEADLINE_HOURS), {
        "type": "fallback",
        "fallback_reason": reason,
    }


def resolve_due_time(
    assigned_date: date,
    now: datetime,
    due_time: str | None = None,
    shift: dict[str, Any] | None = None,
    tz_offset_hours: float = DEFAULT_TZ_OFFSET_HOURS,
) -> tuple[datetime, dict[str, Any]]:
    """Deadline for assignments created on ``assigned_date``.

    Priority: an explicit ``due_time`` ("HH:MM"), then the end of the team
    leader's shift on the assigned date, then ``now`` plus 24 hours. Clock
    times are local to ``tz_offset_hours``; the returned datetime is UTC.
    """
    if due_time:
        clock = _parse_clock(due_time, _MANUAL_TIME_RE)
        if clock is None:
            raise ValueError(f"Invalid due time {due_time!r} (expected HH:MM).")
        return local_to_utc(assigned_date, clock, tz_offset_hours), {
            "type": "manual",
            "provided_time": due_time,
        }

    if not shift:
        return _fallback(now, "No active shift assigned")

    start = _parse_clock(shift.get("start_time"), _SHIFT_TIME_RE)
    end = _parse_clock(shift.get("end_time"), _SHIFT_TIME_RE)
    if start is None or end is None:
        LOGGER.warning(
            "Invalid shift time format: start=%s end=%s",
            shift.get("start_time"),
            shift.get("end_time"),
        )
        return _fallback(now, "Invalid shift time format")

    # Night shifts crossing midnight still fall due on the assigned date.
    return local_to_utc(assigned_date, end, tz_offset_hours), {
        "type": "shift_based",
        "shift_name": shift.get("shift_name"),
        "start_time": shift.get("start_time"),
        "end_time": shift.get("end_time"),
    }
