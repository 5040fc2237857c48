from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable

from readiness_tracking.services.normalize import parse_date


def submission_dates(assessments: Iterable[dict[str, Any]]) -> list[date]:
    dates = {parse_date(row.get("submitted_at")) for row in assessments or []}
    dates.discard(None)
    return sorted(dates)


def calculate_streaks(assessments: Iterable[dict[str, Any]]) -> dict[str, int]:
    """Current and longest runs of consecutive submission days.

    The current streak is the run ending at the most recent submission, not
    one anchored to today.
    """
    dates = submission_dates(assessments)
    if not dates:
        return {"current": 0, "longest": 0}

    longest = 1
    run = 1
    for previous, current in zip(dates, dates[1:]):
        if current - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return {"current": run, "longest": longest}
