from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from readiness_tracking.domain.constants import (
    COLOR_AMBER,
    COLOR_BLUE,
    COLOR_DARK_RED,
    COLOR_GRAY,
    COLOR_GREEN,
    COLOR_ORANGE,
    COLOR_RED,
    COLOR_YELLOW,
    COMPLETION_WEIGHT,
    MAX_CYCLE_DAYS,
    MAX_OVERDUE_WEIGHT,
    ON_TIME_RATE_WEIGHT,
    OVERDUE_PENALTY_CAP,
    PENDING_BONUS_CAP,
    PUNCTUALITY_WEIGHT,
    RECOVERY_BONUS_CAP,
    RECOVERY_POINTS_PER_ASSIGNMENT,
    RECOVERY_WINDOW_HOURS,
    SHIFT_HOURS,
    SHIFTS_PER_FULL_WEIGHT,
)
from readiness_tracking.services.normalize import clamp, parse_timestamp, to_float, utc_now

# (min days, rating, score, color, description)
_CYCLE_TIERS: list[tuple[int, str, int, str, str]] = [
    (7, "Perfect", 100, COLOR_GREEN, "7+ consecutive days completed. Work readiness cycle mastered."),
    (6, "Outstanding", 95, COLOR_GREEN, "6 consecutive days. One more day to complete the cycle."),
    (5, "Excellent", 85, COLOR_GREEN, "5 consecutive days. Almost at the finish line."),
    (4, "Strong Performance", 75, COLOR_BLUE, "4 consecutive days. Strong commitment."),
    (3, "Good Progress", 60, COLOR_BLUE, "3 consecutive days. Consistency is developing."),
    (2, "Building Momentum", 40, COLOR_AMBER, "2 consecutive days. Good habits are forming."),
    (1, "Getting Started", 20, COLOR_AMBER, "Day 1 complete. Keep building momentum."),
    (0, "Not Started", 0, COLOR_GRAY, "No consecutive days completed yet."),
]

# (min rate, rating, color)
_RATE_BANDS: list[tuple[float, str, str]] = [
    (90, "Excellent", COLOR_GREEN),
    (75, "Good", COLOR_BLUE),
    (60, "Average", COLOR_AMBER),
    (40, "Needs Improvement", COLOR_RED),
]
_RATE_FLOOR = ("Poor", COLOR_DARK_RED)

# (min score, rating, letter grade, color)
_GRADE_BANDS: list[tuple[float, str, str, str]] = [
    (90, "Excellent", "A", COLOR_GREEN),
    (80, "Good", "B", COLOR_BLUE),
    (65, "Average", "C", COLOR_YELLOW),
    (50, "Below Average", "D", COLOR_ORANGE),
]
_GRADE_FLOOR = ("Needs Improvement", "F", COLOR_RED)

_GRADE_DESCRIPTIONS = {
    "A": "Excellent assignment completion and punctuality.",
    "B": "Good performance. Keep up the consistency.",
    "C": "Average performance. Focus on completing more assignments.",
    "D": "Below average performance. Needs improvement.",
    "F": "Poor performance. Immediate attention required.",
}


def _normalize_cycle_days(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    number = to_float(value)
    if number is None or not number.is_integer():
        return 0
    return max(int(number), 0)


def calculate_kpi(consecutive_days: Any) -> dict[str, Any]:
    """Rate a worker by consecutive completed days in the current cycle."""
    days = _normalize_cycle_days(consecutive_days)
    _, rating, score, color, description = next(
        tier for tier in _CYCLE_TIERS if days >= tier[0]
    )
    return {
        "rating": rating,
        "score": score,
        "color": color,
        "description": description,
        "consecutive_days": days,
        "max_days": MAX_CYCLE_DAYS,
    }


def _rate_band(rate: float) -> tuple[str, str]:
    for min_rate, rating, color in _RATE_BANDS:
        if rate >= min_rate:
            return rating, color
    return _RATE_FLOOR


def calculate_completion_rate_kpi(rate: Any) -> dict[str, Any]:
    value = clamp(to_float(rate) or 0.0)
    rating, color = _rate_band(value)
    return {
        "rating": rating,
        "score": value,
        "color": color,
        "description": f"{rating}: {round(value)}% completion rate.",
    }


def calculate_weekly_team_kpi(
    submission_rate: Any,
    submitted_count: int,
    total_count: int,
) -> dict[str, Any]:
    value = clamp(to_float(submission_rate) or 0.0)
    rating, color = _rate_band(value)
    return {
        "rating": rating,
        "score": value,
        "color": color,
        "description": (
            f"{rating}: {submitted_count}/{total_count} members submitted work readiness "
            f"this week ({round(value)}%)."
        ),
        "submission_rate": value,
        "submitted_count": submitted_count,
        "total_count": total_count,
        "max_rate": 100,
    }


def _grade(score: float) -> tuple[str, str, str]:
    for min_score, rating, letter, color in _GRADE_BANDS:
        if score >= min_score:
            return rating, letter, color
    return _GRADE_FLOOR


def _empty_breakdown() -> dict[str, Any]:
    return {
        "completion_score": 0.0,
        "on_time_score": 0.0,
        "punctuality_score": 0.0,
        "pending_bonus": 0.0,
        "overdue_penalty": 0.0,
        "recovery_bonus": 0.0,
        "shift_based_decay_applied": False,
    }


def _is_completed(entry: dict[str, Any]) -> bool:
    return entry.get("status") == "completed" or bool(entry.get("completed_at"))


def _overdue_weight(due_at: datetime, now: datetime) -> float | None:
    elapsed = now - due_at
    if elapsed <= timedelta(0):
        return None
    shifts = int(elapsed.total_seconds() // (SHIFT_HOURS * 3600))
    return min(MAX_OVERDUE_WEIGHT, max(1, shifts) / SHIFTS_PER_FULL_WEIGHT)


def _shift_decay_weight(entries: list[dict[str, Any]], now: datetime) -> float | None:
    weights = []
    for entry in entries:
        if _is_completed(entry):
            continue
        due_at = parse_timestamp(entry.get("due_time"))
        if due_at is None:
            continue
        weight = _overdue_weight(due_at, now)
        if weight is not None:
            weights.append(weight)
    if not weights:
        return None
    return sum(weights)


def _count_recoveries(entries: list[dict[str, Any]]) -> int:
    window = timedelta(hours=RECOVERY_WINDOW_HOURS)
    recoveries = 0
    for entry in entries:
        if entry.get("status") == "cancelled":
            continue
        completed_at = parse_timestamp(entry.get("completed_at"))
        due_at = parse_timestamp(entry.get("due_time"))
        if completed_at is None or due_at is None:
            continue
        lateness = completed_at - due_at
        if timedelta(0) < lateness <= window:
            recoveries += 1
    return recoveries


def calculate_assignment_kpi(
    completed: Any,
    total: Any,
    on_time_completed: Any = 0,
    on_time_rate: Any = 0,
    pending_count: Any = 0,
    overdue_count: Any = 0,
    overdue_assignments_with_dates: list[dict[str, Any]] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Score a worker's assignment record.

    The base score blends completion rate, the supplied on-time rate and the
    share of completions made on time. A pending bonus (cap 5), an overdue
    penalty (cap 10) and a recovery bonus (cap 3) are then applied and the
    result is clamped to [0, 100].

    When ``overdue_assignments_with_dates`` holds open entries whose
    ``due_time`` has passed, the penalty accrues per elapsed shift for each
    of them instead of per overdue count.
    """
    total_value = to_float(total) or 0.0
    if total_value <= 0:
        return {
            "rating": "No Assignments",
            "letter_grade": "N/A",
            "score": 0,
            "color": COLOR_GRAY,
            "description": "No assignments given yet.",
            "completion_rate": 0.0,
            "on_time_rate": 0.0,
            "breakdown": _empty_breakdown(),
        }

    now = parse_timestamp(now) if now is not None else utc_now()
    entries = list(overdue_assignments_with_dates or [])
    completed_value = max(to_float(completed) or 0.0, 0.0)
    on_time_value = max(to_float(on_time_completed) or 0.0, 0.0)

    completion_rate = clamp(completed_value / total_value * 100)
    on_time_pct = clamp(to_float(on_time_rate) or 0.0)
    punctuality = clamp(on_time_value / completed_value * 100) if completed_value else 0.0

    completion_score = completion_rate * COMPLETION_WEIGHT
    on_time_score = on_time_pct * ON_TIME_RATE_WEIGHT
    punctuality_score = punctuality * PUNCTUALITY_WEIGHT

    pending_value = max(to_float(pending_count) or 0.0, 0.0)
    pending_bonus = min(PENDING_BONUS_CAP, pending_value / total_value * PENDING_BONUS_CAP)

    decay_weight = _shift_decay_weight(entries, now)
    shift_based_decay_applied = decay_weight is not None
    if shift_based_decay_applied:
        overdue_units = decay_weight
    else:
        overdue_units = max(to_float(overdue_count) or 0.0, 0.0)
    overdue_penalty = min(OVERDUE_PENALTY_CAP, overdue_units / total_value * OVERDUE_PENALTY_CAP)

    recovery_bonus = 0.0
    if completed_value > 0:
        recovery_bonus = min(
            RECOVERY_BONUS_CAP,
            _count_recoveries(entries) * RECOVERY_POINTS_PER_ASSIGNMENT,
        )

    raw_score = (
        completion_score
        + on_time_score
        + punctuality_score
        + pending_bonus
        - overdue_penalty
        + recovery_bonus
    )
    score = round(clamp(raw_score), 2)
    rating, letter_grade, color = _grade(score)

    return {
        "rating": rating,
        "letter_grade": letter_grade,
        "score": score,
        "color": color,
        "description": _GRADE_DESCRIPTIONS[letter_grade],
        "completion_rate": completion_rate,
        "on_time_rate": on_time_pct,
        "breakdown": {
            "completion_score": round(completion_score, 2),
            "on_time_score": round(on_time_score, 2),
            "punctuality_score": round(punctuality_score, 2),
            "pending_bonus": pending_bonus,
            "overdue_penalty": overdue_penalty,
            "recovery_bonus": recovery_bonus,
            "shift_based_decay_applied": shift_based_decay_applied,
        },
    }
