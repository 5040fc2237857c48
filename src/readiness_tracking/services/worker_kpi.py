from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any

from readiness_tracking.services.kpi import calculate_assignment_kpi
from readiness_tracking.services.normalize import parse_date, parse_timestamp, utc_now


def month_bounds(day: date) -> tuple[date, date]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def _completed_on_time(row: dict[str, Any]) -> bool | None:
    completed_at = parse_timestamp(row.get("completed_at"))
    due_at = parse_timestamp(row.get("due_time"))
    if completed_at is None or due_at is None:
        return None
    return completed_at <= due_at


def summarize_worker_assignments(
    assignments: list[dict[str, Any]],
    now: datetime,
) -> dict[str, Any]:
    """Counts feeding the assignment KPI; cancelled rows are left out.

    Pending rows past their due time count as overdue even before the
    overdue sweep has updated their status.
    """
    rows = [row for row in assignments if row.get("status") != "cancelled"]
    completed = [row for row in rows if row.get("status") == "completed"]
    on_time = [row for row in completed if _completed_on_time(row) is True]
    late = [row for row in completed if _completed_on_time(row) is False]
    overdue = [row for row in rows if row.get("status") == "overdue"]

    pending_not_due = 0
    for row in rows:
        if row.get("status") != "pending":
            continue
        due_at = parse_timestamp(row.get("due_time"))
        if due_at is None:
            continue
        if due_at > now:
            pending_not_due += 1
        else:
            overdue.append(row)

    total = len(rows)
    return {
        "total": total,
        "completed": len(completed),
        "on_time_completed": len(on_time),
        "late_completed": len(late),
        "pending_not_due": pending_not_due,
        "overdue": len(overdue),
        "completion_rate": round(len(completed) / total * 100) if total else 0,
        "on_time_rate": len(on_time) / total * 100 if total else 0.0,
        "late_rate": round(len(late) / total * 100) if total else 0,
        "dated_entries": overdue + late,
    }


def _recent_assignment(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row.get("id"),
        "assigned_date": row.get("assigned_date"),
        "status": row.get("status"),
        "due_time": row.get("due_time"),
        "completed_at": row.get("completed_at"),
        "is_on_time": row.get("status") == "completed" and _completed_on_time(row) is True,
    }


def compute_worker_assignment_kpi(
    assignments: list[dict[str, Any]],
    now: datetime | None = None,
    recent_limit: int = 5,
) -> dict[str, Any]:
    now = parse_timestamp(now) if now is not None else utc_now()
    metrics = summarize_worker_assignments(assignments, now)
    kpi = calculate_assignment_kpi(
        metrics["completed"],
        metrics["total"],
        metrics["on_time_completed"],
        metrics["on_time_rate"],
        metrics["pending_not_due"],
        metrics["overdue"],
        metrics["dated_entries"],
        now=now,
    )
    ordered = sorted(
        assignments,
        key=lambda row: parse_date(row.get("assigned_date")) or date.min,
        reverse=True,
    )
    public_metrics = {key: value for key, value in metrics.items() if key != "dated_entries"}
    public_metrics["on_time_rate"] = round(metrics["on_time_rate"])
    return {
        "kpi": kpi,
        "metrics": public_metrics,
        "recent_assignments": [_recent_assignment(row) for row in ordered[:recent_limit]],
    }
