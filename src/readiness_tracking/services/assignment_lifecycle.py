from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Any

from readiness_tracking.domain.constants import ASSIGNMENT_STATUSES
from readiness_tracking.services.normalize import parse_timestamp, utc_now

LOGGER = logging.getLogger(__name__)


def _resolve_now(now: datetime | None) -> datetime:
    return parse_timestamp(now) if now is not None else utc_now()


def mark_overdue_assignments(repository: Any, now: datetime | None = None) -> dict[str, Any]:
    now = _resolve_now(now)
    candidates = repository.list_pending_past_due(now)
    if not candidates:
        return {
            "count": 0,
            "assignment_ids": [],
            "message": "No assignments are past due time yet",
        }
    assignment_ids = [row["id"] for row in candidates]
    repository.update_status(assignment_ids, "overdue", updated_at=now)
    LOGGER.info("Marked %s assignments as overdue at %s", len(assignment_ids), now.isoformat())
    return {
        "count": len(assignment_ids),
        "assignment_ids": assignment_ids,
        "message": f"Marked {len(assignment_ids)} assignments as overdue",
    }


def update_assignment_status(
    repository: Any,
    assignment_id: str,
    status: str,
    now: datetime | None = None,
    notes: str | None = None,
) -> dict[str, Any]:
    if status not in ASSIGNMENT_STATUSES:
        raise ValueError(f"Invalid status {status!r}.")
    assignment = repository.get(assignment_id)
    if assignment is None:
        raise LookupError(f"Assignment {assignment_id} not found.")

    now = _resolve_now(now)
    completed_at = None
    if status == "completed":
        completed_at = now
        due_at = parse_timestamp(assignment.get("due_time"))
        if assignment.get("status") == "overdue" or (due_at is not None and now > due_at):
            LOGGER.info(
                "Completing assignment %s after its due time %s",
                assignment_id,
                assignment.get("due_time"),
            )

    repository.update_status(
        [assignment_id],
        status,
        updated_at=now,
        completed_at=completed_at,
        notes=notes,
    )
    LOGGER.info("Assignment %s updated to %s", assignment_id, status)
    return repository.get(assignment_id)


def cancel_assignment(
    repository: Any,
    assignment_id: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    return update_assignment_status(repository, assignment_id, "cancelled", now=now)


def assignment_stats(assignments: list[dict[str, Any]]) -> dict[str, int]:
    counts = {status: 0 for status in ASSIGNMENT_STATUSES}
    for row in assignments:
        status = row.get("status")
        if status in counts:
            counts[status] += 1
    total = len(assignments)
    return {
        "total": total,
        **counts,
        "completion_rate": round(counts["completed"] / total * 100) if total else 0,
    }


def can_submit(repository: Any, worker_id: str, day: date) -> dict[str, Any]:
    assignment = repository.get_active_for_date(worker_id, day)
    return {
        "can_submit": assignment is not None,
        "assignment": assignment,
        "message": (
            "You have an active work readiness assignment"
            if assignment
            else "No work readiness assignment for today."
        ),
    }
