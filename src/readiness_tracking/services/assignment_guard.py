from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import Any, Iterable, Protocol
from uuid import uuid4

from readiness_tracking.domain.constants import DEFAULT_TZ_OFFSET_HOURS, OPEN_ASSIGNMENT_STATUSES
from readiness_tracking.services.deadlines import resolve_due_time
from readiness_tracking.services.normalize import parse_date, parse_timestamp, utc_now

LOGGER = logging.getLogger(__name__)


class DuplicateAssignmentError(ValueError):
    """The store already holds an assignment for a worker on that date."""


class AssignmentRepository(Protocol):
    def find_by_worker_ids(
        self,
        worker_ids: list[str],
        statuses: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]: ...

    def insert_many(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]: ...


def _append_unique(target: list[str], worker_id: str) -> None:
    if worker_id not in target:
        target.append(worker_id)


def find_assignment_conflicts(
    existing: list[dict[str, Any]],
    assigned_date: date,
    now: datetime,
) -> dict[str, list[str]]:
    """Partition existing assignments into the reasons a worker is blocked.

    Overdue blocks on any date, including pending work whose due time has
    passed but which has not been marked overdue yet. Pending work that is
    not yet due, and work already completed, only block the same assigned
    date.
    """
    overdue_workers: list[str] = []
    pending_not_due_workers: list[str] = []
    completed_workers: list[str] = []

    for row in existing:
        worker_id = row.get("worker_id")
        if not worker_id:
            continue
        status = row.get("status")
        same_date = parse_date(row.get("assigned_date")) == assigned_date
        if status == "overdue":
            _append_unique(overdue_workers, worker_id)
        elif status == "pending":
            due_at = parse_timestamp(row.get("due_time"))
            if due_at is not None and due_at <= now:
                _append_unique(overdue_workers, worker_id)
            elif same_date:
                _append_unique(pending_not_due_workers, worker_id)
        elif status == "completed" and same_date:
            _append_unique(completed_workers, worker_id)

    return {
        "overdue_workers": overdue_workers,
        "pending_not_due_workers": pending_not_due_workers,
        "completed_workers": completed_workers,
    }


def _rejection(assigned_date: date, conflicts: dict[str, list[str]]) -> dict[str, Any] | None:
    day = assigned_date.isoformat()
    if conflicts["overdue_workers"]:
        return {
            "success": False,
            "error": (
                "Cannot assign new work readiness tasks. Some workers have overdue "
                f"assignments for {day}."
            ),
            "overdue_workers": conflicts["overdue_workers"],
            "message": (
                "Workers with overdue assignments cannot receive new assignments on the same date."
            ),
        }
    if conflicts["pending_not_due_workers"]:
        return {
            "success": False,
            "error": (
                "Cannot assign new work readiness tasks. Some workers have pending "
                "assignments that are not yet due. Wait until their current assignments "
                "are due or completed."
            ),
            "pending_not_due_workers": conflicts["pending_not_due_workers"],
            "message": (
                "Workers with pending assignments that are not yet due cannot receive "
                "new assignments."
            ),
        }
    if conflicts["completed_workers"]:
        return {
            "success": False,
            "error": (
                "Some workers have already completed their work readiness assignment "
                f"for {day}. Duplicate assignments are not allowed on the same date."
            ),
            "completed_workers": conflicts["completed_workers"],
            "message": (
                "Workers who completed their assessment cannot receive duplicate "
                "assignments on the same date."
            ),
        }
    return None


def _unique_worker_ids(worker_ids: Iterable[str]) -> list[str]:
    ids: list[str] = []
    for worker_id in worker_ids or []:
        clean = str(worker_id).strip() if worker_id is not None else ""
        if clean:
            _append_unique(ids, clean)
    return ids


def create_assignments(
    repository: AssignmentRepository,
    worker_ids: Iterable[str],
    assigned_date: Any,
    *,
    team: str | None = None,
    notes: str | None = None,
    team_leader_id: str | None = None,
    due_time: str | None = None,
    shift: dict[str, Any] | None = None,
    now: datetime | None = None,
    tz_offset_hours: float = DEFAULT_TZ_OFFSET_HOURS,
) -> dict[str, Any]:
    """Create one pending assignment per worker unless the batch conflicts.

    Conflicts reject the whole batch with a result dict naming the blocked
    workers. Check and insert are separate store calls, so a concurrent
    batch for the same workers and date is stopped only by the store's
    unique constraint, surfacing here as a duplicate rejection.
    """
    ids = _unique_worker_ids(worker_ids)
    if not ids:
        raise ValueError("At least one worker is required.")
    day = parse_date(assigned_date)
    if day is None:
        raise ValueError(f"Invalid assigned date {assigned_date!r}.")
    now = parse_timestamp(now) if now is not None else utc_now()

    LOGGER.info(
        "Creating assignments: workers=%s date=%s team=%s leader=%s",
        ids,
        day.isoformat(),
        team,
        team_leader_id,
    )

    existing = repository.find_by_worker_ids(ids, statuses=OPEN_ASSIGNMENT_STATUSES)
    conflicts = find_assignment_conflicts(existing, day, now)
    rejection = _rejection(day, conflicts)
    if rejection:
        LOGGER.warning(
            "Assignment batch for %s rejected: %s",
            day.isoformat(),
            {key: value for key, value in conflicts.items() if value},
        )
        return rejection

    due_at, deadline_info = resolve_due_time(
        day,
        now,
        due_time=due_time,
        shift=shift,
        tz_offset_hours=tz_offset_hours,
    )
    created_at = now.astimezone(timezone.utc).isoformat()
    rows = [
        {
            "id": str(uuid4()),
            "worker_id": worker_id,
            "team_leader_id": team_leader_id,
            "team": team,
            "assigned_date": day.isoformat(),
            "due_time": due_at.isoformat(),
            "status": "pending",
            "completed_at": None,
            "notes": notes or None,
            "created_at": created_at,
            "updated_at": created_at,
        }
        for worker_id in ids
    ]

    try:
        created = repository.insert_many(rows)
    except DuplicateAssignmentError as exc:
        LOGGER.warning("Duplicate assignment blocked by store constraint: %s", exc)
        return {
            "success": False,
            "duplicate": True,
            "error": (
                "Duplicate assignment detected. Some workers already have assignments "
                "for this date."
            ),
            "message": "The store prevented duplicate assignment creation.",
        }

    LOGGER.info("Created %s assignments for %s", len(created), day.isoformat())
    return {
        "success": True,
        "assignments": created,
        "deadline_info": deadline_info,
        "message": f"Successfully created {len(created)} assignment(s)",
    }
