from __future__ import annotations

from datetime import date, datetime, timezone
import sqlite3
from typing import Any, Iterable
from uuid import uuid4

from readiness_tracking.domain.constants import READINESS_LEVELS
from readiness_tracking.services.assignment_guard import DuplicateAssignmentError
from readiness_tracking.services.normalize import parse_timestamp

_ASSIGNMENT_COLUMNS = (
    "id",
    "worker_id",
    "team_leader_id",
    "team",
    "assigned_date",
    "due_time",
    "status",
    "completed_at",
    "notes",
    "created_at",
    "updated_at",
)


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class AssignmentRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def find_by_worker_ids(
        self,
        worker_ids: list[str],
        statuses: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        if not worker_ids:
            return []
        query = f"""
            SELECT {", ".join(_ASSIGNMENT_COLUMNS)}
            FROM work_readiness_assignments
            WHERE worker_id IN ({_placeholders(worker_ids)})
        """
        params: list[Any] = list(worker_ids)
        status_list = list(statuses or [])
        if status_list:
            query += f" AND status IN ({_placeholders(status_list)})"
            params.extend(status_list)
        query += " ORDER BY assigned_date DESC, created_at DESC"
        cur = self.con.execute(query, params)
        return [dict(r) for r in cur.fetchall()]

    def insert_many(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not rows:
            return []
        payload = [
            tuple(_iso(row.get(column)) for column in _ASSIGNMENT_COLUMNS)
            for row in rows
        ]
        try:
            self.con.executemany(
                f"""
                INSERT INTO work_readiness_assignments ({", ".join(_ASSIGNMENT_COLUMNS)})
                VALUES ({_placeholders(_ASSIGNMENT_COLUMNS)})
                """,
                payload,
            )
        except sqlite3.IntegrityError as exc:
            self.con.rollback()
            if "UNIQUE" in str(exc):
                raise DuplicateAssignmentError(str(exc)) from exc
            raise
        self.con.commit()
        return [dict(zip(_ASSIGNMENT_COLUMNS, values)) for values in payload]

    def get(self, assignment_id: str) -> dict[str, Any] | None:
        cur = self.con.execute(
            f"""
            SELECT {", ".join(_ASSIGNMENT_COLUMNS)}
            FROM work_readiness_assignments
            WHERE id = ?
            """,
            (assignment_id,),
        )
        row = cur.fetchone()
        return dict(row) if row else None

    def list_for_worker(
        self,
        worker_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[dict[str, Any]]:
        query = f"""
            SELECT {", ".join(_ASSIGNMENT_COLUMNS)}
            FROM work_readiness_assignments
            WHERE worker_id = ?
        """
        params: list[Any] = [worker_id]
        if date_from:
            query += " AND assigned_date >= ?"
            params.append(date_from.isoformat())
        if date_to:
            query += " AND assigned_date <= ?"
            params.append(date_to.isoformat())
        query += " ORDER BY assigned_date DESC"
        cur = self.con.execute(query, params)
        return [dict(r) for r in cur.fetchall()]

    def list_for_team_leader(
        self,
        team_leader_id: str,
        date_from: date,
        date_to: date,
    ) -> list[dict[str, Any]]:
        cur = self.con.execute(
            f"""
            SELECT {", ".join(_ASSIGNMENT_COLUMNS)}
            FROM work_readiness_assignments
            WHERE team_leader_id = ?
              AND assigned_date >= ?
              AND assigned_date <= ?
            ORDER BY assigned_date DESC
            """,
            (team_leader_id, date_from.isoformat(), date_to.isoformat()),
        )
        return [dict(r) for r in cur.fetchall()]

    def list_pending_past_due(self, now: datetime) -> list[dict[str, Any]]:
        cur = self.con.execute(
            f"""
            SELECT {", ".join(_ASSIGNMENT_COLUMNS)}
            FROM work_readiness_assignments
            WHERE status = 'pending' AND due_time IS NOT NULL
            """
        )
        rows = [dict(r) for r in cur.fetchall()]
        past_due = []
        for row in rows:
            due_at = parse_timestamp(row.get("due_time"))
            if due_at is not None and due_at < now:
                past_due.append(row)
        return past_due

    def get_active_for_date(self, worker_id: str, day: date) -> dict[str, Any] | None:
        cur = self.con.execute(
            f"""
            SELECT {", ".join(_ASSIGNMENT_COLUMNS)}
            FROM work_readiness_assignments
            WHERE worker_id = ? AND assigned_date = ? AND status = 'pending'
            """,
            (worker_id, day.isoformat()),
        )
        row = cur.fetchone()
        return dict(row) if row else None

    def update_status(
        self,
        assignment_ids: list[str],
        status: str,
        updated_at: datetime,
        completed_at: datetime | None = None,
        notes: str | None = None,
    ) -> int:
        if not assignment_ids:
            return 0
        sets = ["status = ?", "updated_at = ?"]
        params: list[Any] = [status, _iso(updated_at)]
        if completed_at is not None:
            sets.append("completed_at = ?")
            params.append(_iso(completed_at))
        if notes:
            sets.append("notes = ?")
            params.append(notes)
        params.extend(assignment_ids)
        cur = self.con.execute(
            f"""
            UPDATE work_readiness_assignments
            SET {", ".join(sets)}
            WHERE id IN ({_placeholders(assignment_ids)})
            """,
            params,
        )
        self.con.commit()
        return cur.rowcount


class SubmissionRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def add_submission(
        self,
        worker_id: str,
        submitted_at: datetime,
        readiness_level: str | None = None,
        assignment_id: str | None = None,
    ) -> str:
        if readiness_level is not None and readiness_level not in READINESS_LEVELS:
            raise ValueError(
                f"Invalid readiness level {readiness_level!r} (expected one of {', '.join(READINESS_LEVELS)})."
            )
        submission_id = str(uuid4())
        self.con.execute(
            """
            INSERT INTO work_readiness_submissions (
                id,
                worker_id,
                assignment_id,
                submitted_at,
                readiness_level
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (submission_id, worker_id, assignment_id, _iso(submitted_at), readiness_level),
        )
        self.con.commit()
        return submission_id

    def list_for_workers(
        self,
        worker_ids: list[str],
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[dict[str, Any]]:
        if not worker_ids:
            return []
        query = f"""
            SELECT id, worker_id, assignment_id, submitted_at, readiness_level
            FROM work_readiness_submissions
            WHERE worker_id IN ({_placeholders(worker_ids)})
        """
        params: list[Any] = list(worker_ids)
        if date_from:
            query += " AND substr(submitted_at, 1, 10) >= ?"
            params.append(date_from.isoformat())
        if date_to:
            query += " AND substr(submitted_at, 1, 10) <= ?"
            params.append(date_to.isoformat())
        query += " ORDER BY submitted_at ASC"
        cur = self.con.execute(query, params)
        return [dict(r) for r in cur.fetchall()]


class WorkerRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def list_team(self, team: str, active_only: bool = True) -> list[dict[str, Any]]:
        query = """
            SELECT id, first_name, last_name, email, team, team_leader_id, active
            FROM workers
            WHERE team = ?
        """
        if active_only:
            query += " AND active = 1"
        query += " ORDER BY last_name, first_name"
        cur = self.con.execute(query, (team,))
        rows = [dict(r) for r in cur.fetchall()]
        for row in rows:
            display = f"{row.get('first_name', '')} {row.get('last_name', '')}".strip()
            row["display_name"] = display or row.get("id")
            row["active"] = bool(row.get("active"))
        return rows
