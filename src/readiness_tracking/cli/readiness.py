from __future__ import annotations

import argparse
from datetime import date, datetime, timedelta
import json
import logging
import os
from pathlib import Path
import sys
from typing import Any

from readiness_tracking.data.db import connect, init_db
from readiness_tracking.data.repositories import (
    AssignmentRepository,
    SubmissionRepository,
    WorkerRepository,
)
from readiness_tracking.data.seed import seed_from_csv
from readiness_tracking.domain.constants import DEFAULT_TZ_OFFSET_HOURS
from readiness_tracking.services.assignment_guard import create_assignments
from readiness_tracking.services.assignment_lifecycle import (
    assignment_stats,
    cancel_assignment,
    mark_overdue_assignments,
    update_assignment_status,
)
from readiness_tracking.services.normalize import parse_timestamp, utc_now
from readiness_tracking.services.streaks import calculate_streaks
from readiness_tracking.services.team_kpi import compute_weekly_team_kpi
from readiness_tracking.services.worker_kpi import compute_worker_assignment_kpi, month_bounds

LOGGER = logging.getLogger(__name__)


def _tz_offset_hours() -> float:
    raw = os.getenv("READINESS_TRACKING_TZ_OFFSET_HOURS")
    if not raw:
        return DEFAULT_TZ_OFFSET_HOURS
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError("READINESS_TRACKING_TZ_OFFSET_HOURS must be a number of hours.") from exc


def _parse_day(value: str | None, label: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid {label} date (YYYY-MM-DD).") from exc


def _parse_now(value: str | None) -> datetime:
    if not value:
        return utc_now()
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError("Invalid --now timestamp (ISO 8601).")
    return parsed


def _get_db_connection() -> Any:
    data_dir = Path(os.getenv("READINESS_TRACKING_DATA_DIR", "./data"))
    db_path = Path(os.getenv("READINESS_TRACKING_DB_PATH", data_dir / "app.db"))
    con = connect(db_path)
    init_db(con)
    return con


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _run_create(con, args: argparse.Namespace, now: datetime) -> dict[str, Any]:
    shift = None
    if args.shift_end:
        shift = {
            "shift_name": args.shift_name,
            "start_time": args.shift_start,
            "end_time": args.shift_end,
        }
    return create_assignments(
        AssignmentRepository(con),
        args.workers,
        args.date,
        team=args.team,
        notes=args.notes,
        team_leader_id=args.team_leader,
        due_time=args.due_time,
        shift=shift,
        now=now,
        tz_offset_hours=_tz_offset_hours(),
    )


def _run_stats(con, args: argparse.Namespace, now: datetime) -> dict[str, Any]:
    date_to = _parse_day(args.date_to, "--to") or now.date()
    date_from = _parse_day(args.date_from, "--from") or date_to - timedelta(days=7)
    rows = AssignmentRepository(con).list_for_team_leader(args.team_leader, date_from, date_to)
    return {
        "stats": assignment_stats(rows),
        "date_range": {"start": date_from.isoformat(), "end": date_to.isoformat()},
    }


def _run_worker_kpi(con, args: argparse.Namespace, now: datetime) -> dict[str, Any]:
    month_start, month_end = month_bounds(_parse_day(args.month, "--month") or now.date())
    rows = AssignmentRepository(con).list_for_worker(args.worker, month_start, month_end)
    result = compute_worker_assignment_kpi(rows, now=now)
    result["period"] = {"start": month_start.isoformat(), "end": month_end.isoformat()}
    return result


def _run_team_kpi(con, args: argparse.Namespace, now: datetime) -> dict[str, Any]:
    today = now.date()
    week_start = _parse_day(args.week_start, "--week-start") or today - timedelta(days=today.weekday())
    workers = WorkerRepository(con).list_team(args.team)
    worker_ids = [row["id"] for row in workers]
    submissions = SubmissionRepository(con).list_for_workers(
        worker_ids,
        week_start,
        week_start + timedelta(days=6),
    )
    return compute_weekly_team_kpi(worker_ids, submissions, week_start)


def _run_streaks(con, args: argparse.Namespace, now: datetime) -> dict[str, Any]:
    submissions = SubmissionRepository(con).list_for_workers([args.worker])
    return {"worker_id": args.worker, **calculate_streaks(submissions)}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Work readiness assignments and KPIs.")
    parser.add_argument("--now", help="Override the current time (ISO 8601).")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create assignments for a batch of workers.")
    create.add_argument("--worker", dest="workers", action="append", required=True)
    create.add_argument("--date", required=True, help="Assigned date (YYYY-MM-DD).")
    create.add_argument("--team")
    create.add_argument("--team-leader")
    create.add_argument("--notes")
    create.add_argument("--due-time", help="Local due time (HH:MM).")
    create.add_argument("--shift-name")
    create.add_argument("--shift-start", help="Shift start (HH:MM:SS).")
    create.add_argument("--shift-end", help="Shift end (HH:MM:SS).")

    sub.add_parser("mark-overdue", help="Mark pending past-due assignments as overdue.")

    complete = sub.add_parser("complete", help="Mark an assignment completed.")
    complete.add_argument("assignment_id")
    complete.add_argument("--notes")

    cancel = sub.add_parser("cancel", help="Cancel an assignment.")
    cancel.add_argument("assignment_id")

    stats = sub.add_parser("stats", help="Assignment statistics for a team leader.")
    stats.add_argument("--team-leader", required=True)
    stats.add_argument("--from", dest="date_from")
    stats.add_argument("--to", dest="date_to")

    worker_kpi = sub.add_parser("worker-kpi", help="Monthly assignment KPI for a worker.")
    worker_kpi.add_argument("--worker", required=True)
    worker_kpi.add_argument("--month", help="Any date inside the month (YYYY-MM-DD).")

    team_kpi = sub.add_parser("team-kpi", help="Weekly submission KPI for a team.")
    team_kpi.add_argument("--team", required=True)
    team_kpi.add_argument("--week-start", help="First day of the week (YYYY-MM-DD).")

    streaks = sub.add_parser("streaks", help="Submission streaks for a worker.")
    streaks.add_argument("--worker", required=True)

    seed = sub.add_parser("seed", help="Load workers/assignments/submissions CSV files.")
    seed.add_argument("sample_dir", type=Path)
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = _build_parser().parse_args(argv)

    try:
        now = _parse_now(args.now)
        con = _get_db_connection()
        if args.command == "create":
            result = _run_create(con, args, now)
        elif args.command == "mark-overdue":
            result = mark_overdue_assignments(AssignmentRepository(con), now=now)
        elif args.command == "complete":
            result = update_assignment_status(
                AssignmentRepository(con),
                args.assignment_id,
                "completed",
                now=now,
                notes=args.notes,
            )
        elif args.command == "cancel":
            result = cancel_assignment(AssignmentRepository(con), args.assignment_id, now=now)
        elif args.command == "stats":
            result = _run_stats(con, args, now)
        elif args.command == "worker-kpi":
            result = _run_worker_kpi(con, args, now)
        elif args.command == "team-kpi":
            result = _run_team_kpi(con, args, now)
        elif args.command == "streaks":
            result = _run_streaks(con, args, now)
        else:
            result = seed_from_csv(con, args.sample_dir)
    except (ValueError, LookupError) as exc:
        LOGGER.error("%s", exc)
        return 2

    _print_json(result)
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
