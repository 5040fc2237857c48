from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import sqlite3

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS workers (
  id TEXT PRIMARY KEY,
  first_name TEXT NOT NULL DEFAULT '',
  last_name TEXT NOT NULL DEFAULT '',
  email TEXT,
  team TEXT,
  team_leader_id TEXT,
  active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS work_readiness_assignments (
  id TEXT PRIMARY KEY,
  worker_id TEXT NOT NULL,
  team_leader_id TEXT,
  team TEXT,
  assigned_date TEXT NOT NULL,
  due_time TEXT,
  status TEXT NOT NULL DEFAULT 'pending',
  completed_at TEXT,
  notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_assignments_worker_date
  ON work_readiness_assignments (worker_id, assigned_date);

CREATE INDEX IF NOT EXISTS idx_assignments_status_due
  ON work_readiness_assignments (status, due_time);

CREATE TABLE IF NOT EXISTS work_readiness_submissions (
  id TEXT PRIMARY KEY,
  worker_id TEXT NOT NULL,
  assignment_id TEXT,
  submitted_at TEXT NOT NULL,
  readiness_level TEXT,
  FOREIGN KEY(assignment_id) REFERENCES work_readiness_assignments(id)
);

CREATE INDEX IF NOT EXISTS idx_submissions_worker_time
  ON work_readiness_submissions (worker_id, submitted_at);
"""

def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(db_path.as_posix())
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON;")
    return con


def _get_user_version(con: sqlite3.Connection) -> int:
    row = con.execute("PRAGMA user_version;").fetchone()
    return int(row[0]) if row else 0


def _set_user_version(con: sqlite3.Connection, version: int) -> None:
    con.execute(f"PRAGMA user_version = {version};")


def _migrate_to_v2(con: sqlite3.Connection) -> None:
    # Keep the oldest live assignment per worker and day before enforcing uniqueness.
    con.execute(
        """
        UPDATE work_readiness_assignments
        SET status = 'cancelled', updated_at = ?
        WHERE status != 'cancelled'
          AND rowid NOT IN (
            SELECT MIN(rowid)
            FROM work_readiness_assignments
            WHERE status != 'cancelled'
            GROUP BY worker_id, assigned_date
          )
        """,
        (datetime.now(timezone.utc).isoformat(),),
    )
    con.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS unique_assignment_per_worker_per_day
          ON work_readiness_assignments (worker_id, assigned_date)
          WHERE status != 'cancelled'
        """
    )
    _set_user_version(con, 2)


def init_db(con: sqlite3.Connection) -> None:
    con.executescript(SCHEMA_SQL)
    current_version = _get_user_version(con)
    if current_version < 2:
        _migrate_to_v2(con)
    con.commit()


def table_count(con: sqlite3.Connection, table: str) -> int:
    cur = con.execute(f"SELECT COUNT(1) AS n FROM {table}")
    return int(cur.fetchone()["n"])
