from __future__ import annotations

from pathlib import Path
import sqlite3

import pandas as pd

from readiness_tracking.domain.constants import ASSIGNMENT_STATUSES, READINESS_LEVELS
from readiness_tracking.services.normalize import parse_date

_REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "workers": ("id",),
    "work_readiness_assignments": ("id", "worker_id", "assigned_date", "created_at"),
    "work_readiness_submissions": ("id", "worker_id", "submitted_at"),
}


def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        return pd.DataFrame()
    df = pd.read_csv(path, sep=",", dtype=str, encoding="utf-8-sig")
    df.columns = [c.strip().lstrip("\ufeff") for c in df.columns]
    return df


def _require_columns(table: str, df: pd.DataFrame) -> None:
    missing = [col for col in _REQUIRED_COLUMNS[table] if col not in df.columns]
    if missing:
        raise ValueError(f"Seed for {table} is missing column(s): {', '.join(missing)}")
    blank = df[list(_REQUIRED_COLUMNS[table])].isna().any(axis=1)
    if blank.any():
        ids = df.loc[blank, "id"].fillna("?").tolist()
        raise ValueError(f"Seed for {table} has blank required values in rows: {ids}")


def _invalid_ids(df: pd.DataFrame, mask: pd.Series) -> list[str]:
    return df.loc[mask, "id"].astype(str).tolist()


def _prepare_assignments(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    if "status" not in df.columns:
        df["status"] = "pending"
    df["status"] = df["status"].fillna("pending").str.strip().str.lower()
    bad_status = ~df["status"].isin(ASSIGNMENT_STATUSES)
    if bad_status.any():
        raise ValueError(f"Unknown assignment status in rows: {_invalid_ids(df, bad_status)}")

    days = df["assigned_date"].map(parse_date)
    if days.isna().any():
        raise ValueError(f"Invalid assigned_date in rows: {_invalid_ids(df, days.isna())}")
    df["assigned_date"] = days.map(lambda day: day.isoformat())
    return df


def _prepare_submissions(df: pd.DataFrame) -> pd.DataFrame:
    if "readiness_level" not in df.columns:
        return df
    df = df.copy()
    df["readiness_level"] = df["readiness_level"].str.strip().str.lower()
    bad_level = df["readiness_level"].notna() & ~df["readiness_level"].isin(READINESS_LEVELS)
    if bad_level.any():
        raise ValueError(f"Unknown readiness_level in rows: {_invalid_ids(df, bad_level)}")
    return df


def _write_rows(con: sqlite3.Connection, table: str, df: pd.DataFrame) -> int:
    cols = list(df.columns)
    updates = ", ".join(f"{c}=excluded.{c}" for c in cols if c != "id")
    sql = (
        f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}"
    )
    rows = [
        tuple(None if pd.isna(v) else v for v in row)
        for row in df[cols].itertuples(index=False, name=None)
    ]
    con.executemany(sql, rows)
    return len(rows)


def seed_from_csv(con: sqlite3.Connection, sample_dir: Path) -> dict[str, int]:
    """Upsert workers, assignments and submissions from CSV files in ``sample_dir``.

    Every file is validated before anything is written; a bad file raises
    ``ValueError`` and leaves the database untouched.
    """
    frames = {
        "workers": _read_csv(sample_dir / "workers.csv"),
        "work_readiness_assignments": _read_csv(sample_dir / "assignments.csv"),
        "work_readiness_submissions": _read_csv(sample_dir / "submissions.csv"),
    }
    for table, df in frames.items():
        if not df.empty:
            _require_columns(table, df)
    if not frames["work_readiness_assignments"].empty:
        frames["work_readiness_assignments"] = _prepare_assignments(
            frames["work_readiness_assignments"]
        )
    if not frames["work_readiness_submissions"].empty:
        frames["work_readiness_submissions"] = _prepare_submissions(
            frames["work_readiness_submissions"]
        )

    # assignments before submissions (FK)
    counts = {}
    try:
        for table, df in frames.items():
            counts[table] = _write_rows(con, table, df) if not df.empty else 0
    except sqlite3.Error:
        con.rollback()
        raise
    con.commit()
    return counts
