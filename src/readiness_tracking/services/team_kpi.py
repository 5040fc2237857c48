from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable

import pandas as pd

from readiness_tracking.services.kpi import calculate_weekly_team_kpi
from readiness_tracking.services.streaks import calculate_streaks


def week_bounds(week_start: date) -> tuple[date, date]:
    return week_start, week_start + timedelta(days=6)


def _submissions_frame(submissions: list[dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(submissions)
    if df.empty or "submitted_at" not in df.columns or "worker_id" not in df.columns:
        return pd.DataFrame(columns=["worker_id", "submitted_at", "submitted_date"])
    df = df.copy()
    # Calendar day as written in the timestamp, matching the streak computation.
    df["submitted_date"] = pd.to_datetime(
        df["submitted_at"].astype(str).str.slice(0, 10), errors="coerce"
    ).dt.date
    return df.dropna(subset=["worker_id", "submitted_date"])


def compute_weekly_team_kpi(
    worker_ids: Iterable[str],
    submissions: list[dict[str, Any]],
    week_start: date,
) -> dict[str, Any]:
    team = sorted({str(worker_id) for worker_id in worker_ids if worker_id})
    week_from, week_to = week_bounds(week_start)
    df = _submissions_frame(submissions)
    if not df.empty:
        in_week = (df["submitted_date"] >= week_from) & (df["submitted_date"] <= week_to)
        in_team = df["worker_id"].astype(str).isin(team)
        submitted_workers = sorted(df.loc[in_week & in_team, "worker_id"].astype(str).unique())
    else:
        submitted_workers = []

    total_count = len(team)
    submitted_count = len(submitted_workers)
    rate = submitted_count / total_count * 100 if total_count else 0.0
    kpi = calculate_weekly_team_kpi(rate, submitted_count, total_count)
    return {
        "kpi": kpi,
        "week_from": week_from.isoformat(),
        "week_to": week_to.isoformat(),
        "submitted_workers": submitted_workers,
        "missing_workers": [worker_id for worker_id in team if worker_id not in submitted_workers],
    }


def compute_worker_streaks(submissions: list[dict[str, Any]]) -> dict[str, dict[str, int]]:
    df = _submissions_frame(submissions)
    if df.empty:
        return {}
    streaks: dict[str, dict[str, int]] = {}
    for worker_id, group in df.groupby(df["worker_id"].astype(str)):
        streaks[worker_id] = calculate_streaks(group[["submitted_at"]].to_dict("records"))
    return streaks
