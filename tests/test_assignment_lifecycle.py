import sys
import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from readiness_tracking.data.db import connect, init_db
from readiness_tracking.data.repositories import AssignmentRepository
from readiness_tracking.services.assignment_guard import create_assignments
from readiness_tracking.services.assignment_lifecycle import (
    assignment_stats,
    can_submit,
    cancel_assignment,
    mark_overdue_assignments,
    update_assignment_status,
)

CREATED_AT = datetime(2024, 1, 15, 2, 0, tzinfo=timezone.utc)


class AssignmentLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.con = connect(Path(self._tmp.name) / "app.db")
        init_db(self.con)
        self.repo = AssignmentRepository(self.con)
        result = create_assignments(
            self.repo,
            ["w1", "w2"],
            "2024-01-15",
            team_leader_id="leader-1",
            due_time="17:00",
            now=CREATED_AT,
        )
        self.ids = {row["worker_id"]: row["id"] for row in result["assignments"]}

    def tearDown(self) -> None:
        self.con.close()
        self._tmp.cleanup()

    def test_mark_overdue_only_after_due_time(self) -> None:
        before = mark_overdue_assignments(self.repo, now=datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc))
        self.assertEqual(before["count"], 0)

        after = mark_overdue_assignments(self.repo, now=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(after["count"], 2)
        self.assertEqual(sorted(after["assignment_ids"]), sorted(self.ids.values()))
        self.assertEqual(self.repo.get(self.ids["w1"])["status"], "overdue")

    def test_overdue_worker_is_blocked_from_new_dates(self) -> None:
        mark_overdue_assignments(self.repo, now=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
        result = create_assignments(
            self.repo,
            ["w1"],
            "2024-01-16",
            now=datetime(2024, 1, 16, 1, 0, tzinfo=timezone.utc),
        )
        self.assertFalse(result["success"])
        self.assertEqual(result["overdue_workers"], ["w1"])

    def test_complete_sets_completed_at(self) -> None:
        completed_at = datetime(2024, 1, 15, 5, 30, tzinfo=timezone.utc)
        row = update_assignment_status(
            self.repo,
            self.ids["w1"],
            "completed",
            now=completed_at,
            notes="Done before lunch",
        )
        self.assertEqual(row["status"], "completed")
        self.assertEqual(row["completed_at"], completed_at.isoformat())
        self.assertEqual(row["notes"], "Done before lunch")

    def test_completed_worker_cannot_be_reassigned_same_day(self) -> None:
        update_assignment_status(self.repo, self.ids["w1"], "completed", now=CREATED_AT)
        cancel_assignment(self.repo, self.ids["w2"], now=CREATED_AT)
        result = create_assignments(self.repo, ["w1", "w2"], "2024-01-15", now=CREATED_AT)
        self.assertFalse(result["success"])
        self.assertEqual(result["completed_workers"], ["w1"])

    def test_cancel_frees_the_date(self) -> None:
        row = cancel_assignment(self.repo, self.ids["w2"], now=CREATED_AT)
        self.assertEqual(row["status"], "cancelled")
        result = create_assignments(self.repo, ["w2"], "2024-01-15", now=CREATED_AT)
        self.assertTrue(result["success"])

    def test_invalid_status_and_missing_assignment(self) -> None:
        with self.assertRaises(ValueError):
            update_assignment_status(self.repo, self.ids["w1"], "done")
        with self.assertRaises(LookupError):
            update_assignment_status(self.repo, "missing", "completed")

    def test_can_submit(self) -> None:
        allowed = can_submit(self.repo, "w1", date(2024, 1, 15))
        self.assertTrue(allowed["can_submit"])
        self.assertEqual(allowed["assignment"]["id"], self.ids["w1"])

        denied = can_submit(self.repo, "w3", date(2024, 1, 15))
        self.assertFalse(denied["can_submit"])
        self.assertIsNone(denied["assignment"])
        self.assertEqual(denied["message"], "No work readiness assignment for today.")


class AssignmentStatsTests(unittest.TestCase):
    def test_counts_by_status(self) -> None:
        rows = [
            {"status": "completed"},
            {"status": "completed"},
            {"status": "pending"},
            {"status": "overdue"},
            {"status": "cancelled"},
            {"status": "unknown"},
        ]
        stats = assignment_stats(rows)
        self.assertEqual(stats["total"], 6)
        self.assertEqual(stats["completed"], 2)
        self.assertEqual(stats["pending"], 1)
        self.assertEqual(stats["overdue"], 1)
        self.assertEqual(stats["cancelled"], 1)
        self.assertEqual(stats["completion_rate"], 33)

    def test_empty(self) -> None:
        stats = assignment_stats([])
        self.assertEqual(stats["total"], 0)
        self.assertEqual(stats["completion_rate"], 0)


if __name__ == "__main__":
    unittest.main()
