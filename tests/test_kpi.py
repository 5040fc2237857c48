import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from readiness_tracking.services import kpi

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _iso(delta: timedelta) -> str:
    return (NOW - delta).isoformat()


class ConsecutiveDaysKpiTests(unittest.TestCase):
    def test_not_started(self) -> None:
        result = kpi.calculate_kpi(0)
        self.assertEqual(result["rating"], "Not Started")
        self.assertEqual(result["score"], 0)
        self.assertEqual(result["color"], "#6b7280")

    def test_getting_started(self) -> None:
        result = kpi.calculate_kpi(1)
        self.assertEqual(result["rating"], "Getting Started")
        self.assertEqual(result["score"], 20)
        self.assertEqual(result["color"], "#f59e0b")

    def test_saturates_at_seven(self) -> None:
        for days in (7, 10):
            result = kpi.calculate_kpi(days)
            self.assertEqual(result["rating"], "Perfect")
            self.assertEqual(result["score"], 100)
            self.assertEqual(result["color"], "#10b981")

    def test_invalid_input_counts_as_zero(self) -> None:
        for value in (-3, 2.5, None, "abc", True):
            self.assertEqual(kpi.calculate_kpi(value)["rating"], "Not Started")
        self.assertEqual(kpi.calculate_kpi(3.0)["rating"], "Good Progress")

    def test_monotonic(self) -> None:
        scores = [kpi.calculate_kpi(days)["score"] for days in range(12)]
        self.assertEqual(scores, sorted(scores))


class RateKpiTests(unittest.TestCase):
    EXPECTED = [
        (95, "Excellent", "#10b981"),
        (80, "Good", "#3b82f6"),
        (65, "Average", "#f59e0b"),
        (50, "Needs Improvement", "#ef4444"),
        (30, "Poor", "#dc2626"),
    ]

    def test_completion_rate_bands(self) -> None:
        for rate, rating, color in self.EXPECTED:
            result = kpi.calculate_completion_rate_kpi(rate)
            self.assertEqual(result["rating"], rating)
            self.assertEqual(result["score"], rate)
            self.assertEqual(result["color"], color)

    def test_band_boundaries(self) -> None:
        self.assertEqual(kpi.calculate_completion_rate_kpi(90)["rating"], "Excellent")
        self.assertEqual(kpi.calculate_completion_rate_kpi(89.9)["rating"], "Good")
        self.assertEqual(kpi.calculate_completion_rate_kpi(40)["rating"], "Needs Improvement")

    def test_score_is_clamped(self) -> None:
        self.assertEqual(kpi.calculate_completion_rate_kpi(120)["score"], 100)
        self.assertEqual(kpi.calculate_completion_rate_kpi(-5)["score"], 0)

    def test_weekly_team_bands(self) -> None:
        for rate, rating, color in self.EXPECTED:
            result = kpi.calculate_weekly_team_kpi(rate, 10, 20)
            self.assertEqual(result["rating"], rating)
            self.assertEqual(result["score"], rate)
            self.assertEqual(result["color"], color)

    def test_weekly_team_counts_do_not_change_score(self) -> None:
        first = kpi.calculate_weekly_team_kpi(95, 19, 20)
        second = kpi.calculate_weekly_team_kpi(95, 100, 105)
        for key in ("rating", "score", "color"):
            self.assertEqual(first[key], second[key])
        self.assertEqual(second["submitted_count"], 100)
        self.assertEqual(second["total_count"], 105)


class AssignmentKpiTests(unittest.TestCase):
    def test_no_assignments(self) -> None:
        result = kpi.calculate_assignment_kpi(0, 0, 5, 80, 3, 2, [{"due_time": _iso(timedelta(days=1))}])
        self.assertEqual(result["rating"], "No Assignments")
        self.assertEqual(result["letter_grade"], "N/A")
        self.assertEqual(result["score"], 0)

    def test_excellent(self) -> None:
        result = kpi.calculate_assignment_kpi(90, 100, 85, 90, 5, 0, now=NOW)
        self.assertEqual(result["rating"], "Excellent")
        self.assertEqual(result["letter_grade"], "A")
        self.assertGreater(result["score"], 90)

    def test_needs_improvement(self) -> None:
        result = kpi.calculate_assignment_kpi(20, 100, 15, 50, 0, 30, now=NOW)
        self.assertEqual(result["rating"], "Needs Improvement")
        self.assertEqual(result["letter_grade"], "F")
        self.assertLess(result["score"], 50)

    def test_pending_bonus(self) -> None:
        result = kpi.calculate_assignment_kpi(50, 100, 40, 70, 20, 0, now=NOW)
        self.assertGreater(result["breakdown"]["pending_bonus"], 0)
        self.assertLessEqual(result["breakdown"]["pending_bonus"], 5)

    def test_overdue_penalty(self) -> None:
        result = kpi.calculate_assignment_kpi(50, 100, 40, 70, 0, 20, now=NOW)
        self.assertGreater(result["breakdown"]["overdue_penalty"], 0)
        self.assertLessEqual(result["breakdown"]["overdue_penalty"], 10)
        self.assertFalse(result["breakdown"]["shift_based_decay_applied"])

    def test_bonus_and_penalty_caps(self) -> None:
        result = kpi.calculate_assignment_kpi(5, 10, 5, 50, 50, 50, now=NOW)
        self.assertEqual(result["breakdown"]["pending_bonus"], 5)
        self.assertEqual(result["breakdown"]["overdue_penalty"], 10)

    def test_score_is_clamped(self) -> None:
        result = kpi.calculate_assignment_kpi(0, 10, 0, 0, 0, 10, now=NOW)
        self.assertEqual(result["score"], 0)
        self.assertEqual(result["letter_grade"], "F")

    def test_shift_based_decay(self) -> None:
        entries = [
            {"due_time": _iso(timedelta(days=1)), "status": "overdue"},
            {"due_time": _iso(timedelta(days=5)), "status": "overdue"},
        ]
        result = kpi.calculate_assignment_kpi(50, 100, 40, 70, 0, 2, entries, now=NOW)
        self.assertTrue(result["breakdown"]["shift_based_decay_applied"])
        self.assertGreater(result["breakdown"]["overdue_penalty"], 0)

    def test_older_overdue_weighs_more(self) -> None:
        recent = kpi.calculate_assignment_kpi(
            5, 10, 5, 50, 0, 1, [{"due_time": _iso(timedelta(hours=9)), "status": "overdue"}], now=NOW
        )
        old = kpi.calculate_assignment_kpi(
            5, 10, 5, 50, 0, 1, [{"due_time": _iso(timedelta(days=4)), "status": "overdue"}], now=NOW
        )
        self.assertLess(recent["breakdown"]["overdue_penalty"], old["breakdown"]["overdue_penalty"])

    def test_future_due_dates_fall_back_to_count(self) -> None:
        entries = [{"due_time": (NOW + timedelta(hours=3)).isoformat(), "status": "pending"}]
        result = kpi.calculate_assignment_kpi(5, 10, 5, 50, 0, 1, entries, now=NOW)
        self.assertFalse(result["breakdown"]["shift_based_decay_applied"])
        self.assertAlmostEqual(result["breakdown"]["overdue_penalty"], 1.0)

    def test_recovery_bonus(self) -> None:
        entries = [
            {
                "due_time": _iso(timedelta(days=2)),
                "status": "completed",
                "completed_at": _iso(timedelta(days=1)),
            }
        ]
        result = kpi.calculate_assignment_kpi(80, 100, 70, 80, 0, 0, entries, now=NOW)
        self.assertGreater(result["breakdown"]["recovery_bonus"], 0)

    def test_no_recovery_bonus_for_slow_catch_up(self) -> None:
        entries = [
            {
                "due_time": _iso(timedelta(days=6)),
                "status": "completed",
                "completed_at": _iso(timedelta(days=1)),
            }
        ]
        result = kpi.calculate_assignment_kpi(80, 100, 70, 80, 0, 0, entries, now=NOW)
        self.assertEqual(result["breakdown"]["recovery_bonus"], 0)


if __name__ == "__main__":
    unittest.main()
