from __future__ import annotations

ASSIGNMENT_STATUSES = ("pending", "completed", "overdue", "cancelled")
OPEN_ASSIGNMENT_STATUSES = ("pending", "completed", "overdue")

COLOR_GRAY = "#6b7280"
COLOR_AMBER = "#f59e0b"
COLOR_BLUE = "#3b82f6"
COLOR_GREEN = "#10b981"
COLOR_YELLOW = "#eab308"
COLOR_ORANGE = "#f97316"
COLOR_RED = "#ef4444"
COLOR_DARK_RED = "#dc2626"

MAX_CYCLE_DAYS = 7

# Assignment KPI weighting; the three weights sum to 1.
COMPLETION_WEIGHT = 0.60
ON_TIME_RATE_WEIGHT = 0.25
PUNCTUALITY_WEIGHT = 0.15

PENDING_BONUS_CAP = 5.0
OVERDUE_PENALTY_CAP = 10.0
RECOVERY_BONUS_CAP = 3.0
RECOVERY_POINTS_PER_ASSIGNMENT = 1.0
RECOVERY_WINDOW_HOURS = 48

SHIFT_HOURS = 8
SHIFTS_PER_FULL_WEIGHT = 3
MAX_OVERDUE_WEIGHT = 3.0

DEFAULT_TZ_OFFSET_HOURS = 8
FALLBACK_DEADLINE_HOURS = 24

READINESS_LEVELS = ("fit", "minor", "not_fit")
