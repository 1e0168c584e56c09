"""Shared constants for posture telemetry processing."""

from __future__ import annotations

MS_PER_SECOND = 1_000
MS_PER_DAY = 86_400_000
# Day spans end at 23:59:59, not 23:59:59.999.
DAY_END_OFFSET_MS = MS_PER_DAY - MS_PER_SECOND

TIME_COLUMN = "t"
ACCELERATION_COLUMNS = ("x", "y", "z")
POINTS_COLUMNS = ("t", "score", "posture", "movement", "activity")

DEFAULT_ACTIVITY_GAP_MS = 10_000
DEFAULT_MOVEMENT_WINDOW = 10
MOVEMENT_NORMALIZATION = 8.0

POSTURE_ANGLE_COUNT = 9
PITCH_CORRECTION_FACTOR = 1.5

DEFAULT_HISTOGRAM_BINS = 10
HISTOGRAM_DELTA_PAD = 1e-8
HISTOGRAM_MIN_DELTA = 1e-6

# Device clocks outside this window are treated as corrupt.
VALID_FROM_MS = 1_514_764_800_000  # 2018-01-01T00:00:00Z
VALID_UNTIL_MS = 2_208_988_800_000  # 2040-01-01T00:00:00Z

DEFAULT_WORKERS = 4
EMPTY_SCORE_AVERAGE = 50.0

# Row plausibility: a row is faulty when more than 2 bend readings exceed 500.
MAX_PLAUSIBLE_BEND_READING = 500
MAX_IMPLAUSIBLE_READINGS_PER_ROW = 2
FAULTY_ROW_SUS_FRACTION = 0.01
FAULTY_ROW_TURBO_SUS_FRACTION = 0.02
