"""Composition of segmentation, feature derivation, and histograms for reporting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
import logging
from typing import Callable, Hashable, Sequence

import numpy as np
import pandas as pd

from .cache import PerUserCache
from .constants import (
    ACCELERATION_COLUMNS,
    DEFAULT_HISTOGRAM_BINS,
    EMPTY_SCORE_AVERAGE,
    FAULTY_ROW_SUS_FRACTION,
    FAULTY_ROW_TURBO_SUS_FRACTION,
    MAX_IMPLAUSIBLE_READINGS_PER_ROW,
    MAX_PLAUSIBLE_BEND_READING,
)
from .errors import InsufficientData
from .features import FeatureConfig, movement_score, posture_features
from .histogram import Limit, NDHistogram
from .presets import PostureModelPreset, preferred_posture_model
from .segmentation import (
    SegmentationConfig,
    group_by_date,
    partition_by_day,
    segment_activity,
    source_timespan,
    summarize_activity_blocks,
)
from .source import TabularSource, TimeIndex, column_matrix
from .timespan import ms_to_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreSummary:
    """Score statistics for one selection of scored points."""

    average_score: float
    # samples at 1 Hz, i.e. seconds
    duration: int
    min: float
    max: float


@dataclass(frozen=True)
class UserScoreSummary:
    """Overall score summary plus one entry per measured day."""

    overall_summary: ScoreSummary
    daily_summaries: list[tuple[date, ScoreSummary]]


def summarize_scores(source: TabularSource, *, score_col: str = "score") -> ScoreSummary:
    """Average/min/max score and sample count; empty selections get neutral defaults."""
    scores = pd.Series(source.column(score_col), dtype=float)
    average = scores.mean()
    return ScoreSummary(
        average_score=EMPTY_SCORE_AVERAGE if pd.isna(average) else float(average),
        duration=int(source.row_count()),
        min=0.0 if scores.dropna().empty else float(scores.min()),
        max=0.0 if scores.dropna().empty else float(scores.max()),
    )


def summarize_user_scores(
    source: TabularSource,
    *,
    score_col: str = "score",
    min_length: int | None = None,
    config: SegmentationConfig = SegmentationConfig(),
) -> UserScoreSummary:
    """Overall and per-day score summaries; days without enough rows are skipped."""
    daily = [
        (day, summarize_scores(subset, score_col=score_col))
        for day, subset in group_by_date(source, min_length, config)
    ]
    return UserScoreSummary(
        overall_summary=summarize_scores(source, score_col=score_col),
        daily_summaries=daily,
    )


def daily_score_table(summary: UserScoreSummary) -> pd.DataFrame:
    """Flatten per-day score summaries into a table sorted by day."""
    rows = [
        {
            "day": day,
            "average_score": item.average_score,
            "duration_s": item.duration,
            "min_score": item.min,
            "max_score": item.max,
        }
        for day, item in summary.daily_summaries
    ]
    columns = ["day", "average_score", "duration_s", "min_score", "max_score"]
    return pd.DataFrame(rows, columns=columns).sort_values("day").reset_index(drop=True)


class SuspicionLevel(str, Enum):
    OK = "ok"
    SUS = "sus"
    TURBO_SUS = "turbo_sus"


@dataclass(frozen=True)
class RowValidation:
    """Plausibility verdict for a sensor recording."""

    level: SuspicionLevel
    message: str = ""
    faulty_rows: int = 0

    @property
    def ok(self) -> bool:
        return self.level is SuspicionLevel.OK


def validate_rows(source: TabularSource, sensor_columns: Sequence[str]) -> RowValidation:
    """Flag recordings where too many rows carry implausible bend readings.

    A row is faulty when more than two of its ``sensor_columns`` exceed 500 in
    magnitude. Above 1% faulty rows the recording is suspicious, above 2% it is
    very suspicious. An empty recording is always very suspicious.
    """
    rows = source.row_count()
    if rows == 0:
        return RowValidation(SuspicionLevel.TURBO_SUS, "empty")

    readings = np.abs(column_matrix(source, sensor_columns))
    implausible = (readings > MAX_PLAUSIBLE_BEND_READING).sum(axis=1)
    faulty = int((implausible > MAX_IMPLAUSIBLE_READINGS_PER_ROW).sum())
    fraction = faulty / rows
    message = f"{int(np.floor(100.0 * fraction + 0.5))}% faulty rows"

    if fraction > FAULTY_ROW_TURBO_SUS_FRACTION:
        level = SuspicionLevel.TURBO_SUS
    elif fraction > FAULTY_ROW_SUS_FRACTION:
        level = SuspicionLevel.SUS
    else:
        return RowValidation(SuspicionLevel.OK, faulty_rows=faulty)
    logger.debug("Row validation: %d of %d rows faulty (%s)", faulty, rows, level.value)
    return RowValidation(level, message, faulty)


def activity_block_table(
    source: TabularSource,
    threshold_ms: int | None = None,
    *,
    config: SegmentationConfig = SegmentationConfig(),
) -> pd.DataFrame:
    """Activity blocks of a source as a report table.

    Sources with fewer than two samples cannot be segmented; they produce an
    empty table rather than an error.
    """
    gap = config.activity_gap_ms if threshold_ms is None else threshold_ms
    timestamps = TimeIndex(source).values
    try:
        blocks = segment_activity(timestamps, gap)
    except InsufficientData:
        logger.debug("Only %d samples; reporting no activity blocks", len(timestamps))
        blocks = []
    return summarize_activity_blocks(blocks, timestamps)


def source_movement_score(
    source: TabularSource,
    window: int | None = None,
    *,
    columns: Sequence[str] = ACCELERATION_COLUMNS,
    config: FeatureConfig = FeatureConfig(),
) -> np.ndarray:
    """Movement score over a source's 3-axis acceleration columns."""
    return movement_score(
        column_matrix(source, columns),
        config.movement_window if window is None else window,
        normalization=config.movement_normalization,
        workers=config.workers,
    )


def posture_histogram(
    angles: Sequence[Sequence[float]] | np.ndarray,
    acceleration: Sequence[Sequence[float]] | np.ndarray,
    bin_count: int = DEFAULT_HISTOGRAM_BINS,
    limits: Sequence[Limit] | None = None,
    *,
    workers: int = 1,
) -> NDHistogram:
    """2-D histogram of (bend-angle sum, corrected pitch) per sample."""
    features = posture_features(angles, acceleration, workers=workers)
    return NDHistogram.from_data(features.T, bin_count, limits, workers=workers)


def source_posture_histogram(
    source: TabularSource,
    angle_columns: Sequence[str],
    *,
    acceleration_columns: Sequence[str] = ACCELERATION_COLUMNS,
    preset: PostureModelPreset | None = None,
) -> NDHistogram:
    """Posture histogram from angle and acceleration columns of one source."""
    model = preset or preferred_posture_model()
    return posture_histogram(
        column_matrix(source, angle_columns),
        column_matrix(source, acceleration_columns),
        model.histogram_bins,
        model.posture_limits,
        workers=model.feature_config.workers,
    )


def daily_posture_histograms(
    source: TabularSource,
    angle_columns: Sequence[str],
    *,
    acceleration_columns: Sequence[str] = ACCELERATION_COLUMNS,
    preset: PostureModelPreset | None = None,
) -> list[tuple[date, NDHistogram]]:
    """One posture histogram per measured day."""
    model = preset or preferred_posture_model()
    return [
        (
            day,
            source_posture_histogram(
                subset,
                angle_columns,
                acceleration_columns=acceleration_columns,
                preset=model,
            ),
        )
        for day, subset in partition_by_day(source, config=model.segmentation_config)
    ]


def summarize_source(
    source: TabularSource,
    *,
    config: SegmentationConfig = SegmentationConfig(),
) -> dict[str, float | int | str]:
    """Compact overview: rows, clamped span, activity blocks, and measured days."""
    rows = int(source.row_count())
    span = source_timespan(source, config)
    if span is None:
        return {
            "rows": 0,
            "begin_utc": "",
            "end_utc": "",
            "span_s": 0.0,
            "activity_block_count": 0,
            "measured_day_count": 0,
        }

    blocks = activity_block_table(source, config=config)
    return {
        "rows": rows,
        "begin_utc": ms_to_datetime(span.begin).isoformat(),
        "end_utc": ms_to_datetime(span.end).isoformat(),
        "span_s": span.duration_ms / 1000.0,
        "activity_block_count": int(len(blocks)),
        "measured_day_count": len(partition_by_day(source, config=config)),
    }


def load_user_source(
    cache: PerUserCache[TabularSource],
    user_id: Hashable,
    loader: Callable[[date | None], TabularSource],
    day: date | None = None,
) -> TabularSource:
    """Materialize a user's source for ``day`` (or all days) through the cache."""
    return cache.get(user_id, day, lambda: loader(day))


def prefixed_columns(prefix: str, count: int) -> list[str]:
    """``prefix1`` .. ``prefixN`` column names, as produced by the geometry export."""
    return [f"{prefix}{i}" for i in range(1, count + 1)]
