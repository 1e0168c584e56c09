"""Activity-block and calendar-day segmentation of telemetry streams."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Sequence

import numpy as np
import pandas as pd

from .constants import (
    DEFAULT_ACTIVITY_GAP_MS,
    MS_PER_DAY,
    MS_PER_SECOND,
    TIME_COLUMN,
    VALID_FROM_MS,
    VALID_UNTIL_MS,
)
from .errors import InsufficientData
from .source import TabularSource, TimeIndex, to_epoch_ms
from .timespan import Timespan, ms_to_date, ms_to_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentationConfig:
    """Activity and day segmentation settings."""

    activity_gap_ms: int = DEFAULT_ACTIVITY_GAP_MS
    min_day_length: int = 0
    valid_from_ms: int = VALID_FROM_MS
    valid_until_ms: int = VALID_UNTIL_MS


def segment_activity(timestamps: Sequence[int] | np.ndarray, threshold_ms: int) -> list[Timespan]:
    """Split sorted timestamps into blocks wherever the idle gap exceeds ``threshold_ms``."""
    if threshold_ms < 0:
        raise ValueError("threshold_ms must be >= 0")

    values = np.sort(np.asarray(timestamps, dtype=np.int64), kind="stable")
    if values.shape[0] < 2:
        raise InsufficientData(
            f"activity segmentation needs at least 2 timestamps, got {values.shape[0]}"
        )

    gap_after = np.flatnonzero(np.diff(values) > threshold_ms)
    begins = values[np.concatenate(([0], gap_after + 1))]
    ends = values[np.concatenate((gap_after, [values.shape[0] - 1]))]
    blocks = [Timespan(int(begin), int(end)) for begin, end in zip(begins, ends, strict=True)]

    logger.debug(
        "Segmented %d timestamps into %d activity blocks (gap > %d ms)",
        values.shape[0],
        len(blocks),
        threshold_ms,
    )
    return blocks


def source_timespan(
    source: TabularSource,
    config: SegmentationConfig = SegmentationConfig(),
) -> Timespan | None:
    """Overall span of a source, endpoints clamped into the plausible clock window."""
    return TimeIndex(source).timespan(config.valid_from_ms, config.valid_until_ms)


def partition_by_day(
    source: TabularSource,
    min_length: int | None = None,
    config: SegmentationConfig = SegmentationConfig(),
) -> list[tuple[date, TabularSource]]:
    """Split a source into per-day sub-selections holding more than ``min_length`` rows."""
    threshold = config.min_day_length if min_length is None else min_length
    span = source_timespan(source, config)
    if span is None:
        return []

    partitions: list[tuple[date, TabularSource]] = []
    timestamps = TimeIndex(source).values
    for day, day_span in span.days():
        subset = source.filter(day_span.mask(timestamps))
        if subset.row_count() <= threshold:
            continue
        partitions.append((day, subset))

    logger.debug(
        "Partitioned %d rows into %d days (min_length=%d)",
        source.row_count(),
        len(partitions),
        threshold,
    )
    return partitions


def group_by_date(
    source: TabularSource,
    min_length: int | None = None,
    config: SegmentationConfig = SegmentationConfig(),
) -> list[tuple[date, TabularSource]]:
    """Group rows by the UTC date of their timestamp, sub-second tails included.

    Unlike ``partition_by_day`` no row inside the validity window is lost to the
    ``23:59:59`` day end. Groups with ``min_length`` rows or fewer are skipped.
    """
    threshold = config.min_day_length if min_length is None else min_length
    timestamps = TimeIndex(source).values
    valid = (timestamps >= config.valid_from_ms) & (timestamps <= config.valid_until_ms)
    day_numbers = timestamps // MS_PER_DAY

    groups: list[tuple[date, TabularSource]] = []
    for number in np.unique(day_numbers[valid]):
        subset = source.filter(valid & (day_numbers == number))
        if subset.row_count() <= threshold:
            continue
        groups.append((ms_to_date(int(number) * MS_PER_DAY), subset))
    return groups


def split_into_time_chunks(
    source: TabularSource,
    threshold_ms: int | None = None,
    config: SegmentationConfig = SegmentationConfig(),
) -> list[tuple[Timespan, TabularSource]]:
    """One sub-selection per activity block of the source."""
    gap = config.activity_gap_ms if threshold_ms is None else threshold_ms
    timestamps = TimeIndex(source).values
    blocks = segment_activity(timestamps, gap)
    return [(block, source.filter(block.mask(timestamps))) for block in blocks]


def annotate_activity_blocks(
    df: pd.DataFrame,
    *,
    threshold_ms: int = DEFAULT_ACTIVITY_GAP_MS,
    time_col: str = TIME_COLUMN,
) -> pd.DataFrame:
    """Sort by time and add gap-break flags plus a running activity block id."""
    if time_col not in df.columns:
        raise ValueError(f"Missing time column: {time_col}")

    work = df.copy()
    work["t_ms"] = to_epoch_ms(work[time_col])
    work = work.sort_values("t_ms", kind="stable").reset_index(drop=True)
    if work.empty:
        work["gap_ms"] = pd.Series(dtype="int64")
        work["activity_break_before"] = pd.Series(dtype=bool)
        work["activity_block_id"] = pd.Series(dtype=int)
        work["activity_block_label"] = pd.Series(dtype=object)
        return work

    gap_ms = work["t_ms"].diff().fillna(0).astype("int64")
    break_before = gap_ms > threshold_ms
    break_before.iloc[0] = False

    work["gap_ms"] = gap_ms
    work["activity_break_before"] = break_before.astype(bool)
    work["activity_block_id"] = break_before.cumsum().astype(int)
    work["activity_block_label"] = work["activity_block_id"].map(block_label)
    return work


def summarize_activity_blocks(
    blocks: Sequence[Timespan],
    timestamps: Sequence[int] | np.ndarray | None = None,
) -> pd.DataFrame:
    """Block-level table: labels, UTC bounds, duration, and optional sample counts."""
    values = None if timestamps is None else np.asarray(timestamps, dtype=np.int64)
    rows: list[dict[str, object]] = []
    for block_id, block in enumerate(blocks):
        record: dict[str, object] = {
            "block_id": block_id,
            "block_label": block_label(block_id),
            "begin_ms": block.begin,
            "end_ms": block.end,
            "begin_utc": pd.Timestamp(ms_to_datetime(block.begin)),
            "end_utc": pd.Timestamp(ms_to_datetime(block.end)),
            "duration_s": block.duration_ms / MS_PER_SECOND,
        }
        if values is not None:
            record["n_samples"] = int(block.mask(values).sum())
        rows.append(record)

    columns = ["block_id", "block_label", "begin_ms", "end_ms", "begin_utc", "end_utc", "duration_s"]
    if values is not None:
        columns.append("n_samples")
    return pd.DataFrame(rows, columns=columns)


def block_label(block_id: int) -> str:
    """Neutral block label for reports."""
    if 0 <= block_id <= 25:
        return f"Block {chr(ord('A') + block_id)}"
    return f"Block {block_id + 1}"
