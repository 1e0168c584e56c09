"""Tabular source protocol, a pandas-backed implementation, and the time index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np
import pandas as pd

from .constants import TIME_COLUMN
from .timespan import Timespan


@runtime_checkable
class TabularSource(Protocol):
    """Ordered named columns with mask filtering, supplied by the I/O layer."""

    def column(self, name: str) -> np.ndarray: ...

    def filter(self, mask: Sequence[bool] | np.ndarray) -> "TabularSource": ...

    def row_count(self) -> int: ...


@dataclass(frozen=True, eq=False)
class FrameSource:
    """TabularSource over a pandas DataFrame."""

    frame: pd.DataFrame
    time_column: str = TIME_COLUMN

    def column(self, name: str) -> np.ndarray:
        if name not in self.frame.columns:
            raise KeyError(f"Missing column: {name}")
        return self.frame[name].to_numpy()

    def filter(self, mask: Sequence[bool] | np.ndarray) -> FrameSource:
        keep = np.asarray(mask, dtype=bool)
        if keep.shape != (len(self.frame),):
            raise ValueError(
                f"mask length {keep.shape[0] if keep.ndim else 0} does not match "
                f"row count {len(self.frame)}"
            )
        return FrameSource(self.frame.loc[keep].reset_index(drop=True), self.time_column)

    def row_count(self) -> int:
        return int(len(self.frame))


class TimeIndex:
    """Read-only epoch-millisecond view of a source's time column."""

    def __init__(self, source: TabularSource, time_column: str | None = None) -> None:
        column = time_column or getattr(source, "time_column", TIME_COLUMN)
        values = to_epoch_ms(source.column(column))
        values.flags.writeable = False
        self._values = values

    @property
    def values(self) -> np.ndarray:
        return self._values

    def __len__(self) -> int:
        return int(self._values.shape[0])

    def sorted(self) -> np.ndarray:
        return np.sort(self._values, kind="stable")

    def timespan(
        self,
        valid_from: int | None = None,
        valid_until: int | None = None,
    ) -> Timespan | None:
        """Min/max span of the index, optionally clamped into a validity window."""
        if len(self) == 0:
            return None
        span = Timespan(int(self._values.min()), int(self._values.max()))
        if valid_from is None and valid_until is None:
            return span
        lower = valid_from if valid_from is not None else span.begin
        upper = valid_until if valid_until is not None else span.end
        return span.clamp(lower, upper)


def to_epoch_ms(values: Sequence[object] | np.ndarray | pd.Series) -> np.ndarray:
    """Normalize integer or datetime timestamps into an int64 millisecond array."""
    series = pd.Series(values)
    if series.dtype == object:
        series = series.infer_objects()
    if series.isna().any():
        raise ValueError("time column contains missing values")
    if pd.api.types.is_datetime64_any_dtype(series):
        if series.dt.tz is None:
            series = series.dt.tz_localize("UTC")
        delta = series - pd.Timestamp(0, tz="UTC")
        return (delta // pd.Timedelta(milliseconds=1)).to_numpy(dtype=np.int64)
    return series.to_numpy(dtype=np.int64)


def column_matrix(source: TabularSource, names: Sequence[str]) -> np.ndarray:
    """Stack several numeric columns into an ``(rows, len(names))`` float array."""
    if not names:
        return np.empty((source.row_count(), 0), dtype=float)
    return np.column_stack([np.asarray(source.column(name), dtype=float) for name in names])


def select_timespan(source: TabularSource, span: Timespan, time_column: str | None = None) -> TabularSource:
    """Rows of ``source`` whose timestamp lies inside ``span``."""
    index = TimeIndex(source, time_column)
    return source.filter(span.mask(index.values))
