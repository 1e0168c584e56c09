"""N-dimensional equal-width histogram over parallel feature sequences."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Sequence

import numpy as np
import pandas as pd

from .constants import HISTOGRAM_DELTA_PAD, HISTOGRAM_MIN_DELTA
from .errors import PreconditionViolation
from .parallel import map_chunks

logger = logging.getLogger(__name__)

Limit = tuple[float, float] | None


@dataclass(frozen=True)
class NDHistogram:
    """Sample counts on an ``n ** D`` grid.

    ``baskets`` is the flattened grid with dimension 0 as the most significant
    digit, so the basket for coordinates ``(c0, ..., cD-1)`` sits at
    ``sum(c[d] * n ** (D - 1 - d))``. ``borders[d]`` holds the ``n + 1`` bin
    edges of dimension ``d``. The empty histogram has no baskets and no borders.
    ``dropped`` counts samples that fell outside the grid; it is diagnostic only
    and does not take part in equality.
    """

    baskets: tuple[int, ...] = ()
    borders: tuple[tuple[float, ...], ...] = ()
    dropped: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "baskets", tuple(int(count) for count in self.baskets))
        object.__setattr__(
            self, "borders", tuple(tuple(float(edge) for edge in edges) for edges in self.borders)
        )
        if not self.borders:
            if self.baskets:
                raise PreconditionViolation("baskets given without borders")
            return
        bins = len(self.borders[0]) - 1
        if bins < 1 or any(len(edges) - 1 != bins for edges in self.borders):
            raise PreconditionViolation("every dimension needs the same number (>= 2) of borders")
        if len(self.baskets) != bins ** len(self.borders):
            raise PreconditionViolation(
                f"expected {bins ** len(self.borders)} baskets, got {len(self.baskets)}"
            )

    @classmethod
    def from_data(
        cls,
        data: Sequence[Sequence[float]] | np.ndarray,
        n: int,
        limits: Sequence[Limit] | None = None,
        *,
        workers: int = 1,
    ) -> NDHistogram:
        """Bin ``D`` parallel, equal-length sequences into ``n`` bins per dimension.

        Bin edges span ``limits[d]`` when given, otherwise the observed range of
        dimension ``d``. Any empty input yields the empty histogram. Mismatched
        lengths or a wrong number of limits raise ``PreconditionViolation``.
        """
        columns = [np.asarray(values, dtype=float).ravel() for values in data]
        if not columns or any(column.size == 0 for column in columns):
            return cls()

        if n < 1:
            raise PreconditionViolation("n must be >= 1")
        length = columns[0].shape[0]
        if any(column.shape[0] != length for column in columns):
            raise PreconditionViolation("all feature sequences must have the same length")
        if limits is not None and len(limits) != len(columns):
            raise PreconditionViolation(
                f"got {len(limits)} limits for {len(columns)} dimensions"
            )

        dims = len(columns)
        bounds = [
            _dimension_bounds(column, None if limits is None else limits[d])
            for d, column in enumerate(columns)
        ]
        borders = tuple(_histogram_borders(lo, hi, n) for lo, hi in bounds)
        lows = np.array([lo for lo, _ in bounds], dtype=float)[:, None]
        deltas = np.array(
            [max(hi - lo + HISTOGRAM_DELTA_PAD, HISTOGRAM_MIN_DELTA) for lo, hi in bounds],
            dtype=float,
        )[:, None]
        radix = (n ** np.arange(dims - 1, -1, -1, dtype=np.int64))[:, None]
        size = n**dims
        stacked = np.vstack(columns)

        def _count(start: int, stop: int) -> tuple[np.ndarray, int]:
            with np.errstate(invalid="ignore"):
                coords = np.floor(((stacked[:, start:stop] - lows) / deltas) * n)
                inside = np.all((coords >= 0) & (coords < n), axis=0)
            index = (coords[:, inside].astype(np.int64) * radix).sum(axis=0)
            return np.bincount(index, minlength=size), int((~inside).sum())

        partials = map_chunks(_count, length, workers=workers)
        counts = np.zeros(size, dtype=np.int64)
        dropped = 0
        for partial_counts, partial_dropped in partials:
            counts += partial_counts
            dropped += partial_dropped

        if dropped:
            logger.debug("Dropped %d of %d samples outside the histogram grid", dropped, length)
        return cls(baskets=tuple(counts.tolist()), borders=borders, dropped=dropped)

    def dim(self) -> int:
        return len(self.borders)

    def n(self) -> int:
        """Bins per dimension (0 for the empty histogram)."""
        if not self.borders:
            return 0
        return len(self.borders[0]) - 1

    def total(self) -> int:
        return int(sum(self.baskets))

    def as_array(self) -> np.ndarray:
        """Counts reshaped to ``(n,) * dim()``."""
        if not self.borders:
            return np.zeros(0, dtype=np.int64)
        return np.asarray(self.baskets, dtype=np.int64).reshape((self.n(),) * self.dim())

    def render(self) -> str:
        """Row-major text grid; each row holds one run of the last dimension's bins."""
        if not self.borders:
            return ""
        bins = self.n()
        width = max(len(str(count)) for count in self.baskets)
        rows = [
            " ".join(str(count).rjust(width) for count in self.baskets[start : start + bins])
            for start in range(0, len(self.baskets), bins)
        ]
        return "\n".join(rows)

    def to_frame(self) -> pd.DataFrame:
        """One row per basket with its bin coordinates, edges, and count."""
        dims = self.dim()
        columns = [f"{kind}_{d}" for d in range(dims) for kind in ("bin", "lower", "upper")]
        if not self.borders:
            return pd.DataFrame(columns=[*columns, "count"])

        bins = self.n()
        coords = np.unravel_index(np.arange(len(self.baskets)), (bins,) * dims)
        frame = pd.DataFrame(index=pd.RangeIndex(len(self.baskets)))
        for d in range(dims):
            edges = np.asarray(self.borders[d])
            frame[f"bin_{d}"] = coords[d]
            frame[f"lower_{d}"] = edges[coords[d]]
            frame[f"upper_{d}"] = edges[coords[d] + 1]
        frame["count"] = np.asarray(self.baskets, dtype=np.int64)
        return frame

    def __str__(self) -> str:
        return self.render()


def _dimension_bounds(values: np.ndarray, limit: Limit) -> tuple[float, float]:
    if limit is not None:
        lo, hi = (float(limit[0]), float(limit[1]))
        if lo > hi:
            raise PreconditionViolation(f"histogram limit {limit} is inverted")
        return lo, hi
    return float(np.nanmin(values)), float(np.nanmax(values))


def _histogram_borders(lo: float, hi: float, n: int) -> tuple[float, ...]:
    return tuple(lo + (hi - lo) / n * i for i in range(n + 1))
