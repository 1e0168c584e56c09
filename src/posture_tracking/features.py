"""Per-sample derived features: sliding-window movement score and posture aggregate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .constants import (
    DEFAULT_MOVEMENT_WINDOW,
    DEFAULT_WORKERS,
    MOVEMENT_NORMALIZATION,
    PITCH_CORRECTION_FACTOR,
    POSTURE_ANGLE_COUNT,
)
from .errors import PreconditionViolation
from .parallel import map_chunks


@dataclass(frozen=True)
class FeatureConfig:
    """Feature derivation settings."""

    movement_window: int = DEFAULT_MOVEMENT_WINDOW
    movement_normalization: float = MOVEMENT_NORMALIZATION
    workers: int = DEFAULT_WORKERS


def movement_score(
    vectors: Sequence[Sequence[int]] | np.ndarray,
    window: int = DEFAULT_MOVEMENT_WINDOW,
    *,
    normalization: float = MOVEMENT_NORMALIZATION,
    workers: int = 1,
) -> np.ndarray:
    """Windowed mean of summed absolute 3-axis steps, scaled by ``normalization``.

    The score at sample ``i`` covers the ``window`` steps leading up to it. The
    first ``window`` samples have no full window and score ``0.0``, so the output
    always has the input's length.
    """
    if window < 1:
        raise PreconditionViolation("window must be >= 1")
    samples = _as_axis_matrix(vectors, 3, "vectors")

    length = samples.shape[0]
    scores = np.zeros(length, dtype=float)
    if length <= window:
        return scores

    step = np.abs(np.diff(samples, axis=0)).sum(axis=1).astype(float)
    cumulative = np.concatenate(([0.0], np.cumsum(step)))

    def _windowed(start: int, stop: int) -> np.ndarray:
        idx = np.arange(start, stop) + window
        return (cumulative[idx] - cumulative[idx - window]) / window / normalization

    scores[window:] = np.concatenate(map_chunks(_windowed, length - window, workers=workers))
    return scores


def posture_features(
    angles: Sequence[Sequence[float]] | np.ndarray,
    acceleration: Sequence[Sequence[float]] | np.ndarray,
    *,
    workers: int = 1,
) -> np.ndarray:
    """Two-column feature matrix: bend-angle sum and corrected pitch.

    Column 0 sums the first nine joint angles of each sample. Column 1 is the
    pitch of the acceleration vector, ``atan2(x, hypot(y, z))``, minus 1.5 times
    ``atan2`` of the last two angle coordinates.
    """
    angle_matrix = np.asarray(angles, dtype=float)
    if angle_matrix.size == 0:
        angle_matrix = np.empty((0, POSTURE_ANGLE_COUNT), dtype=float)
    if angle_matrix.ndim != 2 or angle_matrix.shape[1] < POSTURE_ANGLE_COUNT:
        raise PreconditionViolation(
            f"angles must be a 2-D array with at least {POSTURE_ANGLE_COUNT} columns"
        )
    acc = _as_axis_matrix(acceleration, 3, "acceleration").astype(float)
    if acc.shape[0] != angle_matrix.shape[0]:
        raise PreconditionViolation(
            f"angles ({angle_matrix.shape[0]}) and acceleration ({acc.shape[0]}) row counts differ"
        )

    def _features(start: int, stop: int) -> np.ndarray:
        chunk_angles = angle_matrix[start:stop]
        chunk_acc = acc[start:stop]
        angle_sum = chunk_angles[:, :POSTURE_ANGLE_COUNT].sum(axis=1)
        pitch = np.arctan2(chunk_acc[:, 0], np.hypot(chunk_acc[:, 1], chunk_acc[:, 2]))
        correction = PITCH_CORRECTION_FACTOR * np.arctan2(chunk_angles[:, -2], chunk_angles[:, -1])
        return np.column_stack((angle_sum, pitch - correction))

    parts = map_chunks(_features, angle_matrix.shape[0], workers=workers)
    if not parts:
        return np.empty((0, 2), dtype=float)
    return np.vstack(parts)


def _as_axis_matrix(values: Sequence[Sequence[float]] | np.ndarray, axes: int, name: str) -> np.ndarray:
    matrix = np.asarray(values)
    if matrix.size == 0:
        return np.empty((0, axes), dtype=float)
    if matrix.ndim != 2 or matrix.shape[1] != axes:
        raise PreconditionViolation(f"{name} must have shape (n, {axes}), got {matrix.shape}")
    if np.issubdtype(matrix.dtype, np.integer):
        return matrix.astype(np.int64)
    return matrix.astype(float)
