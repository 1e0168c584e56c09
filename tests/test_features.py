from __future__ import annotations

import math

import numpy as np
import pytest

from posture_tracking.errors import PreconditionViolation
from posture_tracking.features import movement_score, posture_features
from posture_tracking.parallel import chunk_bounds, map_chunks


def test_movement_score_hand_computed_values() -> None:
    vectors = [[0, 0, 0], [1, 0, 0], [1, 2, 0], [1, 2, 3], [0, 0, 0]]
    # step sums: 1, 2, 3, 6
    scores = movement_score(vectors, 2)

    assert scores.tolist() == [0.0, 0.0, 3 / 2 / 8, 5 / 2 / 8, 9 / 2 / 8]


def test_movement_score_keeps_length_and_zero_padding() -> None:
    rng = np.random.default_rng(5)
    vectors = rng.integers(-500, 500, size=(50, 3), dtype=np.int16)

    scores = movement_score(vectors, 5)

    assert scores.shape == (50,)
    assert np.all(scores[:5] == 0.0)
    assert np.all(scores[5:] >= 0.0)


def test_movement_score_short_input_is_all_padding() -> None:
    assert movement_score([[1, 2, 3], [4, 5, 6]], 5).tolist() == [0.0, 0.0]
    assert movement_score([], 3).tolist() == []


def test_movement_score_int16_steps_do_not_overflow() -> None:
    vectors = np.array([[-32000, 0, 0], [32000, 0, 0]], dtype=np.int16)
    assert movement_score(vectors, 1).tolist() == [0.0, 64000 / 8]


def test_movement_score_rejects_bad_input() -> None:
    with pytest.raises(PreconditionViolation):
        movement_score([[1, 2, 3]], 0)
    with pytest.raises(PreconditionViolation):
        movement_score([[1, 2], [3, 4]], 1)


def test_movement_score_pool_matches_serial() -> None:
    rng = np.random.default_rng(9)
    vectors = rng.integers(-1000, 1000, size=(20_000, 3))

    serial = movement_score(vectors, 25)
    pooled = movement_score(vectors, 25, workers=4)

    assert np.allclose(serial, pooled)


def test_posture_features_formula() -> None:
    angles = [
        [1.0] * 9 + [0.0, 1.0, 1.0],
        [2.0] * 9 + [5.0, 0.0, 1.0],
    ]
    acceleration = [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0]]

    features = posture_features(angles, acceleration)

    assert features.shape == (2, 2)
    assert features[:, 0].tolist() == [9.0, 18.0]
    assert features[0, 1] == pytest.approx(0.0 - 1.5 * math.pi / 4)
    assert features[1, 1] == pytest.approx(math.pi / 2 - 0.0)


def test_posture_features_validates_shapes() -> None:
    with pytest.raises(PreconditionViolation):
        posture_features([[1.0] * 8], [[0.0, 0.0, 1.0]])
    with pytest.raises(PreconditionViolation):
        posture_features([[1.0] * 9, [1.0] * 9], [[0.0, 0.0, 1.0]])
    assert posture_features([], []).shape == (0, 2)


def test_posture_features_pool_matches_serial() -> None:
    rng = np.random.default_rng(2)
    angles = rng.normal(size=(12_000, 18))
    acceleration = rng.normal(size=(12_000, 3))

    assert np.allclose(
        posture_features(angles, acceleration),
        posture_features(angles, acceleration, workers=3),
    )


def test_chunk_bounds_cover_range_in_order() -> None:
    bounds = chunk_bounds(10, 3, min_chunk=1)

    assert bounds == [(0, 4), (4, 7), (7, 10)]
    assert chunk_bounds(0, 3) == []
    assert chunk_bounds(100, 8) == [(0, 100)]
    with pytest.raises(PreconditionViolation):
        chunk_bounds(10, 0)


def test_map_chunks_preserves_chunk_order() -> None:
    parts = map_chunks(lambda start, stop: list(range(start, stop)), 10, workers=4, min_chunk=2)
    assert [value for part in parts for value in part] == list(range(10))
