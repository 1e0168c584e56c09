"""Posture-model presets for repeatable threshold choices."""

from __future__ import annotations

from dataclasses import dataclass
import math

from .constants import DEFAULT_HISTOGRAM_BINS
from .features import FeatureConfig
from .histogram import Limit
from .segmentation import SegmentationConfig


@dataclass(frozen=True)
class PostureModelPreset:
    """Single source of truth for segmentation, feature, and histogram settings."""

    name: str
    rationale: str
    segmentation_config: SegmentationConfig
    feature_config: FeatureConfig
    histogram_bins: int = DEFAULT_HISTOGRAM_BINS
    posture_limits: tuple[Limit, ...] | None = None


def preferred_posture_model() -> PostureModelPreset:
    """Preferred back-health reporting model for 1 Hz scored wear data."""
    return PostureModelPreset(
        name="Daily Wear Posture Model v1",
        rationale=(
            "Ten-second idle gaps separate wear sessions, days with under a minute of "
            "data are ignored, and the pitch axis is pinned to its full +/-2*pi range so "
            "daily histograms share borders."
        ),
        segmentation_config=SegmentationConfig(
            activity_gap_ms=10_000,
            min_day_length=60,
        ),
        feature_config=FeatureConfig(
            movement_window=10,
            movement_normalization=8.0,
            workers=4,
        ),
        histogram_bins=10,
        posture_limits=(None, (-2.0 * math.pi, 2.0 * math.pi)),
    )
