"""Centralized project configuration for segmentation, features, and histograms."""

from __future__ import annotations

from datetime import date
from functools import lru_cache
import os
from pathlib import Path
import tomllib
from typing import Any

from omegaconf import OmegaConf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .constants import (
    DEFAULT_ACTIVITY_GAP_MS,
    DEFAULT_HISTOGRAM_BINS,
    DEFAULT_MOVEMENT_WINDOW,
    DEFAULT_WORKERS,
    MOVEMENT_NORMALIZATION,
)
from .features import FeatureConfig
from .presets import PostureModelPreset
from .segmentation import SegmentationConfig
from .timespan import date_to_ms

DEFAULT_CONFIG_FILE = "config/posture_tracking.yaml"
DEFAULT_VALID_FROM = date(2018, 1, 1)
DEFAULT_VALID_UNTIL = date(2040, 1, 1)


class SegmentationSettings(BaseModel):
    """Activity-gap and day-partition settings."""

    activity_gap_ms: int = Field(default=DEFAULT_ACTIVITY_GAP_MS, ge=0)
    min_day_length: int = Field(default=0, ge=0)
    valid_from: date = DEFAULT_VALID_FROM
    valid_until: date = DEFAULT_VALID_UNTIL

    @model_validator(mode="after")
    def _ordered_window(self) -> SegmentationSettings:
        if self.valid_from >= self.valid_until:
            raise ValueError("valid_from must be before valid_until")
        return self


class FeatureSettings(BaseModel):
    """Movement-score and worker-pool settings."""

    movement_window: int = Field(default=DEFAULT_MOVEMENT_WINDOW, ge=1)
    movement_normalization: float = Field(default=MOVEMENT_NORMALIZATION, gt=0)
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)


class HistogramSettings(BaseModel):
    """Posture histogram shape."""

    bins: int = Field(default=DEFAULT_HISTOGRAM_BINS, ge=1)
    posture_limits: tuple[tuple[float, float] | None, ...] | None = None

    @field_validator("posture_limits")
    @classmethod
    def _two_dimensions(
        cls, value: tuple[tuple[float, float] | None, ...] | None
    ) -> tuple[tuple[float, float] | None, ...] | None:
        if value is None:
            return None
        if len(value) != 2:
            raise ValueError("posture_limits needs one entry per posture feature (2)")
        for limit in value:
            if limit is not None and limit[0] > limit[1]:
                raise ValueError(f"posture limit {limit} is inverted")
        return value


class PostureTrackingConfig(BaseModel):
    """Typed configuration model for project behavior."""

    model_config = ConfigDict(extra="ignore")
    name: str = "Configured posture model"
    segmentation: SegmentationSettings = Field(default_factory=SegmentationSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    histogram: HistogramSettings = Field(default_factory=HistogramSettings)

    def to_preset(self) -> PostureModelPreset:
        seg = self.segmentation
        return PostureModelPreset(
            name=self.name,
            rationale="Loaded from project configuration.",
            segmentation_config=SegmentationConfig(
                activity_gap_ms=seg.activity_gap_ms,
                min_day_length=seg.min_day_length,
                valid_from_ms=date_to_ms(seg.valid_from),
                valid_until_ms=date_to_ms(seg.valid_until),
            ),
            feature_config=FeatureConfig(
                movement_window=self.features.movement_window,
                movement_normalization=self.features.movement_normalization,
                workers=self.features.workers,
            ),
            histogram_bins=self.histogram.bins,
            posture_limits=self.histogram.posture_limits,
        )


def find_project_root(start: Path | None = None) -> Path:
    """Find the project root by locating `pyproject.toml`."""
    env_root = os.getenv("POSTURE_TRACKING_PROJECT_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()

    cursor = (start or Path.cwd()).resolve()
    for candidate in (cursor, *cursor.parents):
        if (candidate / "pyproject.toml").exists():
            return candidate

    module_cursor = Path(__file__).resolve()
    for candidate in (module_cursor, *module_cursor.parents):
        if (candidate / "pyproject.toml").exists():
            return candidate

    raise FileNotFoundError("Could not find project root containing pyproject.toml")


@lru_cache(maxsize=1)
def default_project_config() -> PostureTrackingConfig:
    """Load config with OmegaConf merge + Pydantic validation."""
    project_root = find_project_root()
    merged = _load_merged_config(project_root)
    try:
        return PostureTrackingConfig.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid posture_tracking config: {exc}") from exc


def configured_posture_model() -> PostureModelPreset:
    """Preset built from the validated project config."""
    return default_project_config().to_preset()


def clear_config_cache() -> None:
    """Clear cached config; useful for tests or env-var changes."""
    default_project_config.cache_clear()


def _load_merged_config(project_root: Path) -> dict[str, Any]:
    base_cfg = PostureTrackingConfig().model_dump(mode="json")
    merged = OmegaConf.merge(
        base_cfg,
        _load_pyproject_config(project_root),
        _load_file_config(project_root),
        _load_env_overrides(),
    )
    raw = OmegaConf.to_container(merged, resolve=True)
    return raw if isinstance(raw, dict) else {}


def _load_file_config(project_root: Path) -> dict[str, Any]:
    env_path = os.getenv("POSTURE_TRACKING_CONFIG_FILE")
    if env_path:
        cfg_path = _resolve_path(Path(env_path), project_root)
        if not cfg_path.exists():
            raise FileNotFoundError(
                f"POSTURE_TRACKING_CONFIG_FILE points to missing file: {cfg_path}"
            )
    else:
        cfg_path = project_root / DEFAULT_CONFIG_FILE
        if not cfg_path.exists():
            return {}

    loaded = OmegaConf.load(cfg_path)
    raw = OmegaConf.to_container(loaded, resolve=True)
    return raw if isinstance(raw, dict) else {}


def _load_env_overrides() -> dict[str, Any]:
    segmentation: dict[str, Any] = {}
    if env_gap := os.getenv("POSTURE_TRACKING_ACTIVITY_GAP_MS"):
        segmentation["activity_gap_ms"] = env_gap
    if env_min_day := os.getenv("POSTURE_TRACKING_MIN_DAY_LENGTH"):
        segmentation["min_day_length"] = env_min_day

    features: dict[str, Any] = {}
    if env_window := os.getenv("POSTURE_TRACKING_MOVEMENT_WINDOW"):
        features["movement_window"] = env_window
    if env_workers := os.getenv("POSTURE_TRACKING_WORKERS"):
        features["workers"] = env_workers

    histogram: dict[str, Any] = {}
    if env_bins := os.getenv("POSTURE_TRACKING_HISTOGRAM_BINS"):
        histogram["bins"] = env_bins

    overrides: dict[str, Any] = {}
    if segmentation:
        overrides["segmentation"] = segmentation
    if features:
        overrides["features"] = features
    if histogram:
        overrides["histogram"] = histogram
    return overrides


def _resolve_path(path: Path, project_root: Path) -> Path:
    if path.is_absolute():
        return path.expanduser().resolve()
    return (project_root / path).resolve()


def _load_pyproject_config(project_root: Path) -> dict[str, Any]:
    pyproject_path = project_root / "pyproject.toml"
    if not pyproject_path.exists():
        return {}

    with pyproject_path.open("rb") as handle:
        pyproject = tomllib.load(handle)

    tool_cfg = pyproject.get("tool", {})
    project_cfg = tool_cfg.get("posture_tracking", {})
    return project_cfg if isinstance(project_cfg, dict) else {}
