"""Posture telemetry segmentation and histogram package."""

from .cache import CacheEntry, PerUserCache
from .config import (
    FeatureSettings,
    HistogramSettings,
    PostureTrackingConfig,
    SegmentationSettings,
    clear_config_cache,
    configured_posture_model,
    default_project_config,
    find_project_root,
)
from .constants import (
    DEFAULT_ACTIVITY_GAP_MS,
    MOVEMENT_NORMALIZATION,
    TIME_COLUMN,
)
from .errors import (
    InsufficientData,
    InvalidRange,
    PostureTrackingError,
    PreconditionViolation,
)
from .features import FeatureConfig, movement_score, posture_features
from .histogram import NDHistogram
from .pipeline import (
    RowValidation,
    ScoreSummary,
    SuspicionLevel,
    UserScoreSummary,
    activity_block_table,
    daily_posture_histograms,
    daily_score_table,
    load_user_source,
    posture_histogram,
    prefixed_columns,
    source_movement_score,
    source_posture_histogram,
    summarize_scores,
    summarize_source,
    summarize_user_scores,
    validate_rows,
)
from .presets import PostureModelPreset, preferred_posture_model
from .segmentation import (
    SegmentationConfig,
    annotate_activity_blocks,
    block_label,
    group_by_date,
    partition_by_day,
    segment_activity,
    source_timespan,
    split_into_time_chunks,
    summarize_activity_blocks,
)
from .source import FrameSource, TabularSource, TimeIndex, column_matrix, select_timespan
from .timespan import Timespan

__all__ = [
    "CacheEntry",
    "DEFAULT_ACTIVITY_GAP_MS",
    "FeatureConfig",
    "FeatureSettings",
    "FrameSource",
    "HistogramSettings",
    "InsufficientData",
    "InvalidRange",
    "MOVEMENT_NORMALIZATION",
    "NDHistogram",
    "PerUserCache",
    "PostureModelPreset",
    "PostureTrackingConfig",
    "PostureTrackingError",
    "PreconditionViolation",
    "RowValidation",
    "ScoreSummary",
    "SegmentationConfig",
    "SegmentationSettings",
    "SuspicionLevel",
    "TIME_COLUMN",
    "TabularSource",
    "TimeIndex",
    "Timespan",
    "UserScoreSummary",
    "activity_block_table",
    "annotate_activity_blocks",
    "block_label",
    "clear_config_cache",
    "column_matrix",
    "configured_posture_model",
    "daily_posture_histograms",
    "daily_score_table",
    "default_project_config",
    "find_project_root",
    "group_by_date",
    "load_user_source",
    "movement_score",
    "partition_by_day",
    "posture_features",
    "posture_histogram",
    "preferred_posture_model",
    "prefixed_columns",
    "segment_activity",
    "select_timespan",
    "source_movement_score",
    "source_posture_histogram",
    "source_timespan",
    "split_into_time_chunks",
    "summarize_activity_blocks",
    "summarize_scores",
    "summarize_source",
    "summarize_user_scores",
    "validate_rows",
]
