"""Error taxonomy for segmentation and histogram operations."""

from __future__ import annotations


class PostureTrackingError(Exception):
    """Base class for errors raised by this package."""


class InvalidRange(PostureTrackingError, ValueError):
    """A timespan was constructed with ``begin > end``."""


class InsufficientData(PostureTrackingError, ValueError):
    """Too few samples to run the requested computation."""


class PreconditionViolation(PostureTrackingError, AssertionError):
    """A caller broke an input contract (lengths, limits, window sizes)."""
