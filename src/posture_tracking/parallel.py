"""Fixed-size worker pool helpers for chunked, data-parallel numpy work."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Callable, TypeVar

from .errors import PreconditionViolation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Below this many rows per chunk the pool costs more than it saves.
MIN_CHUNK_ROWS = 4_096


def chunk_bounds(length: int, workers: int, *, min_chunk: int = MIN_CHUNK_ROWS) -> list[tuple[int, int]]:
    """Split ``range(length)`` into at most ``workers`` contiguous ``(start, stop)`` chunks."""
    if workers < 1:
        raise PreconditionViolation("workers must be >= 1")
    if length <= 0:
        return []
    n_chunks = max(1, min(workers, length // max(min_chunk, 1)))
    step, extra = divmod(length, n_chunks)
    bounds: list[tuple[int, int]] = []
    start = 0
    for i in range(n_chunks):
        stop = start + step + (1 if i < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def map_chunks(
    func: Callable[[int, int], T],
    length: int,
    *,
    workers: int = 1,
    min_chunk: int = MIN_CHUNK_ROWS,
) -> list[T]:
    """Run ``func(start, stop)`` over contiguous chunks; results keep chunk order."""
    bounds = chunk_bounds(length, workers, min_chunk=min_chunk)
    if len(bounds) <= 1:
        return [func(start, stop) for start, stop in bounds]

    logger.debug("Dispatching %d chunks of %d rows to %d workers", len(bounds), length, workers)
    with ThreadPoolExecutor(max_workers=min(workers, len(bounds))) as pool:
        futures = [pool.submit(func, start, stop) for start, stop in bounds]
        return [future.result() for future in futures]
