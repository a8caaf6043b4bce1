"""Data-parallel map and reduce over index ranges.

Work is split into contiguous chunks that run on a thread pool (numpy
releases the GIL inside the vectorized kernels). Results are always
reassembled in input order, and reductions merge per-chunk partial results
sequentially in chunk order, so outputs do not depend on scheduling.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Below this many elements per worker, threading costs more than it saves.
MIN_CHUNK_SIZE = 4096


def resolve_workers(num_workers: int | None) -> int:
    """Number of worker threads to use (None = all CPUs)."""
    if num_workers is None:
        return os.cpu_count() or 1
    return max(1, int(num_workers))


def chunk_bounds(n: int, num_workers: int | None = None,
                 min_chunk: int = MIN_CHUNK_SIZE) -> list[tuple[int, int]]:
    """Split ``range(n)`` into contiguous (start, stop) chunks.

    At most one chunk per worker, and no chunk smaller than ``min_chunk``
    unless ``n`` itself is smaller.
    """
    if n <= 0:
        return []
    workers = resolve_workers(num_workers)
    num_chunks = max(1, min(workers, n // max(1, min_chunk)))
    edges = np.linspace(0, n, num_chunks + 1).astype(np.int64)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def _create_pool(num_chunks: int, num_workers: int | None):
    """Create a ThreadPoolExecutor if there is more than one chunk."""
    if num_chunks <= 1:
        return None
    workers = min(num_chunks, resolve_workers(num_workers))
    if workers <= 1:
        return None
    logger.debug("Creating worker pool: %d threads for %d chunks", workers, num_chunks)
    return ThreadPoolExecutor(max_workers=workers)


def parallel_map_chunks(
    func: Callable[[int, int], np.ndarray],
    n: int,
    num_workers: int | None = None,
    min_chunk: int = MIN_CHUNK_SIZE,
) -> np.ndarray:
    """Apply ``func(start, stop)`` to chunks of ``range(n)`` and concatenate.

    Args:
        func: Returns an array whose first axis has length ``stop - start``.
        n: Number of elements.
        num_workers: Worker threads (None = all CPUs, 1 = serial).
        min_chunk: Minimum elements per chunk.

    Returns:
        Concatenation of the chunk results in index order.
    """
    bounds = chunk_bounds(n, num_workers, min_chunk)
    if not bounds:
        return np.empty(0)
    pool = _create_pool(len(bounds), num_workers)
    if pool is None:
        parts = [func(start, stop) for start, stop in bounds]
    else:
        with pool:
            futures = [pool.submit(func, start, stop) for start, stop in bounds]
            parts = [f.result() for f in futures]
    return np.concatenate(parts, axis=0)


def parallel_map(
    func: Callable[[T], R],
    items: Sequence[T],
    num_workers: int | None = None,
    min_chunk: int = MIN_CHUNK_SIZE,
) -> list[R]:
    """Elementwise map over a sequence; output order matches input order."""
    items = list(items)

    def run(start: int, stop: int) -> list[R]:
        return [func(item) for item in items[start:stop]]

    bounds = chunk_bounds(len(items), num_workers, min_chunk)
    pool = _create_pool(len(bounds), num_workers)
    if pool is None:
        return [func(item) for item in items]
    with pool:
        futures = [pool.submit(run, start, stop) for start, stop in bounds]
        out: list[R] = []
        for f in futures:
            out.extend(f.result())
    return out


def parallel_reduce(
    func: Callable[[int, int], R],
    combine: Callable[[R, R], R],
    n: int,
    initial: R,
    num_workers: int | None = None,
    min_chunk: int = MIN_CHUNK_SIZE,
) -> R:
    """Reduce chunk partials of ``range(n)`` sequentially in chunk order."""
    bounds = chunk_bounds(n, num_workers, min_chunk)
    pool = _create_pool(len(bounds), num_workers)
    if pool is None:
        partials = [func(start, stop) for start, stop in bounds]
    else:
        with pool:
            futures = [pool.submit(func, start, stop) for start, stop in bounds]
            partials = [f.result() for f in futures]
    result = initial
    for partial in partials:
        result = combine(result, partial)
    return result


def accumulate_by_label(
    vectors: np.ndarray,
    labels: np.ndarray,
    num_labels: int,
    num_workers: int | None = None,
    min_chunk: int = MIN_CHUNK_SIZE,
) -> tuple[np.ndarray, np.ndarray]:
    """Per-label vector sums and counts.

    Each chunk accumulates into private partial sums that are merged in a
    final sequential pass. Negative labels are skipped.

    Returns:
        sums: (num_labels, 3) vector sums.
        counts: (num_labels,) member counts.
    """
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    labels = np.asarray(labels, dtype=np.int64)

    def partial(start: int, stop: int) -> tuple[np.ndarray, np.ndarray]:
        lab = labels[start:stop]
        keep = lab >= 0
        lab = lab[keep]
        sums = np.zeros((num_labels, 3))
        np.add.at(sums, lab, vectors[start:stop][keep])
        counts = np.bincount(lab, minlength=num_labels)[:num_labels]
        return sums, counts

    def combine(acc, part):
        return acc[0] + part[0], acc[1] + part[1]

    initial = (np.zeros((num_labels, 3)), np.zeros(num_labels, dtype=np.int64))
    return parallel_reduce(partial, combine, labels.shape[0], initial,
                           num_workers=num_workers, min_chunk=min_chunk)
