"""Tests for the chunked parallel map and reduce helpers."""

import logging

import numpy as np

from pymeshclust.math.parallel import (
    accumulate_by_label,
    chunk_bounds,
    parallel_map,
    parallel_map_chunks,
    parallel_reduce,
    resolve_workers,
)


def test_chunk_bounds_cover_range():
    bounds = chunk_bounds(103, num_workers=4, min_chunk=10)
    assert bounds[0][0] == 0
    assert bounds[-1][1] == 103
    for (a, b), (c, _) in zip(bounds[:-1], bounds[1:]):
        assert b == c
    assert len(bounds) == 4


def test_chunk_bounds_small_input_is_single_chunk():
    assert chunk_bounds(5, num_workers=8, min_chunk=100) == [(0, 5)]
    assert chunk_bounds(0) == []


def test_resolve_workers():
    assert resolve_workers(3) == 3
    assert resolve_workers(0) == 1
    assert resolve_workers(None) >= 1


def test_map_chunks_matches_serial(rng):
    data = rng.standard_normal((1000, 3))

    def norms(start, stop):
        return np.linalg.norm(data[start:stop], axis=1)

    parallel = parallel_map_chunks(norms, 1000, num_workers=4, min_chunk=10)
    serial = parallel_map_chunks(norms, 1000, num_workers=1)
    np.testing.assert_array_equal(parallel, serial)
    np.testing.assert_allclose(serial, np.linalg.norm(data, axis=1))


def test_map_preserves_order():
    items = list(range(50))
    out = parallel_map(lambda v: v * v, items, num_workers=4, min_chunk=5)
    assert out == [v * v for v in items]


def test_reduce_combines_in_chunk_order():
    # String concatenation is order-sensitive.
    result = parallel_reduce(
        lambda a, b: "".join(str(i % 10) for i in range(a, b)),
        lambda acc, part: acc + part,
        40, "", num_workers=4, min_chunk=5,
    )
    assert result == "".join(str(i % 10) for i in range(40))


def test_accumulate_by_label(rng):
    vectors = rng.standard_normal((500, 3))
    labels = rng.integers(-1, 4, size=500)
    sums, counts = accumulate_by_label(vectors, labels, 4, num_workers=3, min_chunk=16)

    expected = np.zeros((4, 3))
    for k in range(4):
        expected[k] = vectors[labels == k].sum(axis=0)
    np.testing.assert_allclose(sums, expected)
    np.testing.assert_array_equal(counts, [np.sum(labels == k) for k in range(4)])


def test_pool_creation_is_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger="pymeshclust.math.parallel"):
        parallel_map_chunks(lambda a, b: np.arange(a, b), 40, num_workers=2, min_chunk=10)
    assert "Creating worker pool: 2 threads for 2 chunks" in caplog.text


def test_serial_run_creates_no_pool(caplog):
    with caplog.at_level(logging.DEBUG, logger="pymeshclust.math.parallel"):
        parallel_map_chunks(lambda a, b: np.arange(a, b), 40, num_workers=1, min_chunk=10)
    assert "worker pool" not in caplog.text
