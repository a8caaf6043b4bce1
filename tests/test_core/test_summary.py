"""Tests for per-cluster summaries and parameter variability."""

import numpy as np
import pytest

from pymeshclust.core.summary import (
    cluster_distribution_lines,
    parameter_report_lines,
    parameter_statistics_lines,
    parameter_variability,
    summarize_clusters,
)


def test_summarize_clusters():
    directions = np.array([[1.0, 0, 0], [1.0, 0, 0], [0, 1.0, 0], [0, 0, 1.0]])
    assignments = np.array([0, 0, 2, -1])
    summaries = summarize_clusters(
        directions, assignments, 3, parameter_fn=lambda pts: {"size2": float(len(pts)) ** 2})
    assert [s.size for s in summaries] == [2, 0, 1]
    np.testing.assert_allclose(summaries[0].mean_direction, [1.0, 0, 0])
    assert summaries[0].cosine_similarity == pytest.approx(1.0)
    assert summaries[0].parameters == {"size2": 4.0}
    assert summaries[1].parameters == {}
    np.testing.assert_array_equal(summaries[1].mean_direction, np.zeros(3))


def test_cosine_similarity_measures_spread():
    directions = np.array([[1.0, 0, 0], [0, 1.0, 0]])
    summaries = summarize_clusters(directions, np.array([0, 0]), 1)
    assert summaries[0].cosine_similarity == pytest.approx(np.sqrt(0.5))


def test_parameter_variability_ignores_empty_clusters():
    directions = np.array([[1.0, 0, 0], [0, 1.0, 0], [0, 1.0, 0]])
    values = iter([1.0, 3.0])
    summaries = summarize_clusters(
        directions, np.array([0, 2, 2]), 3, parameter_fn=lambda pts: {"kappa": next(values)})
    cv = parameter_variability(summaries, ["kappa", "cosine_similarity"])
    assert cv["kappa"] == pytest.approx(50.0)
    assert cv["cosine_similarity"] == pytest.approx(0.0)


def test_statistics_lines():
    lines = parameter_statistics_lines([1.0, 2.0, 6.0], "Kappa")
    assert "- Average Kappa: 3.000000" in lines
    assert "- Median Kappa: 2.000000" in lines
    assert parameter_statistics_lines([], "Kappa") == ["No values available for Kappa."]


def test_report_lines():
    directions = np.array([[1.0, 0, 0], [0, 1.0, 0]])
    summaries = summarize_clusters(directions, np.array([0, 1]), 2)
    lines, cv = parameter_report_lines(summaries, {"cosine_similarity": "Cosine Similarity"}, "Test")
    assert "Parameter Variability for Test:" in lines
    assert "Cosine Similarity CV: 0.00%" in lines
    assert cv == {"cosine_similarity": 0.0}


def test_distribution_lines():
    lines = cluster_distribution_lines(np.array([0, 0, 1, -1]))
    assert lines[0] == "Cluster distribution:"
    assert "- Unassigned: 1 triangles (25.00%)" in lines
    assert "- Cluster 0: 2 triangles (50.00%)" in lines


def test_threaded_parameter_fits_match_serial(rng):
    directions = rng.standard_normal((600, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    assignments = rng.integers(-1, 40, size=600)

    def fit(points):
        return {"spread": float(np.linalg.norm(points.mean(axis=0)))}

    serial = summarize_clusters(directions, assignments, 40, parameter_fn=fit)
    threaded = summarize_clusters(directions, assignments, 40, parameter_fn=fit, num_workers=4)
    assert [s.parameters for s in threaded] == [s.parameters for s in serial]
    assert [s.size for s in threaded] == [s.size for s in serial]
