"""Tests for the Bingham distribution."""

import numpy as np
import pytest

from pymeshclust.math.bingham import (
    MAX_DISPERSION,
    MIN_DISPERSION,
    BinghamModel,
    bingham_density,
    estimate_dispersion,
    fit_bingham,
    log_normalization_constant,
)
from pymeshclust.math.directional import normalize_rows


def test_dispersion_clamped():
    z = estimate_dispersion(np.array([1e4, 0.1, 0.0]))
    assert z[0] == MIN_DISPERSION
    assert z[1] == pytest.approx(5.0, rel=1e-6)
    assert z[2] == MAX_DISPERSION


def test_normalization_branches():
    assert log_normalization_constant(np.array([0.0, 0.0, 0.0])) == pytest.approx(-np.log(4 * np.pi))
    s = 3.0
    expected = np.log(s / (4 * np.pi * np.sinh(s)))
    assert log_normalization_constant(np.array([1.0, 1.0, 1.0])) == pytest.approx(expected)
    big = log_normalization_constant(np.array([1000.0, 1000.0, 1000.0]))
    assert big == pytest.approx(0.5 * np.log(3000.0 / (2 * np.pi)))


def test_density_is_antipodally_symmetric(rng):
    points = normalize_rows(rng.standard_normal((100, 3)))
    params = fit_bingham(points)
    forward = bingham_density(points, params.dispersion, params.frame, params.log_c)
    backward = bingham_density(-points, params.dispersion, params.frame, params.log_c)
    np.testing.assert_allclose(forward, backward)
    assert np.all(np.isfinite(forward))
    assert np.all(forward > 0)


def test_frame_is_orthonormal(two_groups):
    params = fit_bingham(two_groups)
    np.testing.assert_allclose(params.frame @ params.frame.T, np.eye(3), atol=1e-10)
    assert np.all(np.diff(params.eigenvalues) <= 0)


class TestBinghamModel:

    def test_cluster_parameters_keys(self, two_groups):
        params = BinghamModel().cluster_parameters(two_groups[:100])
        assert set(params) == {"z1", "z2", "z3"}
        assert all(MIN_DISPERSION <= v <= MAX_DISPERSION for v in params.values())

    def test_describe_reports_multimodality(self, two_groups):
        model = BinghamModel()
        model.fit(two_groups)
        lines = model.describe(two_groups)
        assert any("Multimodality index" in line for line in lines)

    def test_seeding_mode(self):
        model = BinghamModel()
        assert model.seeding == "local_maxima"
        assert model.convergence_scale == pytest.approx(0.1)
