"""Tests for von Mises-Fisher math utilities."""

import numpy as np
import pytest
from scipy.special import iv as besseli

from pymeshclust.math.directional import normalize_rows
from pymeshclust.math.vmf import (
    MAX_KAPPA,
    MIN_KAPPA,
    VonMisesFisherModel,
    ad,
    estimate_kappa,
    log_normalization_constant,
    vmf_density,
)


def fibonacci_sphere(n: int) -> np.ndarray:
    """Near-uniform points on the unit sphere."""
    i = np.arange(n) + 0.5
    z = 1.0 - 2.0 * i / n
    r = np.sqrt(1.0 - z**2)
    theta = np.pi * (1.0 + 5**0.5) * i
    return np.column_stack([r * np.cos(theta), r * np.sin(theta), z])


class TestAd:
    """Tests for the Bessel quotient A_3(kappa)."""

    def test_known_value(self):
        kappa = 10.0
        expected = float(besseli(1.5, kappa) / besseli(0.5, kappa))
        assert ad(kappa) == pytest.approx(expected, rel=1e-10)

    def test_monotone(self):
        values = ad(np.array([0.1, 1.0, 10.0, 100.0]))
        assert np.all(np.diff(values) > 0)
        assert values[-1] == pytest.approx(1.0, abs=0.01)


class TestEstimateKappa:
    """Tests for the closed-form concentration estimate."""

    def test_monotone_in_rbar(self):
        rbar = np.linspace(0.05, 0.95, 19)
        kappa = estimate_kappa(rbar, saturate=False)
        assert np.all(np.diff(kappa) > 0)

    def test_clamped(self):
        assert estimate_kappa(0.0, saturate=False) == MIN_KAPPA
        assert estimate_kappa(1.0, saturate=False) == MAX_KAPPA

    def test_saturation_above_threshold(self):
        assert estimate_kappa(0.85, saturate=True) == MAX_KAPPA
        assert estimate_kappa(0.85, saturate=False) < MAX_KAPPA

    def test_matches_formula(self):
        r = 0.5
        assert estimate_kappa(r) == pytest.approx((3 * r - r**3) / (1 - r**2))


class TestDensity:
    """Tests for the vMF density and its normalizing constant."""

    def test_small_kappa_is_uniform(self):
        assert log_normalization_constant(1e-4) == pytest.approx(-np.log(4 * np.pi))

    def test_integrates_to_one(self):
        points = fibonacci_sphere(20000)
        mu = np.array([0.0, 0.0, 1.0])
        density = vmf_density(points, mu, 5.0)
        assert density.mean() * 4 * np.pi == pytest.approx(1.0, rel=1e-2)

    def test_peak_at_mean(self):
        mu = np.array([0.0, 1.0, 0.0])
        points = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, -1.0, 0.0]])
        density = vmf_density(points, mu, 10.0)
        assert density[0] > density[1] > density[2]

    def test_no_overflow_at_max_kappa(self):
        mu = np.array([1.0, 0.0, 0.0])
        density = vmf_density(np.array([[1.0, 0, 0], [-1.0, 0, 0]]), mu, MAX_KAPPA)
        assert np.all(np.isfinite(density))
        assert density[1] == pytest.approx(1e-10)


class TestVonMisesFisherModel:

    def test_concentrated_sample_has_higher_kappa(self, rng):
        mu = np.array([0.0, 0.0, 1.0])
        tight = normalize_rows(mu + 0.1 * rng.standard_normal((200, 3)))
        loose = normalize_rows(mu + 1.0 * rng.standard_normal((200, 3)))
        model = VonMisesFisherModel()
        assert model.cluster_parameters(tight)["kappa"] > model.cluster_parameters(loose)["kappa"]

    def test_fit_recovers_mean(self, rng):
        mu = normalize_rows(np.array([[1.0, 1.0, 0.0]]))[0]
        points = normalize_rows(mu + 0.2 * rng.standard_normal((500, 3)))
        params = VonMisesFisherModel().fit(points)
        assert params.mean_direction @ mu > 0.99

    def test_density_before_fit_raises(self):
        with pytest.raises(RuntimeError):
            VonMisesFisherModel().density(np.array([[1.0, 0, 0]]))

    def test_describe_mentions_kappa(self, two_groups):
        model = VonMisesFisherModel()
        model.fit(two_groups)
        lines = model.describe(two_groups)
        assert any("Estimated kappa" in line for line in lines)
