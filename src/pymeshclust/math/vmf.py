"""Von Mises-Fisher distribution on the 2-sphere."""

from dataclasses import dataclass

import numpy as np
from scipy.special import ive

from pymeshclust.math.directional import (
    EPSILON,
    cosine_similarity,
    directional_mean,
    mean_resultant_length,
)

MIN_KAPPA = 0.01
MAX_KAPPA = 1000.0
HIGH_CONCENTRATION_THRESHOLD = 0.8
MIN_DENSITY = 1e-10
MAX_DENSITY = 1e6


def ad(kappa: float | np.ndarray, d: int = 3) -> float | np.ndarray:
    """Bessel quotient A_d(kappa) = I_{d/2}(kappa) / I_{d/2-1}(kappa).

    This is the expected mean resultant length of a vMF sample in R^d.
    Uses exponentially scaled Bessel functions to avoid overflow.
    """
    kappa = np.asarray(kappa, dtype=np.float64)
    num = ive(d / 2, kappa)
    den = ive(d / 2 - 1, kappa)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = num / den
    # For very large kappa, Ad -> 1
    result = np.where(np.isnan(result) | np.isinf(result), 1.0, result)
    if result.ndim == 0:
        return float(result)
    return result


def estimate_kappa(rbar: float | np.ndarray, saturate: bool = True) -> float | np.ndarray:
    """Closed-form concentration estimate from the mean resultant length.

    Banerjee et al. (2005) approximation for d = 3:
    kappa = (3 r - r^3) / (1 - r^2), clamped to [MIN_KAPPA, MAX_KAPPA].

    Args:
        rbar: Mean resultant length(s) in [0, 1].
        saturate: Jump straight to MAX_KAPPA above
            HIGH_CONCENTRATION_THRESHOLD (used for the global fit).
    """
    rbar = np.clip(np.asarray(rbar, dtype=np.float64), 0.0, 1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        kappa = (3.0 * rbar - rbar**3) / (1.0 - rbar**2)
    kappa = np.where(rbar >= 1.0, MAX_KAPPA, kappa)
    kappa = np.clip(kappa, MIN_KAPPA, MAX_KAPPA)
    if saturate:
        kappa = np.where(rbar > HIGH_CONCENTRATION_THRESHOLD, MAX_KAPPA, kappa)
    if kappa.ndim == 0:
        return float(kappa)
    return kappa


def log_normalization_constant(kappa: float) -> float:
    """Log of c in the density c * exp(kappa * (x.mu - 1)).

    c = kappa / (2 pi (1 - exp(-2 kappa))), which tends to 1 / (4 pi) as
    kappa -> 0. Clamped below at EPSILON.
    """
    kappa = float(kappa)
    if kappa < MIN_KAPPA:
        c_log = -np.log(4.0 * np.pi)
    else:
        c_log = np.log(kappa) - np.log(2.0 * np.pi) - np.log(-np.expm1(-2.0 * kappa))
    return float(max(c_log, np.log(EPSILON)))


def vmf_density(
    X: np.ndarray,
    mu: np.ndarray,
    kappa: float,
    log_c: float | None = None,
) -> np.ndarray:
    """Density of unit vectors under a vMF distribution.

    Args:
        X: (N, 3) unit vectors.
        mu: (3,) mean direction.
        kappa: Concentration.
        log_c: Optional precomputed log normalizing constant.

    Returns:
        (N,) densities clamped to [MIN_DENSITY, MAX_DENSITY].
    """
    if log_c is None:
        log_c = log_normalization_constant(kappa)
    X = np.asarray(X, dtype=np.float64).reshape(-1, 3)
    log_density = log_c + kappa * (X @ mu - 1.0)
    log_density = np.clip(log_density, np.log(MIN_DENSITY), np.log(MAX_DENSITY))
    return np.exp(log_density)


def interpret_kappa(kappa: float) -> str:
    """One-line reading of a concentration value for surface normals."""
    if kappa < 1:
        return ("Very low kappa detected. This indicates extremely widely spread "
                "normal vectors, suggesting a highly complex or varied surface.")
    if kappa < 2:
        return ("Low kappa detected. This indicates widely spread normal vectors, "
                "suggesting a complex or highly varied surface.")
    if kappa < 5:
        return ("Moderate kappa detected. This suggests a mix of surface "
                "orientations with some local consistency.")
    if kappa < 10:
        return ("Moderately high kappa detected. This indicates more consistent "
                "surface orientations, possibly suggesting smoother areas.")
    return ("High kappa detected. This suggests highly consistent surface "
            "orientations, indicating very smooth or uniform areas.")


@dataclass
class VMFParams:
    """Fitted vMF parameters.

    Attributes:
        mean_direction: (3,) directional mean (zero if the resultant cancels).
        kappa: Concentration.
        rbar: Mean resultant length the fit was based on.
        log_c: Log normalizing constant.
    """

    mean_direction: np.ndarray
    kappa: float
    rbar: float
    log_c: float


class VonMisesFisherModel:
    """vMF density model for density-guided seeding."""

    name = "von Mises-Fisher (vMF)"
    convergence_scale = 1.0
    seeding = "global_maximum"
    parameter_labels = {"kappa": "Kappa"}

    def __init__(self):
        self.params: VMFParams | None = None

    def fit(self, points: np.ndarray) -> VMFParams:
        mu = directional_mean(points)
        rbar = mean_resultant_length(points)
        kappa = float(estimate_kappa(rbar, saturate=True))
        self.params = VMFParams(
            mean_direction=mu, kappa=kappa, rbar=rbar,
            log_c=log_normalization_constant(kappa),
        )
        return self.params

    def density(self, points: np.ndarray) -> np.ndarray:
        p = self._require_params()
        return vmf_density(points, p.mean_direction, p.kappa, log_c=p.log_c)

    def cluster_parameters(self, points: np.ndarray) -> dict[str, float]:
        mu = directional_mean(points)
        rbar = float(np.mean(np.asarray(points) @ mu)) if len(points) else 0.0
        return {"kappa": float(estimate_kappa(rbar, saturate=False))}

    def describe(self, points: np.ndarray) -> list[str]:
        """Diagnostic lines about the global fit."""
        p = self._require_params()
        points = np.asarray(points, dtype=np.float64)
        dots = points @ p.mean_direction
        deviation = 1.0 - dots
        average_deviation = float(deviation.mean())
        variance = float((deviation**2).mean() - average_deviation**2)
        angles = np.degrees(np.arccos(np.clip(cosine_similarity(points, p.mean_direction), -1, 1)))
        relative_spread = float(angles.mean()) / (90.0 * np.sqrt(2.0 / 3.0))
        concentration = float((dots**2).mean())
        lines = [
            "Clustering Statistics:",
            f"- Mean direction: {np.array2string(p.mean_direction, precision=4)} (unit vector)",
            f"- Average angle from mean: {angles.mean():.2f} deg (90 deg would indicate uniform spread)",
            f"- Angle range: {angles.min():.2f} deg to {angles.max():.2f} deg",
            f"- Angle standard deviation: {angles.std():.2f} deg",
            f"- Relative spread: {relative_spread:.2f} (1.0 would indicate uniform spread)",
            f"- Average deviation: {average_deviation:.6f}",
            f"- Variance: {variance:.6f}",
            f"R-bar: {p.rbar:.6f}, Concentration measure: {concentration:.6f}",
        ]
        if p.rbar > HIGH_CONCENTRATION_THRESHOLD:
            lines.append(f"Very high concentration detected, setting kappa to maximum: {p.kappa}")
        lines += [
            "Kappa estimation results:",
            f"- Estimated kappa: {p.kappa:.6f}",
            f"- rBar: {p.rbar:.6f} (0 - uniform spread, 1 - all vectors aligned)",
            f"- Expected rBar under fitted kappa A3(kappa): {ad(p.kappa):.6f}",
            interpret_kappa(p.kappa),
            f"Normalization constant: c = {np.exp(p.log_c):.8f}",
        ]
        return lines

    def _require_params(self) -> VMFParams:
        if self.params is None:
            raise RuntimeError("VonMisesFisherModel.fit must be called first")
        return self.params
