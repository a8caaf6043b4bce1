"""Kent (Fisher-Bingham 5-parameter) distribution."""

from dataclasses import dataclass

import numpy as np

from pymeshclust.math.directional import (
    EPSILON,
    directional_mean,
    log_bessel_i0,
    log_sinh,
    scatter_matrix,
    sorted_eigen,
)

MIN_KAPPA = 0.01
MAX_KAPPA = 1000.0
MIN_DENSITY = 1e-10
MAX_DENSITY = 1e6


def estimate_kappa_beta(eigenvalues: np.ndarray) -> tuple[float, float]:
    """Concentration and ellipticity from descending scatter eigenvalues.

    kappa = 1 / (2 (l2 + eps)), clamped to [MIN_KAPPA, MAX_KAPPA];
    beta = kappa (l1 - l2) / (l0 - l2 + eps), capped at kappa / 2 - eps.
    """
    l0, l1, l2 = (float(v) for v in eigenvalues)
    l2 = max(l2, 0.0)
    kappa = 1.0 / (2.0 * (l2 + EPSILON))
    kappa = min(max(kappa, MIN_KAPPA), MAX_KAPPA)
    beta = kappa * (l1 - l2) / (l0 - l2 + EPSILON)
    beta = min(max(beta, 0.0), kappa / 2.0 - EPSILON)
    return kappa, beta


def log_normalization_constant(kappa: float, beta: float) -> float:
    """Log of c = I0(kappa) / (4 pi sinh(kappa)) * (1 - beta^2 / (2 kappa)).

    The ellipticity correction is floored at EPSILON so the constant stays
    positive at high ellipticity.
    """
    log_c = -np.log(4.0 * np.pi) + log_bessel_i0(kappa) - log_sinh(kappa)
    if beta != 0:
        correction = 1.0 - beta * beta / (2.0 * kappa)
        log_c += np.log(max(correction, EPSILON))
    return float(log_c)


def kent_density(
    X: np.ndarray,
    kappa: float,
    beta: float,
    frame: np.ndarray,
    log_c: float | None = None,
) -> np.ndarray:
    """(1/c) exp(kappa z + beta (x^2 - y^2)) in the frame's coordinates.

    Args:
        X: (N, 3) unit vectors.
        kappa: Concentration.
        beta: Ellipticity.
        frame: (3, 3) rows gamma1 (major), gamma2 (minor), gamma3 (mean axis).
        log_c: Optional precomputed log normalizing constant.

    Returns:
        (N,) densities clamped to [MIN_DENSITY, MAX_DENSITY].
    """
    if log_c is None:
        log_c = log_normalization_constant(kappa, beta)
    X = np.asarray(X, dtype=np.float64).reshape(-1, 3)
    coords = X @ frame.T
    x, y, z = coords[:, 0], coords[:, 1], coords[:, 2]
    log_density = -log_c + kappa * z + beta * (x**2 - y**2)
    log_density = np.clip(log_density, np.log(MIN_DENSITY), np.log(MAX_DENSITY))
    return np.exp(log_density)


@dataclass
class KentParams:
    """Fitted Kent parameters.

    Attributes:
        mean_direction: (3,) directional mean of the data.
        kappa: Concentration.
        beta: Ellipticity.
        frame: (3, 3) rows gamma1, gamma2, gamma3 (descending eigenvalue).
        eigenvalues: (3,) scatter eigenvalues, descending.
        scatter: (3, 3) scatter matrix about the directional mean.
        log_c: Log normalizing constant.
    """

    mean_direction: np.ndarray
    kappa: float
    beta: float
    frame: np.ndarray
    eigenvalues: np.ndarray
    scatter: np.ndarray
    log_c: float


def orient_frame(frame: np.ndarray, mean_direction: np.ndarray) -> np.ndarray:
    """Point the mean axis (row 2) toward ``mean_direction``, right-handed.

    Eigenvectors come back with an arbitrary sign; the Kent density is not
    antipodally symmetric, so gamma3 must face the data.
    """
    frame = np.array(frame, dtype=np.float64)
    if frame[2] @ mean_direction < 0:
        frame[2] = -frame[2]
    frame[1] = np.cross(frame[2], frame[0])
    return frame


def fit_kent(points: np.ndarray) -> KentParams:
    """Closed-form Kent fit from the scatter eigen-structure of ``points``."""
    mu = directional_mean(points)
    scatter = scatter_matrix(points, center=mu)
    eigenvalues, frame = sorted_eigen(scatter)
    frame = orient_frame(frame, mu)
    kappa, beta = estimate_kappa_beta(eigenvalues)
    return KentParams(
        mean_direction=mu, kappa=kappa, beta=beta, frame=frame,
        eigenvalues=eigenvalues, scatter=scatter,
        log_c=log_normalization_constant(kappa, beta),
    )


def _fmt(v: np.ndarray) -> str:
    return np.array2string(v, precision=4)


class KentModel:
    """Kent density model for density-guided seeding."""

    name = "Kent"
    convergence_scale = 1.0
    seeding = "global_maximum"
    parameter_labels = {"kappa": "Kappa", "beta": "Beta"}

    def __init__(self):
        self.params: KentParams | None = None

    def fit(self, points: np.ndarray) -> KentParams:
        self.params = fit_kent(points)
        return self.params

    def density(self, points: np.ndarray) -> np.ndarray:
        p = self._require_params()
        return kent_density(points, p.kappa, p.beta, p.frame, log_c=p.log_c)

    def cluster_parameters(self, points: np.ndarray) -> dict[str, float]:
        eigenvalues, _ = sorted_eigen(scatter_matrix(points))
        kappa, beta = estimate_kappa_beta(eigenvalues)
        return {"kappa": kappa, "beta": beta}

    def describe(self, points: np.ndarray) -> list[str]:
        p = self._require_params()
        s = p.scatter
        return [
            "Kent Distribution Analysis:",
            f"- Mean direction: {_fmt(p.mean_direction)}",
            f"- Concentration (kappa): {p.kappa:.6f}",
            f"- Ellipticity (beta/kappa): {p.beta / p.kappa:.6f}",
            f"- Major axis (gamma1): {_fmt(p.frame[0])}",
            f"- Minor axis (gamma2): {_fmt(p.frame[1])}",
            f"- Mean axis (gamma3): {_fmt(p.frame[2])}",
            "- Concentration values: [" + ", ".join(f"{v:.6f}" for v in p.eigenvalues) + "]",
            "- Covariance Matrix:",
            f"  [{s[0, 0]:.6f} {s[0, 1]:.6f} {s[0, 2]:.6f}]",
            f"  [{s[1, 0]:.6f} {s[1, 1]:.6f} {s[1, 2]:.6f}]",
            f"  [{s[2, 0]:.6f} {s[2, 1]:.6f} {s[2, 2]:.6f}]",
            f"- Estimated Kappa: {p.kappa:.6f}",
            f"- Estimated Beta: {p.beta:.6f}",
            f"- Estimated Normalization constant: {np.exp(p.log_c):.6g}",
        ]

    def _require_params(self) -> KentParams:
        if self.params is None:
            raise RuntimeError("KentModel.fit must be called first")
        return self.params
