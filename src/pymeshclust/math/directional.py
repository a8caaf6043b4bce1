"""Directional statistics on the unit sphere."""

import numpy as np

EPSILON = 1e-10


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """L2-normalize non-zero rows; zero and non-finite rows become zero.

    Args:
        vectors: (N, 3) array.

    Returns:
        (N, 3) float64 array.
    """
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3).copy()
    finite = np.all(np.isfinite(vectors), axis=1)
    vectors[~finite] = 0.0
    norms = np.linalg.norm(vectors, axis=1)
    nonzero = norms > EPSILON
    vectors[nonzero] /= norms[nonzero, np.newaxis]
    vectors[~nonzero] = 0.0
    return vectors


def valid_direction_mask(vectors: np.ndarray) -> np.ndarray:
    """Boolean mask of rows that are finite and have non-negligible length."""
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    finite = np.all(np.isfinite(vectors), axis=1)
    norms = np.zeros(vectors.shape[0])
    norms[finite] = np.linalg.norm(vectors[finite], axis=1)
    return finite & (norms > EPSILON)


def resultant(vectors: np.ndarray) -> np.ndarray:
    """Vector sum of the rows of ``vectors``."""
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    return vectors.sum(axis=0)


def directional_mean(vectors: np.ndarray) -> np.ndarray:
    """Normalized resultant of a set of directions.

    A resultant whose length is within floating-point noise of zero (for
    example a vector and its exact negation, or a symmetric polyhedron's face
    normals) yields the zero vector rather than an arbitrary direction.

    Args:
        vectors: (N, 3) directions.

    Returns:
        (3,) unit vector, or zeros for an empty or cancelling set.
    """
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    total = vectors.sum(axis=0)
    norm = np.linalg.norm(total)
    if norm <= EPSILON * max(1, vectors.shape[0]):
        return np.zeros(3)
    return total / norm


def mean_resultant_length(vectors: np.ndarray) -> float:
    """Length of the resultant divided by the number of directions (r-bar)."""
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    if vectors.shape[0] == 0:
        return 0.0
    return float(np.linalg.norm(vectors.sum(axis=0)) / vectors.shape[0])


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> np.ndarray | float:
    """Cosine of the angle between ``a`` and ``b`` (broadcast over rows).

    Zero-length inputs have similarity 0.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    na = np.linalg.norm(a, axis=-1)
    nb = np.linalg.norm(b, axis=-1)
    denom = na * nb
    dots = np.sum(a * b, axis=-1)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = np.where(denom > EPSILON, dots / np.where(denom > EPSILON, denom, 1.0), 0.0)
    result = np.clip(result, -1.0, 1.0)
    if result.ndim == 0:
        return float(result)
    return result


def cosine_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray | float:
    """One minus the cosine similarity."""
    return 1.0 - cosine_similarity(a, b)


def angular_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray | float:
    """Angle in degrees between ``a`` and ``b``."""
    result = np.degrees(np.arccos(cosine_similarity(a, b)))
    if np.ndim(result) == 0:
        return float(result)
    return result


def centroid_shift(old: np.ndarray, new: np.ndarray) -> float:
    """Mean cosine distance between matching rows of two centroid sets.

    Rows that are both the zero vector count as unmoved; a zero row paired
    with a non-zero row counts as a full shift.
    """
    old = np.asarray(old, dtype=np.float64).reshape(-1, 3)
    new = np.asarray(new, dtype=np.float64).reshape(-1, 3)
    if old.shape[0] == 0:
        return 0.0
    old_zero = np.linalg.norm(old, axis=1) <= EPSILON
    new_zero = np.linalg.norm(new, axis=1) <= EPSILON
    shifts = 1.0 - np.clip(np.sum(old * new, axis=1), -1.0, 1.0)
    shifts = np.where(old_zero & new_zero, 0.0, shifts)
    shifts = np.where(old_zero ^ new_zero, 1.0, shifts)
    return float(shifts.mean())


def scatter_matrix(vectors: np.ndarray, center: np.ndarray | None = None) -> np.ndarray:
    """Average outer product of the rows of ``vectors`` about ``center``.

    The center defaults to the directional mean, so the result is the
    covariance of the directions around their mean direction.

    Returns:
        (3, 3) symmetric matrix.
    """
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    if vectors.shape[0] == 0:
        return np.zeros((3, 3))
    if center is None:
        center = directional_mean(vectors)
    centered = vectors - center[np.newaxis, :]
    return centered.T @ centered / vectors.shape[0]


def sorted_eigen(matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Eigen-decompose a symmetric matrix, ordered by descending eigenvalue.

    Returns:
        eigenvalues: (3,) descending.
        frame: (3, 3) rows are the matching unit eigenvectors.
    """
    values, vectors = np.linalg.eigh(np.asarray(matrix, dtype=np.float64))
    order = np.argsort(values)[::-1]
    frame = vectors[:, order].T
    frame /= np.linalg.norm(frame, axis=1, keepdims=True)
    return values[order], frame


# Polynomial coefficients (Abramowitz & Stegun 9.8.1-9.8.2).
_I0_SMALL = (1.0, 3.5156229, 3.0899424, 1.2067492, 0.2659732, 0.0360768, 0.0045813)
_I0_LARGE = (0.39894228, 0.01328592, 0.00225319, -0.00157565, 0.00916281,
             -0.02057706, 0.02635537, -0.01647633, 0.00392377)
_BESSEL_SWITCH = 3.75


def _horner(coeffs: tuple[float, ...], y: np.ndarray) -> np.ndarray:
    result = np.full_like(y, coeffs[-1])
    for c in reversed(coeffs[:-1]):
        result = result * y + c
    return result


def _as_scalar_or_array(result: np.ndarray, scalar_input: bool):
    if scalar_input:
        return float(result[0])
    return result


def bessel_i0(x: float | np.ndarray) -> float | np.ndarray:
    """Modified Bessel function of the first kind, order 0.

    Rational approximation on |x| < 3.75, exponential asymptotic form beyond.
    """
    x = np.asarray(x, dtype=np.float64)
    scalar_input = x.ndim == 0
    ax = np.abs(np.atleast_1d(x))
    out = np.empty_like(ax)
    small = ax < _BESSEL_SWITCH
    y = (ax[small] / _BESSEL_SWITCH) ** 2
    out[small] = _horner(_I0_SMALL, y)
    large = ~small
    y = _BESSEL_SWITCH / ax[large]
    with np.errstate(over="ignore"):
        out[large] = np.exp(ax[large]) / np.sqrt(ax[large]) * _horner(_I0_LARGE, y)
    return _as_scalar_or_array(out, scalar_input)


def log_bessel_i0(x: float | np.ndarray) -> float | np.ndarray:
    """Natural log of I0, finite for arguments where I0 itself overflows."""
    x = np.asarray(x, dtype=np.float64)
    scalar_input = x.ndim == 0
    ax = np.abs(np.atleast_1d(x))
    out = np.empty_like(ax)
    small = ax < _BESSEL_SWITCH
    out[small] = np.log(bessel_i0(ax[small]))
    large = ~small
    y = _BESSEL_SWITCH / ax[large]
    out[large] = ax[large] - 0.5 * np.log(ax[large]) + np.log(_horner(_I0_LARGE, y))
    return _as_scalar_or_array(out, scalar_input)


def log_sinh(x: float | np.ndarray) -> float | np.ndarray:
    """log(sinh(x)) for x > 0 without overflow."""
    x = np.asarray(x, dtype=np.float64)
    with np.errstate(divide="ignore"):
        result = x + np.log1p(-np.exp(-2.0 * x)) - np.log(2.0)
    if result.ndim == 0:
        return float(result)
    return result


def median(values) -> float:
    """Median of a sequence; raises ValueError when empty."""
    values = np.asarray(list(values), dtype=np.float64)
    if values.size == 0:
        raise ValueError("Cannot compute median for an empty set.")
    return float(np.median(values))


def coefficient_of_variation(values) -> float:
    """Population standard deviation over mean, in percent.

    Returns 0 for an empty sequence or a zero mean.
    """
    values = np.asarray(list(values), dtype=np.float64)
    if values.size == 0:
        return 0.0
    mean = values.mean()
    if mean == 0:
        return 0.0
    return float(values.std() / mean * 100.0)
