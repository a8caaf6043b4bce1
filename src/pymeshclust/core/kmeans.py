"""Spherical k-means with subsampled k-means++ seeding."""

import math

import numpy as np

from pymeshclust.core.refinement import assign_to_nearest, update_centroids
from pymeshclust.core.strategy import ClusteringStrategy
from pymeshclust.math.directional import centroid_shift, cosine_distance

STABLE_ITERATIONS_THRESHOLD = 2
BASE_SAMPLING_RATE = 0.10
MAX_SAMPLING_RATE = 0.15
SAMPLING_RATE_THRESHOLD = 50
SAMPLING_RATE_SATURATION = 200
MAX_SAMPLE_SIZE = 800


def sampling_rate(k: int) -> float:
    """Fraction of the candidate pool examined per k-means++ draw.

    10% up to 50 clusters, rising with sqrt((k - 50) / 150) to 15% at 200.
    """
    if k <= SAMPLING_RATE_THRESHOLD:
        return BASE_SAMPLING_RATE
    t = min(1.0, (k - SAMPLING_RATE_THRESHOLD) / (SAMPLING_RATE_SATURATION - SAMPLING_RATE_THRESHOLD))
    return BASE_SAMPLING_RATE + (MAX_SAMPLING_RATE - BASE_SAMPLING_RATE) * math.sqrt(t)


def kmeans_plus_plus(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """k-means++ seeding on the sphere.

    The first centroid is a uniform draw. Each later centroid is drawn from
    a random subsample of the not-yet-chosen points with probability
    proportional to the squared cosine distance to the nearest chosen
    centroid; a subsample with zero total weight falls back to a uniform
    draw.

    Args:
        points: (N, 3) unit directions, N >= k.
        k: Number of centroids.
        rng: Random generator.

    Returns:
        (k, 3) centroids drawn from ``points``.
    """
    n = points.shape[0]
    rate = sampling_rate(k)
    sample_size = min(MAX_SAMPLE_SIZE, max(k, int(n * rate)))

    available = np.ones(n, dtype=bool)
    first = int(rng.integers(n))
    chosen = [first]
    available[first] = False
    nearest = cosine_distance(points, points[first])

    while len(chosen) < k:
        pool = np.flatnonzero(available)
        if pool.size > sample_size:
            sample = rng.choice(pool, size=sample_size, replace=False)
        else:
            sample = pool
        weights = np.maximum(nearest[sample], 0.0) ** 2
        total = weights.sum()
        if total > 0:
            pick = int(sample[rng.choice(sample.size, p=weights / total)])
        else:
            pick = int(sample[rng.integers(sample.size)])
        chosen.append(pick)
        available[pick] = False
        nearest = np.minimum(nearest, cosine_distance(points, points[pick]))
    return points[chosen].copy()


class SphericalKMeans(ClusteringStrategy):
    """Cosine-similarity k-means; converged after two consecutive small shifts.

    Clusters that lose all members keep their previous centroid.
    """

    algorithm_name = "Spherical K-Means"

    def _cluster(self) -> None:
        k = self.cluster_count
        with self.context.timer("initialization"):
            self.centroids = kmeans_plus_plus(self.points, k, self.context.rng)
            self.context.log(
                f"Initialized {k} centroids with k-means++ "
                f"(sampling rate {sampling_rate(k):.2%}).")

        stable = 0
        self.iteration = 0
        with self.context.timer("clustering"):
            while self.iteration < self.max_iterations:
                self.iteration += 1
                self.labels = assign_to_nearest(self.points, self.centroids, self.context.num_workers)
                new_centroids, counts = update_centroids(
                    self.points, self.labels, k, self.context.num_workers)
                empty = counts == 0
                new_centroids[empty] = self.centroids[empty]

                shift = centroid_shift(self.centroids, new_centroids)
                self.centroids = new_centroids
                stable = stable + 1 if shift < self.convergence_threshold else 0
                if stable >= STABLE_ITERATIONS_THRESHOLD:
                    break
        if stable < STABLE_ITERATIONS_THRESHOLD:
            self.context.warn(
                f"{self.algorithm_name} reached the iteration limit "
                f"({self.max_iterations}) before converging.")
