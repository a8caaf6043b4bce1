"""Density-guided seeding and iterative refinement on the unit sphere.

The vMF, Bingham and Kent strategies share one algorithm and differ only in
the density model they are given: the model is fitted to the whole direction
set, every direction's density is precomputed, clusters are seeded around
density maxima, and the seeds are refined by nearest-centroid reassignment.
"""

import logging

import numpy as np
from scipy.spatial import cKDTree

from pymeshclust.core.context import RunContext
from pymeshclust.core.strategy import ClusteringStrategy
from pymeshclust.math.directional import EPSILON, centroid_shift, directional_mean
from pymeshclust.math.parallel import accumulate_by_label, parallel_map_chunks

MIN_POINTS_PER_CLUSTER = 10
NEIGHBORHOOD_FRACTION = 0.1
INITIAL_DENSITY_THRESHOLD = 0.8
DENSITY_THRESHOLD_DECAY = 0.9
MIN_DENSITY_THRESHOLD = 0.1
LOCAL_MAXIMUM_RADIUS = 0.1
DENSITY_TOLERANCE = 1e-6


def assign_to_nearest(points: np.ndarray, centroids: np.ndarray,
                      num_workers: int | None = None) -> np.ndarray:
    """Index of the centroid with the highest cosine similarity per point.

    Ties go to the lowest centroid index.
    """
    def chunk(start: int, stop: int) -> np.ndarray:
        return np.argmax(points[start:stop] @ centroids.T, axis=1)

    return parallel_map_chunks(chunk, points.shape[0], num_workers=num_workers).astype(np.int64)


def update_centroids(points: np.ndarray, labels: np.ndarray, k: int,
                     num_workers: int | None = None) -> tuple[np.ndarray, np.ndarray]:
    """Normalized member sums per cluster.

    Returns:
        centroids: (k, 3) unit vectors; zero rows for empty or cancelling clusters.
        counts: (k,) member counts.
    """
    sums, counts = accumulate_by_label(points, labels, k, num_workers=num_workers)
    norms = np.linalg.norm(sums, axis=1)
    centroids = np.zeros((k, 3))
    nonzero = norms > EPSILON * np.maximum(counts, 1)
    centroids[nonzero] = sums[nonzero] / norms[nonzero, np.newaxis]
    return centroids, counts


def neighborhood_size(n: int, k: int) -> int:
    """Points claimed around each seed: max(10, floor(0.1 n / k))."""
    return max(MIN_POINTS_PER_CLUSTER, int(NEIGHBORHOOD_FRACTION * n / max(k, 1)))


def claim_neighborhood(points: np.ndarray, remaining: np.ndarray, labels: np.ndarray,
                       center: np.ndarray, cluster: int, size: int) -> np.ndarray:
    """Give the ``size`` unclaimed points closest to ``center`` to ``cluster``.

    Mutates ``remaining`` and ``labels`` in place.
    """
    candidates = np.flatnonzero(remaining)
    if candidates.size == 0:
        return candidates
    distance = 1.0 - points[candidates] @ center
    if candidates.size > size:
        nearest = np.argpartition(distance, size - 1)[:size]
        claimed = candidates[nearest]
    else:
        claimed = candidates
    labels[claimed] = cluster
    remaining[claimed] = False
    return claimed


def global_density_maximum(points: np.ndarray, densities: np.ndarray,
                           remaining: np.ndarray) -> int:
    """Highest-density unclaimed point; ties broken by (x, y, z)."""
    candidates = np.flatnonzero(remaining)
    best = densities[candidates].max()
    tied = candidates[densities[candidates] == best]
    if tied.size > 1:
        p = points[tied]
        tied = tied[np.lexsort((p[:, 2], p[:, 1], p[:, 0]))]
    return int(tied[0])


def local_density_maxima(points: np.ndarray, densities: np.ndarray,
                         remaining: np.ndarray, threshold: float) -> np.ndarray:
    """Unclaimed points that dominate their spatial neighbourhood.

    A candidate must reach ``threshold`` times the highest unclaimed density,
    and no unclaimed point within LOCAL_MAXIMUM_RADIUS may exceed its density
    by more than DENSITY_TOLERANCE.

    Returns:
        Point indices, densest first.
    """
    candidates = np.flatnonzero(remaining)
    if candidates.size == 0:
        return candidates
    dens = densities[candidates]
    strong = np.flatnonzero(dens >= threshold * dens.max())
    tree = cKDTree(points[candidates])
    neighborhoods = tree.query_ball_point(points[candidates[strong]], r=LOCAL_MAXIMUM_RADIUS)
    maxima = [
        i for i, nbs in zip(strong, neighborhoods)
        if not np.any(dens[nbs] > dens[i] + DENSITY_TOLERANCE)
    ]
    maxima = np.asarray(maxima, dtype=np.int64)
    if maxima.size == 0:
        return maxima
    order = np.lexsort((points[candidates[maxima], 2], points[candidates[maxima], 1],
                        points[candidates[maxima], 0], -dens[maxima]))
    return candidates[maxima[order]]


def seed_by_density(
    points: np.ndarray,
    densities: np.ndarray,
    k: int,
    seeding: str,
    context: RunContext,
) -> tuple[np.ndarray, np.ndarray]:
    """Initial centroids and labels from density maxima.

    Each promoted maximum becomes a centroid and claims its nearest unclaimed
    neighbourhood. After k - 1 seeds, every still unclaimed point goes to
    the last cluster, whose centroid is their directional mean.

    Args:
        points: (N, 3) unit directions.
        densities: (N,) model density per direction.
        k: Number of clusters.
        seeding: ``"global_maximum"`` (one seed per round) or
            ``"local_maxima"`` (all local maxima above a decaying threshold).
        context: Run context for randomness, logging and timings.

    Returns:
        centroids: (k, 3).
        labels: (N,) initial cluster ids.
    """
    n = points.shape[0]
    labels = np.full(n, k - 1, dtype=np.int64)
    remaining = np.ones(n, dtype=bool)
    size = neighborhood_size(n, k)
    centroids: list[np.ndarray] = []

    def promote(index: int) -> None:
        centroids.append(points[index].copy())
        claim_neighborhood(points, remaining, labels, points[index], len(centroids) - 1, size)

    if seeding == "local_maxima":
        threshold = INITIAL_DENSITY_THRESHOLD
        while len(centroids) < k - 1 and remaining.any() and threshold >= MIN_DENSITY_THRESHOLD:
            with context.timer("maxima"):
                maxima = local_density_maxima(points, densities, remaining, threshold)
            context.log(f"Found {maxima.size} local maxima at density threshold {threshold:.4f}.",
                        level=logging.DEBUG)
            for index in maxima:
                if len(centroids) >= k - 1:
                    break
                if remaining[index]:
                    promote(int(index))
            threshold *= DENSITY_THRESHOLD_DECAY
        if len(centroids) < k - 1 and remaining.any():
            context.log("Density threshold exhausted; promoting random points as seeds.")
        while len(centroids) < k - 1 and remaining.any():
            promote(int(context.rng.choice(np.flatnonzero(remaining))))
    else:
        while len(centroids) < k - 1 and remaining.any():
            with context.timer("maxima"):
                index = global_density_maximum(points, densities, remaining)
            promote(index)

    if len(centroids) < k - 1:
        context.log(f"No maxima found after {len(centroids)} clusters; "
                    "filling the remaining centroids with random points.")
        while len(centroids) < k - 1:
            centroids.append(points[int(context.rng.integers(n))].copy())

    if remaining.any():
        centroids.append(directional_mean(points[remaining]))
    else:
        centroids.append(points[int(context.rng.integers(n))].copy())
    return np.vstack(centroids), labels


def split_largest_cluster(points: np.ndarray, labels: np.ndarray, centroids: np.ndarray,
                          counts: np.ndarray, empty: int) -> bool:
    """Move half of the largest cluster's members into the empty cluster ``empty``.

    The first half of the members in index order moves; both centroids are
    recomputed. Mutates ``labels``, ``centroids`` and ``counts``.

    Returns:
        False if no cluster has enough members to split.
    """
    source = int(np.argmax(counts))
    if counts[source] < 2:
        return False
    members = np.flatnonzero(labels == source)
    moved = members[: members.size // 2]
    labels[moved] = empty
    counts[empty] = moved.size
    counts[source] -= moved.size
    centroids[empty] = directional_mean(points[moved])
    centroids[source] = directional_mean(points[labels == source])
    return True


def refine(
    points: np.ndarray,
    centroids: np.ndarray,
    labels: np.ndarray,
    max_iterations: int,
    threshold: float,
    context: RunContext,
) -> tuple[np.ndarray, np.ndarray, int]:
    """Alternate nearest-centroid assignment and centroid updates.

    Stops once the mean centroid shift falls below ``threshold`` or after
    ``max_iterations``. Clusters that empty out are refilled by splitting the
    largest cluster.

    Returns:
        (labels, centroids, iterations).
    """
    k = centroids.shape[0]
    iteration = 0
    while iteration < max_iterations:
        iteration += 1
        labels = assign_to_nearest(points, centroids, context.num_workers)
        new_centroids, counts = update_centroids(points, labels, k, context.num_workers)
        for empty in np.flatnonzero(counts == 0):
            if not split_largest_cluster(points, labels, new_centroids, counts, int(empty)):
                new_centroids[empty] = points[int(context.rng.integers(points.shape[0]))]
        shift = centroid_shift(centroids, new_centroids)
        centroids = new_centroids
        if iteration % 10 == 0:
            context.log(f"Iteration {iteration}: centroid shift {shift:.6g}", level=logging.DEBUG)
        if shift < threshold:
            break
    return labels, centroids, iteration


class DistributionClustering(ClusteringStrategy):
    """Density-seeded clustering driven by a fitted directional model.

    Args:
        model: A model exposing ``fit``, ``density``, ``cluster_parameters``
            and ``describe`` plus the ``name``, ``seeding`` and
            ``convergence_scale`` attributes.
        context: Run context (a fresh one if omitted).
    """

    def __init__(self, model, context: RunContext | None = None):
        super().__init__(context)
        self.model = model
        self.algorithm_name = model.name
        self.densities = np.empty(0)

    def _prepare(self) -> None:
        with self.context.timer("total"):
            with self.context.timer("initialization"):
                self.model.fit(self.points)
                self.context.log_lines(self.model.describe(self.points))
            with self.context.timer("density"):
                self.densities = parallel_map_chunks(
                    lambda start, stop: self.model.density(self.points[start:stop]),
                    self.points.shape[0], num_workers=self.context.num_workers,
                )
            self.context.log(
                f"Precomputed densities for {self.densities.shape[0]} directions "
                f"(min {self.densities.min():.6g}, max {self.densities.max():.6g}).")

    def _cluster(self) -> None:
        k = self.cluster_count
        maxima_before = self.context.elapsed("maxima")
        with self.context.timer("initialization"):
            self.centroids, self.labels = seed_by_density(
                self.points, self.densities, k, self.model.seeding, self.context)
        # Maxima search ran inside the seeding block; keep the stages disjoint.
        self.context.timings["initialization"] -= self.context.elapsed("maxima") - maxima_before

        threshold = self.convergence_threshold * self.model.convergence_scale
        with self.context.timer("clustering"):
            self.labels, self.centroids, self.iteration = refine(
                self.points, self.centroids, self.labels,
                self.max_iterations, threshold, self.context,
            )

    def _cluster_parameters(self, points: np.ndarray) -> dict[str, float]:
        return self.model.cluster_parameters(points)

    def _parameter_labels(self) -> dict[str, str]:
        return dict(self.model.parameter_labels)
