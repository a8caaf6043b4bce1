"""Coherence repair: make every cluster a connected patch of the mesh.

Two passes over the triangle adjacency graph:

1. Split. Each cluster is grown by breadth-first search from its member
   closest to the cluster prototype, restricted to members of the same
   cluster. Members the search cannot reach become unassigned. A cluster
   whose members lie on several disconnected mesh pieces is grown once per
   piece; the piece holding the closest member keeps the id and the others
   get new ids.
2. Reassign. Unassigned triangles that touch an assigned one form a
   frontier ordered by angular distance to the nearest adjacent cluster's
   running mean. The closest frontier triangle joins that cluster, and its
   unassigned neighbours are re-scored.

Finally, ids left empty are compacted so cluster ids stay contiguous.
"""

import logging
from collections import deque
from dataclasses import dataclass, field

import numpy as np
import scipy.sparse as sp
from scipy.sparse.csgraph import connected_components

from pymeshclust.core.context import RunContext
from pymeshclust.math.adjacency import is_symmetric, neighbor_lists
from pymeshclust.math.directional import EPSILON, angular_distance, directional_mean
from pymeshclust.math.priority_queue import PriorityQueue
from pymeshclust.types import UNASSIGNED

logger = logging.getLogger(__name__)

MAX_REASSIGNMENT_ITERATIONS = 1_000_000
PROGRESS_INTERVAL = 10_000


@dataclass
class CoherenceResult:
    """Outcome of a coherence repair.

    Attributes:
        assignments: (N,) compacted cluster ids, -1 = unassigned.
        unassigned: Triangles no cluster could reach.
        cluster_count: Number of ids after splitting and compaction.
        reassigned: Triangles placed by the frontier pass.
    """

    assignments: np.ndarray
    unassigned: set[int]
    cluster_count: int
    reassigned: int = 0


@dataclass
class FrontierEntry:
    """Bookkeeping for one unassigned triangle on the frontier."""

    triangle: int
    closest_cluster: int = UNASSIGNED
    closest_distance: float = np.inf
    assigned_neighbors: set[int] = field(default_factory=set)
    cluster_distances: dict[int, float] = field(default_factory=dict)

    def update(self, cluster: int, distance: float) -> None:
        self.cluster_distances[cluster] = distance
        best = min(self.cluster_distances, key=lambda c: (self.cluster_distances[c], c))
        self.closest_cluster = best
        self.closest_distance = self.cluster_distances[best]


def _group_members(labels: np.ndarray, num_clusters: int) -> list[np.ndarray]:
    order = np.argsort(labels, kind="stable")
    sorted_labels = labels[order]
    ids = np.arange(num_clusters)
    starts = np.searchsorted(sorted_labels, ids, side="left")
    stops = np.searchsorted(sorted_labels, ids, side="right")
    return [order[a:b] for a, b in zip(starts, stops)]


def _grow(seed: int, labels: np.ndarray, cluster: int, neighbors: list[np.ndarray],
          visited: np.ndarray) -> list[int]:
    """Breadth-first search over same-cluster neighbours of ``seed``."""
    reached = [seed]
    visited[seed] = True
    queue = deque([seed])
    while queue:
        current = queue.popleft()
        for nb in neighbors[current]:
            if not visited[nb] and labels[nb] == cluster:
                visited[nb] = True
                reached.append(int(nb))
                queue.append(nb)
    return reached


def split_incoherent_clusters(
    directions: np.ndarray,
    adjacency: sp.spmatrix,
    assignments: np.ndarray,
    neighbors: list[np.ndarray] | None = None,
) -> tuple[np.ndarray, int]:
    """Keep only the connected core of each cluster, one core per mesh piece.

    Args:
        directions: (N, 3) unit directions.
        adjacency: (N, N) symmetric triangle adjacency.
        assignments: (N,) cluster ids, negative = unassigned.
        neighbors: Precomputed neighbour lists of ``adjacency``.

    Returns:
        (labels, next_id): labels with unreachable members set to -1, and
        one past the largest id in use (new ids start at the old count).
    """
    labels = np.asarray(assignments, dtype=np.int64)
    if neighbors is None:
        neighbors = neighbor_lists(adjacency)
    num_clusters = int(labels.max()) + 1 if labels.size and labels.max() >= 0 else 0
    _, piece = connected_components(adjacency, directed=False)

    coherent = np.full(labels.shape[0], UNASSIGNED, dtype=np.int64)
    visited = np.zeros(labels.shape[0], dtype=bool)
    next_id = num_clusters
    for cluster, members in enumerate(_group_members(labels, num_clusters)):
        if members.size == 0:
            continue
        prototype = directional_mean(directions[members])
        distance = np.linalg.norm(directions[members] - prototype, axis=1)
        ranked = members[np.argsort(distance, kind="stable")]
        # First member of each mesh piece, in order of closeness to the prototype.
        _, first = np.unique(piece[ranked], return_index=True)
        seeds = ranked[np.sort(first)]
        for i, seed in enumerate(seeds):
            new_id = cluster if i == 0 else next_id
            if i > 0:
                next_id += 1
            reached = _grow(int(seed), labels, cluster, neighbors, visited)
            coherent[reached] = new_id
    return coherent, next_id


def _cluster_centroid(sums: np.ndarray, cluster: int) -> np.ndarray:
    norm = np.linalg.norm(sums[cluster])
    if norm <= EPSILON:
        return np.zeros(3)
    return sums[cluster] / norm


def reassign_unassigned(
    directions: np.ndarray,
    labels: np.ndarray,
    num_clusters: int,
    neighbors: list[np.ndarray],
    max_iterations: int = MAX_REASSIGNMENT_ITERATIONS,
    context: RunContext | None = None,
) -> tuple[np.ndarray, int]:
    """Grow clusters into unassigned triangles, closest direction first.

    Cluster means are kept as running vector sums and updated after every
    assignment, so later frontier scores see the grown clusters.

    Returns:
        (labels, reassigned): updated labels and the number of triangles placed.
    """
    labels = labels.copy()
    sums = np.zeros((max(num_clusters, 0), 3))
    assigned = labels >= 0
    np.add.at(sums, labels[assigned], directions[assigned])

    frontier: dict[int, FrontierEntry] = {}
    queue = PriorityQueue()
    for t in np.flatnonzero(~assigned):
        t = int(t)
        entry = FrontierEntry(t)
        for nb in neighbors[t]:
            cluster = labels[nb]
            if cluster >= 0:
                entry.assigned_neighbors.add(int(nb))
                if cluster not in entry.cluster_distances:
                    entry.update(int(cluster), angular_distance(
                        directions[t], _cluster_centroid(sums, cluster)))
        frontier[t] = entry
        if entry.closest_cluster >= 0:
            queue.push(t, entry.closest_distance)

    reassigned = 0
    iterations = 0
    while queue and iterations < max_iterations:
        t, _ = queue.pop()
        entry = frontier.pop(t)
        cluster = entry.closest_cluster
        labels[t] = cluster
        sums[cluster] += directions[t]
        reassigned += 1
        centroid = _cluster_centroid(sums, cluster)

        for nb in neighbors[t]:
            nb = int(nb)
            neighbor_entry = frontier.get(nb)
            if neighbor_entry is None:
                continue
            previous = neighbor_entry.closest_distance
            newly_bordering = nb not in queue
            neighbor_entry.assigned_neighbors.add(t)
            neighbor_entry.update(cluster, angular_distance(directions[nb], centroid))
            if newly_bordering or neighbor_entry.closest_distance != previous:
                queue.push(nb, neighbor_entry.closest_distance)

        iterations += 1
        if context is not None and iterations % PROGRESS_INTERVAL == 0:
            context.log(f"Reassignment progress: {iterations} triangles, "
                        f"{len(queue)} on the frontier.", level=logging.DEBUG)

    if iterations >= max_iterations and queue:
        logger.warning("Reassignment stopped after %d iterations", max_iterations)
    return labels, reassigned


def compact_labels(labels: np.ndarray) -> tuple[np.ndarray, int]:
    """Renumber the ids in use to 0..m-1, preserving their order."""
    labels = np.asarray(labels, dtype=np.int64)
    used = np.unique(labels[labels >= 0])
    remap = np.full(int(used.max()) + 1 if used.size else 0, UNASSIGNED, dtype=np.int64)
    remap[used] = np.arange(used.size)
    compacted = labels.copy()
    keep = labels >= 0
    compacted[keep] = remap[labels[keep]]
    return compacted, int(used.size)


def _size_statistics_lines(labels: np.ndarray, num_clusters: int, header: str) -> list[str]:
    counts = np.bincount(labels[labels >= 0], minlength=num_clusters) if num_clusters else np.zeros(0)
    non_empty = counts[counts > 0]
    lines = [header, f"- Clusters: {non_empty.size}"]
    if non_empty.size:
        lines += [
            f"- Average cluster size: {non_empty.mean():.2f}",
            f"- Smallest cluster: {non_empty.min()}",
            f"- Largest cluster: {non_empty.max()}",
        ]
    lines.append(f"- Unassigned triangles: {int(np.sum(labels < 0))}")
    return lines


def create_coherent_clusters(
    directions: np.ndarray,
    adjacency: sp.spmatrix,
    assignments: np.ndarray,
    context: RunContext | None = None,
    max_iterations: int = MAX_REASSIGNMENT_ITERATIONS,
) -> CoherenceResult:
    """Split incoherent clusters, then reassign the leftovers along the mesh.

    Args:
        directions: (N, 3) unit directions, one per triangle.
        adjacency: (N, N) symmetric triangle adjacency.
        assignments: (N,) cluster ids from the statistical stage.
        context: Run context for diagnostics and stage timings.
        max_iterations: Safety cap on frontier assignments.

    Returns:
        CoherenceResult with connected, contiguously numbered clusters.
    """
    context = context if context is not None else RunContext.create(num_workers=1)
    directions = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    assignments = np.asarray(assignments, dtype=np.int64)
    n = assignments.shape[0]
    if directions.shape[0] != n or adjacency.shape != (n, n):
        raise ValueError(
            f"Shape mismatch: {directions.shape[0]} directions, {n} assignments, "
            f"adjacency {adjacency.shape}")
    if not is_symmetric(adjacency):
        raise ValueError("Triangle adjacency must be symmetric")
    if n == 0:
        return CoherenceResult(assignments.copy(), set(), 0)

    neighbors = neighbor_lists(adjacency)
    with context.timer("coherence"):
        labels, next_id = split_incoherent_clusters(
            directions, adjacency, assignments, neighbors=neighbors)
    context.log_lines(_size_statistics_lines(labels, next_id, "Coherent cluster statistics:"))

    with context.timer("reassignment"):
        labels, reassigned = reassign_unassigned(
            directions, labels, next_id, neighbors,
            max_iterations=max_iterations, context=context)
        labels, cluster_count = compact_labels(labels)

    unassigned = set(int(i) for i in np.flatnonzero(labels < 0))
    lines = _size_statistics_lines(labels, cluster_count, "Final cluster statistics:")
    lines.append(f"- Reassigned triangles: {reassigned}")
    context.log_lines(lines)
    if unassigned:
        context.warn(f"{len(unassigned)} triangles could not be reached by any cluster.")
    return CoherenceResult(labels, unassigned, cluster_count, reassigned)
