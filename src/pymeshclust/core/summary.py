"""Per-cluster statistics and parameter variability across clusters."""

from typing import Callable

import numpy as np

from pymeshclust.math.directional import (
    coefficient_of_variation,
    cosine_similarity,
    directional_mean,
    median,
)
from pymeshclust.math.parallel import parallel_map
from pymeshclust.types import ClusterSummary

COSINE_SIMILARITY = "cosine_similarity"
MIN_CLUSTERS_PER_CHUNK = 8


def summarize_clusters(
    directions: np.ndarray,
    assignments: np.ndarray,
    cluster_count: int,
    parameter_fn: Callable[[np.ndarray], dict[str, float]] | None = None,
    num_workers: int | None = 1,
) -> list[ClusterSummary]:
    """Mean direction, homogeneity and model parameters of each cluster.

    Homogeneity is the average cosine similarity of the members to their
    directional mean. Empty clusters get a zero mean and no parameters.

    Args:
        directions: (N, 3) unit directions.
        assignments: (N,) cluster ids, negative = unassigned.
        cluster_count: Number of cluster ids.
        parameter_fn: Maps a cluster's (M, 3) members to named parameters.
        num_workers: Worker threads for the per-cluster parameter fits.

    Returns:
        One summary per cluster id, in id order.
    """
    directions = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    assignments = np.asarray(assignments, dtype=np.int64)
    order = np.argsort(assignments, kind="stable")
    sorted_labels = assignments[order]
    starts = np.searchsorted(sorted_labels, np.arange(cluster_count), side="left")
    stops = np.searchsorted(sorted_labels, np.arange(cluster_count), side="right")

    groups = [directions[order[a:b]] for a, b in zip(starts, stops)]

    def fit_parameters(members: np.ndarray) -> dict[str, float]:
        if members.shape[0] == 0 or parameter_fn is None:
            return {}
        return parameter_fn(members)

    fitted = parallel_map(fit_parameters, groups, num_workers=num_workers,
                          min_chunk=MIN_CLUSTERS_PER_CHUNK)

    summaries = []
    for cluster_id, (members, parameters) in enumerate(zip(groups, fitted)):
        if members.shape[0] == 0:
            summaries.append(ClusterSummary(cluster_id, 0, np.zeros(3), 0.0))
            continue
        mu = directional_mean(members)
        similarity = float(np.mean(cosine_similarity(members, mu)))
        summaries.append(ClusterSummary(
            cluster_id=cluster_id,
            size=int(members.shape[0]),
            mean_direction=mu,
            cosine_similarity=similarity,
            parameters=parameters,
        ))
    return summaries


def parameter_values(summaries: list[ClusterSummary], key: str) -> list[float]:
    """Values of one parameter over the non-empty clusters."""
    if key == COSINE_SIMILARITY:
        return [s.cosine_similarity for s in summaries if s.size > 0]
    return [s.parameters[key] for s in summaries if key in s.parameters]


def parameter_statistics_lines(values: list[float], label: str) -> list[str]:
    """Average, median, range and spread of one parameter."""
    if not values:
        return [f"No values available for {label}."]
    values = np.asarray(values, dtype=np.float64)
    return [
        f"{label} statistics:",
        f"- Average {label}: {values.mean():.6f}",
        f"- Median {label}: {median(values):.6f}",
        f"- Min {label}: {values.min():.6f}",
        f"- Max {label}: {values.max():.6f}",
        f"- Standard deviation: {values.std():.6f}",
    ]


def parameter_variability(summaries: list[ClusterSummary], keys: list[str]) -> dict[str, float]:
    """Coefficient of variation (percent) of each parameter across clusters.

    Only strictly positive values take part, so empty clusters and
    degenerate fits do not dominate the spread.
    """
    variability = {}
    for key in keys:
        values = [v for v in parameter_values(summaries, key) if v > 0]
        variability[key] = coefficient_of_variation(values)
    return variability


def parameter_report_lines(
    summaries: list[ClusterSummary],
    labels: dict[str, str],
    algorithm_name: str,
) -> tuple[list[str], dict[str, float]]:
    """Statistics and variability lines for the given parameters.

    Args:
        summaries: Per-cluster summaries.
        labels: Parameter key -> display name, in report order.
        algorithm_name: Name used in the variability header.

    Returns:
        (lines, variability by key).
    """
    lines: list[str] = []
    for key, label in labels.items():
        lines += parameter_statistics_lines(parameter_values(summaries, key), label)
    variability = parameter_variability(summaries, list(labels))
    lines.append(f"Parameter Variability for {algorithm_name}:")
    lines += [f"{labels[key]} CV: {cv:.2f}%" for key, cv in variability.items()]
    return lines, variability


def cluster_distribution_lines(assignments: np.ndarray) -> list[str]:
    """Member count and share of every cluster id present."""
    assignments = np.asarray(assignments, dtype=np.int64)
    total = assignments.shape[0]
    lines = ["Cluster distribution:"]
    if total == 0:
        return lines + ["- no triangles"]
    ids, counts = np.unique(assignments, return_counts=True)
    for cluster_id, count in zip(ids, counts):
        name = "Unassigned" if cluster_id < 0 else f"Cluster {cluster_id}"
        lines.append(f"- {name}: {count} triangles ({count / total:.2%})")
    return lines
