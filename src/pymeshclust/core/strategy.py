"""Clustering strategy contract: configure -> initialize -> execute."""

import math

import numpy as np
import scipy.sparse as sp

from pymeshclust.core.coherence import create_coherent_clusters
from pymeshclust.core.context import RunContext
from pymeshclust.core.summary import (
    COSINE_SIMILARITY,
    cluster_distribution_lines,
    parameter_report_lines,
    summarize_clusters,
)
from pymeshclust.math.directional import normalize_rows, valid_direction_mask
from pymeshclust.types import UNASSIGNED, ClusteringResult, ClusterSummary

MIN_MAX_ITERATIONS = 100
MAX_MAX_ITERATIONS = 10000


def dynamic_max_iterations(n: int, k: int) -> int:
    """Iteration bound: clamp(50 * ceil(log10(n) * k^0.4), 100, 10000)."""
    if n <= 1:
        return MIN_MAX_ITERATIONS
    bound = 50 * math.ceil(math.log10(n) * k**0.4)
    return int(min(MAX_MAX_ITERATIONS, max(MIN_MAX_ITERATIONS, bound)))


def dynamic_convergence_threshold(n: int, k: int) -> float:
    """Convergence threshold: 1e-4 * k^0.2 / n^0.4."""
    return 1e-4 * k**0.2 / max(n, 1) ** 0.4


class ClusteringStrategy:
    """Base lifecycle shared by every clustering strategy.

    Subclasses implement ``_cluster`` which, given ``self.points`` (the valid,
    optionally normalized directions), must set ``self.labels`` (one cluster id
    per point) and ``self.centroids``. Everything else (input validation,
    dynamic parameters, coherence repair, summaries and diagnostics) lives
    here.
    """

    algorithm_name = "Clustering"

    def __init__(self, context: RunContext | None = None):
        self.context = context if context is not None else RunContext.create()
        self.cluster_count = 1
        self.initial_cluster_count = 1
        self.normalize_vectors = True
        self.max_iterations = MIN_MAX_ITERATIONS
        self.convergence_threshold = dynamic_convergence_threshold(1, 1)
        self.iteration = 0

        self.directions = np.empty((0, 3))
        self.valid_indices = np.empty(0, dtype=np.int64)
        self.points = np.empty((0, 3))
        self.labels = np.empty(0, dtype=np.int64)
        self.centroids = np.empty((0, 3))

        self._assignments = np.empty(0, dtype=np.int64)
        self._unassigned: set[int] = set()
        self.summaries: list[ClusterSummary] = []
        self.parameter_cv: dict[str, float] = {}

    # -- lifecycle -----------------------------------------------------------

    def configure(self, cluster_count: int, normalize_input_vectors: bool | None = None) -> None:
        """Set the requested cluster count (clamped to >= 1)."""
        requested = int(cluster_count)
        if requested < 1:
            self.context.warn(
                f"Requested cluster count {requested} is below 1; using 1.")
        self.cluster_count = max(1, requested)
        self.initial_cluster_count = self.cluster_count
        if normalize_input_vectors is not None:
            self.normalize_vectors = bool(normalize_input_vectors)
        self.context.log(f"Number of clusters set to {self.cluster_count}.")
        if self.points.shape[0] > 0:
            self._calculate_dynamic_parameters()

    def initialize(self, directions: np.ndarray) -> None:
        """Load directions and derive the iteration bound and threshold.

        Non-finite and zero-length directions are excluded from clustering
        and reported as unassigned.
        """
        with self.context.timer("total"), self.context.timer("initialization"):
            directions = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
            valid = valid_direction_mask(directions)
            if self.normalize_vectors:
                directions = normalize_rows(directions)
            else:
                directions = np.where(valid[:, np.newaxis], directions, 0.0)
            self.directions = directions
            self.valid_indices = np.flatnonzero(valid)
            self.points = directions[self.valid_indices]
            self.labels = np.full(self.points.shape[0], UNASSIGNED, dtype=np.int64)
            self.centroids = np.empty((0, 3))
            self._assignments = np.full(directions.shape[0], UNASSIGNED, dtype=np.int64)
            self._unassigned = set()
            self.summaries = []
            self.parameter_cv = {}
            self.iteration = 0

            self.context.log(
                f"Starting {self.algorithm_name} clustering with "
                f"{directions.shape[0]} normal vectors.")
            invalid = directions.shape[0] - self.points.shape[0]
            if invalid:
                self.context.warn(
                    f"{invalid} degenerate normal vectors excluded from clustering.")

            n = self.points.shape[0]
            if n == 0:
                return
            if self.cluster_count > n:
                self.context.warn(
                    f"Cluster count {self.cluster_count} exceeds the number of "
                    f"valid normal vectors; using {n}.")
                self.cluster_count = n
            self._calculate_dynamic_parameters()
        self._prepare()

    def execute(self, adjacency: sp.spmatrix | None = None) -> None:
        """Run the clustering; with ``adjacency``, also the coherence repair.

        An empty input is a no-op that leaves the results empty.
        """
        if self.points.shape[0] == 0:
            self.context.log("No data points available for clustering.")
            self._unassigned = set(int(i) for i in np.flatnonzero(self._assignments < 0))
            return

        with self.context.timer("total"):
            self._cluster()

            self._assignments = np.full(self.directions.shape[0], UNASSIGNED, dtype=np.int64)
            self._assignments[self.valid_indices] = self.labels
            self._unassigned = set(int(i) for i in np.flatnonzero(self._assignments < 0))

            self.context.log_lines(cluster_distribution_lines(self._assignments))
            self.context.log(f"{self.algorithm_name} completed in {self.iteration} iterations.")

            if adjacency is not None:
                coherent = create_coherent_clusters(
                    self.directions, adjacency, self._assignments, context=self.context)
                self._assignments = coherent.assignments
                self._unassigned = coherent.unassigned
                self.cluster_count = coherent.cluster_count

            with self.context.timer("parameters"):
                self._calculate_cluster_parameters()

        self.context.log_execution_times(self.algorithm_name, self.context.elapsed("total"))

    # -- results -------------------------------------------------------------

    def get_assignments(self) -> np.ndarray:
        """Cluster id per input direction, -1 for unassigned."""
        return self._assignments.copy()

    def get_unassigned_set(self) -> set[int]:
        return set(self._unassigned)

    def get_cluster_count(self) -> int:
        return self.cluster_count

    def get_initial_cluster_count(self) -> int:
        return self.initial_cluster_count

    def result(self) -> ClusteringResult:
        if self.summaries:
            centroids = np.vstack([s.mean_direction for s in self.summaries])
        else:
            centroids = np.empty((0, 3))
        return ClusteringResult(
            assignments=self.get_assignments(),
            unassigned=self.get_unassigned_set(),
            cluster_count=self.cluster_count if self.points.shape[0] else 0,
            centroids=centroids,
            summaries=list(self.summaries),
            parameter_cv=dict(self.parameter_cv),
            iterations=self.iteration,
            messages=list(self.context.messages),
            timings=dict(self.context.timings),
        )

    # -- hooks ---------------------------------------------------------------

    def _prepare(self) -> None:
        """Extra per-run analysis after the directions are loaded."""

    def _cluster(self) -> None:
        raise NotImplementedError

    def _cluster_parameters(self, points: np.ndarray) -> dict[str, float]:
        """Model-specific parameters of one final cluster."""
        return {}

    def _parameter_labels(self) -> dict[str, str]:
        """Display names for the parameters returned by ``_cluster_parameters``."""
        return {}

    # -- internals -----------------------------------------------------------

    def _calculate_dynamic_parameters(self) -> None:
        n = self.points.shape[0]
        self.max_iterations = dynamic_max_iterations(n, self.cluster_count)
        self.convergence_threshold = dynamic_convergence_threshold(n, self.cluster_count)
        self.context.log(
            "Calculated dynamic parameters:\n"
            f"- Max iterations: {self.max_iterations}\n"
            f"- Convergence threshold: {self.convergence_threshold:.6g}")

    def _calculate_cluster_parameters(self) -> None:
        self.summaries = summarize_clusters(
            self.directions, self._assignments, self.cluster_count,
            parameter_fn=self._cluster_parameters,
            num_workers=self.context.num_workers,
        )
        labels = {**self._parameter_labels(), COSINE_SIMILARITY: "Cosine Similarity"}
        lines, self.parameter_cv = parameter_report_lines(
            self.summaries, labels, self.algorithm_name)
        self.context.log_lines(lines)
