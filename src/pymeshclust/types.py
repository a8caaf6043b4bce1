"""Data types for the mesh normal clustering pipeline."""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from numpy.typing import NDArray

UNASSIGNED = -1


class InvalidConfigurationError(ValueError):
    """Raised when a clustering option cannot be interpreted."""


class MeshGeometryError(ValueError):
    """Raised when triangle geometry is missing or inconsistent with the normals."""


class DistributionModel(Enum):
    """Supported clustering strategies."""

    SPHERICAL_KMEANS = "spherical_kmeans"
    VON_MISES_FISHER = "vmf"
    BINGHAM = "bingham"
    KENT = "kent"

    @classmethod
    def parse(cls, value: "DistributionModel | str") -> "DistributionModel":
        """Resolve an enum member from a member, its value or a loose name.

        Accepts e.g. ``"vmf"``, ``"VonMisesFisher"``, ``"von-mises-fisher"``,
        ``"SphericalKMeans"`` or ``"kmeans"``.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "").replace("_", "")
        aliases = {
            "sphericalkmeans": cls.SPHERICAL_KMEANS,
            "kmeans": cls.SPHERICAL_KMEANS,
            "vmf": cls.VON_MISES_FISHER,
            "vonmisesfisher": cls.VON_MISES_FISHER,
            "bingham": cls.BINGHAM,
            "kent": cls.KENT,
        }
        if key not in aliases:
            choices = ", ".join(m.value for m in cls)
            raise InvalidConfigurationError(
                f"Unknown distribution model {value!r}. Choose one of: {choices}")
        return aliases[key]


@dataclass
class ClusteringConfig:
    """Options recognised by a clustering run.

    Attributes:
        cluster_count: Requested number of clusters (clamped to >= 1).
        normalize_input_vectors: Normalize directions before clustering.
        distribution_model: Strategy used for the statistical stage.
        coherent: Run the coherence repair stage on the mesh adjacency.
        seed: Seed for the run's random generator.
        num_workers: Worker threads for per-direction maps (None = all CPUs).
    """

    cluster_count: int = 8
    normalize_input_vectors: bool = True
    distribution_model: DistributionModel | str = DistributionModel.SPHERICAL_KMEANS
    coherent: bool = True
    seed: int | None = None
    num_workers: int | None = None

    def __post_init__(self) -> None:
        self.distribution_model = DistributionModel.parse(self.distribution_model)
        try:
            self.cluster_count = int(self.cluster_count)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(
                f"cluster_count must be an integer, got {self.cluster_count!r}") from exc
        if self.num_workers is not None and int(self.num_workers) < 1:
            raise InvalidConfigurationError(
                f"num_workers must be >= 1, got {self.num_workers}")


@dataclass
class ClusterSummary:
    """Per-cluster statistics reported after clustering.

    Attributes:
        cluster_id: Cluster index in the final assignment.
        size: Number of member triangles.
        mean_direction: Directional mean of the members (3,).
        cosine_similarity: Mean cosine similarity of members to the mean.
        parameters: Model-specific parameters (e.g. ``kappa``, ``beta``).
    """

    cluster_id: int
    size: int
    mean_direction: NDArray[np.floating]
    cosine_similarity: float
    parameters: dict[str, float] = field(default_factory=dict)


@dataclass
class ClusteringResult:
    """Output of a clustering run.

    Attributes:
        assignments: (N,) cluster id per triangle, -1 = unassigned.
        unassigned: Triangle ids left without a cluster.
        cluster_count: Final number of clusters.
        centroids: (cluster_count, 3) directional means of the final clusters.
        summaries: Per-cluster statistics.
        parameter_cv: Coefficient of variation (%) of each parameter across clusters.
        iterations: Refinement iterations performed by the statistical stage.
        messages: Diagnostic lines emitted during the run.
        timings: Wall time in milliseconds per stage.
    """

    assignments: NDArray[np.integer]
    unassigned: set[int]
    cluster_count: int
    centroids: NDArray[np.floating]
    summaries: list[ClusterSummary] = field(default_factory=list)
    parameter_cv: dict[str, float] = field(default_factory=dict)
    iterations: int = 0
    messages: list[str] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def num_triangles(self) -> int:
        return int(self.assignments.shape[0])

    @property
    def num_unassigned(self) -> int:
        return len(self.unassigned)


@dataclass
class MeshArrays:
    """Triangle mesh geometry read from disk.

    Attributes:
        faces: (F, 3) zero-based vertex indices.
        vertices: (V, 3) vertex coordinates, if stored.
        normals: (F, 3) per-triangle normals, if stored.
    """

    faces: NDArray[np.integer]
    vertices: NDArray[np.floating] | None = None
    normals: NDArray[np.floating] | None = None

    @property
    def num_triangles(self) -> int:
        if self.normals is not None:
            return int(self.normals.shape[0])
        return int(self.faces.shape[0])
