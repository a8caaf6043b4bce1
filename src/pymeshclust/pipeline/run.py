"""End-to-end clustering of a triangle mesh's face normals."""

import logging
from pathlib import Path

import numpy as np

from pymeshclust.core.context import RunContext
from pymeshclust.core.kmeans import SphericalKMeans
from pymeshclust.core.normals import face_normals
from pymeshclust.core.refinement import DistributionClustering
from pymeshclust.core.strategy import ClusteringStrategy
from pymeshclust.io.mesh_arrays import read_mesh, write_result
from pymeshclust.math.adjacency import build_triangle_adjacency, validate_faces
from pymeshclust.math.bingham import BinghamModel
from pymeshclust.math.kent import KentModel
from pymeshclust.math.vmf import VonMisesFisherModel
from pymeshclust.types import (
    ClusteringConfig,
    ClusteringResult,
    DistributionModel,
    MeshGeometryError,
)

logger = logging.getLogger(__name__)

_DENSITY_MODELS = {
    DistributionModel.VON_MISES_FISHER: VonMisesFisherModel,
    DistributionModel.BINGHAM: BinghamModel,
    DistributionModel.KENT: KentModel,
}


def create_strategy(
    model: DistributionModel | str,
    context: RunContext | None = None,
) -> ClusteringStrategy:
    """Instantiate the clustering strategy for ``model``."""
    model = DistributionModel.parse(model)
    if model is DistributionModel.SPHERICAL_KMEANS:
        return SphericalKMeans(context)
    return DistributionClustering(_DENSITY_MODELS[model](), context)


def run_clustering(
    normals: np.ndarray | None = None,
    faces: np.ndarray | None = None,
    config: ClusteringConfig | None = None,
    vertices: np.ndarray | None = None,
    context: RunContext | None = None,
) -> ClusteringResult:
    """Cluster per-triangle normals, optionally repairing mesh coherence.

    Args:
        normals: (F, 3) per-triangle directions. Derived from ``vertices``
            and ``faces`` when omitted.
        faces: (F, 3) vertex indices (or a flat list of length 3F). Required
            when ``config.coherent`` is set.
        config: Clustering options (defaults if omitted).
        vertices: (V, 3) vertex coordinates, used only to derive normals.
        context: Run context; one is created from ``config`` if omitted.

    Returns:
        ClusteringResult with one entry per triangle.

    Raises:
        MeshGeometryError: On missing or inconsistent geometry.
    """
    config = config if config is not None else ClusteringConfig()
    if context is None:
        context = RunContext.create(seed=config.seed, num_workers=config.num_workers)

    if normals is None:
        if vertices is None or faces is None:
            raise MeshGeometryError("Provide normals, or vertices and faces")
        normals = face_normals(vertices, faces)
    normals = np.asarray(normals, dtype=np.float64)
    if normals.size and (normals.ndim != 2 or normals.shape[1] != 3):
        raise MeshGeometryError(f"Normals must have shape (F, 3), got {normals.shape}")
    normals = normals.reshape(-1, 3)

    adjacency = None
    if config.coherent:
        if faces is None:
            raise MeshGeometryError("Coherent clustering requires the triangle list")
        faces = validate_faces(faces, vertices.shape[0] if vertices is not None else None)
        if faces.shape[0] != normals.shape[0]:
            raise MeshGeometryError(
                f"Triangle count {faces.shape[0]} does not match normal count {normals.shape[0]}")
        adjacency = build_triangle_adjacency(faces, num_triangles=normals.shape[0])

    strategy = create_strategy(config.distribution_model, context)
    strategy.configure(config.cluster_count, config.normalize_input_vectors)
    strategy.initialize(normals)
    strategy.execute(adjacency)
    result = strategy.result()
    logger.info("Clustered %d triangles into %d clusters (%d unassigned)",
                result.num_triangles, result.cluster_count, result.num_unassigned)
    return result


def cluster_mesh_file(
    mesh_path: str | Path,
    output_path: str | Path | None = None,
    config: ClusteringConfig | None = None,
) -> ClusteringResult:
    """Read a mesh from disk, cluster it and optionally save the result."""
    mesh = read_mesh(mesh_path)
    result = run_clustering(
        normals=mesh.normals, faces=mesh.faces, config=config, vertices=mesh.vertices)
    if output_path is not None:
        write_result(output_path, result)
        logger.info("Wrote clustering result to %s", output_path)
    return result
