"""Triangle face normals from mesh geometry."""

import numpy as np

from pymeshclust.math.adjacency import validate_faces
from pymeshclust.math.directional import normalize_rows
from pymeshclust.types import MeshGeometryError


def face_normals(vertices: np.ndarray, faces: np.ndarray, normalize: bool = True) -> np.ndarray:
    """Per-triangle normals (v1 - v0) x (v2 - v0).

    Degenerate triangles produce zero normals, which the clustering stage
    reports as unassigned.

    Args:
        vertices: (V, 3) vertex coordinates.
        faces: (F, 3) vertex indices, or a flat list of length 3F.
        normalize: Scale each normal to unit length.

    Returns:
        (F, 3) normals.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    if vertices.ndim != 2 or vertices.shape[1] != 3:
        raise MeshGeometryError(f"Vertices must have shape (V, 3), got {vertices.shape}")
    faces = validate_faces(faces, num_vertices=vertices.shape[0])
    v0 = vertices[faces[:, 0]]
    v1 = vertices[faces[:, 1]]
    v2 = vertices[faces[:, 2]]
    normals = np.cross(v1 - v0, v2 - v0)
    if normalize:
        normals = normalize_rows(normals)
    return normals
