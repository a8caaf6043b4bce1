"""Triangle adjacency graph built from a face index list."""

import numpy as np
import scipy.sparse as sp

from pymeshclust.types import MeshGeometryError


def validate_faces(faces: np.ndarray, num_vertices: int | None = None) -> np.ndarray:
    """Coerce a face list to an (F, 3) int64 array.

    Accepts either (F, 3) triples or a flat index list whose length is a
    multiple of three.

    Raises:
        MeshGeometryError: On a malformed shape or out-of-range indices.
    """
    faces = np.asarray(faces)
    if faces.size == 0:
        return np.empty((0, 3), dtype=np.int64)
    if faces.ndim == 1:
        if faces.shape[0] % 3 != 0:
            raise MeshGeometryError(
                f"Flat triangle list length {faces.shape[0]} is not a multiple of 3")
        faces = faces.reshape(-1, 3)
    if faces.ndim != 2 or faces.shape[1] != 3:
        raise MeshGeometryError(f"Faces must have shape (F, 3), got {faces.shape}")
    if not np.issubdtype(faces.dtype, np.integer):
        if not np.all(np.equal(np.mod(faces, 1), 0)):
            raise MeshGeometryError("Face indices must be integers")
    faces = faces.astype(np.int64)
    if faces.min() < 0:
        raise MeshGeometryError("Face indices must be non-negative")
    if num_vertices is not None and faces.max() >= num_vertices:
        raise MeshGeometryError(
            f"Face index {int(faces.max())} out of range for {num_vertices} vertices")
    return faces


def build_triangle_adjacency(
    faces: np.ndarray,
    num_triangles: int | None = None,
) -> sp.csr_matrix:
    """Build a symmetric triangle adjacency matrix.

    Two triangles are adjacent iff they share an edge that belongs to exactly
    two triangles; non-manifold edges (three or more triangles) and boundary
    edges contribute nothing.

    Args:
        faces: (F, 3) vertex indices.
        num_triangles: Matrix size; defaults to F.

    Returns:
        (T, T) CSR matrix with 1.0 for each adjacent pair, both directions.
    """
    faces = validate_faces(faces)
    n_faces = faces.shape[0]
    size = n_faces if num_triangles is None else int(num_triangles)
    if n_faces == 0:
        return sp.csr_matrix((size, size), dtype=np.float64)

    edges = np.concatenate([faces[:, [0, 1]], faces[:, [1, 2]], faces[:, [2, 0]]])
    edges.sort(axis=1)
    owners = np.tile(np.arange(n_faces, dtype=np.int64), 3)

    _, inverse, counts = np.unique(edges, axis=0, return_inverse=True,
                                   return_counts=True)
    inverse = inverse.ravel()
    order = np.argsort(inverse, kind="stable")
    sorted_edges = inverse[order]
    sorted_owners = owners[order]

    # Runs of equal edge ids; keep those of length exactly two.
    starts = np.flatnonzero(np.r_[True, sorted_edges[1:] != sorted_edges[:-1]])
    shared = counts[sorted_edges[starts]] == 2
    first = sorted_owners[starts[shared]]
    second = sorted_owners[starts[shared] + 1]
    distinct = first != second
    first, second = first[distinct], second[distinct]

    rows = np.concatenate([first, second])
    cols = np.concatenate([second, first])
    data = np.ones(rows.shape[0], dtype=np.float64)
    adj = sp.csr_matrix((data, (rows, cols)), shape=(size, size))
    # Duplicate pairs (two triangles sharing two edges) collapse to one edge.
    adj.data[:] = 1.0
    return adj


def neighbor_lists(adjacency: sp.spmatrix) -> list[np.ndarray]:
    """Per-row neighbor index arrays of a sparse adjacency matrix."""
    adj = sp.csr_matrix(adjacency)
    indptr, indices = adj.indptr, adj.indices
    return [indices[indptr[i]:indptr[i + 1]] for i in range(adj.shape[0])]


def is_symmetric(adjacency: sp.spmatrix) -> bool:
    """True if edge (a, b) is present iff (b, a) is present."""
    adj = sp.csr_matrix(adjacency)
    pattern = (adj != 0).astype(np.int8)
    return (pattern != pattern.T).nnz == 0
