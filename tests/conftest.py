"""Shared fixtures for pymeshclust tests."""

import numpy as np
import pytest
import scipy.sparse as sp
from scipy.sparse.csgraph import connected_components

PHI = (1.0 + np.sqrt(5.0)) / 2.0


def _grid_faces(rows: int, cols: int) -> np.ndarray:
    """Triangulated rows x cols quad grid; quad q holds triangles 2q and 2q + 1."""
    faces = []
    for i in range(rows):
        for j in range(cols):
            a = i * (cols + 1) + j
            b = a + 1
            c = a + cols + 1
            d = c + 1
            faces.append([a, b, d])
            faces.append([a, d, c])
    return np.array(faces, dtype=np.int64)


def _clusters_are_connected(adjacency: sp.spmatrix, assignments: np.ndarray) -> bool:
    """True if every cluster induces a connected subgraph."""
    adjacency = sp.csr_matrix(adjacency)
    for cluster in np.unique(assignments[assignments >= 0]):
        members = np.flatnonzero(assignments == cluster)
        sub = adjacency[members][:, members]
        n_components, _ = connected_components(sub, directed=False)
        if n_components != 1:
            return False
    return True


@pytest.fixture
def grid_faces():
    """Builder for triangulated quad grids."""
    return _grid_faces


@pytest.fixture
def clusters_are_connected():
    """Checker for per-cluster connectivity."""
    return _clusters_are_connected


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(42)


@pytest.fixture
def cube_mesh():
    """Closed unit cube: 12 triangles, two per side, with axis-aligned normals."""
    faces = np.array([
        [0, 1, 3], [0, 3, 2],  # x = 0
        [4, 6, 7], [4, 7, 5],  # x = 1
        [0, 4, 5], [0, 5, 1],  # y = 0
        [2, 3, 7], [2, 7, 6],  # y = 1
        [0, 2, 6], [0, 6, 4],  # z = 0
        [1, 5, 7], [1, 7, 3],  # z = 1
    ], dtype=np.int64)
    axes = np.array([
        [-1, 0, 0], [1, 0, 0], [0, -1, 0], [0, 1, 0], [0, 0, -1], [0, 0, 1],
    ], dtype=np.float64)
    normals = np.repeat(axes, 2, axis=0)
    return faces, normals


@pytest.fixture
def icosahedron():
    """Regular icosahedron (vertices, faces) with consistent winding."""
    vertices = np.array([
        [-1, PHI, 0], [1, PHI, 0], [-1, -PHI, 0], [1, -PHI, 0],
        [0, -1, PHI], [0, 1, PHI], [0, -1, -PHI], [0, 1, -PHI],
        [PHI, 0, -1], [PHI, 0, 1], [-PHI, 0, -1], [-PHI, 0, 1],
    ], dtype=np.float64)
    faces = np.array([
        [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
        [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
        [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
        [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
    ], dtype=np.int64)
    return vertices, faces


@pytest.fixture
def two_groups(rng):
    """200 unit vectors: 100 near +z, then 100 near +x."""
    noise = 0.05 * rng.standard_normal((200, 3))
    base = np.vstack([np.tile([0.0, 0.0, 1.0], (100, 1)),
                      np.tile([1.0, 0.0, 0.0], (100, 1))])
    points = base + noise
    return points / np.linalg.norm(points, axis=1, keepdims=True)
