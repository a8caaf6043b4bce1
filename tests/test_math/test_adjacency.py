"""Tests for the triangle adjacency graph."""

import numpy as np
import pytest

from pymeshclust.math.adjacency import (
    build_triangle_adjacency,
    is_symmetric,
    neighbor_lists,
    validate_faces,
)
from pymeshclust.types import MeshGeometryError


class TestValidateFaces:

    def test_flat_list(self):
        faces = validate_faces([0, 1, 2, 2, 1, 3])
        assert faces.shape == (2, 3)

    def test_flat_list_not_multiple_of_three(self):
        with pytest.raises(MeshGeometryError):
            validate_faces([0, 1, 2, 3])

    def test_out_of_range(self):
        with pytest.raises(MeshGeometryError):
            validate_faces([[0, 1, 5]], num_vertices=4)

    def test_negative_index(self):
        with pytest.raises(MeshGeometryError):
            validate_faces([[0, -1, 2]])

    def test_empty(self):
        assert validate_faces([]).shape == (0, 3)


class TestAdjacency:

    def test_two_triangles_sharing_an_edge(self):
        adj = build_triangle_adjacency([[0, 1, 2], [2, 1, 3]])
        assert adj.shape == (2, 2)
        assert adj[0, 1] == 1.0 and adj[1, 0] == 1.0
        assert adj[0, 0] == 0.0

    def test_shared_vertex_is_not_adjacency(self):
        adj = build_triangle_adjacency([[0, 1, 2], [2, 3, 4]])
        assert adj.nnz == 0

    def test_non_manifold_edge_contributes_nothing(self):
        # three triangles on edge (0, 1)
        adj = build_triangle_adjacency([[0, 1, 2], [1, 0, 3], [0, 1, 4]])
        assert adj.nnz == 0

    def test_closed_cube(self, cube_mesh):
        faces, _ = cube_mesh
        adj = build_triangle_adjacency(faces)
        assert is_symmetric(adj)
        np.testing.assert_array_equal(np.diff(adj.indptr), 3)

    def test_neighbor_lists(self, cube_mesh):
        faces, _ = cube_mesh
        neighbors = neighbor_lists(build_triangle_adjacency(faces))
        assert len(neighbors) == 12
        # triangles 0 and 1 form the x = 0 side and share its diagonal
        assert 1 in neighbors[0] and 0 in neighbors[1]

    def test_explicit_size(self):
        adj = build_triangle_adjacency(np.empty((0, 3)), num_triangles=4)
        assert adj.shape == (4, 4)
        assert adj.nnz == 0
