"""Tests for face normal computation."""

import numpy as np
import pytest

from pymeshclust.core.normals import face_normals
from pymeshclust.types import MeshGeometryError


def test_counter_clockwise_triangle_points_up():
    vertices = np.array([[0.0, 0, 0], [1.0, 0, 0], [0, 1.0, 0]])
    normals = face_normals(vertices, [[0, 1, 2]])
    np.testing.assert_allclose(normals, [[0.0, 0.0, 1.0]])


def test_unnormalized_length_is_twice_area():
    vertices = np.array([[0.0, 0, 0], [2.0, 0, 0], [0, 2.0, 0]])
    normals = face_normals(vertices, [[0, 1, 2]], normalize=False)
    assert np.linalg.norm(normals[0]) == pytest.approx(4.0)


def test_degenerate_triangle_gives_zero():
    vertices = np.array([[0.0, 0, 0], [1.0, 0, 0], [2.0, 0, 0]])
    np.testing.assert_array_equal(face_normals(vertices, [[0, 1, 2]]), np.zeros((1, 3)))


def test_icosahedron_normals_cancel(icosahedron):
    vertices, faces = icosahedron
    normals = face_normals(vertices, faces)
    assert normals.shape == (20, 3)
    np.testing.assert_allclose(np.linalg.norm(normals, axis=1), 1.0)
    np.testing.assert_allclose(normals.sum(axis=0), 0.0, atol=1e-12)


def test_bad_vertices_shape():
    with pytest.raises(MeshGeometryError):
        face_normals(np.zeros((3, 2)), [[0, 1, 2]])
