"""Tests for mesh readers and result writers."""

import h5py
import nibabel as nib
import nibabel.freesurfer as fs
import numpy as np
import pytest
import scipy.io as sio

from pymeshclust.io.mesh_arrays import read_mesh, write_result
from pymeshclust.types import ClusteringResult, ClusterSummary


@pytest.fixture
def triangle_pair():
    vertices = np.array([[0.0, 0, 0], [1.0, 0, 0], [0, 1.0, 0], [1.0, 1.0, 0]])
    faces = np.array([[0, 1, 2], [2, 1, 3]])
    return vertices, faces


class TestReadMesh:

    def test_npz_vertices(self, tmp_path, triangle_pair):
        vertices, faces = triangle_pair
        path = tmp_path / "mesh.npz"
        np.savez(str(path), vertices=vertices, faces=faces)
        mesh = read_mesh(path)
        np.testing.assert_array_equal(mesh.faces, faces)
        np.testing.assert_allclose(mesh.vertices, vertices)
        assert mesh.normals is None
        assert mesh.num_triangles == 2

    def test_npz_normals_only(self, tmp_path):
        path = tmp_path / "normals.npz"
        np.savez(str(path), normals=np.eye(3)[:2], faces=np.array([[0, 1, 2], [2, 1, 3]]))
        mesh = read_mesh(path)
        assert mesh.vertices is None
        assert mesh.normals.shape == (2, 3)

    def test_mat_one_based_faces(self, tmp_path, triangle_pair):
        vertices, faces = triangle_pair
        path = tmp_path / "mesh.mat"
        sio.savemat(str(path), {"vertices": vertices, "faces": faces + 1})
        mesh = read_mesh(path)
        np.testing.assert_array_equal(mesh.faces, faces)

    def test_mat_v73(self, tmp_path, triangle_pair):
        vertices, faces = triangle_pair
        path = tmp_path / "mesh73.mat"
        with h5py.File(str(path), "w") as f:
            # column-major layout as MATLAB writes it
            f.create_dataset("vertices", data=vertices.T)
            f.create_dataset("faces", data=(faces + 1).T.astype(np.float64))
        mesh = read_mesh(path)
        np.testing.assert_allclose(mesh.vertices, vertices)
        np.testing.assert_array_equal(mesh.faces, faces)

    def test_gifti(self, tmp_path, triangle_pair):
        vertices, faces = triangle_pair
        coords = nib.gifti.GiftiDataArray(
            data=vertices.astype(np.float32),
            intent="NIFTI_INTENT_POINTSET",
            datatype="NIFTI_TYPE_FLOAT32",
        )
        triangles = nib.gifti.GiftiDataArray(
            data=faces.astype(np.int32),
            intent="NIFTI_INTENT_TRIANGLE",
            datatype="NIFTI_TYPE_INT32",
        )
        path = tmp_path / "mesh.surf.gii"
        nib.save(nib.gifti.GiftiImage(darrays=[coords, triangles]), str(path))
        mesh = read_mesh(path)
        np.testing.assert_array_equal(mesh.faces, faces)
        np.testing.assert_allclose(mesh.vertices, vertices)

    def test_freesurfer_surface(self, tmp_path, triangle_pair):
        vertices, faces = triangle_pair
        path = tmp_path / "lh.white"
        fs.write_geometry(str(path), vertices, faces)
        mesh = read_mesh(path)
        np.testing.assert_array_equal(mesh.faces, faces)
        np.testing.assert_allclose(mesh.vertices, vertices, atol=1e-6)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_mesh(tmp_path / "nope.npz")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "mesh.obj"
        path.write_text("v 0 0 0\n")
        with pytest.raises(ValueError, match="Unsupported"):
            read_mesh(path)

    def test_missing_faces(self, tmp_path):
        path = tmp_path / "mesh.npz"
        np.savez(str(path), vertices=np.zeros((3, 3)))
        with pytest.raises(ValueError, match="faces"):
            read_mesh(path)


class TestWriteResult:

    @pytest.fixture
    def result(self):
        return ClusteringResult(
            assignments=np.array([0, 1, -1]),
            unassigned={2},
            cluster_count=2,
            centroids=np.eye(3)[:2],
            summaries=[ClusterSummary(0, 1, np.eye(3)[0], 1.0),
                       ClusterSummary(1, 1, np.eye(3)[1], 1.0)],
        )

    def test_npz(self, tmp_path, result):
        path = tmp_path / "out" / "result.npz"
        write_result(path, result)
        data = np.load(str(path))
        np.testing.assert_array_equal(data["assignments"], [0, 1, -1])
        np.testing.assert_array_equal(data["unassigned"], [2])
        np.testing.assert_array_equal(data["cluster_sizes"], [1, 1])
        assert int(data["cluster_count"]) == 2

    def test_mat(self, tmp_path, result):
        path = tmp_path / "result.mat"
        write_result(path, result)
        data = sio.loadmat(str(path))
        np.testing.assert_array_equal(data["assignments"].ravel(), [0, 1, -1])
        assert data["centroids"].shape == (2, 3)

    def test_unsupported(self, tmp_path, result):
        with pytest.raises(ValueError):
            write_result(tmp_path / "result.txt", result)
