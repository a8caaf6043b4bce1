"""Read mesh geometry and write clustering results.

Meshes can come from .npz archives, .mat files (v5 and v7.3), GIFTI
surfaces (.surf.gii / .gii) or FreeSurfer surface files.
"""

from pathlib import Path

import h5py
import nibabel as nib
import nibabel.freesurfer as fs
import numpy as np
import scipy.io as sio

from pymeshclust.math.adjacency import validate_faces
from pymeshclust.types import ClusteringResult, MeshArrays

FREESURFER_SURFACES = (".white", ".pial", ".inflated", ".sphere", ".orig", ".smoothwm")


def read_mesh(path: str | Path) -> MeshArrays:
    """Read triangle geometry, dispatching on file extension.

    Array files (.npz, .mat) must hold ``faces`` plus ``vertices`` and/or
    ``normals``. MATLAB-style one-based faces are converted to zero-based.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On an unsupported extension or missing arrays.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    name = path.name
    if name.endswith(".npz"):
        return _from_arrays(dict(np.load(str(path))), path)
    elif name.endswith(".mat"):
        return _from_arrays(_load_mat(path), path, matlab=True)
    elif name.endswith(".gii"):
        return _read_gifti(path)
    elif name.endswith(FREESURFER_SURFACES):
        vertices, faces = fs.read_geometry(str(path))
        return MeshArrays(faces=validate_faces(faces, len(vertices)),
                          vertices=np.asarray(vertices, dtype=np.float64))
    else:
        raise ValueError(f"Unsupported file extension: {name}")


def _load_mat(path: Path) -> dict[str, np.ndarray]:
    # v7.3 files are HDF5 behind a 512-byte MATLAB header.
    if h5py.is_hdf5(str(path)):
        result = {}
        with h5py.File(str(path), "r") as f:
            for key in f.keys():
                if key.startswith("#"):
                    continue
                # MATLAB stores column-major; h5py sees the transpose.
                result[key] = np.array(f[key]).T
        return result
    raw = sio.loadmat(str(path))
    return {k: v for k, v in raw.items() if not k.startswith("_")}


def _from_arrays(data: dict[str, np.ndarray], path: Path, matlab: bool = False) -> MeshArrays:
    if "faces" not in data:
        raise ValueError(f"{path.name} has no 'faces' array")
    if "vertices" not in data and "normals" not in data:
        raise ValueError(f"{path.name} needs a 'vertices' or 'normals' array")

    vertices = data.get("vertices")
    normals = data.get("normals")
    if vertices is not None:
        vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    if normals is not None:
        normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)

    faces = np.asarray(data["faces"])
    if matlab and faces.size and faces.min() >= 1:
        num_vertices = vertices.shape[0] if vertices is not None else None
        if num_vertices is None or faces.max() <= num_vertices:
            faces = faces - 1
    faces = validate_faces(faces, vertices.shape[0] if vertices is not None else None)
    return MeshArrays(faces=faces, vertices=vertices, normals=normals)


def _read_gifti(path: Path) -> MeshArrays:
    img = nib.load(str(path))
    coords = img.get_arrays_from_intent("NIFTI_INTENT_POINTSET")
    triangles = img.get_arrays_from_intent("NIFTI_INTENT_TRIANGLE")
    if not coords or not triangles:
        raise ValueError(f"{path.name} is not a GIFTI surface (needs pointset and triangle arrays)")
    vertices = np.asarray(coords[0].data, dtype=np.float64)
    faces = validate_faces(np.asarray(triangles[0].data), vertices.shape[0])
    return MeshArrays(faces=faces, vertices=vertices)


def write_result(path: str | Path, result: ClusteringResult) -> None:
    """Save assignments, centroids and per-cluster sizes to .npz or .mat."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "assignments": result.assignments.astype(np.int64),
        "centroids": np.asarray(result.centroids, dtype=np.float64).reshape(-1, 3),
        "cluster_sizes": np.array([s.size for s in result.summaries], dtype=np.int64),
        "cluster_count": np.array(result.cluster_count, dtype=np.int64),
        "unassigned": np.array(sorted(result.unassigned), dtype=np.int64),
    }
    if path.suffix == ".npz":
        np.savez(str(path), **data)
    elif path.suffix == ".mat":
        sio.savemat(str(path), data)
    else:
        raise ValueError(f"Unsupported output extension: {path.name}")
