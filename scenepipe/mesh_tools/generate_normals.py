"""
Normal generation for triangle meshes.
"""
import numpy as np

from scenepipe.utils import log_function_call


def _normalize(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    return np.divide(vectors, lengths, out=np.zeros_like(vectors), where=lengths > 0)


def generate_flat_normals(positions: np.ndarray) -> np.ndarray:
    """
    One normal per triangle, repeated for its three vertices.
    Expects a non-indexed triangle list (position count divisible by 3).
    """
    positions = np.asarray(positions, dtype=np.float64)
    if len(positions) % 3:
        raise ValueError(f"Position count {len(positions)} is not divisible by 3")
    triangles = positions.reshape(-1, 3, 3)
    face = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
    return np.repeat(_normalize(face), 3, axis=0)


@log_function_call
def generate_smooth_normals(indices: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """
    Per-vertex normals averaged from all triangles sharing the vertex,
    weighted by triangle area and by the angle at the vertex. Triangles that
    don't share vertex indices don't influence each other, so hard edges
    stay hard.
    """
    positions = np.asarray(positions, dtype=np.float64)
    indices = np.asarray(indices, dtype=np.int64)
    if len(indices) % 3:
        raise ValueError(f"Index count {len(indices)} is not divisible by 3")

    triangles = indices.reshape(-1, 3)
    corners = positions[triangles]
    # Cross product length is twice the area, which is the weight we want
    face = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])

    normals = np.zeros_like(positions)
    for k in range(3):
        e1 = corners[:, (k + 1) % 3] - corners[:, k]
        e2 = corners[:, (k + 2) % 3] - corners[:, k]
        lengths = np.linalg.norm(e1, axis=1) * np.linalg.norm(e2, axis=1)
        cosine = np.divide(np.einsum('ij,ij->i', e1, e2), lengths,
                           out=np.ones(len(lengths)), where=lengths > 0)
        angle = np.arccos(np.clip(cosine, -1.0, 1.0))
        np.add.at(normals, triangles[:, k], face * angle[:, None])

    return _normalize(normals)
