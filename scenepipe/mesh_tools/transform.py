"""
Apply a 4x4 transformation to mesh geometry.
"""
import numpy as np

from scenepipe.errors import MeshDataError
from scenepipe.trade import MeshData, MeshAttribute, MeshAttributeData


def _normalize(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    return np.divide(vectors, lengths, out=np.zeros_like(vectors), where=lengths > 0)


def normal_matrix(rotation_scaling: np.ndarray) -> np.ndarray:
    """
    Cofactor matrix of a 3x3 rotation-scaling, equal to det * inverse
    transposed. Gives the same normal directions as the inverse transpose
    after renormalization and stays defined for singular matrices.
    """
    a, b, c = rotation_scaling
    return np.array([np.cross(b, c), np.cross(c, a), np.cross(a, b)])


def transform_points(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    homogeneous = np.hstack([points, np.ones((len(points), 1))])
    transformed = homogeneous @ matrix.T
    return transformed[:, :3]


def transform_3d(mesh: MeshData, matrix: np.ndarray) -> MeshData:
    """
    Transform positions as points, normals by the normal matrix and
    tangents/bitangents by the rotation-scaling part. Directions are
    renormalized, directions collapsed by a zero scale become zero vectors.
    Other attributes are kept as-is.
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 matrix, got {matrix.shape}")

    rotation_scaling = matrix[:3, :3]

    attributes = []
    for attribute in mesh.attributes:
        data = attribute.data
        name = attribute.name
        if name == MeshAttribute.POSITION:
            if attribute.components != 3:
                raise MeshDataError(f"Expected 3D positions, got {attribute.components} components")
            data = transform_points(matrix, data.astype(np.float64)).astype(attribute.data.dtype)
        elif name == MeshAttribute.NORMAL:
            data = _normalize(data.astype(np.float64) @ normal_matrix(rotation_scaling).T).astype(attribute.data.dtype)
        elif name in (MeshAttribute.TANGENT, MeshAttribute.BITANGENT):
            # Four-component tangents carry the bitangent sign in w
            direction = _normalize(data[:, :3].astype(np.float64) @ rotation_scaling.T)
            data = np.hstack([direction, data[:, 3:]]).astype(attribute.data.dtype)
        attributes.append(MeshAttributeData(name, data))

    return mesh.with_attributes(attributes)
