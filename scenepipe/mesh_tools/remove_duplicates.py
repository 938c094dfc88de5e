"""
Duplicate vertex removal, exact and fuzzy.

Both variants keep vertices in order of first occurrence and return an
indexed mesh whose index buffer preserves the original connectivity.
"""
import logging
from typing import List, Tuple

import numpy as np
from scipy.spatial import cKDTree

from scenepipe.trade import MeshData, MeshAttributeData
from scenepipe.utils import log_function_call

logger = logging.getLogger(__name__)


def _byte_keys(attributes: List[MeshAttributeData], vertex_count: int) -> np.ndarray:
    """Per-vertex byte rows concatenated over the given attributes."""
    columns = [np.ascontiguousarray(a.data).view(np.uint8).reshape(vertex_count, -1)
               for a in attributes]
    if not columns:
        return np.zeros((vertex_count, 0), dtype=np.uint8)
    return np.hstack(columns)


def _first_occurrence_groups(keys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Group identical rows.

    Returns (vertex_map, unique_vertices): vertex_map[i] is the new index of
    vertex i, unique_vertices[j] is the original index kept for new vertex j.
    """
    if keys.shape[1] == 0:
        return np.zeros(len(keys), dtype=np.int64), np.zeros(min(len(keys), 1), dtype=np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)
    order = np.argsort(first, kind="stable")
    remap = np.empty_like(order)
    remap[order] = np.arange(len(order))
    return remap[inverse], first[order]


def _rebuild(mesh: MeshData, vertex_map: np.ndarray, unique_vertices: np.ndarray) -> MeshData:
    attributes = [MeshAttributeData(a.name, a.data[unique_vertices]) for a in mesh.attributes]
    if mesh.is_indexed:
        indices = vertex_map[mesh.indices]
    else:
        indices = vertex_map
    return MeshData(mesh.primitive, attributes, len(unique_vertices), indices.astype(np.uint32))


@log_function_call
def remove_duplicates(mesh: MeshData) -> MeshData:
    """Merge vertices whose attribute data are bitwise equal."""
    if mesh.vertex_count == 0 or mesh.attribute_count == 0:
        return mesh

    keys = _byte_keys(list(mesh.attributes), mesh.vertex_count)
    vertex_map, unique_vertices = _first_occurrence_groups(keys)
    return _rebuild(mesh, vertex_map, unique_vertices)


@log_function_call
def remove_duplicates_fuzzy(mesh: MeshData, epsilon: float) -> MeshData:
    """
    Merge vertices whose floating-point attributes all lie within epsilon
    (Chebyshev distance) of the first vertex of a group. Integer attributes
    still have to match exactly. Merged vertices take the value of the first
    vertex of their group.
    """
    if epsilon < 0:
        raise ValueError(f"Epsilon has to be non-negative, got {epsilon}")
    if mesh.vertex_count == 0 or mesh.attribute_count == 0:
        return mesh

    floating = [a for a in mesh.attributes if a.is_floating_point]
    exact = [a for a in mesh.attributes if not a.is_floating_point]
    if not floating:
        return remove_duplicates(mesh)

    float_data = np.hstack([a.data.astype(np.float64) for a in floating])
    exact_groups, _ = _first_occurrence_groups(_byte_keys(exact, mesh.vertex_count))

    tree = cKDTree(float_data)
    neighbors = tree.query_ball_point(float_data, r=epsilon, p=np.inf)

    vertex_map = np.full(mesh.vertex_count, -1, dtype=np.int64)
    unique_vertices = []
    for i in range(mesh.vertex_count):
        if vertex_map[i] != -1:
            continue
        new_index = len(unique_vertices)
        unique_vertices.append(i)
        vertex_map[i] = new_index
        for j in neighbors[i]:
            if vertex_map[j] == -1 and exact_groups[j] == exact_groups[i]:
                vertex_map[j] = new_index

    return _rebuild(mesh, vertex_map, np.asarray(unique_vertices, dtype=np.int64))
