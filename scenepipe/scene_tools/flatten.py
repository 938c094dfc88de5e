"""
Hierarchy flattening: resolve a scene node tree into world-space mesh
instances.
"""
from typing import Dict, List, Optional, Tuple

import numpy as np

from scenepipe.trade import SceneData, SceneNode
from scenepipe.utils import log_function_call

MeshTransformation = Tuple[int, int, np.ndarray]


@log_function_call
def flatten_mesh_hierarchy_3d(scene: SceneData,
                              global_transformation: Optional[np.ndarray] = None) -> List[MeshTransformation]:
    """
    Flatten the scene into (mesh index, object id, world matrix) triples.

    Objects are visited depth-first from the roots, parents before their
    children, siblings in object id order. World matrices are composed
    parent @ local down each root-to-leaf path, starting from
    global_transformation (identity by default). An object referencing
    several meshes yields one triple per reference, in reference order.
    """
    if global_transformation is None:
        global_transformation = np.eye(4)

    children: Dict[int, List[SceneNode]] = {}
    for node in scene.nodes:
        children.setdefault(node.parent, []).append(node)

    result: List[MeshTransformation] = []
    stack = [(node, global_transformation) for node in reversed(children.get(-1, []))]
    while stack:
        node, parent_world = stack.pop()
        world = parent_world @ node.transformation
        for mesh in node.meshes:
            result.append((mesh, node.object_id, world))
        for child in reversed(children.get(node.object_id, [])):
            stack.append((child, world))

    return result
