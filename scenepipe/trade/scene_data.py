"""
Scene hierarchy: objects with a parent, a local transformation and the meshes
they reference.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np


@dataclass
class SceneNode:
    """One object in the scene. parent is -1 for root objects."""
    object_id: int
    parent: int = -1
    transformation: np.ndarray = field(default_factory=lambda: np.eye(4))
    meshes: List[int] = field(default_factory=list)

    def __post_init__(self):
        self.transformation = np.asarray(self.transformation, dtype=np.float64)
        if self.transformation.shape != (4, 4):
            raise ValueError(
                f"Object {self.object_id} transformation has to be 4x4, got {self.transformation.shape}")
        self.meshes = [int(m) for m in self.meshes]


class SceneData:
    """Node hierarchy used to resolve mesh instancing and world transforms."""

    def __init__(self, nodes: Sequence[SceneNode]):
        self._nodes: Dict[int, SceneNode] = {}
        for node in nodes:
            if node.object_id in self._nodes:
                raise ValueError(f"Duplicate object id {node.object_id}")
            self._nodes[node.object_id] = node

        for node in self._nodes.values():
            if node.parent != -1 and node.parent not in self._nodes:
                raise ValueError(f"Object {node.object_id} has unknown parent {node.parent}")

        # Walking up from every node has to reach a root
        for node in self._nodes.values():
            visited = set()
            current: Optional[SceneNode] = node
            while current is not None and current.parent != -1:
                if current.object_id in visited:
                    raise ValueError(f"Object {node.object_id} is part of a parent cycle")
                visited.add(current.object_id)
                current = self._nodes[current.parent]

    @property
    def object_count(self) -> int:
        return len(self._nodes)

    @property
    def mesh_count(self) -> int:
        """Number of mesh references over all objects."""
        return sum(len(n.meshes) for n in self._nodes.values())

    @property
    def nodes(self) -> List[SceneNode]:
        return [self._nodes[i] for i in sorted(self._nodes)]

    def node(self, object_id: int) -> SceneNode:
        return self._nodes[object_id]

    def roots(self) -> List[SceneNode]:
        return [n for n in self.nodes if n.parent == -1]

    def children(self, object_id: int) -> List[SceneNode]:
        return [n for n in self.nodes if n.parent == object_id]

    def referenced_meshes(self) -> List[int]:
        return sorted({m for n in self._nodes.values() for m in n.meshes})
