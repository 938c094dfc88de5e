"""
Content source backed by in-memory lists.

Non-terminal converter stages hand one of these to the next stage. It holds
its own copies of everything, so it stays valid after the converter that
produced it is gone.
"""
from typing import Dict, List, Optional, Sequence

from scenepipe.trade import MaterialData, MeshData, SceneData

from .base_importer import AbstractImporter


class MemoryImporter(AbstractImporter):
    """Importer over meshes, scenes and materials held in memory."""

    def __init__(self,
                 meshes: Sequence[MeshData] = (),
                 mesh_names: Optional[Sequence[str]] = None,
                 attribute_names: Optional[Dict[int, str]] = None,
                 scenes: Sequence[SceneData] = (),
                 scene_names: Optional[Sequence[str]] = None,
                 default_scene: int = -1,
                 materials: Sequence[MaterialData] = (),
                 material_names: Optional[Sequence[str]] = None,
                 opened: bool = True):
        super().__init__()
        self._opened = False
        self._set_contents(meshes, mesh_names, attribute_names, scenes, scene_names,
                           default_scene, materials, material_names)
        self._opened = opened

    def _set_contents(self, meshes, mesh_names, attribute_names, scenes, scene_names,
                      default_scene, materials, material_names) -> None:
        self._meshes: List[MeshData] = list(meshes)
        self._mesh_names: List[str] = list(mesh_names) if mesh_names is not None else [""] * len(self._meshes)
        self._attribute_names: Dict[int, str] = dict(attribute_names or {})
        self._scenes: List[SceneData] = list(scenes)
        self._scene_names: List[str] = list(scene_names) if scene_names is not None else [""] * len(self._scenes)
        self._default_scene = default_scene
        self._materials: List[MaterialData] = list(materials)
        self._material_names: List[str] = (list(material_names) if material_names is not None
                                           else [""] * len(self._materials))

        if len(self._mesh_names) != len(self._meshes):
            raise ValueError(f"Got {len(self._mesh_names)} names for {len(self._meshes)} meshes")
        if len(self._scene_names) != len(self._scenes):
            raise ValueError(f"Got {len(self._scene_names)} names for {len(self._scenes)} scenes")
        if len(self._material_names) != len(self._materials):
            raise ValueError(f"Got {len(self._material_names)} names for {len(self._materials)} materials")
        if not -1 <= self._default_scene < len(self._scenes):
            raise ValueError(f"Default scene {self._default_scene} out of range for {len(self._scenes)} scenes")

    def do_is_opened(self) -> bool:
        return self._opened

    def do_close(self) -> None:
        self._set_contents((), None, None, (), None, -1, (), None)
        self._opened = False

    def do_mesh_count(self) -> int:
        return len(self._meshes)

    def do_mesh(self, id: int, level: int) -> Optional[MeshData]:
        # Immutable, safe to hand out by reference
        return self._meshes[id]

    def do_mesh_name(self, id: int) -> str:
        return self._mesh_names[id]

    def do_mesh_attribute_name(self, custom_id: int) -> str:
        return self._attribute_names.get(custom_id, "")

    def do_scene_count(self) -> int:
        return len(self._scenes)

    def do_default_scene(self) -> int:
        return self._default_scene

    def do_scene(self, id: int) -> Optional[SceneData]:
        return self._scenes[id]

    def do_scene_name(self, id: int) -> str:
        return self._scene_names[id]

    def do_material_count(self) -> int:
        return len(self._materials)

    def do_material(self, id: int) -> Optional[MaterialData]:
        return self._materials[id]

    def do_material_name(self, id: int) -> str:
        return self._material_names[id]
