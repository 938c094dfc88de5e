"""
Content source exposing exactly one mesh.

Used when a single mesh was selected or all meshes were concatenated, so
that the rest of the pipeline can treat the result as a whole scene.
"""
from typing import Dict, Optional

from scenepipe.trade import MeshData, mesh_attribute_custom_id

from .base_importer import AbstractImporter


class AttributeNameTable:
    """Custom attribute id -> name, including empty names."""

    def __init__(self):
        self._names: Dict[int, str] = {}

    def __contains__(self, custom_id: int) -> bool:
        return custom_id in self._names

    def __len__(self) -> int:
        return len(self._names)

    def add(self, custom_id: int, name: str) -> None:
        self._names[custom_id] = name

    def name(self, custom_id: int) -> str:
        return self._names[custom_id]

    def items(self):
        return self._names.items()


class SingleMeshImporter(AbstractImporter):
    """
    Read-only view of one mesh.

    Custom attribute names are resolved from the original source right away,
    as the original source may be discarded once this exists.
    """

    def __init__(self, mesh: MeshData, name: str, original: AbstractImporter):
        super().__init__()
        self._mesh = mesh
        self._name = name
        self._attribute_names = AttributeNameTable()
        for attribute in mesh.custom_attribute_names():
            custom_id = mesh_attribute_custom_id(attribute)
            # Empty names are stored too so lookups never miss
            self._attribute_names.add(custom_id, original.mesh_attribute_name(custom_id))

    @property
    def attribute_names(self) -> AttributeNameTable:
        return self._attribute_names

    def do_is_opened(self) -> bool:
        return True

    def open_file(self, path: str) -> None:
        raise NotImplementedError("SingleMeshImporter can't be reopened")

    def open_data(self, data) -> None:
        raise NotImplementedError("SingleMeshImporter can't be reopened")

    def do_close(self) -> None:
        # Stays a valid view for as long as it's referenced
        pass

    def do_mesh_count(self) -> int:
        return 1

    def do_mesh(self, id: int, level: int) -> Optional[MeshData]:
        return self._mesh

    def do_mesh_name(self, id: int) -> str:
        return self._name

    def do_mesh_attribute_name(self, custom_id: int) -> str:
        if custom_id not in self._attribute_names:
            # Every custom attribute of the mesh was registered on construction
            raise AssertionError(f"Custom attribute {custom_id} is not present in the mesh")
        return self._attribute_names.name(custom_id)
