"""
Lossless intermediate format: a numpy .npz archive.

Array data (vertex attributes, indices, scene transformations) is stored as
separate arrays, everything else in a JSON document under the 'metadata'
key. No pickling is involved in either direction.
"""
import io
import json
import logging
import os
import tempfile
import zipfile
from typing import Any, Dict, List

import numpy as np

from scenepipe.adapters.base_converter import AbstractSceneConverter, SceneConverterFeature
from scenepipe.adapters.base_importer import ImporterFeature
from scenepipe.adapters.memory_importer import MemoryImporter
from scenepipe.trade import (
    MaterialData,
    MeshAttributeData,
    MeshData,
    MeshPrimitive,
    SceneData,
    SceneNode,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _jsonable(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def save_npz(file, meshes: List[MeshData], mesh_names: List[str], attribute_names: Dict[int, str],
             scenes: List[SceneData], scene_names: List[str], default_scene: int,
             materials: List[MaterialData], material_names: List[str], compressed: bool = True) -> None:
    arrays: Dict[str, np.ndarray] = {}
    metadata: Dict[str, Any] = {
        'version': FORMAT_VERSION,
        'meshes': [],
        'attribute_names': {str(k): v for k, v in attribute_names.items()},
        'scenes': [],
        'default_scene': default_scene,
        'materials': [],
    }

    for i, (mesh, name) in enumerate(zip(meshes, mesh_names)):
        entry = {
            'name': name,
            'primitive': mesh.primitive.value,
            'vertex_count': mesh.vertex_count,
            'indexed': mesh.is_indexed,
            'attributes': [int(a.name) for a in mesh.attributes],
        }
        if mesh.is_indexed:
            arrays[f'mesh{i}_indices'] = mesh.indices
        for j, attribute in enumerate(mesh.attributes):
            arrays[f'mesh{i}_attribute{j}'] = attribute.data
        metadata['meshes'].append(entry)

    for i, (scene, name) in enumerate(zip(scenes, scene_names)):
        nodes = scene.nodes
        metadata['scenes'].append({
            'name': name,
            'objects': [{'id': n.object_id, 'parent': n.parent, 'meshes': n.meshes} for n in nodes],
        })
        arrays[f'scene{i}_transformations'] = (np.stack([n.transformation for n in nodes])
                                              if nodes else np.zeros((0, 4, 4)))

    for material, name in zip(materials, material_names):
        metadata['materials'].append({
            'name': name,
            'attributes': {k: _jsonable(v) for k, v in material.attributes.items()},
        })

    arrays['metadata'] = np.array(json.dumps(metadata))
    if compressed:
        np.savez_compressed(file, **arrays)
    else:
        np.savez(file, **arrays)


def load_npz(file) -> Dict[str, Any]:
    """Read an archive written by save_npz into MemoryImporter arguments."""
    try:
        return _load_archive(np.load(file, allow_pickle=False))
    except (KeyError, zipfile.BadZipFile) as e:
        raise ValueError(f"Corrupted archive: {e}") from e


def _load_archive(archive) -> Dict[str, Any]:
    if not hasattr(archive, "files"):
        raise ValueError("Expected an .npz archive, got a single array")
    with archive:
        if 'metadata' not in archive:
            raise ValueError("Not a scenepipe archive, metadata missing")
        metadata = json.loads(str(archive['metadata']))
        if metadata.get('version') != FORMAT_VERSION:
            raise ValueError(f"Unsupported archive version {metadata.get('version')}")

        meshes = []
        for i, entry in enumerate(metadata['meshes']):
            attributes = [MeshAttributeData(name, archive[f'mesh{i}_attribute{j}'])
                          for j, name in enumerate(entry['attributes'])]
            indices = archive[f'mesh{i}_indices'] if entry['indexed'] else None
            meshes.append(MeshData(MeshPrimitive(entry['primitive']), attributes,
                                   entry['vertex_count'], indices))

        scenes = []
        for i, entry in enumerate(metadata['scenes']):
            transformations = archive[f'scene{i}_transformations']
            scenes.append(SceneData([
                SceneNode(o['id'], o['parent'], transformations[k], o['meshes'])
                for k, o in enumerate(entry['objects'])
            ]))

    return {
        'meshes': meshes,
        'mesh_names': [m['name'] for m in metadata['meshes']],
        'attribute_names': {int(k): v for k, v in metadata['attribute_names'].items()},
        'scenes': scenes,
        'scene_names': [s['name'] for s in metadata['scenes']],
        'default_scene': metadata['default_scene'],
        'materials': [MaterialData(m['attributes']) for m in metadata['materials']],
        'material_names': [m['name'] for m in metadata['materials']],
    }


class NpzImporter(MemoryImporter):
    """Reads .npz archives written by NpzSceneConverter."""

    FEATURES = ImporterFeature.OPEN_DATA

    def __init__(self):
        super().__init__(opened=False)

    def do_open_file(self, path: str) -> None:
        self._set_contents(**load_npz(path))
        self._opened = True
        self.logger.info(f"Loaded: {path} - {self.do_mesh_count()} meshes, {self.do_scene_count()} scenes")

    def do_open_data(self, data) -> None:
        self._set_contents(**load_npz(io.BytesIO(data)))
        self._opened = True


class NpzSceneConverter(AbstractSceneConverter):
    """Collects meshes, scenes and materials into an .npz archive or a new
    in-memory content source."""

    FEATURES = (SceneConverterFeature.CONVERT_MULTIPLE |
                SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE |
                SceneConverterFeature.ADD_MESHES |
                SceneConverterFeature.ADD_SCENES |
                SceneConverterFeature.ADD_MATERIALS)
    DEFAULT_CONFIGURATION = {
        'compressed': True,
    }

    def __init__(self):
        super().__init__()
        self._clear()

    def _clear(self) -> None:
        self._meshes: List[MeshData] = []
        self._mesh_names: List[str] = []
        self._scenes: List[SceneData] = []
        self._scene_names: List[str] = []
        self._materials: List[MaterialData] = []
        self._material_names: List[str] = []

    def do_begin(self) -> None:
        self._clear()

    def do_begin_file(self, filename: str) -> None:
        self._clear()

    def do_add_mesh(self, id: int, mesh: MeshData, name: str) -> None:
        self._meshes.append(mesh)
        self._mesh_names.append(name)

    def do_add_scene(self, scene: SceneData, name: str) -> None:
        self._scenes.append(scene)
        self._scene_names.append(name)

    def do_add_material(self, material: MaterialData, name: str) -> None:
        self._materials.append(MaterialData(dict(material.attributes)))
        self._material_names.append(name)

    def do_end(self) -> MemoryImporter:
        importer = MemoryImporter(self._meshes, self._mesh_names, self.mesh_attribute_names,
                                  self._scenes, self._scene_names, self._checked_default_scene(),
                                  self._materials, self._material_names)
        self._clear()
        return importer

    def do_end_file(self, filename: str) -> None:
        # Written next to the target and moved over it once complete. Through a
        # file object, numpy would append .npz to a bare path
        fd, temporary = tempfile.mkstemp(prefix=".", suffix=".tmp",
                                         dir=os.path.dirname(os.path.abspath(filename)))
        try:
            with os.fdopen(fd, 'wb') as f:
                save_npz(f, self._meshes, self._mesh_names, self.mesh_attribute_names,
                         self._scenes, self._scene_names, self._checked_default_scene(),
                         self._materials, self._material_names,
                         compressed=bool(self.configuration['compressed']))
            os.replace(temporary, filename)
        finally:
            if os.path.exists(temporary):
                os.remove(temporary)
        if self.verbose:
            self.logger.info(f"Saved: {filename} ({len(self._meshes)} meshes, {len(self._scenes)} scenes)")
        self._clear()

    def _checked_default_scene(self) -> int:
        return self._default_scene if self._default_scene < len(self._scenes) else -1
