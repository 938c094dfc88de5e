"""
Format-agnostic importer and converter.

Both pick a concrete plugin from the file extension and forward every call
to it, together with their flags and configuration.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from scenepipe.adapters.base_converter import AbstractSceneConverter, SceneConverterFeature
from scenepipe.adapters.base_importer import AbstractImporter, ImporterFeature
from scenepipe.adapters.plugin_manager import PluginManager
from scenepipe.trade import MaterialData, MeshData, SceneContent, SceneData

logger = logging.getLogger(__name__)

IMPORTER_FOR_EXTENSION: Dict[str, str] = {
    '.npz': 'NpzImporter',
    '.ply': 'Open3DImporter',
    '.obj': 'Open3DImporter',
    '.stl': 'Open3DImporter',
    '.off': 'Open3DImporter',
    '.gltf': 'Open3DImporter',
    '.glb': 'Open3DImporter',
    '.pcd': 'Open3DImporter',
    '.xyz': 'Open3DImporter',
}

CONVERTER_FOR_EXTENSION: Dict[str, str] = {
    '.npz': 'NpzSceneConverter',
    '.ply': 'Open3DSceneConverter',
    '.obj': 'Open3DSceneConverter',
    '.stl': 'Open3DSceneConverter',
    '.off': 'Open3DSceneConverter',
    '.gltf': 'Open3DSceneConverter',
    '.glb': 'Open3DSceneConverter',
    '.pcd': 'Open3DSceneConverter',
    '.xyz': 'Open3DSceneConverter',
}

ZIP_MAGIC = b'PK\x03\x04'


def _plugin_for(filename: str, table: Dict[str, str], kind: str) -> str:
    extension = Path(filename).suffix.lower()
    if extension not in table:
        raise ValueError(f"Cannot determine the {kind} for {filename}, "
                         f"known extensions: {', '.join(sorted(table))}")
    return table[extension]


def _merge(configuration: Dict[str, Any], options: Mapping[str, Any]) -> None:
    for key, value in options.items():
        if isinstance(value, dict) and isinstance(configuration.get(key), dict):
            _merge(configuration[key], value)
        else:
            configuration[key] = value


class AnySceneImporter(AbstractImporter):
    """Opens files with the importer matching their extension. In-memory
    data is recognized only for .npz archives."""

    FEATURES = ImporterFeature.OPEN_DATA
    DISPATCHES_PLUGINS = True

    def __init__(self, manager: Optional[PluginManager] = None):
        super().__init__()
        self._manager = manager or PluginManager('importer')
        self._delegate: Optional[AbstractImporter] = None

    def set_options(self, options: Mapping[str, Any]) -> None:
        # Checked by the delegate once it's known
        _merge(self.configuration, options)

    def _instantiate(self, name: str) -> AbstractImporter:
        delegate = self._manager.load_and_instantiate(name)
        delegate.add_flags(self.flags)
        delegate.set_options(self.configuration)
        if self.verbose:
            self.logger.info(f"Using {name}")
        return delegate

    def do_open_file(self, path: str) -> None:
        delegate = self._instantiate(_plugin_for(path, IMPORTER_FOR_EXTENSION, 'importer'))
        delegate.open_file(path)
        self._delegate = delegate

    def do_open_data(self, data) -> None:
        if bytes(data[:len(ZIP_MAGIC)]) != ZIP_MAGIC:
            raise ValueError("Cannot determine the importer from data contents")
        delegate = self._instantiate('NpzImporter')
        delegate.open_data(data)
        self._delegate = delegate

    def do_is_opened(self) -> bool:
        return self._delegate is not None and self._delegate.is_opened

    def do_close(self) -> None:
        self._delegate.close()
        self._delegate = None

    def do_mesh_count(self) -> int:
        return self._delegate.mesh_count()

    def do_mesh_level_count(self, id: int) -> int:
        return self._delegate.mesh_level_count(id)

    def do_mesh(self, id: int, level: int) -> Optional[MeshData]:
        return self._delegate.mesh(id, level)

    def do_mesh_name(self, id: int) -> str:
        return self._delegate.mesh_name(id)

    def do_mesh_attribute_name(self, custom_id: int) -> str:
        return self._delegate.mesh_attribute_name(custom_id)

    def do_scene_count(self) -> int:
        return self._delegate.scene_count()

    def do_default_scene(self) -> int:
        return self._delegate.default_scene()

    def do_scene(self, id: int) -> Optional[SceneData]:
        return self._delegate.scene(id)

    def do_scene_name(self, id: int) -> str:
        return self._delegate.scene_name(id)

    def do_material_count(self) -> int:
        return self._delegate.material_count()

    def do_material(self, id: int) -> Optional[MaterialData]:
        return self._delegate.material(id)

    def do_material_name(self, id: int) -> str:
        return self._delegate.material_name(id)

    def do_other_content_count(self, content: SceneContent) -> int:
        return self._delegate.content_count(content)


class AnySceneConverter(AbstractSceneConverter):
    """
    Writes files with the converter matching the output extension.

    Declares every feature as the actual capabilities are known only once
    the file name is; a delegate lacking what's asked of it fails there.
    """

    FEATURES = (SceneConverterFeature.CONVERT_MESH_TO_FILE |
                SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE |
                SceneConverterFeature.ADD_MESHES |
                SceneConverterFeature.ADD_SCENES |
                SceneConverterFeature.ADD_MATERIALS)
    DISPATCHES_PLUGINS = True

    def __init__(self, manager: Optional[PluginManager] = None):
        super().__init__()
        self._manager = manager or PluginManager('converter')
        self._delegate: Optional[AbstractSceneConverter] = None

    def set_options(self, options: Mapping[str, Any]) -> None:
        _merge(self.configuration, options)

    def do_begin_file(self, filename: str) -> None:
        name = _plugin_for(filename, CONVERTER_FOR_EXTENSION, 'converter')
        delegate = self._manager.load_and_instantiate(name)
        delegate.add_flags(self.flags)
        delegate.set_options(self.configuration)
        if self.verbose:
            self.logger.info(f"Using {name}")
        delegate.begin_file(filename)
        self._delegate = delegate

    def do_add_mesh(self, id: int, mesh: MeshData, name: str) -> None:
        self._delegate.add(mesh, name)

    def do_add_scene(self, scene: SceneData, name: str) -> None:
        if self._delegate.features & SceneConverterFeature.ADD_SCENES:
            self._delegate.add_scene(scene, name)
        else:
            self.logger.warning(f"Ignoring a scene not supported by {self._delegate.plugin_name}")

    def do_add_material(self, material: MaterialData, name: str) -> None:
        if self._delegate.features & SceneConverterFeature.ADD_MATERIALS:
            self._delegate.add_material(material, name)
        else:
            self.logger.warning(f"Ignoring a material not supported by {self._delegate.plugin_name}")

    def do_set_default_scene(self, id: int) -> None:
        if self._delegate.features & SceneConverterFeature.ADD_SCENES:
            self._delegate.set_default_scene(id)

    def do_set_mesh_attribute_name(self, custom_id: int, name: str) -> None:
        self._delegate.set_mesh_attribute_name(custom_id, name)

    def do_end_file(self, filename: str) -> None:
        delegate, self._delegate = self._delegate, None
        delegate.end_file()
