"""
Base interface for all content sources (importer plugins).
Defines the queries the pipeline issues and the checks shared by every
implementation; plugins only fill in the do_* hooks.
"""
import copy
import logging
from abc import ABC, abstractmethod
from enum import Flag, auto
from typing import Any, Dict, Mapping, Optional

from scenepipe.config.option_parsing import apply_options
from scenepipe.errors import ImporterStateError, MeshImportError, SourceOpenError
from scenepipe.trade import MaterialData, MeshData, SceneContent, SceneData


class ImporterFeature(Flag):
    OPEN_DATA = auto()


class ImporterFlag(Flag):
    VERBOSE = auto()


class AbstractImporter(ABC):
    """Abstract base class for all content sources."""

    #: Declared capabilities
    FEATURES = ImporterFeature(0)
    #: Configuration keys the plugin understands, with their defaults
    DEFAULT_CONFIGURATION: Dict[str, Any] = {}

    def __init__(self):
        self.configuration: Dict[str, Any] = copy.deepcopy(self.DEFAULT_CONFIGURATION)
        self.flags = ImporterFlag(0)
        self.logger = logging.getLogger(self.__class__.__module__)

    @property
    def plugin_name(self) -> str:
        return self.__class__.__name__

    @property
    def features(self) -> ImporterFeature:
        return self.FEATURES

    def add_flags(self, flags: ImporterFlag) -> None:
        self.flags |= flags

    @property
    def verbose(self) -> bool:
        return bool(self.flags & ImporterFlag.VERBOSE)

    def set_options(self, options: Mapping[str, Any]) -> None:
        apply_options(self.configuration, options, self.plugin_name)

    # Lifecycle

    @property
    def is_opened(self) -> bool:
        return self.do_is_opened()

    def open_file(self, path: str) -> None:
        self.close()
        try:
            self.do_open_file(path)
        except (OSError, ValueError) as e:
            raise SourceOpenError(f"Cannot open file {path}: {e}", plugin=self.plugin_name) from e
        if not self.is_opened:
            raise SourceOpenError(f"Cannot open file {path}", plugin=self.plugin_name)

    def open_data(self, data) -> None:
        """Open from an in-memory buffer. The buffer has to stay alive while
        any mesh referencing it is in use."""
        if not self.features & ImporterFeature.OPEN_DATA:
            raise SourceOpenError(f"{self.plugin_name} doesn't support opening data", plugin=self.plugin_name)
        self.close()
        try:
            self.do_open_data(data)
        except (OSError, ValueError) as e:
            raise SourceOpenError(f"Cannot open data: {e}", plugin=self.plugin_name) from e
        if not self.is_opened:
            raise SourceOpenError("Cannot open data", plugin=self.plugin_name)

    def close(self) -> None:
        if self.is_opened:
            self.do_close()

    def _check_opened(self) -> None:
        if not self.is_opened:
            raise ImporterStateError(f"{self.plugin_name}: no file opened")

    # Meshes

    def mesh_count(self) -> int:
        self._check_opened()
        return self.do_mesh_count()

    def mesh_level_count(self, id: int) -> int:
        self._check_range(id, self.mesh_count(), "mesh")
        return self.do_mesh_level_count(id)

    def mesh(self, id: int, level: int = 0) -> MeshData:
        self._check_range(id, self.mesh_count(), "mesh")
        level_count = self.do_mesh_level_count(id)
        if not 0 <= level < level_count:
            raise IndexError(f"Level {level} out of range for {level_count} levels of mesh {id}")
        try:
            mesh = self.do_mesh(id, level)
        except (OSError, ValueError) as e:
            raise MeshImportError(f"Cannot import mesh {id}: {e}", plugin=self.plugin_name, mesh=id) from e
        if mesh is None:
            raise MeshImportError(f"Cannot import mesh {id}", plugin=self.plugin_name, mesh=id)
        return mesh

    def mesh_name(self, id: int) -> str:
        self._check_range(id, self.mesh_count(), "mesh")
        return self.do_mesh_name(id)

    def mesh_attribute_name(self, custom_id: int) -> str:
        """Name of a custom attribute id, empty if the source has no name for it."""
        self._check_opened()
        return self.do_mesh_attribute_name(custom_id)

    # Scenes

    def scene_count(self) -> int:
        self._check_opened()
        return self.do_scene_count()

    def default_scene(self) -> int:
        self._check_opened()
        return self.do_default_scene()

    def scene(self, id: int) -> SceneData:
        self._check_range(id, self.scene_count(), "scene")
        try:
            scene = self.do_scene(id)
        except (OSError, ValueError) as e:
            raise MeshImportError(f"Cannot import scene {id}: {e}", plugin=self.plugin_name) from e
        if scene is None:
            raise MeshImportError(f"Cannot import scene {id}", plugin=self.plugin_name)
        return scene

    def scene_name(self, id: int) -> str:
        self._check_range(id, self.scene_count(), "scene")
        return self.do_scene_name(id)

    # Materials

    def material_count(self) -> int:
        self._check_opened()
        return self.do_material_count()

    def material(self, id: int) -> MaterialData:
        self._check_range(id, self.material_count(), "material")
        material = self.do_material(id)
        if material is None:
            raise MeshImportError(f"Cannot import material {id}", plugin=self.plugin_name)
        return material

    def material_name(self, id: int) -> str:
        self._check_range(id, self.material_count(), "material")
        return self.do_material_name(id)

    def content_count(self, content: SceneContent) -> int:
        """Number of items of one content category."""
        self._check_opened()
        if content == SceneContent.MESHES:
            return self.do_mesh_count()
        if content == SceneContent.SCENES:
            return self.do_scene_count()
        if content == SceneContent.MATERIALS:
            return self.do_material_count()
        return self.do_other_content_count(content)

    @staticmethod
    def _check_range(id: int, count: int, what: str) -> None:
        if not 0 <= id < count:
            raise IndexError(f"{what.capitalize()} {id} out of range for {count} entries")

    # Plugin hooks

    @abstractmethod
    def do_is_opened(self) -> bool:
        pass

    def do_open_file(self, path: str) -> None:
        """Default implementation reads the file and delegates to do_open_data."""
        if not self.features & ImporterFeature.OPEN_DATA:
            raise NotImplementedError(f"{self.plugin_name} implements neither file nor data opening")
        with open(path, 'rb') as f:
            self.do_open_data(f.read())

    def do_open_data(self, data) -> None:
        raise NotImplementedError

    @abstractmethod
    def do_close(self) -> None:
        pass

    @abstractmethod
    def do_mesh_count(self) -> int:
        pass

    def do_mesh_level_count(self, id: int) -> int:
        return 1

    @abstractmethod
    def do_mesh(self, id: int, level: int) -> Optional[MeshData]:
        pass

    def do_mesh_name(self, id: int) -> str:
        return ""

    def do_mesh_attribute_name(self, custom_id: int) -> str:
        return ""

    def do_scene_count(self) -> int:
        return 0

    def do_default_scene(self) -> int:
        return -1

    def do_scene(self, id: int) -> Optional[SceneData]:
        return None

    def do_scene_name(self, id: int) -> str:
        return ""

    def do_material_count(self) -> int:
        return 0

    def do_material(self, id: int) -> Optional[MaterialData]:
        return None

    def do_material_name(self, id: int) -> str:
        return ""

    def do_other_content_count(self, content: SceneContent) -> int:
        """Textures, images, animations, cameras, lights and skins."""
        return 0


def scene_contents_for_importer(importer: AbstractImporter) -> SceneContent:
    """Content categories the importer actually has data for, plus names."""
    contents = SceneContent.NAMES
    for content in SceneContent:
        if content == SceneContent.NAMES:
            continue
        if importer.content_count(content):
            contents |= content
    return contents
