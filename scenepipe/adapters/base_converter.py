"""
Base interface for all content sinks (scene converter plugins).

A converter is driven through begin / add* / end (producing a new content
source) or begin_file / add* / end_file (writing a file). The protocol state
is an explicit enum and every public call validates its transition, so e.g.
adding before beginning raises instead of silently misbehaving.

Plugins that can only convert a single mesh declare CONVERT_MESH and/or
CONVERT_MESH_TO_FILE and implement do_convert / do_convert_to_file; the
begin / add / end protocol is emulated for them here, accepting exactly one
mesh.
"""
import copy
import logging
from abc import ABC
from enum import Enum, Flag, auto
from typing import Any, Dict, Mapping, Optional, Union

from scenepipe.config.option_parsing import apply_options
from scenepipe.errors import ConversionError, ConverterStateError, FeatureMismatchError
from scenepipe.trade import (
    ContentMask,
    MaterialData,
    MeshData,
    SceneContent,
    SceneData,
    mesh_attribute_custom_id,
)
from scenepipe.trade.contents import content_members

from .base_importer import AbstractImporter, scene_contents_for_importer
from .memory_importer import MemoryImporter

logger = logging.getLogger(__name__)


class SceneConverterFeature(Flag):
    CONVERT_MESH = auto()
    CONVERT_MESH_TO_FILE = auto()
    CONVERT_MULTIPLE = auto()
    CONVERT_MULTIPLE_TO_FILE = auto()
    ADD_MESHES = auto()
    ADD_SCENES = auto()
    ADD_MATERIALS = auto()


class SceneConverterFlag(Flag):
    VERBOSE = auto()


class ConverterState(Enum):
    CREATED = "created"
    BEGAN = "began"
    BEGAN_FILE = "began_file"
    ENDED = "ended"
    ENDED_FILE = "ended_file"


_RESTARTABLE = frozenset({ConverterState.CREATED, ConverterState.ENDED, ConverterState.ENDED_FILE})
_ADDING = frozenset({ConverterState.BEGAN, ConverterState.BEGAN_FILE})

# action -> (allowed source states, target state)
TRANSITIONS = {
    'begin': (_RESTARTABLE, ConverterState.BEGAN),
    'begin_file': (_RESTARTABLE, ConverterState.BEGAN_FILE),
    'add': (_ADDING, None),
    'end': (frozenset({ConverterState.BEGAN}), ConverterState.ENDED),
    'end_file': (frozenset({ConverterState.BEGAN_FILE}), ConverterState.ENDED_FILE),
}

CONVERT_MESH_ANY = SceneConverterFeature.CONVERT_MESH | SceneConverterFeature.CONVERT_MESH_TO_FILE


def feature_names(features: SceneConverterFeature) -> str:
    names = [f.name for f in SceneConverterFeature if f & features]
    return "|".join(names) if names else "nothing"


class AbstractSceneConverter(ABC):
    """Abstract base class for all content sinks."""

    #: Declared capabilities
    FEATURES = SceneConverterFeature(0)
    #: Configuration keys the plugin understands, with their defaults
    DEFAULT_CONFIGURATION: Dict[str, Any] = {}

    def __init__(self):
        self.configuration: Dict[str, Any] = copy.deepcopy(self.DEFAULT_CONFIGURATION)
        self.flags = SceneConverterFlag(0)
        self.logger = logging.getLogger(self.__class__.__module__)
        self._state = ConverterState.CREATED
        self._reset_batch()

    def _reset_batch(self) -> None:
        self._emulated = False
        self._filename: Optional[str] = None
        self._mesh_count = 0
        self._single_mesh: Optional[MeshData] = None
        self._single_mesh_name = ""
        self._attribute_names: Dict[int, str] = {}
        self._default_scene = -1

    @property
    def plugin_name(self) -> str:
        return self.__class__.__name__

    @property
    def features(self) -> SceneConverterFeature:
        return self.FEATURES

    @property
    def state(self) -> ConverterState:
        return self._state

    def add_flags(self, flags: SceneConverterFlag) -> None:
        self.flags |= flags

    @property
    def verbose(self) -> bool:
        return bool(self.flags & SceneConverterFlag.VERBOSE)

    def set_options(self, options: Mapping[str, Any]) -> None:
        apply_options(self.configuration, options, self.plugin_name)

    @property
    def mesh_attribute_names(self) -> Dict[int, str]:
        """Custom attribute names set in the current batch."""
        return dict(self._attribute_names)

    @property
    def mesh_count(self) -> int:
        """Meshes added in the current batch."""
        return self._mesh_count

    def _transition(self, action: str) -> None:
        allowed, _ = TRANSITIONS[action]
        if self._state not in allowed:
            raise ConverterStateError(
                f"Can't {action.replace('_', ' ')} in state {self._state.value}", plugin=self.plugin_name)

    def _enter(self, action: str) -> None:
        _, target = TRANSITIONS[action]
        if target is not None:
            self._state = target

    def _require(self, features: SceneConverterFeature, what: str) -> None:
        if not self.features & features:
            raise FeatureMismatchError(
                f"{self.plugin_name} doesn't support {what}, only {feature_names(self.features)}",
                plugin=self.plugin_name)

    def _call(self, hook, *args):
        """Run a plugin hook, reporting plugin-level failures as ConversionError."""
        try:
            return hook(*args)
        except (OSError, ValueError) as e:
            raise ConversionError(f"{self.plugin_name}: {e}", plugin=self.plugin_name) from e

    # One-shot mesh conversion

    def convert(self, mesh: MeshData) -> MeshData:
        self._require(SceneConverterFeature.CONVERT_MESH, "mesh conversion")
        result = self._call(self.do_convert, mesh)
        if result is None:
            raise ConversionError(f"{self.plugin_name} failed to convert the mesh", plugin=self.plugin_name)
        return result

    # Batch protocol

    def begin(self) -> None:
        self._transition('begin')
        self._require(SceneConverterFeature.CONVERT_MESH | SceneConverterFeature.CONVERT_MULTIPLE,
                      "conversion to an importer")
        self._reset_batch()
        if self.features & SceneConverterFeature.CONVERT_MULTIPLE:
            self._call(self.do_begin)
        else:
            self._emulated = True
        self._enter('begin')

    def begin_file(self, filename: str) -> None:
        self._transition('begin_file')
        self._require(SceneConverterFeature.CONVERT_MESH_TO_FILE | SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE,
                      "conversion to a file")
        self._reset_batch()
        self._filename = filename
        if self.features & SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE:
            self._call(self.do_begin_file, filename)
        else:
            self._emulated = True
        self._enter('begin_file')

    def add(self, mesh: MeshData, name: str = "") -> int:
        """Add a mesh, returning its id in the output."""
        self._transition('add')
        if self._emulated:
            if self._single_mesh is not None:
                raise ConversionError(
                    f"{self.plugin_name} only supports a single mesh, got a second one",
                    plugin=self.plugin_name, mesh=self._mesh_count)
            self._single_mesh = mesh
            self._single_mesh_name = name
        else:
            self._require(SceneConverterFeature.ADD_MESHES, "adding meshes")
            self._call(self.do_add_mesh, self._mesh_count, mesh, name)
        self._mesh_count += 1
        return self._mesh_count - 1

    def add_scene(self, scene: SceneData, name: str = "") -> None:
        self._transition('add')
        self._require(SceneConverterFeature.ADD_SCENES, "adding scenes")
        self._call(self.do_add_scene, scene, name)

    def add_material(self, material: MaterialData, name: str = "") -> None:
        self._transition('add')
        self._require(SceneConverterFeature.ADD_MATERIALS, "adding materials")
        self._call(self.do_add_material, material, name)

    def set_default_scene(self, id: int) -> None:
        self._transition('add')
        self._default_scene = id
        self._call(self.do_set_default_scene, id)

    def set_mesh_attribute_name(self, custom_id: int, name: str) -> None:
        self._transition('add')
        self._attribute_names[custom_id] = name
        self._call(self.do_set_mesh_attribute_name, custom_id, name)

    def propagate_mesh_attribute_names(self, importer: AbstractImporter, mesh: MeshData) -> None:
        """
        Forward names of custom attributes of a mesh coming from importer.
        Numeric ids aren't portable between plugin instances, names are.
        Empty names are skipped.
        """
        for attribute in mesh.custom_attribute_names():
            custom_id = mesh_attribute_custom_id(attribute)
            name = importer.mesh_attribute_name(custom_id)
            if name:
                self.set_mesh_attribute_name(custom_id, name)

    def add_supported_importer_contents(self, importer: AbstractImporter,
                                        contents: Union[ContentMask, SceneContent]) -> None:
        """
        Add everything from importer that is both in contents and supported
        by the converter. Categories the importer has but the converter can't
        take are skipped with a warning.
        """
        if isinstance(contents, ContentMask):
            contents = contents.value
        supported = scene_contents_for_converter(self)
        wanted = contents & scene_contents_for_importer(importer)
        with_names = bool(contents & SceneContent.NAMES) and bool(supported & SceneContent.NAMES)

        for content in content_members(wanted & ~SceneContent.NAMES & ~supported):
            logger.warning(f"Ignoring {importer.content_count(content)} "
                           f"{content.name.lower()} not supported by the converter")

        adding = wanted & supported
        if adding & SceneContent.MESHES:
            for i in range(importer.mesh_count()):
                mesh = importer.mesh(i)
                self.propagate_mesh_attribute_names(importer, mesh)
                self.add(mesh, importer.mesh_name(i) if with_names else "")
        if adding & SceneContent.MATERIALS:
            for i in range(importer.material_count()):
                self.add_material(importer.material(i), importer.material_name(i) if with_names else "")
        if adding & SceneContent.SCENES:
            for i in range(importer.scene_count()):
                self.add_scene(importer.scene(i), importer.scene_name(i) if with_names else "")
            if importer.default_scene() != -1:
                self.set_default_scene(importer.default_scene())

    def end(self) -> AbstractImporter:
        """Finish the batch, returning a content source independent of this
        converter instance."""
        self._transition('end')
        if self._emulated:
            if self._single_mesh is None:
                raise ConversionError(f"{self.plugin_name} expected exactly one mesh, got none",
                                      plugin=self.plugin_name)
            converted = self.convert(self._single_mesh)
            importer = MemoryImporter([converted], [self._single_mesh_name],
                                      attribute_names=self._attribute_names)
        else:
            importer = self._call(self.do_end)
            if importer is None:
                raise ConversionError(f"{self.plugin_name} failed to finish the conversion",
                                      plugin=self.plugin_name)
        self._enter('end')
        return importer

    def end_file(self) -> None:
        self._transition('end_file')
        if self._emulated:
            if self._single_mesh is None:
                raise ConversionError(f"{self.plugin_name} expected exactly one mesh, got none",
                                      plugin=self.plugin_name)
            self._call(self.do_convert_to_file, self._single_mesh, self._filename)
        else:
            self._call(self.do_end_file, self._filename)
        self._enter('end_file')

    # Plugin hooks

    def do_convert(self, mesh: MeshData) -> Optional[MeshData]:
        raise NotImplementedError(f"{self.plugin_name} declares CONVERT_MESH but doesn't implement it")

    def do_convert_to_file(self, mesh: MeshData, filename: str) -> None:
        raise NotImplementedError(f"{self.plugin_name} declares CONVERT_MESH_TO_FILE but doesn't implement it")

    def do_begin(self) -> None:
        pass

    def do_begin_file(self, filename: str) -> None:
        pass

    def do_add_mesh(self, id: int, mesh: MeshData, name: str) -> None:
        raise NotImplementedError

    def do_add_scene(self, scene: SceneData, name: str) -> None:
        raise NotImplementedError

    def do_add_material(self, material: MaterialData, name: str) -> None:
        raise NotImplementedError

    def do_set_default_scene(self, id: int) -> None:
        pass

    def do_set_mesh_attribute_name(self, custom_id: int, name: str) -> None:
        pass

    def do_end(self) -> Optional[AbstractImporter]:
        raise NotImplementedError

    def do_end_file(self, filename: str) -> None:
        raise NotImplementedError


def scene_contents_for_converter(converter: AbstractSceneConverter) -> SceneContent:
    """Content categories the converter accepts, derived from its features."""
    features = converter.features
    contents = SceneContent.NAMES
    if features & (CONVERT_MESH_ANY | SceneConverterFeature.ADD_MESHES):
        contents |= SceneContent.MESHES
    if features & SceneConverterFeature.ADD_SCENES:
        contents |= SceneContent.SCENES
    if features & SceneConverterFeature.ADD_MATERIALS:
        contents |= SceneContent.MATERIALS
    return contents
