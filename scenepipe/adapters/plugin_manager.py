"""
Plugin lookup by name.

Built-in plugins are registered as 'module:Class' paths and imported only
when requested, so that e.g. the open3d codecs don't need open3d installed
unless they are actually used. Third-party packages can add plugins through
the `scenepipe.importers` and `scenepipe.converters` entry point groups.
"""
import importlib
import logging
from importlib.metadata import entry_points
from typing import Dict, List, Type, Union

from scenepipe.errors import PluginNotFoundError

from .base_converter import AbstractSceneConverter
from .base_importer import AbstractImporter

logger = logging.getLogger(__name__)

BUILTIN_IMPORTERS: Dict[str, str] = {
    'AnySceneImporter': 'scenepipe.plugins.any_format:AnySceneImporter',
    'NpzImporter': 'scenepipe.plugins.npz_format:NpzImporter',
    'Open3DImporter': 'scenepipe.plugins.open3d_format:Open3DImporter',
}

BUILTIN_CONVERTERS: Dict[str, str] = {
    'AnySceneConverter': 'scenepipe.plugins.any_format:AnySceneConverter',
    'NpzSceneConverter': 'scenepipe.plugins.npz_format:NpzSceneConverter',
    'Open3DSceneConverter': 'scenepipe.plugins.open3d_format:Open3DSceneConverter',
    'GenerateNormalsSceneConverter': 'scenepipe.plugins.generate_normals:GenerateNormalsSceneConverter',
}

ENTRY_POINT_GROUPS = {
    'importer': 'scenepipe.importers',
    'converter': 'scenepipe.converters',
}

BASE_CLASSES = {
    'importer': AbstractImporter,
    'converter': AbstractSceneConverter,
}


class PluginManager:
    """Resolves plugin names to classes for one plugin kind."""

    def __init__(self, kind: str):
        if kind not in BASE_CLASSES:
            raise ValueError(f"Unknown plugin kind: {kind}")
        self.kind = kind
        self._paths: Dict[str, str] = dict(BUILTIN_IMPORTERS if kind == 'importer' else BUILTIN_CONVERTERS)
        self._classes: Dict[str, type] = {}
        for ep in entry_points(group=ENTRY_POINT_GROUPS[kind]):
            self._paths.setdefault(ep.name, ep.value)

    def register(self, name: str, plugin: Union[str, type]) -> None:
        """Register a plugin class or a 'module:Class' path under a name."""
        if isinstance(plugin, str):
            self._paths[name] = plugin
            self._classes.pop(name, None)
        else:
            self._classes[name] = plugin
            self._paths.pop(name, None)

    def alias_list(self) -> List[str]:
        return sorted(set(self._paths) | set(self._classes))

    def load(self, name: str) -> Type:
        if name in self._classes:
            return self._classes[name]
        if name not in self._paths:
            raise PluginNotFoundError(
                f"Plugin {name} not found. Available {self.kind} plugins: {', '.join(self.alias_list())}",
                plugin=name)

        module_name, _, class_name = self._paths[name].partition(':')
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise PluginNotFoundError(f"Plugin {name} can't be loaded: {e}", plugin=name) from e
        cls = getattr(module, class_name, None)
        if not isinstance(cls, type) or not issubclass(cls, BASE_CLASSES[self.kind]):
            raise PluginNotFoundError(f"Plugin {name} is not a valid {self.kind} plugin", plugin=name)
        self._classes[name] = cls
        return cls

    def load_and_instantiate(self, name: str):
        cls = self.load(name)
        # Dispatching plugins resolve their delegates through the same manager
        instance = cls(self) if getattr(cls, 'DISPATCHES_PLUGINS', False) else cls()
        logger.debug(f"Instantiated {self.kind} plugin {name}")
        return instance
