"""
Content source and content sink interfaces, plus the adapters built on them.
"""
from .base_importer import AbstractImporter, ImporterFeature, ImporterFlag, scene_contents_for_importer
from .base_converter import (
    AbstractSceneConverter,
    ConverterState,
    SceneConverterFeature,
    SceneConverterFlag,
    scene_contents_for_converter,
    feature_names,
)
from .memory_importer import MemoryImporter
from .single_mesh_importer import SingleMeshImporter, AttributeNameTable
from .plugin_manager import PluginManager

__all__ = [
    'AbstractImporter',
    'ImporterFeature',
    'ImporterFlag',
    'scene_contents_for_importer',
    'AbstractSceneConverter',
    'ConverterState',
    'SceneConverterFeature',
    'SceneConverterFlag',
    'scene_contents_for_converter',
    'feature_names',
    'MemoryImporter',
    'SingleMeshImporter',
    'AttributeNameTable',
    'PluginManager',
]
