"""
Merge all meshes of a content source into one, placing them by the
default scene hierarchy if there is one.
"""
import logging
from typing import List

from scenepipe.adapters import AbstractImporter
from scenepipe.errors import ConversionError, MeshDataError, MeshImportError
from scenepipe.mesh_tools import concatenate, transform_3d
from scenepipe.scene_tools import flatten_mesh_hierarchy_3d
from scenepipe.trade import MeshData
from scenepipe.utils import Durations

logger = logging.getLogger(__name__)


def concatenate_importer_meshes(importer: AbstractImporter, durations: Durations) -> MeshData:
    """
    Import all meshes and concatenate them.

    With a default scene, meshes are taken in hierarchy order, each
    instance transformed into world space; a mesh referenced by several
    objects appears several times and an unreferenced one not at all.
    Without a scene, meshes are assumed to be in world space already and
    are joined in import order.

    Raises:
        ConversionError: The source has no meshes or the meshes can't be joined
        MeshImportError: A mesh or the default scene failed to import
    """
    mesh_count = importer.mesh_count()
    if not mesh_count:
        raise ConversionError("No meshes found in the input", plugin=importer.plugin_name)

    meshes: List[MeshData] = []
    for i in range(mesh_count):
        with durations.measure('import'):
            try:
                meshes.append(importer.mesh(i))
            except MeshImportError as e:
                raise MeshImportError(f"Cannot import mesh {i}", plugin=importer.plugin_name, mesh=i) from e

    default_scene = importer.default_scene()
    if default_scene != -1:
        with durations.measure('import'):
            try:
                scene = importer.scene(default_scene)
            except MeshImportError as e:
                raise MeshImportError(f"Cannot import scene {default_scene} for mesh concatenation",
                                      plugin=importer.plugin_name) from e

        with durations.measure('conversion'):
            instances = []
            for mesh_id, object_id, transformation in flatten_mesh_hierarchy_3d(scene):
                if not 0 <= mesh_id < mesh_count:
                    raise MeshImportError(f"Object {object_id} references mesh {mesh_id} out of range "
                                          f"for {mesh_count} meshes", plugin=importer.plugin_name, mesh=mesh_id)
                try:
                    instances.append(transform_3d(meshes[mesh_id], transformation))
                except MeshDataError as e:
                    raise ConversionError(f"Cannot transform mesh {mesh_id}: {e}", mesh=mesh_id) from e
        if not instances:
            raise ConversionError(f"Scene {default_scene} doesn't reference any meshes",
                                  plugin=importer.plugin_name)
        logger.debug(f"Flattened scene {default_scene} into {len(instances)} mesh instances")
        meshes = instances

    with durations.measure('conversion'):
        return concatenate(meshes)
