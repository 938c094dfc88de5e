"""
Per-mesh preprocessing: duplicate removal, attribute filtering and mesh
converter plugins, applied to every mesh of a content source.
"""
import logging
from typing import List, Optional

from scenepipe.adapters import AbstractImporter, PluginManager, SceneConverterFeature, SceneConverterFlag
from scenepipe.adapters.base_converter import feature_names
from scenepipe.config import ConverterOptions, StageSpec, parse_number_sequence
from scenepipe.errors import ConversionError, FeatureMismatchError, MeshImportError
from scenepipe.mesh_tools import filter_only_attributes, remove_duplicates, remove_duplicates_fuzzy
from scenepipe.trade import MeshData
from scenepipe.utils import Durations

logger = logging.getLogger(__name__)


def _remove_duplicates(mesh: MeshData, index: int, options: ConverterOptions,
                       durations: Durations, single_mesh: bool) -> MeshData:
    before = mesh.vertex_count
    fuzzy = options.remove_duplicate_vertices_fuzzy is not None
    with durations.measure('conversion'):
        if fuzzy:
            mesh = remove_duplicates_fuzzy(mesh, options.remove_duplicate_vertices_fuzzy)
        else:
            mesh = remove_duplicates(mesh)

    if options.verbose:
        what = "fuzzy duplicate removal" if fuzzy else "duplicate removal"
        # A mesh index would be misleading with a single selected or concatenated mesh
        prefix = what.capitalize() if single_mesh else f"Mesh {index} {what}"
        logger.info(f"{prefix}: {before} -> {mesh.vertex_count} vertices")
    return mesh


def _filter_attributes(mesh: MeshData, only: str) -> MeshData:
    ids = parse_number_sequence(only, 0, mesh.attribute_count)
    return filter_only_attributes(mesh, ids)


def _run_mesh_converter(mesh: MeshData, index: int, stage: StageSpec, position: int, count: int,
                        manager: PluginManager, options: ConverterOptions) -> MeshData:
    if options.verbose:
        progress = f" ({position + 1}/{count})" if count > 1 else ""
        logger.info(f"Processing mesh {index}{progress} with {stage.plugin}...")

    converter = manager.load_and_instantiate(stage.plugin)
    if options.verbose or stage.verbose:
        converter.add_flags(SceneConverterFlag.VERBOSE)
    converter.set_options(stage.options)

    if not converter.features & SceneConverterFeature.CONVERT_MESH:
        raise FeatureMismatchError(
            f"{stage.plugin} doesn't support mesh conversion, only {feature_names(converter.features)}",
            stage=position, plugin=stage.plugin, mesh=index)

    try:
        return converter.convert(mesh)
    except ConversionError as e:
        raise ConversionError(f"Cannot process mesh {index} with {stage.plugin}: {e.message}",
                              stage=position, plugin=stage.plugin, mesh=index) from e


def preprocess_meshes(importer: AbstractImporter, options: ConverterOptions, manager: PluginManager,
                      durations: Durations, single_mesh: bool = False) -> Optional[List[MeshData]]:
    """
    Import every mesh of importer and run the requested per-mesh operations
    on it, in order: exact or fuzzy duplicate removal, attribute filtering,
    then each mesh converter. Attribute filtering is only valid with a
    single mesh in scope.

    Returns:
        The processed meshes, in importer order, or None if no per-mesh
        operation was requested and meshes should be taken from the
        importer directly.

    Raises:
        MeshImportError, FeatureMismatchError, ConversionError,
        PluginNotFoundError
    """
    if not options.processes_meshes:
        return None

    meshes: List[MeshData] = []
    for i in range(importer.mesh_count()):
        with durations.measure('import'):
            try:
                mesh = importer.mesh(i)
            except MeshImportError as e:
                raise MeshImportError(f"Cannot import mesh {i}", plugin=importer.plugin_name, mesh=i) from e

        if options.removes_duplicates:
            mesh = _remove_duplicates(mesh, i, options, durations, single_mesh)

        if options.only_mesh_attributes is not None:
            mesh = _filter_attributes(mesh, options.only_mesh_attributes)

        for j, stage in enumerate(options.mesh_converters):
            with durations.measure('conversion'):
                mesh = _run_mesh_converter(mesh, i, stage, j, len(options.mesh_converters), manager, options)

        meshes.append(mesh)

    return meshes
