"""
Scene conversion pipeline: open the input, optionally reduce it to a
single mesh, preprocess meshes and run the converter chain.
"""
import logging
import mmap
from typing import Optional

from scenepipe.adapters import AbstractImporter, ImporterFlag, PluginManager, SingleMeshImporter
from scenepipe.config import ConverterOptions
from scenepipe.errors import ExitCode, MeshImportError, SourceOpenError
from scenepipe.utils import Durations

from .concatenation import concatenate_importer_meshes
from .converter_chain import ConverterChain
from .info import print_info
from .preprocessing import preprocess_meshes

logger = logging.getLogger(__name__)


def _open_input(importer: AbstractImporter, options: ConverterOptions) -> Optional[mmap.mmap]:
    """Open the input file, returning the mapping if it was memory-mapped.
    The mapping has to outlive the importer."""
    if not options.map:
        importer.open_file(options.input)
        return None

    try:
        with open(options.input, 'rb') as f:
            mapped = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
    except (OSError, ValueError) as e:
        raise SourceOpenError(f"Cannot memory-map file {options.input}: {e}",
                              plugin=importer.plugin_name) from e
    try:
        importer.open_data(mapped)
    except SourceOpenError:
        mapped.close()
        raise
    return mapped


def select_single_mesh(importer: AbstractImporter, options: ConverterOptions,
                       durations: Durations) -> SingleMeshImporter:
    """Take one mesh or the concatenation of all of them and wrap it as a
    content source of its own."""
    if options.concatenate_meshes:
        mesh = concatenate_importer_meshes(importer, durations)
        name = ""
    else:
        level = options.mesh_level or 0
        with durations.measure('import'):
            try:
                mesh = importer.mesh(options.mesh, level)
                name = importer.mesh_name(options.mesh)
            except IndexError as e:
                raise MeshImportError(f"Cannot import the mesh: {e}", plugin=importer.plugin_name,
                                      mesh=options.mesh) from e
            except MeshImportError as e:
                raise MeshImportError(f"Cannot import the mesh: {e.message}", plugin=importer.plugin_name,
                                      mesh=options.mesh) from e

    return SingleMeshImporter(mesh, name, importer)


def run_pipeline(options: ConverterOptions,
                 importer_manager: Optional[PluginManager] = None,
                 converter_manager: Optional[PluginManager] = None) -> ExitCode:
    """
    Run one conversion.

    Returns:
        ExitCode.SUCCESS

    Raises:
        SceneConverterError: Subclass matching the failure, carrying its exit code
    """
    importer_manager = importer_manager or PluginManager('importer')
    converter_manager = converter_manager or PluginManager('converter')
    durations = Durations()

    if options.info_requested and options.output:
        logger.warning(f"Ignoring output file for --info: {options.output}")

    importer = importer_manager.load_and_instantiate(options.importer)
    if options.verbose:
        importer.add_flags(ImporterFlag.VERBOSE)
    importer.set_options(options.importer_options)

    with durations.measure('import'):
        mapped = _open_input(importer, options)

    try:
        if options.info_requested:
            print_info(importer, options)
            if options.profile:
                logger.info(f"Import took {durations['import']:.3f} seconds")
            return ExitCode.SUCCESS

        source: AbstractImporter = importer
        if options.single_mesh:
            source = select_single_mesh(importer, options, durations)

        meshes = preprocess_meshes(source, options, converter_manager, durations, options.single_mesh)

        chain = ConverterChain(converter_manager, options.converters, options.output,
                               single_mesh=options.single_mesh, verbose=options.verbose, durations=durations)
        chain.run(source, meshes)

        if options.profile:
            logger.info(f"Import and conversion took {durations['import']:.3f} seconds, "
                        f"conversion {durations['conversion']:.3f} seconds")
        return ExitCode.SUCCESS

    finally:
        importer.close()
        if mapped is not None:
            mapped.close()
