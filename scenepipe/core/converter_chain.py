"""
Converter chain driver.

Walks the configured converter stages plus an implicit trailing
AnySceneConverter. Every stage but the last turns its input into a new
content source for the next one; the last stage writes the output file.
Loose meshes coming from preprocessing or concatenation are fed to the
first stage only, after that everything comes from the current source.
"""
import logging
from typing import List, Optional, Sequence

from scenepipe.adapters import (
    AbstractImporter,
    AbstractSceneConverter,
    PluginManager,
    SceneConverterFeature,
    SceneConverterFlag,
    scene_contents_for_converter,
)
from scenepipe.adapters.base_converter import feature_names
from scenepipe.config import StageSpec
from scenepipe.errors import (
    AddContentError,
    ConversionError,
    FeatureMismatchError,
    FinalizeError,
    PluginNotFoundError,
    SceneConverterError,
)
from scenepipe.trade import ContentMask, MeshData, SceneContent
from scenepipe.utils import Durations

logger = logging.getLogger(__name__)

IMPLICIT_CONVERTER = 'AnySceneConverter'

FILE_OUTPUT = SceneConverterFeature.CONVERT_MESH_TO_FILE | SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE


def _in_stage(error: SceneConverterError, stage: int, plugin: str,
              mesh: Optional[int] = None) -> SceneConverterError:
    """Fill in the chain context an error raised deeper down doesn't know about."""
    if error.stage is None:
        error.stage = stage
    if not error.plugin:
        error.plugin = plugin
    if error.mesh is None:
        error.mesh = mesh
    return error


class ConverterChain:
    """
    Drives converter stages through begin / add / end.

    Args:
        manager: Converter plugin manager
        stages: Configured converter stages, in order
        output: Output file name, written by the last stage
        single_mesh: Whether exactly one mesh flows through the chain, which
            lets mesh-only converters act as intermediate stages
        verbose: Report progress and enable verbose output of all stages
        durations: Timing buckets for --profile
    """

    def __init__(self, manager: PluginManager, stages: Sequence[StageSpec], output: str,
                 single_mesh: bool = False, verbose: bool = False, durations: Optional[Durations] = None):
        self.manager = manager
        self.stages: List[StageSpec] = list(stages)
        self.output = output
        self.single_mesh = single_mesh
        self.verbose = verbose
        self.durations = durations or Durations()

    @property
    def intermediate_features(self) -> SceneConverterFeature:
        """Features of which a non-last stage needs at least one."""
        if self.single_mesh:
            return SceneConverterFeature.CONVERT_MESH | SceneConverterFeature.CONVERT_MULTIPLE
        return SceneConverterFeature.CONVERT_MULTIPLE

    def stage_spec(self, i: int) -> StageSpec:
        if i < len(self.stages):
            return self.stages[i]
        return StageSpec(plugin=IMPLICIT_CONVERTER)

    def is_last(self, i: int, converter: AbstractSceneConverter) -> bool:
        return i + 1 >= len(self.stages) and bool(converter.features & FILE_OUTPUT)

    def run(self, importer: AbstractImporter, meshes: Optional[List[MeshData]] = None) -> None:
        """
        Run all stages. importer is the content source of the first stage,
        meshes if not None replace its meshes for the first stage.
        """
        count = len(self.stages)
        for i in range(count + 1):
            stage = self.stage_spec(i)
            converter = self._instantiate(i, stage)
            last = self.is_last(i, converter)

            if count > 1 and self.verbose:
                action = "Saving output" if last else "Processing"
                logger.info(f"{action} ({i + 1}/{count}) with {stage.plugin}...")

            if last:
                self._begin_file(i, stage, converter)
            else:
                self._begin(i, stage, converter)

            contents = ContentMask()
            if meshes is not None:
                self._add_loose_meshes(i, stage, converter, importer, meshes, contents)
                # Taken from the current source from now on
                contents.exclude(SceneContent.MESHES)
                meshes = None

            try:
                with self.durations.measure('import'):
                    converter.add_supported_importer_contents(importer, contents)
            except ConversionError as e:
                raise AddContentError(f"Cannot add importer contents: {e.message}",
                                      stage=i, plugin=stage.plugin) from e
            except SceneConverterError as e:
                raise _in_stage(e, i, stage.plugin)

            if last:
                self._end_file(i, stage, converter)
                return

            importer = self._end(i, stage, converter, importer)

        # Only reachable if the implicit converter can't write files either
        raise FeatureMismatchError(f"{IMPLICIT_CONVERTER} doesn't support conversion to a file",
                                   stage=count, plugin=IMPLICIT_CONVERTER)

    def _instantiate(self, i: int, stage: StageSpec) -> AbstractSceneConverter:
        try:
            converter = self.manager.load_and_instantiate(stage.plugin)
        except SceneConverterError as e:
            raise _in_stage(e, i, stage.plugin)
        if self.verbose or stage.verbose:
            converter.add_flags(SceneConverterFlag.VERBOSE)
        converter.set_options(stage.options)
        return converter

    def _begin_file(self, i: int, stage: StageSpec, converter: AbstractSceneConverter) -> None:
        try:
            with self.durations.measure('conversion'):
                converter.begin_file(self.output)
        except (FeatureMismatchError, PluginNotFoundError) as e:
            raise _in_stage(e, i, stage.plugin)
        except SceneConverterError as e:
            raise ConversionError(f"Cannot begin conversion of file {self.output}: {e.message}",
                                  stage=i, plugin=stage.plugin) from e

    def _begin(self, i: int, stage: StageSpec, converter: AbstractSceneConverter) -> None:
        if not converter.features & self.intermediate_features:
            what = "importer conversion" if self.single_mesh else "multi-mesh importer conversion"
            raise FeatureMismatchError(
                f"{stage.plugin} doesn't support {what}, only {feature_names(converter.features)}",
                stage=i, plugin=stage.plugin)
        try:
            with self.durations.measure('conversion'):
                converter.begin()
        except FeatureMismatchError as e:
            raise _in_stage(e, i, stage.plugin)
        except SceneConverterError as e:
            raise ConversionError(f"Cannot begin importer conversion: {e.message}",
                                  stage=i, plugin=stage.plugin) from e

    def _add_loose_meshes(self, i: int, stage: StageSpec, converter: AbstractSceneConverter,
                          importer: AbstractImporter, meshes: List[MeshData], contents: ContentMask) -> None:
        if not scene_contents_for_converter(converter) & SceneContent.MESHES:
            logger.warning(f"Ignoring {len(meshes)} meshes not supported by the converter")
            return

        for j, mesh in enumerate(meshes):
            try:
                # Custom attribute ids are only meaningful within one source
                converter.propagate_mesh_attribute_names(importer, mesh)
                name = importer.mesh_name(j) if SceneContent.NAMES in contents else ""
                with self.durations.measure('conversion'):
                    converter.add(mesh, name)
            except ConversionError as e:
                raise AddContentError(f"Cannot add mesh {j}: {e.message}",
                                      stage=i, plugin=stage.plugin, mesh=j) from e
            except SceneConverterError as e:
                raise _in_stage(e, i, stage.plugin, mesh=j)

    def _end_file(self, i: int, stage: StageSpec, converter: AbstractSceneConverter) -> None:
        try:
            with self.durations.measure('conversion'):
                converter.end_file()
        except SceneConverterError as e:
            raise FinalizeError(f"Cannot end conversion of file {self.output}: {e.message}",
                                stage=i, plugin=stage.plugin) from e
        logger.debug(f"Stage {i} ({stage.plugin}) wrote {self.output}")

    def _end(self, i: int, stage: StageSpec, converter: AbstractSceneConverter,
             importer: AbstractImporter) -> AbstractImporter:
        try:
            with self.durations.measure('conversion'):
                result = converter.end()
        except SceneConverterError as e:
            raise FinalizeError(f"Cannot end importer conversion: {e.message}",
                                stage=i, plugin=stage.plugin) from e
        # The produced source doesn't depend on either the converter or its input
        importer.close()
        logger.debug(f"Stage {i} ({stage.plugin}) produced {result.mesh_count()} meshes")
        return result
