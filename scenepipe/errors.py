"""
Error taxonomy for the conversion pipeline.
Every pipeline failure maps to exactly one process exit code.
"""
from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Distinct exit codes so scripts can tell failures apart."""
    SUCCESS = 0
    BAD_OPTIONS = 1
    PLUGIN_NOT_FOUND = 2
    OPEN_FAILED = 3
    IMPORT_FAILED = 4
    ADD_FAILED = 5
    FEATURE_MISMATCH = 6
    FINALIZE_FAILED = 7
    CONVERSION_FAILED = 8


class SceneConverterError(Exception):
    """Base class for all fatal pipeline errors."""

    exit_code = ExitCode.CONVERSION_FAILED

    def __init__(self, message: str, stage: Optional[int] = None,
                 plugin: Optional[str] = None, mesh: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.plugin = plugin
        self.mesh = mesh

    def __str__(self) -> str:
        context = []
        if self.stage is not None:
            context.append(f"stage {self.stage}")
        if self.plugin:
            context.append(f"plugin {self.plugin}")
        if self.mesh is not None:
            context.append(f"mesh {self.mesh}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class ConfigurationError(SceneConverterError):
    """Mutually exclusive or dependent options misused."""
    exit_code = ExitCode.BAD_OPTIONS


class PluginNotFoundError(SceneConverterError):
    exit_code = ExitCode.PLUGIN_NOT_FOUND


class SourceOpenError(SceneConverterError):
    """Input file could not be opened or memory-mapped."""
    exit_code = ExitCode.OPEN_FAILED


class MeshImportError(SceneConverterError):
    """Importing a mesh or a scene from a content source failed."""
    exit_code = ExitCode.IMPORT_FAILED


class FeatureMismatchError(SceneConverterError):
    """A stage lacks a feature the pipeline requires of it."""
    exit_code = ExitCode.FEATURE_MISMATCH


class ConversionError(SceneConverterError):
    exit_code = ExitCode.CONVERSION_FAILED


class IncompatiblePrimitivesError(ConversionError):
    """Meshes with different or non-summable primitives can't be concatenated."""


class ConverterStateError(ConversionError):
    """A converter protocol call was issued in the wrong state."""


class AddContentError(SceneConverterError):
    exit_code = ExitCode.ADD_FAILED


class FinalizeError(SceneConverterError):
    exit_code = ExitCode.FINALIZE_FAILED


class MeshDataError(ValueError):
    """Mesh buffers violate the MeshData invariants."""


class ImporterStateError(RuntimeError):
    """Content source queried while not opened."""
