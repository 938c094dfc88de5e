"""
Pydantic models for pipeline configuration validation.
Option combinations that can't work together are rejected here, before any
plugin is loaded.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from scenepipe.errors import ConfigurationError


class StageSpec(BaseModel):
    """One converter or mesh converter in a chain."""
    plugin: str = Field(min_length=1, description="Plugin name")
    verbose: bool = Field(default=False, description="Verbose output from the plugin")
    options: Dict[str, Any] = Field(default_factory=dict, description="Plugin configuration overrides")


class ConverterOptions(BaseModel):
    """Complete scene conversion configuration."""
    input: str = Field(min_length=1, description="Input file")
    output: Optional[str] = Field(default=None, description="Output file, ignored for info")
    importer: str = Field(default='AnySceneImporter', description="Importer plugin")
    importer_options: Dict[str, Any] = Field(default_factory=dict)
    converters: List[StageSpec] = Field(default_factory=list, description="Scene converter chain")
    mesh_converters: List[StageSpec] = Field(default_factory=list, description="Per-mesh converter chain")

    map: bool = Field(default=False, description="Memory-map the input")
    only_mesh_attributes: Optional[str] = Field(default=None, description="Attribute IDs to keep, N1,N2-N3")
    remove_duplicate_vertices: bool = False
    remove_duplicate_vertices_fuzzy: Optional[float] = Field(default=None, ge=0.0)
    mesh: Optional[int] = Field(default=None, ge=0, description="Convert just this mesh")
    mesh_level: Optional[int] = Field(default=None, ge=0)
    concatenate_meshes: bool = False

    info: bool = False
    info_meshes: bool = False
    info_scenes: bool = False
    info_materials: bool = False
    bounds: bool = False

    verbose: bool = False
    profile: bool = False

    @field_validator('converters', 'mesh_converters', mode='before')
    @classmethod
    def validate_stages(cls, v):
        """Allow plain plugin names in place of full stage entries."""
        if v is None:
            return []
        if isinstance(v, list):
            return [{'plugin': s} if isinstance(s, str) else s for s in v]
        return v

    @field_validator('only_mesh_attributes')
    @classmethod
    def validate_only_mesh_attributes(cls, v):
        """Empty string is the same as not filtering at all."""
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_combinations(self):
        if self.mesh is not None and self.concatenate_meshes:
            raise ValueError("The --mesh and --concatenate-meshes options are mutually exclusive")
        if self.mesh_level is not None and self.mesh is None:
            raise ValueError("The --mesh-level option can only be used with --mesh")
        if self.only_mesh_attributes is not None and self.mesh is None and not self.concatenate_meshes:
            raise ValueError("The --only-mesh-attributes option can only be used with --mesh or --concatenate-meshes")
        if self.remove_duplicate_vertices and self.remove_duplicate_vertices_fuzzy is not None:
            raise ValueError("The --remove-duplicate-vertices and --remove-duplicate-vertices-fuzzy options are mutually exclusive")
        if not self.info_requested and not self.output:
            raise ValueError("An output file has to be specified unless --info is requested")
        return self

    @property
    def info_requested(self) -> bool:
        return self.info or self.info_meshes or self.info_scenes or self.info_materials

    @property
    def single_mesh(self) -> bool:
        """Whether exactly one mesh flows into the converter chain."""
        return self.mesh is not None or self.concatenate_meshes

    @property
    def removes_duplicates(self) -> bool:
        return self.remove_duplicate_vertices or self.remove_duplicate_vertices_fuzzy is not None

    @property
    def processes_meshes(self) -> bool:
        """Whether meshes go through the per-mesh preprocessing stage."""
        return (self.removes_duplicates or self.only_mesh_attributes is not None
                or bool(self.mesh_converters))


def load_and_validate_config(config_dict: dict) -> ConverterOptions:
    """
    Load and validate configuration from a dictionary.

    Args:
        config_dict: Raw configuration, from YAML merged with command line

    Returns:
        Validated ConverterOptions object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        return ConverterOptions(**config_dict)
    except ValidationError as e:
        messages = []
        for error in e.errors():
            message = error['msg']
            if message.startswith('Value error, '):
                message = message[len('Value error, '):]
            location = ".".join(str(part) for part in error.get('loc', ()))
            messages.append(f"{location}: {message}" if location else message)
        raise ConfigurationError("; ".join(messages)) from e
