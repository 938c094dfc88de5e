"""Configuration: validated option models, option string parsing and YAML
config file loading.

A --config argument can be either:
  - a path to a YAML file, or
  - a short file name living in the package's `configs/` directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from scenepipe.errors import ConfigurationError
from .config_models import ConverterOptions, StageSpec, load_and_validate_config
from .option_parsing import parse_options_string, parse_number_sequence, apply_options

PACKAGE_CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


def resolve_config_path(cfg: str) -> Path:
    """Resolve a config path given on the command line.

    Raises:
        ConfigurationError if the resolved path does not exist.
    """
    p = Path(str(cfg)).expanduser()

    # 1) Absolute/relative path that already exists.
    if p.is_file():
        return p.resolve()

    # 2) Treat as a file under scenepipe/configs/
    candidate = (PACKAGE_CONFIG_DIR / p).resolve()
    if candidate.is_file():
        return candidate

    raise ConfigurationError(
        f"Config file not found. Got cfg='{cfg}'. Tried: '{p}' and '{candidate}'."
    )


def load_config_file(cfg: str) -> Dict[str, Any]:
    """Load a YAML config file into a plain dict."""
    path = resolve_config_path(cfg)
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} has to contain a mapping")
    return data


__all__ = [
    'ConverterOptions',
    'StageSpec',
    'load_and_validate_config',
    'parse_options_string',
    'parse_number_sequence',
    'apply_options',
    'resolve_config_path',
    'load_config_file',
]
