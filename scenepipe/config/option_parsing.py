"""
Parsing of command line value syntaxes:
- plugin options: key=val,key2=val2,group/sub=val
- number sequences: N1,N2-N3,N4-,-N5
"""
import logging
from typing import Any, Dict, List, Mapping

import yaml

from scenepipe.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _coerce(value: str) -> Any:
    """Interpret an option value the way a YAML scalar would be."""
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    if parsed is None:
        return value
    if isinstance(parsed, (bool, int, float, str)):
        return parsed
    return value


def parse_options_string(text: str) -> Dict[str, Any]:
    """
    Parse 'key=val,key2=val2' into a nested dict.

    A key without '=' means key=true, '/' delimits configuration subgroups.
    """
    options: Dict[str, Any] = {}
    if not text:
        return options

    for item in text.split(','):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition('=')
        key = key.strip()
        if not key:
            raise ConfigurationError(f"Empty option name in '{text}'")
        parsed = _coerce(value.strip()) if sep else True

        *groups, leaf = key.split('/')
        target = options
        for group in groups:
            target = target.setdefault(group, {})
            if not isinstance(target, dict):
                raise ConfigurationError(f"Option '{group}' is both a value and a group in '{text}'")
        target[leaf] = parsed

    return options


def apply_options(configuration: Dict[str, Any], options: Mapping[str, Any], plugin_name: str,
                  _prefix: str = "") -> None:
    """
    Merge options into a plugin configuration in place.

    Options the plugin doesn't declare are still set, but a warning is
    printed as they are most likely a typo.
    """
    for key, value in options.items():
        path = f"{_prefix}{key}"
        if isinstance(value, dict):
            group = configuration.get(key)
            if not isinstance(group, dict):
                logger.warning(f"Option group {path} not recognized by {plugin_name}")
                group = configuration[key] = {}
            apply_options(group, value, plugin_name, _prefix=f"{path}/")
            continue
        if key not in configuration:
            logger.warning(f"Option {path} not recognized by {plugin_name}")
        configuration[key] = value


def _parse_int(token: str, text: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise ConfigurationError(f"Invalid number sequence '{text}'") from None


def parse_number_sequence(text: str, minimum: int, maximum: int) -> List[int]:
    """
    Parse 'N1,N2-N3' into a list of ints.

    Ranges are inclusive, 'N-' runs up to maximum - 1 and '-N' starts at
    minimum. Values outside [minimum, maximum) are dropped, order and
    repetitions are preserved.
    """
    result: List[int] = []
    for item in text.replace(' ', '').split(','):
        if not item:
            continue
        if '-' in item:
            start_text, _, end_text = item.partition('-')
            start = _parse_int(start_text, text) if start_text else minimum
            end = _parse_int(end_text, text) if end_text else maximum - 1
            values = range(start, end + 1)
        else:
            values = [_parse_int(item, text)]
        result.extend(v for v in values if minimum <= v < maximum)
    return result
