#!/usr/bin/env python3
"""
Scene conversion CLI.
Converts a scene or mesh file through an optional chain of converters.
"""
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from scenepipe.config import (
    ConverterOptions,
    load_and_validate_config,
    load_config_file,
    parse_options_string,
)
from scenepipe.core import run_pipeline
from scenepipe.errors import ConfigurationError, ExitCode, SceneConverterError

DEFAULT_CONFIG = 'sceneconverter.yaml'

logger = logging.getLogger('scenepipe')


def setup_logger(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Setup logging to stdout and optionally to a file."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format='[%(asctime)s] %(levelname)s: %(message)s',
        handlers=handlers,
        force=True
    )
    return logger


class ArgumentParser(argparse.ArgumentParser):
    """Reports usage errors with the bad-options exit code."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(int(ExitCode.BAD_OPTIONS), f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(
        prog='scenepipe-convert',
        description='Convert scenes and meshes between formats, optionally through a chain of converters',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  scenepipe-convert scene.npz --info
  scenepipe-convert mesh.obj mesh.ply --remove-duplicate-vertices -v
  scenepipe-convert scene.npz out.ply --concatenate-meshes -M GenerateNormalsSceneConverter -m flat
  scenepipe-convert scene.npz out.npz -C NpzSceneConverter -c compressed=false
        """
    )

    parser.add_argument('input', help='Input file')
    parser.add_argument('output', nargs='?', help='Output file, ignored for --info')
    parser.add_argument('--config', help='YAML file with defaults (path or name under scenepipe/configs)')

    parser.add_argument('-I', '--importer', help='Importer plugin (default: AnySceneImporter)')
    parser.add_argument('-C', '--converter', action='append', default=[],
                        help='Scene converter plugin, can be given multiple times')
    parser.add_argument('-M', '--mesh-converter', action='append', default=[],
                        help='Converter applied to every mesh, can be given multiple times')
    parser.add_argument('-i', '--importer-options', metavar='key=val,key2=val2,...',
                        help='Configuration options to pass to the importer')
    parser.add_argument('-c', '--converter-options', action='append', default=[], metavar='key=val,key2=val2,...',
                        help='Configuration options for the matching --converter')
    parser.add_argument('-m', '--mesh-converter-options', action='append', default=[], metavar='key=val,key2=val2,...',
                        help='Configuration options for the matching --mesh-converter')

    parser.add_argument('--map', action='store_true', help='Memory-map the input for zero-copy import')
    parser.add_argument('--only-mesh-attributes', metavar='N1,N2-N3...',
                        help='Keep only attributes at these positions, with --mesh or --concatenate-meshes')
    parser.add_argument('--remove-duplicate-vertices', action='store_true', default=None,
                        help='Remove duplicate vertices in all meshes after import')
    parser.add_argument('--remove-duplicate-vertices-fuzzy', type=float, metavar='EPSILON',
                        help='Remove duplicate vertices with fuzzy comparison in all meshes after import')
    parser.add_argument('--mesh', type=int, metavar='ID', help='Convert just a single mesh instead of the whole scene')
    parser.add_argument('--mesh-level', type=int, metavar='INDEX', help='Level to select for single-mesh conversion')
    parser.add_argument('--concatenate-meshes', action='store_true', default=None,
                        help='Flatten the mesh hierarchy and concatenate all meshes together')

    parser.add_argument('--info', action='store_true', help='Print info about the input file and exit')
    parser.add_argument('--info-meshes', action='store_true', help='Print info about meshes and exit')
    parser.add_argument('--info-scenes', action='store_true', help='Print info about scenes and exit')
    parser.add_argument('--info-materials', action='store_true', help='Print info about materials and exit')
    parser.add_argument('--bounds', action='store_true', help='Show attribute bounds with --info')

    parser.add_argument('-v', '--verbose', action='store_true', default=None, help='Verbose output')
    parser.add_argument('--profile', action='store_true', default=None, help='Measure import and conversion time')
    parser.add_argument('--log-file', help='Also write the log to this file')
    return parser


def _stages(plugins: List[str], option_strings: List[str], flag: str, verbose: bool) -> List[Dict[str, Any]]:
    if len(option_strings) > len(plugins):
        raise ConfigurationError(f"More --{flag}-options than --{flag} entries "
                                 f"({len(option_strings)} > {len(plugins)})")
    stages = []
    for i, plugin in enumerate(plugins):
        options = parse_options_string(option_strings[i]) if i < len(option_strings) else {}
        stages.append({'plugin': plugin, 'verbose': verbose, 'options': options})
    return stages


def build_options(args: argparse.Namespace) -> ConverterOptions:
    """Merge the YAML defaults with command line overrides and validate."""
    config = load_config_file(args.config or DEFAULT_CONFIG)
    config['input'] = args.input
    config['output'] = args.output

    # Apply Overrides
    overrides = {
        'importer': args.importer,
        'only_mesh_attributes': args.only_mesh_attributes,
        'remove_duplicate_vertices': args.remove_duplicate_vertices,
        'remove_duplicate_vertices_fuzzy': args.remove_duplicate_vertices_fuzzy,
        'mesh': args.mesh,
        'mesh_level': args.mesh_level,
        'concatenate_meshes': args.concatenate_meshes,
        'verbose': args.verbose,
        'profile': args.profile,
    }
    for key, value in overrides.items():
        if value is not None:
            config[key] = value
            logger.debug(f"Override {key}: {value}")

    for flag in ('map', 'info', 'info_meshes', 'info_scenes', 'info_materials', 'bounds'):
        if getattr(args, flag):
            config[flag] = True

    if args.importer_options:
        config['importer_options'] = parse_options_string(args.importer_options)

    verbose = bool(config.get('verbose'))
    if args.converter or args.converter_options:
        config['converters'] = _stages(args.converter, args.converter_options, 'converter', verbose)
    if args.mesh_converter or args.mesh_converter_options:
        config['mesh_converters'] = _stages(args.mesh_converter, args.mesh_converter_options,
                                            'mesh-converter', verbose)

    return load_and_validate_config(config)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logger(bool(args.verbose or args.profile), args.log_file)

    try:
        options = build_options(args)
        if options.verbose or options.profile:
            # Might come from the config file only
            logging.getLogger().setLevel(logging.INFO)
        logger.info(f"Converting {options.input}" + (f" to {options.output}" if options.output else ""))
        return int(run_pipeline(options))
    except SceneConverterError as e:
        logger.error(str(e))
        return int(e.exit_code)
    except Exception as e:
        logger.error(f"Conversion failed: {e}", exc_info=True)
        return int(ExitCode.CONVERSION_FAILED)


if __name__ == '__main__':
    sys.exit(main())
