"""
Conversion pipeline stages.
"""
from .preprocessing import preprocess_meshes
from .concatenation import concatenate_importer_meshes
from .converter_chain import ConverterChain, IMPLICIT_CONVERTER
from .info import print_info, describe_mesh
from .pipeline import run_pipeline, select_single_mesh

__all__ = [
    'preprocess_meshes',
    'concatenate_importer_meshes',
    'ConverterChain',
    'IMPLICIT_CONVERTER',
    'print_info',
    'describe_mesh',
    'run_pipeline',
    'select_single_mesh',
]
