"""
Mesh algorithms used by the preprocessing and concatenation stages.
All of them are pure functions returning new MeshData instances.
"""
from .remove_duplicates import remove_duplicates, remove_duplicates_fuzzy
from .filter_attributes import filter_only_attributes
from .transform import transform_3d, transform_points
from .concatenate import concatenate, check_summable_primitives
from .generate_normals import generate_flat_normals, generate_smooth_normals

__all__ = [
    'remove_duplicates',
    'remove_duplicates_fuzzy',
    'filter_only_attributes',
    'transform_3d',
    'transform_points',
    'concatenate',
    'check_summable_primitives',
    'generate_flat_normals',
    'generate_smooth_normals',
]
