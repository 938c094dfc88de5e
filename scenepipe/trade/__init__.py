"""
Data containers passed between importers, mesh tools and converters.
"""
from .mesh_data import (
    MeshData,
    MeshAttribute,
    MeshAttributeData,
    MeshPrimitive,
    CUSTOM_ATTRIBUTE_BASE,
    mesh_attribute_custom,
    is_mesh_attribute_custom,
    mesh_attribute_custom_id,
    attribute_display_name,
)
from .scene_data import SceneData, SceneNode
from .material_data import MaterialData
from .contents import SceneContent, ContentMask, ALL_CONTENTS

__all__ = [
    'MeshData',
    'MeshAttribute',
    'MeshAttributeData',
    'MeshPrimitive',
    'CUSTOM_ATTRIBUTE_BASE',
    'mesh_attribute_custom',
    'is_mesh_attribute_custom',
    'mesh_attribute_custom_id',
    'attribute_display_name',
    'SceneData',
    'SceneNode',
    'MaterialData',
    'SceneContent',
    'ContentMask',
    'ALL_CONTENTS',
]
