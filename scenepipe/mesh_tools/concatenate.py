"""
Concatenate several meshes into one.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from scenepipe.errors import ConversionError, IncompatiblePrimitivesError
from scenepipe.trade import MeshData, MeshAttributeData, MeshPrimitive, attribute_display_name
from scenepipe.utils import log_function_call

logger = logging.getLogger(__name__)

# Strips, loops and fans can't be joined by plain index offsetting
NON_SUMMABLE_PRIMITIVES = frozenset({
    MeshPrimitive.LINE_STRIP,
    MeshPrimitive.LINE_LOOP,
    MeshPrimitive.TRIANGLE_STRIP,
    MeshPrimitive.TRIANGLE_FAN,
})


def check_summable_primitives(meshes: Sequence[MeshData]) -> MeshPrimitive:
    """Return the common primitive or raise IncompatiblePrimitivesError."""
    primitive = meshes[0].primitive
    if primitive in NON_SUMMABLE_PRIMITIVES:
        raise IncompatiblePrimitivesError(
            f"Can't concatenate meshes with {primitive.value} primitive", mesh=0)
    for i, mesh in enumerate(meshes[1:], start=1):
        if mesh.primitive != primitive:
            raise IncompatiblePrimitivesError(
                f"Can't concatenate a {mesh.primitive.value} mesh with {primitive.value} meshes", mesh=i)
    return primitive


@log_function_call
def concatenate(meshes: Sequence[MeshData]) -> MeshData:
    """
    Join meshes into a single one, in the order given.

    The attribute layout is taken from the first mesh. Later meshes
    contribute the attribute with the same name and occurrence, or zeros if
    they don't have it; attributes only later meshes have are dropped. The
    result is indexed if any of the inputs is.
    """
    if not meshes:
        raise ConversionError("No meshes to concatenate")
    primitive = check_summable_primitives(meshes)

    first = meshes[0]
    layout = []
    occurrences = {}
    for attribute in first.attributes:
        occurrence = occurrences.get(attribute.name, 0)
        occurrences[attribute.name] = occurrence + 1
        layout.append((attribute.name, occurrence, attribute.components, attribute.data.dtype))

    attributes: List[MeshAttributeData] = []
    for name, occurrence, components, dtype in layout:
        parts = []
        for i, mesh in enumerate(meshes):
            found = mesh.attribute_id(name, occurrence)
            if found is None:
                parts.append(np.zeros((mesh.vertex_count, components), dtype=dtype))
                continue
            data = mesh.attribute(found)
            if data.shape[1] != components:
                raise ConversionError(
                    f"Attribute {attribute_display_name(name)} has {data.shape[1]} components, "
                    f"expected {components} as in the first mesh", mesh=i)
            parts.append(data.astype(dtype, copy=False))
        attributes.append(MeshAttributeData(name, np.concatenate(parts) if parts else
                                            np.zeros((0, components), dtype=dtype)))

    vertex_count = sum(mesh.vertex_count for mesh in meshes)

    indices: Optional[np.ndarray] = None
    if any(mesh.is_indexed for mesh in meshes):
        index_parts = []
        offset = 0
        for mesh in meshes:
            if mesh.is_indexed:
                mesh_indices = mesh.indices.astype(np.int64)
            else:
                mesh_indices = np.arange(mesh.vertex_count, dtype=np.int64)
            index_parts.append(mesh_indices + offset)
            offset += mesh.vertex_count
        indices = np.concatenate(index_parts).astype(np.uint32)

    return MeshData(primitive, attributes, vertex_count, indices)
