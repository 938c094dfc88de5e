from typing import Sequence

from scenepipe.trade import MeshData


def filter_only_attributes(mesh: MeshData, attribute_ids: Sequence[int]) -> MeshData:
    """Keep only attributes at given positions, in the given order. Indices
    and vertex count are carried over unchanged."""
    for i in attribute_ids:
        if not 0 <= i < mesh.attribute_count:
            raise IndexError(f"Attribute {i} out of range for {mesh.attribute_count} attributes")
    return mesh.with_attributes(mesh.attribute_data(i) for i in attribute_ids)
