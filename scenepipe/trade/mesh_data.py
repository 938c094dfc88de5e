"""
Mesh data container shared by importers, converters and mesh tools.

A MeshData is immutable once built: all buffers are copied into read-only
numpy arrays on construction, so the same instance can be handed to several
consumers without any of them being able to alter what the others see.
"""
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from scenepipe.errors import MeshDataError


class MeshPrimitive(Enum):
    POINTS = "points"
    LINES = "lines"
    LINE_STRIP = "line_strip"
    LINE_LOOP = "line_loop"
    TRIANGLES = "triangles"
    TRIANGLE_STRIP = "triangle_strip"
    TRIANGLE_FAN = "triangle_fan"


class MeshAttribute(IntEnum):
    """Built-in attribute names. Custom attributes live above CUSTOM_ATTRIBUTE_BASE."""
    POSITION = 1
    TANGENT = 2
    BITANGENT = 3
    NORMAL = 4
    TEXTURE_COORDINATES = 5
    COLOR = 6
    OBJECT_ID = 7


CUSTOM_ATTRIBUTE_BASE = 32768

AttributeName = Union[MeshAttribute, int]


def mesh_attribute_custom(custom_id: int) -> int:
    """Attribute name for a custom attribute id."""
    if not 0 <= custom_id < CUSTOM_ATTRIBUTE_BASE:
        raise ValueError(f"Custom attribute id {custom_id} out of range")
    return CUSTOM_ATTRIBUTE_BASE + custom_id


def is_mesh_attribute_custom(name: AttributeName) -> bool:
    return int(name) >= CUSTOM_ATTRIBUTE_BASE


def mesh_attribute_custom_id(name: AttributeName) -> int:
    if not is_mesh_attribute_custom(name):
        raise ValueError(f"{name!r} is not a custom attribute")
    return int(name) - CUSTOM_ATTRIBUTE_BASE


def attribute_display_name(name: AttributeName) -> str:
    if is_mesh_attribute_custom(name):
        return f"Custom({mesh_attribute_custom_id(name)})"
    return MeshAttribute(name).name


@dataclass(frozen=True, eq=False)
class MeshAttributeData:
    """One vertex attribute: a name and a (vertex_count, components) array."""
    name: int
    data: np.ndarray

    @property
    def components(self) -> int:
        return self.data.shape[1]

    @property
    def is_floating_point(self) -> bool:
        return np.issubdtype(self.data.dtype, np.floating)


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


class MeshData:
    """Primitive, optional index buffer and an ordered list of vertex attributes."""

    def __init__(self, primitive: MeshPrimitive,
                 attributes: Sequence[Union[MeshAttributeData, tuple]] = (),
                 vertex_count: Optional[int] = None,
                 indices: Optional[np.ndarray] = None):
        self._primitive = MeshPrimitive(primitive)

        converted: List[MeshAttributeData] = []
        for attribute in attributes:
            if not isinstance(attribute, MeshAttributeData):
                name, data = attribute
                attribute = MeshAttributeData(name, data)
            data = np.asarray(attribute.data)
            if data.ndim == 1:
                data = data.reshape(-1, 1)
            if data.ndim != 2:
                raise MeshDataError(
                    f"Attribute {attribute_display_name(attribute.name)} has to be a 2D array, got shape {data.shape}")
            name = int(attribute.name)
            if not is_mesh_attribute_custom(name):
                name = MeshAttribute(name)
            converted.append(MeshAttributeData(name, _readonly(data)))

        if vertex_count is None:
            vertex_count = len(converted[0].data) if converted else 0
        if vertex_count < 0:
            raise MeshDataError(f"Invalid vertex count {vertex_count}")
        for attribute in converted:
            if len(attribute.data) != vertex_count:
                raise MeshDataError(
                    f"Attribute {attribute_display_name(attribute.name)} has "
                    f"{len(attribute.data)} elements, expected {vertex_count}")

        if indices is not None:
            indices = np.asarray(indices)
            if indices.ndim != 1 or not np.issubdtype(indices.dtype, np.integer):
                raise MeshDataError("Indices have to be a 1D integer array")
            if len(indices):
                if indices.min() < 0 or indices.max() >= vertex_count:
                    raise MeshDataError(
                        f"Index out of range for {vertex_count} vertices: "
                        f"[{indices.min()}, {indices.max()}]")
            indices = _readonly(indices.astype(np.uint32))

        self._attributes = tuple(converted)
        self._vertex_count = int(vertex_count)
        self._indices = indices

    def __repr__(self) -> str:
        names = ", ".join(attribute_display_name(a.name) for a in self._attributes)
        return (f"MeshData({self._primitive.value}, {self._vertex_count} vertices, "
                f"{self.index_count} indices, [{names}])")

    @property
    def primitive(self) -> MeshPrimitive:
        return self._primitive

    @property
    def vertex_count(self) -> int:
        return self._vertex_count

    @property
    def is_indexed(self) -> bool:
        return self._indices is not None

    @property
    def indices(self) -> Optional[np.ndarray]:
        return self._indices

    @property
    def index_count(self) -> int:
        return 0 if self._indices is None else len(self._indices)

    @property
    def attributes(self) -> tuple:
        return self._attributes

    @property
    def attribute_count(self) -> int:
        return len(self._attributes)

    def attribute_name(self, i: int) -> int:
        return self._attributes[i].name

    def attribute(self, i: int) -> np.ndarray:
        return self._attributes[i].data

    def attribute_data(self, i: int) -> MeshAttributeData:
        return self._attributes[i]

    def has_attribute(self, name: AttributeName) -> bool:
        return any(a.name == name for a in self._attributes)

    def attribute_id(self, name: AttributeName, occurrence: int = 0) -> Optional[int]:
        """Position of the n-th attribute with given name, or None."""
        found = 0
        for i, attribute in enumerate(self._attributes):
            if attribute.name == name:
                if found == occurrence:
                    return i
                found += 1
        return None

    def attribute_by_name(self, name: AttributeName, occurrence: int = 0) -> np.ndarray:
        i = self.attribute_id(name, occurrence)
        if i is None:
            raise KeyError(f"Mesh has no {attribute_display_name(name)} attribute #{occurrence}")
        return self._attributes[i].data

    @property
    def positions(self) -> np.ndarray:
        return self.attribute_by_name(MeshAttribute.POSITION)

    def custom_attribute_names(self) -> List[int]:
        """Distinct custom attribute names, in order of appearance."""
        seen: List[int] = []
        for attribute in self._attributes:
            if is_mesh_attribute_custom(attribute.name) and attribute.name not in seen:
                seen.append(attribute.name)
        return seen

    def with_attributes(self, attributes: Iterable[MeshAttributeData]) -> "MeshData":
        """New mesh with the same primitive, vertex count and indices."""
        return MeshData(self._primitive, list(attributes), self._vertex_count, self._indices)

    def equals(self, other: "MeshData") -> bool:
        if self._primitive != other.primitive or self._vertex_count != other.vertex_count:
            return False
        if self.is_indexed != other.is_indexed:
            return False
        if self.is_indexed and not np.array_equal(self._indices, other.indices):
            return False
        if self.attribute_count != other.attribute_count:
            return False
        for a, b in zip(self._attributes, other.attributes):
            if a.name != b.name or a.data.dtype != b.data.dtype or not np.array_equal(a.data, b.data):
                return False
        return True
