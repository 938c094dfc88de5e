import numpy as np
import pytest

from scenepipe.errors import ConversionError, IncompatiblePrimitivesError, MeshDataError
from scenepipe.mesh_tools import (
    concatenate,
    filter_only_attributes,
    generate_flat_normals,
    generate_smooth_normals,
    remove_duplicates,
    remove_duplicates_fuzzy,
    transform_3d,
)
from scenepipe.trade import MeshAttribute, MeshData, MeshPrimitive


def test_remove_duplicates_keeps_connectivity():
    mesh = MeshData(MeshPrimitive.TRIANGLES,
                    [(MeshAttribute.POSITION, np.array([[0, 0, 0], [0, 0, 0], [1, 0, 0]], dtype=np.float32))],
                    indices=[0, 1, 2])
    result = remove_duplicates(mesh)

    assert result.vertex_count == 2
    assert result.indices.tolist() == [0, 0, 1]
    np.testing.assert_array_equal(result.positions[result.indices], mesh.positions[mesh.indices])


def test_remove_duplicates_indexes_non_indexed_mesh():
    positions = np.array([[0, 0, 0], [1, 0, 0], [0, 0, 0], [1, 0, 0]], dtype=np.float32)
    result = remove_duplicates(MeshData(MeshPrimitive.LINES, [(MeshAttribute.POSITION, positions)]))
    assert result.is_indexed
    assert result.indices.tolist() == [0, 1, 0, 1]
    assert result.vertex_count == 2


def test_remove_duplicates_considers_all_attributes():
    positions = np.zeros((2, 3), dtype=np.float32)
    normals = np.array([[0, 0, 1], [0, 1, 0]], dtype=np.float32)
    mesh = MeshData(MeshPrimitive.POINTS, [(MeshAttribute.POSITION, positions), (MeshAttribute.NORMAL, normals)])
    assert remove_duplicates(mesh).vertex_count == 2


def test_remove_duplicates_fuzzy():
    positions = np.array([[0, 0, 0], [0.0005, 0, 0], [1, 0, 0], [1, 0.0004, 0]], dtype=np.float32)
    mesh = MeshData(MeshPrimitive.LINES, [(MeshAttribute.POSITION, positions)], indices=[0, 2, 1, 3])
    result = remove_duplicates_fuzzy(mesh, 0.001)

    assert result.vertex_count == 2
    assert result.indices.tolist() == [0, 1, 0, 1]
    # Merged vertices take the value of the first one
    np.testing.assert_array_equal(result.positions, positions[[0, 2]])


def test_remove_duplicates_fuzzy_integer_attributes_match_exactly():
    positions = np.array([[0, 0, 0], [0.0001, 0, 0]], dtype=np.float32)
    ids = np.array([1, 2], dtype=np.uint32)
    mesh = MeshData(MeshPrimitive.POINTS, [(MeshAttribute.POSITION, positions), (MeshAttribute.OBJECT_ID, ids)])
    assert remove_duplicates_fuzzy(mesh, 0.01).vertex_count == 2


def test_remove_duplicates_fuzzy_negative_epsilon(quad):
    with pytest.raises(ValueError):
        remove_duplicates_fuzzy(quad, -1.0)


def test_concatenate_in_order_with_first_mesh_attributes(quad, triangle):
    result = concatenate([quad, triangle])

    assert result.vertex_count == 7
    assert [a.name for a in result.attributes] == [MeshAttribute.POSITION, MeshAttribute.NORMAL]
    np.testing.assert_array_equal(result.positions[:4], quad.positions)
    np.testing.assert_array_equal(result.positions[4:], triangle.positions)
    # Missing normals are zero-filled
    np.testing.assert_array_equal(result.attribute_by_name(MeshAttribute.NORMAL)[4:], np.zeros((3, 3)))
    assert result.indices.tolist() == [0, 1, 2, 0, 2, 3, 4, 5, 6]


def test_concatenate_drops_attributes_of_later_meshes(quad, triangle):
    result = concatenate([triangle, quad])
    assert [a.name for a in result.attributes] == [MeshAttribute.POSITION]
    assert result.vertex_count == 7


def test_concatenate_incompatible_primitives(triangle):
    lines = MeshData(MeshPrimitive.LINES, [(MeshAttribute.POSITION, np.zeros((2, 3), dtype=np.float32))])
    with pytest.raises(IncompatiblePrimitivesError) as e:
        concatenate([triangle, lines])
    assert e.value.mesh == 1


def test_concatenate_strips_are_rejected():
    strip = MeshData(MeshPrimitive.TRIANGLE_STRIP, [(MeshAttribute.POSITION, np.zeros((4, 3)))])
    with pytest.raises(IncompatiblePrimitivesError):
        concatenate([strip, strip])


def test_concatenate_nothing():
    with pytest.raises(ConversionError):
        concatenate([])


def test_transform_3d(quad):
    matrix = np.diag([2.0, 1.0, 1.0, 1.0])
    matrix[:3, 3] = [1, 2, 3]
    result = transform_3d(quad, matrix)

    np.testing.assert_allclose(result.positions[1], [3, 2, 3])
    assert result.positions.dtype == np.float32
    np.testing.assert_allclose(result.attribute_by_name(MeshAttribute.NORMAL), quad.attribute_by_name(MeshAttribute.NORMAL))
    assert result.indices.tolist() == quad.indices.tolist()


def test_transform_3d_normals_use_inverse_transpose():
    normals = np.array([[1, 1, 0]], dtype=np.float64) / np.sqrt(2)
    mesh = MeshData(MeshPrimitive.POINTS, [(MeshAttribute.POSITION, np.zeros((1, 3))),
                                           (MeshAttribute.NORMAL, normals)])
    result = transform_3d(mesh, np.diag([2.0, 1.0, 1.0, 1.0]))
    expected = np.array([0.5, 1.0, 0.0]) / np.linalg.norm([0.5, 1.0, 0.0])
    np.testing.assert_allclose(result.attribute_by_name(MeshAttribute.NORMAL)[0], expected)


def test_transform_3d_requires_3d_positions():
    mesh = MeshData(MeshPrimitive.POINTS, [(MeshAttribute.POSITION, np.zeros((2, 2)))])
    with pytest.raises(MeshDataError):
        transform_3d(mesh, np.eye(4))


def test_filter_only_attributes(quad):
    result = filter_only_attributes(quad, [1])
    assert [a.name for a in result.attributes] == [MeshAttribute.NORMAL]
    assert result.vertex_count == 4
    assert result.indices.tolist() == quad.indices.tolist()
    with pytest.raises(IndexError):
        filter_only_attributes(quad, [2])


def test_generate_flat_normals(triangle):
    normals = generate_flat_normals(triangle.positions)
    np.testing.assert_allclose(normals, np.tile([0, 0, 1], (3, 1)))


def test_generate_smooth_normals_shared_vertices():
    # Two triangles folded 90 degrees along the shared edge 0-1
    positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]], dtype=np.float64)
    normals = generate_smooth_normals(np.array([0, 1, 2, 0, 3, 1]), positions)

    np.testing.assert_allclose(normals[2], [0, 0, 1], atol=1e-7)
    np.testing.assert_allclose(normals[3], [0, 1, 0], atol=1e-7)
    np.testing.assert_allclose(normals[0], np.array([0, 1, 1]) / np.sqrt(2), atol=1e-7)


def test_transform_3d_zero_scale(quad):
    result = transform_3d(quad, np.diag([0.0, 0.0, 0.0, 1.0]))
    np.testing.assert_array_equal(result.positions, np.zeros((4, 3)))
    np.testing.assert_array_equal(result.attribute_by_name(MeshAttribute.NORMAL), np.zeros((4, 3)))
