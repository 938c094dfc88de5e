import numpy as np
import pytest

from scenepipe.scene_tools import flatten_mesh_hierarchy_3d
from scenepipe.trade import SceneData, SceneNode


def translation(x, y, z):
    matrix = np.eye(4)
    matrix[:3, 3] = [x, y, z]
    return matrix


def test_flatten_composes_parent_transformations():
    scene = SceneData([
        SceneNode(0, transformation=translation(1, 0, 0), meshes=[0]),
        SceneNode(1, parent=0, transformation=translation(0, 2, 0), meshes=[1, 2]),
        SceneNode(2, parent=1, transformation=np.diag([2.0, 2.0, 2.0, 1.0]), meshes=[0]),
    ])
    result = flatten_mesh_hierarchy_3d(scene)

    assert [(mesh, obj) for mesh, obj, _ in result] == [(0, 0), (1, 1), (2, 1), (0, 2)]
    np.testing.assert_allclose(result[1][2], translation(1, 2, 0))
    np.testing.assert_allclose(result[3][2][:3, 3], [1, 2, 0])
    np.testing.assert_allclose(np.diag(result[3][2])[:3], [2, 2, 2])


def test_flatten_depth_first_siblings_by_id():
    scene = SceneData([
        SceneNode(3, meshes=[3]),
        SceneNode(0, meshes=[0]),
        SceneNode(1, parent=0, meshes=[1]),
        SceneNode(2, parent=0, meshes=[2]),
    ])
    assert [mesh for mesh, _, _ in flatten_mesh_hierarchy_3d(scene)] == [0, 1, 2, 3]


def test_flatten_global_transformation():
    scene = SceneData([SceneNode(0, meshes=[0])])
    result = flatten_mesh_hierarchy_3d(scene, translation(0, 0, 5))
    np.testing.assert_allclose(result[0][2], translation(0, 0, 5))


def test_scene_validation():
    with pytest.raises(ValueError, match="Duplicate"):
        SceneData([SceneNode(0), SceneNode(0)])
    with pytest.raises(ValueError, match="unknown parent"):
        SceneData([SceneNode(0, parent=7)])
    with pytest.raises(ValueError, match="cycle"):
        SceneData([SceneNode(0, parent=1), SceneNode(1, parent=0)])
    with pytest.raises(ValueError, match="4x4"):
        SceneNode(0, transformation=np.eye(3))


def test_scene_queries():
    scene = SceneData([SceneNode(0, meshes=[2]), SceneNode(1, parent=0, meshes=[0, 2])])
    assert scene.object_count == 2
    assert scene.mesh_count == 3
    assert scene.referenced_meshes() == [0, 2]
    assert [n.object_id for n in scene.children(0)] == [1]
    assert [n.object_id for n in scene.roots()] == [0]
