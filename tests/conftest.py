"""
Shared fixtures: small synthetic meshes and fake converter plugins that
record what the pipeline feeds them.
"""
from typing import Dict, List

import numpy as np
import pytest

from scenepipe.adapters import (
    AbstractSceneConverter,
    MemoryImporter,
    PluginManager,
    SceneConverterFeature,
)
from scenepipe.trade import (
    MaterialData,
    MeshAttribute,
    MeshData,
    MeshPrimitive,
    SceneData,
    SceneNode,
    mesh_attribute_custom,
)


def make_quad(offset: float = 0.0) -> MeshData:
    """Indexed quad made of two triangles, with positions and normals."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float32) + offset
    normals = np.tile(np.array([0, 0, 1], dtype=np.float32), (4, 1))
    return MeshData(MeshPrimitive.TRIANGLES,
                    [(MeshAttribute.POSITION, positions), (MeshAttribute.NORMAL, normals)],
                    indices=[0, 1, 2, 0, 2, 3])


def make_triangle() -> MeshData:
    """Non-indexed triangle with positions only."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
    return MeshData(MeshPrimitive.TRIANGLES, [(MeshAttribute.POSITION, positions)])


@pytest.fixture
def quad():
    return make_quad()


@pytest.fixture
def triangle():
    return make_triangle()


@pytest.fixture
def custom_quad():
    """Quad with a custom per-vertex attribute, custom id 3."""
    mesh = make_quad()
    labels = np.array([[5], [6], [7], [8]], dtype=np.int32)
    return MeshData(mesh.primitive, list(mesh.attributes) + [(mesh_attribute_custom(3), labels)],
                    indices=mesh.indices)


@pytest.fixture
def scene_source(quad, triangle):
    """Two meshes, a two-level scene instancing them and one material."""
    translate = np.eye(4)
    translate[:3, 3] = [10, 0, 0]
    scene = SceneData([
        SceneNode(0, meshes=[1]),
        SceneNode(1, parent=0, transformation=translate, meshes=[0]),
    ])
    return MemoryImporter([quad, triangle], ["quad", "triangle"],
                          scenes=[scene], scene_names=["main"], default_scene=0,
                          materials=[MaterialData({'base_color': [1.0, 0.5, 0.0, 1.0]})],
                          material_names=["orange"])


class RecordingConverter(AbstractSceneConverter):
    """Accepts everything and remembers it. Files are 'written' into a
    class-level dict instead of the filesystem."""

    FEATURES = (SceneConverterFeature.CONVERT_MULTIPLE |
                SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE |
                SceneConverterFeature.ADD_MESHES |
                SceneConverterFeature.ADD_SCENES |
                SceneConverterFeature.ADD_MATERIALS)
    DEFAULT_CONFIGURATION = {'scale': 1.0}

    instances: List["RecordingConverter"] = []
    written: Dict[str, dict] = {}

    def __init__(self):
        super().__init__()
        self.calls: List[str] = []
        self.meshes: List[MeshData] = []
        self.mesh_names: List[str] = []
        self.scenes: List[SceneData] = []
        self.materials: List[MaterialData] = []
        RecordingConverter.instances.append(self)

    def do_begin(self):
        self.calls.append('begin')

    def do_begin_file(self, filename):
        self.calls.append('begin_file')

    def do_add_mesh(self, id, mesh, name):
        self.calls.append('add_mesh')
        scale = self.configuration['scale']
        if scale != 1.0:
            mesh = mesh.with_attributes([(a.name, a.data * scale) if a.name == MeshAttribute.POSITION
                                         else (a.name, a.data) for a in mesh.attributes])
        self.meshes.append(mesh)
        self.mesh_names.append(name)

    def do_add_scene(self, scene, name):
        self.calls.append('add_scene')
        self.scenes.append(scene)

    def do_add_material(self, material, name):
        self.calls.append('add_material')
        self.materials.append(material)

    def do_end(self):
        self.calls.append('end')
        return MemoryImporter(self.meshes, self.mesh_names, self.mesh_attribute_names,
                              self.scenes, None, -1, self.materials, None)

    def do_end_file(self, filename):
        self.calls.append('end_file')
        RecordingConverter.written[filename] = {
            'meshes': list(self.meshes),
            'names': list(self.mesh_names),
            'attribute_names': self.mesh_attribute_names,
            'scenes': list(self.scenes),
            'materials': list(self.materials),
        }


class MeshOnlyConverter(AbstractSceneConverter):
    """Converts a single mesh, translating it by one unit along X."""

    FEATURES = SceneConverterFeature.CONVERT_MESH
    instances: List["MeshOnlyConverter"] = []

    def __init__(self):
        super().__init__()
        self.converted = 0
        MeshOnlyConverter.instances.append(self)

    def do_convert(self, mesh):
        self.converted += 1
        return mesh.with_attributes([(a.name, a.data + 1.0) if a.name == MeshAttribute.POSITION
                                     else (a.name, a.data) for a in mesh.attributes])


class MeshFileConverter(AbstractSceneConverter):
    """Writes exactly one mesh into the class-level dict."""

    FEATURES = SceneConverterFeature.CONVERT_MESH_TO_FILE
    written: Dict[str, MeshData] = {}

    def do_convert_to_file(self, mesh, filename):
        MeshFileConverter.written[filename] = mesh


class FailingConverter(AbstractSceneConverter):
    """Fails every mesh conversion and every file finalization."""

    FEATURES = (SceneConverterFeature.CONVERT_MESH |
                SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE |
                SceneConverterFeature.ADD_MESHES)

    def do_convert(self, mesh):
        raise ValueError("conversion exploded")

    def do_add_mesh(self, id, mesh, name):
        pass

    def do_end_file(self, filename):
        raise OSError("disk full")


class SceneOnlyConverter(RecordingConverter):
    """Takes scenes but no meshes."""

    FEATURES = (SceneConverterFeature.CONVERT_MULTIPLE |
                SceneConverterFeature.CONVERT_MULTIPLE_TO_FILE |
                SceneConverterFeature.ADD_SCENES)


@pytest.fixture(autouse=True)
def reset_fakes():
    RecordingConverter.instances = []
    RecordingConverter.written = {}
    MeshOnlyConverter.instances = []
    MeshFileConverter.written = {}
    yield


@pytest.fixture
def converter_manager():
    """Converter plugins with the fakes registered and the implicit
    trailing converter replaced by RecordingConverter."""
    manager = PluginManager('converter')
    manager.register('RecordingConverter', RecordingConverter)
    manager.register('MeshOnlyConverter', MeshOnlyConverter)
    manager.register('MeshFileConverter', MeshFileConverter)
    manager.register('FailingConverter', FailingConverter)
    manager.register('SceneOnlyConverter', SceneOnlyConverter)
    manager.register('AnySceneConverter', RecordingConverter)
    return manager
