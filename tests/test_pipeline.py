import io
import logging

import numpy as np
import pytest

from scenepipe.adapters import MemoryImporter
from scenepipe.config import load_and_validate_config
from scenepipe.core import describe_mesh, print_info, run_pipeline
from scenepipe.errors import (
    ExitCode,
    FeatureMismatchError,
    IncompatiblePrimitivesError,
    MeshImportError,
    SourceOpenError,
)
from scenepipe.plugins.npz_format import NpzImporter, NpzSceneConverter
from scenepipe.trade import ContentMask, MeshAttribute, MeshData, MeshPrimitive, SceneData, SceneNode


def write_npz(importer, path):
    converter = NpzSceneConverter()
    converter.begin_file(str(path))
    converter.add_supported_importer_contents(importer, ContentMask())
    converter.end_file()
    return str(path)


def read_npz(path):
    importer = NpzImporter()
    importer.open_file(str(path))
    return importer


def options(source, output, **overrides):
    config = {'input': source, 'output': str(output) if output else None}
    config.update(overrides)
    return load_and_validate_config(config)


@pytest.fixture
def scene_file(tmp_path, scene_source):
    return write_npz(scene_source, tmp_path / "scene.npz")


def test_whole_scene_conversion(tmp_path, scene_file, quad):
    output = tmp_path / "out.npz"
    assert run_pipeline(options(scene_file, output)) == ExitCode.SUCCESS

    result = read_npz(output)
    assert result.mesh_count() == 2
    assert result.mesh(0).equals(quad)
    assert result.scene_count() == 1
    assert result.material_name(0) == "orange"


def test_concatenate_meshes_follows_scene(tmp_path, scene_file, quad, triangle):
    output = tmp_path / "joined.npz"
    run_pipeline(options(scene_file, output, concatenate_meshes=True))

    result = read_npz(output)
    assert result.mesh_count() == 1
    assert result.scene_count() == 0
    mesh = result.mesh(0)
    # Triangle from the root object first, then the quad of its child
    assert mesh.vertex_count == 7
    np.testing.assert_allclose(mesh.positions[:3], triangle.positions)
    np.testing.assert_allclose(mesh.positions[3:], quad.positions + [10, 0, 0])
    np.testing.assert_array_equal(mesh.indices, [0, 1, 2, 3, 4, 5, 3, 5, 6])
    # Attribute layout comes from the first mesh
    assert not mesh.has_attribute(MeshAttribute.NORMAL)


def test_concatenate_zero_scale_object(tmp_path, quad):
    scene = SceneData([
        SceneNode(0, meshes=[0]),
        SceneNode(1, transformation=np.diag([0.0, 0.0, 0.0, 1.0]), meshes=[0]),
    ])
    source = write_npz(MemoryImporter([quad], scenes=[scene], default_scene=0), tmp_path / "hidden.npz")
    output = tmp_path / "joined.npz"
    run_pipeline(options(source, output, concatenate_meshes=True))

    mesh = read_npz(output).mesh(0)
    assert mesh.vertex_count == 8
    np.testing.assert_array_equal(mesh.positions[4:], np.zeros((4, 3)))
    normals = mesh.attribute_by_name(MeshAttribute.NORMAL)
    np.testing.assert_allclose(normals[:4], quad.attribute_by_name(MeshAttribute.NORMAL))
    np.testing.assert_array_equal(normals[4:], np.zeros((4, 3)))


def test_concatenate_without_scene(tmp_path, quad, triangle):
    source = write_npz(MemoryImporter([quad, triangle]), tmp_path / "loose.npz")
    output = tmp_path / "joined.npz"
    run_pipeline(options(source, output, concatenate_meshes=True))

    mesh = read_npz(output).mesh(0)
    assert mesh.vertex_count == 7
    assert mesh.has_attribute(MeshAttribute.NORMAL)
    np.testing.assert_array_equal(mesh.attribute_by_name(MeshAttribute.NORMAL)[4:], np.zeros((3, 3)))


def test_concatenate_incompatible_primitives(tmp_path, triangle):
    lines = MeshData(MeshPrimitive.LINES, [(MeshAttribute.POSITION, np.zeros((2, 3), dtype=np.float32))])
    source = write_npz(MemoryImporter([triangle, lines]), tmp_path / "mixed.npz")

    with pytest.raises(IncompatiblePrimitivesError) as e:
        run_pipeline(options(source, tmp_path / "out.npz", concatenate_meshes=True))
    assert e.value.exit_code == ExitCode.CONVERSION_FAILED
    assert e.value.mesh == 1


def test_single_mesh_keeps_name(tmp_path, scene_file, triangle):
    output = tmp_path / "one.npz"
    run_pipeline(options(scene_file, output, mesh=1))

    result = read_npz(output)
    assert result.mesh_count() == 1
    assert result.mesh_name(0) == "triangle"
    assert result.mesh(0).equals(triangle)
    assert result.material_count() == 0


def test_single_mesh_out_of_range(tmp_path, scene_file):
    with pytest.raises(MeshImportError, match="Cannot import the mesh") as e:
        run_pipeline(options(scene_file, tmp_path / "one.npz", mesh=5))
    assert e.value.exit_code == ExitCode.IMPORT_FAILED


def test_only_mesh_attributes(tmp_path, scene_file):
    output = tmp_path / "filtered.npz"
    run_pipeline(options(scene_file, output, mesh=0, only_mesh_attributes="1"))

    mesh = read_npz(output).mesh(0)
    assert mesh.attribute_count == 1
    assert mesh.attribute_name(0) == MeshAttribute.NORMAL


def test_remove_duplicate_vertices(tmp_path):
    soup = MeshData(MeshPrimitive.TRIANGLES, [(MeshAttribute.POSITION, np.array(
        [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float32))])
    source = write_npz(MemoryImporter([soup], ["soup"]), tmp_path / "soup.npz")
    output = tmp_path / "welded.npz"
    run_pipeline(options(source, output, remove_duplicate_vertices=True))

    result = read_npz(output)
    mesh = result.mesh(0)
    assert mesh.vertex_count == 4
    np.testing.assert_array_equal(mesh.indices, [0, 1, 2, 0, 2, 3])
    assert result.mesh_name(0) == "soup"


def test_duplicates_removed_before_attribute_filter(tmp_path):
    # Vertices 0 and 1 differ only in the normal that gets filtered out
    mesh = MeshData(MeshPrimitive.TRIANGLES, [
        (MeshAttribute.POSITION, np.array([[0, 0, 0], [0, 0, 0], [1, 0, 0]], dtype=np.float32)),
        (MeshAttribute.NORMAL, np.array([[0, 0, 1], [0, 1, 0], [0, 0, 1]], dtype=np.float32))])
    source = write_npz(MemoryImporter([mesh]), tmp_path / "seam.npz")
    output = tmp_path / "out.npz"
    run_pipeline(options(source, output, mesh=0, only_mesh_attributes="0", remove_duplicate_vertices=True))

    result = read_npz(output).mesh(0)
    assert result.vertex_count == 3
    assert result.attribute_count == 1
    assert result.attribute_name(0) == MeshAttribute.POSITION


def test_fuzzy_duplicate_removal_logged(tmp_path, caplog):
    soup = MeshData(MeshPrimitive.TRIANGLES, [(MeshAttribute.POSITION, np.array(
        [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0.001, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float32))])
    source = write_npz(MemoryImporter([soup]), tmp_path / "soup.npz")
    output = tmp_path / "welded.npz"
    with caplog.at_level(logging.INFO):
        run_pipeline(options(source, output, remove_duplicate_vertices_fuzzy=0.01, verbose=True))

    assert "Mesh 0 fuzzy duplicate removal: 6 -> 4 vertices" in caplog.text
    assert read_npz(output).mesh(0).vertex_count == 4


def test_mesh_converter(tmp_path, triangle):
    source = write_npz(MemoryImporter([triangle]), tmp_path / "tri.npz")
    output = tmp_path / "normals.npz"
    run_pipeline(options(source, output, mesh_converters=[
        {'plugin': 'GenerateNormalsSceneConverter', 'options': {'flat': True}}]))

    mesh = read_npz(output).mesh(0)
    normals = mesh.attribute_by_name(MeshAttribute.NORMAL)
    assert normals.dtype == np.float32
    np.testing.assert_allclose(normals, [[0, 0, 1]] * 3)


def test_mesh_converter_without_mesh_conversion(tmp_path, scene_file):
    with pytest.raises(FeatureMismatchError) as e:
        run_pipeline(options(scene_file, tmp_path / "out.npz", mesh_converters=['NpzSceneConverter']))
    assert e.value.mesh == 0
    assert e.value.plugin == 'NpzSceneConverter'


def test_converter_chain_through_npz(tmp_path, scene_file, quad):
    output = tmp_path / "out.npz"
    run_pipeline(options(scene_file, output, converters=['NpzSceneConverter', 'NpzSceneConverter']))
    assert read_npz(output).mesh(0).equals(quad)


def test_memory_mapped_input(tmp_path, scene_file):
    output = tmp_path / "out.npz"
    assert run_pipeline(options(scene_file, output, map=True)) == ExitCode.SUCCESS
    assert read_npz(output).mesh_count() == 2


def test_memory_map_empty_file(tmp_path):
    empty = tmp_path / "empty.npz"
    empty.write_bytes(b"")
    with pytest.raises(SourceOpenError, match="Cannot memory-map"):
        run_pipeline(options(str(empty), tmp_path / "out.npz", map=True))


def test_missing_input(tmp_path):
    with pytest.raises(SourceOpenError) as e:
        run_pipeline(options(str(tmp_path / "nope.npz"), tmp_path / "out.npz"))
    assert e.value.exit_code == ExitCode.OPEN_FAILED


def test_profile_output(tmp_path, scene_file, caplog):
    with caplog.at_level(logging.INFO):
        run_pipeline(options(scene_file, tmp_path / "out.npz", profile=True))
    assert "Import and conversion took" in caplog.text


def test_info(tmp_path, scene_file, capsys, caplog):
    output = tmp_path / "ignored.npz"
    with caplog.at_level(logging.WARNING):
        assert run_pipeline(options(scene_file, output, info=True)) == ExitCode.SUCCESS

    printed = capsys.readouterr().out
    assert "Mesh 0: quad" in printed
    assert "Scene 0: main (default)" in printed
    assert "Object 1: parent 0, meshes 0" in printed
    assert "Material 0: orange" in printed
    assert "Ignoring output file for --info" in caplog.text
    assert not output.exists()


def test_info_selects_categories(scene_source):
    out = io.StringIO()
    print_info(scene_source, options("in.npz", None, info_scenes=True), out)
    printed = out.getvalue()
    assert "Scene 0" in printed
    assert "Mesh" not in printed
    assert "Material" not in printed


def test_info_mesh_references(quad, triangle):
    scene = SceneData([
        SceneNode(0, meshes=[1]),
        SceneNode(1, parent=0, meshes=[0]),
        SceneNode(2, parent=0, meshes=[0]),
    ])
    importer = MemoryImporter([quad, triangle], ["quad", "triangle"], scenes=[scene], default_scene=0)
    out = io.StringIO()
    print_info(importer, options("in.npz", None, info_meshes=True, info_scenes=True), out)
    printed = out.getvalue()
    assert "Mesh 0: quad, referenced by 2 objects" in printed
    assert "Mesh 1: triangle, referenced by 1 objects" in printed

    out = io.StringIO()
    print_info(importer, options("in.npz", None, info_meshes=True), out)
    assert "referenced" not in out.getvalue()


def test_info_empty_input():
    out = io.StringIO()
    print_info(MemoryImporter(), options("in.npz", None, info=True), out)
    assert out.getvalue() == "No data found.\n"


def test_describe_mesh(quad):
    lines = describe_mesh(quad, MemoryImporter([quad]), bounds=True)
    assert lines[0] == "triangles, 4 vertices, 6 indices"
    assert lines[1] == "POSITION @ float32x3, bounds {0, 0, 0} to {1, 1, 0}"
    assert lines[2].startswith("NORMAL @ float32x3")


def test_describe_custom_attribute(custom_quad):
    importer = MemoryImporter([custom_quad], attribute_names={3: "label"})
    assert describe_mesh(custom_quad, importer)[3] == "Custom(3) (label) @ int32x1"
