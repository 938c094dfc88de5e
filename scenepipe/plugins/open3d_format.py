#!/usr/bin/env python3
"""
Mesh and point cloud files through Open3D - PLY, OBJ, STL, OFF, glTF.

The plugin manager imports this module only when one of its plugins is
requested, so the rest of the pipeline works without open3d installed.
"""
import logging
from pathlib import Path
from typing import Optional

import numpy as np
import open3d as o3d

from scenepipe.adapters.base_converter import AbstractSceneConverter, SceneConverterFeature
from scenepipe.adapters.memory_importer import MemoryImporter
from scenepipe.trade import MeshAttribute, MeshData, MeshPrimitive

logger = logging.getLogger(__name__)


def load_mesh(path: Path) -> MeshData:
    """Load a triangle mesh, falling back to a point cloud when the file has no faces."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"No such file: {path}")

    mesh = o3d.io.read_triangle_mesh(str(path))
    if len(mesh.triangles):
        attributes = [(MeshAttribute.POSITION, np.asarray(mesh.vertices, dtype=np.float32))]
        if mesh.has_vertex_normals():
            attributes.append((MeshAttribute.NORMAL, np.asarray(mesh.vertex_normals, dtype=np.float32)))
        if mesh.has_vertex_colors():
            attributes.append((MeshAttribute.COLOR, np.asarray(mesh.vertex_colors, dtype=np.float32)))
        indices = np.asarray(mesh.triangles, dtype=np.uint32).reshape(-1)
        logger.info(f"Loaded: {path.name} - {len(mesh.vertices):,} verts, {len(mesh.triangles):,} tris")
        return MeshData(MeshPrimitive.TRIANGLES, attributes, indices=indices)

    cloud = o3d.io.read_point_cloud(str(path))
    if not len(cloud.points):
        raise ValueError(f"No geometry found in {path.name}")
    attributes = [(MeshAttribute.POSITION, np.asarray(cloud.points, dtype=np.float32))]
    if cloud.has_normals():
        attributes.append((MeshAttribute.NORMAL, np.asarray(cloud.normals, dtype=np.float32)))
    if cloud.has_colors():
        attributes.append((MeshAttribute.COLOR, np.asarray(cloud.colors, dtype=np.float32)))
    logger.info(f"Loaded: {path.name} - {len(cloud.points):,} points")
    return MeshData(MeshPrimitive.POINTS, attributes)


def _vectors(mesh: MeshData, name: MeshAttribute) -> Optional[object]:
    i = mesh.attribute_id(name)
    if i is None:
        return None
    data = mesh.attribute(i)
    if data.shape[1] < 3:
        return None
    return o3d.utility.Vector3dVector(np.ascontiguousarray(data[:, :3], dtype=np.float64))


def save_mesh(mesh: MeshData, output_path: Path, write_ascii: bool = False, compressed: bool = False,
              write_vertex_normals: bool = True, write_vertex_colors: bool = True) -> None:
    """Save a triangle mesh or a point cloud, format given by the file extension."""
    output_path = Path(output_path)
    if not mesh.has_attribute(MeshAttribute.POSITION):
        raise ValueError("Mesh has no positions")
    positions = mesh.positions
    if positions.shape[1] != 3:
        raise ValueError(f"Expected 3D positions, got {positions.shape[1]} components")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    points = o3d.utility.Vector3dVector(positions.astype(np.float64))
    normals = _vectors(mesh, MeshAttribute.NORMAL) if write_vertex_normals else None
    colors = _vectors(mesh, MeshAttribute.COLOR) if write_vertex_colors else None

    if mesh.primitive == MeshPrimitive.TRIANGLES:
        indices = mesh.indices if mesh.is_indexed else np.arange(mesh.vertex_count, dtype=np.uint32)
        if len(indices) % 3:
            raise ValueError(f"Index count {len(indices)} is not a multiple of 3")
        geometry = o3d.geometry.TriangleMesh(points, o3d.utility.Vector3iVector(
            indices.reshape(-1, 3).astype(np.int32)))
        if normals is not None:
            geometry.vertex_normals = normals
        if colors is not None:
            geometry.vertex_colors = colors
        ok = o3d.io.write_triangle_mesh(str(output_path), geometry, write_ascii=write_ascii,
                                        compressed=compressed, write_vertex_normals=normals is not None,
                                        write_vertex_colors=colors is not None)
    elif mesh.primitive == MeshPrimitive.POINTS:
        geometry = o3d.geometry.PointCloud(points)
        if normals is not None:
            geometry.normals = normals
        if colors is not None:
            geometry.colors = colors
        ok = o3d.io.write_point_cloud(str(output_path), geometry, write_ascii=write_ascii, compressed=compressed)
    else:
        raise ValueError(f"Can't save {mesh.primitive.value} meshes, only triangles and points")

    if not ok:
        raise OSError(f"Cannot write {output_path}")
    logger.info(f"Saved: {output_path.name} ({mesh.vertex_count:,} verts)")


class Open3DImporter(MemoryImporter):
    """Exposes the file as a single mesh."""

    def __init__(self):
        super().__init__(opened=False)

    def do_open_file(self, path: str) -> None:
        mesh = load_mesh(Path(path))
        self._set_contents([mesh], [Path(path).stem], None, (), None, -1, (), None)
        self._opened = True


class Open3DSceneConverter(AbstractSceneConverter):
    """Writes a single triangle or point mesh to a file."""

    FEATURES = SceneConverterFeature.CONVERT_MESH_TO_FILE
    DEFAULT_CONFIGURATION = {
        'write_ascii': False,
        'compressed': False,
        'write_vertex_normals': True,
        'write_vertex_colors': True,
    }

    def do_convert_to_file(self, mesh: MeshData, filename: str) -> None:
        config = self.configuration
        save_mesh(mesh, Path(filename),
                  write_ascii=bool(config['write_ascii']),
                  compressed=bool(config['compressed']),
                  write_vertex_normals=bool(config['write_vertex_normals']),
                  write_vertex_colors=bool(config['write_vertex_colors']))
