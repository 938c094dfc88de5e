"""
Mesh converter (re)generating vertex normals of triangle meshes.
"""
import numpy as np

from scenepipe.adapters.base_converter import AbstractSceneConverter, SceneConverterFeature
from scenepipe.mesh_tools import generate_flat_normals, generate_smooth_normals
from scenepipe.trade import MeshAttribute, MeshAttributeData, MeshData, MeshPrimitive


class GenerateNormalsSceneConverter(AbstractSceneConverter):
    """
    Replaces existing normals or adds them if the mesh has none.

    Smooth normals keep the index buffer. Flat normals need a distinct
    vertex per triangle corner, so the output is then non-indexed.
    """

    FEATURES = SceneConverterFeature.CONVERT_MESH
    DEFAULT_CONFIGURATION = {
        'flat': False,
    }

    def do_convert(self, mesh: MeshData) -> MeshData:
        if mesh.primitive != MeshPrimitive.TRIANGLES:
            raise ValueError(f"Expected a triangle mesh, got {mesh.primitive.value}")
        if not mesh.has_attribute(MeshAttribute.POSITION):
            raise ValueError("Mesh has no positions")
        if mesh.positions.shape[1] != 3:
            raise ValueError("Normals can be generated only for 3D positions")

        if self.configuration['flat']:
            if mesh.is_indexed:
                # Unindex all attributes
                order = mesh.indices.astype(np.int64)
                mesh = MeshData(mesh.primitive,
                                [MeshAttributeData(a.name, a.data[order]) for a in mesh.attributes],
                                len(order))
            normals = generate_flat_normals(mesh.positions)
        else:
            indices = mesh.indices if mesh.is_indexed else np.arange(mesh.vertex_count)
            normals = generate_smooth_normals(indices, mesh.positions)

        dtype = mesh.positions.dtype if np.issubdtype(mesh.positions.dtype, np.floating) else np.float32
        normals = normals.astype(dtype)
        attributes = [a for a in mesh.attributes if a.name != MeshAttribute.NORMAL]
        attributes.append(MeshAttributeData(MeshAttribute.NORMAL, normals))
        if self.verbose:
            self.logger.info(f"Generated {'flat' if self.configuration['flat'] else 'smooth'} "
                             f"normals for {mesh.vertex_count} vertices")
        return mesh.with_attributes(attributes)
