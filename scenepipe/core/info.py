"""
Human-readable summary of a content source, for --info and friends.
"""
import sys
from typing import List, TextIO

import numpy as np

from scenepipe.adapters import AbstractImporter
from scenepipe.config import ConverterOptions
from scenepipe.trade import MeshData, attribute_display_name, is_mesh_attribute_custom, mesh_attribute_custom_id


def _format_vector(values: np.ndarray) -> str:
    return "{" + ", ".join(f"{v:g}" for v in values) + "}"


def describe_mesh(mesh: MeshData, importer: AbstractImporter, bounds: bool = False) -> List[str]:
    lines = []
    indices = f", {mesh.index_count} indices" if mesh.is_indexed else ""
    lines.append(f"{mesh.primitive.value}, {mesh.vertex_count} vertices{indices}")
    for attribute in mesh.attributes:
        name = attribute_display_name(attribute.name)
        if is_mesh_attribute_custom(attribute.name):
            custom_name = importer.mesh_attribute_name(mesh_attribute_custom_id(attribute.name))
            if custom_name:
                name += f" ({custom_name})"
        line = f"{name} @ {attribute.data.dtype.name}x{attribute.components}"
        if bounds and mesh.vertex_count:
            line += (f", bounds {_format_vector(attribute.data.min(axis=0))} to "
                     f"{_format_vector(attribute.data.max(axis=0))}")
        lines.append(line)
    return lines


def _mesh_references(importer: AbstractImporter) -> List[int]:
    """Count objects referencing each mesh, over all scenes."""
    references = [0] * importer.mesh_count()
    for i in range(importer.scene_count()):
        for node in importer.scene(i).nodes:
            for mesh in set(node.meshes):
                if 0 <= mesh < len(references):
                    references[mesh] += 1
    return references


def print_info(importer: AbstractImporter, options: ConverterOptions, out: TextIO = None) -> None:
    """Print meshes, scenes and materials of importer, as selected by options."""
    out = out or sys.stdout
    everything = options.info

    if everything or options.info_meshes:
        references = _mesh_references(importer) if everything or options.info_scenes else None
        for i in range(importer.mesh_count()):
            name = importer.mesh_name(i)
            header = f"Mesh {i}:" + (f" {name}" if name else "")
            if references is not None:
                header += f", referenced by {references[i]} objects"
            print(header, file=out)
            for level in range(importer.mesh_level_count(i)):
                lines = describe_mesh(importer.mesh(i, level), importer, options.bounds)
                prefix = f"  Level {level}: " if importer.mesh_level_count(i) > 1 else "  "
                print(prefix + lines[0], file=out)
                for line in lines[1:]:
                    print(f"    {line}", file=out)

    if everything or options.info_scenes:
        default_scene = importer.default_scene()
        for i in range(importer.scene_count()):
            scene = importer.scene(i)
            name = importer.scene_name(i)
            flags = " (default)" if i == default_scene else ""
            print(f"Scene {i}:" + (f" {name}" if name else "") + flags, file=out)
            print(f"  {scene.object_count} objects, {scene.mesh_count} mesh references", file=out)
            for node in scene.nodes:
                meshes = ", ".join(str(m) for m in node.meshes) or "none"
                print(f"    Object {node.object_id}: parent {node.parent}, meshes {meshes}", file=out)

    if everything or options.info_materials:
        for i in range(importer.material_count()):
            material = importer.material(i)
            name = importer.material_name(i)
            print(f"Material {i}:" + (f" {name}" if name else ""), file=out)
            for key in sorted(material.attributes):
                print(f"    {key}: {material[key]!r}", file=out)

    if everything and not (importer.mesh_count() or importer.scene_count() or importer.material_count()):
        print("No data found.", file=out)
