from .flatten import flatten_mesh_hierarchy_3d

__all__ = ['flatten_mesh_hierarchy_3d']
