"""
scenepipe - multi-stage 3D scene and mesh conversion pipeline.
"""
__version__ = "0.1.0"
