"""
Mesh I/O subpackage.

This package provides functions for reading and writing meshes.
"""

from ale_fsi.core.mesh.io.readers import build_mesh_model, load_mesh, load_meshio
from ale_fsi.core.mesh.io.writers import write_mesh, write_meshio

__all__ = [
    # Writers
    "write_mesh",
    "write_meshio",
    # Readers
    "load_mesh",
    "load_meshio",
    "build_mesh_model",
]
