"""
Mesh package for ale_fsi.

This package provides the fluid-domain mesh:
- Mesh entities (Node, MeshElement, NodeSet, FacetSet)
- Mesh model (MeshModel)
- I/O functions

The gmsh-based ChannelCylinderMesh generator lives in
``ale_fsi.core.mesh.generators`` and is imported on demand.

Usage
-----
>>> from ale_fsi.core.mesh import MeshModel
>>> from ale_fsi.core.mesh.generators import ChannelCylinderMesh
>>> mesh = ChannelCylinderMesh(element_size=1.0, obstacle_element_size=0.1).generate()
>>> mesh.write_mesh("channel.msh")
>>> same_mesh = MeshModel.load("channel.msh")
"""

from ale_fsi.core.mesh.entities import (
    ELEMENT_NODES_MAP,
    ElementType,
    FacetSet,
    MeshElement,
    Node,
    NodeSet,
)
from ale_fsi.core.mesh.io import build_mesh_model, load_mesh, load_meshio, write_mesh, write_meshio
from ale_fsi.core.mesh.model import MeshModel

__all__ = [
    # Entities
    "Node",
    "MeshElement",
    "NodeSet",
    "FacetSet",
    "ElementType",
    "ELEMENT_NODES_MAP",
    # Model
    "MeshModel",
    # I/O
    "write_mesh",
    "write_meshio",
    "load_mesh",
    "load_meshio",
    "build_mesh_model",
]
