"""
Mesh I/O writers module.

This module writes a MeshModel, including its labelled boundary facets,
through meshio (gmsh, VTK, VTU, XDMF, ...).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import meshio
import numpy as np

if TYPE_CHECKING:
    from ale_fsi.core.mesh.model import MeshModel

logger = logging.getLogger(__name__)


def write_mesh(mesh: "MeshModel", filename: str, **kwargs) -> None:
    """
    Write the mesh to a file.

    The format is inferred by meshio from the file extension.

    Parameters
    ----------
    mesh : MeshModel
        The mesh to write.
    filename : str
        The path to the output file.
    **kwargs
        Additional arguments passed to ``meshio.write``.
    """
    if not mesh.nodes:
        raise ValueError("Mesh has no nodes.")
    if not mesh.elements:
        raise ValueError("Mesh has no elements.")

    Path(filename).parent.mkdir(parents=True, exist_ok=True)
    write_meshio(mesh, filename, **kwargs)


def write_meshio(mesh: "MeshModel", filename: str, **kwargs) -> None:
    """Write cells and labelled boundary facets using meshio."""
    cells = [("triangle6", mesh.connectivity)]
    labels = [np.zeros(mesh.elements_count, dtype=np.int32)]

    field_data = {}
    for name, facet_set in mesh.facet_sets.items():
        facets = mesh.facet_connectivity(name)
        if facets.size == 0:
            continue
        cells.append(("line3", facets))
        labels.append(np.full(len(facets), facet_set.label, dtype=np.int32))
        field_data[name] = np.array([facet_set.label, 1])

    cell_data = {"gmsh:physical": labels, "gmsh:geometrical": labels}
    if Path(filename).suffix.lower() == ".msh":
        kwargs.setdefault("file_format", "gmsh22")
        kwargs.setdefault("binary", False)
    mesh_io = meshio.Mesh(
        points=mesh.coords_array, cells=cells, cell_data=cell_data, field_data=field_data
    )
    meshio.write(filename, mesh_io, **kwargs)
    logger.info("Mesh written to %s", filename)
