"""
Mesh I/O readers module.

This module loads labelled quadratic triangle meshes (gmsh ``.msh`` and any
other format meshio understands) into a MeshModel.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Mapping, Tuple

import numpy as np

from ale_fsi.core.mesh.entities import ElementType, FacetSet, MeshElement, Node

if TYPE_CHECKING:
    from ale_fsi.core.mesh.model import MeshModel

logger = logging.getLogger(__name__)

PHYSICAL_TAG_KEYS = ("gmsh:physical", "medit:ref", "label")


def load_mesh(filepath: str) -> "MeshModel":
    """
    Load a mesh from disk.

    Parameters
    ----------
    filepath : str
        Path to the mesh file. Boundary facets must carry integer labels
        (gmsh physical tags or a ``label`` cell data array).

    Returns
    -------
    MeshModel
        A new MeshModel instance with cells, node sets and facet sets.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Mesh file not found: {filepath}")
    return load_meshio(str(path))


def load_meshio(filepath: str) -> "MeshModel":
    """
    Load a mesh using the meshio library.

    ``triangle6`` blocks become cells; ``line3`` blocks become boundary
    facets grouped by their integer tag. Group names come from the file's
    field data when present, otherwise ``boundary_<label>`` is used.
    """
    import meshio

    mio = meshio.read(filepath)

    names: Dict[int, str] = {}
    for name, data in mio.field_data.items():
        tag, dim = int(data[0]), int(data[1]) if len(data) > 1 else 1
        if dim == 1:
            names[tag] = name

    tag_key = next((key for key in PHYSICAL_TAG_KEYS if key in mio.cell_data), None)

    triangles = []
    facets_by_label: Dict[int, list] = {}
    for block_idx, cell_block in enumerate(mio.cells):
        if cell_block.type == "triangle6":
            triangles.append(cell_block.data)
        elif cell_block.type == "line3":
            if tag_key is None:
                raise ValueError(f"Boundary facets in {filepath} carry no integer labels.")
            tags = np.asarray(mio.cell_data[tag_key][block_idx]).astype(int)
            for label in np.unique(tags):
                facets_by_label.setdefault(int(label), []).append(cell_block.data[tags == label])
        elif cell_block.type in ("triangle", "line"):
            raise ValueError(
                f"Linear '{cell_block.type}' cells found in {filepath}; "
                "a second-order (triangle6/line3) mesh is required."
            )
        else:
            logger.debug("Skipping cell block '%s' from %s", cell_block.type, filepath)

    if not triangles:
        raise ValueError(f"No triangle6 cells found in {filepath}")

    facet_groups = {
        names.get(label, f"boundary_{label}"): (label, np.vstack(blocks))
        for label, blocks in facets_by_label.items()
    }

    mesh = build_mesh_model(mio.points, np.vstack(triangles), facet_groups)
    logger.info(
        "Mesh loaded from %s: %d nodes, %d cells, boundaries %s",
        filepath,
        mesh.node_count,
        mesh.elements_count,
        mesh.boundary_labels,
    )
    return mesh


def build_mesh_model(
    points: np.ndarray,
    triangles: np.ndarray,
    facet_groups: Mapping[str, Tuple[int, np.ndarray]],
) -> "MeshModel":
    """
    Build a MeshModel from raw arrays.

    Points not referenced by any cell are dropped and the remaining nodes
    are renumbered consecutively.

    Parameters
    ----------
    points : np.ndarray
        Node coordinates, shape (N, 2) or (N, 3).
    triangles : np.ndarray
        ``triangle6`` connectivity into ``points``, shape (E, 6).
    facet_groups : mapping
        Boundary name -> (integer label, ``line3`` connectivity (F, 3)).
    """
    from ale_fsi.core.mesh.model import MeshModel

    triangles = np.asarray(triangles, dtype=np.int64)
    used = np.unique(triangles)
    old_to_new = -np.ones(len(points), dtype=np.int64)
    old_to_new[used] = np.arange(used.size)

    corner = np.zeros(len(points), dtype=bool)
    corner[triangles[:, :3].ravel()] = True

    nodes = [Node(points[old], geometric_node=bool(corner[old])) for old in used]
    mesh = MeshModel(nodes=nodes)
    for conn in old_to_new[triangles]:
        mesh.add_element(MeshElement([nodes[i] for i in conn], ElementType.triangle6))

    for name, (label, facets) in facet_groups.items():
        facets = old_to_new[np.asarray(facets, dtype=np.int64)]
        if np.any(facets < 0):
            raise ValueError(f"Boundary '{name}' references nodes outside the cells.")
        facet_set = FacetSet(name, label)
        for conn in facets:
            facet_set.add_facet(MeshElement([nodes[i] for i in conn], ElementType.line3))
        mesh.add_facet_set(facet_set)

    return mesh.renumber()
