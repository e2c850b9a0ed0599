"""
MeshModel class module.

This module contains the MeshModel class that represents the fluid domain:
nodes, quadratic triangular cells, node sets and labelled boundary facets.
"""

from __future__ import annotations

import copy
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from ale_fsi.core.mesh.entities import ElementType, FacetSet, MeshElement, Node, NodeSet
from ale_fsi.core.mesh.io import load_mesh, write_mesh


class MeshModel:
    """
    Represents a mesh composed of nodes and connectivity elements.

    The model caches ID-to-index mappings and connectivity arrays for fast
    vectorised assembly. Boundary groups are kept both as labelled facet
    sets (for boundary integrals) and as node sets (for Dirichlet data).

    Attributes
    ----------
    nodes : list of Node
        Nodes of the mesh. Use add_node() to add new nodes.
    elements : list of MeshElement
        Two-dimensional cells of the mesh. Use add_element() to add new cells.
    node_map : dict
        Dictionary mapping node IDs to Node instances.
    node_sets : dict
        Dictionary mapping node set names to NodeSet instances.
    facet_sets : dict
        Dictionary mapping boundary names to FacetSet instances.
    """

    def __init__(
        self,
        nodes: Iterable[Node] | None = None,
        elements: Optional[List[MeshElement]] = None,
    ):
        self.nodes = list(nodes) if nodes is not None else []
        self.elements = list(elements) if elements is not None else []

        self.node_map: Dict[int, Node] = {}
        self.node_sets: Dict[str, NodeSet] = {}
        self.facet_sets: Dict[str, FacetSet] = {}

        for node in self.nodes:
            if node.id in self.node_map:
                raise ValueError(f"Duplicate node ID {node.id} in initial nodes list.")
            self.node_map[node.id] = node

        self._node_id_to_index_cache: Optional[Dict[int, int]] = None
        self._connectivity_cache: Optional[np.ndarray] = None
        self._coords_version = 0

    # =========================================================================
    # ID-to-Index Mapping
    # =========================================================================

    @property
    def node_id_to_index(self) -> Dict[int, int]:
        """Mapping from node IDs to consecutive array indices (0-based)."""
        if self._node_id_to_index_cache is None:
            self._node_id_to_index_cache = {node.id: idx for idx, node in enumerate(self.nodes)}
        return self._node_id_to_index_cache

    def node_indices(self, node_ids: Iterable[int]) -> np.ndarray:
        """Sorted array indices of the given node IDs."""
        lookup = self.node_id_to_index
        return np.array(sorted(lookup[nid] for nid in node_ids), dtype=np.int64)

    def renumber(self) -> "MeshModel":
        """Assign node and element IDs equal to their array indices."""
        for new_id, node in enumerate(self.nodes):
            node.id = new_id
        for new_id, element in enumerate(self.elements):
            element.id = new_id

        self.node_map = {node.id: node for node in self.nodes}
        for node_set in self.node_sets.values():
            node_set.nodes = {node.id: node for node in node_set.nodes.values()}
        self._invalidate()
        return self

    def _invalidate(self) -> None:
        self._node_id_to_index_cache = None
        self._connectivity_cache = None

    # =========================================================================
    # Add/Get Methods
    # =========================================================================

    def add_node(self, node: Node):
        """Add a node to the mesh and update the cache."""
        if node.id in self.node_map:
            raise ValueError(f"Node with id {node.id} already exists.")
        self.nodes.append(node)
        self.node_map[node.id] = node
        self._invalidate()

    def add_element(self, element: MeshElement):
        """Add a cell to the mesh and update the cache."""
        if element.element_type != ElementType.triangle6:
            raise ValueError(
                f"Only triangle6 cells are supported, got {element.element_type.name}."
            )
        self.elements.append(element)
        self._connectivity_cache = None

    def add_node_set(self, node_set: NodeSet):
        """Add a node set to the mesh."""
        if node_set.name in self.node_sets:
            raise ValueError(f"NodeSet '{node_set.name}' already exists.")
        self.node_sets[node_set.name] = node_set

    def add_facet_set(self, facet_set: FacetSet, with_node_set: bool = True):
        """Add a labelled boundary group (and its node set) to the mesh."""
        if facet_set.name in self.facet_sets:
            raise ValueError(f"FacetSet '{facet_set.name}' already exists.")
        if any(fs.label == facet_set.label for fs in self.facet_sets.values()):
            raise ValueError(f"Boundary label {facet_set.label} already in use.")
        self.facet_sets[facet_set.name] = facet_set
        if with_node_set and facet_set.name not in self.node_sets:
            self.add_node_set(facet_set.to_node_set())

    def get_node_by_id(self, node_id: int) -> Node:
        """Retrieve a node by its ID."""
        try:
            return self.node_map[node_id]
        except KeyError:
            raise ValueError(f"Node with id {node_id} not found.")

    def get_node_set(self, name: str) -> NodeSet:
        """Retrieve a node set by its name."""
        try:
            return self.node_sets[name]
        except KeyError:
            raise ValueError(f"NodeSet '{name}' not found.")

    def get_facet_set(self, key: Union[str, int]) -> FacetSet:
        """Retrieve a boundary group by name or integer label."""
        if isinstance(key, str):
            try:
                return self.facet_sets[key]
            except KeyError:
                raise ValueError(
                    f"Boundary '{key}' not found. Available: {self.boundary_labels}"
                )
        for facet_set in self.facet_sets.values():
            if facet_set.label == int(key):
                return facet_set
        raise ValueError(f"Boundary label {key} not found. Available: {self.boundary_labels}")

    def boundary_node_indices(self, key: Union[str, int]) -> np.ndarray:
        """Array indices of all nodes on a boundary group."""
        return self.node_indices(self.get_facet_set(key).node_ids)

    @property
    def boundary_labels(self) -> Dict[str, int]:
        """Boundary group names mapped to their integer labels."""
        return {name: fs.label for name, fs in self.facet_sets.items()}

    # =========================================================================
    # I/O Methods
    # =========================================================================

    def write_mesh(self, filename: str, **kwargs) -> None:
        """
        Write the mesh to a file.

        Dispatches to the appropriate writer based on file extension.
        """
        write_mesh(self, filename, **kwargs)

    @classmethod
    def load(cls, filepath: str) -> "MeshModel":
        """Load a labelled quadratic triangle mesh from disk."""
        return load_mesh(filepath)

    # =========================================================================
    # Displacement Field Application
    # =========================================================================

    def apply_displacement_field(
        self,
        displacements: np.ndarray,
        scale: float = 1.0,
        dofs_per_node: int = None,
        inplace: bool = True,
    ) -> "MeshModel":
        """
        Move the nodes by a displacement field.

        The displacement is relative to the current node positions, so
        repeated calls accumulate.

        Parameters
        ----------
        displacements : np.ndarray
            Nodal displacements, either flat (node-interleaved) or of shape
            (n_nodes, dofs_per_node).
        scale : float, optional
            Scale factor for displacements. Default is 1.0.
        dofs_per_node : int, optional
            Number of DOFs per node in a flat displacement array.
        inplace : bool, optional
            If True (default), modify this mesh in place.

        Returns
        -------
        MeshModel
            The moved mesh (self if inplace=True, a new mesh otherwise).
        """
        n_nodes = len(self.nodes)
        displacements = np.asarray(displacements, dtype=np.float64)

        if displacements.ndim == 1:
            if dofs_per_node is None:
                if displacements.size % n_nodes != 0:
                    raise ValueError(
                        f"Displacement array size ({displacements.size}) is not divisible "
                        f"by number of nodes ({n_nodes}). Please specify dofs_per_node."
                    )
                dofs_per_node = displacements.size // n_nodes
            displacements = displacements.reshape(n_nodes, dofs_per_node)
        elif displacements.ndim == 2:
            if displacements.shape[0] != n_nodes:
                raise ValueError(
                    f"Displacement array has {displacements.shape[0]} rows, "
                    f"but mesh has {n_nodes} nodes."
                )
        else:
            raise ValueError(f"Displacement array must be 1D or 2D, got {displacements.ndim}D.")

        uvw = displacements[:, :3]
        if uvw.shape[1] < 3:
            uvw = np.hstack([uvw, np.zeros((n_nodes, 3 - uvw.shape[1]))])

        deformed_coords = self.coords_array + scale * uvw

        if inplace:
            self.coords_array = deformed_coords
            return self

        new_mesh = copy.deepcopy(self)
        new_mesh.coords_array = deformed_coords
        return new_mesh

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def node_count(self) -> int:
        """Number of nodes in the mesh."""
        return len(self.nodes)

    @property
    def elements_count(self) -> int:
        """Number of cells in the mesh."""
        return len(self.elements)

    @property
    def coords_array(self) -> np.ndarray:
        """Numpy array (N, 3) containing all nodal coordinates."""
        return np.array([node.coords for node in self.nodes])

    @coords_array.setter
    def coords_array(self, value: np.ndarray) -> None:
        """Sets nodal coordinates from a numpy array."""
        if value.shape != (len(self.nodes), 3):
            raise ValueError("Array must have shape (N, 3)")
        for i, node in enumerate(self.nodes):
            node.coords = np.array(value[i], dtype=float)
        self._coords_version += 1

    @property
    def coords_version(self) -> int:
        """Counter bumped every time the node coordinates are replaced."""
        return self._coords_version

    @property
    def points(self) -> np.ndarray:
        """In-plane nodal coordinates, shape (N, 2)."""
        return self.coords_array[:, :2]

    @property
    def connectivity(self) -> np.ndarray:
        """Cell connectivity as node array indices, shape (E, 6)."""
        if self._connectivity_cache is None:
            lookup = self.node_id_to_index
            self._connectivity_cache = np.array(
                [[lookup[nid] for nid in el.node_ids] for el in self.elements],
                dtype=np.int64,
            ).reshape(-1, 6)
        return self._connectivity_cache

    @property
    def vertex_indices(self) -> np.ndarray:
        """Array indices of the geometric (corner) nodes, in node order."""
        return np.array(
            [idx for idx, node in enumerate(self.nodes) if node.geometric_node], dtype=np.int64
        )

    def facet_connectivity(self, key: Union[str, int]) -> np.ndarray:
        """Boundary facet connectivity as node array indices, shape (F, 3)."""
        lookup = self.node_id_to_index
        facets = self.get_facet_set(key).facets
        if not facets:
            return np.empty((0, 3), dtype=np.int64)
        return np.array(
            [[lookup[nid] for nid in facet.node_ids] for facet in facets], dtype=np.int64
        ).reshape(len(facets), -1)

    def bounding_box(self) -> Tuple[np.ndarray, np.ndarray]:
        """Lower-left and upper-right corners of the mesh."""
        pts = self.points
        return pts.min(axis=0), pts.max(axis=0)

    def __repr__(self) -> str:
        return (
            f"<MeshModel: {self.node_count} nodes, {self.elements_count} elements, "
            f"{len(self.facet_sets)} boundary groups>"
        )
