"""
Mesh entities module.

This module contains the building blocks of the fluid-domain mesh:
- Node: A point in the plane (stored padded to 3D)
- MeshElement: A cell or boundary facet defined by its nodes
- NodeSet: A named collection of nodes
- FacetSet: A labelled collection of boundary facets
"""

from enum import IntEnum
from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union

import numpy as np


class ElementType(IntEnum):
    """Enumeration of supported element types.

    Values correspond to VTK cell type constants, names to meshio cell types.
    """

    vertex = 1
    line = 3
    triangle = 5
    line3 = 21
    triangle6 = 22


# Mapping from node count to 2D cell type
ELEMENT_NODES_MAP = {
    3: ElementType.triangle,
    6: ElementType.triangle6,
}

# Mapping from node count to boundary facet type
FACET_NODES_MAP = {
    2: ElementType.line,
    3: ElementType.line3,
}

# Number of corner (geometric) nodes per element type
CORNER_NODES = {
    ElementType.vertex: 1,
    ElementType.line: 2,
    ElementType.line3: 2,
    ElementType.triangle: 3,
    ElementType.triangle6: 3,
}


class Node:
    """
    Represents a mesh node.

    Coordinates always include a z-value. If fewer than 3 coordinates are
    provided, zeros are appended.

    Attributes
    ----------
    coords : np.ndarray
        Array of coordinates in the form [x, y, z].
    id : int
        Unique identifier for the node.
    geometric_node : bool
        Whether this is a geometric (corner) node or a mid-side node.
        Linear (P1) fields live on geometric nodes only.
    """

    _id_counter = 0

    def __init__(
        self,
        coords: Union[Iterable[float], np.ndarray],
        geometric_node: bool = True,
        id: Optional[int] = None,
    ):
        coords_arr = np.array(coords, dtype=float)
        if coords_arr.size < 3:
            coords_arr = np.concatenate((coords_arr, np.zeros(3 - coords_arr.size)))
        self.coords = coords_arr
        self.geometric_node = geometric_node
        if id is None:
            id = Node._id_counter
            Node._id_counter += 1
        self.id = id

    @property
    def x(self) -> float:
        return self.coords[0]

    @property
    def y(self) -> float:
        return self.coords[1]

    @property
    def z(self) -> float:
        return self.coords[2]

    def __repr__(self):
        return f"<Node id={self.id} coords={self.coords.tolist()}>"


class MeshElement:
    """
    Represents a mesh cell or boundary facet defined by node connectivity.

    Node ordering follows the gmsh/meshio convention: corner nodes first,
    then mid-side nodes. For ``triangle6`` the mid-side nodes sit on the
    edges (0, 1), (1, 2) and (2, 0); for ``line3`` the mid node is last.

    Attributes
    ----------
    nodes : list of Node
        Nodes that form the element.
    id : int
        Unique identifier for the element.
    element_type : ElementType
        Type of the element.
    """

    _id_counter = 0

    def __init__(self, nodes: Sequence[Node], element_type: ElementType):
        self.id = MeshElement._id_counter
        self.nodes = list(nodes)
        self.element_type = element_type
        MeshElement._id_counter += 1

    @property
    def node_ids(self) -> Tuple[int, ...]:
        """Get tuple of node IDs for this element."""
        return tuple(node.id for node in self.nodes)

    @property
    def corner_ids(self) -> Tuple[int, ...]:
        """Get tuple of corner node IDs for this element."""
        return self.node_ids[: CORNER_NODES[self.element_type]]

    @property
    def node_count(self) -> int:
        """Get the number of nodes in this element."""
        return len(self.nodes)

    @property
    def node_coords(self) -> np.ndarray:
        """Get array of node coordinates for this element."""
        return np.array([node.coords for node in self.nodes])

    def __repr__(self):
        return f"<MeshElement id={self.id} type={self.element_type.name} node_ids={self.node_ids}>"


class NodeSet:
    """
    Represents a set of nodes within the mesh.

    Used to group nodes for applying boundary conditions.

    Attributes
    ----------
    name : str
        Name of the node set.
    nodes : dict
        Dictionary mapping node IDs to Node instances.
    """

    def __init__(self, name: str, nodes: Optional[Iterable[Node]] = None):
        self.name = name
        self.nodes = {node.id: node for node in nodes} if nodes is not None else {}

    def add_node(self, node: Node):
        """Add a node to the set if it is not already included."""
        self.nodes[node.id] = node

    @property
    def node_ids(self) -> Set[int]:
        """Set of node IDs in this set."""
        return set(self.nodes.keys())

    @property
    def node_count(self) -> int:
        """Number of nodes in the set."""
        return len(self.nodes)

    def __repr__(self):
        return f"<NodeSet '{self.name}': {self.node_count} nodes>"


class FacetSet:
    """
    Represents a labelled group of boundary facets.

    Boundary groups (inlet, outlet, walls, obstacle) are identified by a
    stable integer label and an optional human-readable name.

    Attributes
    ----------
    name : str
        Name of the boundary group.
    label : int
        Integer label of the boundary group (gmsh physical tag).
    facets : list of MeshElement
        Boundary facets (``line`` or ``line3`` elements).
    """

    def __init__(self, name: str, label: int, facets: Optional[Iterable[MeshElement]] = None):
        self.name = name
        self.label = int(label)
        self.facets: List[MeshElement] = list(facets) if facets is not None else []

    def add_facet(self, facet: MeshElement):
        """Append a boundary facet to the group."""
        self.facets.append(facet)

    @property
    def node_ids(self) -> Set[int]:
        """Set of node IDs touched by the facets of this group."""
        return {nid for facet in self.facets for nid in facet.node_ids}

    @property
    def facet_count(self) -> int:
        return len(self.facets)

    def to_node_set(self) -> NodeSet:
        """Build the node set spanned by this boundary group."""
        nodes = {node for facet in self.facets for node in facet.nodes}
        return NodeSet(self.name, nodes)

    def __repr__(self):
        return f"<FacetSet '{self.name}' (label={self.label}): {self.facet_count} facets>"
