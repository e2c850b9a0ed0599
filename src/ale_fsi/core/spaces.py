"""
Lagrange function spaces over a quadratic triangle mesh.

A P2 space places one node per mesh node; a P1 space uses the geometric
(corner) nodes only. Vector spaces interleave components per node, so the
dof of component ``i`` at space node ``k`` is ``dim * k + i``.
"""

from typing import Callable, Optional, Union

import numpy as np

from ale_fsi.core.mesh import MeshModel
from ale_fsi.elements import TRI3, TRI6


class FunctionSpace:
    """
    Continuous Lagrange space of order 1 or 2.

    Parameters
    ----------
    mesh : MeshModel
        Mesh with ``triangle6`` cells.
    order : int
        Polynomial order (1 or 2).
    dim : int
        Number of field components (1 for scalars, 2 for vectors).

    Attributes
    ----------
    node_to_dof_node : np.ndarray
        For every mesh node, its space node index (-1 if the node carries
        no dof, i.e. a mid-side node of a P1 space).
    space_nodes : np.ndarray
        Mesh node index of every space node.
    """

    def __init__(self, mesh: MeshModel, order: int = 2, dim: int = 1):
        if order not in (1, 2):
            raise ValueError(f"Unsupported polynomial order: {order}. Must be 1 or 2.")
        if dim < 1:
            raise ValueError(f"Number of components must be positive: {dim}")

        self.mesh = mesh
        self.order = order
        self.dim = dim
        self.element = TRI6 if order == 2 else TRI3

        if order == 2:
            self.space_nodes = np.arange(mesh.node_count)
        else:
            self.space_nodes = mesh.vertex_indices
        self.node_to_dof_node = -np.ones(mesh.node_count, dtype=np.int64)
        self.node_to_dof_node[self.space_nodes] = np.arange(self.space_nodes.size)

    @property
    def node_count(self) -> int:
        return int(self.space_nodes.size)

    @property
    def size(self) -> int:
        """Total number of degrees of freedom."""
        return self.node_count * self.dim

    @property
    def cell_nodes(self) -> np.ndarray:
        """Space node indices per cell, shape (E, element.node_count)."""
        conn = self.mesh.connectivity[:, : self.element.node_count]
        return self.node_to_dof_node[conn]

    @property
    def cell_dofs(self) -> np.ndarray:
        """Global dofs per cell in (node, component) order, shape (E, n * dim)."""
        nodes = self.cell_nodes
        comps = np.arange(self.dim)
        return (self.dim * nodes[:, :, None] + comps[None, None, :]).reshape(len(nodes), -1)

    def dofs_on(self, boundary: Union[str, int], component: Optional[int] = None) -> np.ndarray:
        """
        Dofs carried by the nodes of a labelled boundary.

        Parameters
        ----------
        boundary : str or int
            Boundary name or integer label.
        component : int, optional
            Restrict to one component; all components if None.
        """
        return self.dofs_at_nodes(self.mesh.boundary_node_indices(boundary), component)

    def dofs_at_nodes(self, node_indices: np.ndarray, component: Optional[int] = None) -> np.ndarray:
        """Dofs carried by the given mesh nodes (nodes without dofs are skipped)."""
        space = self.node_to_dof_node[np.asarray(node_indices, dtype=np.int64)]
        space = space[space >= 0]
        comps = np.arange(self.dim) if component is None else np.array([component])
        return np.sort((self.dim * space[:, None] + comps[None, :]).ravel())

    def tabulate_dof_coordinates(self) -> np.ndarray:
        """Coordinates of the space nodes, shape (node_count, 2)."""
        return self.mesh.points[self.space_nodes]

    def interpolate(self, func: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
        """
        Nodal interpolant of ``func``.

        ``func`` receives the node coordinates (n, 2) and returns values of
        shape (n,) or (n, dim). The result is a flat dof vector.
        """
        values = np.asarray(func(self.tabulate_dof_coordinates()), dtype=float)
        return values.reshape(self.node_count, self.dim).ravel()

    def zeros(self) -> np.ndarray:
        return np.zeros(self.size)

    def as_nodal(self, values: np.ndarray) -> np.ndarray:
        """Reshape a flat dof vector to (node_count, dim)."""
        return np.asarray(values).reshape(self.node_count, self.dim)

    def __repr__(self):
        return f"<FunctionSpace P{self.order} dim={self.dim} dofs={self.size}>"
