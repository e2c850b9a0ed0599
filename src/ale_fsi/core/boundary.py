"""
Line integrals over labelled boundaries of a quadratic triangle mesh.

Every boundary facet is matched with the cell that owns it, so integrands
can use values and gradients of the cell's fields (e.g. the traction
``(mu grad u - p I) . n`` on an obstacle).
"""

import logging
from typing import Callable, Dict, NamedTuple, Tuple, Union

import numpy as np

from ale_fsi.core.exceptions import SolverDivergenceError
from ale_fsi.core.mesh import MeshModel
from ale_fsi.elements import TRI3, TRI6, interval_rule

logger = logging.getLogger(__name__)


class FacetQuadrature(NamedTuple):
    """Quadrature data on the facets of one boundary, evaluated on the owning cells.

    cells : (F,) owning cell of every facet
    points : (F, Q, 2) physical quadrature points
    normals : (F, Q, 2) unit normals pointing out of the fluid domain
    weights : (F, Q) quadrature weights times the line element
    shape : (F, Q, 6) P2 shape functions of the owning cell
    grad : (F, Q, 6, 2) physical P2 shape gradients
    shape_p1 : (F, Q, 3) P1 shape functions of the owning cell
    """

    cells: np.ndarray
    points: np.ndarray
    normals: np.ndarray
    weights: np.ndarray
    shape: np.ndarray
    grad: np.ndarray
    shape_p1: np.ndarray


class BoundaryIntegrator:
    """
    Boundary integration on labelled facet sets.

    Parameters
    ----------
    mesh : MeshModel
        The computational mesh. Its topology must not change after
        construction; node coordinates may.
    n_points : int
        Number of Gauss points per facet.
    """

    def __init__(self, mesh: MeshModel, n_points: int = 3):
        self.mesh = mesh
        s, w = interval_rule(n_points)
        self._weights = w

        # Reference points along each local edge, traversed from its first to its second vertex
        ref = TRI3.nodes
        edges = TRI6.edges
        self._ref_points = np.stack(
            [(1.0 - s)[:, None] * ref[i] + s[:, None] * ref[j] for i, j, _ in edges]
        )
        self._ref_tangents = np.stack([ref[j] - ref[i] for i, j, _ in edges])
        self._shape = np.stack([TRI6.shape_functions(p) for p in self._ref_points])
        self._dshape = np.stack([TRI6.shape_gradients(p) for p in self._ref_points])
        self._shape_p1 = np.stack([TRI3.shape_functions(p) for p in self._ref_points])

        conn = mesh.connectivity
        self._edge_owner: Dict[Tuple[int, int], Tuple[int, int]] = {}
        for k, (i, j, _) in enumerate(edges):
            for cell, (a, b) in enumerate(zip(conn[:, i], conn[:, j])):
                self._edge_owner[(min(a, b), max(a, b))] = (cell, k)
        self._facet_cache: Dict[Union[str, int], Tuple[np.ndarray, np.ndarray]] = {}

    def facet_cells(self, boundary: Union[str, int]) -> Tuple[np.ndarray, np.ndarray]:
        """Owning cell and local edge index of every facet on a boundary."""
        if boundary not in self._facet_cache:
            facets = self.mesh.facet_connectivity(boundary)
            cells = np.empty(len(facets), dtype=np.int64)
            local = np.empty(len(facets), dtype=np.int64)
            for f, (a, b, _) in enumerate(facets):
                try:
                    cells[f], local[f] = self._edge_owner[(min(a, b), max(a, b))]
                except KeyError:
                    raise ValueError(
                        f"Facet ({a}, {b}) of boundary '{boundary}' is not an edge of any cell"
                    )
            self._facet_cache[boundary] = (cells, local)
        return self._facet_cache[boundary]

    def quadrature(self, boundary: Union[str, int]) -> FacetQuadrature:
        """Evaluate facet quadrature data on the current mesh coordinates."""
        cells, local = self.facet_cells(boundary)
        X = self.mesh.points[self.mesh.connectivity[cells]]
        dN = self._dshape[local]

        jac = np.einsum("fai,fqaj->fqij", X, dN)
        det = jac[..., 0, 0] * jac[..., 1, 1] - jac[..., 0, 1] * jac[..., 1, 0]
        if np.any(det == 0.0):
            raise SolverDivergenceError(f"Degenerate cell on boundary '{boundary}'")
        inv = np.empty_like(jac)
        inv[..., 0, 0] = jac[..., 1, 1]
        inv[..., 0, 1] = -jac[..., 0, 1]
        inv[..., 1, 0] = -jac[..., 1, 0]
        inv[..., 1, 1] = jac[..., 0, 0]
        inv /= det[..., None, None]

        tangent = np.einsum("fqij,fj->fqi", jac, self._ref_tangents[local])
        length = np.linalg.norm(tangent, axis=-1)
        # Edges run counter-clockwise on positively oriented cells
        normals = np.sign(det)[..., None] * np.stack([tangent[..., 1], -tangent[..., 0]], axis=-1)
        normals /= length[..., None]

        shape = self._shape[local]
        return FacetQuadrature(
            cells=cells,
            points=np.einsum("fqa,fai->fqi", shape, X),
            normals=normals,
            weights=self._weights[None, :] * length,
            shape=shape,
            grad=np.einsum("fqaj,fqji->fqai", dN, inv),
            shape_p1=self._shape_p1[local],
        )

    def measure(self, boundary: Union[str, int]) -> float:
        """Length of a boundary."""
        return float(np.sum(self.quadrature(boundary).weights))

    def integrate(
        self,
        boundary: Union[str, int],
        integrand: Callable[[np.ndarray, np.ndarray], np.ndarray],
    ):
        """
        Integrate ``integrand(points, normals)`` over a boundary.

        ``points`` and ``normals`` have shape (F, Q, 2); the integrand must
        return values of shape (F, Q) or (F, Q, k). The normals point out of
        the fluid domain.
        """
        quad = self.quadrature(boundary)
        values = np.asarray(integrand(quad.points, quad.normals), dtype=float)
        if values.ndim == 2:
            return float(np.sum(values * quad.weights))
        return np.einsum("fq...,fq->...", values, quad.weights)

    def traction_force(
        self,
        boundary: Union[str, int],
        velocity: np.ndarray,
        pressure: np.ndarray,
        mu: float,
        pressure_cell_nodes: np.ndarray,
    ) -> np.ndarray:
        """
        Resultant force of the fluid on a body boundary.

        Integrates ``(mu grad u - p I) . n`` with ``n`` the unit normal
        pointing out of the body into the fluid.

        Parameters
        ----------
        boundary : str or int
            The body boundary.
        velocity : np.ndarray
            Nodal P2 velocity, shape (N, 2).
        pressure : np.ndarray
            P1 pressure dof values.
        mu : float
            Dynamic viscosity.
        pressure_cell_nodes : np.ndarray
            P1 dof indices of every cell, shape (E, 3).

        Returns
        -------
        np.ndarray
            ``(F_x, F_y)``.
        """
        quad = self.quadrature(boundary)
        if quad.cells.size == 0:
            logger.warning("Boundary '%s' has no facets, force is zero", boundary)
            return np.zeros(2)

        u_cell = np.asarray(velocity).reshape(-1, 2)[self.mesh.connectivity[quad.cells]]
        grad_u = np.einsum("fai,fqaj->fqij", u_cell, quad.grad)
        p = np.einsum("fqa,fa->fq", quad.shape_p1, np.asarray(pressure)[pressure_cell_nodes[quad.cells]])

        n_body = -quad.normals
        traction = mu * np.einsum("fqij,fqj->fqi", grad_u, n_body) - p[..., None] * n_body
        return np.einsum("fqi,fq->i", traction, quad.weights)
