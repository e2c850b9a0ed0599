from typing import NamedTuple

import numpy as np
import scipy.sparse as sp

from ale_fsi.core.exceptions import SolverDivergenceError
from ale_fsi.core.mesh import MeshModel
from ale_fsi.core.spaces import FunctionSpace
from ale_fsi.elements import TRI3, TRI6, triangle_rule


class CellGeometry(NamedTuple):
    """Isoparametric geometry of all cells at the quadrature points.

    weights : (E, Q) quadrature weights times |det J|
    det : (E, Q) Jacobian determinants
    shape : (Q, 6) P2 shape function values
    grad : (E, Q, 6, 2) physical gradients of the P2 shape functions
    points : (Q, 2) reference quadrature points
    """

    weights: np.ndarray
    det: np.ndarray
    shape: np.ndarray
    grad: np.ndarray
    points: np.ndarray


def assemble_sparse(local: np.ndarray, row_dofs: np.ndarray, col_dofs: np.ndarray, shape) -> sp.csr_matrix:
    """Scatter-add element matrices (E, n, m) into a CSR matrix."""
    n, m = row_dofs.shape[1], col_dofs.shape[1]
    rows = np.repeat(row_dofs, m, axis=1).ravel()
    cols = np.tile(col_dofs, (1, n)).ravel()
    return sp.csr_matrix((local.ravel(), (rows, cols)), shape=shape)


def compute_cell_geometry(points: np.ndarray, connectivity: np.ndarray, quad_points: np.ndarray) -> tuple:
    """
    Jacobians of the quadratic geometry map.

    Returns (det, inv_jac, dN) with shapes (E, Q), (E, Q, 2, 2) and (Q, 6, 2).
    """
    X = points[connectivity]
    dN = TRI6.shape_gradients(quad_points)
    jac = np.einsum("eai,qaj->eqij", X, dN)
    det = jac[..., 0, 0] * jac[..., 1, 1] - jac[..., 0, 1] * jac[..., 1, 0]

    inv = np.empty_like(jac)
    inv[..., 0, 0] = jac[..., 1, 1]
    inv[..., 0, 1] = -jac[..., 0, 1]
    inv[..., 1, 0] = -jac[..., 1, 0]
    inv[..., 1, 1] = jac[..., 0, 0]
    with np.errstate(divide="ignore", invalid="ignore"):
        inv /= det[..., None, None]
    return det, inv, dN


class MeshAssembler:
    def __init__(self, mesh: MeshModel, quadrature_degree: int = 4):
        """
        Vectorised finite element assembler on a quadratic triangle mesh.

        Geometry is re-evaluated from the current node coordinates whenever
        they change, so operators follow the mesh as it moves.

        Parameters
        ----------
        mesh : MeshModel
            The computational mesh (``triangle6`` cells).
        quadrature_degree : int
            Degree of the triangle quadrature rule used for all cell integrals.
        """
        self.mesh = mesh
        self.quadrature_degree = quadrature_degree
        self._quad_points, self._quad_weights = triangle_rule(quadrature_degree)
        self._shape = TRI6.shape_functions(self._quad_points)
        self._shape_p1 = TRI3.shape_functions(self._quad_points)
        self._orientation = None
        self._cache_key = None
        self._cache: CellGeometry = None

    def geometry(self) -> CellGeometry:
        """Evaluate the cell geometry on the current mesh.

        The result is cached until the mesh coordinates change.

        Raises
        ------
        SolverDivergenceError
            If a cell has degenerated or flipped orientation.
        """
        key = (self.mesh.coords_version, self.mesh.elements_count)
        if key == self._cache_key:
            return self._cache

        det, inv, dN = compute_cell_geometry(
            self.mesh.points, self.mesh.connectivity, self._quad_points
        )
        if self._orientation is None:
            self._orientation = 1.0 if np.sum(det) >= 0 else -1.0
        if not np.all(det * self._orientation > 0.0):
            bad = np.unique(np.nonzero(det * self._orientation <= 0.0)[0])
            raise SolverDivergenceError(
                f"Mesh is tangled: {bad.size} cell(s) degenerated or inverted (first: {bad[0]})"
            )

        grad = np.einsum("qaj,eqji->eqai", dN, inv)
        weights = self._quad_weights[None, :] * np.abs(det)
        self._cache = CellGeometry(weights, det, self._shape, grad, self._quad_points)
        self._cache_key = key
        return self._cache

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _expand_components(local: np.ndarray, dim: int) -> np.ndarray:
        """Turn scalar element matrices (E, n, n) into block-diagonal (E, n*dim, n*dim)."""
        if dim == 1:
            return local
        E, n, _ = local.shape
        full = np.einsum("eab,ij->eaibj", local, np.eye(dim))
        return full.reshape(E, n * dim, n * dim)

    def _shape_for(self, space: FunctionSpace) -> np.ndarray:
        return self._shape if space.order == 2 else self._shape_p1

    @staticmethod
    def _require_p2_vector(space: FunctionSpace):
        if space.order != 2 or space.dim != 2:
            raise ValueError(f"Operator requires a P2 vector space, got {space}")

    def _at_quadrature(self, nodal: np.ndarray) -> np.ndarray:
        """Interpolate a nodal P2 vector field (N, 2) to quadrature points (E, Q, 2)."""
        return np.einsum("qa,eai->eqi", self._shape, nodal[self.mesh.connectivity])

    def _gradient_at_quadrature(self, nodal: np.ndarray, geo: CellGeometry) -> np.ndarray:
        """Gradient of a nodal P2 vector field at quadrature points, (E, Q, 2, 2).

        Entry [..., i, j] is d(f_i)/d(x_j).
        """
        return np.einsum("eci,eqcj->eqij", nodal[self.mesh.connectivity], geo.grad)

    def _assemble(self, local: np.ndarray, row_space: FunctionSpace, col_space: FunctionSpace):
        return assemble_sparse(
            local, row_space.cell_dofs, col_space.cell_dofs, (row_space.size, col_space.size)
        )

    # =========================================================================
    # Bilinear forms
    # =========================================================================

    def mass_matrix(self, space: FunctionSpace) -> sp.csr_matrix:
        """(u, v) on a scalar or vector space."""
        geo = self.geometry()
        N = self._shape_for(space)
        local = np.einsum("eq,qa,qb->eab", geo.weights, N, N)
        return self._assemble(self._expand_components(local, space.dim), space, space)

    def stiffness_matrix(self, space: FunctionSpace) -> sp.csr_matrix:
        """(grad u, grad v) on a P2 scalar or vector space."""
        if space.order != 2:
            raise ValueError("Stiffness matrix is only assembled on P2 spaces")
        geo = self.geometry()
        local = np.einsum("eq,eqak,eqbk->eab", geo.weights, geo.grad, geo.grad)
        return self._assemble(self._expand_components(local, space.dim), space, space)

    def convection_matrix(self, space: FunctionSpace, advecting: np.ndarray) -> sp.csr_matrix:
        """((b . grad) u, v) for a nodal advecting field ``b`` of shape (N, 2)."""
        if space.order != 2:
            raise ValueError("Convection matrix is only assembled on P2 spaces")
        geo = self.geometry()
        bq = self._at_quadrature(np.asarray(advecting).reshape(-1, 2))
        local = np.einsum("eq,qa,eqk,eqbk->eab", geo.weights, geo.shape, bq, geo.grad)
        return self._assemble(self._expand_components(local, space.dim), space, space)

    def gradient_reaction_matrix(self, space: FunctionSpace, field: np.ndarray) -> sp.csr_matrix:
        """((u . grad) f, v) for a fixed nodal vector field ``f`` of shape (N, 2)."""
        self._require_p2_vector(space)
        geo = self.geometry()
        grad_f = self._gradient_at_quadrature(np.asarray(field).reshape(-1, 2), geo)
        local = np.einsum("eq,qa,qb,eqij->eaibj", geo.weights, geo.shape, geo.shape, grad_f)
        E = local.shape[0]
        return self._assemble(local.reshape(E, 12, 12), space, space)

    def elasticity_matrix(self, space: FunctionSpace, lam: float, mu: float) -> sp.csr_matrix:
        """(sigma(u), grad v) with sigma = lam div(u) I + mu (grad u + grad u^T)."""
        self._require_p2_vector(space)
        geo = self.geometry()
        w, G = geo.weights, geo.grad
        volumetric = np.einsum("eq,eqai,eqbj->eaibj", w, G, G)
        laplace = np.einsum("eq,eqak,eqbk->eab", w, G, G)
        transpose = np.einsum("eq,eqaj,eqbi->eaibj", w, G, G)
        local = (
            lam * volumetric
            + mu * np.einsum("eab,ij->eaibj", laplace, np.eye(2))
            + mu * transpose
        )
        E = local.shape[0]
        return self._assemble(local.reshape(E, 12, 12), space, space)

    def divergence_matrix(
        self, pressure_space: FunctionSpace, velocity_space: FunctionSpace
    ) -> sp.csr_matrix:
        """-(q, div u) with q in ``pressure_space`` (rows) and u in ``velocity_space``."""
        self._require_p2_vector(velocity_space)
        if pressure_space.dim != 1:
            raise ValueError("Pressure space must be scalar")
        geo = self.geometry()
        Np = self._shape_for(pressure_space)
        local = -np.einsum("eq,qp,eqbj->epbj", geo.weights, Np, geo.grad)
        E, n_p = local.shape[:2]
        return self._assemble(local.reshape(E, n_p, 12), pressure_space, velocity_space)

    def area(self) -> float:
        """Area of the current mesh."""
        return float(np.sum(self.geometry().weights))
