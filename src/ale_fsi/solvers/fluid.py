"""
ALE incompressible Navier-Stokes integrator.

Taylor-Hood P2/P1 elements with a small symmetric pressure stabilisation.
Time stepping is generalized-alpha on the velocity: inertia is evaluated
at ``n + alpha_m``, convection and viscosity at ``n + alpha_f``, pressure
and incompressibility at ``n + 1``. Convection is linearised once per step
about the previous velocity,

    (w . grad) w  ~  ((u_n - w_dot) . grad) w + (w . grad) u_n - (u_n . grad) u_n,

and the linearisation is never iterated.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np
import scipy.sparse as sp

from ale_fsi.core.assembler import MeshAssembler
from ale_fsi.core.bc import DirichletCondition
from ale_fsi.core.mesh import MeshModel
from ale_fsi.core.spaces import FunctionSpace
from ale_fsi.solvers.linalg import DirectLinearSolver, LinearProblem
from ale_fsi.solvers.solver import Solver
from ale_fsi.solvers.time_integration import GeneralizedAlphaParameters

logger = logging.getLogger(__name__)

BoundaryKey = Union[str, int]

WALL_CONDITIONS = ("slip", "noslip")


@dataclass
class FluidState:
    """Velocity ``u`` and acceleration ``a`` (flat P2 vectors) and pressure ``p`` (P1)."""

    u: np.ndarray
    p: np.ndarray
    a: np.ndarray

    @classmethod
    def zeros(cls, velocity_size: int, pressure_size: int) -> "FluidState":
        return cls(np.zeros(velocity_size), np.zeros(pressure_size), np.zeros(velocity_size))

    def copy(self) -> "FluidState":
        return FluidState(self.u.copy(), self.p.copy(), self.a.copy())


def inflow_velocity(reynolds: float, density: float, viscosity: float, length: float = 1.0) -> float:
    """Inflow speed ``U = Re mu / (rho D)`` for a reference length ``D``."""
    return reynolds * viscosity / (density * length)


class FluidSolver(Solver):
    """
    Fluid sub-solver on the moving mesh.

    Parameters
    ----------
    mesh : MeshModel
        The fluid mesh.
    density, viscosity : float
        Fluid density ``rho`` and dynamic viscosity ``mu``.
    inflow : float
        Uniform inflow speed in the x direction.
    params : GeneralizedAlphaParameters
        Time integration coefficients.
    inlet, walls, body : str or int
        Boundary keys. ``walls`` is a sequence (bottom and top).
    wall_condition : str
        ``"slip"`` (no penetration, tangential velocity free) or
        ``"noslip"`` (zero velocity).
    stabilization : float
        Coefficient of the pressure stabilisation ``-eps (p, q)``.
    assembler : MeshAssembler, optional
        Shared assembler.
    linear_solver : DirectLinearSolver, optional
        Solver for the saddle-point system.
    """

    def __init__(
        self,
        mesh: MeshModel,
        density: float,
        viscosity: float,
        inflow: float,
        params: GeneralizedAlphaParameters,
        inlet: BoundaryKey,
        walls,
        body: BoundaryKey,
        wall_condition: str = "slip",
        stabilization: float = 1e-8,
        assembler: Optional[MeshAssembler] = None,
        linear_solver: Optional[DirectLinearSolver] = None,
    ):
        super().__init__(mesh, assembler)
        if density <= 0 or viscosity <= 0:
            raise ValueError("Density and viscosity must be positive")
        if wall_condition not in WALL_CONDITIONS:
            raise ValueError(
                f"Unknown wall condition '{wall_condition}'. Choose from {WALL_CONDITIONS}"
            )

        self.rho = density
        self.mu = viscosity
        self.inflow = inflow
        self.params = params
        self.inlet = inlet
        self.walls = list(walls)
        self.body = body
        self.wall_condition = wall_condition
        self.stabilization = stabilization

        self.velocity_space = FunctionSpace(mesh, order=2, dim=2)
        self.pressure_space = FunctionSpace(mesh, order=1, dim=1)
        self.linear_solver = linear_solver or DirectLinearSolver(name="fluid")
        self.last_increment_norm = 0.0

    @property
    def size(self) -> int:
        return self.velocity_space.size + self.pressure_space.size

    def initial_state(self) -> FluidState:
        """Fluid at rest."""
        return FluidState.zeros(self.velocity_space.size, self.pressure_space.size)

    def boundary_conditions(self, body_velocity: float) -> List[DirichletCondition]:
        """Velocity Dirichlet data: inflow, walls and the body velocity ``(0, v)``."""
        V = self.velocity_space
        wall_nodes = np.unique(
            np.concatenate([self.mesh_obj.boundary_node_indices(w) for w in self.walls])
        )
        inlet_nodes = self.mesh_obj.boundary_node_indices(self.inlet)

        bcs = []
        if self.wall_condition == "noslip":
            bcs.append(DirichletCondition(V.dofs_at_nodes(wall_nodes), 0.0))
            inlet_nodes = np.setdiff1d(inlet_nodes, wall_nodes)
        else:
            bcs.append(DirichletCondition(V.dofs_at_nodes(wall_nodes, component=1), 0.0))

        bcs.append(DirichletCondition(V.dofs_at_nodes(inlet_nodes, component=0), self.inflow))
        bcs.append(DirichletCondition(V.dofs_at_nodes(inlet_nodes, component=1), 0.0))

        bcs.append(DirichletCondition(self.get_dofs_by_boundary(V, self.body, 0), 0.0))
        bcs.append(DirichletCondition(self.get_dofs_by_boundary(V, self.body, 1), body_velocity))
        return bcs

    def assemble(self, prev: FluidState, mesh_velocity: np.ndarray):
        """
        Assemble the linearised saddle-point system on the current mesh.

        Parameters
        ----------
        prev : FluidState
            Committed fluid state of the previous step.
        mesh_velocity : np.ndarray
            Flat P2 mesh velocity ``w_dot``.

        Returns
        -------
        A : scipy.sparse.csr_matrix
            Matrix ``[[A_uu, B^T], [B, -eps M_p]]``.
        b : np.ndarray
            Right-hand side.
        """
        V, Q = self.velocity_space, self.pressure_space
        p = self.params
        rho, mu = self.rho, self.mu
        af, am, c0, c1 = p.alpha_f, p.alpha_m, p.c0, p.c1

        u_n = prev.u.reshape(-1, 2)
        advecting = u_n - np.asarray(mesh_velocity).reshape(-1, 2)

        M = self.domain.mass_matrix(V)
        R = self.domain.gradient_reaction_matrix(V, u_n)
        L = (
            rho * self.domain.convection_matrix(V, advecting)
            + rho * R
            + mu * self.domain.stiffness_matrix(V)
        )
        B = self.domain.divergence_matrix(Q, V)
        Mp = self.domain.mass_matrix(Q)

        A_uu = rho * am * c0 * M + af * L
        # Explicit part of the convection correction: (u_n . grad) u_n
        correction = rho * (R @ prev.u)
        b_u = (
            rho * (M @ (am * c0 * prev.u - (am * c1 + 1.0 - am) * prev.a))
            - (1.0 - af) * (L @ prev.u)
            + correction
        )

        A = sp.bmat([[A_uu, B.T], [B, -self.stabilization * Mp]], format="csr")
        b = np.concatenate([b_u, np.zeros(Q.size)])
        return A, b

    def solve(self, prev: FluidState, mesh_velocity: np.ndarray, body_velocity: float) -> FluidState:
        """
        Advance the fluid by one step on the current (already remapped) mesh.

        Parameters
        ----------
        prev : FluidState
            Committed fluid state of the previous step.
        mesh_velocity : np.ndarray
            Flat P2 mesh velocity ``w_dot`` of this step.
        body_velocity : float
            Transverse velocity of the body.

        Returns
        -------
        FluidState
            New velocity, pressure and acceleration.

        Raises
        ------
        SolverDivergenceError
            If the saddle-point system is singular or the solution is not finite.
        """
        nV = self.velocity_space.size
        A, b = self.assemble(prev, mesh_velocity)
        self.add_dirichlet_conditions(self.boundary_conditions(body_velocity))

        x = LinearProblem(A, b, self.dirichlet_conditions, self.linear_solver).solve()
        u, pressure = x[:nV], x[nV:]
        a = self.params.rate(u, prev.u, prev.a)

        self.last_increment_norm = float(np.linalg.norm(u - prev.u))
        logger.debug(
            "Fluid: |u - u_n| = %.4e, max|u| = %.4e, p in [%.4e, %.4e]",
            self.last_increment_norm,
            np.max(np.abs(u)),
            pressure.min(),
            pressure.max(),
        )
        return FluidState(u, pressure, a)
