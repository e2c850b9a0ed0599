"""
Pseudo-elastic mesh motion and ALE remap.

The interior mesh displacement is the solution of a fictitious linear
elasticity problem driven by the body's displacement increment. The mesh
is then moved by that increment and the mesh velocity is updated with the
generalized-alpha rate recurrence.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from ale_fsi.core.assembler import MeshAssembler
from ale_fsi.core.bc import DirichletCondition
from ale_fsi.core.mesh import MeshModel
from ale_fsi.core.spaces import FunctionSpace
from ale_fsi.solvers.linalg import LinearProblem, PETScLinearSolver
from ale_fsi.solvers.solver import Solver
from ale_fsi.solvers.time_integration import GeneralizedAlphaParameters

logger = logging.getLogger(__name__)

BoundaryKey = Union[str, int]


@dataclass
class MeshMotionState:
    """Mesh displacement increment ``delta`` and mesh velocity ``w_dot`` (flat P2 vectors)."""

    delta: np.ndarray
    w_dot: np.ndarray

    @classmethod
    def zeros(cls, size: int) -> "MeshMotionState":
        return cls(np.zeros(size), np.zeros(size))

    def copy(self) -> "MeshMotionState":
        return MeshMotionState(self.delta.copy(), self.w_dot.copy())


def lame_constants(young_modulus: float, poisson_ratio: float):
    """Plane-strain Lamé constants ``(lambda, mu)``."""
    if young_modulus <= 0:
        raise ValueError(f"Young's modulus must be positive, got {young_modulus}")
    if not -1.0 < poisson_ratio < 0.5:
        raise ValueError(f"Poisson ratio must be in (-1, 0.5), got {poisson_ratio}")
    lam = young_modulus * poisson_ratio / ((1 + poisson_ratio) * (1 - 2 * poisson_ratio))
    mu = young_modulus / (2 * (1 + poisson_ratio))
    return lam, mu


class MeshMotionSolver(Solver):
    """
    Linear-elastic mesh smoothing for a rigidly translating body.

    Parameters
    ----------
    mesh : MeshModel
        The fluid mesh (moved in place by :meth:`remap`).
    young_modulus, poisson_ratio : float
        Fictitious elastic constants.
    fixed_boundaries : Sequence[str or int]
        Boundaries that do not move (inlet, outlet, walls).
    moving_boundary : str or int
        The body boundary.
    params : GeneralizedAlphaParameters
        Coefficients of the mesh velocity recurrence.
    assembler : MeshAssembler, optional
        Shared assembler.
    linear_solver : PETScLinearSolver, optional
        Solver for the reduced elasticity system.
    """

    def __init__(
        self,
        mesh: MeshModel,
        young_modulus: float,
        poisson_ratio: float,
        fixed_boundaries: Sequence[BoundaryKey],
        moving_boundary: BoundaryKey,
        params: GeneralizedAlphaParameters,
        assembler: Optional[MeshAssembler] = None,
        linear_solver: Optional[PETScLinearSolver] = None,
    ):
        super().__init__(mesh, assembler)
        self.lam, self.mu = lame_constants(young_modulus, poisson_ratio)
        self.fixed_boundaries = list(fixed_boundaries)
        self.moving_boundary = moving_boundary
        self.params = params
        self.space = FunctionSpace(mesh, order=2, dim=2)
        self.linear_solver = linear_solver or PETScLinearSolver(name="mesh motion")

    def boundary_conditions(self, increment: float) -> List[DirichletCondition]:
        """Zero displacement on fixed boundaries, ``(0, increment)`` on the body."""
        bcs = [
            DirichletCondition(self.get_dofs_by_boundary(self.space, name), 0.0)
            for name in self.fixed_boundaries
        ]
        bcs.append(
            DirichletCondition(self.get_dofs_by_boundary(self.space, self.moving_boundary, 0), 0.0)
        )
        bcs.append(
            DirichletCondition(
                self.get_dofs_by_boundary(self.space, self.moving_boundary, 1), increment
            )
        )
        return bcs

    def solve(self, increment: float) -> np.ndarray:
        """
        Mesh displacement for a body displacement increment.

        Parameters
        ----------
        increment : float
            Transverse displacement of the body over the step, ``d - d_prev``.

        Returns
        -------
        np.ndarray
            Flat P2 displacement field ``delta``.

        Raises
        ------
        SolverDivergenceError
            If the elasticity solve fails.
        """
        self.add_dirichlet_conditions(self.boundary_conditions(increment))
        if increment == 0.0:
            logger.debug("Body did not move; mesh displacement is zero")
            return self.space.zeros()

        K = self.domain.elasticity_matrix(self.space, self.lam, self.mu)
        delta = LinearProblem(
            K, self.space.zeros(), self.dirichlet_conditions, self.linear_solver
        ).solve()
        logger.debug(
            "Mesh motion: increment=%.4e, max|delta|=%.4e",
            increment,
            np.max(np.abs(delta)),
        )
        return delta

    def update_velocity(self, delta: np.ndarray, prev: MeshMotionState) -> MeshMotionState:
        """New mesh state with ``w_dot = c0 (delta - delta_prev) + c1 w_dot_prev``."""
        return MeshMotionState(delta, self.params.rate(delta, prev.delta, prev.w_dot))

    def remap(self, delta: np.ndarray) -> MeshModel:
        """Move the mesh nodes by ``delta`` (relative to their current position)."""
        if not np.any(delta):
            return self.mesh_obj
        return self.mesh_obj.apply_displacement_field(delta, dofs_per_node=2)
