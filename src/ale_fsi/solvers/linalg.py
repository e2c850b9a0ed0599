"""
Linear solvers for the reduced FEM systems.

Matrices are assembled as ``scipy.sparse`` CSR. Symmetric positive definite
systems (mesh motion) go to a PETSc Krylov solver; the indefinite
velocity/pressure system is factorised with a sparse LU.
"""

import logging
from typing import Iterable, Optional

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from petsc4py import PETSc

from ale_fsi.core.bc import BoundaryConditionManager, DirichletCondition
from ale_fsi.core.exceptions import SolverDivergenceError

logger = logging.getLogger(__name__)

__all__ = [
    "DirectLinearSolver",
    "LinearProblem",
    "PETScLinearSolver",
    "SolverDivergenceError",
]


def _check_finite(x: np.ndarray, name: str) -> np.ndarray:
    if not np.all(np.isfinite(x)):
        raise SolverDivergenceError(f"{name} produced non-finite values")
    return x


class PETScLinearSolver:
    """
    Conjugate gradient solver on a serial PETSc communicator.

    Small systems are preconditioned with ILU(0) in natural ordering, larger
    ones (more than 1e4 unknowns) with GAMG algebraic multigrid. Options are
    stored under a prefix owned by the solver, so they never reach other
    KSP objects.

    Parameters
    ----------
    rtol, atol : float
        Relative and absolute residual tolerances.
    max_it : int
        Maximum number of Krylov iterations.
    name : str
        Label used in log and error messages.
    """

    _instances = 0

    def __init__(self, rtol: float = 1e-10, atol: float = 1e-14, max_it: int = 2000, name: str = "PETSc"):
        self.rtol = rtol
        self.atol = atol
        self.max_it = max_it
        self.name = name
        self.comm = PETSc.COMM_SELF
        self.iterations = 0
        self.converged_reason = 0
        PETScLinearSolver._instances += 1
        self.options_prefix = f"ale_{PETScLinearSolver._instances}_"

    def _setup_solver(self, A: PETSc.Mat, size: int) -> PETSc.KSP:
        """Configure the KSP and its preconditioner for a system of ``size`` unknowns."""
        ksp = PETSc.KSP().create(self.comm)
        ksp.setOptionsPrefix(self.options_prefix)
        ksp.setType("cg")
        pc = ksp.getPC()

        if size > 1e4:
            pc.setType("gamg")
            opts = PETSc.Options(self.options_prefix)
            opts["pc_gamg_type"] = "agg"
            opts["pc_gamg_agg_nsmooths"] = 1
            opts["pc_gamg_threshold"] = 0.02
            opts["mg_levels_ksp_type"] = "chebyshev"
            opts["mg_levels_pc_type"] = "jacobi"
            opts["mg_coarse_ksp_type"] = "preonly"
            opts["mg_coarse_pc_type"] = "lu"
        else:
            pc.setType("ilu")

        ksp.setTolerances(rtol=self.rtol, atol=self.atol, max_it=self.max_it)
        ksp.setOperators(A)
        ksp.setFromOptions()
        return ksp

    def solve(self, A: sp.spmatrix, b: np.ndarray) -> np.ndarray:
        """
        Solve ``A x = b``.

        Raises
        ------
        SolverDivergenceError
            If the Krylov iteration does not converge or the result is not finite.
        """
        A = sp.csr_matrix(A)
        size = A.shape[0]
        if size == 0:
            return np.zeros(0)

        mat = PETSc.Mat().createAIJ(
            size=A.shape,
            csr=(A.indptr.astype(PETSc.IntType), A.indices.astype(PETSc.IntType), A.data),
            comm=self.comm,
        )
        mat.assemble()
        rhs = PETSc.Vec().createWithArray(np.ascontiguousarray(b, dtype=PETSc.ScalarType), comm=self.comm)
        x = mat.createVecRight()

        ksp = self._setup_solver(mat, size)
        try:
            ksp.solve(rhs, x)
            self.iterations = ksp.getIterationNumber()
            self.converged_reason = ksp.getConvergedReason()
            result = x.getArray().copy()
        finally:
            ksp.destroy()
            mat.destroy()
            rhs.destroy()
            x.destroy()

        logger.debug(
            "%s solve: %d unknowns, %d iterations (reason: %d)",
            self.name,
            size,
            self.iterations,
            self.converged_reason,
        )
        if self.converged_reason <= 0:
            raise SolverDivergenceError(
                f"{self.name} solver diverged after {self.iterations} iterations "
                f"(reason: {self.converged_reason})"
            )
        return _check_finite(result, self.name)


class DirectLinearSolver:
    """Sparse LU factorisation (SuperLU) for indefinite systems."""

    def __init__(self, name: str = "LU"):
        self.name = name

    def solve(self, A: sp.spmatrix, b: np.ndarray) -> np.ndarray:
        """
        Solve ``A x = b``.

        Raises
        ------
        SolverDivergenceError
            If the matrix is singular or the result is not finite.
        """
        A = sp.csc_matrix(A)
        if A.shape[0] == 0:
            return np.zeros(0)
        try:
            lu = spla.splu(A)
        except RuntimeError as exc:
            raise SolverDivergenceError(f"{self.name} factorisation failed: {exc}") from exc
        x = lu.solve(np.asarray(b, dtype=float))
        logger.debug("%s solve: %d unknowns, %d nonzeros", self.name, A.shape[0], A.nnz)
        return _check_finite(x, self.name)


class LinearProblem:
    """
    A linear system with Dirichlet data.

    Constrained dofs are eliminated, the reduced system is solved and the
    prescribed values are inserted back into the solution.

    Parameters
    ----------
    A : scipy.sparse matrix
        Global system matrix.
    b : np.ndarray
        Global right-hand side.
    bcs : Iterable[DirichletCondition]
        Dirichlet conditions.
    solver : PETScLinearSolver or DirectLinearSolver, optional
        Solver for the reduced system (sparse LU by default).
    """

    def __init__(
        self,
        A: sp.spmatrix,
        b: np.ndarray,
        bcs: Iterable[DirichletCondition] = (),
        solver: Optional[object] = None,
    ):
        self.bc_manager = BoundaryConditionManager(A, b)
        self.bc_manager.apply_dirichlet(list(bcs))
        self.solver = solver if solver is not None else DirectLinearSolver()

    def solve(self) -> np.ndarray:
        A_red, b_red = self.bc_manager.reduced_system
        u_red = self.solver.solve(A_red, b_red)
        return self.bc_manager.expand_solution(u_red)
