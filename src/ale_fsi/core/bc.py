"""
Dirichlet boundary conditions and system reduction for sparse FEM systems.
"""

from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np
import scipy.sparse as sp


class DirichletCondition:
    """Represents a Dirichlet boundary condition (prescribed DOFs) in a FEM system.

    Parameters
    ----------
    dofs : Iterable[int]
        Global degree of freedom indices (0-based) where the condition is applied.
    value : float or array_like
        Prescribed value, either one scalar for all DOFs or one value per DOF
        (in the order of ``dofs``).

    Attributes
    ----------
    dofs : np.ndarray
        Global DOF indices where the condition is applied.
    values : np.ndarray
        Prescribed value at each DOF.

    Examples
    --------
    >>> bc = DirichletCondition([0, 1], 0.0)  # Fix DOFs 0 and 1 at zero
    """

    def __init__(self, dofs: Iterable[int], value: Union[float, Iterable[float]]):
        self.dofs = np.asarray(list(dofs) if not isinstance(dofs, np.ndarray) else dofs, dtype=np.int64)
        values = np.asarray(value, dtype=float)
        if values.ndim == 0:
            values = np.full(self.dofs.size, float(values))
        if values.shape != self.dofs.shape:
            raise ValueError(
                f"Got {values.size} values for {self.dofs.size} DOFs in Dirichlet condition"
            )
        self.values = values

    def __repr__(self):
        return f"<DirichletCondition {self.dofs.size} DOFs>"


class BoundaryConditionManager:
    """Handles Dirichlet conditions and system reduction for sparse FEM problems.

    Constrained DOFs are eliminated: the reduced system only contains free
    DOFs, with the prescribed values lifted to the right-hand side.

    Parameters
    ----------
    matrix : scipy.sparse matrix
        Global system matrix.
    load : np.ndarray
        Global right-hand side vector.

    Attributes
    ----------
    n_dof : int
        Total number of degrees of freedom.
    free_dofs : np.ndarray
        Indices of unconstrained degrees of freedom.
    fixed_dofs : Dict[int, float]
        Constrained DOFs with prescribed values.
    """

    def __init__(self, matrix: sp.spmatrix, load: np.ndarray):
        self._validate_inputs(matrix, load)
        self.A = sp.csr_matrix(matrix)
        self.b = np.asarray(load, dtype=float).copy()
        self.n_dof = self.A.shape[0]

        self._fixed_idx = np.empty(0, dtype=np.int64)
        self._fixed_val = np.empty(0)
        self._free_idx: Optional[np.ndarray] = None

    @staticmethod
    def _validate_inputs(matrix, load) -> None:
        """Validate matrix dimensions."""
        if matrix.shape[0] != matrix.shape[1]:
            raise ValueError("System matrix must be square")
        if matrix.shape[0] != np.asarray(load).size:
            raise ValueError("Matrix and load dimensions mismatch")

    def apply_dirichlet(self, conditions: Iterable[DirichletCondition]) -> None:
        """Register Dirichlet boundary conditions.

        Raises
        ------
        ValueError
            If invalid DOFs are specified or conflicting values are provided
        """
        fixed: Dict[int, float] = {}
        for bc in conditions:
            for dof, value in zip(bc.dofs.tolist(), bc.values.tolist()):
                self._validate_dof(dof)
                if dof in fixed and not np.isclose(fixed[dof], value):
                    raise ValueError(f"Conflicting values for DOF {dof}: {fixed[dof]} vs {value}")
                fixed[dof] = value

        self._fixed_idx = np.array(sorted(fixed), dtype=np.int64)
        self._fixed_val = np.array([fixed[d] for d in self._fixed_idx], dtype=float)
        mask = np.ones(self.n_dof, dtype=bool)
        mask[self._fixed_idx] = False
        self._free_idx = np.nonzero(mask)[0]

    def _validate_dof(self, dof: int) -> None:
        if not 0 <= dof < self.n_dof:
            raise ValueError(f"DOF {dof} out of range [0, {self.n_dof - 1}]")

    @property
    def reduced_system(self) -> Tuple[sp.csr_matrix, np.ndarray]:
        """Reduced matrix and lifted right-hand side over the free DOFs."""
        if self._free_idx is None:
            raise RuntimeError("Boundary conditions not applied")

        free = self._free_idx
        A_ff = self.A[free][:, free]
        b_f = self.b[free]
        if self._fixed_idx.size:
            b_f = b_f - self.A[free][:, self._fixed_idx] @ self._fixed_val
        return A_ff.tocsr(), b_f

    def expand_solution(self, u_red: np.ndarray) -> np.ndarray:
        """Expand a reduced solution vector to all DOFs, inserting prescribed values."""
        u_full = np.zeros(self.n_dof)
        u_full[self._free_idx] = u_red
        u_full[self._fixed_idx] = self._fixed_val
        return u_full

    @property
    def free_dofs(self) -> np.ndarray:
        """Indices of unconstrained degrees of freedom."""
        return self._free_idx if self._free_idx is not None else np.array([], dtype=np.int64)

    @property
    def fixed_dofs(self) -> Dict[int, float]:
        """Dictionary of constrained DOFs with prescribed values."""
        return dict(zip(self._fixed_idx.tolist(), self._fixed_val.tolist()))
