from abc import ABC, abstractmethod
from typing import List, Optional, Set, Union

import numpy as np

from ale_fsi.core.assembler import MeshAssembler
from ale_fsi.core.bc import DirichletCondition
from ale_fsi.core.mesh import MeshModel
from ale_fsi.core.spaces import FunctionSpace


class Solver(ABC):
    """
    Abstract base class for the finite element sub-solvers.

    Sub-solvers share the coupling driver's mesh: operators are re-assembled
    on the current node coordinates at every :meth:`solve`.

    Parameters
    ----------
    mesh : MeshModel
        The computational mesh.
    assembler : MeshAssembler, optional
        Assembler to share with other sub-solvers; a new one is created if
        not given.

    Attributes
    ----------
    mesh_obj : MeshModel
        The mesh model.
    domain : MeshAssembler
        Assembler bound to the mesh.
    dirichlet_conditions : List[DirichletCondition]
        Dirichlet conditions of the most recent solve.
    """

    def __init__(self, mesh: MeshModel, assembler: Optional[MeshAssembler] = None):
        self.mesh_obj = mesh
        self.domain = assembler if assembler is not None else MeshAssembler(mesh)
        if self.domain.mesh is not mesh:
            raise ValueError("Assembler is bound to a different mesh")
        self.dirichlet_conditions: List[DirichletCondition] = []

    def get_dofs_by_boundary(
        self, space: FunctionSpace, name: Union[str, int], component: Optional[int] = None
    ) -> np.ndarray:
        """
        Retrieve the degrees of freedom of ``space`` on a labelled boundary.

        Parameters
        ----------
        space : FunctionSpace
            Space the dofs belong to.
        name : str or int
            Boundary name or integer label.
        component : int, optional
            Restrict to one vector component.

        Returns
        -------
        np.ndarray
            Sorted dof indices.
        """
        return space.dofs_on(name, component)

    def get_nodeids_by_boundary_name(self, name: Union[str, int]) -> Set[int]:
        """Node IDs on a labelled boundary."""
        return self.mesh_obj.get_facet_set(name).node_ids

    def add_dirichlet_conditions(self, bcs: List[DirichletCondition]) -> None:
        """
        Set the Dirichlet boundary conditions of the solver.

        Parameters
        ----------
        bcs : List[DirichletCondition]
            List of Dirichlet boundary conditions.
        """
        self.dirichlet_conditions = list(bcs)

    @abstractmethod
    def solve(self, *args, **kwargs):
        """
        Solve the FEM problem.

        This abstract method must be implemented by subclasses to perform the solution process.
        """
        ...
