"""Resultant fluid force on the coupling boundary."""

import logging
from typing import Optional, Union

import numpy as np

from ale_fsi.core.boundary import BoundaryIntegrator
from ale_fsi.core.mesh import MeshModel
from ale_fsi.core.spaces import FunctionSpace

logger = logging.getLogger(__name__)


class LoadEvaluator:
    """
    Integrates the traction ``(mu grad u - p I) . n`` over a body boundary.

    Parameters
    ----------
    mesh : MeshModel
        The fluid mesh.
    boundary : str or int
        The body boundary.
    viscosity : float
        Dynamic viscosity ``mu``.
    pressure_space : FunctionSpace
        P1 space the pressure dofs live in.
    integrator : BoundaryIntegrator, optional
        Shared boundary integrator.
    """

    def __init__(
        self,
        mesh: MeshModel,
        boundary: Union[str, int],
        viscosity: float,
        pressure_space: FunctionSpace,
        integrator: Optional[BoundaryIntegrator] = None,
    ):
        self.mesh = mesh
        self.boundary = boundary
        self.viscosity = viscosity
        self.pressure_space = pressure_space
        self.integrator = integrator or BoundaryIntegrator(mesh)

    def evaluate(self, velocity: np.ndarray, pressure: np.ndarray) -> np.ndarray:
        """
        Force of the fluid on the body.

        Parameters
        ----------
        velocity : np.ndarray
            Flat P2 velocity.
        pressure : np.ndarray
            P1 pressure.

        Returns
        -------
        np.ndarray
            ``(F_x, F_y)``.
        """
        force = self.integrator.traction_force(
            self.boundary,
            velocity,
            pressure,
            self.viscosity,
            self.pressure_space.cell_nodes,
        )
        logger.debug("Load on '%s': Fx=%.6e, Fy=%.6e", self.boundary, force[0], force[1])
        return force
