"""
Core module for ale_fsi.

Provides mesh handling, function spaces, assembly, boundary conditions,
and configuration.
"""

from .assembler import MeshAssembler
from .bc import BoundaryConditionManager, DirichletCondition
from .boundary import BoundaryIntegrator
from .config import FSISimulationConfig
from .exceptions import SolverDivergenceError
from .spaces import FunctionSpace

__all__ = [
    "FSISimulationConfig",
    "MeshAssembler",
    "FunctionSpace",
    "DirichletCondition",
    "BoundaryConditionManager",
    "BoundaryIntegrator",
    "SolverDivergenceError",
]
