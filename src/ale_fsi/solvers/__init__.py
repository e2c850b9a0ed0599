from .structure import RigidBodyIntegrator, StructuralState
from .time_integration import GeneralizedAlphaParameters

__all__ = [
    "GeneralizedAlphaParameters",
    "RigidBodyIntegrator",
    "StructuralState",
]
