"""
Staggered coupling of the fluid, mesh-motion and body partitions.

The driver itself lives in ``ale_fsi.solvers.fsi.driver``; this package
exports the load history and the output writers it uses.
"""

from .history import ForceHistory, predict, relax
from .logger import ForceLogger
from .output import SnapshotWriter

__all__ = [
    # Load history
    "ForceHistory",
    "predict",
    "relax",
    # Output
    "ForceLogger",
    "SnapshotWriter",
]
