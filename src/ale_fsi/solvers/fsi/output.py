"""
Periodic field snapshots.

Velocity and pressure are written on the linear (vertex) mesh as VTU files
and indexed by a ParaView ``.pvd`` collection that is rewritten after every
snapshot.
"""

import logging
import os
from pathlib import Path
from typing import List, Tuple

import meshio
import numpy as np

from ale_fsi.core.spaces import FunctionSpace

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """
    Writes fluid snapshots every ``stride`` steps.

    Parameters
    ----------
    output_folder : str
        Directory for the VTU files and ``results.pvd``.
    pressure_space : FunctionSpace
        P1 space; its nodes are the vertices of the output mesh.
    stride : int
        Write every ``stride`` steps; ``0`` disables snapshots.
    prefix : str
        File name prefix.

    Raises
    ------
    OSError
        Propagated from file writes.
    """

    def __init__(self, output_folder: str, pressure_space: FunctionSpace, stride: int = 10, prefix: str = "fluid"):
        if stride < 0:
            raise ValueError(f"Snapshot stride must be non-negative, got {stride}")
        self.output_folder = Path(output_folder)
        self.pressure_space = pressure_space
        self.stride = stride
        self.prefix = prefix
        self._written: List[Tuple[float, str]] = []

    def should_write(self, step: int) -> bool:
        return self.stride > 0 and step % self.stride == 0

    def write(self, step: int, t: float, velocity: np.ndarray, pressure: np.ndarray) -> str:
        """
        Write one snapshot.

        Parameters
        ----------
        step : int
            Step index, stored in the file name and as field data.
        t : float
            Simulation time, used as the PVD timestep.
        velocity : np.ndarray
            Flat P2 velocity.
        pressure : np.ndarray
            P1 pressure.

        Returns
        -------
        str
            Path of the VTU file.
        """
        Q = self.pressure_space
        self.output_folder.mkdir(parents=True, exist_ok=True)

        vertices = Q.space_nodes
        points = Q.mesh.coords_array[vertices]
        U = np.asarray(velocity).reshape(-1, 2)[vertices]
        U = np.hstack([U, np.zeros((U.shape[0], 1))])

        point_data = {
            "velocity": U,
            "velocity_magnitude": np.linalg.norm(U, axis=1),
            "pressure": np.asarray(pressure, dtype=float),
        }
        mesh = meshio.Mesh(
            points,
            [("triangle", Q.cell_nodes)],
            point_data=point_data,
            field_data={"step": np.array([step]), "time": np.array([t])},
        )

        name = f"{self.prefix}_{step:06d}.vtu"
        path = self.output_folder / name
        mesh.write(str(path), file_format="vtu")

        self._written.append((t, name))
        self._update_pvd()
        logger.debug("Snapshot written: %s (t=%.4f)", path, t)
        return str(path)

    def _update_pvd(self) -> None:
        """Rewrite the PVD collection with all written snapshots."""
        pvd_path = os.path.join(self.output_folder, "results.pvd")

        with open(pvd_path, "w") as f:
            f.write('<?xml version="1.0"?>\n')
            f.write('<VTKFile type="Collection" version="1.0">\n')
            f.write("  <Collection>\n")

            for t, vtu_rel_path in sorted(self._written, key=lambda x: x[0]):
                f.write(f'    <DataSet timestep="{t}" part="0" file="{vtu_rel_path}"/>\n')

            f.write("  </Collection>\n")
            f.write("</VTKFile>\n")

    @property
    def written_count(self) -> int:
        return len(self._written)

    @property
    def written_times(self) -> List[float]:
        return [t for t, _ in self._written]
