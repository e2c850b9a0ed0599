"""
Force history CSV logger.

One row per committed step, flushed immediately so the log is complete up
to the last step even if the run is interrupted.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, TextIO

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["time", "step", "force_x", "force_y"]
BODY_COLUMNS = ["committed_force_y", "displacement_y", "velocity_y"]


class ForceLogger:
    """
    Writes the per-step force log.

    Parameters
    ----------
    log_file : str
        Path of the CSV file (parent directories are created).
    coupled : bool
        Add the body columns (committed load, displacement, velocity).
    separator : str
        Column separator.
    metadata : Mapping, optional
        ``section -> {name: value}`` written as a commented header.

    Example
    -------
    ::

        log = ForceLogger("results/forces.csv", coupled=True)
        log.initialize()
        for result in steps:
            log.log_step(result.time, result.step, fx, fy, fc, d, v)
        log.close()

    Raises
    ------
    OSError
        Propagated from file creation and writes.
    """

    def __init__(
        self,
        log_file: str,
        coupled: bool = False,
        separator: str = ",",
        metadata: Optional[Mapping[str, Mapping[str, object]]] = None,
    ):
        self.log_file = Path(log_file)
        self.coupled = coupled
        self.separator = separator
        self.metadata = metadata or {}
        self.handle: Optional[TextIO] = None
        self.rows = 0

    @property
    def columns(self):
        return BASE_COLUMNS + (BODY_COLUMNS if self.coupled else [])

    def initialize(self) -> None:
        """Create the log file and write the header."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.handle = open(self.log_file, "w", encoding="utf-8")
        self._write_header()

    def _write_header(self) -> None:
        h = self.handle
        h.write("# ALE-FSI Force Log\n")
        h.write(f"# Generated: {datetime.now().isoformat()}\n")
        for section, values in self.metadata.items():
            h.write("#\n")
            h.write(f"# === {section.upper()} ===\n")
            for name, value in values.items():
                h.write(f"# {name}: {value}\n")
        h.write("#\n")
        h.write(self.separator.join(self.columns) + "\n")
        h.flush()

    def log_step(
        self,
        t: float,
        step: int,
        force_x: float,
        force_y: float,
        committed_force_y: float = 0.0,
        displacement_y: float = 0.0,
        velocity_y: float = 0.0,
    ) -> None:
        """
        Append one committed step.

        Parameters
        ----------
        t : float
            Time at the end of the step.
        step : int
            Step index (1-based).
        force_x, force_y : float
            Evaluated fluid force on the body.
        committed_force_y : float, optional
            Relaxed load passed on to the next step (coupled runs only).
        displacement_y, velocity_y : float, optional
            Body state (coupled runs only).
        """
        if self.handle is None:
            raise RuntimeError("Force log is not open; call initialize() first")

        values = [f"{t:.6e}", str(step), f"{force_x:.6e}", f"{force_y:.6e}"]
        if self.coupled:
            values.extend([
                f"{committed_force_y:.6e}",
                f"{displacement_y:.6e}",
                f"{velocity_y:.6e}",
            ])

        self.handle.write(self.separator.join(values) + "\n")
        self.handle.flush()
        self.rows += 1

    def close(self) -> None:
        """Close the log file."""
        if self.handle is not None:
            self.handle.close()
            self.handle = None
            logger.info("Force log closed: %s (%d rows)", self.log_file, self.rows)

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
