from pathlib import Path
from typing import Optional, Sequence, Union

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import polars as pl


class ForceHistoryAnalyzer:
    """
    Reads a force log and summarises the periodic regime.

    Parameters
    ----------
    file_path : str or Path
        CSV written by ``ForceLogger`` (``#`` comment header).
    separator : str
        Column separator.
    """

    def __init__(self, file_path: Union[str, Path], separator: str = ","):
        self.file_path = Path(file_path)
        self.df = pl.read_csv(self.file_path, separator=separator, comment_prefix="#", has_header=True)

    @property
    def row_count(self) -> int:
        return self.df.height

    @property
    def coupled(self) -> bool:
        return "displacement_y" in self.df.columns

    def _tail(self, column: str, window: Optional[int]) -> pl.Series:
        if column not in self.df.columns:
            raise ValueError(f"Column '{column}' not in force log. Available: {self.df.columns}")
        series = self.df[column]
        return series.tail(window) if window else series

    def mean(self, column: str, window: Optional[int] = None) -> float:
        """Mean of a column over the last ``window`` rows (all rows if None)."""
        return float(self._tail(column, window).mean())

    def amplitude(self, column: str, window: Optional[int] = None) -> float:
        """Half the peak-to-peak range over the last ``window`` rows."""
        tail = self._tail(column, window)
        return 0.5 * float(tail.max() - tail.min())

    def is_bounded(self, column: str, limit: float) -> bool:
        """True if every value is finite and ``|value| <= limit``."""
        values = self._tail(column, None).to_numpy()
        return bool(np.all(np.isfinite(values)) and np.all(np.abs(values) <= limit))

    def plot_forces(self, save_path: Optional[str] = None):
        """
        Plot drag and lift against time.

        Args:
            save_path (str, optional): Where to save the figure. If None, the figure is returned open.
        """
        return self._plot(["force_x", "force_y"], ["Drag", "Lift"], "Force", save_path)

    def plot_displacement(self, save_path: Optional[str] = None):
        """
        Plot the body displacement against time.

        Args:
            save_path (str, optional): Where to save the figure. If None, the figure is returned open.
        """
        if not self.coupled:
            raise ValueError("Force log has no body displacement (fixed obstacle run)")
        return self._plot(["displacement_y"], ["Displacement y"], "Displacement", save_path)

    def _plot(self, columns: Sequence[str], labels: Sequence[str], ylabel: str, save_path: Optional[str]):
        fig = plt.figure(figsize=(10, 6))

        for column, label in zip(columns, labels):
            plt.plot(self.df["time"], self.df[column], label=label, linewidth=2)

        plt.title(f"{ylabel} history")
        plt.xlabel("Time")
        plt.ylabel(ylabel)
        plt.grid(True, linestyle="--", alpha=0.7)
        plt.legend()

        if save_path:
            plt.savefig(save_path, dpi=300, bbox_inches="tight")
            plt.close(fig)
            print(f"Figure saved: {save_path}")
        return fig
