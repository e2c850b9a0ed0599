"""
Load history, extrapolation and under-relaxation for the staggered coupling.
"""

from dataclasses import dataclass, field

import numpy as np


def predict(force_n, force_nm1):
    """Second-order extrapolation ``2 F_n - F_{n-1}`` of the next load."""
    return 2.0 * np.asarray(force_n, dtype=float) - np.asarray(force_nm1, dtype=float)


def relax(evaluated, predicted, beta: float):
    """Committed load ``beta F_evaluated + (1 - beta) F_predicted``."""
    evaluated = np.asarray(evaluated, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    return beta * evaluated + (1.0 - beta) * predicted


@dataclass
class ForceHistory:
    """
    Last two committed loads ``F_n`` and ``F_{n-1}`` as ``(F_x, F_y)`` vectors.

    Both start at zero, so the first prediction is zero.
    """

    current: np.ndarray = field(default_factory=lambda: np.zeros(2))
    previous: np.ndarray = field(default_factory=lambda: np.zeros(2))

    def predict(self) -> np.ndarray:
        return predict(self.current, self.previous)

    def push(self, committed) -> None:
        """Shift the history and store a newly committed load."""
        self.previous = self.current
        self.current = np.array(committed, dtype=float)

    def copy(self) -> "ForceHistory":
        return ForceHistory(self.current.copy(), self.previous.copy())
