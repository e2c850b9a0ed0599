"""
Generalized-alpha time integration coefficients.

The same parameter set drives the structural oscillator, the mesh velocity
and the fluid acceleration, so all three rate updates share
:meth:`GeneralizedAlphaParameters.rate`.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class GeneralizedAlphaParameters:
    """
    Generalized-alpha coefficients derived from a spectral radius.

    Parameters
    ----------
    rho_inf : float
        Spectral radius at infinite frequency, in [0, 1]. ``1`` gives no
        numerical dissipation, ``0`` the largest high-frequency damping.
    dt : float
        Time step size.

    Attributes
    ----------
    alpha_f, alpha_m, gamma : float
        Generalized-alpha weights.
    c0, c1 : float
        Coefficients of the rate recurrence ``x_dot = c0 (x - x_n) + c1 x_dot_n``.
    """

    rho_inf: float
    dt: float

    def __post_init__(self):
        if not 0.0 <= self.rho_inf <= 1.0:
            raise ValueError(f"rho_inf must be in [0, 1], got {self.rho_inf}")
        if self.dt <= 0:
            raise ValueError(f"Time step must be positive, got {self.dt}")

    @property
    def alpha_f(self) -> float:
        return 1.0 / (1.0 + self.rho_inf)

    @property
    def alpha_m(self) -> float:
        return (3.0 - self.rho_inf) / (2.0 * (1.0 + self.rho_inf))

    @property
    def gamma(self) -> float:
        return 0.5 + self.alpha_m - self.alpha_f

    @property
    def c0(self) -> float:
        return 1.0 / (self.gamma * self.dt)

    @property
    def c1(self) -> float:
        return (self.gamma - 1.0) / self.gamma

    def rate(self, value, previous, previous_rate):
        """Rate of a field from its new value and the previous value and rate."""
        return self.c0 * (np.asarray(value) - previous) + self.c1 * np.asarray(previous_rate)

    def __str__(self) -> str:
        return (
            f"generalized-alpha(rho_inf={self.rho_inf}, alpha_f={self.alpha_f:.4f}, "
            f"alpha_m={self.alpha_m:.4f}, gamma={self.gamma:.4f})"
        )
