"""
Rigid body with one transverse degree of freedom.

The body is a mass-spring-damper ``m y'' + c y' + k y = F`` integrated with
the generalized-alpha scheme. Because the problem is linear, each step is a
single closed-form division by the effective stiffness.
"""

import logging
from dataclasses import dataclass, replace

from ale_fsi.solvers.time_integration import GeneralizedAlphaParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuralState:
    """
    Snapshot of the body's transverse motion.

    Attributes
    ----------
    d : float
        Displacement.
    d_rate : float
        Generalized-alpha rate of the displacement (not the velocity).
    v : float
        Velocity.
    v_rate : float
        Generalized-alpha rate of the velocity.
    """

    d: float = 0.0
    d_rate: float = 0.0
    v: float = 0.0
    v_rate: float = 0.0


class RigidBodyIntegrator:
    """
    Generalized-alpha integrator for a single-DOF oscillator.

    Parameters
    ----------
    mass, damping, stiffness : float
        Oscillator coefficients ``m``, ``c`` and ``k``.
    params : GeneralizedAlphaParameters
        Time integration coefficients.
    enabled : bool
        When False the body is a fixed obstacle: :meth:`step` returns the
        rest state without touching the coefficients.

    Raises
    ------
    ValueError
        If the mass is not positive, damping or stiffness are negative, or
        the effective stiffness vanishes.
    """

    def __init__(
        self,
        mass: float,
        damping: float,
        stiffness: float,
        params: GeneralizedAlphaParameters,
        enabled: bool = True,
    ):
        self.mass = float(mass)
        self.damping = float(damping)
        self.stiffness = float(stiffness)
        self.params = params
        self.enabled = enabled

        if not enabled:
            self.k_eff = 0.0
            return

        if self.mass <= 0:
            raise ValueError(f"Mass must be positive, got {self.mass}")
        if self.damping < 0 or self.stiffness < 0:
            raise ValueError("Damping and stiffness must be non-negative")

        self.k_eff = self.effective_stiffness()
        if self.k_eff == 0.0:
            raise ValueError("Effective stiffness is zero; check m, c, k and dt")
        logger.debug("Rigid body K_eff = %.6e (%s)", self.k_eff, params)

    def effective_stiffness(self) -> float:
        """``m am^2/(af g^2 dt^2) + c am/(g dt) + k af``."""
        p = self.params
        am, af, g, dt = p.alpha_m, p.alpha_f, p.gamma, p.dt
        return (
            self.mass * am**2 / (af * g**2 * dt**2)
            + self.damping * am / g / dt
            + self.stiffness * af
        )

    def rhs(self, force: float, prev: StructuralState) -> float:
        """Effective load of the affine update for the new displacement."""
        p = self.params
        am, af, g, dt = p.alpha_m, p.alpha_f, p.gamma, p.dt
        m, c, k = self.mass, self.damping, self.stiffness
        return (
            force
            - (1.0 - am) * m * prev.v_rate
            - (1.0 - af) * c * prev.v
            - (1.0 - af) * k * prev.d
            + af * c * (
                (am / af / g / dt) * prev.d
                - ((g - am) / g / af) * prev.d_rate
                - (1.0 - 1.0 / af) * prev.v
            )
            + am * m * (
                (am / (af * g**2 * dt**2)) * prev.d
                + (1.0 / af / g / dt) * prev.v
                - (1.0 - 1.0 / g) * prev.v_rate
                - ((g - am) / af / g**2 / dt) * prev.d_rate
            )
        )

    def step(self, force: float, prev: StructuralState) -> StructuralState:
        """
        Advance the body by one time step.

        Parameters
        ----------
        force : float
            Transverse load acting over the step (predicted or relaxed).
        prev : StructuralState
            Committed state of the previous step.

        Returns
        -------
        StructuralState
            The new state; the rest state for a fixed obstacle.
        """
        if not self.enabled:
            return StructuralState()

        p = self.params
        am, af, g, dt = p.alpha_m, p.alpha_f, p.gamma, p.dt

        d = self.rhs(force, prev) / self.k_eff
        v = (
            (am / af / g / dt) * (d - prev.d)
            + ((g - am) / g / af) * prev.d_rate
            + (1.0 - 1.0 / af) * prev.v
        )
        return replace(
            prev,
            d=d,
            d_rate=float(p.rate(d, prev.d, prev.d_rate)),
            v=v,
            v_rate=float(p.rate(v, prev.v, prev.v_rate)),
        )
