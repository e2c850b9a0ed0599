"""
Staggered fluid / rigid-body coupling driver.

Each step runs, once and in order,

    PREDICT -> SOLVE_STRUCTURE -> SOLVE_MESH_MOTION -> REMAP -> SOLVE_FLUID
    -> EVALUATE_LOAD -> RELAX -> COMMIT

with no sub-iterations. The load seen by the structure is extrapolated from
the two last committed loads, and the committed load blends the evaluated
load with that prediction.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Union

import numpy as np

from ale_fsi.core.mesh import MeshModel
from ale_fsi.solvers.fsi.history import ForceHistory, relax
from ale_fsi.solvers.fsi.logger import ForceLogger
from ale_fsi.solvers.fsi.output import SnapshotWriter
from ale_fsi.solvers.fluid import FluidSolver, FluidState
from ale_fsi.solvers.loads import LoadEvaluator
from ale_fsi.solvers.mesh_motion import MeshMotionSolver, MeshMotionState
from ale_fsi.solvers.structure import RigidBodyIntegrator, StructuralState

logger = logging.getLogger(__name__)


@dataclass
class TimeState:
    t: float = 0.0
    step: int = 0


@dataclass
class CouplingState:
    """Committed state of every partition at the end of a step."""

    time: TimeState
    structure: StructuralState
    mesh: MeshMotionState
    fluid: FluidState
    history: ForceHistory = field(default_factory=ForceHistory)


@dataclass(frozen=True)
class StepResult:
    """
    Outcome of one committed step.

    ``velocity_increment`` is ``||u - u_n||`` of the fluid solve, reported as
    a diagnostic only.
    """

    step: int
    time: float
    predicted_force: np.ndarray
    evaluated_force: np.ndarray
    committed_force: np.ndarray
    displacement: float
    velocity: float
    velocity_increment: float


def validate_mesh_labels(mesh: MeshModel, boundaries: Mapping[str, Union[str, int]]) -> None:
    """
    Check that every required boundary exists and has facets.

    Parameters
    ----------
    mesh : MeshModel
        The fluid mesh.
    boundaries : Mapping
        Role (``inlet``, ``outlet`` ...) to boundary name or integer label.

    Raises
    ------
    ValueError
        Listing every missing or empty boundary.
    """
    problems = []
    for role, key in boundaries.items():
        try:
            facet_set = mesh.get_facet_set(key)
        except ValueError:
            problems.append(f"{role} ({key!r}) not found")
            continue
        if facet_set.facet_count == 0:
            problems.append(f"{role} ({key!r}) has no facets")
    if problems:
        raise ValueError(
            "Invalid mesh boundary labels: "
            + "; ".join(problems)
            + f". Available: {mesh.boundary_labels}"
        )


class CouplingDriver:
    """
    Owns the committed state and advances the coupled system.

    Parameters
    ----------
    structure : RigidBodyIntegrator
        Body integrator (disabled for a fixed obstacle).
    mesh_motion : MeshMotionSolver
        Mesh smoothing and ALE remap; the only mutator of the mesh.
    fluid : FluidSolver
        ALE Navier-Stokes integrator.
    loads : LoadEvaluator
        Fluid force on the body.
    dt : float
        Time step.
    beta : float
        Relaxation factor in (0, 1].
    force_logger : ForceLogger, optional
        Receives one row per committed step.
    snapshots : SnapshotWriter, optional
        Receives the fluid fields every ``stride`` steps.
    """

    def __init__(
        self,
        structure: RigidBodyIntegrator,
        mesh_motion: MeshMotionSolver,
        fluid: FluidSolver,
        loads: LoadEvaluator,
        dt: float,
        beta: float = 1.0,
        force_logger: Optional[ForceLogger] = None,
        snapshots: Optional[SnapshotWriter] = None,
    ):
        if dt <= 0:
            raise ValueError(f"Time step must be positive, got {dt}")
        if not 0.0 < beta <= 1.0:
            raise ValueError(f"Relaxation factor must be in (0, 1], got {beta}")

        self.structure = structure
        self.mesh_motion = mesh_motion
        self.fluid = fluid
        self.loads = loads
        self.dt = dt
        self.beta = beta
        self.force_logger = force_logger
        self.snapshots = snapshots

        self.state = CouplingState(
            time=TimeState(),
            structure=StructuralState(),
            mesh=MeshMotionState.zeros(mesh_motion.space.size),
            fluid=fluid.initial_state(),
        )

    def step(self) -> StepResult:
        """
        Advance one time step and commit it.

        The step is committed before the force log and snapshot are written,
        since the mesh has already been remapped by then. If a writer raises
        ``OSError`` the committed state is one step ahead of the log.
        """
        prev = self.state
        step = prev.time.step + 1
        t = prev.time.t + self.dt

        predicted = prev.history.predict()

        body = self.structure.step(float(predicted[1]), prev.structure)

        delta = self.mesh_motion.solve(body.d - prev.structure.d)
        mesh_state = self.mesh_motion.update_velocity(delta, prev.mesh)
        self.mesh_motion.remap(delta)

        fluid_state = self.fluid.solve(prev.fluid, mesh_state.w_dot, body.v)

        evaluated = self.loads.evaluate(fluid_state.u, fluid_state.p)
        committed = relax(evaluated, predicted, self.beta)

        history = prev.history.copy()
        history.push(committed)
        self.state = CouplingState(TimeState(t, step), body, mesh_state, fluid_state, history)

        result = StepResult(
            step=step,
            time=t,
            predicted_force=predicted,
            evaluated_force=evaluated,
            committed_force=committed,
            displacement=body.d,
            velocity=body.v,
            velocity_increment=self.fluid.last_increment_norm,
        )
        self._output(result)
        return result

    def _output(self, result: StepResult) -> None:
        logger.info(
            "Step %d  t=%.4f  Fx=%.6e  Fy=%.6e  d=%.6e  v=%.6e",
            result.step,
            result.time,
            result.evaluated_force[0],
            result.evaluated_force[1],
            result.displacement,
            result.velocity,
        )
        logger.debug("Step %d: |u - u_n| = %.4e", result.step, result.velocity_increment)

        if self.force_logger is not None:
            self.force_logger.log_step(
                result.time,
                result.step,
                result.evaluated_force[0],
                result.evaluated_force[1],
                result.committed_force[1],
                result.displacement,
                result.velocity,
            )
        if self.snapshots is not None and self.snapshots.should_write(result.step):
            self.snapshots.write(result.step, result.time, self.state.fluid.u, self.state.fluid.p)

    def run(self, total_steps: int) -> List[StepResult]:
        """
        Advance a fixed number of steps.

        Raises
        ------
        SolverDivergenceError
            From any sub-solver; the run stops at the failing step.
        OSError
            From the force log or snapshot writer.
        """
        if total_steps < 0:
            raise ValueError(f"Number of steps must be non-negative, got {total_steps}")
        return [self.step() for _ in range(total_steps)]

