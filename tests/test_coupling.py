"""
Tests for the staggered coupling driver and the YAML runner.
"""

import numpy as np
import pytest

pytest.importorskip("petsc4py")

from ale_fsi.core.assembler import MeshAssembler
from ale_fsi.core.config import FSISimulationConfig
from ale_fsi.solvers.fluid import FluidSolver, FluidState
from ale_fsi.solvers.fsi.driver import CouplingDriver, validate_mesh_labels
from ale_fsi.solvers.fsi.logger import ForceLogger
from ale_fsi.solvers.fsi_runner import FSIRunner
from ale_fsi.solvers.loads import LoadEvaluator
from ale_fsi.solvers.mesh_motion import MeshMotionSolver, MeshMotionState
from ale_fsi.solvers.structure import RigidBodyIntegrator, StructuralState

from conftest import LABELS


class FakeSpace:
    size = 4


class FakeMeshMotion:
    space = FakeSpace()

    def __init__(self):
        self.increments = []
        self.remapped = []

    def solve(self, increment):
        self.increments.append(increment)
        return np.full(self.space.size, increment)

    def update_velocity(self, delta, prev):
        return MeshMotionState(delta, delta - prev.delta)

    def remap(self, delta):
        self.remapped.append(delta)


class FakeFluid:
    pressure_space = None

    def __init__(self):
        self.last_increment_norm = 0.0
        self.body_velocities = []

    def initial_state(self):
        return FluidState.zeros(4, 2)

    def solve(self, prev, mesh_velocity, body_velocity):
        self.body_velocities.append(body_velocity)
        return FluidState(prev.u + 1.0, prev.p, prev.a)


class FakeLoads:
    def __init__(self, forces):
        self.forces = iter(forces)

    def evaluate(self, velocity, pressure):
        return np.array(next(self.forces), dtype=float)


class RecordingBody(RigidBodyIntegrator):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.loads = []

    def step(self, force, prev):
        self.loads.append(force)
        return super().step(force, prev)


@pytest.fixture
def body(params):
    return RecordingBody(mass=117.10, damping=0.35317, stiffness=184.92, params=params)


def make_driver(body, forces, beta=1.0, force_logger=None):
    return CouplingDriver(
        body,
        FakeMeshMotion(),
        FakeFluid(),
        FakeLoads(forces),
        dt=0.1,
        beta=beta,
        force_logger=force_logger,
    )


class TestCouplingDriver:
    def test_initial_state(self, body):
        driver = make_driver(body, [])
        assert driver.state.time.step == 0
        assert driver.state.structure == StructuralState()
        np.testing.assert_allclose(driver.state.history.predict(), 0.0)

    def test_predicted_loads(self, body):
        driver = make_driver(body, [[1.0, 3.0], [2.0, 5.0], [0.0, 0.0]])
        results = driver.run(3)

        # Cold start, then 2 F_n - F_{n-1}
        assert body.loads == [0.0, 6.0, 7.0]
        np.testing.assert_allclose(results[1].predicted_force, [2.0, 6.0])
        np.testing.assert_allclose(results[2].predicted_force, [3.0, 7.0])

    def test_relaxed_commit(self, body):
        driver = make_driver(body, [[0.0, 10.0], [0.0, 10.0]], beta=0.5)
        first, second = driver.run(2)

        np.testing.assert_allclose(first.committed_force, [0.0, 5.0])
        np.testing.assert_allclose(second.predicted_force, [0.0, 10.0])
        np.testing.assert_allclose(second.committed_force, [0.0, 10.0])
        np.testing.assert_allclose(driver.state.history.current, [0.0, 10.0])
        np.testing.assert_allclose(driver.state.history.previous, [0.0, 5.0])

    def test_step_order_and_commit(self, body, params):
        driver = make_driver(body, [[0.0, 0.0], [1.0, 2.0]])
        driver.run(2)

        mesh_motion, fluid = driver.mesh_motion, driver.fluid
        assert len(mesh_motion.increments) == len(mesh_motion.remapped) == 2
        assert driver.state.time.step == 2
        assert np.isclose(driver.state.time.t, 0.2)
        assert fluid.body_velocities[-1] == driver.state.structure.v
        np.testing.assert_allclose(driver.state.fluid.u, 2.0)

    def test_body_responds_to_prediction(self, body):
        driver = make_driver(body, [[0.0, 100.0], [0.0, 100.0], [0.0, 100.0]])
        results = driver.run(3)

        increments = driver.mesh_motion.increments
        # Cold start: the body does not move on the first step
        assert increments[0] == 0.0
        assert results[0].displacement == 0.0
        assert results[1].displacement > 0.0
        for k in (1, 2):
            assert increments[k] == pytest.approx(results[k].displacement - results[k - 1].displacement)

    def test_fixed_obstacle(self, params):
        body = RecordingBody(1.0, 0.0, 0.0, params, enabled=False)
        driver = make_driver(body, [[1.0, 1.0]] * 3)
        results = driver.run(3)

        assert all(r.displacement == 0.0 and r.velocity == 0.0 for r in results)
        assert driver.mesh_motion.increments == [0.0, 0.0, 0.0]

    def test_force_log(self, body, tmp_path):
        log = ForceLogger(str(tmp_path / "forces.csv"), coupled=True)
        log.initialize()
        driver = make_driver(body, [[1.0, 2.0], [3.0, 4.0]], force_logger=log)
        driver.run(2)
        log.close()

        rows = [line for line in (tmp_path / "forces.csv").read_text().splitlines() if not line.startswith("#")]
        assert rows[0].split(",") == [
            "time", "step", "force_x", "force_y", "committed_force_y", "displacement_y", "velocity_y",
        ]
        assert len(rows) == 3
        assert rows[2].split(",")[1] == "2"

    def test_step_committed_before_log_write(self, body, tmp_path):
        class FullDiskLogger(ForceLogger):
            def log_step(self, *args):
                raise OSError("No space left on device")

        log = FullDiskLogger(str(tmp_path / "forces.csv"), coupled=True)
        driver = make_driver(body, [[0.0, 4.0]], force_logger=log)

        with pytest.raises(OSError):
            driver.step()

        assert driver.state.time.step == 1
        np.testing.assert_allclose(driver.state.history.current, [0.0, 4.0])
        assert len(driver.mesh_motion.remapped) == 1

    @pytest.mark.parametrize("dt, beta", [(0.0, 1.0), (0.1, 0.0), (0.1, 1.5)])
    def test_invalid_parameters(self, body, dt, beta):
        with pytest.raises(ValueError):
            CouplingDriver(body, FakeMeshMotion(), FakeFluid(), FakeLoads([]), dt=dt, beta=beta)

    def test_negative_steps(self, body):
        with pytest.raises(ValueError):
            make_driver(body, []).run(-1)


class TestValidateMeshLabels:
    def test_valid(self, channel_mesh):
        validate_mesh_labels(channel_mesh, LABELS)

    def test_missing_label(self, channel_mesh):
        labels = dict(LABELS, obstacle=9)
        with pytest.raises(ValueError, match="obstacle"):
            validate_mesh_labels(channel_mesh, labels)


def coupled_driver(mesh, params, body, beta=1.0):
    assembler = MeshAssembler(mesh)
    mesh_motion = MeshMotionSolver(
        mesh,
        young_modulus=1.0,
        poisson_ratio=0.3,
        fixed_boundaries=["inlet", "outlet", "bottom", "top"],
        moving_boundary="obstacle",
        params=params,
        assembler=assembler,
    )
    fluid = FluidSolver(
        mesh,
        density=1.0,
        viscosity=0.1,
        inflow=1.0,
        params=params,
        inlet="inlet",
        walls=["bottom", "top"],
        body="obstacle",
        assembler=assembler,
    )
    loads = LoadEvaluator(mesh, "obstacle", 0.1, fluid.pressure_space)
    return CouplingDriver(body, mesh_motion, fluid, loads, dt=params.dt, beta=beta)


class TestCoupledRuns:
    STEPS = 30

    def test_fixed_cylinder(self, channel_mesh, params):
        body = RigidBodyIntegrator(1.0, 0.0, 0.0, params, enabled=False)
        driver = coupled_driver(channel_mesh, params, body)

        results = driver.run(self.STEPS)

        drag = np.array([r.evaluated_force[0] for r in results])
        assert np.all(np.isfinite(drag))
        assert drag[-10:].mean() > 0.0
        assert all(r.displacement == 0.0 for r in results)
        assert channel_mesh.coords_version == 0

    def test_spring_mounted_cylinder(self, mesh_factory, params):
        mesh = mesh_factory(hole=((2, 4), (1, 2)))
        body = RigidBodyIntegrator(mass=117.10, damping=0.35317, stiffness=184.92, params=params)
        driver = coupled_driver(mesh, params, body, beta=0.9)
        obstacle = mesh.boundary_node_indices("obstacle")
        start = mesh.points[obstacle].copy()

        results = driver.run(self.STEPS)

        displacement = np.array([r.displacement for r in results])
        assert displacement[0] == 0.0
        assert np.all(displacement[1:] != 0.0)
        assert np.all(np.isfinite(displacement))
        # Stays well clear of the walls
        assert np.max(np.abs(displacement)) < 0.25

        assert mesh.coords_version > 0
        np.testing.assert_allclose(mesh.points[obstacle, 1] - start[:, 1], displacement[-1], atol=1e-9)
        np.testing.assert_allclose(mesh.points[obstacle, 0], start[:, 0])
        # The hole translates rigidly, so the fluid area is unchanged
        assert np.isclose(MeshAssembler(mesh).area(), 22.0)


def runner_config(mesh_path, output, enabled, steps=2):
    return FSISimulationConfig.from_dict(
        {
            "mesh": {"source": "file", "file": {"path": str(mesh_path)}},
            "fluid": {"density": 1.0, "viscosity": 0.1, "reynolds": 10.0},
            "time": {"dt": 0.05, "total_steps": steps},
            "structure": {"enabled": enabled, "mass": 117.10, "damping": 0.35317, "stiffness": 184.92},
            "coupling": {"beta": 0.9 if enabled else 1.0},
            "output": {"folder": str(output), "stride": 1},
        }
    )


class TestFSIRunner:
    @pytest.fixture
    def mesh_path(self, channel_mesh, tmp_path):
        path = tmp_path / "channel.msh"
        channel_mesh.write_mesh(str(path))
        return path

    def test_fixed_obstacle_run(self, mesh_path, tmp_path):
        runner = FSIRunner(runner_config(mesh_path, tmp_path / "fixed", enabled=False))
        results = runner.run()

        assert len(results) == 2
        assert all(r.displacement == 0.0 for r in results)
        assert all(np.all(np.isfinite(r.evaluated_force)) for r in results)
        assert runner.mesh.coords_version == 0
        assert (tmp_path / "fixed" / "forces.csv").exists()
        assert (tmp_path / "fixed" / "results.pvd").exists()
        assert (tmp_path / "fixed" / "fluid_000002.vtu").exists()

    def test_spring_mounted_run(self, mesh_factory, tmp_path):
        # Hole below the channel centreline, so the lift is nonzero from the first step
        mesh_path = tmp_path / "offset.msh"
        mesh_factory(hole=((2, 4), (1, 2))).write_mesh(str(mesh_path))
        runner = FSIRunner(runner_config(mesh_path, tmp_path / "spring", enabled=True, steps=3))
        results = runner.run()

        assert len(results) == 3
        assert results[0].displacement == 0.0
        assert all(np.isfinite(r.displacement) for r in results)
        assert results[-1].displacement != 0.0
        assert runner.mesh.coords_version > 0

        header = (tmp_path / "spring" / "forces.csv").read_text()
        assert "=== BODY ===" in header
        assert "displacement_y" in header

    def test_wrong_labels(self, mesh_path, tmp_path):
        config = runner_config(mesh_path, tmp_path / "bad", enabled=False)
        config.mesh.labels.obstacle = 7
        with pytest.raises(ValueError, match="obstacle"):
            FSIRunner(config).run()

    def test_from_yaml(self, mesh_path, tmp_path):
        config = runner_config(mesh_path, tmp_path / "yaml", enabled=False, steps=1)
        yaml_path = tmp_path / "case.yaml"
        config.save_yaml(yaml_path)

        runner = FSIRunner(yaml_path)
        assert runner.config_path == yaml_path
        assert "fixed obstacle" in runner.preview_config()
        assert len(runner.run()) == 1
