"""
Tests for the mesh-motion, fluid and load partitions on a small channel with
a square obstacle.
"""

import numpy as np
import pytest
import scipy.sparse as sp

pytest.importorskip("petsc4py")

from ale_fsi.core.assembler import MeshAssembler
from ale_fsi.core.bc import DirichletCondition
from ale_fsi.core.exceptions import SolverDivergenceError
from ale_fsi.solvers.fluid import FluidSolver, FluidState, inflow_velocity
from ale_fsi.solvers.linalg import DirectLinearSolver, LinearProblem, PETScLinearSolver
from ale_fsi.solvers.loads import LoadEvaluator
from ale_fsi.solvers.mesh_motion import MeshMotionSolver, MeshMotionState, lame_constants

FAR_FIELD = ["inlet", "outlet", "bottom", "top"]


def make_mesh_motion(mesh, params, assembler=None):
    return MeshMotionSolver(
        mesh,
        young_modulus=1.0,
        poisson_ratio=0.3,
        fixed_boundaries=FAR_FIELD,
        moving_boundary="obstacle",
        params=params,
        assembler=assembler,
    )


def make_fluid(mesh, params, wall_condition="slip", assembler=None):
    return FluidSolver(
        mesh,
        density=1.0,
        viscosity=0.1,
        inflow=1.0,
        params=params,
        inlet="inlet",
        walls=["bottom", "top"],
        body="obstacle",
        wall_condition=wall_condition,
        assembler=assembler,
    )


class TestLinearSolvers:
    @pytest.fixture
    def spd_system(self):
        n = 50
        A = sp.diags([-1.0, 2.0, -1.0], [-1, 0, 1], shape=(n, n), format="csr")
        x = np.linspace(0.0, 1.0, n)
        return A, A @ x, x

    def test_petsc_cg(self, spd_system):
        A, b, x = spd_system
        solver = PETScLinearSolver(rtol=1e-12)
        np.testing.assert_allclose(solver.solve(A, b), x, atol=1e-8)
        assert solver.converged_reason > 0
        assert solver.iterations > 0

    def test_petsc_divergence(self):
        n = 20
        T = sp.diags([-1.0, 2.0, -1.0], [-1, 0, 1], shape=(n, n))
        A = (sp.kron(sp.eye(n), T) + sp.kron(T, sp.eye(n))).tocsr()
        b = np.ones(n * n)
        solver = PETScLinearSolver(rtol=1e-14, atol=0.0, max_it=1)
        with pytest.raises(SolverDivergenceError):
            solver.solve(A, b)

    def test_options_stay_under_solver_prefix(self):
        from petsc4py import PETSc

        n = 101
        T = sp.diags([-1.0, 2.0, -1.0], [-1, 0, 1], shape=(n, n))
        A = (sp.kron(sp.eye(n), T) + sp.kron(T, sp.eye(n))).tocsr()
        x = np.ones(n * n)

        large = PETScLinearSolver(rtol=1e-10)
        np.testing.assert_allclose(large.solve(A, A @ x), x, atol=1e-5)

        small = PETScLinearSolver()
        assert small.options_prefix != large.options_prefix
        assert not PETSc.Options().hasName("pc_gamg_type")
        assert PETSc.Options(large.options_prefix).hasName("pc_gamg_type")
        assert not PETSc.Options(small.options_prefix).hasName("pc_gamg_type")

    def test_direct_singular(self):
        A = sp.csr_matrix(np.array([[1.0, 1.0], [1.0, 1.0]]))
        with pytest.raises(SolverDivergenceError):
            DirectLinearSolver().solve(A, np.array([1.0, 2.0]))

    def test_linear_problem_inserts_dirichlet_values(self, spd_system):
        A, _, _ = spd_system
        b = np.zeros(A.shape[0])
        bcs = [DirichletCondition([0], 0.0), DirichletCondition([A.shape[0] - 1], 1.0)]
        u = LinearProblem(A, b, bcs, PETScLinearSolver()).solve()
        # Discrete Laplace with linear boundary data is linear
        np.testing.assert_allclose(u, np.linspace(0.0, 1.0, A.shape[0]), atol=1e-8)


class TestMeshMotion:
    def test_lame_constants(self):
        lam, mu = lame_constants(1.0, 0.25)
        assert np.isclose(lam, 0.4)
        assert np.isclose(mu, 0.4)
        with pytest.raises(ValueError):
            lame_constants(1.0, 0.5)
        with pytest.raises(ValueError):
            lame_constants(0.0, 0.3)

    def test_zero_increment(self, channel_mesh, params):
        solver = make_mesh_motion(channel_mesh, params)
        delta = solver.solve(0.0)

        assert delta.shape == (solver.space.size,)
        assert not np.any(delta)
        assert solver.dirichlet_conditions

    @pytest.mark.parametrize("increment", [0.1, -0.05])
    def test_reduced_elasticity_system_matches_lu(self, channel_mesh, params, increment):
        solver = make_mesh_motion(channel_mesh, params)
        K = solver.domain.elasticity_matrix(solver.space, solver.lam, solver.mu)
        bcs = solver.boundary_conditions(increment)

        iterative = PETScLinearSolver(rtol=1e-12)
        delta = LinearProblem(K, solver.space.zeros(), bcs, iterative).solve()
        reference = LinearProblem(K, solver.space.zeros(), bcs, DirectLinearSolver()).solve()

        assert iterative.converged_reason > 0
        np.testing.assert_allclose(delta, reference, atol=1e-9)
        np.testing.assert_allclose(solver.solve(increment), reference, atol=1e-8)

    def test_dirichlet_data_exact(self, channel_mesh, params):
        solver = make_mesh_motion(channel_mesh, params)
        delta = solver.solve(0.1)
        V = solver.space

        for name in FAR_FIELD:
            np.testing.assert_array_equal(delta[V.dofs_on(name)], 0.0)
        np.testing.assert_array_equal(delta[V.dofs_on("obstacle", 0)], 0.0)
        np.testing.assert_allclose(delta[V.dofs_on("obstacle", 1)], 0.1)

        interior = np.setdiff1d(np.arange(V.size), np.concatenate([V.dofs_on(n) for n in FAR_FIELD + ["obstacle"]]))
        assert np.max(np.abs(delta[interior])) > 0.0

    def test_remap_moves_obstacle(self, channel_mesh, params):
        solver = make_mesh_motion(channel_mesh, params)
        obstacle = channel_mesh.boundary_node_indices("obstacle")
        inlet = channel_mesh.boundary_node_indices("inlet")
        before = channel_mesh.points.copy()

        solver.remap(solver.solve(0.1))

        after = channel_mesh.points
        np.testing.assert_allclose(after[obstacle] - before[obstacle], [[0.0, 0.1]] * obstacle.size)
        np.testing.assert_allclose(after[inlet], before[inlet])
        # Rigid translation of the hole keeps the fluid area
        assert np.isclose(MeshAssembler(channel_mesh).area(), 20.0)

    def test_zero_remap_is_identity(self, channel_mesh, params):
        solver = make_mesh_motion(channel_mesh, params)
        version = channel_mesh.coords_version
        before = channel_mesh.points.copy()

        solver.remap(solver.solve(0.0))

        assert channel_mesh.coords_version == version
        np.testing.assert_array_equal(channel_mesh.points, before)

    def test_mesh_velocity(self, channel_mesh, params):
        solver = make_mesh_motion(channel_mesh, params)
        delta = solver.solve(0.1)
        prev = MeshMotionState.zeros(solver.space.size)

        state = solver.update_velocity(delta, prev)

        np.testing.assert_allclose(state.w_dot, params.c0 * delta)
        assert state.delta is delta

    def test_assembler_bound_to_other_mesh(self, channel_mesh, mesh_factory, params):
        with pytest.raises(ValueError):
            make_mesh_motion(channel_mesh, params, assembler=MeshAssembler(mesh_factory()))


class TestFluidSolver:
    def test_inflow_velocity(self):
        assert np.isclose(inflow_velocity(100.0, 1.0, 0.01), 1.0)
        assert np.isclose(inflow_velocity(110.0, 1.0, 0.01, length=2.0), 0.55)

    def test_unknown_wall_condition(self, channel_mesh, params):
        with pytest.raises(ValueError):
            make_fluid(channel_mesh, params, wall_condition="free")

    def test_fixed_obstacle_conditions(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        body = set(fluid.velocity_space.dofs_on("obstacle").tolist())

        prescribed = {}
        for bc in fluid.boundary_conditions(0.0):
            prescribed.update(zip(bc.dofs.tolist(), bc.values.tolist()))

        assert body <= set(prescribed)
        assert all(prescribed[d] == 0.0 for d in body)

    def test_slip_walls_leave_tangential_velocity_free(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        V = fluid.velocity_space
        prescribed = np.concatenate([bc.dofs for bc in fluid.boundary_conditions(0.0)])

        wall_x = np.setdiff1d(V.dofs_on("bottom", 0), V.dofs_on("inlet", 0))
        assert not np.isin(wall_x, prescribed).any()
        assert np.isin(V.dofs_on("top", 1), prescribed).all()

    def test_first_step(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        V, Q = fluid.velocity_space, fluid.pressure_space
        prev = fluid.initial_state()
        mesh_velocity = V.zeros()

        state = fluid.solve(prev, mesh_velocity, 0.2)

        assert isinstance(state, FluidState)
        assert np.all(np.isfinite(state.u)) and np.all(np.isfinite(state.p))
        np.testing.assert_allclose(state.u[V.dofs_on("inlet", 0)], 1.0)
        np.testing.assert_allclose(state.u[V.dofs_on("obstacle", 0)], 0.0)
        np.testing.assert_allclose(state.u[V.dofs_on("obstacle", 1)], 0.2)
        np.testing.assert_allclose(state.a, params.rate(state.u, prev.u, prev.a))
        assert np.isclose(fluid.last_increment_norm, np.linalg.norm(state.u))

        # The continuity rows hold exactly: B u = eps M_p p
        B = fluid.domain.divergence_matrix(Q, V)
        Mp = fluid.domain.mass_matrix(Q)
        np.testing.assert_allclose(B @ state.u, fluid.stabilization * (Mp @ state.p), atol=1e-10)

    def test_noslip_walls(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params, wall_condition="noslip")
        V = fluid.velocity_space

        state = fluid.solve(fluid.initial_state(), V.zeros(), 0.0)

        np.testing.assert_allclose(state.u[V.dofs_on("bottom")], 0.0)
        np.testing.assert_allclose(state.u[V.dofs_on("top")], 0.0)
        inlet_interior = np.setdiff1d(V.dofs_on("inlet", 0), V.dofs_on("bottom"))
        inlet_interior = np.setdiff1d(inlet_interior, V.dofs_on("top"))
        np.testing.assert_allclose(state.u[inlet_interior], 1.0)

    def test_assemble_shapes(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        A, b = fluid.assemble(fluid.initial_state(), fluid.velocity_space.zeros())
        assert A.shape == (fluid.size, fluid.size)
        assert b.shape == (fluid.size,)
        # Fluid at rest on a fixed mesh: no explicit load
        np.testing.assert_allclose(b, 0.0)

    def test_mesh_moving_with_uniform_flow(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        V, Q = fluid.velocity_space, fluid.pressure_space
        uniform = V.interpolate(lambda x: np.column_stack([np.full(len(x), 0.7), np.full(len(x), -0.3)]))
        prev = FluidState(uniform, Q.zeros(), V.zeros())

        A_rest, _ = fluid.assemble(fluid.initial_state(), V.zeros())
        A_ale, _ = fluid.assemble(prev, uniform)
        A_fixed_mesh, _ = fluid.assemble(prev, V.zeros())

        # Zero relative velocity and no gradient of u_n: nothing to convect
        assert abs(A_ale - A_rest).max() < 1e-12
        assert abs(A_fixed_mesh - A_rest).max() > 1e-3

    def test_linearised_convection_load(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        V, Q = fluid.velocity_space, fluid.pressure_space
        dom = fluid.domain
        rho, mu = fluid.rho, fluid.mu
        af, am, c0 = params.alpha_f, params.alpha_m, params.c0

        # Divergence-free, with (u . grad) u = (x, y)
        u_n = V.interpolate(lambda x: np.column_stack([x[:, 0], -x[:, 1]]))
        prev = FluidState(u_n, Q.zeros(), V.zeros())

        _, b = fluid.assemble(prev, V.zeros())

        M = dom.mass_matrix(V)
        R = dom.gradient_reaction_matrix(V, u_n.reshape(-1, 2))
        C = dom.convection_matrix(V, u_n.reshape(-1, 2))
        L = rho * C + rho * R + mu * dom.stiffness_matrix(V)
        expected = rho * am * c0 * (M @ u_n) - (1.0 - af) * (L @ u_n) + rho * (R @ u_n)

        np.testing.assert_allclose(b[: V.size], expected, atol=1e-10)
        np.testing.assert_allclose(b[V.size :], 0.0)
        # R u_n is the load of (u_n . grad) u_n = (x, y), which P2 represents exactly
        np.testing.assert_allclose(R @ u_n, M @ V.interpolate(lambda x: x[:, :2]), atol=1e-10)


class TestLoadEvaluator:
    def test_pressure_load(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        V, Q = fluid.velocity_space, fluid.pressure_space
        loads = LoadEvaluator(channel_mesh, "obstacle", 0.1, Q)

        force = loads.evaluate(V.zeros(), Q.interpolate(lambda x: 2.0 * x[:, 1]))

        np.testing.assert_allclose(force, [0.0, -8.0], atol=1e-12)

    def test_load_after_step_is_finite(self, channel_mesh, params):
        fluid = make_fluid(channel_mesh, params)
        state = fluid.solve(fluid.initial_state(), fluid.velocity_space.zeros(), 0.0)
        loads = LoadEvaluator(channel_mesh, "obstacle", 0.1, fluid.pressure_space)

        force = loads.evaluate(state.u, state.p)

        assert force.shape == (2,)
        assert np.all(np.isfinite(force))
        # Flow from left to right drags the obstacle downstream
        assert force[0] > 0.0
