"""
ALE-FSI Simulation Runner.

This module provides a runner that executes fluid / rigid-body simulations
based on YAML configuration files, without requiring any Python code editing.

Example usage:
    from ale_fsi.solvers.fsi_runner import FSIRunner

    runner = FSIRunner("simulation.yaml")
    runner.run()

Or from command line:
    python -m ale_fsi.cli.run_fsi simulation.yaml
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..core.assembler import MeshAssembler
from ..core.boundary import BoundaryIntegrator
from ..core.config import FSISimulationConfig, MeshSource
from ..core.mesh import MeshModel
from .fluid import FluidSolver
from .fsi.driver import CouplingDriver, StepResult, validate_mesh_labels
from .fsi.logger import ForceLogger
from .fsi.output import SnapshotWriter
from .linalg import PETScLinearSolver
from .loads import LoadEvaluator
from .mesh_motion import MeshMotionSolver
from .structure import RigidBodyIntegrator
from .time_integration import GeneralizedAlphaParameters

logger = logging.getLogger(__name__)


class FSIRunner:
    """
    Simulation runner that executes a coupled run from YAML configuration.

    This class handles:
    - Loading the mesh from file or generating it with gmsh
    - Checking the boundary labels and the body parameters
    - Building the structural, mesh-motion, fluid and load components
    - Running the staggered time loop with force log and snapshots
    - Summarising the force history

    Parameters
    ----------
    config : FSISimulationConfig or str or Path
        Configuration object or path to YAML configuration file.
    working_dir : str or Path, optional
        Directory relative output paths are resolved against. If None,
        uses the current directory.

    Attributes
    ----------
    config : FSISimulationConfig
        The validated simulation configuration.
    mesh : MeshModel
        The loaded or generated mesh (moved in place during the run).
    driver : CouplingDriver
        The coupling driver after setup.

    Examples
    --------
    >>> runner = FSIRunner("simulation.yaml")
    >>> results = runner.run()
    """

    def __init__(
        self,
        config: Union[FSISimulationConfig, str, Path],
        working_dir: Optional[Union[str, Path]] = None,
    ):
        # Load configuration if path provided
        if isinstance(config, (str, Path)):
            self.config_path = Path(config)
            self.config = FSISimulationConfig.from_yaml(config)
        else:
            self.config_path = None
            self.config = config

        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.mesh: Optional[MeshModel] = None
        self.driver: Optional[CouplingDriver] = None
        self.results: List[StepResult] = []

    @property
    def output_folder(self) -> Path:
        folder = Path(self.config.output.folder)
        return folder if folder.is_absolute() else self.working_dir / folder

    def run(self) -> List[StepResult]:
        """
        Execute the complete simulation pipeline.

        Returns
        -------
        List[StepResult]
            One result per committed step.

        Raises
        ------
        ValueError
            If the configuration or the mesh labels are invalid.
        SolverDivergenceError
            If a linear solve fails during the time loop.
        OSError
            If the force log or a snapshot cannot be written.
        """
        self._print_header()
        self._validate_config()

        logger.info("Starting ALE-FSI simulation...")

        # Step 1: Load or generate mesh
        self.mesh = self._setup_mesh()

        # Step 2: Build partitions and driver
        self.driver = self._create_driver()

        # Step 3: Output
        force_logger = self._setup_output()

        # Step 4: Time loop
        try:
            self.results = self._run_time_loop()
        finally:
            force_logger.close()

        # Step 5: Post-processing
        self._run_postprocessing()

        logger.info("Simulation completed successfully!")
        return self.results

    def _print_header(self) -> None:
        """Print simulation header."""
        print("\n" + "=" * 70)
        print("  ALE-FSI SIMULATION RUNNER")
        print("=" * 70)
        print(f"  Configuration: {self.config_path or 'Provided object'}")
        print(f"  Body: {'spring-mounted' if self.config.structure.enabled else 'fixed'}")
        print(f"  Mesh source: {self.config.mesh.source}")
        print("=" * 70 + "\n")

    def _validate_config(self) -> None:
        """Validate configuration before running."""
        warnings = self.config.validate()
        if warnings:
            for warning in warnings:
                logger.warning("Configuration warning: %s", warning)

    def _setup_mesh(self) -> MeshModel:
        """Load or generate the mesh based on configuration."""
        print("\n[1/5] Setting up mesh...", flush=True)

        if self.config.mesh.source == MeshSource.FILE.value:
            mesh = self._load_mesh_from_file()
        else:
            mesh = self._generate_mesh()

        if self.config.mesh.output_file:
            mesh.write_mesh(self.config.mesh.output_file)
            print(f"      Written: {self.config.mesh.output_file}")

        validate_mesh_labels(mesh, self.config.mesh.labels.as_dict())

        print(f"      Nodes: {mesh.node_count}")
        print(f"      Elements: {mesh.elements_count}")
        print(f"      Boundaries: {mesh.boundary_labels}")

        return mesh

    def _load_mesh_from_file(self) -> MeshModel:
        """Load a labelled quadratic mesh from file."""
        file_path = Path(self.config.mesh.file.path)
        print(f"      Loading mesh from: {file_path}")
        return MeshModel.load(str(file_path))

    def _generate_mesh(self) -> MeshModel:
        """Generate the channel mesh with gmsh."""
        from ..core.mesh.generators import ChannelCylinderMesh

        params = self.config.mesh.generator
        print("      Generating mesh with: ChannelCylinderMesh")
        return ChannelCylinderMesh(
            x_min=params.x_min,
            x_max=params.x_max,
            y_min=params.y_min,
            y_max=params.y_max,
            center=params.center,
            radius=params.radius,
            element_size=params.element_size,
            obstacle_element_size=params.obstacle_element_size,
            labels=self.config.mesh.labels.as_dict(),
        ).generate()

    def _create_driver(self) -> CouplingDriver:
        """Create the partitions and the coupling driver."""
        print("\n[2/5] Creating solvers...", flush=True)

        if self.mesh is None:
            raise RuntimeError("Mesh must be loaded before creating solvers")

        cfg = self.config
        labels = cfg.mesh.labels
        params = GeneralizedAlphaParameters(rho_inf=cfg.time.rho_inf, dt=cfg.time.dt)
        assembler = MeshAssembler(self.mesh)

        structure = RigidBodyIntegrator(
            mass=cfg.structure.mass,
            damping=cfg.structure.damping,
            stiffness=cfg.structure.stiffness,
            params=params,
            enabled=cfg.structure.enabled,
        )
        mesh_motion = MeshMotionSolver(
            self.mesh,
            young_modulus=cfg.mesh_motion.young_modulus,
            poisson_ratio=cfg.mesh_motion.poisson_ratio,
            fixed_boundaries=labels.far_field,
            moving_boundary=labels.obstacle,
            params=params,
            assembler=assembler,
            linear_solver=PETScLinearSolver(
                rtol=cfg.mesh_motion.rtol, max_it=cfg.mesh_motion.max_it, name="mesh motion"
            ),
        )
        fluid = FluidSolver(
            self.mesh,
            density=cfg.fluid.density,
            viscosity=cfg.fluid.viscosity,
            inflow=cfg.fluid.inflow_velocity,
            params=params,
            inlet=labels.inlet,
            walls=[labels.bottom, labels.top],
            body=labels.obstacle,
            wall_condition=cfg.fluid.wall_condition,
            stabilization=cfg.fluid.pressure_stabilization,
            assembler=assembler,
        )
        loads = LoadEvaluator(
            self.mesh,
            labels.obstacle,
            cfg.fluid.viscosity,
            fluid.pressure_space,
            BoundaryIntegrator(self.mesh),
        )

        print(f"      Time integration: {params}")
        print(f"      Inflow velocity: {cfg.fluid.inflow_velocity:.6g}")
        print(f"      Fluid unknowns: {fluid.size}")
        if structure.enabled:
            print(f"      Body effective stiffness: {structure.k_eff:.6e}")

        return CouplingDriver(
            structure,
            mesh_motion,
            fluid,
            loads,
            dt=cfg.time.dt,
            beta=cfg.coupling.beta,
        )

    def _setup_output(self) -> ForceLogger:
        """Open the force log and attach the snapshot writer."""
        print("\n[3/5] Setting up output...", flush=True)

        cfg = self.config
        folder = self.output_folder
        metadata = {
            "fluid": {
                "density": cfg.fluid.density,
                "viscosity": cfg.fluid.viscosity,
                "Reynolds": cfg.fluid.reynolds,
                "inflow velocity": cfg.fluid.inflow_velocity,
                "walls": cfg.fluid.wall_condition,
            },
            "time": {"dt": cfg.time.dt, "total steps": cfg.time.total_steps, "rho_inf": cfg.time.rho_inf},
        }
        if cfg.structure.enabled:
            metadata["body"] = {
                "mass": cfg.structure.mass,
                "damping": cfg.structure.damping,
                "stiffness": cfg.structure.stiffness,
                "beta": cfg.coupling.beta,
            }

        force_logger = ForceLogger(
            str(folder / cfg.output.log_file),
            coupled=cfg.structure.enabled,
            separator=cfg.output.separator,
            metadata=metadata,
        )
        force_logger.initialize()
        self.driver.force_logger = force_logger
        self.driver.snapshots = SnapshotWriter(
            str(folder), self.driver.fluid.pressure_space, stride=cfg.output.stride
        )

        print(f"      Force log: {force_logger.log_file}")
        print(f"      Snapshots: {folder} (every {cfg.output.stride} steps)")
        return force_logger

    def _run_time_loop(self) -> List[StepResult]:
        print(f"\n[4/5] Time integration: {self.config.time.total_steps} steps...", flush=True)
        return self.driver.run(self.config.time.total_steps)

    def _run_postprocessing(self) -> None:
        """Summarise the force history."""
        print("\n[5/5] Post-processing...", flush=True)

        if not self.results:
            print("      No steps computed")
            return

        from ..postprocess.forces import ForceHistoryAnalyzer

        analyzer = ForceHistoryAnalyzer(self.driver.force_logger.log_file, separator=self.config.output.separator)
        window = max(1, analyzer.row_count // 2)
        print(f"      Mean drag (last {window} steps): {analyzer.mean('force_x', window):.6e}")
        print(f"      Lift amplitude (last {window} steps): {analyzer.amplitude('force_y', window):.6e}")
        if self.config.structure.enabled:
            print(
                f"      Displacement amplitude: {analyzer.amplitude('displacement_y', window):.6e}"
            )

    def preview_config(self) -> str:
        """Get a preview of the configuration.

        Returns
        -------
        str
            Human-readable configuration summary.
        """
        return str(self.config)


def run_from_yaml(yaml_path: Union[str, Path], working_dir: Optional[str] = None) -> List[StepResult]:
    """
    Convenience function to run a simulation from a YAML file.

    Parameters
    ----------
    yaml_path : str or Path
        Path to the YAML configuration file.
    working_dir : str, optional
        Working directory for the simulation.

    Returns
    -------
    List[StepResult]
        One result per committed step.

    Examples
    --------
    >>> from ale_fsi.solvers.fsi_runner import run_from_yaml
    >>> results = run_from_yaml("simulation.yaml")
    """
    runner = FSIRunner(yaml_path, working_dir)
    return runner.run()
