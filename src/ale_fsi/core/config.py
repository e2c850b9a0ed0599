"""
FSI Simulation Configuration Module.

This module provides a YAML-based configuration system for ALE fluid /
rigid-body simulations, allowing users to define complete runs without
writing Python code.

Example YAML configuration:
    mesh:
      source: "generator"
      generator:
        element_size: 1.0
        obstacle_element_size: 0.1

    fluid:
      density: 1.0
      viscosity: 0.01
      reynolds: 100

    time:
      dt: 0.1
      total_steps: 3000
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

# =============================================================================
# Enumerations
# =============================================================================


class MeshSource(str, Enum):
    """Source type for mesh data."""

    FILE = "file"
    GENERATOR = "generator"


class WallCondition(str, Enum):
    """Velocity condition on the channel walls."""

    SLIP = "slip"
    NOSLIP = "noslip"


# =============================================================================
# Configuration Data Classes
# =============================================================================


@dataclass
class MeshFileConfig:
    """Configuration for loading mesh from file."""

    path: str

    def __post_init__(self):
        if not self.path:
            raise ValueError("Mesh file path must not be empty")


@dataclass
class ChannelMeshParams:
    """Parameters for the ChannelCylinderMesh generator."""

    x_min: float = -10.0
    x_max: float = 30.0
    y_min: float = -10.0
    y_max: float = 10.0
    center: Tuple[float, float] = (0.0, 0.0)
    radius: float = 0.5
    element_size: float = 1.0
    obstacle_element_size: float = 0.1

    def __post_init__(self):
        self.center = tuple(self.center)
        if self.radius <= 0:
            raise ValueError(f"Obstacle radius must be positive, got {self.radius}")
        if self.element_size <= 0 or self.obstacle_element_size <= 0:
            raise ValueError("Element sizes must be positive")


@dataclass
class BoundaryLabelsConfig:
    """Integer labels of the five boundary groups."""

    inlet: int = 1
    outlet: int = 2
    bottom: int = 3
    top: int = 4
    obstacle: int = 5

    def __post_init__(self):
        values = list(self.as_dict().values())
        if len(set(values)) != len(values):
            raise ValueError(f"Boundary labels must be distinct, got {self.as_dict()}")

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)

    @property
    def far_field(self) -> List[int]:
        """Boundaries that never move."""
        return [self.inlet, self.outlet, self.bottom, self.top]


@dataclass
class MeshConfig:
    """Complete mesh configuration."""

    source: str
    file: Optional[MeshFileConfig] = None
    generator: Optional[ChannelMeshParams] = None
    labels: BoundaryLabelsConfig = field(default_factory=BoundaryLabelsConfig)
    # Output mesh file (format inferred from extension)
    output_file: Optional[str] = None

    def __post_init__(self):
        if self.source == MeshSource.FILE.value:
            if self.file is None:
                raise ValueError("Mesh source is 'file' but no file config provided")
        elif self.source == MeshSource.GENERATOR.value:
            if self.generator is None:
                self.generator = ChannelMeshParams()
        else:
            raise ValueError(f"Invalid mesh source: {self.source}")


@dataclass
class FluidConfig:
    """Fluid properties and boundary treatment."""

    density: float = 1.0
    viscosity: float = 0.01
    reynolds: float = 100.0
    reference_length: float = 1.0
    wall_condition: str = WallCondition.SLIP.value
    pressure_stabilization: float = 1e-8

    def __post_init__(self):
        if self.density <= 0:
            raise ValueError(f"Fluid density must be positive, got {self.density}")
        if self.viscosity <= 0:
            raise ValueError(f"Viscosity must be positive, got {self.viscosity}")
        if self.reynolds < 0:
            raise ValueError(f"Reynolds number must be non-negative, got {self.reynolds}")
        if self.reference_length <= 0:
            raise ValueError("Reference length must be positive")
        if self.wall_condition not in [w.value for w in WallCondition]:
            raise ValueError(f"Invalid wall condition: {self.wall_condition}")
        if self.pressure_stabilization < 0:
            raise ValueError("Pressure stabilization must be non-negative")

    @property
    def inflow_velocity(self) -> float:
        """``U = Re mu / (rho D)``."""
        return self.reynolds * self.viscosity / (self.density * self.reference_length)


@dataclass
class TimeConfig:
    """Time stepping parameters."""

    dt: float = 0.1
    total_steps: int = 3000
    rho_inf: float = 0.5

    def __post_init__(self):
        if self.dt is None or self.dt <= 0:
            raise ValueError(f"Time step must be positive, got {self.dt}")
        if self.total_steps < 0:
            raise ValueError(f"total_steps must be non-negative, got {self.total_steps}")
        if not 0.0 <= self.rho_inf <= 1.0:
            raise ValueError(f"rho_inf must be in [0, 1], got {self.rho_inf}")

    @property
    def total_time(self) -> float:
        return self.dt * self.total_steps


@dataclass
class StructureConfig:
    """Spring-mounted body (transverse motion only).

    With ``enabled: false`` the body is a fixed obstacle and the other
    values are ignored.
    """

    enabled: bool = False
    mass: float = 1.0
    damping: float = 0.0
    stiffness: float = 0.0

    def __post_init__(self):
        if not self.enabled:
            return
        if self.mass is None or self.mass <= 0:
            raise ValueError(f"Body mass must be positive, got {self.mass}")
        if self.damping < 0:
            raise ValueError(f"Damping must be non-negative, got {self.damping}")
        if self.stiffness < 0:
            raise ValueError(f"Stiffness must be non-negative, got {self.stiffness}")


@dataclass
class MeshMotionConfig:
    """Fictitious elastic constants of the mesh smoothing problem."""

    young_modulus: float = 1.0
    poisson_ratio: float = 0.3
    rtol: float = 1e-10
    max_it: int = 2000

    def __post_init__(self):
        if self.young_modulus <= 0:
            raise ValueError(f"Mesh Young's modulus must be positive, got {self.young_modulus}")
        if not -1.0 < self.poisson_ratio < 0.5:
            raise ValueError(f"Mesh Poisson ratio must be in (-1, 0.5), got {self.poisson_ratio}")


@dataclass
class CouplingConfig:
    """Staggered coupling parameters."""

    beta: float = 1.0

    def __post_init__(self):
        if not 0.0 < self.beta <= 1.0:
            raise ValueError(f"Relaxation factor beta must be in (0, 1], got {self.beta}")


@dataclass
class OutputConfig:
    """Output configuration."""

    folder: str = "results"
    stride: int = 10
    log_file: str = "forces.csv"
    separator: str = ","

    def __post_init__(self):
        if self.stride < 0:
            raise ValueError(f"Output stride must be non-negative, got {self.stride}")


@dataclass
class FSISimulationConfig:
    """Complete ALE-FSI simulation configuration."""

    mesh: MeshConfig
    fluid: FluidConfig = field(default_factory=FluidConfig)
    time: TimeConfig = field(default_factory=TimeConfig)
    structure: StructureConfig = field(default_factory=StructureConfig)
    mesh_motion: MeshMotionConfig = field(default_factory=MeshMotionConfig)
    coupling: CouplingConfig = field(default_factory=CouplingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "FSISimulationConfig":
        """Load configuration from YAML file.

        Parameters
        ----------
        yaml_path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        FSISimulationConfig
            Validated configuration object.

        Raises
        ------
        FileNotFoundError
            If the YAML file does not exist.
        ValueError
            If the configuration is invalid.
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data, base_path=yaml_path.parent)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "FSISimulationConfig":
        """Create configuration from dictionary.

        Parameters
        ----------
        data : dict
            Configuration dictionary.
        base_path : Path, optional
            Base path for resolving relative file paths.

        Returns
        -------
        FSISimulationConfig
            Validated configuration object.
        """
        # Parse mesh configuration
        mesh_data = dict(data.get("mesh", {}))
        mesh_file = None
        mesh_generator = None

        source = mesh_data.get("source", MeshSource.GENERATOR.value)
        if source == MeshSource.FILE.value:
            file_data = dict(mesh_data.get("file") or {})
            if file_data:
                # Resolve relative paths
                if base_path and not Path(file_data.get("path", "")).is_absolute():
                    file_data["path"] = str(base_path / file_data.get("path", ""))
                mesh_file = MeshFileConfig(**file_data)
        elif source == MeshSource.GENERATOR.value:
            mesh_generator = ChannelMeshParams(**(mesh_data.get("generator") or {}))

        mesh_config = MeshConfig(
            source=source,
            file=mesh_file,
            generator=mesh_generator,
            labels=BoundaryLabelsConfig(**(mesh_data.get("labels") or {})),
            output_file=mesh_data.get("output_file"),
        )

        output_data = dict(data.get("output") or {})
        if base_path and not Path(output_data.get("folder", "results")).is_absolute():
            output_data["folder"] = str(base_path / output_data.get("folder", "results"))

        return cls(
            mesh=mesh_config,
            fluid=FluidConfig(**(data.get("fluid") or {})),
            time=TimeConfig(**(data.get("time") or {})),
            structure=StructureConfig(**(data.get("structure") or {})),
            mesh_motion=MeshMotionConfig(**(data.get("mesh_motion") or {})),
            coupling=CouplingConfig(**(data.get("coupling") or {})),
            output=OutputConfig(**output_data),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        result = {
            "mesh": {
                "source": self.mesh.source,
                "labels": self.mesh.labels.as_dict(),
            },
            "fluid": asdict(self.fluid),
            "time": asdict(self.time),
            "structure": asdict(self.structure),
            "mesh_motion": asdict(self.mesh_motion),
            "coupling": asdict(self.coupling),
            "output": asdict(self.output),
        }

        # Add mesh specifics
        if self.mesh.file:
            result["mesh"]["file"] = {"path": self.mesh.file.path}
        if self.mesh.generator:
            generator = asdict(self.mesh.generator)
            generator["center"] = list(generator["center"])
            result["mesh"]["generator"] = generator
        if self.mesh.output_file:
            result["mesh"]["output_file"] = self.mesh.output_file

        return result

    def save_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file.

        Parameters
        ----------
        yaml_path : str or Path
            Path to the output YAML file.
        """
        with open(yaml_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate the complete configuration.

        Returns
        -------
        list of str
            List of validation warnings (empty if all OK).
        """
        warnings = []

        if self.structure.enabled and self.structure.stiffness == 0 and self.structure.damping == 0:
            warnings.append("Body has no spring and no damper; it will drift freely")
        if not self.structure.enabled and self.coupling.beta != 1.0:
            warnings.append("Relaxation factor has no effect on a fixed obstacle")
        if self.output.stride == 0:
            warnings.append("Field snapshots are disabled (output.stride = 0)")
        if self.time.total_steps == 0:
            warnings.append("total_steps is 0; nothing will be computed")
        if self.fluid.pressure_stabilization > 1e-4:
            warnings.append(
                f"Pressure stabilization {self.fluid.pressure_stabilization} is large "
                "and will visibly relax incompressibility"
            )

        # Boundary labels can only be checked once the mesh is loaded

        return warnings

    def __str__(self) -> str:
        """Human-readable string representation."""
        lines = [
            "ALE-FSI Simulation Configuration",
            "=" * 40,
            f"Mesh: {self.mesh.source}",
        ]
        if self.mesh.file:
            lines.append(f"  File: {self.mesh.file.path}")
        if self.mesh.generator:
            g = self.mesh.generator
            lines.append(
                f"  Channel: [{g.x_min}, {g.x_max}] x [{g.y_min}, {g.y_max}], "
                f"obstacle r={g.radius} at {g.center}"
            )
        lines.append(f"  Labels: {self.mesh.labels.as_dict()}")

        lines.extend(
            [
                f"Fluid: rho={self.fluid.density}, mu={self.fluid.viscosity}, "
                f"Re={self.fluid.reynolds} (U={self.fluid.inflow_velocity:.4g})",
                f"  Walls: {self.fluid.wall_condition}",
                f"Time: {self.time.total_steps} steps x dt={self.time.dt} "
                f"(T={self.time.total_time:g}), rho_inf={self.time.rho_inf}",
            ]
        )

        if self.structure.enabled:
            s = self.structure
            lines.append(f"Body: m={s.mass}, c={s.damping}, k={s.stiffness}")
            lines.append(f"Coupling: beta={self.coupling.beta}")
        else:
            lines.append("Body: fixed obstacle")

        lines.append(f"Output: {self.output.folder} (every {self.output.stride} steps)")

        return "\n".join(lines)
