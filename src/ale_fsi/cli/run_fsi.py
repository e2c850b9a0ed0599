#!/usr/bin/env python3
"""
ALE-FSI Simulation CLI Runner.

This script provides a command-line interface for running fluid / rigid-body
simulations from YAML configuration files.

Usage:
    python -m ale_fsi.cli.run_fsi config.yaml [options]

Examples:
    # Run simulation from YAML
    python -m ale_fsi.cli.run_fsi simulation.yaml

    # Run with custom working directory
    python -m ale_fsi.cli.run_fsi simulation.yaml --workdir /path/to/case

    # Preview configuration without running
    python -m ale_fsi.cli.run_fsi simulation.yaml --preview

    # Generate template configuration
    python -m ale_fsi.cli.run_fsi --template > my_config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

# Template YAML configuration
TEMPLATE_CONFIG = """# ALE-FSI Simulation Configuration
# ================================
# Flow past a cylinder in a channel, fixed or spring-mounted.

#============================================================================
# MESH CONFIGURATION
#============================================================================
mesh:
  # Option 1: Generate with gmsh (channel with a circular obstacle)
  source: "generator"  # "file" or "generator"
  generator:
    x_min: -10.0
    x_max: 30.0
    y_min: -10.0
    y_max: 10.0
    center: [0.0, 0.0]
    radius: 0.5
    element_size: 1.0           # Element size on the channel boundary
    obstacle_element_size: 0.1  # Element size on the obstacle

  # Option 2: Load a second-order (triangle6/line3) mesh from file
  # source: "file"
  # file:
  #   path: "channel.msh"

  # Integer labels of the boundary groups (gmsh physical tags)
  labels:
    inlet: 1
    outlet: 2
    bottom: 3
    top: 4
    obstacle: 5

  # Optional: Write mesh to file (format inferred from extension)
  # output_file: "channel.vtu"

#============================================================================
# FLUID
#============================================================================
fluid:
  density: 1.0
  viscosity: 0.01
  reynolds: 100.0          # Inflow velocity U = Re * mu / (rho * D)
  reference_length: 1.0    # D (cylinder diameter)
  wall_condition: "slip"   # "slip" (no penetration) or "noslip"
  pressure_stabilization: 1.0e-8

#============================================================================
# TIME INTEGRATION (generalized-alpha)
#============================================================================
time:
  dt: 0.1
  total_steps: 3000
  rho_inf: 0.5             # Spectral radius at infinite frequency, in [0, 1]

#============================================================================
# BODY (transverse degree of freedom)
#============================================================================
structure:
  enabled: false           # false = fixed obstacle
  mass: 117.10
  damping: 0.35317
  stiffness: 184.92

#============================================================================
# MESH MOTION (pseudo-elastic smoothing)
#============================================================================
mesh_motion:
  young_modulus: 1.0
  poisson_ratio: 0.3

#============================================================================
# COUPLING
#============================================================================
coupling:
  beta: 1.0                # Relaxation factor in (0, 1]

#============================================================================
# OUTPUT
#============================================================================
output:
  folder: "results"
  stride: 10               # Snapshot every N steps (0 = disabled)
  log_file: "forces.csv"
  separator: ","
"""

SCENARIO_TEMPLATES = {
    "fixed": """# Fixed cylinder, Re = 100
fluid:
  reynolds: 100.0
structure:
  enabled: false
""",
    "spring": """# Spring-mounted cylinder, Re = 110
fluid:
  reynolds: 110.0
structure:
  enabled: true
  mass: 117.10
  damping: 0.35317
  stiffness: 184.92
coupling:
  beta: 0.9
""",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def print_template(scenario: str = None) -> None:
    """Print template configuration to stdout."""
    print(TEMPLATE_CONFIG)

    if scenario and scenario in SCENARIO_TEMPLATES:
        print("\n# Overrides for the", scenario, "scenario")
        print(SCENARIO_TEMPLATES[scenario])


def validate_config(config_path: str) -> bool:
    """Validate configuration file without running."""
    from ale_fsi.core.config import FSISimulationConfig

    try:
        config = FSISimulationConfig.from_yaml(config_path)
        warnings = config.validate()

        print("Configuration validation:")
        print("=" * 50)
        print(config)

        if warnings:
            print("\nWarnings:")
            for w in warnings:
                print(f"  ⚠️  {w}")
            return False
        else:
            print("\n✓ Configuration is valid")
            return True

    except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
        print(f"\n✗ Validation failed: {e}")
        return False


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run ALE fluid / rigid-body simulations from YAML configuration files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s config.yaml                    Run simulation
  %(prog)s config.yaml --preview          Preview configuration
  %(prog)s --template > config.yaml       Generate template
  %(prog)s --template --scenario spring
        """,
    )

    parser.add_argument(
        "config",
        nargs="?",
        help="Path to YAML configuration file",
    )

    parser.add_argument(
        "--workdir",
        "-w",
        help="Working directory for simulation",
    )

    parser.add_argument(
        "--preview",
        "-p",
        action="store_true",
        help="Preview configuration without running",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration file",
    )

    parser.add_argument(
        "--template",
        "-t",
        action="store_true",
        help="Print template configuration to stdout",
    )

    parser.add_argument(
        "--scenario",
        "-s",
        choices=list(SCENARIO_TEMPLATES.keys()),
        help="Include overrides for a reference scenario",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    # Handle special commands first
    if args.template:
        print_template(args.scenario)
        return 0

    # Require config file for other operations
    if not args.config:
        parser.print_help()
        return 1

    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Configuration file not found: {config_path}")
        return 1

    setup_logging(args.verbose)

    # Validate only
    if args.validate:
        return 0 if validate_config(str(config_path)) else 1

    # Preview configuration
    if args.preview:
        from ale_fsi.core.config import FSISimulationConfig

        config = FSISimulationConfig.from_yaml(str(config_path))
        print(config)
        return 0

    # Run simulation
    try:
        from ale_fsi.solvers.fsi_runner import FSIRunner

        runner = FSIRunner(str(config_path), args.workdir)
        runner.run()
        return 0

    except KeyboardInterrupt:
        print("\nSimulation interrupted by user")
        return 130

    except Exception as e:
        logging.exception("Simulation failed")
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
