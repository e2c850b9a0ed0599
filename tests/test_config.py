from pathlib import Path

import pytest
import yaml

from ale_fsi.cli.run_fsi import TEMPLATE_CONFIG, main
from ale_fsi.core.config import (
    BoundaryLabelsConfig,
    ChannelMeshParams,
    CouplingConfig,
    FluidConfig,
    FSISimulationConfig,
    StructureConfig,
    TimeConfig,
)


class TestSectionConfigs:
    def test_defaults(self):
        config = FSISimulationConfig.from_dict({})
        assert config.mesh.source == "generator"
        assert isinstance(config.mesh.generator, ChannelMeshParams)
        assert config.time.rho_inf == 0.5
        assert config.fluid.wall_condition == "slip"
        assert not config.structure.enabled
        assert config.coupling.beta == 1.0

    def test_inflow_velocity(self):
        assert FluidConfig(reynolds=100.0).inflow_velocity == pytest.approx(1.0)
        assert FluidConfig(reynolds=110.0, viscosity=0.02, density=2.0).inflow_velocity == pytest.approx(1.1)

    def test_total_time(self):
        assert TimeConfig(dt=0.1, total_steps=3000).total_time == pytest.approx(300.0)

    @pytest.mark.parametrize("beta", [0.0, -0.5, 1.01])
    def test_invalid_beta(self, beta):
        with pytest.raises(ValueError):
            CouplingConfig(beta=beta)

    def test_duplicate_labels(self):
        with pytest.raises(ValueError):
            BoundaryLabelsConfig(inlet=1, outlet=1)

    def test_far_field(self):
        assert BoundaryLabelsConfig().far_field == [1, 2, 3, 4]

    def test_disabled_body_skips_validation(self):
        StructureConfig(enabled=False, mass=0.0)
        with pytest.raises(ValueError):
            StructureConfig(enabled=True, mass=0.0)

    @pytest.mark.parametrize(
        "section, values",
        [
            ("fluid", {"viscosity": 0.0}),
            ("fluid", {"wall_condition": "free"}),
            ("time", {"dt": 0.0}),
            ("time", {"rho_inf": 2.0}),
            ("mesh_motion", {"poisson_ratio": 0.5}),
            ("output", {"stride": -1}),
            ("mesh", {"source": "database"}),
            ("mesh", {"source": "file"}),
        ],
    )
    def test_invalid_sections(self, section, values):
        with pytest.raises(ValueError):
            FSISimulationConfig.from_dict({section: values})


class TestFSISimulationConfig:
    def test_relative_paths_resolved(self, tmp_path):
        config = FSISimulationConfig.from_dict(
            {"mesh": {"source": "file", "file": {"path": "channel.msh"}}, "output": {"folder": "out"}},
            base_path=tmp_path,
        )
        assert Path(config.mesh.file.path) == tmp_path / "channel.msh"
        assert Path(config.output.folder) == tmp_path / "out"

    def test_yaml_round_trip(self, tmp_path):
        original = FSISimulationConfig.from_dict(
            {
                "fluid": {"reynolds": 110.0},
                "structure": {"enabled": True, "mass": 117.10, "damping": 0.35317, "stiffness": 184.92},
                "coupling": {"beta": 0.9},
                "output": {"folder": str(tmp_path / "results")},
            }
        )
        path = tmp_path / "case.yaml"
        original.save_yaml(path)

        loaded = FSISimulationConfig.from_yaml(path)
        assert loaded.to_dict() == original.to_dict()
        assert loaded.mesh.generator.center == (0.0, 0.0)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FSISimulationConfig.from_yaml(tmp_path / "missing.yaml")

    def test_warnings(self):
        config = FSISimulationConfig.from_dict(
            {
                "structure": {"enabled": True, "mass": 1.0},
                "output": {"stride": 0},
                "time": {"total_steps": 0},
            }
        )
        warnings = config.validate()
        assert len(warnings) == 3
        assert any("drift" in w for w in warnings)

    def test_beta_on_fixed_obstacle_warns(self):
        config = FSISimulationConfig.from_dict({"coupling": {"beta": 0.5}})
        assert any("no effect" in w for w in config.validate())

    def test_str(self):
        text = str(FSISimulationConfig.from_dict({"structure": {"enabled": True, "mass": 2.0, "stiffness": 1.0}}))
        assert "Body: m=2.0" in text
        assert "Coupling: beta=1.0" in text


class TestCLI:
    def test_template_is_valid_config(self, tmp_path):
        data = yaml.safe_load(TEMPLATE_CONFIG)
        config = FSISimulationConfig.from_dict(data, base_path=tmp_path)
        assert config.validate() == []

    def test_print_template(self, capsys):
        assert main(["--template", "--scenario", "spring"]) == 0
        out = capsys.readouterr().out
        assert "mesh:" in out
        assert "stiffness: 184.92" in out
        assert "beta: 0.9" in out

    def test_no_config(self, capsys):
        assert main([]) == 1

    def test_missing_config(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.yaml")]) == 1
        assert "not found" in capsys.readouterr().out

    def test_validate(self, tmp_path, capsys):
        path = tmp_path / "case.yaml"
        path.write_text(TEMPLATE_CONFIG)
        assert main([str(path), "--validate"]) == 0
        assert "Configuration is valid" in capsys.readouterr().out

    def test_validate_reports_errors(self, tmp_path, capsys):
        path = tmp_path / "case.yaml"
        path.write_text("coupling:\n  beta: 2.0\n")
        assert main([str(path), "--validate"]) == 1
        assert "Validation failed" in capsys.readouterr().out

    def test_preview(self, tmp_path, capsys):
        path = tmp_path / "case.yaml"
        path.write_text(TEMPLATE_CONFIG)
        assert main([str(path), "--preview"]) == 0
        assert "Body: fixed obstacle" in capsys.readouterr().out
