"""Tests for simulation configuration and the configuration manager."""

import json

import numpy as np
import pytest
import yaml

from lostran.config import ConfigurationManager, SimulationConfig
from lostran.config.settings import DEFAULT_LINES


class TestSimulationConfig:
    """Tests for configuration parsing and validation."""

    def test_defaults_are_valid(self):
        config = SimulationConfig()
        assert config.validate() == []
        assert config.spectral.lines == DEFAULT_LINES
        assert len(config.spectral.frequency_grid()) == 41

    def test_from_dict(self):
        config = SimulationConfig.from_dict({
            "system": {"num_threads": 4},
            "geometry": {"zenith_angles_deg": [0, 45], "max_step_m": 250.0},
            "spectral": {"frequencies_hz": [22e9, 23e9]},
            "output": {"unit": "RJBT"},
        })
        assert config.system.num_threads == 4
        assert config.geometry.zenith_angles_deg == [0, 45]
        assert config.geometry.max_step_m == 250.0
        np.testing.assert_array_equal(config.spectral.frequency_grid(), [22e9, 23e9])
        assert config.output.unit == "RJBT"
        assert config.atmosphere.model == "US_STANDARD_1976"

    def test_empty_dict(self):
        assert SimulationConfig.from_dict(None).validate() == []

    def test_dict_round_trip(self):
        config = SimulationConfig.from_dict(ConfigurationManager.create_example_config())
        assert SimulationConfig.from_dict(config.to_dict()).to_dict() == config.to_dict()

    @pytest.mark.parametrize("section,key,value", [
        ("system", "num_threads", 0),
        ("system", "parallel_mode", "units"),
        ("atmosphere", "model", "MARS"),
        ("atmosphere", "surface_emissivity", 1.2),
        ("geometry", "zenith_angles_deg", [190.0]),
        ("geometry", "zenith_angles_deg", []),
        ("geometry", "max_step_m", 0.0),
        ("spectral", "stokes_dim", 5),
        ("spectral", "frequencies_hz", [23e9, 22e9]),
        ("output", "unit", "K"),
        ("output", "format", "xml"),
    ])
    def test_invalid_values(self, section, key, value):
        config = SimulationConfig.from_dict({section: {key: value}})
        assert len(config.validate()) >= 1

    def test_planck_bt_needs_scalar_stokes(self):
        config = SimulationConfig.from_dict({
            "spectral": {"stokes_dim": 2}, "output": {"unit": "PlanckBT"},
        })
        assert any("PlanckBT" in e for e in config.validate())

    def test_frequency_mode_has_no_jacobians(self):
        config = SimulationConfig.from_dict({
            "system": {"parallel_mode": "frequencies"},
            "jacobian": {"quantities": [{"kind": "temperature", "grid_pa": [1e5]}]},
        })
        assert any("frequencies" in e for e in config.validate())

    def test_invalid_quantities(self):
        config = SimulationConfig.from_dict({
            "jacobian": {"quantities": [
                {"kind": "species", "grid_pa": [1e5]},
                {"kind": "pressure", "grid_pa": [1e5]},
                {"kind": "wind"},
            ]},
        })
        assert len(config.validate()) == 3

    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        SimulationConfig.from_dict({"geometry": {"observer_altitude_m": 500.0}}).to_json(str(path))
        assert SimulationConfig.from_json(str(path)).geometry.observer_altitude_m == 500.0

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "atmosphere": {"model": "TROPICAL", "surface_temperature_k": 300.0},
            "spectral": {"min_frequency_hz": 20e9, "max_frequency_hz": 24e9, "num_frequencies": 5},
        }))
        config = SimulationConfig.from_yaml(str(path))
        assert config.atmosphere.model == "TROPICAL"
        np.testing.assert_allclose(config.spectral.frequency_grid(), [20e9, 21e9, 22e9, 23e9, 24e9])


class TestConfigurationManager:
    """Tests for loading configurations with their atmosphere."""

    def test_standard_model(self):
        loaded = ConfigurationManager().load_config({"atmosphere": {"model": "tropical"}})
        assert loaded.is_valid
        assert loaded.atmosphere.name == "TROPICAL"

    def test_unknown_model_falls_back(self):
        loaded = ConfigurationManager().load_config({"atmosphere": {"model": "MARS"}})
        assert not loaded.is_valid
        assert loaded.atmosphere.name == "US_STANDARD_1976"
        assert any("Atmosphere loading failed" in e for e in loaded.validation_errors)

    def test_vmr_overrides(self):
        loaded = ConfigurationManager().load_config({
            "atmosphere": {"vmr_overrides": {"o3": 1e-6}},
        })
        assert loaded.is_valid
        np.testing.assert_array_equal(loaded.atmosphere.vmr[1], 1e-6)

    def test_unknown_override_species(self):
        loaded = ConfigurationManager().load_config({
            "atmosphere": {"vmr_overrides": {"CO2": 4e-4}},
        })
        assert not loaded.is_valid
        assert any("VMR override failed" in e for e in loaded.validation_errors)

    def test_inline_profile(self):
        loaded = ConfigurationManager().load_config({
            "atmosphere": {"custom_profile": {
                "altitude_m": [0, 1000, 2000],
                "pressure_pa": [1e5, 9e4, 8e4],
                "temperature_k": [290, 284, 278],
                "vmr": {"H2O": [1e-2, 5e-3, 2e-3]},
            }},
        })
        assert loaded.is_valid
        assert loaded.atmosphere.species == ["H2O"]
        assert loaded.atmosphere.n_levels == 3

    def test_csv_profile(self, tmp_path):
        path = tmp_path / "profile.csv"
        path.write_text(
            "altitude_m,pressure_pa,temperature_k,vmr_H2O,vmr_O3\n"
            "1000,90000,282,5e-3,3e-8\n"
            "0,101325,288,1e-2,3e-8\n"
            "2000,80000,276,2e-3,3e-8\n"
        )
        loaded = ConfigurationManager(base_path=str(tmp_path)).load_config({
            "atmosphere": {"custom_profile_path": "profile.csv"},
        })
        assert loaded.is_valid
        np.testing.assert_array_equal(loaded.atmosphere.altitude, [0, 1000, 2000])
        np.testing.assert_array_equal(loaded.atmosphere.vmr[0], [1e-2, 5e-3, 2e-3])

    def test_missing_csv_profile(self, tmp_path):
        loaded = ConfigurationManager(base_path=str(tmp_path)).load_config({
            "atmosphere": {"custom_profile_path": "missing.csv"},
        })
        assert not loaded.is_valid
        assert loaded.atmosphere.name == "US_STANDARD_1976"

    def test_surface_outside_atmosphere(self):
        loaded = ConfigurationManager().load_config({
            "atmosphere": {"surface_altitude_m": 200e3},
            "geometry": {"observer_altitude_m": 300e3},
        })
        assert not loaded.is_valid

    def test_load_from_files(self, tmp_path):
        manager = ConfigurationManager()
        json_path = tmp_path / "example.json"
        manager.save_example_config(str(json_path))
        assert manager.load_config(str(json_path)).is_valid

        yaml_path = tmp_path / "example.yml"
        yaml_path.write_text(yaml.safe_dump(json.loads(json_path.read_text())))
        assert manager.load_config(str(yaml_path)).is_valid

    def test_unsupported_file_format(self):
        with pytest.raises(ValueError):
            ConfigurationManager().load_config("config.toml")
        with pytest.raises(TypeError):
            ConfigurationManager().load_config(42)
