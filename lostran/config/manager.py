"""
Configuration Manager for LOS-Tran simulations.

Handles loading, validation, and application of simulation configurations.
Supports standard atmosphere models, CSV profiles and inline profiles.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from lostran.config.atmosphere import AtmosphericState, StandardAtmospheres
from lostran.config.settings import SimulationConfig

logger = logging.getLogger(__name__)


@dataclass
class LoadedConfiguration:
    """Container for fully loaded and validated configuration.

    Attributes:
        config: The simulation configuration settings
        atmosphere: Loaded atmospheric state
        is_valid: Whether the configuration passed validation
        validation_errors: List of validation error messages
    """
    config: SimulationConfig
    atmosphere: AtmosphericState
    is_valid: bool
    validation_errors: list


class ConfigurationManager:
    """Manages simulation configurations.

    This class handles:
    - Loading configurations from JSON/YAML/dict
    - Loading and validating atmospheric states
    - Applying volume mixing ratio overrides

    Example:
        >>> manager = ConfigurationManager()
        >>> loaded = manager.load_config({
        ...     "atmosphere": {"model": "US_STANDARD_1976"},
        ...     "geometry": {"zenith_angles_deg": [0, 45]},
        ... })
        >>> if loaded.is_valid:
        ...     print(f"Loaded {loaded.atmosphere.n_levels} atmosphere levels")
    """

    def __init__(self, base_path: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            base_path: Base path for relative file references.
                      Defaults to current working directory.
        """
        self.base_path = Path(base_path) if base_path else Path.cwd()

    def load_config(
        self,
        config_source: Union[Dict[str, Any], str],
    ) -> LoadedConfiguration:
        """Load and validate a complete configuration.

        Args:
            config_source: Configuration dictionary, JSON path, or YAML path

        Returns:
            LoadedConfiguration with parsed config and atmospheric state
        """
        if isinstance(config_source, dict):
            config = SimulationConfig.from_dict(config_source)
        elif isinstance(config_source, str):
            path = Path(config_source)
            if path.suffix.lower() == '.json':
                config = SimulationConfig.from_json(config_source)
            elif path.suffix.lower() in ('.yaml', '.yml'):
                config = SimulationConfig.from_yaml(config_source)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")
        else:
            raise TypeError(f"Invalid config source type: {type(config_source)}")

        validation_errors = config.validate()

        try:
            atmosphere = self._load_atmosphere(config)
        except (OSError, ValueError, KeyError) as e:
            validation_errors.append(f"Atmosphere loading failed: {e}")
            atmosphere = StandardAtmospheres.us_standard_1976()  # Fallback

        if config.atmosphere.vmr_overrides:
            try:
                atmosphere.apply_vmr_overrides(config.atmosphere.vmr_overrides)
                logger.info(f"Applied VMR overrides: {config.atmosphere.vmr_overrides}")
            except LookupError as e:
                validation_errors.append(f"VMR override failed: {e}")

        validation_errors.extend(atmosphere.validate())
        surface = config.atmosphere.surface_altitude_m
        if atmosphere.n_levels and not (atmosphere.altitude[0] <= surface < atmosphere.altitude[-1]):
            validation_errors.append(
                f"surface altitude {surface} m is outside the atmosphere grid"
            )

        is_valid = len(validation_errors) == 0

        if not is_valid:
            for error in validation_errors:
                logger.warning(f"Configuration validation error: {error}")

        return LoadedConfiguration(
            config=config,
            atmosphere=atmosphere,
            is_valid=is_valid,
            validation_errors=validation_errors,
        )

    def _load_atmosphere(self, config: SimulationConfig) -> AtmosphericState:
        """Load the atmospheric state based on configuration."""
        atmo = config.atmosphere
        if atmo.custom_profile_path:
            profile_path = self.resolve_path(atmo.custom_profile_path)
            logger.info(f"Loading custom profile from {profile_path}")
            return StandardAtmospheres.load_profile_csv(str(profile_path))

        if atmo.custom_profile:
            logger.info("Using inline atmosphere profile")
            profile = atmo.custom_profile
            return StandardAtmospheres.from_arrays(
                altitude=profile["altitude_m"],
                pressure=profile["pressure_pa"],
                temperature=profile["temperature_k"],
                vmr=profile.get("vmr", {}),
                name=profile.get("name", "CUSTOM"),
            )

        logger.info(f"Loading standard atmosphere: {atmo.model}")
        return StandardAtmospheres.get_profile(atmo.model)

    def resolve_path(self, path: str) -> Path:
        """Resolve a path relative to base_path."""
        p = Path(path)
        if p.is_absolute():
            return p
        return (self.base_path / p).resolve()

    @staticmethod
    def create_example_config() -> Dict[str, Any]:
        """Create an example configuration dictionary.

        Returns:
            Example configuration with a water vapour Jacobian
        """
        return {
            "system": {"num_threads": 2, "parallel_mode": "blocks"},
            "atmosphere": {
                "model": "US_STANDARD_1976",
                "surface_temperature_k": 288.15,
            },
            "geometry": {
                "observer_altitude_m": 0.0,
                "zenith_angles_deg": [0.0, 30.0, 60.0],
                "max_step_m": 1000.0,
            },
            "spectral": {
                "min_frequency_hz": 18.0e9,
                "max_frequency_hz": 26.0e9,
                "num_frequencies": 41,
            },
            "jacobian": {
                "quantities": [
                    {"kind": "species", "species": "H2O",
                     "grid_pa": [101325.0, 50000.0, 20000.0, 5000.0]},
                ],
            },
            "output": {"unit": "PlanckBT", "format": "json", "output_path": "./output"},
        }

    def save_example_config(self, output_path: str) -> None:
        """Save an example configuration file."""
        example = self.create_example_config()
        with open(output_path, 'w') as f:
            json.dump(example, f, indent=2)
        logger.info(f"Saved example configuration to {output_path}")
