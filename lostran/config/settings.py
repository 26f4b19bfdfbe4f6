"""
Simulation configuration data structures.

Defines the configuration schema of LOS-Tran simulations: the atmosphere,
the viewing geometry of each measurement block, the spectral grid and line
list, the retrieval quantities and the output.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json

import numpy as np
import yaml

from lostran.core.constants import (
    ATMOSPHERE_MODELS,
    EARTH_RADIUS,
    IY_UNITS,
    PARALLEL_MODES,
)

# Reference microwave lines used when the configuration gives none
DEFAULT_LINES = [
    {"species": "H2O", "center_hz": 22.23508e9, "strength": 2.3e-18,
     "gamma_hz": 2.8e9, "gamma_exponent": 0.6, "identifier": "6 1 6 - 5 2 3"},
    {"species": "H2O", "center_hz": 183.310087e9, "strength": 9.0e-17,
     "gamma_hz": 2.9e9, "gamma_exponent": 0.7, "identifier": "3 1 3 - 2 2 0"},
    {"species": "O3", "center_hz": 142.175e9, "strength": 6.0e-15,
     "gamma_hz": 2.2e9, "gamma_exponent": 0.75, "identifier": "10 1 9 - 10 0 10"},
]

OUTPUT_FORMATS = ("json", "csv", "netcdf")

QUANTITY_KINDS = ("species", "temperature", "wind", "magnetic", "other")


@dataclass
class SystemConfig:
    """System-level configuration settings.

    Attributes:
        num_threads: Number of worker threads for parallel calculations
        parallel_mode: Unit of parallel work, "blocks" (one viewing
            geometry each) or "frequencies" (no Jacobians)
    """
    num_threads: int = 1
    parallel_mode: str = "blocks"


@dataclass
class AtmosphereConfig:
    """Atmosphere and surface configuration.

    Attributes:
        model: Standard atmosphere model name
        custom_profile_path: Path to a CSV profile
        custom_profile: Inline profile with altitude_m, pressure_pa,
            temperature_k and a vmr mapping of species to values
        vmr_overrides: Constant volume mixing ratios per species
        surface_altitude_m: Ground altitude [m]
        surface_temperature_k: Surface temperature [K]
        surface_emissivity: Surface emissivity (0-1)
        planet_radius_m: Planet radius [m]
    """
    model: str = "US_STANDARD_1976"
    custom_profile_path: Optional[str] = None
    custom_profile: Optional[Dict[str, Any]] = None
    vmr_overrides: Dict[str, float] = field(default_factory=dict)
    surface_altitude_m: float = 0.0
    surface_temperature_k: float = 288.15
    surface_emissivity: float = 1.0
    planet_radius_m: float = EARTH_RADIUS


@dataclass
class GeometryConfig:
    """Viewing geometry configuration.

    Attributes:
        observer_altitude_m: Observer altitude [m]
        zenith_angles_deg: Zenith angles, one measurement block each [deg]
        max_step_m: Maximum distance between path points [m]
        blackbody_ground: Treat the ground as a blackbody
        refraction: Include refraction (not supported)
        scattering: Couple paths to a scattering domain (not supported)
    """
    observer_altitude_m: float = 0.0
    zenith_angles_deg: List[float] = field(default_factory=lambda: [0.0])
    max_step_m: float = 1000.0
    blackbody_ground: bool = True
    refraction: bool = False
    scattering: bool = False


@dataclass
class SpectralConfig:
    """Spectral grid and absorption configuration.

    Attributes:
        frequencies_hz: Explicit frequency grid; overrides the range below
        min_frequency_hz: Start of the frequency range [Hz]
        max_frequency_hz: End of the frequency range [Hz]
        num_frequencies: Number of frequencies in the range
        stokes_dim: Number of Stokes components (1-4)
        lines: Line list, see SpectralLine.from_dict
        polarization: Off-diagonal propagation matrix fractions
    """
    frequencies_hz: Optional[List[float]] = None
    min_frequency_hz: float = 18.0e9
    max_frequency_hz: float = 26.0e9
    num_frequencies: int = 41
    stokes_dim: int = 1
    lines: List[Dict[str, Any]] = field(default_factory=lambda: [dict(x) for x in DEFAULT_LINES])
    polarization: Dict[str, float] = field(default_factory=dict)

    def frequency_grid(self) -> np.ndarray:
        """The frequency grid [Hz]."""
        if self.frequencies_hz is not None:
            return np.asarray(self.frequencies_hz, dtype=np.float64)
        return np.linspace(self.min_frequency_hz, self.max_frequency_hz, self.num_frequencies)


@dataclass
class JacobianConfig:
    """Retrieval quantities.

    Each quantity is a mapping with "kind", "grid_pa" and, depending on the
    kind, "species" or "subtag".
    """
    quantities: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        unit: Unit of the spectrum ("1", "RJBT", "PlanckBT")
        aux_vars: Diagnostics to record
        format: Output file format (csv, json, netcdf)
        output_path: Directory for output files
    """
    unit: str = "1"
    aux_vars: List[str] = field(default_factory=list)
    format: str = "json"
    output_path: str = "./output"


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Example YAML input:
        system: {num_threads: 4}
        atmosphere: {model: US_STANDARD_1976, surface_temperature_k: 290}
        geometry: {observer_altitude_m: 0, zenith_angles_deg: [0, 30, 60]}
        spectral: {min_frequency_hz: 18.0e9, max_frequency_hz: 26.0e9}
        jacobian:
          quantities:
            - {kind: species, species: H2O, grid_pa: [100000, 50000, 10000]}
        output: {unit: PlanckBT}
    """
    system: SystemConfig = field(default_factory=SystemConfig)
    atmosphere: AtmosphereConfig = field(default_factory=AtmosphereConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    spectral: SpectralConfig = field(default_factory=SpectralConfig)
    jacobian: JacobianConfig = field(default_factory=JacobianConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SimulationConfig":
        """Create SimulationConfig from a dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            SimulationConfig instance
        """
        config_dict = config_dict or {}

        sys_dict = config_dict.get("system", {})
        system = SystemConfig(
            num_threads=sys_dict.get("num_threads", 1),
            parallel_mode=sys_dict.get("parallel_mode", "blocks"),
        )

        atmo_dict = config_dict.get("atmosphere", {})
        atmosphere = AtmosphereConfig(
            model=atmo_dict.get("model", "US_STANDARD_1976"),
            custom_profile_path=atmo_dict.get("custom_profile_path"),
            custom_profile=atmo_dict.get("custom_profile"),
            vmr_overrides=atmo_dict.get("vmr_overrides", {}),
            surface_altitude_m=atmo_dict.get("surface_altitude_m", 0.0),
            surface_temperature_k=atmo_dict.get("surface_temperature_k", 288.15),
            surface_emissivity=atmo_dict.get("surface_emissivity", 1.0),
            planet_radius_m=atmo_dict.get("planet_radius_m", EARTH_RADIUS),
        )

        geom_dict = config_dict.get("geometry", {})
        geometry = GeometryConfig(
            observer_altitude_m=geom_dict.get("observer_altitude_m", 0.0),
            zenith_angles_deg=list(geom_dict.get("zenith_angles_deg", [0.0])),
            max_step_m=geom_dict.get("max_step_m", 1000.0),
            blackbody_ground=geom_dict.get("blackbody_ground", True),
            refraction=geom_dict.get("refraction", False),
            scattering=geom_dict.get("scattering", False),
        )

        spec_dict = config_dict.get("spectral", {})
        spectral = SpectralConfig(
            frequencies_hz=spec_dict.get("frequencies_hz"),
            min_frequency_hz=spec_dict.get("min_frequency_hz", 18.0e9),
            max_frequency_hz=spec_dict.get("max_frequency_hz", 26.0e9),
            num_frequencies=spec_dict.get("num_frequencies", 41),
            stokes_dim=spec_dict.get("stokes_dim", 1),
            lines=spec_dict.get("lines", [dict(x) for x in DEFAULT_LINES]),
            polarization=spec_dict.get("polarization", {}),
        )

        jac_dict = config_dict.get("jacobian", {})
        jacobian = JacobianConfig(quantities=list(jac_dict.get("quantities", [])))

        out_dict = config_dict.get("output", {})
        output = OutputConfig(
            unit=out_dict.get("unit", "1"),
            aux_vars=list(out_dict.get("aux_vars", [])),
            format=out_dict.get("format", "json"),
            output_path=out_dict.get("output_path", "./output"),
        )

        return cls(
            system=system,
            atmosphere=atmosphere,
            geometry=geometry,
            spectral=spectral,
            jacobian=jacobian,
            output=output,
        )

    @classmethod
    def from_json(cls, json_path: str) -> "SimulationConfig":
        """Load configuration from a JSON file."""
        with open(json_path, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "SimulationConfig":
        """Load configuration from a YAML file."""
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a nested dictionary."""
        return {
            "system": {
                "num_threads": self.system.num_threads,
                "parallel_mode": self.system.parallel_mode,
            },
            "atmosphere": {
                "model": self.atmosphere.model,
                "custom_profile_path": self.atmosphere.custom_profile_path,
                "custom_profile": self.atmosphere.custom_profile,
                "vmr_overrides": self.atmosphere.vmr_overrides,
                "surface_altitude_m": self.atmosphere.surface_altitude_m,
                "surface_temperature_k": self.atmosphere.surface_temperature_k,
                "surface_emissivity": self.atmosphere.surface_emissivity,
                "planet_radius_m": self.atmosphere.planet_radius_m,
            },
            "geometry": {
                "observer_altitude_m": self.geometry.observer_altitude_m,
                "zenith_angles_deg": list(self.geometry.zenith_angles_deg),
                "max_step_m": self.geometry.max_step_m,
                "blackbody_ground": self.geometry.blackbody_ground,
                "refraction": self.geometry.refraction,
                "scattering": self.geometry.scattering,
            },
            "spectral": {
                "frequencies_hz": self.spectral.frequencies_hz,
                "min_frequency_hz": self.spectral.min_frequency_hz,
                "max_frequency_hz": self.spectral.max_frequency_hz,
                "num_frequencies": self.spectral.num_frequencies,
                "stokes_dim": self.spectral.stokes_dim,
                "lines": self.spectral.lines,
                "polarization": self.spectral.polarization,
            },
            "jacobian": {
                "quantities": self.jacobian.quantities,
            },
            "output": {
                "unit": self.output.unit,
                "aux_vars": list(self.output.aux_vars),
                "format": self.output.format,
                "output_path": self.output.output_path,
            },
        }

    def to_json(self, json_path: str, indent: int = 2) -> None:
        """Save configuration to a JSON file."""
        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=indent)

    def validate(self) -> list:
        """Validate configuration parameters.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        # System
        if self.system.num_threads < 1:
            errors.append("num_threads must be at least 1")
        if self.system.parallel_mode not in PARALLEL_MODES:
            errors.append(f"Invalid parallel mode: {self.system.parallel_mode}")
        if self.system.parallel_mode == "frequencies" and self.jacobian.quantities:
            errors.append("Jacobians are not calculated in parallel mode 'frequencies'")

        # Atmosphere
        atmo = self.atmosphere
        if (atmo.model.upper() not in ATMOSPHERE_MODELS
                and not atmo.custom_profile_path and not atmo.custom_profile):
            errors.append(f"Invalid atmosphere model: {atmo.model}")
        if atmo.surface_temperature_k <= 0:
            errors.append("surface temperature must be positive")
        if not 0.0 <= atmo.surface_emissivity <= 1.0:
            errors.append("surface emissivity must be between 0 and 1")
        if atmo.planet_radius_m <= 0:
            errors.append("planet radius must be positive")

        # Geometry
        geom = self.geometry
        if not geom.zenith_angles_deg:
            errors.append("at least one zenith angle is required")
        for za in geom.zenith_angles_deg:
            if not 0 <= za <= 180:
                errors.append(f"zenith angle {za} must be between 0 and 180 degrees")
        if geom.max_step_m <= 0:
            errors.append("maximum step length must be positive")
        if geom.observer_altitude_m < atmo.surface_altitude_m:
            errors.append("observer altitude must not be below the surface")

        # Spectral
        spec = self.spectral
        if spec.frequencies_hz is None:
            if spec.min_frequency_hz <= 0:
                errors.append("frequencies must be positive")
            if spec.num_frequencies < 1:
                errors.append("num_frequencies must be at least 1")
            elif spec.num_frequencies > 1 and spec.min_frequency_hz >= spec.max_frequency_hz:
                errors.append("min_frequency_hz must be less than max_frequency_hz")
        else:
            f = np.asarray(spec.frequencies_hz, dtype=np.float64)
            if f.size == 0 or np.any(f <= 0) or np.any(np.diff(f) <= 0):
                errors.append("frequencies_hz must be positive and strictly increasing")
        if spec.stokes_dim not in (1, 2, 3, 4):
            errors.append(f"stokes_dim must be 1, 2, 3 or 4, got {spec.stokes_dim}")

        # Jacobian
        for q in self.jacobian.quantities:
            kind = q.get("kind")
            if kind not in QUANTITY_KINDS:
                errors.append(f"Invalid retrieval quantity kind: {kind}")
            elif kind == "species" and not q.get("species"):
                errors.append("species retrieval quantity without species")
            if not q.get("grid_pa"):
                errors.append(f"retrieval quantity {kind} without grid_pa")

        # Output
        if self.output.unit not in IY_UNITS:
            errors.append(f"Invalid unit: {self.output.unit}")
        if self.output.unit == "PlanckBT" and spec.stokes_dim > 1:
            errors.append("PlanckBT requires stokes_dim = 1")
        if self.output.format not in OUTPUT_FORMATS:
            errors.append(f"Invalid output format: {self.output.format}")

        return errors
