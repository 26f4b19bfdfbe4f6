"""
Atmospheric state on a vertical grid and its values along a path.

Standard models included:
- US Standard 1976
- Tropical

Custom profiles can be read from CSV files. Data of the standard models are
based on AFGL atmospheric models (Anderson et al., 1986).
"""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path as FilePath
from typing import Dict, List, Optional, Sequence

import numpy as np

from lostran.core.errors import raise_if_invalid
from lostran.core.lookup import find_exactly_one
from lostran.interpolation import interp_1d, interpolate_dimension_subset

logger = logging.getLogger(__name__)


@dataclass
class PointState:
    """Atmospheric state at a single path point.

    Attributes:
        pressure: Pressure [Pa]
        temperature: Temperature [K]
        vmr: Volume mixing ratio of each species
        wind: Wind speed along the line of sight [m/s]
        magnetic: Magnetic field vector [T]
        nlte_temperature: Vibrational temperature for non-LTE [K]
    """
    pressure: float
    temperature: float
    vmr: np.ndarray
    wind: float = 0.0
    magnetic: np.ndarray = field(default_factory=lambda: np.zeros(3))
    nlte_temperature: Optional[float] = None


@dataclass
class PathAtmosphere:
    """Atmospheric state interpolated to the points of a path."""
    pressure: np.ndarray
    temperature: np.ndarray
    vmr: np.ndarray
    wind: np.ndarray
    magnetic: np.ndarray
    nlte_temperature: Optional[np.ndarray] = None

    @property
    def n_points(self) -> int:
        return len(self.pressure)

    def point(self, k: int) -> PointState:
        """State of path point k."""
        return PointState(
            pressure=float(self.pressure[k]),
            temperature=float(self.temperature[k]),
            vmr=self.vmr[:, k].copy(),
            wind=float(self.wind[k]),
            magnetic=self.magnetic[k].copy(),
            nlte_temperature=(
                None if self.nlte_temperature is None
                else float(self.nlte_temperature[k])
            ),
        )


@dataclass
class AtmosphericState:
    """1-D atmosphere defined on a vertical grid.

    Attributes:
        name: Profile identifier
        altitude: Altitude grid [m], strictly increasing
        pressure: Pressure at each level [Pa]
        temperature: Temperature at each level [K]
        species: Names of the absorbing species
        vmr: Volume mixing ratios, shape (n_species, n_levels)
        wind: Line-of-sight wind at each level [m/s]
        magnetic: Magnetic field at each level, shape (n_levels, 3) [T]
        nlte_temperature: Optional vibrational temperature at each level [K]
    """
    name: str
    altitude: np.ndarray
    pressure: np.ndarray
    temperature: np.ndarray
    species: List[str] = field(default_factory=list)
    vmr: Optional[np.ndarray] = None
    wind: Optional[np.ndarray] = None
    magnetic: Optional[np.ndarray] = None
    nlte_temperature: Optional[np.ndarray] = None

    def __post_init__(self):
        self.altitude = np.asarray(self.altitude, dtype=np.float64)
        self.pressure = np.asarray(self.pressure, dtype=np.float64)
        self.temperature = np.asarray(self.temperature, dtype=np.float64)
        n = len(self.altitude)
        if self.vmr is None:
            self.vmr = np.zeros((len(self.species), n))
        self.vmr = np.atleast_2d(np.asarray(self.vmr, dtype=np.float64))
        if self.wind is None:
            self.wind = np.zeros(n)
        self.wind = np.asarray(self.wind, dtype=np.float64)
        if self.magnetic is None:
            self.magnetic = np.zeros((n, 3))
        self.magnetic = np.asarray(self.magnetic, dtype=np.float64)
        if self.nlte_temperature is not None:
            self.nlte_temperature = np.asarray(self.nlte_temperature, dtype=np.float64)

    @property
    def n_levels(self) -> int:
        """Number of vertical levels."""
        return len(self.altitude)

    @property
    def n_species(self) -> int:
        """Number of absorbing species."""
        return len(self.species)

    def species_index(self, name: str) -> int:
        """Index of a species, matched case-insensitively."""
        index, _ = find_exactly_one(
            self.species, lambda s: s.upper() == name.upper(), what=f"species {name}"
        )
        return index

    def validate(self) -> list:
        """Validate the profile.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        n = self.n_levels

        if self.altitude.ndim != 1 or n < 2:
            errors.append("altitude grid must have at least two levels")
            return errors
        if np.any(np.diff(self.altitude) <= 0):
            errors.append("altitude grid must be strictly increasing")
        if self.pressure.shape != (n,):
            errors.append(f"pressure has {self.pressure.size} values, expected {n}")
        elif np.any(self.pressure <= 0) or np.any(np.diff(self.pressure) >= 0):
            errors.append("pressure must be positive and decrease with altitude")
        if self.temperature.shape != (n,):
            errors.append(f"temperature has {self.temperature.size} values, expected {n}")
        elif np.any(self.temperature <= 0):
            errors.append("temperature must be positive")
        if self.vmr.shape != (self.n_species, n):
            errors.append(
                f"vmr has shape {self.vmr.shape}, expected ({self.n_species}, {n})"
            )
        elif np.any(self.vmr < 0):
            errors.append("vmr must be non-negative")
        if self.wind.shape != (n,):
            errors.append(f"wind has {self.wind.size} values, expected {n}")
        if self.magnetic.shape != (n, 3):
            errors.append(f"magnetic field has shape {self.magnetic.shape}, expected ({n}, 3)")
        if self.nlte_temperature is not None and self.nlte_temperature.shape != (n,):
            errors.append("nlte temperature must match the altitude grid")
        return errors

    def apply_vmr_overrides(self, overrides: Dict[str, float]) -> None:
        """Set species to constant volume mixing ratios.

        Args:
            overrides: Dictionary of species names to volume mixing ratios
        """
        for name, value in overrides.items():
            self.vmr[self.species_index(name)] = value

    def at_path(self, path) -> PathAtmosphere:
        """Interpolate the atmospheric state to the points of a path."""
        raise_if_invalid(self.validate(), quantity="atmosphere")

        n = path.n_points
        ip_p = path.ip_p

        temperature = np.empty(n)
        interp_1d(self.temperature, ip_p, temperature)

        wind = np.empty(n)
        interp_1d(self.wind, ip_p, wind)

        vmr = np.empty((n, self.n_species))
        interpolate_dimension_subset(self.vmr.T, vmr, ip_p)

        magnetic = np.empty((n, 3))
        interpolate_dimension_subset(self.magnetic, magnetic, ip_p)

        nlte_temperature = None
        if self.nlte_temperature is not None:
            nlte_temperature = np.empty(n)
            interp_1d(self.nlte_temperature, ip_p, nlte_temperature)

        return PathAtmosphere(
            pressure=path.pressure.copy(),
            temperature=temperature,
            vmr=vmr.T.copy(),
            wind=wind,
            magnetic=magnetic,
            nlte_temperature=nlte_temperature,
        )


class StandardAtmospheres:
    """Factory for standard atmosphere profiles.

    Altitudes from 0 to 100 km in standard layers. Species are H2O and O3.
    """

    # Standard altitude grid [m]
    STANDARD_ALTITUDES = 1e3 * np.array([
        0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15,
        16, 17, 18, 19, 20, 21, 22, 23, 24, 25, 30, 35, 40, 45,
        50, 55, 60, 65, 70, 75, 80, 85, 90, 95, 100
    ], dtype=np.float64)

    SPECIES = ["H2O", "O3"]

    @classmethod
    def _build(cls, name, pressures, temperatures, h2o_ppmv, o3_ppmv):
        return AtmosphericState(
            name=name,
            altitude=cls.STANDARD_ALTITUDES.copy(),
            pressure=np.asarray(pressures, dtype=np.float64),
            temperature=np.asarray(temperatures, dtype=np.float64),
            species=list(cls.SPECIES),
            vmr=1e-6 * np.vstack([h2o_ppmv, o3_ppmv]),
        )

    @classmethod
    def us_standard_1976(cls) -> AtmosphericState:
        """US Standard Atmosphere 1976.

        Reference: U.S. Standard Atmosphere, 1976, NOAA-S/T76-1562.
        """
        temperatures = [
            288.15, 281.65, 275.15, 268.65, 262.15, 255.65, 249.15, 242.65,
            236.15, 229.65, 223.15, 216.65, 216.65, 216.65, 216.65, 216.65,
            216.65, 216.65, 216.65, 216.65, 216.65, 217.65, 218.65, 219.65,
            220.65, 221.65, 226.65, 237.05, 251.05, 265.05, 270.65, 260.65,
            247.02, 233.29, 219.59, 208.40, 198.64, 188.89, 186.87, 188.42,
            195.08,
        ]
        pressures = [
            101325, 89876, 79501, 70121, 61660, 54048, 47217, 41105,
            35651, 30800, 26499, 22699, 19399, 16579, 14170, 12111,
            10352, 8849.5, 7565.0, 6467.0, 5529.0, 4729.0, 4047.0, 3467.0,
            2972.0, 2549.0, 1197.0, 574.6, 287.1, 149.1, 79.78, 42.53,
            21.96, 10.93, 5.221, 2.388, 1.052, 0.4457, 0.1836, 0.0760,
            0.0320,
        ]
        h2o = [
            7750, 6070, 4630, 3330, 2220, 1520, 1030, 669,
            434, 271, 186, 118, 66, 37.5, 21.6, 12.4,
            7.25, 4.33, 2.62, 1.60, 1.00, 0.75, 0.56, 0.42,
            0.32, 0.24, 0.048, 0.0096, 0.0048, 0.0048, 0.0048, 0.0048,
            0.0096, 0.024, 0.048, 0.096, 0.19, 0.38, 0.48, 0.48, 0.48,
        ]
        o3 = [
            0.027, 0.029, 0.032, 0.036, 0.043, 0.054, 0.067, 0.084,
            0.106, 0.133, 0.167, 0.219, 0.304, 0.420, 0.545, 0.730,
            1.01, 1.38, 1.84, 2.43, 3.14, 3.88, 4.62, 5.30,
            5.86, 6.22, 7.76, 8.80, 8.50, 6.00, 4.00, 2.50,
            1.50, 0.92, 0.50, 0.27, 0.14, 0.074, 0.038, 0.020, 0.010,
        ]
        return cls._build("US_STANDARD_1976", pressures, temperatures, h2o, o3)

    @classmethod
    def tropical(cls) -> AtmosphericState:
        """Tropical atmosphere profile.

        Reference: AFGL-TR-86-0110 (Anderson et al., 1986)
        """
        temperatures = [
            300.0, 294.0, 288.0, 284.0, 277.0, 270.0, 264.0, 257.0,
            250.0, 244.0, 237.0, 230.0, 224.0, 217.0, 210.0, 204.0,
            197.0, 195.0, 199.0, 203.0, 207.0, 211.0, 215.0, 217.0,
            219.0, 221.0, 232.0, 243.0, 254.0, 265.0, 270.0, 264.0,
            253.0, 236.0, 219.0, 210.0, 199.0, 190.0, 188.0, 187.0,
            187.0,
        ]
        pressures = [
            101300, 90400, 80500, 71500, 63300, 55900, 49200, 43200,
            37800, 32900, 28600, 24700, 21300, 18200, 15600, 13200,
            11100, 9370, 7890, 6660, 5650, 4800, 4090, 3500,
            3000, 2570, 1220, 600, 305, 159, 85.2, 45.6,
            23.7, 11.9, 5.75, 2.69, 1.22, 0.542, 0.238, 0.105, 0.047,
        ]
        h2o = [
            19000, 13000, 9300, 4700, 2200, 1500, 850, 540,
            380, 210, 120, 46, 18, 8.2, 3.7, 1.8,
            0.85, 0.40, 0.19, 0.095, 0.045, 0.030, 0.020, 0.013,
            0.0087, 0.0058, 0.0029, 0.0029, 0.0029, 0.0029, 0.0029, 0.0029,
            0.0029, 0.0029, 0.0029, 0.0029, 0.0029, 0.0029, 0.0029, 0.0029, 0.0029,
        ]
        o3 = [
            0.028, 0.030, 0.034, 0.040, 0.044, 0.049, 0.057, 0.069,
            0.090, 0.110, 0.130, 0.180, 0.250, 0.330, 0.410, 0.560,
            0.810, 1.20, 1.80, 2.60, 3.60, 4.80, 6.20, 7.40,
            8.30, 8.80, 9.40, 9.00, 7.60, 5.30, 3.30, 2.00,
            1.20, 0.70, 0.40, 0.22, 0.12, 0.065, 0.035, 0.020, 0.010,
        ]
        return cls._build("TROPICAL", pressures, temperatures, h2o, o3)

    @classmethod
    def get_profile(cls, model_name: str) -> AtmosphericState:
        """Get atmosphere profile by name.

        Args:
            model_name: Model identifier (case-insensitive)

        Returns:
            AtmosphericState for the specified model

        Raises:
            ValueError: If model name is not recognized
        """
        model_map = {
            "US_STANDARD_1976": cls.us_standard_1976,
            "TROPICAL": cls.tropical,
        }

        model_upper = model_name.upper().replace(" ", "_").replace("-", "_")
        if model_upper not in model_map:
            raise ValueError(
                f"Unknown atmosphere model: {model_name}. "
                f"Available models: {list(model_map.keys())}"
            )

        return model_map[model_upper]()

    @classmethod
    def from_arrays(
        cls,
        altitude: Sequence[float],
        pressure: Sequence[float],
        temperature: Sequence[float],
        vmr: Optional[Dict[str, Sequence[float]]] = None,
        name: str = "CUSTOM",
    ) -> AtmosphericState:
        """Build a profile from plain sequences, e.g. from a configuration."""
        vmr = vmr or {}
        species = list(vmr.keys())
        n = len(altitude)
        values = np.array([vmr[s] for s in species], dtype=np.float64).reshape(len(species), n)
        return AtmosphericState(
            name=name,
            altitude=altitude,
            pressure=pressure,
            temperature=temperature,
            species=species,
            vmr=values,
        )

    @classmethod
    def load_profile_csv(cls, csv_path: str) -> AtmosphericState:
        """Load a custom profile from CSV.

        Expected CSV format (any number of ``vmr_<species>`` columns):
            altitude_m,pressure_pa,temperature_k,vmr_H2O
            0.0,101325,288.15,7.75e-3
            1000.0,89876,281.65,6.07e-3
            ...

        Args:
            csv_path: Path to CSV file

        Returns:
            AtmosphericState from the file, sorted by altitude
        """
        path = FilePath(csv_path)
        if not path.exists():
            raise FileNotFoundError(f"Profile file not found: {csv_path}")

        with open(path, 'r', newline='') as f:
            rows = list(csv.DictReader(f))
        rows.sort(key=lambda row: float(row["altitude_m"]))

        species = [
            key[len("vmr_"):] for key in (rows[0].keys() if rows else [])
            if key.startswith("vmr_")
        ]
        vmr = {s: [float(row[f"vmr_{s}"]) for row in rows] for s in species}

        logger.info(f"Loaded profile {path.name} with {len(rows)} levels")
        return cls.from_arrays(
            altitude=[float(row["altitude_m"]) for row in rows],
            pressure=[float(row["pressure_pa"]) for row in rows],
            temperature=[float(row["temperature_k"]) for row in rows],
            vmr=vmr,
            name=f"PROFILE_{path.stem}",
        )
