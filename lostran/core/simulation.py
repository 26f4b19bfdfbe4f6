"""
Main Simulation class for LOS-Tran calculations.

Provides a high-level interface that orchestrates all components:
- Configuration management
- Atmospheric state loading
- Line absorption and boundary conditions
- Path construction and radiative transfer per measurement block
- Output formatting
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from lostran.config.manager import ConfigurationManager
from lostran.config.settings import SimulationConfig
from lostran.core.constants import PARALLEL_MODES
from lostran.core.errors import PreconditionError
from lostran.rte.absorption import LineCatalog, LorentzLineAbsorption, SpectralLine
from lostran.rte.jacobian import JacobianQuantities, RetrievalQuantity
from lostran.rte.parallel import (
    MeasurementBlock,
    TaskContext,
    calculate_measurements,
    loop_frequencies,
)
from lostran.rte.providers import StandardBackground
from lostran.rte.units import convert_spectrum

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Complete simulation results.

    Attributes:
        frequencies: Frequency grid [Hz]
        zenith_angles: Zenith angle of each measurement block [deg]
        spectrum: Spectrum per block, shape (n_blocks, nf, ns)
        unit: Unit of the spectrum
        jacobian: Jacobian matrix (n_y, n_x), None without retrieval quantities
        aux: Diagnostics per block
        config: Configuration used for simulation
        metadata: Additional metadata about the simulation
    """
    frequencies: np.ndarray
    zenith_angles: np.ndarray
    spectrum: np.ndarray
    unit: str
    jacobian: Optional[np.ndarray] = None
    aux: List[Dict[str, np.ndarray]] = field(default_factory=list)
    config: Optional[SimulationConfig] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "frequencies_hz": self.frequencies.tolist(),
            "zenith_angles_deg": self.zenith_angles.tolist(),
            "spectrum": self.spectrum.tolist(),
            "unit": self.unit,
            "jacobian": None if self.jacobian is None else self.jacobian.tolist(),
            "aux": [{k: np.asarray(v).tolist() for k, v in block.items()} for block in self.aux],
            "metadata": self.metadata,
        }


class Simulation:
    """High-level simulation interface for LOS-Tran.

    Example:
        >>> from lostran import Simulation
        >>> sim = Simulation({
        ...     "atmosphere": {"model": "US_STANDARD_1976"},
        ...     "geometry": {"observer_altitude_m": 0, "zenith_angles_deg": [0, 60]},
        ...     "output": {"unit": "PlanckBT"},
        ... })
        >>> result = sim.run()
        >>> print(f"Zenith brightness temperature: {result.spectrum[0, :, 0].mean():.1f} K")
    """

    def __init__(self, config: Union[Dict[str, Any], str, SimulationConfig]):
        """Initialize the simulation.

        Args:
            config: Configuration dictionary, JSON/YAML path, or SimulationConfig
        """
        self.config_manager = ConfigurationManager()

        if isinstance(config, SimulationConfig):
            loaded = self.config_manager.load_config(config.to_dict())
        elif isinstance(config, (dict, str)):
            loaded = self.config_manager.load_config(config)
        else:
            raise TypeError(f"Invalid config type: {type(config)}")

        self.config = loaded.config
        self.atmosphere = loaded.atmosphere
        self.validation_errors = loaded.validation_errors

        self._absorption = None
        self._background = None

        if self.validation_errors:
            for error in self.validation_errors:
                logger.warning(f"Configuration warning: {error}")

    @property
    def absorption(self) -> LorentzLineAbsorption:
        """Get or create the line absorption model (lazy initialization)."""
        if self._absorption is None:
            lines = [SpectralLine.from_dict(d) for d in self.config.spectral.lines]
            self._absorption = LorentzLineAbsorption(
                LineCatalog.from_lines(lines),
                species=self.atmosphere.species,
                polarization=self.config.spectral.polarization,
            )
        return self._absorption

    @property
    def background(self) -> StandardBackground:
        """Get or create the boundary conditions (lazy initialization)."""
        if self._background is None:
            self._background = StandardBackground(
                surface_temperature=self.config.atmosphere.surface_temperature_k,
                surface_emissivity=self.config.atmosphere.surface_emissivity,
            )
        return self._background

    def task_context(self) -> TaskContext:
        """Collaborators and geometry settings shared by all blocks."""
        return TaskContext(
            absorption=self.absorption,
            background=self.background,
            stokes_dim=self.config.spectral.stokes_dim,
            surface_altitude=self.config.atmosphere.surface_altitude_m,
            planet_radius=self.config.atmosphere.planet_radius_m,
            max_step=self.config.geometry.max_step_m,
            blackbody_ground=self.config.geometry.blackbody_ground,
            refraction=self.config.geometry.refraction,
            scattering=self.config.geometry.scattering,
        )

    def retrieval_quantities(self) -> Optional[JacobianQuantities]:
        """Retrieval quantities of the configuration, None if there are none."""
        if not self.config.jacobian.quantities:
            return None
        quantities = []
        for q in self.config.jacobian.quantities:
            species_index = None
            if q.get("species") is not None:
                species_index = self.atmosphere.species_index(q["species"])
            quantities.append(RetrievalQuantity(
                kind=q["kind"],
                grid=q["grid_pa"],
                species_index=species_index,
                subtag=q.get("subtag", ""),
            ))
        return JacobianQuantities(quantities)

    def measurement_blocks(self) -> List[MeasurementBlock]:
        return [
            MeasurementBlock(self.config.geometry.observer_altitude_m, za)
            for za in self.config.geometry.zenith_angles_deg
        ]

    def run(self) -> SimulationResult:
        """Run the calculation for all measurement blocks.

        Returns:
            SimulationResult with spectra, Jacobian and diagnostics

        Raises:
            PreconditionError: If the parallel mode is unknown, or if
                Jacobians are requested in mode "frequencies"
        """
        mode = self.config.system.parallel_mode
        if mode not in PARALLEL_MODES:
            raise PreconditionError(
                f"Invalid parallel mode: {mode}", quantity="parallel_mode"
            )
        quantities = self.retrieval_quantities()
        if mode == "frequencies" and quantities is not None:
            raise PreconditionError(
                "Jacobians are not calculated in parallel mode 'frequencies'",
                quantity="parallel_mode",
            )

        frequencies = self.config.spectral.frequency_grid()
        blocks = self.measurement_blocks()
        context = self.task_context()
        unit = self.config.output.unit
        aux_vars = self.config.output.aux_vars
        num_threads = self.config.system.num_threads
        ns = self.config.spectral.stokes_dim

        logger.info(
            f"Running simulation: {self.atmosphere.name}, {len(blocks)} blocks, "
            f"{len(frequencies)} frequencies {frequencies[0]:.4e}-{frequencies[-1]:.4e} Hz"
        )

        jacobian = None
        if mode == "frequencies":
            spectra, aux = [], []
            for block in blocks:
                path = context.build_path(self.atmosphere, block.observer_altitude, block.zenith_angle)
                result = loop_frequencies(
                    context, path, self.atmosphere, frequencies,
                    aux_vars=aux_vars, num_threads=num_threads,
                )
                spectrum, block_aux = result.spectrum, result.aux
                if unit != "1":
                    spectrum, _, block_aux = convert_spectrum(
                        spectrum, unit, frequencies, aux=block_aux
                    )
                spectra.append(spectrum)
                aux.append(block_aux)
            spectrum = np.array(spectra)
        else:
            measurement = calculate_measurements(
                context, blocks, self.atmosphere, frequencies,
                quantities=quantities,
                aux_vars=aux_vars, unit=unit, num_threads=num_threads,
            )
            spectrum = measurement.y.reshape(len(blocks), len(frequencies), ns)
            jacobian = measurement.jacobian
            aux = measurement.aux

        metadata = {
            "atmosphere": self.atmosphere.name,
            "species": list(self.atmosphere.species),
            "num_levels": self.atmosphere.n_levels,
            "observer_altitude_m": self.config.geometry.observer_altitude_m,
            "stokes_dim": ns,
            "parallel_mode": mode,
            "num_lines": len(self.absorption.catalog),
        }

        return SimulationResult(
            frequencies=frequencies,
            zenith_angles=np.asarray(self.config.geometry.zenith_angles_deg, dtype=np.float64),
            spectrum=spectrum,
            unit=unit,
            jacobian=jacobian,
            aux=aux,
            config=self.config,
            metadata=metadata,
        )

    def save_result(
        self,
        result: SimulationResult,
        output_path: Optional[str] = None,
        format: Optional[str] = None,
    ) -> str:
        """Save simulation result to file.

        Args:
            result: SimulationResult to save
            output_path: Output file path (defaults to config setting)
            format: Output format (csv, json, netcdf)

        Returns:
            Path to saved file
        """
        from lostran.utils.output import OutputFormatter

        if format is None:
            format = self.config.output.format

        if output_path is None:
            output_dir = Path(self.config.output.output_path)
            output_dir.mkdir(parents=True, exist_ok=True)
            output_path = str(output_dir / f"simulation_result.{format}")

        formatter = OutputFormatter()
        return formatter.save(result, output_path, format)
