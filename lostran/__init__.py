"""
LOS-Tran: Line-of-sight radiative transfer for emission and absorption.

Calculates the monochromatic Stokes spectrum seen by an observer looking
through a one-dimensional spherical atmosphere, with analytical Jacobians
for retrieval applications.

Modules
-------
geometry
    Spherical geometry and propagation path construction
interpolation
    Grid positions and linear interpolation weights
config
    Simulation configuration and atmospheric states
rte
    Transmission, path integration, Jacobians, unit conversion and
    parallel execution over frequencies and measurement blocks
utils
    Planck functions and output formatting
"""

__version__ = "0.1.0"
__author__ = "LOS-Tran Contributors"

from lostran.core.simulation import Simulation, SimulationResult
from lostran.config import AtmosphericState, SimulationConfig, StandardAtmospheres
from lostran.geometry import Path, build_los_1d
from lostran.rte import RadiativeTransferIntegrator, calculate_measurements

__all__ = [
    "__version__",
    "Simulation",
    "SimulationResult",
    "SimulationConfig",
    "AtmosphericState",
    "StandardAtmospheres",
    "Path",
    "build_los_1d",
    "RadiativeTransferIntegrator",
    "calculate_measurements",
]
