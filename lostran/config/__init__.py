"""
Configuration management for LOS-Tran simulations.

This module provides:
- SimulationConfig: Data class for simulation parameters
- ConfigurationManager: Loading and validation of configurations
- Atmospheric states and standard atmosphere profiles
"""

from lostran.config.settings import SimulationConfig
from lostran.config.manager import ConfigurationManager, LoadedConfiguration
from lostran.config.atmosphere import (
    AtmosphericState,
    PathAtmosphere,
    PointState,
    StandardAtmospheres,
)

__all__ = [
    "SimulationConfig",
    "ConfigurationManager",
    "LoadedConfiguration",
    "AtmosphericState",
    "PathAtmosphere",
    "PointState",
    "StandardAtmospheres",
]
