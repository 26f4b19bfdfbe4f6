"""
Physical constants and standard values for line-of-sight calculations.

All units are in SI unless otherwise noted.
"""

# =============================================================================
# Fundamental Physical Constants
# =============================================================================

# Speed of light in vacuum [m/s]
SPEED_OF_LIGHT = 2.99792458e8

# Planck constant [J·s]
PLANCK_CONSTANT = 6.62607015e-34

# Boltzmann constant [J/K]
BOLTZMANN_CONSTANT = 1.380649e-23

# =============================================================================
# Planet and Atmosphere Constants
# =============================================================================

# Planet radius used for spherical geometry [m]
EARTH_RADIUS = 6.378e6

# Temperature of the cosmic microwave background [K]
COSMIC_BACKGROUND_TEMPERATURE = 2.735

# Reference state for pressure broadening
REFERENCE_PRESSURE = 101325.0  # [Pa]
REFERENCE_TEMPERATURE = 296.0  # [K]

# =============================================================================
# Numerical Settings
# =============================================================================

# Interpolation weights below this value are snapped to zero
INTERP_WEIGHT_EPSILON = 1e-6

# Temperature perturbation for the Planck part of temperature Jacobians [K]
TEMPERATURE_PERTURBATION = 0.1

# Spectra above this value are assumed to not be radiances
RADIANCE_SANITY_LIMIT = 1e-3

# =============================================================================
# Unit and Diagnostic Names
# =============================================================================

IY_UNITS = ("1", "RJBT", "PlanckBT")

ATMOSPHERE_MODELS = ("US_STANDARD_1976", "TROPICAL")

PARALLEL_MODES = ("blocks", "frequencies")
