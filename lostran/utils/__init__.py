"""
Utility functions.

Functions
---------
planck
    Planck radiance in frequency space
dplanck_dt
    Temperature derivative of the Planck radiance
invplanck
    Planck brightness temperature of a radiance
rayleigh_jeans_factor
    Radiance to Rayleigh-Jeans brightness temperature factor

Classes
-------
OutputFormatter
    Export of simulation results to JSON, CSV and NetCDF
"""

from lostran.utils.spectral import (
    planck,
    dplanck_dt,
    invplanck,
    dinvplanck_dradiance,
    rayleigh_jeans_factor,
)
from lostran.utils.output import OutputFormatter

__all__ = [
    "planck",
    "dplanck_dt",
    "invplanck",
    "dinvplanck_dradiance",
    "rayleigh_jeans_factor",
    "OutputFormatter",
]
