"""Spectral utility functions for radiative transfer calculations."""

import numpy as np
from numba import jit

from lostran.core.constants import (
    BOLTZMANN_CONSTANT,
    PLANCK_CONSTANT,
    SPEED_OF_LIGHT,
    TEMPERATURE_PERTURBATION,
)


@jit(nopython=True, cache=True)
def planck(frequency: np.ndarray, temperature: float) -> np.ndarray:
    """Compute the Planck function in frequency space.

    B(f, T) = (2hf³/c²) / (exp(hf/kT) - 1)

    Args:
        frequency: Frequency array [Hz]
        temperature: Temperature [K]

    Returns:
        Spectral radiance [W/(m²·sr·Hz)]
    """
    n = len(frequency)
    result = np.zeros(n)

    a = 2.0 * PLANCK_CONSTANT / (SPEED_OF_LIGHT * SPEED_OF_LIGHT)
    b = PLANCK_CONSTANT / BOLTZMANN_CONSTANT

    for i in range(n):
        f = frequency[i]
        if f > 0 and temperature > 0:
            x = b * f / temperature
            if x < 700:  # Avoid overflow
                result[i] = a * f**3 / np.expm1(x)

    return result


def dplanck_dt(
    frequency: np.ndarray,
    temperature: float,
    dt: float = TEMPERATURE_PERTURBATION,
) -> np.ndarray:
    """Temperature derivative of the Planck function by forward difference.

    Args:
        frequency: Frequency array [Hz]
        temperature: Temperature [K]
        dt: Temperature perturbation [K]

    Returns:
        dB/dT [W/(m²·sr·Hz·K)]
    """
    frequency = np.asarray(frequency, dtype=np.float64)
    return (planck(frequency, temperature + dt) - planck(frequency, temperature)) / dt


def invplanck(radiance: np.ndarray, frequency: np.ndarray) -> np.ndarray:
    """Brightness temperature from radiance (inverse Planck function).

    Args:
        radiance: Spectral radiance [W/(m²·sr·Hz)]
        frequency: Frequency [Hz], broadcastable against radiance

    Returns:
        Brightness temperature [K]
    """
    radiance = np.asarray(radiance, dtype=np.float64)
    frequency = np.asarray(frequency, dtype=np.float64)
    a = 2.0 * PLANCK_CONSTANT * frequency**3 / SPEED_OF_LIGHT**2
    b = PLANCK_CONSTANT * frequency / BOLTZMANN_CONSTANT
    return b / np.log1p(a / radiance)


def dinvplanck_dradiance(radiance: np.ndarray, frequency: np.ndarray) -> np.ndarray:
    """Derivative of the brightness temperature with respect to radiance.

    Args:
        radiance: Spectral radiance [W/(m²·sr·Hz)]
        frequency: Frequency [Hz], broadcastable against radiance

    Returns:
        dTb/dI [K/(W/(m²·sr·Hz))]
    """
    radiance = np.asarray(radiance, dtype=np.float64)
    frequency = np.asarray(frequency, dtype=np.float64)
    a = 2.0 * PLANCK_CONSTANT * frequency**3 / SPEED_OF_LIGHT**2
    b = PLANCK_CONSTANT * frequency / BOLTZMANN_CONSTANT
    log_term = np.log1p(a / radiance)
    return b * a / (radiance * (radiance + a) * log_term**2)


def rayleigh_jeans_factor(frequency: np.ndarray) -> np.ndarray:
    """Factor converting radiance to Rayleigh-Jeans brightness temperature.

    Tb = I * c² / (2 k f²)

    Args:
        frequency: Frequency [Hz]

    Returns:
        Conversion factor [K/(W/(m²·sr·Hz))]
    """
    frequency = np.asarray(frequency, dtype=np.float64)
    return SPEED_OF_LIGHT**2 / (2.0 * BOLTZMANN_CONSTANT * frequency**2)
