"""
Conversion of radiances to brightness temperatures.

Supported units:
- "1": Radiance [W/(m²·sr·Hz)], no conversion
- "RJBT": Rayleigh-Jeans brightness temperature, linear in radiance and
  applied to all Stokes components
- "PlanckBT": Planck brightness temperature, only for Stokes I

Jacobians must be converted before the spectrum, as the conversion of
PlanckBT Jacobians needs the radiance.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from lostran.core.constants import IY_UNITS, RADIANCE_SANITY_LIMIT
from lostran.core.errors import (
    NumericalSanityError,
    PreconditionError,
    UnsupportedPhysicsError,
)
from lostran.rte.auxiliary import IY
from lostran.utils.spectral import dinvplanck_dradiance, invplanck, rayleigh_jeans_factor

logger = logging.getLogger(__name__)


def _check_unit(unit: str, stokes_dim: int) -> None:
    if unit not in IY_UNITS:
        raise PreconditionError(
            f"Unknown unit \"{unit}\". Recognised choices are: {', '.join(IY_UNITS)}",
            quantity="iy_unit",
        )
    if unit == "PlanckBT" and stokes_dim > 1:
        raise UnsupportedPhysicsError(
            "Conversion to Planck brightness temperature is only implemented "
            "for stokes_dim = 1"
        )


def apply_iy_unit(iy: np.ndarray, unit: str, frequencies: np.ndarray) -> np.ndarray:
    """Convert a spectrum from radiance.

    Args:
        iy: Spectrum, shape (nf, ns)
        unit: Target unit
        frequencies: Frequency grid [Hz]

    Returns:
        Converted spectrum
    """
    iy = np.asarray(iy, dtype=np.float64)
    _check_unit(unit, iy.shape[1])
    if unit == "1":
        return iy.copy()
    if unit == "RJBT":
        return iy * rayleigh_jeans_factor(frequencies)[:, None]
    out = np.zeros_like(iy)
    out[:, 0] = invplanck(iy[:, 0], frequencies)
    return out


def apply_iy_unit_jacobian(
    diy: np.ndarray,
    iy: np.ndarray,
    unit: str,
    frequencies: np.ndarray,
) -> np.ndarray:
    """Convert a derivative of a spectrum from radiance.

    Args:
        diy: Derivative with trailing dimensions (nf, ns)
        iy: Spectrum in radiance, shape (nf, ns)
        unit: Target unit
        frequencies: Frequency grid [Hz]

    Returns:
        Converted derivative
    """
    diy = np.asarray(diy, dtype=np.float64)
    iy = np.asarray(iy, dtype=np.float64)
    _check_unit(unit, iy.shape[1])
    if unit == "1":
        return diy.copy()
    if unit == "RJBT":
        return diy * rayleigh_jeans_factor(frequencies)[:, None]
    return diy * dinvplanck_dradiance(iy[:, 0], frequencies)[:, None]


def _check_radiance(values: np.ndarray, what: str) -> None:
    if values.size and np.max(values) > RADIANCE_SANITY_LIMIT:
        raise NumericalSanityError(
            f"The spectrum can not be in expected units (radiance) "
            f"since the {what} contains values > {RADIANCE_SANITY_LIMIT}."
        )


def convert_spectrum(
    iy: np.ndarray,
    unit: str,
    frequencies: np.ndarray,
    jacobian: Optional[Sequence[np.ndarray]] = None,
    aux: Optional[Dict[str, np.ndarray]] = None,
):
    """Convert a calculated spectrum, its Jacobian and the iy diagnostic.

    Args:
        iy: Spectrum in radiance, shape (nf, ns)
        unit: Target unit, not "1"
        frequencies: Frequency grid [Hz]
        jacobian: Jacobian per quantity, shape (n_grid, nf, ns)
        aux: Diagnostics; an "iy" entry of shape (nf, ns, np) is converted

    Returns:
        Tuple of (spectrum, jacobian, aux) in the new unit

    Raises:
        PreconditionError: If unit is "1"
        NumericalSanityError: If the input does not look like radiance
    """
    if unit == "1":
        raise PreconditionError(
            "No need to convert the spectrum when the unit is \"1\".", quantity="iy_unit"
        )
    iy = np.asarray(iy, dtype=np.float64)
    _check_unit(unit, iy.shape[1])
    _check_radiance(iy[:, 0], "spectrum")

    converted_jacobian: List[np.ndarray] = []
    for jac in jacobian or []:
        _check_radiance(np.asarray(jac), "Jacobian")
        converted_jacobian.append(apply_iy_unit_jacobian(jac, iy, unit, frequencies))

    converted_aux = dict(aux or {})
    if IY in converted_aux:
        points = np.moveaxis(converted_aux[IY], -1, 0)
        converted_aux[IY] = np.moveaxis(
            np.array([apply_iy_unit(p, unit, frequencies) for p in points]), 0, -1
        )

    logger.debug(f"Converted spectrum of {len(frequencies)} frequencies to {unit}")
    return apply_iy_unit(iy, unit, frequencies), converted_jacobian, converted_aux


def convert_measurement(
    y: np.ndarray,
    y_f: np.ndarray,
    unit: str,
    jacobian: Optional[np.ndarray] = None,
    y_pol: Optional[np.ndarray] = None,
):
    """Convert a measurement vector and its Jacobian matrix.

    Each element of y is converted with its own frequency. For PlanckBT
    all elements must be Stokes I.

    Args:
        y: Measurement vector in radiance
        y_f: Frequency of each element [Hz]
        unit: Target unit, not "1"
        jacobian: Jacobian matrix, shape (n_y, n_x)
        y_pol: Stokes component of each element

    Returns:
        Tuple of (y, jacobian) in the new unit
    """
    if unit == "1":
        raise PreconditionError(
            "No need to convert the measurement vector when the unit is \"1\".",
            quantity="iy_unit",
        )
    y = np.asarray(y, dtype=np.float64)
    y_f = np.asarray(y_f, dtype=np.float64)
    if y_f.shape != y.shape:
        raise PreconditionError(
            f"y_f has {y_f.size} elements, y has {y.size}", quantity="y_f"
        )
    stokes_dim = 1
    if y_pol is not None and np.any(np.asarray(y_pol) != 0):
        stokes_dim = int(np.max(y_pol)) + 1
    _check_unit(unit, stokes_dim)
    _check_radiance(y, "measurement vector")

    iy = y[:, None]
    converted_jacobian = None
    if jacobian is not None:
        jacobian = np.asarray(jacobian, dtype=np.float64)
        _check_radiance(jacobian, "Jacobian")
        # (n_y, n_x) -> (n_x, n_y, 1) to convert along y
        converted_jacobian = apply_iy_unit_jacobian(jacobian.T[:, :, None], iy, unit, y_f)[:, :, 0].T

    return apply_iy_unit(iy, unit, y_f)[:, 0], converted_jacobian
