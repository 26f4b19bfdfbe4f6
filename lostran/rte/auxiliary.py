"""
Auxiliary diagnostics recorded during integration.

Diagnostics are requested by alias. Per-point quantities are stored in
path point order (lowest point first), frequency resolved quantities have
the frequency dimension first.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from lostran.core.errors import PreconditionError

PRESSURE = "Pressure"
TEMPERATURE = "Temperature"
ABSORPTION_SUMMED = "Absorption, summed"
RADIATIVE_BACKGROUND = "Radiative background"
IY = "iy"
TRANSMISSION = "Transmission"
OPTICAL_DEPTH = "Optical depth"

_INDEXED = {
    "vmr": re.compile(r"^VMR, species (\d+)$"),
    "absorption": re.compile(r"^Absorption, species (\d+)$"),
    "mass": re.compile(r"^Mass content, (\d+)$"),
    "pnd": re.compile(r"^PND, type (\d+)$"),
}

_SIMPLE = {
    PRESSURE: "pressure",
    TEMPERATURE: "temperature",
    ABSORPTION_SUMMED: "absorption_summed",
    RADIATIVE_BACKGROUND: "background",
    IY: "iy",
    TRANSMISSION: "transmission",
    OPTICAL_DEPTH: "optical_depth",
}

# Kinds with the frequency dimension first
FREQUENCY_RESOLVED = {
    "absorption", "absorption_summed", "background", "iy", "transmission", "optical_depth",
}


@dataclass
class AuxRequest:
    """A parsed diagnostic request."""
    name: str
    kind: str
    index: Optional[int] = None


def parse_aux_variables(
    names: Sequence[str],
    n_species: int,
    particles=None,
) -> List[AuxRequest]:
    """Parse diagnostic aliases.

    Args:
        names: Requested aliases
        n_species: Number of species in the atmosphere
        particles: ParticleFieldProvider for particle diagnostics

    Returns:
        One AuxRequest per alias

    Raises:
        PreconditionError: For unknown aliases and out-of-range indices
    """
    requests = []
    for name in names:
        if name in _SIMPLE:
            requests.append(AuxRequest(name, _SIMPLE[name]))
            continue

        for kind, pattern in _INDEXED.items():
            match = pattern.match(name)
            if match:
                index = int(match.group(1))
                break
        else:
            raise PreconditionError(
                f"Unknown auxiliary variable \"{name}\".",
                quantity="aux_vars",
            )

        if kind in ("vmr", "absorption") and index >= n_species:
            raise PreconditionError(
                f"You have selected VMR/absorption of species with index {index}. "
                f"There are only {n_species} species.",
                quantity="aux_vars",
            )
        if kind == "mass" and (particles is None or index >= particles.n_mass_categories):
            raise PreconditionError(
                f"You have selected particle mass category with index {index}. "
                "This category is not defined!",
                quantity="aux_vars",
            )
        if kind == "pnd" and (particles is None or index >= particles.n_particle_types):
            raise PreconditionError(
                f"You have selected particle type with index {index}. "
                "This type is not defined!",
                quantity="aux_vars",
            )
        requests.append(AuxRequest(name, kind, index))
    return requests


def is_frequency_resolved(name: str) -> bool:
    """True if the diagnostic has the frequency dimension first."""
    if name in _SIMPLE:
        return _SIMPLE[name] in FREQUENCY_RESOLVED
    return _INDEXED["absorption"].match(name) is not None


class AuxiliaryRecorder:
    """Allocates and fills the requested diagnostics of one path."""

    def __init__(self, requests: Sequence[AuxRequest], n_points: int, n_freq: int, stokes_dim: int):
        self.requests = list(requests)
        self.data: Dict[str, np.ndarray] = {}
        shapes = {
            "pressure": (n_points,),
            "temperature": (n_points,),
            "vmr": (n_points,),
            "mass": (n_points,),
            "pnd": (n_points,),
            "absorption": (n_freq, stokes_dim, stokes_dim, n_points),
            "absorption_summed": (n_freq, stokes_dim, stokes_dim, n_points),
            "background": (n_freq,),
            "iy": (n_freq, stokes_dim, n_points),
            "transmission": (n_freq, stokes_dim, stokes_dim, n_points),
            "optical_depth": (n_freq,),
        }
        for req in self.requests:
            self.data[req.name] = np.zeros(shapes[req.kind])

    def _each(self, *kinds):
        for req in self.requests:
            if req.kind in kinds:
                yield req, self.data[req.name]

    def record_point(self, k: int, state, props) -> None:
        """Atmospheric and absorption diagnostics of path point k."""
        for req, arr in self._each("pressure"):
            arr[k] = state.pressure
        for req, arr in self._each("temperature"):
            arr[k] = state.temperature
        for req, arr in self._each("vmr"):
            arr[k] = state.vmr[req.index]
        for req, arr in self._each("absorption_summed"):
            arr[..., k] = props.extinction
        for req, arr in self._each("absorption"):
            arr[..., k] = props.species_extinction[req.index]

    def record_particles(self, particles, path) -> None:
        for req, arr in self._each("mass"):
            arr[:] = particles.mass_content(req.index, path)
        for req, arr in self._each("pnd"):
            arr[:] = particles.number_density(req.index, path)

    def record_radiance(self, k: int, stokes: np.ndarray) -> None:
        for req, arr in self._each("iy"):
            arr[..., k] = stokes

    def record_transmission(self, k: int, transmission: np.ndarray) -> None:
        for req, arr in self._each("transmission"):
            arr[..., k] = transmission

    def record_background(self, code: int) -> None:
        for req, arr in self._each("background"):
            arr[:] = code

    def record_optical_depth(self, tau: np.ndarray) -> None:
        for req, arr in self._each("optical_depth"):
            arr[:] = tau


def replace_from_aux(
    iy: np.ndarray,
    aux: Dict[str, np.ndarray],
    name: str,
    jacobian_do: bool = False,
) -> np.ndarray:
    """Replace the spectrum by a scalar-per-frequency diagnostic.

    The first Stokes component is set to the diagnostic, the others to 0.

    Args:
        iy: Spectrum, shape (nf, ns)
        aux: Diagnostics of the calculation
        name: Alias of the diagnostic to use
        jacobian_do: Whether Jacobians were calculated

    Returns:
        The new spectrum
    """
    if jacobian_do:
        raise PreconditionError(
            "This method cannot be used when Jacobians are calculated.",
            quantity="jacobian_do",
        )
    if name not in aux:
        raise PreconditionError(
            f"No auxiliary variable named \"{name}\".", quantity="aux_var"
        )
    values = np.asarray(aux[name])
    if values.shape != (iy.shape[0],):
        raise PreconditionError(
            f"Diagnostic \"{name}\" has shape {values.shape}, "
            f"expected one value per frequency ({iy.shape[0]}).",
            quantity="aux_var",
        )
    out = np.zeros_like(iy)
    out[:, 0] = values
    return out
