"""
Collaborator interfaces of the radiative transfer integrator.

The integrator does not compute absorption, boundary radiances or particle
fields itself. These are supplied by objects implementing the abstract base
classes below, passed in by the caller. Each unit of a parallel calculation
works on its own copies of these objects.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from lostran.core.constants import COSMIC_BACKGROUND_TEMPERATURE
from lostran.core.errors import PreconditionError, UnsupportedPhysicsError
from lostran.geometry import Background
from lostran.interpolation import interp_1d
from lostran.utils.spectral import planck


@dataclass
class OpticalProperties:
    """Optical properties at one path point.

    Attributes:
        extinction: Propagation matrix, shape (nf, ns, ns) [1/m]
        source: Non-LTE source vector, shape (nf, ns), None for LTE
        species_extinction: Propagation matrix of each species,
            shape (n_species, nf, ns, ns)
        d_extinction: Derivative of the extinction with respect to each
            retrieval quantity (keyed by quantity index), shape (nf, ns, ns)
        d_source: Derivative of the non-LTE source with respect to each
            retrieval quantity, shape (nf, ns)
    """
    extinction: np.ndarray
    source: Optional[np.ndarray] = None
    species_extinction: Optional[np.ndarray] = None
    d_extinction: Dict[int, np.ndarray] = field(default_factory=dict)
    d_source: Dict[int, np.ndarray] = field(default_factory=dict)

    @property
    def is_lte(self) -> bool:
        return self.source is None


@dataclass
class BackgroundResult:
    """Radiation entering the far end of a path.

    Attributes:
        stokes: Boundary Stokes vector, shape (nf, ns)
        jacobian: Derivative of the boundary radiance on the retrieval grid,
            keyed by quantity index, shape (n_grid, nf, ns)
    """
    stokes: np.ndarray
    jacobian: Dict[int, np.ndarray] = field(default_factory=dict)


class OpticalPropertyProvider(ABC):
    """Computes extinction and source terms for a point state."""

    @abstractmethod
    def compute(self, frequencies, state, stokes_dim, quantities=None) -> OpticalProperties:
        """Optical properties for one path point.

        Args:
            frequencies: Frequency grid [Hz]
            state: PointState of the path point
            stokes_dim: Number of Stokes components
            quantities: JacobianQuantities for which derivatives are needed

        Returns:
            OpticalProperties of the point
        """


class BackgroundProvider(ABC):
    """Supplies boundary radiation and surface properties."""

    @abstractmethod
    def boundary(self, background, frequencies, stokes_dim) -> BackgroundResult:
        """Radiation entering the path at its far end."""

    @abstractmethod
    def surface_properties(self, frequencies, stokes_dim) -> Tuple[np.ndarray, np.ndarray]:
        """Surface emission (nf, ns) and reflection matrix (nf, ns, ns)."""


class ParticleFieldProvider(ABC):
    """Supplies particle fields for diagnostic output."""

    @property
    @abstractmethod
    def n_mass_categories(self) -> int:
        """Number of particle mass categories."""

    @property
    @abstractmethod
    def n_particle_types(self) -> int:
        """Number of particle types."""

    @abstractmethod
    def mass_content(self, category: int, path) -> np.ndarray:
        """Mass content of a category at each path point [kg/m³]."""

    @abstractmethod
    def number_density(self, particle_type: int, path) -> np.ndarray:
        """Particle number density of a type at each path point [1/m³]."""


class MonteCarloSolver(ABC):
    """Solves the scattering problem for a single frequency.

    Time and iteration budgets are handled by the solver.
    """

    @abstractmethod
    def solve(self, frequency_index: int, frequency: float) -> Tuple[np.ndarray, np.ndarray]:
        """Return the Stokes vector (ns,) and its error estimate (ns,)."""


# =============================================================================
# Reference implementations
# =============================================================================

def _stokes_from_scalar(values: np.ndarray, stokes_dim: int) -> np.ndarray:
    """Unpolarised Stokes vectors from a scalar spectrum."""
    out = np.zeros((len(values), stokes_dim))
    out[:, 0] = values
    return out


class StandardBackground(BackgroundProvider):
    """Cosmic background and a specular surface at fixed temperature.

    Args:
        surface_temperature: Surface skin temperature [K]
        surface_emissivity: Surface emissivity (0-1)
        space_temperature: Temperature of the cosmic background [K]
        cloudbox_field: Radiation leaving a cloud box, shape (nf, ns)
    """

    def __init__(
        self,
        surface_temperature: float = 288.15,
        surface_emissivity: float = 1.0,
        space_temperature: float = COSMIC_BACKGROUND_TEMPERATURE,
        cloudbox_field: Optional[np.ndarray] = None,
    ):
        if not 0.0 <= surface_emissivity <= 1.0:
            raise PreconditionError(
                f"surface emissivity must be between 0 and 1, got {surface_emissivity}",
                quantity="surface_emissivity",
            )
        self.surface_temperature = surface_temperature
        self.surface_emissivity = surface_emissivity
        self.space_temperature = space_temperature
        self.cloudbox_field = cloudbox_field

    def boundary(self, background, frequencies, stokes_dim) -> BackgroundResult:
        frequencies = np.asarray(frequencies, dtype=np.float64)
        if background == Background.SPACE:
            b = planck(frequencies, self.space_temperature)
            return BackgroundResult(stokes=_stokes_from_scalar(b, stokes_dim))
        if background == Background.SURFACE:
            # Blackbody ground
            b = planck(frequencies, self.surface_temperature)
            return BackgroundResult(stokes=_stokes_from_scalar(b, stokes_dim))
        if self.cloudbox_field is None:
            raise UnsupportedPhysicsError(
                "Paths ending at a cloud box need a cloud box radiation field"
            )
        stokes = np.asarray(self.cloudbox_field, dtype=np.float64)
        if stokes.shape != (len(frequencies), stokes_dim):
            raise PreconditionError(
                f"cloud box field has shape {stokes.shape}, "
                f"expected {(len(frequencies), stokes_dim)}",
                quantity="cloudbox_field",
            )
        return BackgroundResult(stokes=stokes.copy())

    def surface_properties(self, frequencies, stokes_dim):
        frequencies = np.asarray(frequencies, dtype=np.float64)
        nf = len(frequencies)
        e = self.surface_emissivity
        emission = _stokes_from_scalar(e * planck(frequencies, self.surface_temperature), stokes_dim)
        reflectivity = np.zeros((nf, stokes_dim, stokes_dim))
        reflectivity[:] = (1.0 - e) * np.eye(stokes_dim)
        return emission, reflectivity


class GriddedParticleField(ParticleFieldProvider):
    """Particle fields given on the pressure grid of the atmosphere.

    Args:
        mass_content: Mass content per category, shape (n_categories, n_p)
        number_density: Number density per particle type, shape (n_types, n_p)
    """

    def __init__(
        self,
        mass_content: Sequence[Sequence[float]] = (),
        number_density: Sequence[Sequence[float]] = (),
    ):
        self._mass = [np.asarray(m, dtype=np.float64) for m in mass_content]
        self._pnd = [np.asarray(p, dtype=np.float64) for p in number_density]

    @property
    def n_mass_categories(self) -> int:
        return len(self._mass)

    @property
    def n_particle_types(self) -> int:
        return len(self._pnd)

    def mass_content(self, category, path):
        out = np.empty(path.n_points)
        return interp_1d(self._mass[category], path.ip_p, out)

    def number_density(self, particle_type, path):
        out = np.empty(path.n_points)
        return interp_1d(self._pnd[particle_type], path.ip_p, out)
