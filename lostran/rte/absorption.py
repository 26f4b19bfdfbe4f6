"""
Reference line-by-line absorption model.

Lines have a Lorentz shape with pressure broadening

    γ = γ0 · (p / p0) · (T0 / T)^n

and temperature dependent strength S = S0 · (T0 / T)^m. The absorption
coefficient of a species is

    k(f) = N · vmr · Σ S · L(f' - f0),   N = p / (k_B T)

evaluated at the Doppler shifted frequency f' = f · (1 - v / c) for a
wind v along the line of sight. Polarised propagation matrices are the
scalar coefficient times a fixed structure (linear dichroism, rotation).

The line catalog supports the merge operations of line-by-line databases
(replace, append, delete). Each operation requires explicit uniqueness of
the bands and lines it matches.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from numba import jit

from lostran.core.constants import (
    BOLTZMANN_CONSTANT,
    REFERENCE_PRESSURE,
    REFERENCE_TEMPERATURE,
    SPEED_OF_LIGHT,
)
from lostran.core.errors import (
    AmbiguousMatchError,
    PreconditionError,
    UnsupportedPhysicsError,
)
from lostran.core.lookup import find_at_most_one, find_exactly_one
from lostran.rte.jacobian import QuantityKind
from lostran.rte.providers import OpticalProperties, OpticalPropertyProvider
from lostran.utils.spectral import dplanck_dt, planck

logger = logging.getLogger(__name__)

# Order of the polarisation fractions relative to the scalar absorption
POLARIZATION_ELEMENTS = ("b", "c", "d", "u", "v", "w")

_ELEMENT_POSITIONS = {
    "b": ((0, 1, 1.0), (1, 0, 1.0)),
    "c": ((0, 2, 1.0), (2, 0, 1.0)),
    "d": ((0, 3, 1.0), (3, 0, 1.0)),
    "u": ((1, 2, 1.0), (2, 1, -1.0)),
    "v": ((1, 3, 1.0), (3, 1, -1.0)),
    "w": ((2, 3, 1.0), (3, 2, -1.0)),
}


@dataclass
class SpectralLine:
    """A single absorption line.

    Attributes:
        species: Absorbing species
        center: Line center frequency [Hz]
        strength: Line strength at the reference temperature [m²·Hz]
        gamma: Pressure broadening half width at the reference state [Hz]
        gamma_exponent: Temperature exponent of the broadening
        strength_exponent: Temperature exponent of the line strength
        identifier: Local quantum numbers identifying the line in its band
    """
    species: str
    center: float
    strength: float
    gamma: float
    gamma_exponent: float = 0.75
    strength_exponent: float = 0.0
    identifier: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "SpectralLine":
        return cls(
            species=data["species"],
            center=float(data["center_hz"]),
            strength=float(data["strength"]),
            gamma=float(data["gamma_hz"]),
            gamma_exponent=float(data.get("gamma_exponent", 0.75)),
            strength_exponent=float(data.get("strength_exponent", 0.0)),
            identifier=str(data.get("identifier", "")),
        )

    def to_dict(self) -> dict:
        return {
            "species": self.species,
            "center_hz": self.center,
            "strength": self.strength,
            "gamma_hz": self.gamma,
            "gamma_exponent": self.gamma_exponent,
            "strength_exponent": self.strength_exponent,
            "identifier": self.identifier,
        }


@dataclass
class LineBand:
    """Lines sharing species and global quantum numbers."""
    species: str
    key: str
    lines: List[SpectralLine] = field(default_factory=list)

    def matches(self, other: "LineBand") -> bool:
        return self.species == other.species and self.key == other.key


class LineCatalog:
    """Collection of line bands with validated merge operations."""

    def __init__(self, bands: Sequence[LineBand] = ()):
        self.bands: List[LineBand] = [
            replace(b, lines=list(b.lines)) for b in bands
        ]

    @classmethod
    def from_lines(cls, lines: Sequence[SpectralLine], key: str = "") -> "LineCatalog":
        """Group lines into one band per species."""
        bands: Dict[str, LineBand] = {}
        for line in lines:
            bands.setdefault(line.species, LineBand(line.species, key)).lines.append(line)
        return cls(list(bands.values()))

    @property
    def lines(self) -> List[SpectralLine]:
        return [line for band in self.bands for line in band.lines]

    def __len__(self) -> int:
        return sum(len(band.lines) for band in self.bands)

    def _find_band(self, band: LineBand) -> Tuple[int, LineBand]:
        return find_exactly_one(
            self.bands, band.matches, what=f"band {band.species} {band.key!r}"
        )

    @staticmethod
    def _line_matcher(line: SpectralLine):
        return lambda other: other.identifier == line.identifier

    def replace_lines(self, replacements: Sequence[LineBand]) -> None:
        """Replace lines, each must match exactly one band and line."""
        for new_band in replacements:
            _, band = self._find_band(new_band)
            for line in new_band.lines:
                index, _ = find_exactly_one(
                    band.lines, self._line_matcher(line),
                    what=f"line {line.identifier!r} in band {band.key!r}",
                )
                band.lines[index] = line

    def append_lines(self, additions: Sequence[LineBand]) -> None:
        """Append lines to at most one matching band or as a new band.

        Raises:
            AmbiguousMatchError: If a band matches several bands, or a line
                already exists in the matched band
        """
        for new_band in additions:
            hit = find_at_most_one(
                self.bands, new_band.matches,
                what=f"band {new_band.species} {new_band.key!r}",
            )
            if hit is None:
                self.bands.append(replace(new_band, lines=list(new_band.lines)))
                continue
            band = hit[1]
            for line in new_band.lines:
                if find_at_most_one(band.lines, self._line_matcher(line)) is not None:
                    raise AmbiguousMatchError(
                        f"Line {line.identifier!r} already exists in band {band.key!r}; "
                        "appended lines must not match any existing line."
                    )
                band.lines.append(line)

    def delete_lines(self, deletions: Sequence[LineBand]) -> None:
        """Delete lines, each must match exactly one band and line once."""
        for del_band in deletions:
            _, band = self._find_band(del_band)
            indices = []
            for line in del_band.lines:
                index, _ = find_exactly_one(
                    band.lines, self._line_matcher(line),
                    what=f"line {line.identifier!r} in band {band.key!r}",
                )
                indices.append(index)
            if len(set(indices)) != len(indices):
                raise AmbiguousMatchError(
                    f"The same line is deleted more than once in band {band.key!r}"
                )
            for index in sorted(indices, reverse=True):
                del band.lines[index]


@jit(nopython=True, cache=True)
def _lorentz_kernel(
    frequencies: np.ndarray,
    centers: np.ndarray,
    strengths: np.ndarray,
    gammas: np.ndarray,
    strength_exponents: np.ndarray,
    gamma_exponents: np.ndarray,
    temperature: float,
    shift_factor: float,
    k: np.ndarray,
    dk_dt: np.ndarray,
    dk_df: np.ndarray,
):
    """Accumulate Lorentz lines of one species.

    k collects Σ S·L, dk_dt its temperature derivative through S and γ, and
    dk_df its derivative with respect to frequency. Lines are evaluated at
    the shifted frequency f·shift_factor.
    """
    inv_pi = 1.0 / np.pi
    for i in range(len(frequencies)):
        f = frequencies[i] * shift_factor
        for j in range(len(centers)):
            g = gammas[j]
            delta = f - centers[j]
            denom = delta * delta + g * g
            s = strengths[j]
            line = s * inv_pi * g / denom
            dline_dg = s * inv_pi * (delta * delta - g * g) / (denom * denom)
            k[i] += line
            # dS/dT = -m S / T, dγ/dT = -n γ / T
            dk_dt[i] -= (strength_exponents[j] * line + gamma_exponents[j] * g * dline_dg) / temperature
            dk_df[i] -= s * 2.0 * inv_pi * g * delta / (denom * denom)


class LorentzLineAbsorption(OpticalPropertyProvider):
    """Line-by-line absorption with Lorentz line shapes.

    Args:
        catalog: Line catalog
        species: Species names in the order of the atmospheric state
        polarization: Fractions of the scalar absorption placed in the
            off-diagonal elements of the propagation matrix, keyed by
            element name (b, c, d, u, v, w)
    """

    def __init__(
        self,
        catalog: LineCatalog,
        species: Sequence[str],
        polarization: Optional[Dict[str, float]] = None,
    ):
        self.catalog = catalog
        self.species = list(species)
        self.polarization = dict(polarization or {})
        unknown = set(self.polarization) - set(POLARIZATION_ELEMENTS)
        if unknown:
            raise PreconditionError(
                f"Unknown propagation matrix elements: {sorted(unknown)}",
                quantity="polarization",
            )
        self._tables = self._build_tables()

    def _build_tables(self):
        tables = []
        for name in self.species:
            lines = [line for line in self.catalog.lines if line.species.upper() == name.upper()]
            tables.append({
                "center": np.array([line.center for line in lines], dtype=np.float64),
                "strength": np.array([line.strength for line in lines], dtype=np.float64),
                "gamma": np.array([line.gamma for line in lines], dtype=np.float64),
                "gamma_exponent": np.array([line.gamma_exponent for line in lines], dtype=np.float64),
                "strength_exponent": np.array([line.strength_exponent for line in lines], dtype=np.float64),
            })
        known = {s.upper() for s in self.species}
        for line in self.catalog.lines:
            if line.species.upper() not in known:
                logger.warning(f"Ignoring line of species {line.species} not in the atmosphere")
        return tables

    def structure(self, stokes_dim: int) -> np.ndarray:
        """Propagation matrix per unit scalar absorption, shape (ns, ns)."""
        m = np.eye(stokes_dim)
        for name, fraction in self.polarization.items():
            for i, j, sign in _ELEMENT_POSITIONS[name]:
                if i < stokes_dim and j < stokes_dim:
                    m[i, j] = sign * fraction
        return m

    def _species_absorption(self, table, frequencies, state):
        """Σ S·L of one species and its temperature and frequency derivatives."""
        p, t = state.pressure, state.temperature
        ratio_t = REFERENCE_TEMPERATURE / t
        gammas = table["gamma"] * (p / REFERENCE_PRESSURE) * ratio_t ** table["gamma_exponent"]
        strengths = table["strength"] * ratio_t ** table["strength_exponent"]

        nf = len(frequencies)
        k = np.zeros(nf)
        dk_dt = np.zeros(nf)
        dk_df = np.zeros(nf)
        _lorentz_kernel(
            frequencies, table["center"], strengths, gammas,
            table["strength_exponent"], table["gamma_exponent"], t,
            1.0 - state.wind / SPEED_OF_LIGHT, k, dk_dt, dk_df,
        )
        return k, dk_dt, dk_df

    def compute(self, frequencies, state, stokes_dim, quantities=None) -> OpticalProperties:
        frequencies = np.asarray(frequencies, dtype=np.float64)
        nf = len(frequencies)
        n_species = len(self.species)
        if len(state.vmr) != n_species:
            raise PreconditionError(
                f"State has {len(state.vmr)} VMR values, absorption model "
                f"{n_species} species",
                quantity="vmr",
            )

        structure = self.structure(stokes_dim)
        number_density = state.pressure / (BOLTZMANN_CONSTANT * state.temperature)

        # Scalar coefficients per species
        sums = np.zeros((n_species, nf))
        dsum_dt = np.zeros((n_species, nf))
        dsum_df = np.zeros((n_species, nf))
        for s, table in enumerate(self._tables):
            sums[s], dsum_dt[s], dsum_df[s] = self._species_absorption(table, frequencies, state)

        vmr = np.asarray(state.vmr, dtype=np.float64)
        k_species = number_density * vmr[:, None] * sums
        k_total = k_species.sum(axis=0)

        species_extinction = k_species[:, :, None, None] * structure
        extinction = k_total[:, None, None] * structure

        source = None
        d_source: Dict[int, np.ndarray] = {}
        if state.nlte_temperature is not None:
            # Emission of the excited state in excess of LTE
            db = planck(frequencies, state.nlte_temperature) - planck(frequencies, state.temperature)
            source = extinction[:, :, 0] * db[:, None]

        d_extinction: Dict[int, np.ndarray] = {}
        if quantities is not None:
            for iq, q in enumerate(quantities):
                if q.kind == QuantityKind.SPECIES:
                    if not 0 <= q.species_index < n_species:
                        raise PreconditionError(
                            f"Species index {q.species_index} is outside the "
                            f"{n_species} species",
                            quantity="species_index",
                        )
                    dk = number_density * sums[q.species_index]
                elif q.kind == QuantityKind.TEMPERATURE:
                    # dN/dT = -N/T
                    dk = number_density * (vmr[:, None] * (dsum_dt - sums / state.temperature)).sum(axis=0)
                elif q.kind == QuantityKind.WIND:
                    dk = number_density * (vmr[:, None] * dsum_df).sum(axis=0) * (
                        -frequencies / SPEED_OF_LIGHT
                    )
                elif q.kind == QuantityKind.OTHER:
                    if q.subtag != "line strength":
                        raise UnsupportedPhysicsError(
                            f"No analytical derivative for {q.subtag!r}"
                        )
                    dk = k_total
                else:
                    raise UnsupportedPhysicsError(
                        "Analytical Jacobians for the magnetic field are not implemented"
                    )
                d_extinction[iq] = dk[:, None, None] * structure

                if source is not None:
                    d_source[iq] = d_extinction[iq][:, :, 0] * db[:, None]
                    if q.kind == QuantityKind.TEMPERATURE:
                        d_source[iq] -= extinction[:, :, 0] * dplanck_dt(
                            frequencies, state.temperature
                        )[:, None]

        return OpticalProperties(
            extinction=extinction,
            source=source,
            species_extinction=species_extinction,
            d_extinction=d_extinction,
            d_source=d_source,
        )
