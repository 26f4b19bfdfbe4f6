"""
Retrieval quantities and projection of path Jacobians.

Analytical derivatives are first accumulated per path point and then
mapped to the retrieval grid of each quantity. Retrieval grids are
pressure grids, interpolation between them is linear in log-pressure.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence

import numpy as np

from lostran.core.errors import UnsupportedPhysicsError, raise_if_invalid
from lostran.core.lookup import find_exactly_one
from lostran.interpolation import interpolation_weights


class QuantityKind(str, Enum):
    """Physical parameter a retrieval quantity perturbs."""
    SPECIES = "species"
    TEMPERATURE = "temperature"
    WIND = "wind"
    MAGNETIC = "magnetic"
    OTHER = "other"


@dataclass
class RetrievalQuantity:
    """A retrieved parameter and its retrieval grid.

    Attributes:
        kind: Parameter type
        grid: Retrieval pressure grid [Pa], strictly decreasing
        species_index: Index of the species for SPECIES quantities
        subtag: Further specification, e.g. "line strength" for OTHER or
            the field component for MAGNETIC
        analytical: Whether derivatives are computed analytically
    """
    kind: QuantityKind
    grid: np.ndarray
    species_index: Optional[int] = None
    subtag: str = ""
    analytical: bool = True

    def __post_init__(self):
        self.kind = QuantityKind(self.kind)
        self.grid = np.atleast_1d(np.asarray(self.grid, dtype=np.float64))

    @property
    def n_grid(self) -> int:
        return len(self.grid)

    def validate(self) -> list:
        errors = []
        if self.grid.ndim != 1 or self.n_grid == 0:
            errors.append(f"{self.kind.value}: retrieval grid must be a non-empty vector")
        elif np.any(self.grid <= 0):
            errors.append(f"{self.kind.value}: retrieval pressures must be positive")
        elif np.any(np.diff(self.grid) >= 0):
            errors.append(f"{self.kind.value}: retrieval pressure grid must be decreasing")
        if self.kind == QuantityKind.SPECIES and self.species_index is None:
            errors.append("species quantity without species index")
        if not self.analytical:
            errors.append(f"{self.kind.value}: only analytical Jacobians are supported")
        return errors


class JacobianQuantities:
    """Ordered set of retrieval quantities.

    Each quantity occupies a contiguous range of columns in the flattened
    Jacobian matrix, in the order the quantities are given.
    """

    def __init__(self, quantities: Sequence[RetrievalQuantity] = ()):
        self.quantities: List[RetrievalQuantity] = list(quantities)
        raise_if_invalid(
            [e for q in self.quantities for e in q.validate()],
            quantity="retrieval quantities",
        )
        self.ranges: List[slice] = []
        start = 0
        for q in self.quantities:
            self.ranges.append(slice(start, start + q.n_grid))
            start += q.n_grid
        self.n_x = start

    def __len__(self) -> int:
        return len(self.quantities)

    def __iter__(self) -> Iterator[RetrievalQuantity]:
        return iter(self.quantities)

    def __getitem__(self, index: int) -> RetrievalQuantity:
        return self.quantities[index]

    def index_range(self, index: int) -> slice:
        """Column range of a quantity in the Jacobian matrix."""
        return self.ranges[index]

    def find(self, kind, species_index: Optional[int] = None) -> int:
        """Index of the single quantity of the given kind (and species)."""
        kind = QuantityKind(kind)
        index, _ = find_exactly_one(
            self.quantities,
            lambda q: q.kind == kind and (species_index is None or q.species_index == species_index),
            what=f"{kind.value} retrieval quantity",
        )
        return index

    def has(self, kind) -> bool:
        kind = QuantityKind(kind)
        return any(q.kind == kind for q in self.quantities)

    def check_supported(self) -> None:
        """Raise for quantities without analytical derivatives."""
        for q in self.quantities:
            if q.kind == QuantityKind.MAGNETIC:
                raise UnsupportedPhysicsError(
                    "Analytical Jacobians for the magnetic field are not implemented"
                )


def retrieval_grid_positions(pressure: np.ndarray, grid: np.ndarray) -> np.ndarray:
    """Positions of pressures in a retrieval grid, linear in log-pressure.

    Pressures outside the grid are mapped to its end points.
    """
    if len(grid) == 1:
        return np.zeros(len(pressure))
    # np.interp needs increasing abscissae
    return np.interp(-np.log(pressure), -np.log(grid), np.arange(len(grid), dtype=np.float64))


def project_to_retrieval_grid(
    path_jacobian: np.ndarray,
    pressure: np.ndarray,
    grid: np.ndarray,
) -> np.ndarray:
    """Map a path Jacobian to a retrieval grid.

    Each path point contributes to the two bracketing retrieval levels with
    its interpolation weights, so that a perturbation on the retrieval
    grid interpolated to the path reproduces the path perturbation.

    Args:
        path_jacobian: Derivatives per path point, shape (np, nf, ns)
        pressure: Pressure of each path point [Pa]
        grid: Retrieval pressure grid [Pa]

    Returns:
        Jacobian on the retrieval grid, shape (n_grid, nf, ns)
    """
    n_grid = len(grid)
    out = np.zeros((n_grid,) + path_jacobian.shape[1:])
    if path_jacobian.shape[0] == 0:
        return out

    positions = retrieval_grid_positions(pressure, grid)
    indices, weights = interpolation_weights(grid, positions)
    for k in range(len(indices)):
        i, w = indices[k], weights[k]
        if w == 0.0:
            out[i] += path_jacobian[k]
        else:
            out[i] += (1.0 - w) * path_jacobian[k]
            out[i + 1] += w * path_jacobian[k]
    return out
