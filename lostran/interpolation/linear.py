"""
Index-based linear interpolation.

All functions take grid *positions* rather than physical coordinates. A
position of 6.5 lies half way between grid points 6 and 7, a position of 5
is exactly on grid point 5. Only linear interpolation is provided.

Two flavours exist:

- interp functions evaluate a field at a set of points, e.g. along a line
  of sight. Position vectors for all dimensions have the same length.
- resample functions evaluate a field at all crossings of the given position
  vectors, i.e. they map a field from one set of grids to another.

No function resizes its output. Outputs are allocated by the caller and
their shape is checked against the inputs.
"""

from typing import List, Sequence, Tuple

import numpy as np
from numba import jit

from lostran.core.constants import INTERP_WEIGHT_EPSILON
from lostran.core.errors import (
    PreconditionError,
    UnsupportedPhysicsError,
    raise_if_invalid,
)


# =============================================================================
# Kernels
# =============================================================================

@jit(nopython=True, cache=True)
def _interp_kernel(
    values: np.ndarray,
    indices: np.ndarray,
    weights: np.ndarray,
    out: np.ndarray,
) -> None:
    """Linear interpolation loop. A zero weight copies the grid value."""
    for k in range(indices.shape[0]):
        i = indices[k]
        w = weights[k]
        if w == 0.0:
            out[k] = values[i]
        else:
            out[k] = (1.0 - w) * values[i] + w * values[i + 1]


# =============================================================================
# Grid Positions
# =============================================================================

def check_grid_positions(n_grid: int, positions: Sequence[float]) -> List[str]:
    """Check that grid positions can be used with a grid of n_grid points.

    Follows the rules of interpolation_weights: a negative lower index is
    never allowed; a weight below the snap tolerance is treated as zero and
    then the lower index may be the last grid point; otherwise the lower
    index must be below the last grid point.

    Args:
        n_grid: Number of grid points
        positions: Grid positions to check

    Returns:
        List of problem descriptions (empty if valid)
    """
    problems = []
    positions = np.asarray(positions, dtype=np.float64)

    if positions.ndim != 1:
        problems.append(f"grid positions must be a vector, got {positions.ndim}-D")
        return problems
    if n_grid < 1:
        problems.append("grid must contain at least one point")
        return problems
    if not np.all(np.isfinite(positions)):
        problems.append("grid positions must be finite")
        return problems

    lower = np.floor(positions)
    weights = positions - lower
    snapped = weights < INTERP_WEIGHT_EPSILON

    if np.any(lower < 0):
        problems.append(
            f"grid position {positions[lower < 0][0]} is below the grid"
        )
    beyond = np.where(snapped, lower >= n_grid, lower >= n_grid - 1)
    if np.any(beyond):
        problems.append(
            f"grid position {positions[beyond][0]} is outside a grid "
            f"of {n_grid} points"
        )
    return problems


def _weights_for_size(
    n_grid: int,
    positions: Sequence[float],
) -> Tuple[np.ndarray, np.ndarray]:
    raise_if_invalid(check_grid_positions(n_grid, positions), quantity="grid position")

    positions = np.asarray(positions, dtype=np.float64)
    lower = np.floor(positions)
    weights = positions - lower
    weights[weights < INTERP_WEIGHT_EPSILON] = 0.0
    return lower.astype(np.int64), weights


def interpolation_weights(
    grid: Sequence[float],
    positions: Sequence[float],
) -> Tuple[np.ndarray, np.ndarray]:
    """Convert grid positions to lower indices and interpolation weights.

    Args:
        grid: The grid (only its length is used)
        positions: Grid positions, one per query point

    Returns:
        Tuple of (indices, weights). indices are the lower bracketing grid
        points, weights the fractional distance towards the next point.
        Weights below 1e-6 are set to exactly 0.

    Raises:
        PreconditionError: If a position resolves to a negative index, or to
            an index at/beyond the last grid point with a non-zero weight
    """
    return _weights_for_size(len(grid), positions)


def infer_interp_dimension(
    ip_p: Sequence[float],
    ip_lat: Sequence[float] = (),
    ip_lon: Sequence[float] = (),
) -> int:
    """Infer the dimensionality of an interpolation.

    An empty position vector means that the dimension is not used. The
    non-empty vectors must have equal length.

    Returns:
        1, 2 or 3
    """
    n_p, n_lat, n_lon = len(ip_p), len(ip_lat), len(ip_lon)

    if n_lat == 0:
        if n_lon != 0:
            raise PreconditionError(
                "longitude positions given without latitude positions",
                quantity="ip_lon",
            )
        return 1
    if n_lon == 0:
        if n_lat != n_p:
            raise PreconditionError(
                f"latitude positions ({n_lat}) and pressure positions ({n_p}) "
                "differ in length",
                quantity="ip_lat",
            )
        return 2
    if n_lat != n_p or n_lon != n_p:
        raise PreconditionError(
            f"position vectors differ in length ({n_p}, {n_lat}, {n_lon})",
            quantity="ip_lon",
        )
    return 3


# =============================================================================
# Interpolation
# =============================================================================

def interpolate_1d(
    values: np.ndarray,
    indices: np.ndarray,
    weights: np.ndarray,
    out: np.ndarray,
) -> np.ndarray:
    """Interpolate a 1-D field using precomputed indices and weights.

    ``out[k] = (1-w)*values[i] + w*values[i+1]``, or ``values[i]`` when
    ``w == 0``.

    Args:
        values: Field values at the grid points
        indices: Lower bracketing indices
        weights: Interpolation weights
        out: Pre-sized output vector, one element per query point

    Returns:
        out, filled in place
    """
    values = np.ascontiguousarray(values, dtype=np.float64)
    indices = np.asarray(indices, dtype=np.int64)
    weights = np.asarray(weights, dtype=np.float64)

    if indices.shape != weights.shape:
        raise PreconditionError(
            "indices and weights differ in shape", quantity="weights"
        )
    if out.shape != indices.shape:
        raise PreconditionError(
            f"output has shape {out.shape}, expected {indices.shape}",
            quantity="out",
        )
    if len(indices) and (indices.min() < 0 or indices.max() >= len(values)):
        raise PreconditionError("index outside of field", quantity="indices")
    if np.any((weights > 0) & (indices >= len(values) - 1)):
        raise PreconditionError(
            "non-zero weight at the last grid point", quantity="weights"
        )

    _interp_kernel(values, indices, weights, out)
    return out


def interp_1d(
    values: np.ndarray,
    positions: Sequence[float],
    out: np.ndarray,
) -> np.ndarray:
    """Interpolate a 1-D field at grid positions into a pre-sized output."""
    indices, weights = interpolation_weights(values, positions)
    return interpolate_1d(values, indices, weights, out)


def _interp_along_axis(
    field: np.ndarray,
    positions: Sequence[float],
    axis: int,
) -> np.ndarray:
    n_grid = field.shape[axis]
    indices, weights = _weights_for_size(n_grid, positions)

    lower = np.take(field, indices, axis=axis)
    upper = np.take(field, np.minimum(indices + 1, n_grid - 1), axis=axis)

    shape = [1] * field.ndim
    shape[axis] = len(indices)
    w = weights.reshape(shape)
    return np.where(w == 0.0, lower, (1.0 - w) * lower + w * upper)


def interpolate_dimension_subset(
    field: np.ndarray,
    out: np.ndarray,
    ip_p: Sequence[float],
    ip_lat: Sequence[float] = (),
    ip_lon: Sequence[float] = (),
) -> np.ndarray:
    """Interpolate a field along its vertical dimension only.

    Used to bring e.g. an absorption field of shape (n_p, nf, ...) to the
    points of a path without interpolating frequency or Stokes dimensions.

    Args:
        field: Field with the vertical dimension first
        out: Pre-sized output of shape (len(ip_p),) + field.shape[1:]
        ip_p: Pressure grid positions
        ip_lat: Latitude grid positions (must be empty)
        ip_lon: Longitude grid positions (must be empty)

    Returns:
        out, filled in place

    Raises:
        UnsupportedPhysicsError: For 2-D and 3-D interpolation
    """
    dim = infer_interp_dimension(ip_p, ip_lat, ip_lon)
    if dim != 1:
        raise UnsupportedPhysicsError(
            "Interpolation of a field subset is only implemented for 1D."
        )

    field = np.asarray(field, dtype=np.float64)
    if field.ndim < 1:
        raise PreconditionError("field must have a vertical dimension", quantity="field")

    expected = (len(ip_p),) + field.shape[1:]
    if out.shape != expected:
        raise PreconditionError(
            f"output has shape {out.shape}, expected {expected}", quantity="out"
        )

    out[...] = _interp_along_axis(field, ip_p, axis=0)
    return out


# =============================================================================
# Resampling
# =============================================================================

def resample_field(
    field: np.ndarray,
    out: np.ndarray,
    ip_p: Sequence[float],
    ip_lat: Sequence[float] = (),
    ip_lon: Sequence[float] = (),
) -> np.ndarray:
    """Resample a field to all crossings of the given position vectors.

    The dimensionality follows from which position vectors are non-empty.
    Dimensions of ``field`` beyond the interpolated ones are kept as they
    are.

    Args:
        field: Field of shape (n_p[, n_lat[, n_lon]], ...)
        out: Pre-sized output of shape
            (len(ip_p)[, len(ip_lat)[, len(ip_lon)]], ...)
        ip_p: Pressure grid positions
        ip_lat: Latitude grid positions
        ip_lon: Longitude grid positions

    Returns:
        out, filled in place
    """
    if len(ip_lon) and not len(ip_lat):
        raise PreconditionError(
            "longitude positions given without latitude positions",
            quantity="ip_lon",
        )

    vectors = [v for v in (ip_p, ip_lat, ip_lon) if len(v)]
    field = np.asarray(field, dtype=np.float64)
    if field.ndim < len(vectors):
        raise PreconditionError(
            f"field has {field.ndim} dimensions, {len(vectors)} are interpolated",
            quantity="field",
        )

    expected = tuple(len(v) for v in vectors) + field.shape[len(vectors):]
    if out.shape != expected:
        raise PreconditionError(
            f"output has shape {out.shape}, expected {expected}", quantity="out"
        )

    result = field
    for axis, positions in enumerate(vectors):
        result = _interp_along_axis(result, positions, axis)

    out[...] = result
    return out
