"""
Interpolation Engine
====================

Index-based linear interpolation used to map fields defined on the
atmospheric grids to path points and other query positions.
"""

from lostran.interpolation.linear import (
    # Grid positions
    check_grid_positions,
    interpolation_weights,
    infer_interp_dimension,
    # Interpolation
    interpolate_1d,
    interp_1d,
    interpolate_dimension_subset,
    # Resampling
    resample_field,
)

__all__ = [
    "check_grid_positions",
    "interpolation_weights",
    "infer_interp_dimension",
    "interpolate_1d",
    "interp_1d",
    "interpolate_dimension_subset",
    "resample_field",
]
