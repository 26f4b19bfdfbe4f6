"""
Core components of LOS-Tran.

This module provides:
- Exception hierarchy shared by all subpackages
- Physical constants and standard values
- Unique lookup helpers

The Simulation class lives in lostran.core.simulation and is exported from
the top-level package.
"""

from lostran.core.errors import (
    LosTranError,
    PreconditionError,
    UnsupportedPhysicsError,
    NoMatchError,
    AmbiguousMatchError,
    NumericalSanityError,
    CalculationError,
    raise_if_invalid,
)
from lostran.core.lookup import find_all, find_exactly_one, find_at_most_one

__all__ = [
    "LosTranError",
    "PreconditionError",
    "UnsupportedPhysicsError",
    "NoMatchError",
    "AmbiguousMatchError",
    "NumericalSanityError",
    "CalculationError",
    "raise_if_invalid",
    "find_all",
    "find_exactly_one",
    "find_at_most_one",
]
