"""
Exception hierarchy for LOS-Tran.

Two tiers of failures are distinguished:

- Precondition violations: malformed caller input (array sizes, grid
  positions, non-monotonic grids). Raised as PreconditionError.
- Unsupported or unsound physics: configurations that are recognised but not
  implemented, ambiguous lookups, and numerical sanity failures.

Validation helpers throughout the package return a list of problem
descriptions (empty when the input is fine); ``raise_if_invalid`` turns such
a list into an exception at module boundaries.
"""

from typing import Iterable, List, Optional


class LosTranError(Exception):
    """Base class for all LOS-Tran errors."""
    pass


class PreconditionError(LosTranError, ValueError):
    """Raised when caller input violates a documented precondition.

    Attributes:
        quantity: Name of the offending input quantity (if known)
    """

    def __init__(self, message: str, quantity: Optional[str] = None):
        super().__init__(message)
        self.quantity = quantity


class UnsupportedPhysicsError(LosTranError, NotImplementedError):
    """Raised for recognised but unimplemented physical configurations."""
    pass


class NoMatchError(LosTranError, LookupError):
    """Raised when a lookup that requires a match finds nothing."""
    pass


class AmbiguousMatchError(LosTranError, LookupError):
    """Raised when a lookup that requires a unique match finds several."""
    pass


class NumericalSanityError(LosTranError, ArithmeticError):
    """Raised for NaN results or data inconsistent with its expected unit."""
    pass


class CalculationError(LosTranError, RuntimeError):
    """Raised when a unit of a parallel calculation fails.

    Attributes:
        unit_index: Index of the failed unit of work
    """

    def __init__(self, message: str, unit_index: Optional[int] = None):
        super().__init__(message)
        self.unit_index = unit_index


def raise_if_invalid(
    problems: Iterable[str],
    quantity: Optional[str] = None,
) -> None:
    """Raise PreconditionError listing all problems, if there are any."""
    problems: List[str] = list(problems)
    if problems:
        raise PreconditionError("; ".join(problems), quantity=quantity)
