"""
Validated lookups over collections.

Lookups that require a unique match distinguish "nothing found" from "found
more than once" through the error type and never fall back to a default.
"""

from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from lostran.core.errors import AmbiguousMatchError, NoMatchError

T = TypeVar("T")


def find_all(
    items: Iterable[T],
    predicate: Callable[[T], bool],
) -> List[Tuple[int, T]]:
    """Return (index, item) for all items matching the predicate."""
    return [(i, item) for i, item in enumerate(items) if predicate(item)]


def find_exactly_one(
    items: Iterable[T],
    predicate: Callable[[T], bool],
    what: str = "item",
) -> Tuple[int, T]:
    """Return the single (index, item) matching the predicate.

    Raises:
        NoMatchError: If no item matches
        AmbiguousMatchError: If more than one item matches
    """
    hits = find_all(items, predicate)
    if not hits:
        raise NoMatchError(f"No {what} matched; exactly one match is required.")
    if len(hits) > 1:
        raise AmbiguousMatchError(
            f"{len(hits)} matches for {what}; exactly one match is required."
        )
    return hits[0]


def find_at_most_one(
    items: Iterable[T],
    predicate: Callable[[T], bool],
    what: str = "item",
) -> Optional[Tuple[int, T]]:
    """Return the matching (index, item), or None if nothing matches.

    Raises:
        AmbiguousMatchError: If more than one item matches
    """
    hits = find_all(items, predicate)
    if len(hits) > 1:
        raise AmbiguousMatchError(
            f"{len(hits)} matches for {what}; at most one match is accepted."
        )
    return hits[0] if hits else None
