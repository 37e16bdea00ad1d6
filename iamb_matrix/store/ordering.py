"""
Sort keys shared by the store's ordered indices.

Every key ends in a unique component (insertion sequence or user id) so two
distinct records never compare equal and iteration order is deterministic.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from .message import Message
    from .users import User

# Sorts after any character a display name can contain
_PREFIX_CEILING = "\U0010ffff"


class TimelineEntry(NamedTuple):
    """A message as placed in a room's index."""

    created: int | float
    sequence: int
    message: Message


def by_creation(entry: TimelineEntry) -> tuple[int | float, int]:
    """Creation time, then insertion order for equal timestamps."""
    return (entry.created, entry.sequence)


def name_key(name: str) -> str:
    return name.casefold()


def by_display_name(user: User) -> tuple[str, str]:
    """Case-insensitive display name, then id to separate namesakes."""
    return (name_key(user.display_name), user.user_id)


def prefix_bounds(prefix: str) -> tuple[tuple[str, str], tuple[str, str]]:
    """Inclusive key range covering every display name starting with ``prefix``."""
    folded = name_key(prefix)
    return (folded, ""), (folded + _PREFIX_CEILING, _PREFIX_CEILING)
