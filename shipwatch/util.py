"""Small collection helpers, random container names and version metadata."""

from __future__ import annotations

import random
import string
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional

VERSION = "v0.0.0-unknown"

_NAME_LETTERS = string.ascii_letters
_NAME_LENGTH = 32


def slice_equal(s1: Optional[Sequence[str]], s2: Optional[Sequence[str]]) -> bool:
    """Return True when both sequences hold the same items in the same order.

    ``None`` is treated as an empty sequence.
    """
    return list(s1 or ()) == list(s2 or ())


def slice_subtract(a1: Optional[Iterable[str]], a2: Optional[Iterable[str]]) -> list[str]:
    """Return the items of ``a1`` that do not occur in ``a2``, keeping their order."""
    excluded = set(a2 or ())
    return [item for item in (a1 or ()) if item not in excluded]


def string_map_subtract(
    m1: Optional[Mapping[str, str]], m2: Optional[Mapping[str, str]]
) -> dict[str, str]:
    """Return the entries of ``m1`` that are missing from ``m2`` or differ in value."""
    other = m2 or {}
    return {
        key: value
        for key, value in (m1 or {}).items()
        if key not in other or other[key] != value
    }


def struct_map_subtract(
    m1: Optional[Mapping[str, Any]], m2: Optional[Mapping[str, Any]]
) -> dict[str, Any]:
    """Return the entries of ``m1`` whose keys do not occur in ``m2``."""
    other = m2 or {}
    return {key: value for key, value in (m1 or {}).items() if key not in other}


def rand_name() -> str:
    """Generate a random 32-letter name usable as a container name."""
    return "".join(random.choice(_NAME_LETTERS) for _ in range(_NAME_LENGTH))


def user_agent(version: str = VERSION) -> str:
    """Return the HTTP client identifier for the given version."""
    return f"Watchtower/{version}"


USER_AGENT = user_agent()