"""Ordered multi-valued header container with canonical keys."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

__all__ = ["Headers", "canonical_header_key"]

_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def canonical_header_key(key: str) -> str:
    """Return the canonical form of a header key (``content-type`` -> ``Content-Type``).

    Keys containing characters outside the HTTP token set are returned unchanged.
    """
    if not _TOKEN.match(key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


class Headers:
    """Header multimap preserving value order per key.

    Parameters
    ----------
    initial : Mapping[str, str | list[str]] | None, optional
        Seed values. Defaults to None.
    """

    def __init__(self, initial: Mapping[str, str | list[str]] | None = None) -> None:
        self._values: dict[str, list[str]] = {}
        for key, value in (initial or {}).items():
            for item in [value] if isinstance(value, str) else value:
                self.add(key, item)

    def add(self, key: str, value: str) -> None:
        """Append ``value`` under ``key``, keeping existing values."""
        self._values.setdefault(canonical_header_key(key), []).append(value)

    def set(self, key: str, value: str) -> None:
        """Replace every value under ``key`` with ``value``."""
        self._values[canonical_header_key(key)] = [value]

    def get(self, key: str) -> str | None:
        """Return the first value under ``key``, or None."""
        values = self._values.get(canonical_header_key(key))
        return values[0] if values else None

    def get_all(self, key: str) -> list[str]:
        """Return a copy of every value under ``key``."""
        return list(self._values.get(canonical_header_key(key), []))

    def delete(self, key: str) -> None:
        self._values.pop(canonical_header_key(key), None)

    def copy(self) -> Headers:
        """Return an independent copy; value lists are not shared."""
        clone = Headers()
        clone._values = {key: list(values) for key, values in self._values.items()}
        return clone

    def flatten(self) -> dict[str, str]:
        """Collapse to one value per key, joining repeats with ``", "``."""
        return {key: ", ".join(values) for key, values in self._values.items()}

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and canonical_header_key(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"Headers({self._values!r})"
