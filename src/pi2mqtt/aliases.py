"""Symmetric topic alias table.

An alias maps a canonical device identifier such as ``gpio/17`` or
``w1/28-0000002981762`` to a user-chosen topic segment and back.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pi2mqtt.exceptions import AliasSpecError


def parse_alias_spec(spec: str) -> tuple[str, str]:
    """Split ``left:right`` into its two segments.

    Raises :class:`AliasSpecError` unless there are exactly two non-empty
    segments.
    """
    parts = spec.split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise AliasSpecError(f"alias must be of the form 'left:right', got {spec!r}", spec=spec)
    return parts[0], parts[1]


class AliasTable:
    """Read-only bidirectional mapping between identifiers and topic segments."""

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        lookup: dict[str, str] = {}
        for left, right in pairs:
            # Overlapping entries are not rejected; the later pair wins.
            lookup[left] = right
            lookup[right] = left
        self._lookup: Mapping[str, str] = lookup

    @classmethod
    def from_specs(cls, specs: Iterable[str]) -> AliasTable:
        return cls(parse_alias_spec(spec) for spec in specs)

    def resolve(self, name: str) -> str:
        """Return the counterpart of *name*, or *name* unchanged."""
        return self._lookup.get(name, name)

    def __len__(self) -> int:
        return len(self._lookup)

    def __contains__(self, name: object) -> bool:
        return name in self._lookup
