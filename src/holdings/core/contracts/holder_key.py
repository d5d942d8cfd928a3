"""
Composite holder identity.

A token in a holdings collection is owned by an entry of another collection:
the pair (holder id, holder origin) where the origin is the address of the
collection that issues holder ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..vm.contract import NULL_ADDRESS, normalize_address


@dataclass(frozen=True)
class HolderKey:
    """Holder id scoped by the collection (origin) that issues it."""

    id: int
    origin: str

    def __post_init__(self) -> None:
        if not isinstance(self.id, int) or isinstance(self.id, bool) or self.id < 0:
            raise ValueError(f"Holder id must be a non-negative integer, got {self.id!r}")
        object.__setattr__(self, "origin", normalize_address(self.origin))

    def is_null(self) -> bool:
        """True for any key with the null origin; such a key names no holder."""
        return self.origin == NULL_ADDRESS

    def as_tuple(self) -> tuple[int, str]:
        return (self.id, self.origin)

    def __str__(self) -> str:
        return f"{self.id}@{self.origin}"


NULL_HOLDER = HolderKey(0, NULL_ADDRESS)


@runtime_checkable
class HolderOrigin(Protocol):
    """Collection whose entries can hold tokens."""

    address: str

    def owner_of(self, token_id: int) -> str:
        """Identity that controls the given entry; raises if it does not exist."""
        ...
