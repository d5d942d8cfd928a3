"""Events emitted by ERC721 and holdings collections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from ..vm.contract import ContractEvent
from .holder_key import HolderKey


@dataclass(frozen=True)
class HoldingsTransfer(ContractEvent):
    """A token moved between composite holders (null holder for mint/burn)."""

    EVENT_NAME: ClassVar[str] = "Transfer"

    from_id: int
    from_origin: str
    to_id: int
    to_origin: str
    token_id: int

    @classmethod
    def between(cls, source: HolderKey, destination: HolderKey, token_id: int) -> "HoldingsTransfer":
        return cls(
            from_id=source.id,
            from_origin=source.origin,
            to_id=destination.id,
            to_origin=destination.origin,
            token_id=token_id,
        )

    @property
    def source(self) -> HolderKey:
        return HolderKey(self.from_id, self.from_origin)

    @property
    def destination(self) -> HolderKey:
        return HolderKey(self.to_id, self.to_origin)


@dataclass(frozen=True)
class Transfer(ContractEvent):
    """A token moved between plain addresses."""

    EVENT_NAME: ClassVar[str] = "Transfer"

    from_address: str
    to_address: str
    token_id: int


@dataclass(frozen=True)
class Approval(ContractEvent):
    EVENT_NAME: ClassVar[str] = "Approval"

    owner: str
    approved: str
    token_id: int


@dataclass(frozen=True)
class ApprovalForAll(ContractEvent):
    EVENT_NAME: ClassVar[str] = "ApprovalForAll"

    owner: str
    operator: str
    approved: bool
