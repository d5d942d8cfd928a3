"""
ERC721 Non-Fungible Token collection keyed by plain addresses.

This is the basic, non-composite registry. In the holdings system it plays
the role of a *holder origin*: its token ids are the holder ids of a holdings
collection, and ``owner_of`` tells the holdings engine which identity
controls a holder.

Security features:
- Owner verification on transfers
- Approval validation
- Null address checks
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..vm.contract import NULL_ADDRESS, Contract, external, normalize_address, view
from ..vm.exceptions import (
    InvalidHolderError,
    OwnerMismatchError,
    SelfApprovalError,
    TokenAlreadyExistsError,
    TokenNotFoundError,
    UnauthorizedError,
)
from .events import Approval, ApprovalForAll, Transfer

logger = logging.getLogger(__name__)


@dataclass
class ERC721Token(Contract):
    """
    Basic ERC721 collection.

    Minting is restricted to the collection owner; transfers, approvals and
    burns follow the usual owner / approved / operator rules.
    """

    name: str = ""
    symbol: str = ""

    # Admin allowed to mint
    owner: str = ""

    owners: dict[int, str] = field(default_factory=dict)  # tokenId -> owner
    balances: dict[str, int] = field(default_factory=dict)  # owner -> count
    token_approvals: dict[int, str] = field(default_factory=dict)  # tokenId -> approved
    operator_approvals: dict[str, dict[str, bool]] = field(
        default_factory=dict
    )  # owner -> operator -> approved

    def __post_init__(self) -> None:
        super().__post_init__()
        self.owner = normalize_address(self.owner) if self.owner else ""

    # ==================== View Functions ====================

    @view
    def balance_of(self, owner: str) -> int:
        owner = normalize_address(owner)
        if owner == NULL_ADDRESS:
            raise InvalidHolderError("ERC721: balance query for the null address")
        return self.balances.get(owner, 0)

    @view
    def owner_of(self, token_id: int) -> str:
        """
        Get the owner of an NFT.

        Raises:
            TokenNotFoundError: If token doesn't exist
        """
        owner = self.owners.get(token_id)
        if not owner:
            raise TokenNotFoundError(
                f"ERC721: token {token_id} does not exist",
                details={"token_id": token_id},
            )
        return owner

    @view
    def exists(self, token_id: int) -> bool:
        return token_id in self.owners

    @view
    def total_supply(self) -> int:
        return len(self.owners)

    @view
    def get_approved(self, token_id: int) -> str:
        self._require_minted(token_id)
        return self.token_approvals.get(token_id, NULL_ADDRESS)

    @view
    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        owner_norm = normalize_address(owner)
        operator_norm = normalize_address(operator)
        return self.operator_approvals.get(owner_norm, {}).get(operator_norm, False)

    # ==================== State-Changing Functions ====================

    @external
    def approve(self, caller: str, to: str | None, token_id: int) -> bool:
        """
        Approve an address to transfer a specific token.

        Args:
            caller: Message sender
            to: Address to approve (None or the null address clears)
            token_id: Token ID
        """
        owner = self.owner_of(token_id)
        caller_norm = normalize_address(caller)
        to_norm = normalize_address(to)

        if to_norm == owner:
            raise SelfApprovalError("ERC721: approval to current owner")

        if caller_norm != owner and not self.is_approved_for_all(owner, caller_norm):
            raise UnauthorizedError("ERC721: approve caller is not owner nor approved for all")

        if to_norm == NULL_ADDRESS:
            self.token_approvals.pop(token_id, None)
        else:
            self.token_approvals[token_id] = to_norm
        self.emit(Approval(owner=owner, approved=to_norm, token_id=token_id))
        return True

    @external
    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        caller_norm = normalize_address(caller)
        operator_norm = normalize_address(operator)

        if operator_norm == caller_norm:
            raise SelfApprovalError("ERC721: approve to caller")

        self.operator_approvals.setdefault(caller_norm, {})[operator_norm] = bool(approved)
        self.emit(ApprovalForAll(owner=caller_norm, operator=operator_norm, approved=bool(approved)))
        return True

    @external
    def transfer_from(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> bool:
        from_norm = normalize_address(from_addr)
        to_norm = normalize_address(to_addr)
        caller_norm = normalize_address(caller)

        owner = self.owner_of(token_id)
        if owner != from_norm:
            raise OwnerMismatchError("ERC721: transfer from incorrect owner")

        if not self._is_approved_or_owner(caller_norm, token_id):
            raise UnauthorizedError("ERC721: caller is not owner nor approved")

        if to_norm == NULL_ADDRESS:
            raise InvalidHolderError("ERC721: transfer to the null address")

        self._clear_approval(owner, token_id)

        self.balances[from_norm] -= 1
        if self.balances[from_norm] == 0:
            del self.balances[from_norm]
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1
        self.owners[token_id] = to_norm

        self.emit(Transfer(from_address=from_norm, to_address=to_norm, token_id=token_id))

        logger.debug(
            "ERC721 transfer",
            extra={
                "event": "erc721.transfer",
                "collection": self.symbol,
                "token_id": token_id,
                "from": from_norm[:10],
                "to": to_norm[:10],
            },
        )
        return True

    # ==================== Minting & Burning ====================

    @external
    def mint(self, minter: str, to: str, token_id: int) -> int:
        """
        Mint a new NFT.

        Args:
            minter: Address calling mint (must be the collection owner)
            to: Recipient address
            token_id: Token ID to create

        Returns:
            Minted token ID
        """
        self._require_owner(minter)

        to_norm = normalize_address(to)
        if to_norm == NULL_ADDRESS:
            raise InvalidHolderError("ERC721: mint to the null address")
        if token_id in self.owners:
            raise TokenAlreadyExistsError(f"ERC721: token {token_id} already minted")

        self.owners[token_id] = to_norm
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1

        self.emit(Transfer(from_address=NULL_ADDRESS, to_address=to_norm, token_id=token_id))

        logger.info(
            "ERC721 mint",
            extra={
                "event": "erc721.mint",
                "collection": self.symbol,
                "token_id": token_id,
                "to": to_norm[:10],
            },
        )
        return token_id

    @external
    def burn(self, caller: str, token_id: int) -> bool:
        owner = self.owner_of(token_id)
        if not self._is_approved_or_owner(normalize_address(caller), token_id):
            raise UnauthorizedError("ERC721: caller is not owner nor approved")

        self._clear_approval(owner, token_id)

        self.balances[owner] -= 1
        if self.balances[owner] == 0:
            del self.balances[owner]
        del self.owners[token_id]

        self.emit(Transfer(from_address=owner, to_address=NULL_ADDRESS, token_id=token_id))

        logger.info(
            "ERC721 burn",
            extra={"event": "erc721.burn", "collection": self.symbol, "token_id": token_id},
        )
        return True

    # ==================== Helpers ====================

    def _require_minted(self, token_id: int) -> None:
        if token_id not in self.owners:
            raise TokenNotFoundError(f"ERC721: token {token_id} does not exist")

    def _require_owner(self, caller: str) -> None:
        if not self.owner or normalize_address(caller) != self.owner:
            raise UnauthorizedError("ERC721: caller is not the collection owner")

    def _is_approved_or_owner(self, caller: str, token_id: int) -> bool:
        owner = self.owner_of(token_id)
        return (
            caller == owner
            or self.token_approvals.get(token_id) == caller
            or self.is_approved_for_all(owner, caller)
        )

    def _clear_approval(self, owner: str, token_id: int) -> None:
        if self.token_approvals.pop(token_id, None) is not None:
            self.emit(Approval(owner=owner, approved=NULL_ADDRESS, token_id=token_id))
