"""
ERC721 Holdings token: NFTs owned by entries of another collection.

Ownership is keyed by a composite holder, ``HolderKey(holder id, holder
origin)``, instead of an address. The holder origin is a collection (for
example an ``ERC721Token`` of avatars) whose ``owner_of`` names the identity
that controls each holder. That controlling identity is the one allowed to
approve, transfer and burn the tokens its holder owns.

This module provides:
- Ownership ledger (holder_of, balance_of, exists, mint, burn)
- Authorization layer (per-token approval, per-identity operators)
- Transfer engine (transfer_from with approval clearing)

Events are emitted in a fixed order: when a holder change clears a live
approval, the Approval event always precedes the Transfer event.

Operator approvals are keyed by plain identities, not by holders: only
identities can send messages, so "may act for everything X controls" is a
statement about the identity X.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .. import config, holdings_metrics
from ..vm.contract import NULL_ADDRESS, Contract, external, normalize_address, view
from ..vm.exceptions import (
    HoldingsError,
    InvalidHolderError,
    OwnerMismatchError,
    ReentrantCallError,
    SelfApprovalError,
    TokenAlreadyExistsError,
    TokenNotFoundError,
    UnauthorizedError,
    VMExecutionError,
)
from .events import Approval, ApprovalForAll, HoldingsTransfer
from .holder_key import NULL_HOLDER, HolderKey, HolderOrigin

logger = logging.getLogger(__name__)


@dataclass
class ERC721HoldingsBasicToken(Contract):
    """
    Holdings ledger, authorization layer and transfer engine.

    Token state:
    - holders: tokenId -> HolderKey
    - balances: HolderKey -> count (no zero entries)
    - token_approvals: tokenId -> approved spender
    - operator_approvals: owner identity -> operator -> approved
    - retired_tokens: burned ids that may not be minted again
    """

    name: str = ""
    symbol: str = ""

    # Identity allowed to mint; empty means minting is open
    minter: str = ""

    holders: dict[int, HolderKey] = field(default_factory=dict)
    balances: dict[HolderKey, int] = field(default_factory=dict)
    token_approvals: dict[int, str] = field(default_factory=dict)
    operator_approvals: dict[str, dict[str, bool]] = field(default_factory=dict)
    retired_tokens: set[int] = field(default_factory=set)

    allow_remint: bool = field(default_factory=lambda: config.ALLOW_REMINT)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.minter = normalize_address(self.minter) if self.minter else ""
        # Tokens whose forwarded call is in flight; not part of storage
        self._in_flight: set[int] = set()
        # Tokens whose controller is being resolved (cycle guard)
        self._resolving: set[int] = set()

    # ==================== Ownership Ledger ====================

    @view
    def holder_of(self, token_id: int) -> HolderKey:
        """
        Get the holder of a token.

        Raises:
            TokenNotFoundError: If the token was never minted or was burned
        """
        holder = self.holders.get(token_id)
        if holder is None:
            raise TokenNotFoundError(
                f"ERC721Holdings: token {token_id} does not exist",
                details={"token_id": token_id},
            )
        return holder

    @view
    def balance_of(self, holder_id: int, holder_origin: str) -> int:
        """
        Number of tokens held by ``(holder_id, holder_origin)``.

        Raises:
            InvalidHolderError: If the origin is the null address
        """
        holder = self._holder_key(holder_id, holder_origin)
        if holder.is_null():
            raise InvalidHolderError("ERC721Holdings: balance query for the null origin")
        return self.balances.get(holder, 0)

    @view
    def exists(self, token_id: int) -> bool:
        return token_id in self.holders

    @view
    def total_supply(self) -> int:
        return len(self.holders)

    @external
    def mint(self, caller: str, dest_id: int, dest_origin: str, token_id: int) -> int:
        """
        Mint ``token_id`` to the holder ``(dest_id, dest_origin)``.

        The destination must be an existing entry of a registered holder-origin
        collection. When the collection has a ``minter``, ``caller`` must be it.

        Args:
            caller: Identity requesting the mint
            dest_id: Holder id in the origin collection
            dest_origin: Address of the origin collection
            token_id: Token ID to create

        Returns:
            Minted token ID

        Raises:
            UnauthorizedError: A minter is configured and caller is not it
            InvalidHolderError: Null or unresolvable destination
            TokenAlreadyExistsError: Token id live, or retired and re-mint disabled
        """
        if self.minter and normalize_address(caller) != self.minter:
            raise UnauthorizedError("ERC721Holdings: caller is not the minter")
        self._require_token_id(token_id)

        dest = self._holder_key(dest_id, dest_origin)
        if dest.is_null():
            raise InvalidHolderError("ERC721Holdings: mint to the null origin")
        if token_id in self.holders:
            raise TokenAlreadyExistsError(
                f"ERC721Holdings: token {token_id} already minted",
                details={"token_id": token_id},
            )
        if token_id in self.retired_tokens and not self.allow_remint:
            raise TokenAlreadyExistsError(
                f"ERC721Holdings: token {token_id} was burned and is retired",
                details={"token_id": token_id, "retired": True},
            )
        # Existence check against the holder origin
        self._resolve_controller(dest)

        self.holders[token_id] = dest
        self.balances[dest] = self.balances.get(dest, 0) + 1
        self.retired_tokens.discard(token_id)

        self.emit(HoldingsTransfer.between(NULL_HOLDER, dest, token_id))
        holdings_metrics.record_mint(self.symbol)

        logger.info(
            "ERC721Holdings mint",
            extra={
                "event": "erc721_holdings.mint",
                "collection": self.symbol,
                "token_id": token_id,
                "holder_id": dest.id,
                "holder_origin": dest.origin[:10],
            },
        )
        return token_id

    @external
    def burn(self, caller: str, token_id: int) -> bool:
        """
        Burn a token. The caller must be authorized for it.

        A live approval is cleared first, so its Approval event precedes the
        Transfer to the null holder.
        """
        holder = self.holder_of(token_id)
        if not self.is_authorized(caller, token_id):
            raise UnauthorizedError(
                "ERC721Holdings: caller is not authorized to burn",
                details={"token_id": token_id, "caller": normalize_address(caller)},
            )
        self._require_not_in_flight(token_id)

        self._clear_approval(token_id)
        self._decrement_balance(holder)
        del self.holders[token_id]
        self.retired_tokens.add(token_id)

        self.emit(HoldingsTransfer.between(holder, NULL_HOLDER, token_id))
        holdings_metrics.record_burn(self.symbol)

        logger.info(
            "ERC721Holdings burn",
            extra={
                "event": "erc721_holdings.burn",
                "collection": self.symbol,
                "token_id": token_id,
            },
        )
        return True

    # ==================== Authorization Layer ====================

    @view
    def controller_of(self, token_id: int) -> str:
        """
        Identity that controls the holder of ``token_id``.

        Raises:
            TokenNotFoundError: If the token does not exist
            InvalidHolderError: If the holder can no longer be resolved
        """
        if token_id in self._resolving:
            raise InvalidHolderError(
                f"ERC721Holdings: holder cycle through token {token_id}",
                details={"token_id": token_id},
            )
        holder = self.holder_of(token_id)
        self._resolving.add(token_id)
        try:
            return self._resolve_controller(holder)
        finally:
            self._resolving.discard(token_id)

    # A holdings collection can itself be a holder origin
    owner_of = controller_of

    @view
    def get_approved(self, token_id: int) -> str:
        """Approved spender for a token, or the null address (also for burned or unknown ids)."""
        return self.token_approvals.get(token_id, NULL_ADDRESS)

    @view
    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        owner_norm = normalize_address(owner)
        operator_norm = normalize_address(operator)
        return self.operator_approvals.get(owner_norm, {}).get(operator_norm, False)

    @view
    def is_authorized(self, acting: str, token_id: int) -> bool:
        """True if ``acting`` controls the holder, is the approved spender, or is an operator of the controller."""
        self.holder_of(token_id)
        acting = normalize_address(acting)
        if acting == NULL_ADDRESS:
            return False
        if self.token_approvals.get(token_id) == acting:
            return True
        controller = self._controller_or_none(token_id)
        if controller is None:
            return False
        return acting == controller or self.is_approved_for_all(controller, acting)

    @external
    def approve(self, caller: str, spender: str | None, token_id: int) -> bool:
        """
        Approve ``spender`` for a single token, or clear with None / null address.

        Only the controller of the holder or one of its operators may approve;
        an approved spender cannot re-approve. An Approval event is emitted
        only when the spender actually changes.
        """
        self.holder_of(token_id)
        caller_norm = normalize_address(caller)
        spender_norm = normalize_address(spender)

        controller = self._controller_or_none(token_id)
        if controller is None or not (
            caller_norm == controller or self.is_approved_for_all(controller, caller_norm)
        ):
            raise UnauthorizedError(
                "ERC721Holdings: approve caller is not controller nor operator",
                details={"token_id": token_id, "caller": caller_norm},
            )
        if spender_norm == controller:
            raise SelfApprovalError("ERC721Holdings: approval to current controller")
        self._require_not_in_flight(token_id)

        if self.token_approvals.get(token_id, NULL_ADDRESS) == spender_norm:
            return True

        if spender_norm == NULL_ADDRESS:
            del self.token_approvals[token_id]
        else:
            self.token_approvals[token_id] = spender_norm

        self.emit(Approval(owner=controller, approved=spender_norm, token_id=token_id))
        holdings_metrics.record_approval(self.symbol, "token")

        logger.debug(
            "ERC721Holdings approval",
            extra={
                "event": "erc721_holdings.approve",
                "collection": self.symbol,
                "token_id": token_id,
                "approved": spender_norm[:10],
            },
        )
        return True

    @external
    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        """Set or revoke an operator for every token ``caller`` controls. Always emits."""
        caller_norm = normalize_address(caller)
        operator_norm = normalize_address(operator)

        if operator_norm == caller_norm:
            raise SelfApprovalError("ERC721Holdings: approve to caller")

        self.operator_approvals.setdefault(caller_norm, {})[operator_norm] = bool(approved)
        self.emit(ApprovalForAll(owner=caller_norm, operator=operator_norm, approved=bool(approved)))
        holdings_metrics.record_approval(self.symbol, "operator")
        return True

    # ==================== Transfer Engine ====================

    @external
    def transfer_from(
        self,
        caller: str,
        from_id: int,
        from_origin: str,
        dest_id: int,
        dest_origin: str,
        token_id: int,
    ) -> bool:
        """
        Move a token from its current holder to ``(dest_id, dest_origin)``.

        Args:
            caller: Message sender
            from_id: Expected current holder id
            from_origin: Expected current holder origin
            dest_id: New holder id
            dest_origin: New holder origin
            token_id: Token ID
        """
        self._transfer(caller, from_id, from_origin, dest_id, dest_origin, token_id)
        return True

    def _check_transfer(
        self, caller: str, from_id: int, from_origin: str, token_id: int
    ) -> HolderKey:
        """Existence, expected holder and authorization checks, in that order."""
        holder = self.holder_of(token_id)

        if holder != self._holder_key(from_id, from_origin, error=OwnerMismatchError):
            raise OwnerMismatchError(
                "ERC721Holdings: transfer from incorrect holder",
                details={"token_id": token_id, "holder": str(holder)},
            )

        if not self.is_authorized(caller, token_id):
            raise UnauthorizedError(
                "ERC721Holdings: caller is not authorized to transfer",
                details={"token_id": token_id, "caller": normalize_address(caller)},
            )
        return holder

    def _transfer(
        self,
        caller: str,
        from_id: int,
        from_origin: str,
        dest_id: int,
        dest_origin: str,
        token_id: int,
    ) -> HolderKey:
        holder = self._check_transfer(caller, from_id, from_origin, token_id)

        dest = self._holder_key(dest_id, dest_origin)
        if dest.is_null():
            raise InvalidHolderError("ERC721Holdings: transfer to the null origin")
        self._require_acyclic(token_id, dest)
        self._require_not_in_flight(token_id)

        self._clear_approval(token_id)

        if dest != holder:
            self._decrement_balance(holder)
            self.balances[dest] = self.balances.get(dest, 0) + 1
            self.holders[token_id] = dest

        self.emit(HoldingsTransfer.between(holder, dest, token_id))
        holdings_metrics.record_transfer(self.symbol, self_transfer=dest == holder)

        logger.debug(
            "ERC721Holdings transfer",
            extra={
                "event": "erc721_holdings.transfer",
                "collection": self.symbol,
                "token_id": token_id,
                "from": str(holder),
                "to": str(dest),
            },
        )
        return dest

    # ==================== Invariants ====================

    def verify_invariants(self) -> list[str]:
        """Return a description of every violated ledger invariant (empty when consistent)."""
        violations = []
        counted: dict[HolderKey, int] = {}
        for token_id, holder in self.holders.items():
            if holder.is_null():
                violations.append(f"token {token_id} held by the null origin")
            if token_id in self.retired_tokens:
                violations.append(f"token {token_id} is live and retired")
            counted[holder] = counted.get(holder, 0) + 1
        if counted != self.balances:
            violations.append("balances do not match holder counts")
        for token_id in self.token_approvals:
            if token_id not in self.holders:
                violations.append(f"approval kept for missing token {token_id}")
        return violations

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Serialize contract state to a JSON-safe dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "address": self.address,
            "minter": self.minter,
            "holders": {str(t): [h.id, h.origin] for t, h in self.holders.items()},
            "balances": [[h.id, h.origin, n] for h, n in self.balances.items()],
            "token_approvals": {str(t): a for t, a in self.token_approvals.items()},
            "operator_approvals": {
                k: dict(v) for k, v in self.operator_approvals.items()
            },
            "retired_tokens": sorted(self.retired_tokens),
            "allow_remint": self.allow_remint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], world: Any = None) -> "ERC721HoldingsBasicToken":
        """Deserialize contract state; deploys into ``world`` when given."""
        token = cls(
            world=world,
            address=data.get("address", ""),
            name=data.get("name", ""),
            symbol=data.get("symbol", ""),
            minter=data.get("minter", ""),
            allow_remint=data.get("allow_remint", False),
        )
        token.holders = {
            int(t): HolderKey(h[0], h[1]) for t, h in data.get("holders", {}).items()
        }
        token.balances = {
            HolderKey(h_id, origin): n for h_id, origin, n in data.get("balances", [])
        }
        token.token_approvals = {
            int(t): a for t, a in data.get("token_approvals", {}).items()
        }
        token.operator_approvals = {
            k: dict(v) for k, v in data.get("operator_approvals", {}).items()
        }
        token.retired_tokens = set(data.get("retired_tokens", []))
        return token

    # ==================== Helpers ====================

    @staticmethod
    def _holder_key(
        holder_id: int, holder_origin: str, error: type[HoldingsError] = InvalidHolderError
    ) -> HolderKey:
        try:
            return HolderKey(holder_id, holder_origin)
        except (ValueError, TypeError, AttributeError) as e:
            raise error(f"ERC721Holdings: malformed holder ({holder_id!r}, {holder_origin!r})") from e

    @staticmethod
    def _require_token_id(token_id: int) -> None:
        if not isinstance(token_id, int) or isinstance(token_id, bool) or token_id < 0:
            raise HoldingsError(f"ERC721Holdings: invalid token id {token_id!r}")

    def _resolve_controller(self, holder: HolderKey) -> str:
        """Ask the holder's origin collection which identity controls it."""
        origin = self.world.get_contract(holder.origin) if self.world is not None else None
        if origin is None or not isinstance(origin, HolderOrigin):
            raise InvalidHolderError(
                f"ERC721Holdings: {holder.origin[:10]} is not a holder-origin collection",
                details={"holder": str(holder)},
            )
        try:
            controller = origin.owner_of(holder.id)
        except VMExecutionError as e:
            raise InvalidHolderError(
                f"ERC721Holdings: holder {holder} does not exist in its origin",
                details={"holder": str(holder), "reason": str(e)},
            ) from e
        return normalize_address(controller)

    def _controller_or_none(self, token_id: int) -> str | None:
        try:
            return self.controller_of(token_id)
        except InvalidHolderError:
            return None

    def _clear_approval(self, token_id: int) -> None:
        """Drop a live approval, emitting the clearing Approval event."""
        if token_id not in self.token_approvals:
            return
        del self.token_approvals[token_id]
        owner = self._controller_or_none(token_id) or NULL_ADDRESS
        self.emit(Approval(owner=owner, approved=NULL_ADDRESS, token_id=token_id))
        holdings_metrics.record_approval(self.symbol, "token")

    def _decrement_balance(self, holder: HolderKey) -> None:
        remaining = self.balances[holder] - 1
        if remaining:
            self.balances[holder] = remaining
        else:
            del self.balances[holder]

    def _require_acyclic(self, token_id: int, dest: HolderKey) -> None:
        """Reject a destination whose chain of holders in this collection leads back to ``token_id``."""
        current: HolderKey | None = dest
        while current is not None and current.origin == self.address:
            if current.id == token_id:
                raise InvalidHolderError(
                    f"ERC721Holdings: token {token_id} cannot hold itself",
                    details={"token_id": token_id, "destination": str(dest)},
                )
            current = self.holders.get(current.id)

    def _require_not_in_flight(self, token_id: int) -> None:
        if token_id in self._in_flight:
            raise ReentrantCallError(
                f"ERC721Holdings: token {token_id} has a forwarded call in flight",
                details={"token_id": token_id},
            )
