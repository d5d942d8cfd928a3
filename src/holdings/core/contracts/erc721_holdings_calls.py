"""
Call-forwarding extension for ERC721 Holdings tokens.

``approve_and_call`` and ``transfer_from_and_call`` perform the ownership
change first and then send a message call, carrying the attached value and
an opaque payload, to the recipient:

- approve_and_call: the approved spender
- transfer_from_and_call: the identity controlling the destination holder

Both run inside one world-state transaction. If the forwarded call fails the
approval or transfer, the value movement and every effect of the recipient
(including reentrant calls back into this contract) are undone together and
ExternalCallFailedError is raised.

While a forwarded call is in flight its token is locked against mutating
reentry; reads and operations on other tokens stay available.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .. import holdings_metrics
from ..vm.contract import external, normalize_address, payable
from ..vm.exceptions import ExternalCallFailedError, VMExecutionError
from ..vm.state import WorldState
from .erc721_holdings import ERC721HoldingsBasicToken

logger = logging.getLogger(__name__)


@dataclass
class ERC721HoldingsToken(ERC721HoldingsBasicToken):
    """Holdings token with approve/transfer variants that forward a call."""

    @external
    @payable
    def approve_and_call(
        self,
        caller: str,
        spender: str,
        token_id: int,
        payload: bytes = b"",
        value: int = 0,
    ) -> bool:
        """
        Approve ``spender`` for ``token_id`` and call it with ``payload``.

        Args:
            caller: Message sender (controller or operator)
            spender: Address to approve and to call
            token_id: Token ID
            payload: Calldata forwarded to the spender
            value: Value attached to this message, forwarded to the spender

        Raises:
            ExternalCallFailedError: Spender is this contract, or the call failed
        """
        spender_norm = normalize_address(spender)
        if spender_norm == self.address:
            raise ExternalCallFailedError(
                "ERC721Holdings: cannot forward a call to the token contract itself"
            )

        with self._require_world().atomic():
            self.approve(caller, spender_norm, token_id)
            self._forward_call("approve_and_call", spender_norm, token_id, payload, value)
        return True

    @external
    @payable
    def transfer_from_and_call(
        self,
        caller: str,
        from_id: int,
        from_origin: str,
        dest_id: int,
        dest_origin: str,
        token_id: int,
        payload: bytes = b"",
        value: int = 0,
    ) -> bool:
        """
        Transfer ``token_id`` and call the controller of the new holder.

        Token, holder and authorization checks run first, then the recipient
        is resolved before anything changes. A destination controlled by this
        contract is rejected up front.

        Raises:
            ExternalCallFailedError: Recipient is this contract, or the call failed
        """
        world = self._require_world()
        self._check_transfer(caller, from_id, from_origin, token_id)
        dest = self._holder_key(dest_id, dest_origin)

        recipient = None
        if not dest.is_null():
            recipient = self._resolve_controller(dest)
            if recipient == self.address:
                raise ExternalCallFailedError(
                    "ERC721Holdings: destination holder is controlled by the token contract",
                    details={"destination": str(dest)},
                )

        with world.atomic():
            self._transfer(caller, from_id, from_origin, dest_id, dest_origin, token_id)
            self._forward_call("transfer_from_and_call", recipient, token_id, payload, value)
        return True

    def _forward_call(
        self,
        operation: str,
        recipient: str,
        token_id: int,
        payload: bytes,
        value: int,
    ) -> None:
        """Call ``recipient``; any failure becomes ExternalCallFailedError."""
        world = self._require_world()
        payload = bytes(payload or b"")

        self._in_flight.add(token_id)
        try:
            result = world.call(self.address, recipient, payload, value)
        except VMExecutionError as e:
            self._record_forward_failure(operation, recipient, token_id, str(e))
            raise ExternalCallFailedError(
                f"ERC721Holdings: forwarded call to {recipient[:10]} failed: {e}",
                details={
                    "operation": operation,
                    "recipient": recipient,
                    "token_id": token_id,
                    "value": value,
                    "reason": str(e),
                },
            ) from e
        finally:
            self._in_flight.discard(token_id)

        if result is False:
            self._record_forward_failure(operation, recipient, token_id, "recipient returned False")
            raise ExternalCallFailedError(
                f"ERC721Holdings: recipient {recipient[:10]} rejected the call",
                details={"operation": operation, "recipient": recipient, "token_id": token_id},
            )

        holdings_metrics.record_forwarded_call(self.symbol, operation, success=True)
        logger.debug(
            "ERC721Holdings forwarded call",
            extra={
                "event": f"erc721_holdings.{operation}",
                "collection": self.symbol,
                "token_id": token_id,
                "recipient": recipient[:10],
                "value": value,
            },
        )

    def _record_forward_failure(
        self, operation: str, recipient: str, token_id: int, reason: str
    ) -> None:
        holdings_metrics.record_forwarded_call(self.symbol, operation, success=False)
        logger.warning(
            "ERC721Holdings forwarded call failed",
            extra={
                "event": f"erc721_holdings.{operation}_failed",
                "collection": self.symbol,
                "token_id": token_id,
                "recipient": recipient[:10],
                "error": reason,
            },
        )

    def _require_world(self) -> WorldState:
        if self.world is None:
            raise VMExecutionError("ERC721Holdings: contract is not deployed in a world state")
        return self.world
