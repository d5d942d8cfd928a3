"""
Base class and method markers for contracts hosted by a WorldState.

Contracts are plain dataclasses holding their own storage. Methods become
reachable through message calls only when marked:

- ``@external``: state-changing, receives the message sender as ``caller``
- ``@view``: read-only, receives no sender
- ``@payable``: may be combined with ``@external``; receives ``value=``
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from .abi import decode_call
from .exceptions import NotPayableError, UnknownMethodError

if TYPE_CHECKING:
    from .state import WorldState

logger = logging.getLogger(__name__)

NULL_ADDRESS = "0x" + "0" * 40

# Identity and wiring fields, plus the append-only event history which is
# rolled back by truncation rather than copied
_UNTRACKED_FIELDS = frozenset({"world", "address", "events"})


def external(func: Callable) -> Callable:
    """Expose a state-changing method to message calls."""
    func._abi_kind = "external"
    return func


def view(func: Callable) -> Callable:
    """Expose a read-only method to message calls."""
    func._abi_kind = "view"
    return func


def payable(func: Callable) -> Callable:
    """Allow an external method to receive value."""
    func._abi_payable = True
    return func


def normalize_address(address: str | None) -> str:
    """Normalize an address to lowercase; None means the null address."""
    if address is None:
        return NULL_ADDRESS
    return address.lower()


@dataclass(frozen=True)
class ContractEvent:
    """Base class for events emitted by contracts."""

    EVENT_NAME: ClassVar[str] = "Event"

    @property
    def name(self) -> str:
        return self.EVENT_NAME


@dataclass
class Contract:
    """
    Base contract.

    When constructed with a ``world`` the contract deploys itself and gets an
    address; its storage then takes part in world snapshots so reverted calls
    unwind it.
    """

    world: "WorldState | None" = field(default=None, repr=False, compare=False)
    address: str = ""
    events: list[ContractEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address) if self.address else ""
        if self.world is not None:
            self.world.deploy(self)

    # ==================== Storage Snapshots ====================

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of every storage field plus the length of the event history."""
        return {
            "storage": {
                f.name: copy.deepcopy(getattr(self, f.name))
                for f in fields(self)
                if f.name not in _UNTRACKED_FIELDS
            },
            "event_count": len(self.events),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Restore storage from a snapshot created by :meth:`snapshot`."""
        for name, value in snapshot["storage"].items():
            setattr(self, name, copy.deepcopy(value))
        del self.events[snapshot["event_count"]:]

    # ==================== Events ====================

    def emit(self, event: ContractEvent) -> None:
        """Record an event locally and in the world log."""
        self.events.append(event)
        if self.world is not None:
            self.world.log(self.address, event)

    # ==================== Message Dispatch ====================

    def dispatch(self, sender: str, data: bytes, value: int = 0) -> Any:
        """
        Route an incoming message call to the method named in ``data``.

        Empty calldata goes to a ``receive`` method when one is exposed.
        """
        if not data:
            handler = getattr(self, "receive", None)
            if handler is None or getattr(handler, "_abi_kind", None) != "external":
                if value:
                    raise NotPayableError(f"Contract {self.address[:10]} cannot receive value")
                return None
            args: list[Any] = []
            method = "receive"
        else:
            method, args = decode_call(data)
            if method.startswith("_"):
                raise UnknownMethodError(f"Method {method} is not external")
            handler = getattr(self, method, None)

        kind = getattr(handler, "_abi_kind", None)
        if handler is None or kind is None:
            raise UnknownMethodError(
                f"Contract {self.address[:10]} has no external method {method}",
                details={"method": method},
            )

        is_payable = getattr(handler, "_abi_payable", False)
        if value and not is_payable:
            raise NotPayableError(
                f"Method {method} is not payable",
                details={"method": method, "value": value},
            )

        logger.debug(
            "Dispatching message call",
            extra={
                "event": "contract.dispatch",
                "contract": self.address[:10],
                "method": method,
                "sender": sender[:10],
                "value": value,
            },
        )

        if kind == "view":
            return handler(*args)
        if is_payable:
            return handler(sender, *args, value=value)
        return handler(sender, *args)
