"""
World state for contract execution.

Holds native value balances, the contract registry and the ordered event log,
and runs message calls between accounts and contracts. Every message call is
transactional: a snapshot of balances, contract storage and the log is taken
before the call and restored exactly if the call (or anything it calls,
including reentrant calls) reverts.
"""

from __future__ import annotations

import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from .. import config
from .contract import NULL_ADDRESS, Contract, ContractEvent, normalize_address
from .exceptions import (
    CallDepthExceededError,
    InsufficientFundsError,
    VMExecutionError,
)

logger = logging.getLogger(__name__)


@dataclass
class LogEntry:
    """An event together with the address of the contract that emitted it."""

    address: str
    event: ContractEvent


@dataclass
class CallResult:
    """Result of a top-level transaction."""

    success: bool
    return_value: Any = None
    logs: list[LogEntry] = field(default_factory=list)
    error: str = ""
    error_type: str = ""


class WorldState:
    """
    Accounts, contracts and the event log of one execution environment.

    Execution is single-threaded: a transaction runs to completion, including
    any nested calls, before the next one starts.
    """

    def __init__(self, max_call_depth: int | None = None) -> None:
        self.max_call_depth = max_call_depth or config.MAX_CALL_DEPTH
        self.balances: dict[str, int] = {}
        self.contracts: dict[str, Contract] = {}
        self.logs: list[LogEntry] = []
        self._deploy_nonce = 0
        self._depth = 0

    # ==================== Accounts & Contracts ====================

    def deploy(self, contract: Contract) -> str:
        """
        Register a contract, assigning a deterministic address if it has none.

        Returns:
            The contract address
        """
        if not contract.address:
            self._deploy_nonce += 1
            seed = f"{type(contract).__name__}:{self._deploy_nonce}".encode()
            contract.address = f"0x{hashlib.sha3_256(seed).digest()[-20:].hex()}"

        address = contract.address
        if address == NULL_ADDRESS:
            raise VMExecutionError("Cannot deploy a contract at the null address")
        existing = self.contracts.get(address)
        if existing is not None and existing is not contract:
            raise VMExecutionError(f"Address {address} already holds a contract")

        contract.world = self
        self.contracts[address] = contract

        logger.info(
            "Contract deployed",
            extra={
                "event": "world.deploy",
                "contract_type": type(contract).__name__,
                "address": address[:10],
            },
        )
        return address

    def get_contract(self, address: str) -> Contract | None:
        return self.contracts.get(normalize_address(address))

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self.contracts

    def balance_of(self, address: str) -> int:
        """Native value held by an account or contract."""
        return self.balances.get(normalize_address(address), 0)

    def fund(self, address: str, amount: int) -> None:
        """Credit native value to an account (genesis allocation)."""
        if amount < 0:
            raise VMExecutionError("Funding amount must be non-negative")
        address = normalize_address(address)
        self.balances[address] = self.balances.get(address, 0) + amount

    def transfer_value(self, sender: str, to: str, amount: int) -> None:
        """Move native value between accounts."""
        if amount == 0:
            return
        if amount < 0:
            raise VMExecutionError("Value must be non-negative", details={"value": amount})
        sender = normalize_address(sender)
        to = normalize_address(to)
        if to == NULL_ADDRESS:
            raise VMExecutionError("Cannot send value to the null address")

        available = self.balances.get(sender, 0)
        if available < amount:
            raise InsufficientFundsError(
                f"Insufficient funds: {sender[:10]} has {available}, needs {amount}",
                details={"sender": sender, "available": available, "required": amount},
            )
        self.balances[sender] = available - amount
        self.balances[to] = self.balances.get(to, 0) + amount

    def log(self, address: str, event: ContractEvent) -> None:
        self.logs.append(LogEntry(address=address, event=event))

    # ==================== Snapshots ====================

    def snapshot(self) -> dict[str, Any]:
        """Capture balances, contract storage and log length."""
        return {
            "balances": dict(self.balances),
            "log_length": len(self.logs),
            "contracts": {
                address: contract.snapshot()
                for address, contract in self.contracts.items()
            },
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Restore state captured by :meth:`snapshot`."""
        self.balances = dict(snapshot["balances"])
        del self.logs[snapshot["log_length"]:]

        saved = snapshot["contracts"]
        for address in list(self.contracts):
            if address not in saved:
                # Deployed after the snapshot
                del self.contracts[address]
        for address, contract_snapshot in saved.items():
            self.contracts[address].restore(contract_snapshot)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run a block all-or-nothing: any exception restores the entry state."""
        snapshot = self.snapshot()
        try:
            yield
        except Exception:
            self.restore(snapshot)
            raise

    # ==================== Message Calls ====================

    @property
    def depth(self) -> int:
        """Number of message calls currently on the stack."""
        return self._depth

    def call(self, sender: str, to: str, data: bytes = b"", value: int = 0) -> Any:
        """
        Send a message call, transferring ``value`` and dispatching ``data``.

        A call to an address without a contract only moves value. Any failure
        restores the state from before the call and raises VMExecutionError;
        exceptions raised by contract code are wrapped in one.

        Returns:
            The return value of the invoked method
        """
        sender = normalize_address(sender)
        to = normalize_address(to)

        if self._depth >= self.max_call_depth:
            raise CallDepthExceededError(
                f"Call depth limit {self.max_call_depth} exceeded",
                details={"depth": self._depth},
            )

        self._depth += 1
        try:
            with self.atomic():
                try:
                    self.transfer_value(sender, to, value)
                    target = self.contracts.get(to)
                    if target is None:
                        return None
                    return target.dispatch(sender, data, value)
                except VMExecutionError:
                    raise
                except RecursionError as e:
                    raise CallDepthExceededError(
                        f"Interpreter stack exhausted at call depth {self._depth}",
                        details={"depth": self._depth},
                    ) from e
                except Exception as e:
                    raise VMExecutionError(
                        f"Call to {to[:10]} trapped: {e}",
                        details={"error_type": type(e).__name__},
                    ) from e
        finally:
            self._depth -= 1

    def execute(self, sender: str, to: str, data: bytes = b"", value: int = 0) -> CallResult:
        """
        Run a top-level transaction and report its outcome.

        Failed transactions leave no trace in state or logs.
        """
        log_start = len(self.logs)
        try:
            return_value = self.call(sender, to, data, value)
        except VMExecutionError as e:
            logger.warning(
                "Transaction reverted",
                extra={
                    "event": "world.transaction_reverted",
                    "sender": normalize_address(sender)[:10],
                    "to": normalize_address(to)[:10],
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return CallResult(success=False, error=str(e), error_type=type(e).__name__)

        return CallResult(
            success=True,
            return_value=return_value,
            logs=list(self.logs[log_start:]),
        )
