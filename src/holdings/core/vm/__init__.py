"""
Execution runtime for holdings contracts.

- WorldState: accounts, contracts, event log, transactional message calls
- Contract: base class with snapshot/restore and message dispatch
- encode_call/decode_call: calldata codec
"""

from .abi import decode_call, encode_call
from .contract import NULL_ADDRESS, Contract, ContractEvent, external, payable, view
from .exceptions import VMExecutionError
from .state import CallResult, LogEntry, WorldState

__all__ = [
    "NULL_ADDRESS",
    "CallResult",
    "Contract",
    "ContractEvent",
    "LogEntry",
    "VMExecutionError",
    "WorldState",
    "decode_call",
    "encode_call",
    "external",
    "payable",
    "view",
]
