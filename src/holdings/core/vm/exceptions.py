"""
Execution error hierarchy for holdings contracts.

Every contract-level failure is a ``VMExecutionError``. Raising one aborts the
current message call; the world state restores its pre-call snapshot so no
partial mutation is ever observable.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VMExecutionError(Exception):
    """Base exception for a reverted contract execution.

    Attributes:
        message: Human-readable revert reason
        details: Additional context about the failure
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotPayableError(VMExecutionError):
    """Raised when value is sent to a method that does not accept it."""
    pass


class InsufficientFundsError(VMExecutionError):
    """Raised when an account cannot cover a value transfer."""
    pass


class CallDepthExceededError(VMExecutionError):
    """Raised when nested message calls exceed the configured depth."""
    pass


class UnknownMethodError(VMExecutionError):
    """Raised when calldata names a method the target does not expose."""
    pass


# ==================== Holdings Errors ====================


class HoldingsError(VMExecutionError):
    """Base exception for holdings registry failures."""
    pass


class TokenNotFoundError(HoldingsError):
    """Raised when a token id was never minted or has been burned."""
    pass


class TokenAlreadyExistsError(HoldingsError):
    """Raised when minting a token id that is live or retired."""
    pass


class InvalidHolderError(HoldingsError):
    """
    Raised when a holder key uses the null origin or cannot be resolved
    through its holder-origin collection.
    """
    pass


class OwnerMismatchError(HoldingsError):
    """Raised when the expected current holder of a transfer is stale."""
    pass


class UnauthorizedError(HoldingsError):
    """Raised when the caller has no authorization path for a token."""
    pass


class SelfApprovalError(HoldingsError):
    """Raised when a spender or operator equals the approving identity."""
    pass


class ExternalCallFailedError(HoldingsError):
    """
    Raised when a forwarded call fails.

    The whole enclosing operation, including any value already forwarded,
    is rolled back before this propagates to the caller.
    """
    pass


class ReentrantCallError(HoldingsError):
    """Raised on a mutating reentry into a token whose forwarded call is in flight."""
    pass
