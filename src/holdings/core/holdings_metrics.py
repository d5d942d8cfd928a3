"""
Registry instrumentation for the holdings token engine.

Provides Prometheus counters for ledger mutations and forwarded calls, with
helper functions that are safe to call from the transfer path.
"""

from __future__ import annotations

from prometheus_client import Counter

tokens_minted_counter = Counter(
    "holdings_tokens_minted_total", "Total tokens minted", ["collection"]
)

tokens_burned_counter = Counter(
    "holdings_tokens_burned_total", "Total tokens burned", ["collection"]
)

token_transfers_counter = Counter(
    "holdings_token_transfers_total",
    "Total token transfers between holders",
    ["collection", "kind"],
)

approvals_counter = Counter(
    "holdings_approvals_total",
    "Total approval changes emitted",
    ["collection", "scope"],
)

forwarded_calls_counter = Counter(
    "holdings_forwarded_calls_total",
    "Forwarded calls attempted by the call-forwarding extension",
    ["collection", "operation", "outcome"],
)


def record_mint(collection: str) -> None:
    tokens_minted_counter.labels(collection=collection).inc()


def record_burn(collection: str) -> None:
    tokens_burned_counter.labels(collection=collection).inc()


def record_transfer(collection: str, self_transfer: bool) -> None:
    """Count a transfer, separating self-transfers from holder changes."""
    kind = "self" if self_transfer else "holder_change"
    token_transfers_counter.labels(collection=collection, kind=kind).inc()


def record_approval(collection: str, scope: str) -> None:
    """Count an approval event; scope is "token" or "operator"."""
    approvals_counter.labels(collection=collection, scope=scope).inc()


def record_forwarded_call(collection: str, operation: str, success: bool) -> None:
    outcome = "success" if success else "failure"
    forwarded_calls_counter.labels(
        collection=collection, operation=operation, outcome=outcome
    ).inc()
