"""
Calldata encoding for message calls between contracts.

Calldata is a compact JSON document naming the target method and its
positional arguments. ``bytes`` arguments (nested payloads) are tagged and
hex-encoded so a payload can carry another encoded call.
"""

from __future__ import annotations

import json
from typing import Any

from .exceptions import VMExecutionError

_BYTES_TAG = "__bytes__"


def _encode_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return {_BYTES_TAG: bytes(value).hex()}
    if isinstance(value, (list, tuple)):
        return [_encode_value(v) for v in value]
    if isinstance(value, bool) or value is None or isinstance(value, (int, str)):
        return value
    raise VMExecutionError(
        f"ABI: unsupported argument type {type(value).__name__}",
        details={"value": repr(value)},
    )


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) != {_BYTES_TAG}:
            raise VMExecutionError("ABI: malformed tagged value")
        try:
            return bytes.fromhex(value[_BYTES_TAG])
        except (TypeError, ValueError) as exc:
            raise VMExecutionError("ABI: malformed bytes argument") from exc
    if isinstance(value, list):
        return [_decode_value(v) for v in value]
    return value


def encode_call(method: str, *args: Any) -> bytes:
    """
    Encode a call to ``method`` with positional ``args``.

    Args:
        method: Name of the external method on the target contract
        *args: Arguments (int, str, bool, None, bytes, or lists of these)

    Returns:
        Calldata bytes
    """
    if not method or not isinstance(method, str):
        raise VMExecutionError("ABI: method name must be a non-empty string")
    document = {"method": method, "args": [_encode_value(a) for a in args]}
    return json.dumps(document, separators=(",", ":"), sort_keys=True).encode("utf-8")


def decode_call(data: bytes) -> tuple[str, list[Any]]:
    """
    Decode calldata produced by :func:`encode_call`.

    Raises:
        VMExecutionError: If the calldata is not a well-formed call
    """
    try:
        document = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise VMExecutionError("ABI: calldata is not decodable") from exc

    if not isinstance(document, dict):
        raise VMExecutionError("ABI: calldata must be an object")
    method = document.get("method")
    args = document.get("args", [])
    if not isinstance(method, str) or not method:
        raise VMExecutionError("ABI: calldata has no method")
    if not isinstance(args, list):
        raise VMExecutionError("ABI: calldata args must be a list")
    return method, [_decode_value(a) for a in args]
