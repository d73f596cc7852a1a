"""Request fingerprinting: canonical payload form plus SHA-256 digest."""

import hashlib
import json
from enum import Enum
from typing import Any


class PayloadKind(Enum):
    """Shapes a request payload can take."""
    STRING = "string"
    ABSENT = "absent"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    NUMBER = "number"
    BOOLEAN = "boolean"


def classify(payload: Any) -> PayloadKind:
    """Map a decoded payload onto its PayloadKind."""
    if payload is None:
        return PayloadKind.ABSENT
    if isinstance(payload, str):
        return PayloadKind.STRING
    # bool is a subclass of int, check it first
    if isinstance(payload, bool):
        return PayloadKind.BOOLEAN
    if isinstance(payload, (int, float)):
        return PayloadKind.NUMBER
    if isinstance(payload, dict):
        return PayloadKind.MAPPING
    if isinstance(payload, (list, tuple)):
        return PayloadKind.SEQUENCE
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def canonicalize(payload: Any) -> str:
    """Produce the canonical text form of a payload.

    Only the outermost mapping has its keys sorted; nested mappings are
    serialized in their original key order.
    """
    kind = classify(payload)
    if kind is PayloadKind.STRING:
        return payload
    if kind is PayloadKind.ABSENT:
        return ""
    if kind is PayloadKind.MAPPING:
        ordered = {key: payload[key] for key in sorted(payload)}
        return _dump(ordered)
    return _dump(payload)


def fingerprint(client_id: str, payload: Any) -> str:
    """Hash a client identifier and payload into a hex SHA-256 digest."""
    data = f"{client_id}:{canonicalize(payload)}"
    # Lone surrogates can arrive via JSON \u escapes
    return hashlib.sha256(data.encode("utf-8", "surrogatepass")).hexdigest()
