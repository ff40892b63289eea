"""Query signatures: structural cache keys for read queries."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


def _canonical(value: Any) -> Any:
    """Reduce a value to JSON-compatible data with a stable ordering."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, (set, frozenset)):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
    return str(value)


def canonical_params(params: Mapping[str, Any] | None) -> str:
    """Serialize params with sorted keys; ``None`` and ``{}`` are the same."""
    return json.dumps(
        _canonical(params or {}),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


@dataclass(frozen=True, slots=True)
class QuerySignature:
    """Identity of one read query: its name plus canonical parameters."""

    name: str
    key: str  # canonical params JSON

    @property
    def params(self) -> dict[str, Any]:
        return json.loads(self.key)

    @property
    def digest(self) -> str:
        return hashlib.sha256(f"{self.name}\0{self.key}".encode()).hexdigest()[:16]

    def __str__(self) -> str:
        return f"{self.name}:{self.digest}"


def signature_of(
    query_name: str, params: Mapping[str, Any] | None = None
) -> QuerySignature:
    """Derive the signature of a query call.

    Deep-equal parameter mappings give equal signatures regardless of
    insertion order:

        signature_of("getUserByUsername", {"username": "ada"})
    """
    return QuerySignature(query_name, canonical_params(params))


__all__ = ["QuerySignature", "canonical_params", "signature_of"]
