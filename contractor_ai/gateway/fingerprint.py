"""Request fingerprinting for cache and dedup keys.

A fingerprint is the SHA-1 of the canonical JSON form of the normalized
request shape. Callers must include every field that changes the upstream
output (operation, model, inputs, output ceiling, tenant) and nothing
volatile (timestamps, request ids).
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any


def canonical_json(shape: Mapping[str, Any]) -> str:
    """Serialize ``shape`` with sorted keys and compact separators."""
    return json.dumps(shape, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_fingerprint(shape: Mapping[str, Any]) -> str:
    """Return the hex digest identifying a normalized request."""
    return hashlib.sha1(canonical_json(shape).encode("utf-8")).hexdigest()  # noqa: S324
