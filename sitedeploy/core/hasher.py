"""Canonical hashing helpers for content addressing and plan/ledger sealing.

Artifact hashes, plan hashes and ledger entry hashes all go through the
same canonical JSON serialization so that equal inputs always produce
equal digests, across processes and runs.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

HASH_PREFIX = "sha256:"


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_address(data: bytes) -> str:
    """Content-address raw artifact bytes.

    Returns "sha256:<hex>", the format stored in RemoteObjectState and in
    object store metadata.
    """
    return f"{HASH_PREFIX}{sha256_hex(data)}"


def compute_plan_hash(entries: list[dict[str, Any]]) -> str:
    """SHA-256 of canonical(ordered plan entries).

    Two plans computed from identical inputs hash identically; the hash is
    recorded on every ledger entry of the run.
    """
    return sha256_hex(canonical_json_bytes({"entries": entries}))


def compute_payload_hash(payload: dict[str, Any]) -> str:
    """SHA-256 of an arbitrary JSON-serializable summary payload."""
    return sha256_hex(canonical_json_bytes(payload))


def compute_entry_hash(entry_dict: dict[str, Any]) -> str:
    """SHA-256 of a ledger entry (excluding the entry_hash field itself).

    This is the seal that makes each entry tamper-evident.
    """
    d = {k: v for k, v in entry_dict.items() if k != "entry_hash"}
    return sha256_hex(canonical_json_bytes(d))
