"""
Deterministic hashing utilities.

Review history is a per-request hash chain; every hash in it must be
reproducible from the stored row alone.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    """Serialize Decimal, datetime, UUID and enum values canonically."""
    if isinstance(obj, Decimal):
        # 100.00 and 100 hash identically
        return format(obj.normalize(), "f")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, whitespace is dropped, and special types are
    rendered by ``_json_serializer``.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def to_json_safe(data: dict) -> dict:
    """Round-trip through canonical JSON so a payload can be stored in a JSON column."""
    return json.loads(canonicalize_json(data))


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_history_entry(
    request_id: str,
    seq: int,
    action: str,
    previous_status: str | None,
    new_status: str,
    actor_id: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash for one review history entry.

    Args:
        request_id: Request the entry belongs to.
        seq: Per-request sequence number (1-based).
        action: Workflow action recorded.
        previous_status: Status before the action (None on creation).
        new_status: Status after the action.
        actor_id: Who performed the action.
        payload_hash: Hash of the entry payload.
        prev_hash: Hash of the previous entry for this request (None for genesis).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        str(request_id),
        str(seq),
        action,
        previous_status or "",
        new_status,
        str(actor_id),
        payload_hash,
        prev_hash or GENESIS,
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
