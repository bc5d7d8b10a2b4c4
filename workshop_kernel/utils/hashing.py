"""
Hashes for the audit chain.

A record's hash has to be recomputable later from nothing but its stored
columns.  Payloads are therefore hashed over one canonical JSON text:
sorted keys, compact separators, and UUID/datetime/enum values reduced to
strings before anything is stored.
"""

import hashlib
import json
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS_MARKER = "GENESIS"
_NO_WORK_ORDER = "-"


def _reduce(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):  # datetime included
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(map(str, value))
    raise TypeError(f"cannot canonicalize {type(value).__name__}")


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_reduce)


def to_json_safe(data: dict) -> dict:
    """``data`` as it will read back from a JSON column."""
    return json.loads(canonicalize_json(data))


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_record(
    seq: int,
    record_type: str,
    actor_id: str,
    work_order_id: str | None,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Hash of one link in the chain.

    ``prev_hash`` is folded in (the first record uses GENESIS_MARKER), so
    editing or deleting a record breaks every link after it.
    """
    fields = (
        str(seq),
        record_type,
        str(actor_id),
        _NO_WORK_ORDER if work_order_id is None else str(work_order_id),
        payload_hash,
        prev_hash or GENESIS_MARKER,
    )
    return _sha256("|".join(fields))
