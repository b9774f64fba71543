"""
Audit chain digests.

Each AuditEvent is linked to the event before it by a SHA-256 digest over
its identity, its action, a digest of its payload and the predecessor's
digest.  ``validate_chain`` recomputes the same digests from stored rows,
so the payload encoding here must never change shape.
"""

import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _encode(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Cannot encode {type(obj).__name__} in an audit payload")


def canonical_json(data: Any) -> str:
    """Compact, key-sorted JSON; Enum, UUID and date values are flattened."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def payload_digest(payload: Mapping[str, Any] | None) -> str:
    return _sha256(canonical_json(dict(payload or {})))


def chain_digest(
    entity_type: str,
    entity_id: UUID | str,
    action: str,
    payload: Mapping[str, Any] | None,
    prev_hash: str | None,
) -> str:
    """Digest linking one audit event to its predecessor.

    The first event of the chain links to the ``GENESIS`` marker.
    """
    link = (entity_type, str(entity_id), action, payload_digest(payload), prev_hash or GENESIS)
    return _sha256("|".join(link))
