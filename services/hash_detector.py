"""Content fingerprints used to skip pushes of unchanged records."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Optional


def canonical_json(data: Any) -> str:
    """Serialize ``data`` with sorted keys so equal snapshots give equal text."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def fingerprint(data: Any) -> str:
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def hash_matches(data: Any, stored_fingerprint: Optional[str]) -> bool:
    if not stored_fingerprint:
        return False
    return fingerprint(data) == stored_fingerprint


__all__ = ["canonical_json", "fingerprint", "hash_matches"]
