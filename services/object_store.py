"""Interfaces the host application implements for its business objects."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol


LAST_SYNC_META_KEY = "_taxjar_last_sync"
HASH_META_KEY = "_taxjar_hash"


class SyncableObject(Protocol):
    """A host order or refund as seen by the sync queue."""

    def get_sync_data(self) -> Dict[str, Any]:
        """Raw fields the record variants turn into TaxJar payloads."""
        ...

    def get_meta(self, key: str) -> Optional[str]:
        ...

    def update_meta(self, key: str, value: str) -> None:
        ...

    def save(self) -> None:
        ...


class ObjectStore(Protocol):
    def load(self, record_type: str, record_id: int) -> Optional[SyncableObject]:
        """Return the object, or ``None`` when it no longer exists."""
        ...


__all__ = ["HASH_META_KEY", "LAST_SYNC_META_KEY", "ObjectStore", "SyncableObject"]
