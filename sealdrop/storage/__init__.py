"""Quota-and-retention-enforcing storage core for SealDrop.

Examples:
    >>> from sealdrop.storage import BlobStore, StorageConfig
    >>> store = BlobStore(session_factory, StorageConfig())
    >>> created = await store.create(payload, Origin(address="203.0.113.7"))
"""

from sealdrop.storage.config import StorageConfig
from sealdrop.storage.identifiers import is_valid_entry_id, new_entry_id
from sealdrop.storage.origin import Origin, OriginMeta, resolve_origin_address
from sealdrop.storage.quota import QuotaDecision, QuotaTracker, QuotaUsage
from sealdrop.storage.service import BlobStore, CreatedEntry

__all__ = [
    "BlobStore",
    "CreatedEntry",
    "Origin",
    "OriginMeta",
    "QuotaDecision",
    "QuotaTracker",
    "QuotaUsage",
    "StorageConfig",
    "is_valid_entry_id",
    "new_entry_id",
    "resolve_origin_address",
]
