"""
Services package.

Only the storage layer is re-exported here; domain services are
imported from their own modules (kanakku.services.auth, .ledger, ...)
so that the audit logger can depend on storage without a cycle.
"""

from kanakku.services.storage import (
    AuditStorageInterface,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorageInterface,
    LocalAuditStorage,
    SlotKeys,
    StorageError,
    StorageScopes,
    StorageWriteError,
)

__all__ = [
    "AuditStorageInterface",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorageInterface",
    "LocalAuditStorage",
    "SlotKeys",
    "StorageError",
    "StorageScopes",
    "StorageWriteError",
]
