"""
Storage Services Package

Provides the slot storage interface and local implementations:
an in-memory backend and a JSON-file backend.
"""

from kanakku.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStorageInterface,
    StorageError,
    StorageWriteError,
)
from kanakku.services.storage.local import (
    InMemoryStorage,
    JsonFileStorage,
    LocalAuditStorage,
    SlotKeys,
    StorageScopes,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStorageInterface",
    # Exceptions
    "StorageError",
    "StorageWriteError",
    # Local implementations
    "InMemoryStorage",
    "JsonFileStorage",
    "LocalAuditStorage",
    "SlotKeys",
    "StorageScopes",
]
