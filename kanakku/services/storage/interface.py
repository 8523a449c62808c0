"""
Abstract Storage Interface

DESIGN DECISION: All state lives in named string slots, the way a
browser's local/session storage works. This allows us to:
1. Keep a persistent scope (survives restarts) and a session scope
   (gone when the process ends) behind one interface
2. Use in-memory storage for testing
3. Swap the file backend for something else later
4. Keep services decoupled from how bytes reach the disk

The interface is intentionally tiny. Services own the serialization
of what they put in a slot.
"""

from abc import ABC, abstractmethod
from typing import Optional

from kanakku.models.audit import AuditEvent


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for slot storage.

    Values are opaque strings (JSON text or cipher text).
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read a slot.

        Returns:
            The stored string, or None if the slot is empty
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Write a slot, replacing any previous value.

        Raises:
            StorageWriteError: If the value could not be persisted
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Empty a slot. Removing an empty slot is a no-op."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """Names of all non-empty slots."""
        pass

    def clear(self) -> None:
        """Empty every slot."""
        for key in self.keys():
            self.remove_item(key)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageWriteError(StorageError):
    """A slot could not be written."""
    pass
