"""
Local Storage Implementations

DESIGN DECISION: Device storage is two scopes of string slots:

- persistent: survives restarts. Holds the encrypted profile map, the
  identity map, the active user id, the ledger collections, the theme
  and the audit trail. Backed by one JSON file.
- session: cleared when the application closes. Holds only the
  "a session is active" flag and a pending signup identifier, so that
  re-opening the app always requires authentication again.

TRADEOFFS:
- No locking across processes. Two app instances against the same
  file can lose each other's writes (accepted: single user, single UI).
- Each write rewrites the whole file. Fine at personal-ledger sizes.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kanakku.config import get_settings
from kanakku.models.audit import AuditEvent
from kanakku.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStorageInterface,
    StorageError,
    StorageWriteError,
)


logger = structlog.get_logger(__name__)


class SlotKeys:
    """Names of every storage slot."""
    # Persistent scope
    PROFILES_ENCRYPTED = "kanakku_profiles_encrypted"  # userId -> profile, cipher text
    IDENTITY_MAP = "kanakku_identity_map"  # identifier -> userId, plain JSON
    CURRENT_USER_ID = "kanakku_current_user_id"
    EXPENSES = "kanakku_expenses"
    INCOMES = "kanakku_incomes"
    BUDGETS = "kanakku_budgets"
    THEME = "kanakku_theme"
    AUDIT_LOG = "kanakku_audit_log"

    # Session scope
    IS_AUTHENTICATED = "kanakku_is_authenticated"
    SIGNUP_IDENTIFIER = "kanakku_signup_identifier"


class InMemoryStorage(KeyValueStorageInterface):
    """Dict-backed slots. Used for the session scope and in tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage(KeyValueStorageInterface):
    """
    Persistent slots kept in a single JSON object file.

    Writes go to a temp file that replaces the original, so a crash
    mid-write leaves the previous file intact. Transient OS errors are
    retried with exponential backoff before surfacing as
    StorageWriteError. The in-memory view only changes after the file
    write succeeded.
    """

    def __init__(self, path: Optional[Path] = None, write_attempts: Optional[int] = None):
        settings = get_settings().storage
        self._path = Path(path) if path else settings.persistent_path
        self._write_attempts = write_attempts or settings.write_attempts
        self._data: Optional[dict[str, str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        if not self._path.exists():
            self._data = {}
            return self._data

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("storage file does not hold a JSON object")
            self._data = {str(k): str(v) for k, v in raw.items()}
        except (OSError, ValueError) as e:
            # Keep the unreadable file aside rather than overwrite it later
            quarantine = self._path.with_suffix(self._path.suffix + ".corrupt")
            logger.error(
                "storage_file_unreadable",
                path=str(self._path),
                quarantine=str(quarantine),
                error=str(e),
            )
            try:
                self._path.replace(quarantine)
            except OSError:
                pass
            self._data = {}

        return self._data

    def _write_file(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self._path.parent),
            prefix=".kanakku-",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _persist(self, data: dict[str, str]) -> None:
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._write_attempts),
                wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
                retry=retry_if_exception_type(OSError),
                reraise=True,
            ):
                with attempt:
                    self._write_file(data)
        except OSError as e:
            raise StorageWriteError(f"Failed to write {self._path}: {e}") from e
        self._data = data

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        updated = dict(self._load())
        updated[key] = value
        self._persist(updated)

    def remove_item(self, key: str) -> None:
        current = self._load()
        if key not in current:
            return
        updated = {k: v for k, v in current.items() if k != key}
        self._persist(updated)

    def keys(self) -> list[str]:
        return list(self._load())

    def clear(self) -> None:
        self._persist({})


@dataclass
class StorageScopes:
    """The two storage scopes every service works against."""

    persistent: KeyValueStorageInterface
    session: KeyValueStorageInterface = field(default_factory=InMemoryStorage)

    @classmethod
    def in_memory(cls) -> "StorageScopes":
        return cls(persistent=InMemoryStorage(), session=InMemoryStorage())

    @classmethod
    def on_disk(cls, path: Optional[Path] = None) -> "StorageScopes":
        return cls(persistent=JsonFileStorage(path), session=InMemoryStorage())


class LocalAuditStorage(AuditStorageInterface):
    """
    Audit trail kept in a persistent slot as a JSON list.

    Only the newest `max_events` are retained.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        max_events: Optional[int] = None,
    ):
        self._storage = storage
        self._max_events = max_events or get_settings().app.audit_max_events

    def _read(self) -> list[dict]:
        raw = self._storage.get_item(SlotKeys.AUDIT_LOG)
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except ValueError:
            return []
        return entries if isinstance(entries, list) else []

    def append_event(self, event: AuditEvent) -> bool:
        entries = self._read()
        entries.append(event.model_dump(mode="json"))
        entries = entries[-self._max_events:]
        try:
            self._storage.set_item(
                SlotKeys.AUDIT_LOG,
                json.dumps(entries, ensure_ascii=False),
            )
        except StorageError:
            return False
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = []
        for entry in reversed(self._read()):
            if len(events) >= limit:
                break
            try:
                events.append(AuditEvent.model_validate(entry))
            except ValueError:
                continue
        return events
