"""
Backup Codec

A backup is the whole account (profile + expenses + incomes + budgets)
as one cipher-text blob, conventionally saved as `<prefix>_<date>.kbf`.

Two restore paths:

1. restore_into_current_profile: ledger only, and only if the backup's
   metadata.userId is the authenticated profile's id. Identity is never
   touched.
2. restore_full_account: recovery on a new device before anyone is
   logged in. Writes the embedded profile, re-binds its identifiers,
   makes it the active user and replaces the ledger. No ownership check,
   because there is no current owner yet.

Restore is a full overwrite, never a merge.

DECRYPTION KEYS: A backup made with a password uses it as the cipher
key. Restores always try the default key first; when that fails the
caller may prompt for a password and retry with it.
"""

import asyncio
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from kanakku.audit import AuditLogger
from kanakku.config import get_settings
from kanakku.models.audit import AuditEventType
from kanakku.models.ledger import (
    BackupData,
    BackupMetadata,
    BackupPayload,
    Budget,
    Expense,
    Income,
)
from kanakku.models.profile import AuthState, UserProfile
from kanakku.models.result import FailureKind, OperationResult
from kanakku.security import CipherCodec
from kanakku.services.auth import AuthSession
from kanakku.services.ledger import LedgerStore
from kanakku.services.storage import StorageError


logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def backup_filename(day: Optional[date] = None) -> str:
    """e.g. kanakku_backup_2024-01-15.kbf"""
    settings = get_settings().backup
    day = day or date.today()
    return f"{settings.filename_prefix}_{day.isoformat()}{settings.file_extension}"


async def read_backup_file(path: Path) -> str:
    """Read a backup blob without blocking the event loop."""
    return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")


class BackupCodec:
    """Creates backups and applies them to the device."""

    def __init__(
        self,
        ledger: LedgerStore,
        auth: AuthSession,
        cipher: Optional[CipherCodec] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._auth = auth
        self._cipher = cipher or CipherCodec()
        self._audit_logger = audit_logger
        self._settings = get_settings().backup

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def build_payload(
        self,
        profile: UserProfile,
        expenses: list[Expense],
        incomes: list[Income],
        budgets: list[Budget],
    ) -> BackupPayload:
        return BackupPayload(
            metadata=BackupMetadata(
                user_id=profile.id,
                email=profile.email,
                version=self._settings.format_version,
                timestamp=int(datetime.now().timestamp() * 1000),
            ),
            user_profile=profile,
            data=BackupData(expenses=expenses, incomes=incomes, budgets=budgets),
        )

    def create_backup(
        self,
        profile: UserProfile,
        expenses: list[Expense],
        incomes: list[Income],
        budgets: list[Budget],
        password: Optional[str] = None,
    ) -> str:
        """
        Encode the full account.

        Args:
            password: Optional key replacing the default one

        Returns:
            Cipher text ready to be written to a backup file
        """
        payload = self.build_payload(profile, expenses, incomes, budgets)
        cipher_text = self._cipher.encode(
            payload.model_dump(mode="json", by_alias=True, exclude_none=True),
            key=password,
        )

        if self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.BACKUP_CREATED,
                "Backup created",
                user_id=profile.id,
                entity_type="backup",
                details={
                    "expenses": len(expenses),
                    "incomes": len(incomes),
                    "budgets": len(budgets),
                    "password_protected": bool(password),
                },
            )
        return cipher_text

    # ------------------------------------------------------------------
    # Decode helpers
    # ------------------------------------------------------------------

    def _decode(self, cipher_text: str, password: Optional[str]) -> OperationResult:
        """Default key first, then the password if one was given."""
        decoded = self._cipher.decode(cipher_text)
        if decoded.failed and password:
            decoded = self._cipher.decode(cipher_text, key=password)
        if decoded.success and not isinstance(decoded.value, dict):
            return OperationResult.fail(
                FailureKind.INVALID_BACKUP_FORMAT,
                "Invalid backup file format",
            )
        return decoded

    @staticmethod
    def _collection(data: dict[str, Any], key: str, model: type[M]) -> list[M]:
        """
        A ledger section of the payload. Anything that is not a list
        counts as empty.

        Raises:
            ValidationError: If a list entry is not a valid record
        """
        raw = data.get(key)
        if not isinstance(raw, list):
            return []
        return [model.model_validate(entry) for entry in raw]

    def _ledger_sections(self, data: dict[str, Any]) -> OperationResult:
        try:
            sections = (
                self._collection(data, "expenses", Expense),
                self._collection(data, "incomes", Income),
                self._collection(data, "budgets", Budget),
            )
        except ValidationError as e:
            return OperationResult.fail(
                FailureKind.INVALID_BACKUP_FORMAT,
                f"Backup contains invalid records ({e.error_count()} errors)",
            )
        return OperationResult.ok(sections)

    def _reject(self, result: OperationResult, user_id: Optional[str] = None) -> OperationResult:
        if self._audit_logger:
            self._audit_logger.log_backup_rejected(result.failure.value, user_id)
        return result

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore_into_current_profile(
        self,
        cipher_text: str,
        current_user_id: Optional[str],
        password: Optional[str] = None,
    ) -> OperationResult:
        """
        Replace the ledger with a backup's data.

        Fails with DECODE_FAILURE, INVALID_BACKUP_FORMAT or
        OWNERSHIP_MISMATCH, in which case the ledger is untouched.
        """
        decoded = self._decode(cipher_text, password)
        if decoded.failed:
            return self._reject(decoded, current_user_id)

        payload = decoded.value
        metadata = payload.get("metadata")
        data = payload.get("data")
        if not isinstance(metadata, dict) or not isinstance(data, dict):
            return self._reject(OperationResult.fail(
                FailureKind.INVALID_BACKUP_FORMAT,
                "Invalid backup file format",
            ), current_user_id)

        if not current_user_id or metadata.get("userId") != current_user_id:
            return self._reject(OperationResult.fail(
                FailureKind.OWNERSHIP_MISMATCH,
                "This backup does not belong to the current user profile",
            ), current_user_id)

        sections = self._ledger_sections(data)
        if sections.failed:
            return self._reject(sections, current_user_id)

        replaced = self._ledger.replace_all(*sections.value)
        if replaced.failed:
            return replaced

        if self._audit_logger:
            expenses, incomes, budgets = sections.value
            self._audit_logger.log_event(
                AuditEventType.BACKUP_RESTORED,
                "Backup restored into current profile",
                user_id=current_user_id,
                entity_type="backup",
                details={
                    "expenses": len(expenses),
                    "incomes": len(incomes),
                    "budgets": len(budgets),
                },
            )
        return OperationResult.ok()

    def restore_full_account(
        self,
        cipher_text: str,
        password: Optional[str] = None,
    ) -> OperationResult:
        """
        Recover a whole account from a backup on a device where nobody
        is logged in.

        Returns:
            OperationResult with the restored UserProfile
        """
        if self._auth.state == AuthState.AUTHENTICATED:
            return OperationResult.fail(
                FailureKind.INVALID_STATE,
                "Log out before restoring another account",
            )

        decoded = self._decode(cipher_text, password)
        if decoded.failed:
            return self._reject(decoded)

        payload = decoded.value
        raw_profile = payload.get("userProfile")
        data = payload.get("data")
        if not isinstance(raw_profile, dict) or not isinstance(data, dict):
            return self._reject(OperationResult.fail(
                FailureKind.INVALID_BACKUP_FORMAT,
                "Invalid backup file or missing profile data",
            ))

        try:
            profile = UserProfile.model_validate(raw_profile)
        except ValidationError:
            return self._reject(OperationResult.fail(
                FailureKind.INVALID_BACKUP_FORMAT,
                "Backup profile is invalid",
            ))

        sections = self._ledger_sections(data)
        if sections.failed:
            return self._reject(sections)

        credentials = self._auth.credentials
        saved = credentials.save_profile(profile)
        if saved.failed:
            return saved

        try:
            credentials.bind_identifiers(profile.id, profile.identifiers, overwrite=True)
        except StorageError as e:
            logger.error("restore_bind_failed", error=str(e))
            return OperationResult.fail(FailureKind.STORAGE_FAILURE, str(e))

        replaced = self._ledger.replace_all(*sections.value)
        if replaced.failed:
            return replaced

        attached = self._auth.attach(profile, "restore")
        if attached.failed:
            return attached

        if self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.ACCOUNT_RESTORED,
                "Account restored from backup",
                user_id=profile.id,
                entity_type="profile",
                entity_id=profile.id,
            )
        return OperationResult.ok(profile)
