"""
Main Orchestrator for Kanakku

This module ties together all the components and defines the
application-level flows:
1. Startup (load ledger -> reconcile overdue incomes -> restore session)
2. Backup / export of the current account
3. Restore (into the current profile, or a full account recovery)
4. Preferences (theme)

DESIGN DECISION: Services never reach for each other implicitly. The
orchestrator builds every component once, against one pair of storage
scopes and one audit logger, and hands out the same instances.
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional

import structlog

from kanakku.agents import AssistantToolDispatcher
from kanakku.audit import AuditLogger
from kanakku.models.audit import AuditEventType
from kanakku.models.profile import AuthState, Theme
from kanakku.models.result import FailureKind, OperationResult
from kanakku.security import CipherCodec
from kanakku.services.auth import AuthSession
from kanakku.services.backup import BackupCodec, backup_filename, read_backup_file
from kanakku.services.biometric import BiometricBinder, PlatformAuthenticator
from kanakku.services.credentials import CredentialStore
from kanakku.services.export import export_csv, export_filename
from kanakku.services.income import IncomeLifecycle
from kanakku.services.ledger import LedgerStore
from kanakku.services.storage import (
    LocalAuditStorage,
    SlotKeys,
    StorageError,
    StorageScopes,
)
from kanakku.validation import CommandValidator, PasswordPolicy


logger = structlog.get_logger(__name__)


@dataclass
class ExportedFile:
    """A file ready to be handed to the platform's share / download sheet."""

    filename: str
    content: str


class KanakkuApp:
    """
    The assembled application core.

    Flow at startup:
    1. start() loads the ledger, running the overdue reconcile pass
    2. start() restores the session state (login screen, onboarding,
       or straight to the dashboard)
    """

    def __init__(
        self,
        scopes: StorageScopes,
        audit_logger: AuditLogger,
        credentials: CredentialStore,
        auth: AuthSession,
        ledger: LedgerStore,
        backup: BackupCodec,
        assistant: AssistantToolDispatcher,
        biometric: Optional[BiometricBinder] = None,
    ):
        self.scopes = scopes
        self.audit_logger = audit_logger
        self.credentials = credentials
        self.auth = auth
        self.ledger = ledger
        self.backup = backup
        self.assistant = assistant
        self.biometric = biometric

    def start(self) -> AuthState:
        """
        Bring the core up from whatever is on the device.

        Returns:
            The restored AuthState
        """
        flipped = self.ledger.load()
        state = self.auth.restore()
        logger.info("app_started", auth_state=state.value, overdue_flipped=flipped)
        return state

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def get_theme(self) -> Theme:
        raw = self.scopes.persistent.get_item(SlotKeys.THEME)
        try:
            return Theme(raw) if raw else Theme.LIGHT
        except ValueError:
            return Theme.LIGHT

    def set_theme(self, theme: Theme) -> OperationResult:
        try:
            self.scopes.persistent.set_item(SlotKeys.THEME, Theme(theme).value)
        except StorageError as e:
            self.audit_logger.log_storage_error("write_theme", str(e))
            return OperationResult.fail(FailureKind.STORAGE_FAILURE, str(e))
        return OperationResult.ok(Theme(theme))

    # ------------------------------------------------------------------
    # Backup, restore and export
    # ------------------------------------------------------------------

    def create_backup(self, password: Optional[str] = None, day: Optional[date] = None) -> OperationResult:
        """
        Back up the authenticated account.

        Returns:
            OperationResult with an ExportedFile (.kbf)
        """
        profile = self.auth.profile
        if profile is None:
            return OperationResult.fail(FailureKind.INVALID_STATE, "No profile to back up")

        content = self.backup.create_backup(
            profile,
            self.ledger.expenses,
            self.ledger.incomes,
            self.ledger.budgets,
            password=password,
        )
        return OperationResult.ok(ExportedFile(filename=backup_filename(day), content=content))

    def export_ledger(self, day: Optional[date] = None) -> ExportedFile:
        """CSV export of the ledger as it is now."""
        content = export_csv(self.ledger.expenses, self.ledger.incomes)
        self.audit_logger.log_event(
            AuditEventType.EXPORT_CREATED,
            "Ledger exported to CSV",
            user_id=self.auth.user_id,
            entity_type="export",
            details={
                "expenses": len(self.ledger.expenses),
                "incomes": len(self.ledger.incomes),
            },
        )
        return ExportedFile(filename=export_filename(day), content=content)

    def import_backup(self, cipher_text: str, password: Optional[str] = None) -> OperationResult:
        """Restore a backup's ledger into the logged-in profile."""
        return self.backup.restore_into_current_profile(
            cipher_text,
            self.auth.user_id,
            password=password,
        )

    def restore_account(self, cipher_text: str, password: Optional[str] = None) -> OperationResult:
        """Recover a whole account from a backup (login screen)."""
        return self.backup.restore_full_account(cipher_text, password=password)

    async def import_backup_file(self, path: Path, password: Optional[str] = None) -> OperationResult:
        try:
            cipher_text = await read_backup_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("backup_file_unreadable", path=str(path), error=str(e))
            return OperationResult.fail(FailureKind.DECODE_FAILURE, "Could not read backup file")
        if self.auth.is_authenticated:
            return self.import_backup(cipher_text, password)
        return self.restore_account(cipher_text, password)


def create_app_components(
    scopes: Optional[StorageScopes] = None,
    authenticator: Optional[PlatformAuthenticator] = None,
    today: Callable[[], date] = date.today,
    cipher: Optional[CipherCodec] = None,
) -> KanakkuApp:
    """
    Factory function to create all application components.

    Args:
        scopes: Storage scopes. Defaults to the JSON file under the
                configured data dir plus an in-memory session scope.
        authenticator: Platform biometric authenticator; without one
                       biometric login is not offered.
        today: Clock for the income lifecycle and command defaults

    Returns:
        A KanakkuApp; call start() before use
    """
    scopes = scopes or StorageScopes.on_disk()
    cipher = cipher or CipherCodec()

    audit_logger = AuditLogger(LocalAuditStorage(scopes.persistent))
    credentials = CredentialStore(scopes.persistent, cipher=cipher, audit_logger=audit_logger)
    auth = AuthSession(
        scopes,
        credentials,
        password_policy=PasswordPolicy(),
        audit_logger=audit_logger,
    )
    ledger = LedgerStore(
        scopes.persistent,
        lifecycle=IncomeLifecycle(today=today),
        audit_logger=audit_logger,
    )
    backup = BackupCodec(ledger, auth, cipher=cipher, audit_logger=audit_logger)
    assistant = AssistantToolDispatcher(
        ledger,
        validator=CommandValidator(today=today),
        audit_logger=audit_logger,
        user_id=lambda: auth.user_id,
    )
    biometric = (
        BiometricBinder(auth, authenticator, audit_logger=audit_logger)
        if authenticator is not None
        else None
    )

    return KanakkuApp(
        scopes=scopes,
        audit_logger=audit_logger,
        credentials=credentials,
        auth=auth,
        ledger=ledger,
        backup=backup,
        assistant=assistant,
        biometric=biometric,
    )
