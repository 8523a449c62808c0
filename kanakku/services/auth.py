"""
Authentication Session

The login / signup / onboarding / logout state machine.

    UNAUTHENTICATED --start_signup--> SIGNUP_PENDING --complete_onboarding--> AUTHENTICATED
    UNAUTHENTICATED --login / biometric / account restore--> AUTHENTICATED
    AUTHENTICATED --logout--> UNAUTHENTICATED

SESSION PERSISTENCE:
- "a session is active" lives in the session scope, so closing the app
  always requires authenticating again.
- the active user id lives in the persistent scope, so a login reattaches
  to the data already on the device.
- a restart with the session flag set but no stored profile lands in
  ONBOARDING_INCOMPLETE instead of the login screen.

Logout never touches ledger data (expenses, incomes, budgets).
"""

from typing import Any, Callable, Optional

import structlog

from kanakku.audit import AuditLogger
from kanakku.config import get_settings
from kanakku.models.audit import AuditEventBuilder, AuditEventType
from kanakku.models.profile import AuthState, ChatMessage, ProfileDetails, UserProfile
from kanakku.models.result import FailureKind, OperationResult
from kanakku.services.credentials import CredentialStore, new_user_id
from kanakku.services.events import ChangeEvent, ChangeNotifier
from kanakku.services.storage import SlotKeys, StorageError, StorageScopes
from kanakku.validation import PasswordPolicy


logger = structlog.get_logger(__name__)

SESSION_ACTIVE = "true"

# Profile fields a settings screen may change
EDITABLE_PROFILE_FIELDS = frozenset({
    "name",
    "mobile",
    "email",
    "language",
    "currency",
    "profile_picture",
})


class AuthSession:
    """
    Owns the authentication state and the in-memory profile.

    Publishes "auth_state" and "profile" change events.
    """

    def __init__(
        self,
        scopes: StorageScopes,
        credentials: CredentialStore,
        password_policy: Optional[PasswordPolicy] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._scopes = scopes
        self._credentials = credentials
        self._policy = password_policy or PasswordPolicy()
        self._audit_logger = audit_logger
        self._settings = get_settings().app
        self._notifier = ChangeNotifier()

        self._state = AuthState.UNAUTHENTICATED
        self._profile: Optional[UserProfile] = None
        self._login_identifier = ""
        self._chat_history: list[ChatMessage] = []

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state == AuthState.AUTHENTICATED

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    @property
    def user_id(self) -> Optional[str]:
        return self._profile.id if self._profile else None

    @property
    def login_identifier(self) -> str:
        return self._login_identifier

    @property
    def chat_history(self) -> list[ChatMessage]:
        return list(self._chat_history)

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    def subscribe(self, listener: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    # ------------------------------------------------------------------
    # Internal transitions
    # ------------------------------------------------------------------

    def _set_state(self, state: AuthState) -> None:
        if state != self._state:
            self._state = state
            self._notifier.publish("auth_state", state)

    def _set_profile(self, profile: Optional[UserProfile]) -> None:
        self._profile = profile
        self._notifier.publish("profile", profile)

    def _audit(self, event) -> None:
        if self._audit_logger:
            self._audit_logger.log(event)

    def _storage_failure(self, operation: str, error: Exception) -> OperationResult:
        if self._audit_logger:
            self._audit_logger.log_storage_error(operation, str(error))
        return OperationResult.fail(FailureKind.STORAGE_FAILURE, str(error))

    def attach(self, profile: UserProfile, method: str) -> OperationResult:
        """
        Make `profile` the authenticated user.

        Shared by password login, biometric login and account restore.
        Storage is written first; in-memory state only changes once the
        active user id and the session flag are persisted.
        """
        try:
            self._scopes.persistent.set_item(SlotKeys.CURRENT_USER_ID, profile.id)
            self._scopes.session.set_item(SlotKeys.IS_AUTHENTICATED, SESSION_ACTIVE)
            self._scopes.session.remove_item(SlotKeys.SIGNUP_IDENTIFIER)
        except StorageError as e:
            return self._storage_failure("attach_session", e)

        self._set_profile(profile)
        self._set_state(AuthState.AUTHENTICATED)
        if self._audit_logger:
            self._audit_logger.log_login_succeeded(profile.id, method)
        return OperationResult.ok(profile)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def restore(self) -> AuthState:
        """
        Re-enter the state implied by storage at application start.

        Returns:
            The resulting AuthState
        """
        if self._scopes.session.get_item(SlotKeys.IS_AUTHENTICATED) != SESSION_ACTIVE:
            self._profile = None
            self._set_state(AuthState.UNAUTHENTICATED)
            return self._state

        user_id = self._scopes.persistent.get_item(SlotKeys.CURRENT_USER_ID)
        profile = self._credentials.load_profile(user_id)

        if profile is not None:
            self._set_profile(profile)
            self._set_state(AuthState.AUTHENTICATED)
            if self._audit_logger:
                self._audit_logger.log_event(
                    AuditEventType.SESSION_RESTORED,
                    "Session restored at startup",
                    user_id=profile.id,
                    entity_type="profile",
                    entity_id=profile.id,
                    is_user_action=False,
                )
        else:
            # Signed up but never finished onboarding
            self._login_identifier = (
                self._scopes.session.get_item(SlotKeys.SIGNUP_IDENTIFIER) or ""
            )
            self._profile = None
            self._set_state(AuthState.ONBOARDING_INCOMPLETE)

        return self._state

    # ------------------------------------------------------------------
    # Signup and onboarding
    # ------------------------------------------------------------------

    def start_signup(self, identifier: str) -> OperationResult:
        """
        Begin signup for a new identifier.

        Fails with IDENTIFIER_TAKEN (no state change) if the identifier is
        already known on this device.
        """
        identifier = (identifier or "").strip()
        if not identifier:
            return OperationResult.fail(FailureKind.INVALID_COMMAND, "Identifier is required")

        if self._state == AuthState.AUTHENTICATED:
            return OperationResult.fail(
                FailureKind.INVALID_STATE,
                "Log out before creating another account",
            )

        if self._credentials.identifier_exists(identifier):
            self._audit(AuditEventBuilder.signup_rejected(FailureKind.IDENTIFIER_TAKEN.value))
            return OperationResult.fail(
                FailureKind.IDENTIFIER_TAKEN,
                "An account already exists for this identifier",
            )

        # Session flag goes in before onboarding so an interrupted signup
        # resumes onboarding rather than landing on the login screen
        try:
            self._scopes.session.set_item(SlotKeys.IS_AUTHENTICATED, SESSION_ACTIVE)
            self._scopes.session.set_item(SlotKeys.SIGNUP_IDENTIFIER, identifier)
            self._scopes.persistent.remove_item(SlotKeys.CURRENT_USER_ID)
        except StorageError as e:
            return self._storage_failure("start_signup", e)

        self._login_identifier = identifier
        self._set_profile(None)
        self._set_state(AuthState.SIGNUP_PENDING)
        self._audit(AuditEventBuilder.signup_started())
        return OperationResult.ok()

    def complete_onboarding(self, details: ProfileDetails) -> OperationResult:
        """
        Create the profile for the pending signup and authenticate.

        Binds the signup identifier plus any supplied mobile/email.

        Returns:
            OperationResult with the new UserProfile
        """
        if self._state not in (AuthState.SIGNUP_PENDING, AuthState.ONBOARDING_INCOMPLETE):
            return OperationResult.fail(
                FailureKind.INVALID_STATE,
                "No signup in progress",
            )

        password_check = self._policy.check(details.password, details.confirm_password)
        if password_check.failed:
            return password_check

        identifier = self._login_identifier or details.email or details.mobile
        if not identifier:
            return OperationResult.fail(
                FailureKind.INVALID_COMMAND,
                "No identifier to sign up with",
            )

        if self._credentials.identifier_exists(identifier):
            return OperationResult.fail(
                FailureKind.IDENTIFIER_TAKEN,
                "An account already exists for this identifier",
            )
        user_id = new_user_id()

        # Profile first: an identifier must never point at a missing profile
        profile = UserProfile(
            id=user_id,
            name=details.name or self._settings.default_profile_name,
            mobile=details.mobile or "",
            email=details.email or "",
            language=details.language or self._settings.default_language,
            currency=details.currency or self._settings.default_currency,
            password=details.password,
        )

        saved = self._credentials.save_profile(profile)
        if saved.failed:
            return saved

        try:
            bound = self._credentials.bind_identifiers(
                user_id, dict.fromkeys([identifier] + profile.identifiers)
            )
        except StorageError as e:
            return self._storage_failure("bind_identifiers", e)

        attached = self.attach(profile, "signup")
        if attached.failed:
            return attached

        self._audit(AuditEventBuilder.onboarding_completed(user_id, len(bound)))
        return OperationResult.ok(profile)

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, identifier: str, password: Optional[str]) -> OperationResult:
        """
        Password login.

        Returns:
            OperationResult with the UserProfile, or USER_NOT_FOUND /
            INVALID_CREDENTIALS (state unchanged)
        """
        identifier = (identifier or "").strip()
        self._login_identifier = identifier

        verified = self._credentials.verify_password(identifier, password)
        if verified.failed:
            if self._audit_logger:
                self._audit_logger.log_login_failed(verified.failure.value)
            return verified

        return self.attach(verified.value, "password")

    def logout(self) -> None:
        """
        End the session.

        Clears the in-memory profile, the session flag, the active user id
        and the chat history. Ledger data stays on the device.
        """
        user_id = self.user_id
        try:
            self._scopes.session.remove_item(SlotKeys.IS_AUTHENTICATED)
            self._scopes.session.remove_item(SlotKeys.SIGNUP_IDENTIFIER)
            self._scopes.persistent.remove_item(SlotKeys.CURRENT_USER_ID)
        except StorageError as e:
            logger.error("logout_storage_failed", error=str(e))

        self._chat_history = []
        self._login_identifier = ""
        self._set_profile(None)
        self._set_state(AuthState.UNAUTHENTICATED)
        self._audit(AuditEventBuilder.logout(user_id))

    def reset_password(
        self,
        identifier: str,
        new_password: str,
        confirmation: Optional[str] = None,
    ) -> OperationResult:
        """Apply the password policy, then replace the stored password."""
        check = self._policy.check(new_password, confirmation)
        if check.failed:
            return check

        if not self._credentials.reset_password(identifier, new_password):
            return OperationResult.fail(FailureKind.USER_NOT_FOUND, "User not found")

        if self._profile and self._credentials.user_id_for(identifier) == self._profile.id:
            self._set_profile(self._profile.model_copy(update={"password": new_password}))

        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Profile settings
    # ------------------------------------------------------------------

    def update_profile(self, **changes: Any) -> OperationResult:
        """
        Change settings on the authenticated profile.

        Accepts name, mobile, email, language, currency, profile_picture.
        A new mobile/email is also bound as a login identifier.
        """
        if self._profile is None:
            return OperationResult.fail(FailureKind.INVALID_STATE, "Not logged in")

        unknown = set(changes) - EDITABLE_PROFILE_FIELDS
        if unknown:
            return OperationResult.fail(
                FailureKind.INVALID_COMMAND,
                f"Cannot change: {', '.join(sorted(unknown))}",
            )

        merged = self._profile.model_dump()
        merged.update(changes)
        try:
            updated = UserProfile.model_validate(merged)
        except ValueError as e:
            return OperationResult.fail(FailureKind.INVALID_COMMAND, str(e))

        result = self.replace_profile(updated)
        if result.success and self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.PROFILE_UPDATED,
                "Profile settings changed",
                user_id=updated.id,
                entity_type="profile",
                entity_id=updated.id,
                details={"fields": sorted(changes)},
            )
        return result

    def replace_profile(self, profile: UserProfile) -> OperationResult:
        """Persist a new version of the authenticated profile."""
        if self._profile is None or profile.id != self._profile.id:
            return OperationResult.fail(
                FailureKind.INVALID_STATE,
                "Only the authenticated profile can be replaced",
            )

        saved = self._credentials.save_profile(profile)
        if saved.failed:
            return saved

        try:
            self._credentials.bind_identifiers(profile.id, profile.identifiers)
        except StorageError as e:
            logger.error("bind_identifiers_failed", error=str(e))

        self._set_profile(profile)
        return OperationResult.ok(profile)

    # ------------------------------------------------------------------
    # Assistant conversation
    # ------------------------------------------------------------------

    def add_chat_message(self, message: ChatMessage) -> None:
        self._chat_history.append(message)
