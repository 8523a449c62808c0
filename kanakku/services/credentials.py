"""
Credential Store

Two persistent slots make up the device's identity data:

- identity map (plain JSON): identifier (email or phone) -> user id.
  Several identifiers may point at one profile. Entries are never removed.
- profile map (cipher text): user id -> full profile, for every user
  that ever signed up on this device.

DESIGN DECISION: Read-modify-write on either slot is not isolated.
Execution is single-threaded and event driven, so the only way to
interleave two writers is re-entry from an assistant tool call. That
lost-update window is accepted, not defended against.
"""

import json
from typing import Iterable, Optional
from uuid import uuid4

import structlog
from pydantic import ValidationError

from kanakku.audit import AuditLogger
from kanakku.models.audit import AuditEventType
from kanakku.models.profile import UserProfile
from kanakku.models.result import FailureKind, OperationResult
from kanakku.security import CipherCodec
from kanakku.services.storage import (
    KeyValueStorageInterface,
    SlotKeys,
    StorageError,
)


logger = structlog.get_logger(__name__)


def new_user_id() -> str:
    """Fresh opaque profile id."""
    return str(uuid4())


class CredentialStore:
    """Identifier lookup and obscured profile persistence."""

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        cipher: Optional[CipherCodec] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._cipher = cipher or CipherCodec()
        self._audit_logger = audit_logger

    # ------------------------------------------------------------------
    # Slot access
    # ------------------------------------------------------------------

    def _read_identity_map(self) -> dict[str, str]:
        raw = self._storage.get_item(SlotKeys.IDENTITY_MAP)
        if not raw:
            return {}
        try:
            mapping = json.loads(raw)
        except ValueError:
            logger.error("identity_map_unreadable")
            return {}
        if not isinstance(mapping, dict):
            logger.error("identity_map_unreadable")
            return {}
        return {str(k): str(v) for k, v in mapping.items()}

    def _write_identity_map(self, mapping: dict[str, str]) -> None:
        self._storage.set_item(
            SlotKeys.IDENTITY_MAP,
            json.dumps(mapping, ensure_ascii=False),
        )

    def _read_profiles(self) -> OperationResult:
        """
        Decode the whole profile map.

        An empty slot is an empty map; an undecodable slot is a failure,
        so that nothing is ever written back over it.
        """
        raw = self._storage.get_item(SlotKeys.PROFILES_ENCRYPTED)
        if not raw:
            return OperationResult.ok({})

        decoded = self._cipher.decode(raw)
        if decoded.failed:
            return decoded
        if not isinstance(decoded.value, dict):
            return OperationResult.fail(
                FailureKind.DECODE_FAILURE,
                "Profile store does not hold a profile map",
            )
        return OperationResult.ok(decoded.value)

    # ------------------------------------------------------------------
    # Identity map
    # ------------------------------------------------------------------

    def identifier_exists(self, identifier: str) -> bool:
        return bool(identifier) and identifier.strip() in self._read_identity_map()

    def user_id_for(self, identifier: str) -> Optional[str]:
        if not identifier:
            return None
        return self._read_identity_map().get(identifier.strip())

    def create_identity(self, identifier: str) -> OperationResult:
        """
        Map a new identifier to a freshly generated user id.

        Fails with IDENTIFIER_TAKEN if, and only if, the identifier is
        already in the identity map.
        """
        identifier = (identifier or "").strip()
        if not identifier:
            return OperationResult.fail(FailureKind.INVALID_COMMAND, "Identifier is required")

        mapping = self._read_identity_map()
        if identifier in mapping:
            return OperationResult.fail(
                FailureKind.IDENTIFIER_TAKEN,
                "An account already exists for this identifier",
            )

        user_id = new_user_id()
        mapping[identifier] = user_id
        try:
            self._write_identity_map(mapping)
        except StorageError as e:
            return self._storage_failure("create_identity", e)

        return OperationResult.ok(user_id)

    def bind_identifiers(
        self,
        user_id: str,
        identifiers: Iterable[str],
        overwrite: bool = False,
    ) -> list[str]:
        """
        Add identifier -> user id entries.

        Existing entries are kept. An identifier already bound to a
        different user is skipped unless `overwrite` is set (used when a
        full-account restore re-binds a profile's own identifiers).

        Returns:
            The identifiers that now point at user_id
        """
        mapping = self._read_identity_map()
        bound = []
        changed = False

        for identifier in identifiers:
            identifier = (identifier or "").strip()
            if not identifier:
                continue
            current = mapping.get(identifier)
            if current == user_id:
                bound.append(identifier)
                continue
            if current is not None and not overwrite:
                logger.warning("identifier_bound_elsewhere", user_id=user_id)
                continue
            mapping[identifier] = user_id
            bound.append(identifier)
            changed = True

        if changed:
            self._write_identity_map(mapping)

        return bound

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def save_profile(self, profile: UserProfile) -> OperationResult:
        """
        Insert or replace one profile in the obscured profile map.

        Fails without writing anything if the existing map cannot be read.
        """
        current = self._read_profiles()
        if current.failed:
            if self._audit_logger:
                self._audit_logger.log_storage_error("save_profile", current.message)
            return current

        profiles = dict(current.value)
        profiles[profile.id] = profile.to_storage_dict()

        try:
            self._storage.set_item(
                SlotKeys.PROFILES_ENCRYPTED,
                self._cipher.encode(profiles),
            )
        except StorageError as e:
            return self._storage_failure("save_profile", e)

        return OperationResult.ok(profile)

    def load_profile(self, user_id: Optional[str]) -> Optional[UserProfile]:
        if not user_id:
            return None

        current = self._read_profiles()
        if current.failed:
            return None

        raw = current.value.get(user_id)
        if not isinstance(raw, dict):
            return None

        try:
            return UserProfile.model_validate(raw)
        except ValidationError as e:
            logger.error("stored_profile_invalid", user_id=user_id, errors=e.error_count())
            return None

    def profile_for_identifier(self, identifier: str) -> Optional[UserProfile]:
        return self.load_profile(self.user_id_for(identifier))

    def verify_password(self, identifier: str, password: Optional[str]) -> OperationResult:
        """
        Identifier -> user id -> profile, then exact password comparison.

        Returns:
            OperationResult with the UserProfile, or USER_NOT_FOUND /
            INVALID_CREDENTIALS
        """
        user_id = self.user_id_for(identifier)
        if user_id is None:
            return OperationResult.fail(FailureKind.USER_NOT_FOUND, "User not found")

        profile = self.load_profile(user_id)
        if profile is None:
            return OperationResult.fail(FailureKind.USER_NOT_FOUND, "User not found")

        if profile.password != password:
            return OperationResult.fail(FailureKind.INVALID_CREDENTIALS, "Invalid credentials")

        return OperationResult.ok(profile)

    def reset_password(self, identifier: str, new_password: str) -> bool:
        """
        Replace the stored password of the profile behind `identifier`.

        Returns False if the identifier is unknown or the profile store
        is unreadable.
        """
        profile = self.profile_for_identifier(identifier)
        if profile is None:
            return False

        result = self.save_profile(profile.model_copy(update={"password": new_password}))
        if result.success and self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.PASSWORD_RESET,
                "Password reset",
                user_id=profile.id,
                entity_type="profile",
                entity_id=profile.id,
            )
        return result.success

    def _storage_failure(self, operation: str, error: Exception) -> OperationResult:
        if self._audit_logger:
            self._audit_logger.log_storage_error(operation, str(error))
        return OperationResult.fail(FailureKind.STORAGE_FAILURE, str(error))
