"""
Biometric Binder

Registers a platform public-key credential as an alternate login factor
for a profile, and logs in with it.

The credential ceremony itself belongs to the platform (a WebAuthn-style
authenticator). This module consumes two operations through
PlatformAuthenticator:
1. create a credential for (profile id, name, display name) -> raw id
2. get an assertion for a stored raw credential id -> success/failure

Nothing here raises past the service boundary: a cancelled, unsupported
or rejected ceremony is a False result with auth state untouched.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from kanakku.audit import AuditLogger
from kanakku.models.audit import AuditEventBuilder, AuditEventType
from kanakku.models.profile import UserProfile
from kanakku.models.result import FailureKind, OperationResult
from kanakku.services.auth import AuthSession


logger = structlog.get_logger(__name__)


class BiometricError(Exception):
    """Platform rejected or could not run a biometric ceremony."""
    pass


class PlatformAuthenticator(ABC):
    """
    Abstract interface for the platform's biometric authenticator.

    Implementations raise BiometricError (or return a falsy value) when
    the user cancels, the device is unsupported, or policy forbids it.
    """

    @abstractmethod
    async def is_available(self) -> bool:
        """Is a user-verifying platform authenticator present?"""
        pass

    @abstractmethod
    async def create_credential(
        self,
        user_id: bytes,
        user_name: str,
        display_name: str,
    ) -> Optional[bytes]:
        """
        Create a platform credential bound to the user.

        Returns:
            The raw credential id
        """
        pass

    @abstractmethod
    async def get_assertion(self, credential_id: bytes) -> bool:
        """Ask the user to verify with the credential."""
        pass


class BiometricBinder:
    """Binds and verifies biometric credentials for profiles."""

    def __init__(
        self,
        auth: AuthSession,
        authenticator: PlatformAuthenticator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._auth = auth
        self._authenticator = authenticator
        self._audit_logger = audit_logger

    def _failed(self, stage: str, error: str) -> None:
        logger.warning("biometric_ceremony_failed", stage=stage, error=error)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.biometric_failed(stage, error))

    async def is_supported(self) -> bool:
        try:
            return bool(await self._authenticator.is_available())
        except Exception as e:
            self._failed("availability", str(e))
            return False

    def is_available(self, identifier: str) -> bool:
        """Has the profile behind `identifier` registered a credential?"""
        profile = self._auth.credentials.profile_for_identifier(identifier)
        return bool(profile and profile.biometric_enabled and profile.biometric_credential_id)

    async def register(self, profile: Optional[UserProfile] = None) -> bool:
        """
        Create a credential for the (authenticated) profile and store its
        base64 id on the profile with the biometric flag set.

        Returns:
            True on success; False on any platform rejection
        """
        profile = profile or self._auth.profile
        if profile is None:
            return False

        try:
            raw_id = await self._authenticator.create_credential(
                user_id=profile.id.encode("utf-8"),
                user_name=profile.email or profile.mobile,
                display_name=profile.name,
            )
        except Exception as e:
            # Platform errors of any type end the ceremony here
            self._failed("registration", str(e))
            return False

        if not raw_id:
            self._failed("registration", "no credential returned")
            return False

        updated = profile.model_copy(update={
            "biometric_enabled": True,
            "biometric_credential_id": base64.b64encode(raw_id).decode("ascii"),
        })
        saved = self._auth.replace_profile(updated)
        if saved.failed:
            self._failed("registration", saved.message or "profile not saved")
            return False

        if self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.BIOMETRIC_REGISTERED,
                "Biometric credential registered",
                user_id=profile.id,
                entity_type="profile",
                entity_id=profile.id,
            )
        return True

    async def verify_result(self, identifier: str) -> OperationResult:
        """
        Biometric login with a tagged outcome.

        Returns:
            OperationResult with the UserProfile, or BIOMETRIC_UNAVAILABLE /
            BIOMETRIC_CEREMONY_FAILED (auth state untouched)
        """
        profile = self._auth.credentials.profile_for_identifier(identifier)
        if profile is None or not profile.biometric_enabled or not profile.biometric_credential_id:
            return OperationResult.fail(
                FailureKind.BIOMETRIC_UNAVAILABLE,
                "Biometric login is not set up for this account",
            )

        try:
            credential_id = base64.b64decode(profile.biometric_credential_id, validate=True)
        except (binascii.Error, ValueError):
            self._failed("verification", "stored credential id unreadable")
            return OperationResult.fail(FailureKind.BIOMETRIC_UNAVAILABLE)

        try:
            asserted = await self._authenticator.get_assertion(credential_id)
        except Exception as e:
            self._failed("verification", str(e))
            return OperationResult.fail(FailureKind.BIOMETRIC_CEREMONY_FAILED)

        if not asserted:
            self._failed("verification", "assertion rejected")
            return OperationResult.fail(FailureKind.BIOMETRIC_CEREMONY_FAILED)

        result = self._auth.attach(profile, "biometric")
        if result.success and self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.BIOMETRIC_LOGIN,
                "Logged in with biometric credential",
                user_id=profile.id,
                entity_type="profile",
                entity_id=profile.id,
            )
        return result

    async def verify(self, identifier: str) -> bool:
        """Biometric login; True if the user is now authenticated."""
        return (await self.verify_result(identifier)).success
