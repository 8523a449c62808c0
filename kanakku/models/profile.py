"""
Identity and Session Models

The profile is the only identity record. Identifiers (email or phone)
are login handles that map to a profile id; they are never the key of
a profile.
"""

import time
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AuthState(str, Enum):
    """
    Authentication state machine.

    UNAUTHENTICATED -> SIGNUP_PENDING -> AUTHENTICATED (via onboarding)
    UNAUTHENTICATED -> AUTHENTICATED (login / biometric)
    ONBOARDING_INCOMPLETE is where a restart mid-signup lands.
    AUTHENTICATED -> UNAUTHENTICATED (logout)
    """
    UNAUTHENTICATED = "unauthenticated"
    SIGNUP_PENDING = "signup_pending"
    ONBOARDING_INCOMPLETE = "onboarding_incomplete"
    AUTHENTICATED = "authenticated"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class UserProfile(BaseModel):
    """
    The device's user profile.

    NOTE: `password` is stored verbatim inside the encrypted profile map.
    This is a known weakness kept for compatibility with existing data.
    Only the display and identifier fields are trimmed.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = "User"
    mobile: str = ""
    email: str = ""
    language: str = "en"
    currency: str = "₹"
    password: Optional[str] = None
    profile_picture: Optional[str] = Field(
        default=None,
        description="Base64 data URL"
    )
    biometric_enabled: bool = False
    biometric_credential_id: Optional[str] = Field(
        default=None,
        description="Base64 encoded platform credential id"
    )

    @field_validator("name", "mobile", "email", "language", "currency", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @property
    def identifiers(self) -> list[str]:
        """Non-empty login identifiers carried by this profile."""
        return [value for value in (self.mobile, self.email) if value]

    def to_storage_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProfileDetails(BaseModel):
    """
    Onboarding input. Anything missing falls back to configured defaults.

    Passwords are taken exactly as typed.
    """

    name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    language: Optional[str] = None
    currency: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None

    @field_validator("name", "mobile", "email", "language", "currency", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ChatMessage(BaseModel):
    """One turn of the in-memory assistant conversation."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: str = Field(..., pattern="^(user|model)$")
    text: str
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
