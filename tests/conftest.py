"""
Shared fixtures for Kanakku tests.

Test strategy:
1. Unit tests for individual components against in-memory storage
2. Flow tests through the assembled app (create_app_components)
3. No real platform authenticator or assistant (use fakes)
"""

from datetime import date
from typing import Optional

import pytest

from kanakku.models.profile import ProfileDetails
from kanakku.orchestrator import KanakkuApp, create_app_components
from kanakku.services.biometric import BiometricError, PlatformAuthenticator
from kanakku.services.income import IncomeLifecycle
from kanakku.services.ledger import LedgerStore
from kanakku.services.storage import (
    InMemoryStorage,
    StorageScopes,
    StorageWriteError,
)


TODAY = date(2024, 3, 1)
EMAIL = "a@b.com"
PASSWORD = "Passw0rd!"


def fixed_today() -> date:
    return TODAY


class FailingStorage(InMemoryStorage):
    """In-memory slots whose writes to selected keys fail."""

    def __init__(self, fail_keys=(), initial=None):
        super().__init__(initial)
        self.fail_keys = set(fail_keys)

    def set_item(self, key: str, value: str) -> None:
        if key in self.fail_keys:
            raise StorageWriteError(f"disk full while writing {key}")
        super().set_item(key, value)


class FakeAuthenticator(PlatformAuthenticator):
    """Scriptable stand-in for the platform biometric authenticator."""

    def __init__(
        self,
        available: bool = True,
        credential: Optional[bytes] = b"cred-123",
        assertion_ok: bool = True,
        fail_create: bool = False,
    ):
        self.available = available
        self.credential = credential
        self.assertion_ok = assertion_ok
        self.fail_create = fail_create
        self.created_for = []
        self.asserted_with = []

    async def is_available(self) -> bool:
        return self.available

    async def create_credential(self, user_id: bytes, user_name: str, display_name: str):
        if self.fail_create:
            raise BiometricError("user cancelled")
        self.created_for.append((user_id, user_name, display_name))
        return self.credential

    async def get_assertion(self, credential_id: bytes) -> bool:
        self.asserted_with.append(credential_id)
        return self.assertion_ok


def signup_details(**overrides) -> ProfileDetails:
    values = {
        "name": "Asha",
        "email": EMAIL,
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    values.update(overrides)
    return ProfileDetails(**values)


def sign_up(app: KanakkuApp, identifier: str = EMAIL, **overrides):
    """Run the signup + onboarding flow and return the new profile."""
    started = app.auth.start_signup(identifier)
    assert started.success, started.message
    result = app.auth.complete_onboarding(signup_details(**overrides))
    assert result.success, result.message
    return result.value


@pytest.fixture
def scopes() -> StorageScopes:
    return StorageScopes.in_memory()


@pytest.fixture
def app(scopes) -> KanakkuApp:
    application = create_app_components(scopes=scopes, today=fixed_today)
    application.start()
    return application


@pytest.fixture
def signed_in_app(app) -> KanakkuApp:
    sign_up(app)
    return app


@pytest.fixture
def authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def biometric_app(scopes, authenticator) -> KanakkuApp:
    application = create_app_components(
        scopes=scopes,
        authenticator=authenticator,
        today=fixed_today,
    )
    application.start()
    return application


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def ledger(storage) -> LedgerStore:
    store = LedgerStore(storage, lifecycle=IncomeLifecycle(today=fixed_today))
    store.load()
    return store
