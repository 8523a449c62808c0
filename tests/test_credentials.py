"""Tests for the credential store."""

import json

import pytest

from kanakku.models.profile import UserProfile
from kanakku.models.result import FailureKind
from kanakku.services.credentials import CredentialStore
from kanakku.services.storage import SlotKeys


@pytest.fixture
def credentials(storage) -> CredentialStore:
    return CredentialStore(storage)


class TestIdentityMap:
    """Identifier -> user id bookkeeping."""

    def test_create_identity_returns_new_user_id(self, credentials):
        """Test that a new identifier gets a fresh user id."""
        result = credentials.create_identity("a@b.com")

        assert result.success
        assert credentials.user_id_for("a@b.com") == result.value
        assert credentials.identifier_exists("a@b.com")

    def test_create_identity_rejects_known_identifier(self, credentials):
        """Test that IDENTIFIER_TAKEN is returned iff the identifier exists."""
        first = credentials.create_identity("a@b.com")
        second = credentials.create_identity("a@b.com")

        assert second.failure == FailureKind.IDENTIFIER_TAKEN
        assert credentials.user_id_for("a@b.com") == first.value

    def test_create_identity_requires_identifier(self, credentials):
        """Test that a blank identifier is refused."""
        assert credentials.create_identity("  ").failure == FailureKind.INVALID_COMMAND

    def test_identity_map_is_plain_json(self, credentials, storage):
        """Test that the identity map slot is readable JSON."""
        user_id = credentials.create_identity("a@b.com").value
        assert json.loads(storage.get_item(SlotKeys.IDENTITY_MAP)) == {"a@b.com": user_id}

    def test_bind_adds_aliases_for_same_user(self, credentials):
        """Test that several identifiers can point at one profile."""
        user_id = credentials.create_identity("a@b.com").value

        bound = credentials.bind_identifiers(user_id, ["a@b.com", "9876543210"])

        assert bound == ["a@b.com", "9876543210"]
        assert credentials.user_id_for("9876543210") == user_id

    def test_bind_skips_identifier_of_another_user(self, credentials):
        """Test that binding never steals another profile's identifier."""
        owner = credentials.create_identity("a@b.com").value

        bound = credentials.bind_identifiers("someone-else", ["a@b.com"])

        assert bound == []
        assert credentials.user_id_for("a@b.com") == owner

    def test_bind_overwrite_rebinds(self, credentials):
        """Test that overwrite moves an identifier to the given user."""
        credentials.create_identity("a@b.com")

        credentials.bind_identifiers("restored-user", ["a@b.com"], overwrite=True)

        assert credentials.user_id_for("a@b.com") == "restored-user"


class TestProfiles:
    """Obscured profile persistence and password checks."""

    def test_save_and_load_profile(self, credentials):
        """Test that a saved profile loads back unchanged."""
        profile = UserProfile(name="Asha", email="a@b.com", password="Passw0rd!")

        assert credentials.save_profile(profile).success
        assert credentials.load_profile(profile.id) == profile

    def test_profile_slot_is_not_plain_text(self, credentials, storage):
        """Test that the password is not visible in the stored slot."""
        credentials.save_profile(UserProfile(email="a@b.com", password="Passw0rd!"))

        raw = storage.get_item(SlotKeys.PROFILES_ENCRYPTED)
        assert "Passw0rd!" not in raw
        assert "a@b.com" not in raw

    def test_profiles_of_several_users_are_kept(self, credentials):
        """Test that saving one profile does not drop another."""
        first = UserProfile(email="a@b.com")
        second = UserProfile(email="c@d.com")
        credentials.save_profile(first)
        credentials.save_profile(second)

        assert credentials.load_profile(first.id) == first
        assert credentials.load_profile(second.id) == second

    def test_save_refuses_to_overwrite_unreadable_store(self, credentials, storage):
        """Test that a corrupt profile slot is never written over."""
        storage.set_item(SlotKeys.PROFILES_ENCRYPTED, "corrupted!!")

        result = credentials.save_profile(UserProfile(email="a@b.com"))

        assert result.failure == FailureKind.DECODE_FAILURE
        assert storage.get_item(SlotKeys.PROFILES_ENCRYPTED) == "corrupted!!"

    def test_load_unknown_profile(self, credentials):
        """Test that an unknown user id loads nothing."""
        assert credentials.load_profile("missing") is None
        assert credentials.load_profile(None) is None

    def test_verify_password(self, credentials):
        """Test password verification outcomes."""
        user_id = credentials.create_identity("a@b.com").value
        profile = UserProfile(id=user_id, email="a@b.com", password="Passw0rd!")
        credentials.save_profile(profile)

        assert credentials.verify_password("a@b.com", "Passw0rd!").value == profile
        assert credentials.verify_password("a@b.com", "wrong").failure == FailureKind.INVALID_CREDENTIALS
        assert credentials.verify_password("x@y.com", "Passw0rd!").failure == FailureKind.USER_NOT_FOUND

    def test_reset_password(self, credentials):
        """Test that a reset replaces the stored password."""
        user_id = credentials.create_identity("a@b.com").value
        credentials.save_profile(UserProfile(id=user_id, email="a@b.com", password="Passw0rd!"))

        assert credentials.reset_password("a@b.com", "N3wPass!")
        assert credentials.verify_password("a@b.com", "N3wPass!").success
        assert not credentials.reset_password("x@y.com", "N3wPass!")
