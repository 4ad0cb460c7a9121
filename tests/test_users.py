"""
Tests for customer registration, lookups and authentication
"""

import pytest

from openbank import users as users_module
from openbank.accounts import Balances
from openbank.errors import (
    DuplicateIdentity, IdentifierExhausted, InvalidCredentials, InvalidIdentity,
    UserNotFound
)
from openbank.users import generate_account_number, generate_card_number


class TestIdentifierGeneration:

    def test_account_number_shape(self):
        for _ in range(50):
            number = generate_account_number()
            assert len(number) == 10
            assert number.isdigit()
            assert number[0] != "0"

    def test_card_number_shape(self):
        card = generate_card_number()
        groups = card.split(" ")
        assert len(groups) == 4
        assert all(len(group) == 4 and group.isdigit() for group in groups)


class TestRegistration:

    def test_create_account(self, registry, user):
        assert user.full_name == "Thandi Mokoena"
        assert user.email == "thandi@example.com"
        assert user.balances == Balances()
        assert len(user.account_number) == 10
        assert user.password_hash != "s3cret-pass"

        stored = registry.get_user(user.id)
        assert stored.national_id == "9001015009087"
        assert stored.balances == Balances()

    def test_email_is_normalized(self, registry):
        created = registry.create_account("Sipho", "Dlamini", "8505055009081", " Sipho@Example.COM ", "pw")
        assert created.email == "sipho@example.com"
        assert registry.get_user_by_email("SIPHO@example.com").id == created.id

    @pytest.mark.parametrize("national_id", ["123", "12345678901234", "90010150090AB", ""])
    def test_national_id_must_be_13_digits(self, registry, national_id):
        with pytest.raises(InvalidIdentity):
            registry.create_account("A", "B", national_id, "a@b.co", "pw")

    def test_missing_fields(self, registry):
        with pytest.raises(InvalidIdentity, match="Please include all required fields"):
            registry.create_account("", "B", "9001015009087", "a@b.co", "pw")
        with pytest.raises(InvalidIdentity, match="Please include all required fields"):
            registry.create_account("A", "B", "9001015009087", "a@b.co", "")

    def test_invalid_email(self, registry):
        with pytest.raises(InvalidIdentity, match="valid email"):
            registry.create_account("A", "B", "9001015009087", "not-an-email", "pw")

    def test_duplicate_national_id(self, registry, user):
        with pytest.raises(DuplicateIdentity):
            registry.create_account("Other", "Person", user.national_id, "other@example.com", "pw")

    def test_duplicate_email(self, registry, user):
        with pytest.raises(DuplicateIdentity):
            registry.create_account("Other", "Person", "8001015009088", "THANDI@example.com", "pw")

    def test_account_number_collision_exhausts(self, registry, user, monkeypatch):
        monkeypatch.setattr(users_module, "generate_account_number", lambda: user.account_number)
        with pytest.raises(IdentifierExhausted):
            registry.create_account("Other", "Person", "8001015009088", "other@example.com", "pw")
        assert registry.find_by_identity("8001015009088") is None

    def test_account_number_collision_retries(self, registry, user, monkeypatch):
        draws = iter([user.account_number, "5555555555"])
        monkeypatch.setattr(users_module, "generate_account_number", lambda: next(draws))
        created = registry.create_account("Other", "Person", "8001015009088", "other@example.com", "pw")
        assert created.account_number == "5555555555"

    def test_profile_hides_credentials(self, user):
        profile = user.to_profile()
        assert "password_hash" not in profile
        assert "password_salt" not in profile
        assert profile["balances"]["checking"] == "0.00"


class TestAuthentication:

    def test_authenticate(self, registry, user):
        assert registry.authenticate(user.national_id, "s3cret-pass").id == user.id

    def test_wrong_password(self, registry, user):
        with pytest.raises(InvalidCredentials, match="Invalid credentials"):
            registry.authenticate(user.national_id, "wrong")

    def test_unknown_identity(self, registry):
        with pytest.raises(InvalidCredentials, match="Invalid credentials"):
            registry.authenticate("0000000000000", "whatever")

    def test_require_user(self, registry, user):
        assert registry.require_user(user.id).id == user.id
        with pytest.raises(UserNotFound):
            registry.require_user("no-such-user")
