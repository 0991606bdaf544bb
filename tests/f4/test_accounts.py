"""Tests for signup, login and sessions (F4)."""

import pytest

from accreda.core.accounts import (
    AccountError,
    AccountService,
    AuthenticationError,
    PasswordValidationError,
    hash_password,
    validate_password,
    verify_password,
)
from accreda.core.roles import Role, RoleResolver
from accreda.db import accounts_repository, profiles_repository, subscriptions_repository
from accreda.db.database import get_db
from accreda.realtime.feed import AUTH_CHANNEL

PASSWORD = "Secret123"


@pytest.fixture
def accounts(db, feed):
    return AccountService(feed, terms_version="1.0", bcrypt_rounds=4)


class TestPasswords:
    def test_valid_password(self):
        validate_password(PASSWORD, PASSWORD)

    def test_lists_every_failed_rule(self):
        with pytest.raises(PasswordValidationError) as exc_info:
            validate_password("abc", "abd")
        errors = exc_info.value.errors
        assert len(errors) == 4
        assert "Passwords do not match" in errors

    @pytest.mark.parametrize("password", ["short1A", "alllower1", "ALLUPPER1", "NoDigitsHere"])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password(password)

    def test_hash_round_trip(self):
        stored = hash_password(PASSWORD, rounds=4)
        assert stored.startswith("$2b$04$")
        assert PASSWORD not in stored
        assert verify_password(PASSWORD, stored)
        assert not verify_password("Wrong123", stored)

    def test_malformed_hash(self):
        assert not verify_password(PASSWORD, "plain-text")


class TestSignup:
    """Tests for AccountService.signup."""

    @pytest.mark.asyncio
    async def test_eit_signup(self, accounts, feed):
        events = []

        async def on_auth(change):
            events.append(change.event)

        feed.subscribe(AUTH_CHANNEL, on_auth)

        session = await accounts.signup(
            "alex@eit.test", PASSWORD, PASSWORD, "Alex Doe", Role.EIT, "ACME"
        )

        profile = profiles_repository.get_profile("eit_profiles", session.user_id)
        assert profile.full_name == "Alex Doe"
        assert profile.organization == "ACME"
        assert subscriptions_repository.get_tier(session.user_id) == "free"
        with get_db() as conn:
            row = conn.execute(
                "SELECT terms_version FROM terms_acceptance WHERE user_id = ?", (session.user_id,)
            ).fetchone()
        assert row["terms_version"] == "1.0"
        assert events == ["SIGNED_IN"]
        assert session.token

    @pytest.mark.asyncio
    async def test_supervisor_signup_resolves_role(self, accounts, feed):
        session = await accounts.signup(
            "sam@sup.test", PASSWORD, PASSWORD, "Sam Lee", Role.SUPERVISOR
        )
        resolver = RoleResolver(feed)
        assert await resolver.resolve(session.user_id) is Role.SUPERVISOR
        resolver.dispose()

    @pytest.mark.asyncio
    async def test_duplicate_email(self, accounts):
        await accounts.signup("alex@eit.test", PASSWORD, PASSWORD, "Alex", Role.EIT)
        with pytest.raises(AccountError):
            await accounts.signup("alex@eit.test", PASSWORD, PASSWORD, "Alex", Role.EIT)

    @pytest.mark.asyncio
    async def test_invalid_email(self, accounts):
        with pytest.raises(AccountError):
            await accounts.signup("not-an-email", PASSWORD, PASSWORD, "Alex", Role.EIT)

    @pytest.mark.asyncio
    async def test_mismatched_confirmation(self, accounts):
        with pytest.raises(PasswordValidationError):
            await accounts.signup("alex@eit.test", PASSWORD, "Secret124", "Alex", Role.EIT)
        assert accounts_repository.get_auth_user_by_email("alex@eit.test") is None


class TestSessions:
    @pytest.mark.asyncio
    async def test_login_logout(self, accounts, feed):
        first = await accounts.signup("alex@eit.test", PASSWORD, PASSWORD, "Alex", Role.EIT)
        events = []

        async def on_auth(change):
            events.append(change.event)

        feed.subscribe(AUTH_CHANNEL, on_auth)

        session = await accounts.login("alex@eit.test", PASSWORD)
        assert (await accounts.get_session(session.token)).user_id == session.user_id

        assert await accounts.logout(session.token) is True
        assert await accounts.get_session(session.token) is None
        assert await accounts.logout(session.token) is False
        # The signup session is still live
        assert events == ["SIGNED_IN"]
        assert (await accounts.get_session(first.token)).user_id == first.user_id

        assert await accounts.logout(first.token) is True
        assert events == ["SIGNED_IN", "SIGNED_OUT"]

    @pytest.mark.asyncio
    async def test_wrong_password(self, accounts):
        await accounts.signup("alex@eit.test", PASSWORD, PASSWORD, "Alex", Role.EIT)
        with pytest.raises(AuthenticationError):
            await accounts.login("alex@eit.test", "Wrong1234")

    @pytest.mark.asyncio
    async def test_unknown_email(self, accounts):
        with pytest.raises(AuthenticationError):
            await accounts.login("ghost@eit.test", PASSWORD)

    @pytest.mark.asyncio
    async def test_get_session_without_token(self, accounts):
        assert await accounts.get_session(None) is None
        assert await accounts.get_session("unknown") is None


class TestChangePassword:
    @pytest.mark.asyncio
    async def test_change_password(self, accounts):
        session = await accounts.signup("alex@eit.test", PASSWORD, PASSWORD, "Alex", Role.EIT)

        await accounts.change_password(session.user_id, PASSWORD, "Another456", "Another456")

        await accounts.login("alex@eit.test", "Another456")
        with pytest.raises(AuthenticationError):
            await accounts.login("alex@eit.test", PASSWORD)

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, accounts):
        session = await accounts.signup("alex@eit.test", PASSWORD, PASSWORD, "Alex", Role.EIT)
        with pytest.raises(AuthenticationError):
            await accounts.change_password(session.user_id, "Nope1234", "Another456", "Another456")
