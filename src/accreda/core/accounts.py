"""Accounts: signup, login and sessions.

Signup creates the identity, then the profile row for the chosen role,
then records terms acceptance. The steps are independent writes; an
identity left without a profile is sent back to /signup by the route
guard.
"""

from __future__ import annotations

import asyncio
import re
import sqlite3
from dataclasses import dataclass

import bcrypt
import structlog

from accreda.config.app_config import load_app_config
from accreda.core.roles import PROFILE_TABLE_FOR_ROLE, Role
from accreda.db import accounts_repository, profiles_repository, subscriptions_repository
from accreda.realtime.feed import AUTH_CHANNEL, Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 8
DEFAULT_BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes
BCRYPT_MAX_BYTES = 72

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AccountError(Exception):
    """Error creating or changing an account."""

    pass


class AuthenticationError(Exception):
    """Raised when credentials or a session token are not valid."""

    pass


class PasswordValidationError(ValueError):
    """Raised when a password does not meet the rules.

    Attributes:
        errors: Every rule the password failed
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


@dataclass
class Session:
    """Signed-in identity."""

    token: str
    user_id: str
    email: str


def validate_password(password: str, confirm: str | None = None) -> None:
    """Check password strength and confirmation.

    Raises:
        PasswordValidationError: Listing every failed rule
    """
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if confirm is not None and password != confirm:
        errors.append("Passwords do not match")
    if errors:
        raise PasswordValidationError(errors)


def hash_password(password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a password with bcrypt at the given cost."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, stored.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


class AccountService:
    """Identity lifecycle."""

    def __init__(
        self,
        feed: ChangeFeed | None = None,
        terms_version: str | None = None,
        bcrypt_rounds: int | None = None,
    ):
        config = load_app_config()
        self.feed = feed or get_change_feed()
        self.terms_version = terms_version or config.terms_version
        self.bcrypt_rounds = bcrypt_rounds or config.security.bcrypt_rounds

    async def signup(
        self,
        email: str,
        password: str,
        confirm: str,
        full_name: str,
        role: Role,
        organization: str = "",
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Session:
        """Create an identity with a profile and sign it in.

        Raises:
            PasswordValidationError: If the password fails the rules
            AccountError: If the email is invalid or already registered
        """
        email = email.strip()
        if not _EMAIL_RE.match(email):
            raise AccountError("Please enter a valid email address")
        if not full_name.strip():
            raise AccountError("Full name is required")
        validate_password(password, confirm)

        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        try:
            user = await asyncio.to_thread(
                accounts_repository.insert_auth_user, email, password_hash
            )
        except sqlite3.IntegrityError as e:
            raise AccountError("An account with this email already exists") from e

        await asyncio.to_thread(
            profiles_repository.insert_profile,
            PROFILE_TABLE_FOR_ROLE[role],
            user.id,
            email,
            full_name.strip(),
            organization,
        )
        await asyncio.to_thread(subscriptions_repository.ensure_subscription, user.id)

        try:
            await asyncio.to_thread(
                accounts_repository.record_terms_acceptance,
                user.id,
                self.terms_version,
                ip_address,
                user_agent,
            )
        except sqlite3.Error as e:
            logger.error("accounts.terms_acceptance_failed", user_id=user.id, error=str(e))

        logger.info("accounts.signed_up", user_id=user.id, role=role.value)
        return await self._start_session(user.id, email)

    async def login(self, email: str, password: str) -> Session:
        """Sign in with email and password.

        Raises:
            AuthenticationError: If the credentials do not match
        """
        user = await asyncio.to_thread(accounts_repository.get_auth_user_by_email, email.strip())
        if user is None or not verify_password(password, user.password_hash):
            logger.info("accounts.login_failed")
            raise AuthenticationError("Invalid email or password")
        return await self._start_session(user.id, user.email)

    async def _start_session(self, user_id: str, email: str) -> Session:
        token = await asyncio.to_thread(accounts_repository.create_session, user_id)
        await self.feed.publish(Change(AUTH_CHANNEL, "SIGNED_IN", {"user_id": user_id}))
        logger.info("accounts.signed_in", user_id=user_id)
        return Session(token=token, user_id=user_id, email=email)

    async def logout(self, token: str) -> bool:
        """End a session. Unknown tokens are ignored.

        SIGNED_OUT is published only when the identity has no session left.
        """
        user_id = await asyncio.to_thread(accounts_repository.delete_session, token)
        if user_id is None:
            return False
        remaining = await asyncio.to_thread(accounts_repository.count_sessions, user_id)
        if remaining:
            logger.info("accounts.session_ended", user_id=user_id, remaining=remaining)
            return True
        await self.feed.publish(Change(AUTH_CHANNEL, "SIGNED_OUT", {"user_id": user_id}))
        logger.info("accounts.signed_out", user_id=user_id)
        return True

    async def get_session(self, token: str | None) -> Session | None:
        """Resolve a bearer token to its session."""
        if not token:
            return None
        user_id = await asyncio.to_thread(accounts_repository.get_session_user_id, token)
        if user_id is None:
            return None
        user = await asyncio.to_thread(accounts_repository.get_auth_user, user_id)
        if user is None:
            return None
        return Session(token=token, user_id=user.id, email=user.email)

    async def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
        confirm: str,
    ) -> None:
        """Replace the password after checking the current one.

        Raises:
            AuthenticationError: If the current password is wrong
            PasswordValidationError: If the new password fails the rules
        """
        user = await asyncio.to_thread(accounts_repository.get_auth_user, user_id)
        if user is None or not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        validate_password(new_password, confirm)
        password_hash = await asyncio.to_thread(hash_password, new_password, self.bcrypt_rounds)
        await asyncio.to_thread(accounts_repository.update_password_hash, user_id, password_hash)
        logger.info("accounts.password_changed", user_id=user_id)
