"""Settings and account surface.

Independent operations on the signed-in identity: profile, password,
timeline, subscription, notification preferences, avatar, account
deletion and support contact.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Any

import structlog

from accreda.backend.functions import FunctionInvocationError, FunctionsClient
from accreda.backend.storage import AvatarStorage
from accreda.config.app_config import PlanLimits, get_plan_limits
from accreda.core.accounts import AccountError, AccountService
from accreda.core.roles import PROFILE_TABLE_FOR_ROLE, Role, RoleResolver, get_role_resolver
from accreda.db import accounts_repository, profiles_repository, subscriptions_repository
from accreda.db.profiles_repository import ProfileRecord
from accreda.db.subscriptions_repository import SubscriptionRecord
from accreda.realtime.feed import AUTH_CHANNEL, Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)

PAID_TIERS = ("pro", "enterprise")


@dataclass
class SubscriptionInfo:
    """Tier of an identity with its limits."""

    subscription: SubscriptionRecord
    limits: PlanLimits

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.subscription.tier,
            "document_limit": self.limits.document_limit,
            "sao_limit": self.limits.sao_limit,
            "supervisor_limit": self.limits.supervisor_limit,
            "eit_limit": self.limits.eit_limit,
        }


def _parse_date(value: str | None, name: str) -> date | None:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an ISO date (YYYY-MM-DD)") from e


class SettingsService:
    """Settings operations for one identity."""

    def __init__(
        self,
        user_id: str,
        accounts: AccountService | None = None,
        functions: FunctionsClient | None = None,
        storage: AvatarStorage | None = None,
        roles: RoleResolver | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.user_id = user_id
        self.feed = feed or get_change_feed()
        self.accounts = accounts or AccountService(self.feed)
        self.functions = functions or FunctionsClient()
        self.storage = storage or AvatarStorage()
        self.roles = roles or get_role_resolver()

    async def _profile_table(self) -> str:
        role = await self.roles.resolve(self.user_id)
        if role is None:
            raise AccountError("Profile not found")
        return PROFILE_TABLE_FOR_ROLE[role]

    async def get_profile(self) -> ProfileRecord:
        table = await self._profile_table()
        profile = await asyncio.to_thread(profiles_repository.get_profile, table, self.user_id)
        if profile is None:
            raise AccountError("Profile not found")
        return profile

    async def update_profile(self, **fields: str | None) -> ProfileRecord:
        """Change editable profile fields.

        Raises:
            ValueError: If a field is not editable
        """
        table = await self._profile_table()
        await asyncio.to_thread(profiles_repository.update_profile, table, self.user_id, **fields)
        logger.info("settings.profile_updated", user_id=self.user_id, fields=sorted(fields))
        return await self.get_profile()

    async def change_password(self, current_password: str, new_password: str, confirm: str) -> None:
        await self.accounts.change_password(self.user_id, current_password, new_password, confirm)

    async def update_timeline(self, start_date: str | None, target_date: str | None) -> ProfileRecord:
        """Set the EIT program dates.

        Raises:
            ValueError: If a date is malformed or start is after target
            AccountError: If the identity is not an EIT
        """
        start = _parse_date(start_date, "start_date")
        target = _parse_date(target_date, "target_date")
        if start and target and start > target:
            raise ValueError("Start date must be on or before the target date")

        role = await self.roles.resolve(self.user_id)
        if role is not Role.EIT:
            raise AccountError("Only EITs have a program timeline")

        await asyncio.to_thread(
            profiles_repository.update_timeline,
            self.user_id,
            start.isoformat() if start else None,
            target.isoformat() if target else None,
        )
        logger.info("settings.timeline_updated", user_id=self.user_id)
        return await self.get_profile()

    async def get_subscription(self) -> SubscriptionInfo:
        """Tier and limits; a free subscription is created when missing."""
        record = await asyncio.to_thread(subscriptions_repository.ensure_subscription, self.user_id)
        return SubscriptionInfo(record, get_plan_limits(record.tier))

    async def create_checkout_session(self, tier: str) -> str:
        """Start a hosted checkout for a paid tier.

        Returns:
            Checkout URL

        Raises:
            ValueError: If the tier is not a paid tier
            FunctionInvocationError: If the checkout function fails
        """
        if tier not in PAID_TIERS:
            raise ValueError(f"Cannot check out tier: {tier}")
        profile = await self.get_profile()
        result = await self.functions.create_checkout_session(self.user_id, profile.email, tier)
        url = result.get("url") or result.get("sessionUrl")
        if not url:
            raise FunctionInvocationError("create-checkout-session", "No checkout URL returned")
        logger.info("settings.checkout_started", user_id=self.user_id, tier=tier)
        return url

    async def get_notification_preferences(self) -> dict[str, bool]:
        return await asyncio.to_thread(accounts_repository.get_preferences, self.user_id)

    async def update_notification_preferences(self, **preferences: bool) -> dict[str, bool]:
        """Merge preference switches.

        Raises:
            ValueError: If a preference name is unknown
        """
        saved = await asyncio.to_thread(
            accounts_repository.save_preferences, self.user_id, preferences
        )
        logger.info("settings.preferences_updated", user_id=self.user_id, changed=sorted(preferences))
        return saved

    async def upload_avatar(self, content: bytes, extension: str) -> str:
        """Store an avatar and point the profile at it.

        Raises:
            AvatarUploadError: If the file is rejected
        """
        url = await asyncio.to_thread(self.storage.upload, self.user_id, content, extension)
        table = await self._profile_table()
        await asyncio.to_thread(
            profiles_repository.update_profile, table, self.user_id, avatar_url=url
        )
        return url

    async def delete_account(self) -> int:
        """Remove every row of the identity.

        A paid subscription is cancelled first, best-effort.

        Returns:
            Number of rows removed
        """
        subscription = await asyncio.to_thread(subscriptions_repository.get_subscription, self.user_id)
        if subscription is not None and subscription.stripe_subscription_id:
            try:
                await self.functions.cancel_subscription(
                    self.user_id, subscription.stripe_subscription_id
                )
            except FunctionInvocationError as e:
                logger.error(
                    "settings.subscription_cancel_failed",
                    user_id=self.user_id,
                    error=str(e),
                )

        await asyncio.to_thread(self.storage.delete, self.user_id)
        removed = await asyncio.to_thread(accounts_repository.delete_user_data, self.user_id)
        await self.feed.publish(Change(AUTH_CHANNEL, "SIGNED_OUT", {"user_id": self.user_id}))
        logger.info("settings.account_deleted", user_id=self.user_id, rows=removed)
        return removed

    async def contact_support(self, subject: str, message: str) -> None:
        """Relay a support message.

        Raises:
            ValueError: If subject or message is empty
            FunctionInvocationError: If the support function fails
        """
        if not subject.strip() or not message.strip():
            raise ValueError("Subject and message are required")
        profile = await self.get_profile()
        await self.functions.send_support_email(profile.full_name, profile.email, subject, message)
        logger.info("settings.support_contacted", user_id=self.user_id)
