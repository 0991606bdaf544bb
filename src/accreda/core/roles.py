"""Role resolver and route guard.

An identity is an EIT when it has an eit_profiles row and a Supervisor
when it has a supervisor_profiles row. The role is resolved once per
identity and cached until the identity signs out.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import structlog

from accreda.db import profiles_repository
from accreda.realtime.feed import AUTH_CHANNEL, Change, ChangeFeed, Subscription, get_change_feed

logger = structlog.get_logger(__name__)

LOGIN_PATH = "/login"
SIGNUP_PATH = "/signup"


class Role(str, Enum):
    EIT = "eit"
    SUPERVISOR = "supervisor"

    @property
    def home(self) -> str:
        return HOME_PATHS[self]


HOME_PATHS = {
    Role.EIT: "/dashboard",
    Role.SUPERVISOR: "/dashboard/supervisor",
}

PROFILE_TABLE_FOR_ROLE = {
    Role.EIT: "eit_profiles",
    Role.SUPERVISOR: "supervisor_profiles",
}


@dataclass
class RouteDecision:
    """Whether to render a route, and where to go instead."""

    allowed: bool
    redirect_to: str | None = None
    role: Role | None = None

    @classmethod
    def allow(cls, role: Role | None) -> RouteDecision:
        return cls(allowed=True, role=role)

    @classmethod
    def redirect(cls, path: str, role: Role | None = None) -> RouteDecision:
        return cls(allowed=False, redirect_to=path, role=role)


class RoleResolver:
    """Resolves and caches the role of each identity."""

    def __init__(self, feed: ChangeFeed | None = None):
        self.feed = feed or get_change_feed()
        self._cache: dict[str, Role | None] = {}
        self._subscription: Subscription = self.feed.subscribe(
            AUTH_CHANNEL, self._on_auth_event, events={"SIGNED_OUT"}
        )

    async def resolve(self, user_id: str) -> Role | None:
        """Probe both profile tables concurrently.

        Returns:
            The role, or None for an identity without a profile
        """
        if user_id in self._cache:
            return self._cache[user_id]

        is_eit, is_supervisor = await asyncio.gather(
            asyncio.to_thread(profiles_repository.profile_exists, "eit_profiles", user_id),
            asyncio.to_thread(profiles_repository.profile_exists, "supervisor_profiles", user_id),
        )
        if is_eit:
            role = Role.EIT
        elif is_supervisor:
            role = Role.SUPERVISOR
        else:
            role = None

        if is_eit and is_supervisor:
            logger.warning("roles.both_profiles", user_id=user_id)

        # An identity without a profile may finish signup later
        if role is not None:
            self._cache[user_id] = role
        logger.debug("roles.resolved", user_id=user_id, role=role.value if role else None)
        return role

    def invalidate(self, user_id: str) -> None:
        self._cache.pop(user_id, None)

    async def _on_auth_event(self, change: Change) -> None:
        if change.user_id:
            self.invalidate(change.user_id)
            logger.debug("roles.invalidated", user_id=change.user_id)

    async def guard(self, user_id: str | None, required_role: Role | None = None) -> RouteDecision:
        """Decide whether a route may render for the identity.

        No identity goes to /login, an identity without a profile to
        /signup, and a role mismatch to the home of the identity's role.
        """
        if not user_id:
            return RouteDecision.redirect(LOGIN_PATH)

        role = await self.resolve(user_id)
        if role is None:
            return RouteDecision.redirect(SIGNUP_PATH)

        if required_role is not None and role is not required_role:
            return RouteDecision.redirect(role.home, role)

        return RouteDecision.allow(role)

    def dispose(self) -> None:
        self._subscription.unsubscribe()
        self._cache.clear()


# Global resolver instance
_role_resolver: RoleResolver | None = None


def get_role_resolver() -> RoleResolver:
    """Get the global role resolver."""
    global _role_resolver
    if _role_resolver is None:
        _role_resolver = RoleResolver()
    return _role_resolver


def reset_role_resolver() -> None:
    """Reset the role resolver (for testing)."""
    global _role_resolver
    if _role_resolver is not None:
        _role_resolver.dispose()
    _role_resolver = None


async def guard(user_id: str | None, required_role: Role | None = None) -> RouteDecision:
    """Route guard using the global resolver."""
    return await get_role_resolver().guard(user_id, required_role)
