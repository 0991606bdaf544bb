"""Per-identity service registry for the Web API.

Holds the services that carry state for one signed-in identity (skills
tree, progress snapshot, notification list) and the shared, stateless
ones. Services of an identity are disposed when it signs out.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from accreda.backend.functions import FunctionsClient
from accreda.backend.storage import AvatarStorage
from accreda.core.accounts import AccountService
from accreda.core.connections import ConnectionManager
from accreda.core.email import EmailNotifier
from accreda.core.experiences import ExperienceService
from accreda.core.notifications import NotificationCenter, NotificationSender
from accreda.core.progress import ProgressService
from accreda.core.reviews import ReviewService
from accreda.core.roles import RoleResolver
from accreda.core.saos import SaoService
from accreda.core.settings import SettingsService
from accreda.core.skills import SkillsService
from accreda.realtime.feed import AUTH_CHANNEL, Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)


@dataclass
class IdentityServices:
    """Stateful services bound to one identity."""

    user_id: str
    skills: SkillsService
    progress: ProgressService
    notifications: NotificationCenter
    settings: SettingsService
    saos: SaoService

    def dispose(self) -> None:
        self.progress.dispose()
        self.notifications.dispose()


class ServiceRegistry:
    """Creates and caches services per identity."""

    def __init__(
        self,
        feed: ChangeFeed | None = None,
        functions: FunctionsClient | None = None,
        storage: AvatarStorage | None = None,
    ):
        self.feed = feed or get_change_feed()
        self.functions = functions or FunctionsClient()
        self.storage = storage or AvatarStorage()
        self.roles = RoleResolver(self.feed)
        self.accounts = AccountService(self.feed)
        self.notifier = NotificationSender(self.feed, EmailNotifier(self.functions))
        self.connections = ConnectionManager(self.notifier, self.feed)
        self.experiences = ExperienceService(self.notifier, self.feed)
        self.reviews = ReviewService(self.notifier, self.feed)
        self._identities: dict[str, IdentityServices] = {}
        self._lock = asyncio.Lock()
        self._auth_subscription = self.feed.subscribe(
            AUTH_CHANNEL, self._on_signed_out, events={"SIGNED_OUT"}
        )

    async def for_user(self, user_id: str) -> IdentityServices:
        """Get the services of an identity, creating them on first use."""
        async with self._lock:
            services = self._identities.get(user_id)
            if services is None:
                skills = SkillsService(user_id, self.feed)
                services = IdentityServices(
                    user_id=user_id,
                    skills=skills,
                    progress=ProgressService(user_id, skills, self.feed),
                    notifications=NotificationCenter(user_id, self.feed),
                    settings=SettingsService(
                        user_id,
                        accounts=self.accounts,
                        functions=self.functions,
                        storage=self.storage,
                        roles=self.roles,
                        feed=self.feed,
                    ),
                    saos=SaoService(user_id, self.functions, self.notifier, self.feed),
                )
                self._identities[user_id] = services
                logger.debug("services.created", user_id=user_id)
            return services

    async def drop(self, user_id: str) -> bool:
        """Dispose and forget the services of an identity."""
        async with self._lock:
            services = self._identities.pop(user_id, None)
        if services is None:
            return False
        services.dispose()
        logger.debug("services.disposed", user_id=user_id)
        return True

    async def _on_signed_out(self, change: Change) -> None:
        if change.user_id:
            await self.drop(change.user_id)

    @property
    def identity_count(self) -> int:
        return len(self._identities)

    def close(self) -> None:
        """Dispose every identity and stop listening for auth events."""
        for services in self._identities.values():
            services.dispose()
        self._identities.clear()
        self._auth_subscription.unsubscribe()
        self.roles.dispose()


# Global registry instance
_service_registry: ServiceRegistry | None = None


def get_service_registry() -> ServiceRegistry:
    """Get the global service registry."""
    global _service_registry
    if _service_registry is None:
        _service_registry = ServiceRegistry()
    return _service_registry


def reset_service_registry() -> None:
    """Reset the service registry (for testing)."""
    global _service_registry
    if _service_registry is not None:
        _service_registry.close()
    _service_registry = None
