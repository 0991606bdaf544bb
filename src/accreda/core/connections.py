"""Connection (relationship) manager.

EIT -> Supervisor link workflow:

    request_connection -> pending -> accept -> active
                                  -> deny   -> rejected

A request is checked against existing rows, the supervisor's tier
capacity and the EIT's own supervisor allowance before anything is
written. Both limits are checked again on accept.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import structlog

from accreda.config.app_config import ConnectionsConfig, get_plan_limits, load_app_config
from accreda.core.notifications import NotificationSender
from accreda.db import profiles_repository, relationships_repository, subscriptions_repository
from accreda.db.profiles_repository import ProfileRecord
from accreda.db.relationships_repository import RelationshipRecord
from accreda.realtime.feed import Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)


class ConnectionStatus(str, Enum):
    SENT = "sent"
    ALREADY_PENDING = "already_pending"
    ALREADY_ACTIVE = "already_active"
    LIMIT_REACHED = "limit_reached"
    SUPERVISOR_LIMIT_REACHED = "supervisor_limit_reached"
    SUPERVISOR_NOT_FOUND = "supervisor_not_found"


@dataclass
class ConnectionResult:
    """Outcome of a connection request."""

    status: ConnectionStatus
    relationship: RelationshipRecord | None = None
    supervisor: ProfileRecord | None = None

    @property
    def ok(self) -> bool:
        return self.status is ConnectionStatus.SENT


class RelationshipNotFoundError(Exception):
    """Raised when a relationship id does not exist."""

    def __init__(self, relationship_id: str):
        self.relationship_id = relationship_id
        super().__init__(f"Relationship not found: {relationship_id}")


class InvalidTransitionError(Exception):
    """Raised when a relationship is not in a state that allows the change."""

    def __init__(self, relationship_id: str, current: str, target: str):
        self.relationship_id = relationship_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot move relationship {relationship_id} from {current} to {target}")


class ConnectionLimitError(Exception):
    """Raised when accepting would exceed a plan limit.

    Attributes:
        user_id: Identity whose limit is reached
        limit: The plan limit
    """

    def __init__(self, relationship_id: str, user_id: str, limit: int):
        self.relationship_id = relationship_id
        self.user_id = user_id
        self.limit = limit
        super().__init__(f"Connection limit of {limit} reached for {user_id}")


# Allowed status changes
TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"active", "rejected"}),
    "active": frozenset({"completed"}),
    "completed": frozenset(),
    "rejected": frozenset(),
}


def supervisor_capacity(supervisor_id: str) -> int:
    """EIT limit of the supervisor's subscription tier."""
    tier = subscriptions_repository.get_tier(supervisor_id)
    return get_plan_limits(tier).eit_limit


def eit_supervisor_allowance(eit_id: str) -> int:
    """Number of active supervisors the EIT's tier allows."""
    tier = subscriptions_repository.get_tier(eit_id)
    return get_plan_limits(tier).supervisor_limit


class ConnectionManager:
    """Request, accept, deny and complete supervisor connections."""

    def __init__(
        self,
        notifier: NotificationSender | None = None,
        feed: ChangeFeed | None = None,
        config: ConnectionsConfig | None = None,
    ):
        self.feed = feed or get_change_feed()
        self.notifier = notifier or NotificationSender(self.feed)
        self.config = config or load_app_config().connections

    async def request_connection(self, eit_id: str, supervisor_email: str) -> ConnectionResult:
        """Ask a supervisor, found by exact email, to supervise an EIT."""
        supervisor = await asyncio.to_thread(
            profiles_repository.find_supervisor_by_email, supervisor_email
        )
        if supervisor is None:
            logger.info("connections.supervisor_not_found", eit_id=eit_id)
            return ConnectionResult(ConnectionStatus.SUPERVISOR_NOT_FOUND)

        existing = await asyncio.to_thread(
            relationships_repository.find_relationship, eit_id, supervisor.id
        )
        if existing is not None and existing.status == "pending":
            return ConnectionResult(ConnectionStatus.ALREADY_PENDING, existing, supervisor)
        if existing is not None and existing.status == "active":
            return ConnectionResult(ConnectionStatus.ALREADY_ACTIVE, existing, supervisor)

        (active, capacity), (supervised, allowance) = await self._usage(eit_id, supervisor.id)
        if active >= capacity:
            logger.info(
                "connections.limit_reached",
                supervisor_id=supervisor.id,
                active=active,
                capacity=capacity,
            )
            return ConnectionResult(ConnectionStatus.LIMIT_REACHED, existing, supervisor)
        if supervised >= allowance:
            logger.info(
                "connections.supervisor_limit_reached",
                eit_id=eit_id,
                active=supervised,
                allowance=allowance,
            )
            return ConnectionResult(ConnectionStatus.SUPERVISOR_LIMIT_REACHED, existing, supervisor)

        relationship = await asyncio.to_thread(
            relationships_repository.upsert_pending, eit_id, supervisor.id
        )
        logger.info(
            "connections.requested",
            relationship_id=relationship.id,
            eit_id=eit_id,
            supervisor_id=supervisor.id,
        )
        await self._publish(relationship, "INSERT" if existing is None else "UPDATE")

        eit = await asyncio.to_thread(profiles_repository.get_profile, "eit_profiles", eit_id)
        eit_name = eit.full_name if eit and eit.full_name else "An EIT"
        await self.notifier.supervisor_request(supervisor.id, eit_name)

        return ConnectionResult(ConnectionStatus.SENT, relationship, supervisor)

    async def _usage(
        self, eit_id: str, supervisor_id: str
    ) -> tuple[tuple[int, int], tuple[int, int]]:
        """(active EITs, capacity) of the supervisor and (active supervisors, allowance) of the EIT."""
        active, capacity, supervised, allowance = await asyncio.gather(
            asyncio.to_thread(relationships_repository.count_active_for_supervisor, supervisor_id),
            asyncio.to_thread(supervisor_capacity, supervisor_id),
            asyncio.to_thread(relationships_repository.count_active_for_eit, eit_id),
            asyncio.to_thread(eit_supervisor_allowance, eit_id),
        )
        return (active, capacity), (supervised, allowance)

    async def accept(
        self, relationship_id: str, supervisor_id: str | None = None
    ) -> RelationshipRecord:
        """Move a pending request to active and tell the EIT.

        Both plan limits are checked again, since several requests may be
        pending at once.

        Raises:
            RelationshipNotFoundError: If the relationship does not exist
            InvalidTransitionError: If the relationship is not pending
            ConnectionLimitError: If either side is at its plan limit
        """
        relationship = await self._load(relationship_id, supervisor_id)
        self._check_transition(relationship, "active")

        (active, capacity), (supervised, allowance) = await self._usage(
            relationship.eit_id, relationship.supervisor_id
        )
        if active >= capacity:
            raise ConnectionLimitError(relationship_id, relationship.supervisor_id, capacity)
        if supervised >= allowance:
            raise ConnectionLimitError(relationship_id, relationship.eit_id, allowance)

        await self._apply(relationship, "active")
        supervisor_name = await self._supervisor_name(relationship.supervisor_id)
        await self.notifier.connection_accepted(relationship.eit_id, supervisor_name)
        return relationship

    async def deny(
        self, relationship_id: str, supervisor_id: str | None = None
    ) -> RelationshipRecord:
        """Move a pending request to rejected.

        The EIT is notified only when connections.notify_on_deny is set.

        Raises:
            RelationshipNotFoundError: If the relationship does not exist
            InvalidTransitionError: If the relationship is not pending
        """
        relationship = await self._load(relationship_id, supervisor_id)
        self._check_transition(relationship, "rejected")
        await self._apply(relationship, "rejected")
        if self.config.notify_on_deny:
            supervisor_name = await self._supervisor_name(relationship.supervisor_id)
            await self.notifier.connection_denied(relationship.eit_id, supervisor_name)
        return relationship

    async def complete(self, relationship_id: str, user_id: str | None = None) -> RelationshipRecord:
        """End an active supervision. Either party may end it.

        Raises:
            RelationshipNotFoundError: If the relationship does not exist or
                ``user_id`` is neither of its parties
            InvalidTransitionError: If the relationship is not active
        """
        relationship = await self._load(relationship_id)
        if user_id is not None and user_id not in (relationship.eit_id, relationship.supervisor_id):
            raise RelationshipNotFoundError(relationship_id)
        self._check_transition(relationship, "completed")
        return await self._apply(relationship, "completed")

    async def _load(
        self, relationship_id: str, supervisor_id: str | None = None
    ) -> RelationshipRecord:
        relationship = await asyncio.to_thread(
            relationships_repository.get_relationship, relationship_id
        )
        # Another supervisor's request is reported as missing
        if relationship is None or (
            supervisor_id is not None and relationship.supervisor_id != supervisor_id
        ):
            raise RelationshipNotFoundError(relationship_id)
        return relationship

    @staticmethod
    def _check_transition(relationship: RelationshipRecord, target: str) -> None:
        if target not in TRANSITIONS.get(relationship.status, frozenset()):
            raise InvalidTransitionError(relationship.id, relationship.status, target)

    async def _apply(self, relationship: RelationshipRecord, target: str) -> RelationshipRecord:
        await asyncio.to_thread(relationships_repository.update_status, relationship.id, target)
        relationship.status = target
        logger.info(
            "connections.status_changed",
            relationship_id=relationship.id,
            status=target,
        )
        await self._publish(relationship, "UPDATE")
        return relationship

    async def _publish(self, relationship: RelationshipRecord, event: str) -> None:
        row = {
            "id": relationship.id,
            "eit_id": relationship.eit_id,
            "supervisor_id": relationship.supervisor_id,
            "status": relationship.status,
        }
        # Both ends watch the same row
        for user_id in (relationship.eit_id, relationship.supervisor_id):
            await self.feed.publish(
                Change("supervisor_eit_relationships", event, row, user_id=user_id)
            )

    async def _supervisor_name(self, supervisor_id: str) -> str:
        profile = await asyncio.to_thread(
            profiles_repository.get_profile, "supervisor_profiles", supervisor_id
        )
        return profile.full_name if profile and profile.full_name else "Your supervisor"

    async def list_pending(self, supervisor_id: str) -> list[RelationshipRecord]:
        return await asyncio.to_thread(
            relationships_repository.list_for_supervisor, supervisor_id, "pending"
        )

    async def list_active_eits(self, supervisor_id: str) -> list[ProfileRecord]:
        """Profiles of the EITs a supervisor currently supervises."""

        def _load() -> list[ProfileRecord]:
            rows = relationships_repository.list_for_supervisor(supervisor_id, "active")
            profiles = (profiles_repository.get_profile("eit_profiles", r.eit_id) for r in rows)
            return [p for p in profiles if p is not None]

        return await asyncio.to_thread(_load)

    async def active_supervisor(self, eit_id: str) -> ProfileRecord | None:
        """Profile of the EIT's current supervisor, if any."""

        def _load() -> ProfileRecord | None:
            relationship = relationships_repository.get_active_for_eit(eit_id)
            if relationship is None:
                return None
            return profiles_repository.get_profile("supervisor_profiles", relationship.supervisor_id)

        return await asyncio.to_thread(_load)

    async def active_relationship(self, eit_id: str) -> RelationshipRecord | None:
        """The EIT's current active relationship, if any."""
        return await asyncio.to_thread(relationships_repository.get_active_for_eit, eit_id)
