"""Documented experiences and supervisor approvals.

Both counts feed the progress score; every write publishes an
``experiences`` change for the owning EIT.
"""

from __future__ import annotations

import asyncio

import structlog

from accreda.core.notifications import NotificationSender
from accreda.db import experiences_repository, relationships_repository
from accreda.db.experiences_repository import ExperienceRecord
from accreda.realtime.feed import Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)


class ExperienceNotFoundError(Exception):
    """Raised when an experience id does not exist."""

    def __init__(self, experience_id: str):
        self.experience_id = experience_id
        super().__init__(f"Experience not found: {experience_id}")


class NotSupervisorError(Exception):
    """Raised when a supervisor has no active relationship with the EIT."""

    pass


class ExperienceService:
    def __init__(
        self,
        notifier: NotificationSender | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.feed = feed or get_change_feed()
        self.notifier = notifier or NotificationSender(self.feed)

    async def _publish(self, record: ExperienceRecord, event: str) -> None:
        await self.feed.publish(
            Change(
                "experiences",
                event,
                {
                    "id": record.id,
                    "user_id": record.user_id,
                    "is_documented": record.is_documented,
                    "supervisor_approved": record.supervisor_approved,
                },
            )
        )

    async def _get(self, experience_id: str) -> ExperienceRecord:
        record = await asyncio.to_thread(experiences_repository.get_experience, experience_id)
        if record is None:
            raise ExperienceNotFoundError(experience_id)
        return record

    async def add_experience(
        self,
        user_id: str,
        title: str,
        description: str = "",
        is_documented: bool = False,
    ) -> ExperienceRecord:
        if not title.strip():
            raise ValueError("Experience title is required")
        record = await asyncio.to_thread(
            experiences_repository.insert_experience,
            user_id,
            title.strip(),
            description,
            is_documented,
        )
        logger.info("experiences.added", user_id=user_id, experience_id=record.id)
        await self._publish(record, "INSERT")
        return record

    async def list_experiences(self, user_id: str) -> list[ExperienceRecord]:
        return await asyncio.to_thread(experiences_repository.list_experiences, user_id)

    async def mark_documented(
        self, user_id: str, experience_id: str, documented: bool = True
    ) -> ExperienceRecord:
        """Flag an EIT's own experience as documented.

        Raises:
            ExperienceNotFoundError: If the experience is not the EIT's
        """
        record = await self._get(experience_id)
        if record.user_id != user_id:
            raise ExperienceNotFoundError(experience_id)

        await asyncio.to_thread(experiences_repository.set_documented, experience_id, documented)
        record.is_documented = documented
        logger.info("experiences.documented", experience_id=experience_id, documented=documented)
        await self._publish(record, "UPDATE")
        return record

    async def approve_experience(self, supervisor_id: str, experience_id: str) -> ExperienceRecord:
        """Approve an experience of a supervised EIT and notify them.

        Raises:
            ExperienceNotFoundError: If the experience does not exist
            NotSupervisorError: If the supervisor does not actively supervise the EIT
        """
        record = await self._get(experience_id)
        relationship = await asyncio.to_thread(
            relationships_repository.find_relationship, record.user_id, supervisor_id
        )
        if relationship is None or relationship.status != "active":
            raise NotSupervisorError(
                f"Supervisor {supervisor_id} does not supervise EIT {record.user_id}"
            )

        if not record.supervisor_approved:
            await asyncio.to_thread(experiences_repository.approve, experience_id, supervisor_id)
            record.supervisor_approved = True
            record.approved_by = supervisor_id
            logger.info(
                "experiences.approved",
                experience_id=experience_id,
                supervisor_id=supervisor_id,
            )
            await self._publish(record, "UPDATE")
            await self.notifier.skill_approval(record.user_id, record.title)

        return record
