"""Supervisor reviews: skill scores, SAO feedback and nudges.

Every review needs an active relationship between the supervisor and the
EIT. A nudge may go either way along an active relationship.

    EIT: request_sao_feedback -> pending
    Supervisor: submit_sao_feedback -> submitted -> resolve_feedback -> resolved
"""

from __future__ import annotations

import asyncio

import structlog

from accreda.core.experiences import NotSupervisorError
from accreda.core.notifications import NotificationSender
from accreda.core.skills import SkillNotFoundError
from accreda.db import profiles_repository, relationships_repository, reviews_repository, saos_repository, skills_repository
from accreda.db.reviews_repository import SaoFeedbackRecord, SkillValidationRecord
from accreda.realtime.feed import Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5


class SaoNotFoundError(Exception):
    """Raised when an SAO does not exist or belongs to another EIT."""

    def __init__(self, sao_id: str):
        self.sao_id = sao_id
        super().__init__(f"SAO not found: {sao_id}")


class FeedbackNotFoundError(Exception):
    """Raised when a feedback request does not exist or is addressed to someone else."""

    def __init__(self, feedback_id: str):
        self.feedback_id = feedback_id
        super().__init__(f"Feedback request not found: {feedback_id}")


def validate_score(score: int) -> None:
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValueError(f"Score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")


class ReviewService:
    """Supervisor-side review operations."""

    def __init__(
        self,
        notifier: NotificationSender | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.feed = feed or get_change_feed()
        self.notifier = notifier or NotificationSender(self.feed)

    async def _require_active(self, eit_id: str, supervisor_id: str) -> None:
        relationship = await asyncio.to_thread(
            relationships_repository.find_relationship, eit_id, supervisor_id
        )
        if relationship is None or relationship.status != "active":
            raise NotSupervisorError(f"Supervisor {supervisor_id} does not supervise EIT {eit_id}")

    async def _display_name(self, user_id: str, fallback: str) -> str:
        profile = await asyncio.to_thread(profiles_repository.find_profile_anywhere, user_id)
        return profile.full_name if profile and profile.full_name else fallback

    # =========================================================================
    # Skill scores
    # =========================================================================

    async def score_skill(
        self,
        supervisor_id: str,
        eit_id: str,
        skill_id: str,
        score: int,
        feedback: str = "",
    ) -> SkillValidationRecord:
        """Score a skill of a supervised EIT and notify them.

        Raises:
            ValueError: If the score is outside 1..5
            SkillNotFoundError: If the skill is not in the catalog
            NotSupervisorError: If the supervisor does not actively supervise the EIT
        """
        validate_score(score)
        catalog = await asyncio.to_thread(skills_repository.get_catalog)
        skill = next((s for s in catalog if s.id == skill_id), None)
        if skill is None:
            raise SkillNotFoundError(skill_id)
        await self._require_active(eit_id, supervisor_id)

        record = await asyncio.to_thread(
            reviews_repository.insert_skill_validation,
            eit_id,
            skill_id,
            supervisor_id,
            score,
            feedback.strip(),
        )
        logger.info(
            "reviews.skill_scored",
            eit_id=eit_id,
            skill_id=skill_id,
            supervisor_id=supervisor_id,
            score=score,
        )
        await self.feed.publish(
            Change(
                "skill_validations",
                "INSERT",
                {"id": record.id, "skill_id": skill_id, "score": score},
                user_id=eit_id,
            )
        )
        await self.notifier.skill_score(eit_id, skill.name, score)
        return record

    async def list_skill_validations(self, eit_id: str) -> list[SkillValidationRecord]:
        return await asyncio.to_thread(reviews_repository.list_skill_validations, eit_id)

    # =========================================================================
    # SAO feedback
    # =========================================================================

    async def request_sao_feedback(self, eit_id: str, sao_id: str) -> SaoFeedbackRecord:
        """Ask the EIT's active supervisor for feedback on an SAO.

        Raises:
            SaoNotFoundError: If the SAO is not the EIT's
            NotSupervisorError: If the EIT has no active supervisor
        """
        sao = await asyncio.to_thread(saos_repository.get_sao, sao_id)
        if sao is None or sao.eit_id != eit_id:
            raise SaoNotFoundError(sao_id)
        relationship = await asyncio.to_thread(relationships_repository.get_active_for_eit, eit_id)
        if relationship is None:
            raise NotSupervisorError(f"EIT {eit_id} has no active supervisor")

        record = await asyncio.to_thread(
            reviews_repository.upsert_feedback_request,
            sao_id,
            eit_id,
            relationship.supervisor_id,
        )
        logger.info(
            "reviews.feedback_requested",
            sao_id=sao_id,
            supervisor_id=relationship.supervisor_id,
        )
        eit_name = await self._display_name(eit_id, "An EIT")
        await self.notifier.sao_validation_request(relationship.supervisor_id, eit_name, sao.title)
        return record

    async def list_feedback_requests(
        self, supervisor_id: str, status: str | None = None
    ) -> list[SaoFeedbackRecord]:
        return await asyncio.to_thread(
            reviews_repository.list_feedback_for_supervisor, supervisor_id, status
        )

    async def list_sao_feedback(self, eit_id: str, sao_id: str) -> list[SaoFeedbackRecord]:
        """Feedback on one of the EIT's SAOs.

        Raises:
            SaoNotFoundError: If the SAO is not the EIT's
        """
        sao = await asyncio.to_thread(saos_repository.get_sao, sao_id)
        if sao is None or sao.eit_id != eit_id:
            raise SaoNotFoundError(sao_id)
        return await asyncio.to_thread(reviews_repository.list_feedback_for_sao, sao_id)

    async def _own_feedback(self, supervisor_id: str, feedback_id: str) -> SaoFeedbackRecord:
        record = await asyncio.to_thread(reviews_repository.get_feedback, feedback_id)
        if record is None or record.supervisor_id != supervisor_id:
            raise FeedbackNotFoundError(feedback_id)
        return record

    async def submit_sao_feedback(
        self,
        supervisor_id: str,
        feedback_id: str,
        feedback: str,
        score: int | None = None,
    ) -> SaoFeedbackRecord:
        """Answer a feedback request and notify the EIT.

        A score, when given, also sends an SAO score notification.

        Raises:
            FeedbackNotFoundError: If the request is not addressed to the supervisor
            NotSupervisorError: If the relationship is no longer active
            ValueError: If the feedback is empty or the score is outside 1..5
        """
        if not feedback.strip():
            raise ValueError("Feedback is required")
        if score is not None:
            validate_score(score)

        record = await self._own_feedback(supervisor_id, feedback_id)
        await self._require_active(record.eit_id, supervisor_id)

        await asyncio.to_thread(
            reviews_repository.submit_feedback, feedback_id, feedback.strip(), score
        )
        record.feedback = feedback.strip()
        record.score = score
        record.status = "submitted"
        logger.info("reviews.feedback_submitted", feedback_id=feedback_id, sao_id=record.sao_id)

        sao = await asyncio.to_thread(saos_repository.get_sao, record.sao_id)
        sao_title = sao.title if sao is not None else "your SAO"
        reviewer_name = await self._display_name(supervisor_id, "Your supervisor")
        await self.notifier.sao_feedback(record.eit_id, reviewer_name, sao_title)
        if score is not None:
            await self.notifier.sao_score(record.eit_id, sao_title, score)
        return record

    async def resolve_feedback(self, supervisor_id: str, feedback_id: str) -> SaoFeedbackRecord:
        """Close a feedback request.

        Raises:
            FeedbackNotFoundError: If the request is not addressed to the supervisor
        """
        record = await self._own_feedback(supervisor_id, feedback_id)
        if record.status != "resolved":
            await asyncio.to_thread(reviews_repository.set_feedback_status, feedback_id, "resolved")
            record.status = "resolved"
            logger.info("reviews.feedback_resolved", feedback_id=feedback_id)
        return record

    # =========================================================================
    # Nudges
    # =========================================================================

    async def nudge(self, sender_id: str, recipient_id: str) -> None:
        """Nudge the other party of an active relationship.

        Raises:
            NotSupervisorError: If the two are not actively linked
        """
        linked = await asyncio.to_thread(_actively_linked, sender_id, recipient_id)
        if not linked:
            raise NotSupervisorError(f"{sender_id} and {recipient_id} are not connected")

        sender_name = await self._display_name(sender_id, "Someone")
        await self.notifier.nudge(recipient_id, sender_name)
        logger.info("reviews.nudged", sender_id=sender_id, recipient_id=recipient_id)


def _actively_linked(first: str, second: str) -> bool:
    for eit_id, supervisor_id in ((first, second), (second, first)):
        relationship = relationships_repository.find_relationship(eit_id, supervisor_id)
        if relationship is not None and relationship.status == "active":
            return True
    return False
