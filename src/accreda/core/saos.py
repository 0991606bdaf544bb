"""SAOs and skill validators.

An SAO (Situation-Action-Outcome) is a narrative linked to one or more
catalog skills. The number of SAOs an EIT may write is capped by the
subscription tier.
"""

from __future__ import annotations

import asyncio

import structlog

from accreda.backend.functions import FunctionInvocationError, FunctionsClient
from accreda.config.app_config import get_plan_limits
from accreda.core.notifications import NotificationSender
from accreda.db import profiles_repository, saos_repository, skills_repository, subscriptions_repository
from accreda.db.saos_repository import SaoRecord, ValidatorRecord
from accreda.realtime.feed import Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)


class SaoLimitError(Exception):
    """Raised when the tier's SAO limit is reached."""

    def __init__(self, tier: str, limit: int):
        self.tier = tier
        self.limit = limit
        super().__init__(f"SAO limit reached for the {tier} plan ({limit})")


class SaoService:
    """SAOs and validators of one EIT."""

    def __init__(
        self,
        eit_id: str,
        functions: FunctionsClient | None = None,
        notifier: NotificationSender | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.eit_id = eit_id
        self.feed = feed or get_change_feed()
        self.functions = functions or FunctionsClient()
        self.notifier = notifier or NotificationSender(self.feed)

    async def _catalog_names(self) -> dict[str, str]:
        catalog = await asyncio.to_thread(skills_repository.get_catalog)
        return {skill.id: skill.name for skill in catalog}

    async def create_sao(
        self,
        title: str,
        situation: str,
        action: str,
        outcome: str,
        employer: str = "",
        skill_ids: list[str] | None = None,
    ) -> SaoRecord:
        """Write an SAO linked to catalog skills.

        Raises:
            ValueError: If the title is empty or a skill id is unknown
            SaoLimitError: If the tier's SAO limit is reached
        """
        if not title.strip():
            raise ValueError("SAO title is required")
        skill_ids = list(dict.fromkeys(skill_ids or []))
        known = await self._catalog_names()
        unknown = [s for s in skill_ids if s not in known]
        if unknown:
            raise ValueError(f"Unknown skills: {unknown}")

        tier, count = await asyncio.gather(
            asyncio.to_thread(subscriptions_repository.get_tier, self.eit_id),
            asyncio.to_thread(saos_repository.count_saos, self.eit_id),
        )
        limit = get_plan_limits(tier).sao_limit
        if count >= limit:
            logger.info("saos.limit_reached", eit_id=self.eit_id, tier=tier, limit=limit)
            raise SaoLimitError(tier, limit)

        record = await asyncio.to_thread(
            saos_repository.insert_sao,
            self.eit_id,
            title.strip(),
            situation,
            action,
            outcome,
            employer,
            skill_ids,
        )
        logger.info("saos.created", eit_id=self.eit_id, sao_id=record.id, skills=len(skill_ids))
        await self.feed.publish(
            Change("saos", "INSERT", {"id": record.id, "title": record.title}, user_id=self.eit_id)
        )
        return record

    async def list_saos(self) -> list[SaoRecord]:
        return await asyncio.to_thread(saos_repository.list_saos, self.eit_id)

    async def delete_sao(self, sao_id: str) -> bool:
        deleted = await asyncio.to_thread(saos_repository.delete_sao, sao_id, self.eit_id)
        if deleted:
            logger.info("saos.deleted", eit_id=self.eit_id, sao_id=sao_id)
        return deleted

    async def list_validators(self) -> list[ValidatorRecord]:
        return await asyncio.to_thread(saos_repository.list_validators, self.eit_id)

    async def request_validation(
        self,
        skill_id: str,
        first_name: str,
        last_name: str,
        email: str,
    ) -> ValidatorRecord:
        """Record a validator for a skill and invite them.

        The invitation email is best-effort. A validator who is also a
        registered supervisor gets a validation-request notification.

        Raises:
            ValueError: If the skill is unknown or the email is empty
        """
        known = await self._catalog_names()
        if skill_id not in known:
            raise ValueError(f"Unknown skill: {skill_id}")
        if not email.strip():
            raise ValueError("Validator email is required")

        validator = await asyncio.to_thread(
            saos_repository.insert_validator,
            self.eit_id,
            skill_id,
            first_name.strip(),
            last_name.strip(),
            email.strip(),
        )
        logger.info("validators.requested", eit_id=self.eit_id, validator_id=validator.id)

        eit = await asyncio.to_thread(profiles_repository.get_profile, "eit_profiles", self.eit_id)
        eit_name = eit.full_name if eit and eit.full_name else "An EIT"
        skill_name = known[skill_id]

        try:
            await self.functions.send_validator_invite(
                validator.id, validator.email, validator.token, eit_name, skill_name
            )
        except FunctionInvocationError as e:
            logger.error("validators.invite_failed", validator_id=validator.id, error=str(e))

        supervisor = await asyncio.to_thread(
            profiles_repository.find_supervisor_by_email, validator.email
        )
        if supervisor is not None:
            await self.notifier.validation_request(supervisor.id, eit_name, skill_name)

        return validator
