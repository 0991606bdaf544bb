"""Skills Store.

Builds the category -> skill tree for one EIT from the catalog and the
EIT's rank rows. A skill is completed when its rank is defined.
"""

from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from accreda.db import skills_repository
from accreda.db.skills_repository import CatalogSkill, EitSkillRecord
from accreda.realtime.feed import Change, ChangeFeed, get_change_feed

logger = structlog.get_logger(__name__)

MIN_RANK = 0
MAX_RANK = 5


class SkillNotFoundError(Exception):
    """Raised when a skill id is not in the catalog."""

    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(f"Skill not found: {skill_id}")


@dataclass
class Skill:
    """A skill with the EIT's rank."""

    id: str
    code: str
    name: str
    category_name: str
    rank: int | None = None
    status: str = "not-started"

    @property
    def completed(self) -> bool:
        return self.rank is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "category_name": self.category_name,
            "rank": self.rank,
            "status": self.status,
            "completed": self.completed,
        }


@dataclass
class SkillCategory:
    """Ordered skills of one category."""

    name: str
    skills: list[Skill] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.skills)

    @property
    def completed(self) -> int:
        return sum(1 for s in self.skills if s.completed)

    @property
    def percentage(self) -> int:
        """Completion percentage; an empty category counts as 0."""
        if self.total == 0:
            return 0
        return round(100 * self.completed / self.total)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "completed": self.completed,
            "total": self.total,
            "percentage": self.percentage,
            "skills": [s.to_dict() for s in self.skills],
        }


def validate_rank(rank: int | None) -> None:
    """Check a rank is None or an integer from 0 to 5.

    Raises:
        ValueError: If the rank is out of range
    """
    if rank is None:
        return
    if isinstance(rank, bool) or not isinstance(rank, int) or not MIN_RANK <= rank <= MAX_RANK:
        raise ValueError(f"Rank must be between {MIN_RANK} and {MAX_RANK}, got {rank!r}")


def build_category_tree(
    catalog: list[CatalogSkill], ranks: list[EitSkillRecord]
) -> list[SkillCategory]:
    """Group catalog skills by category, in catalog order, with ranks."""
    by_skill = {r.skill_id: r for r in ranks}
    categories: dict[str, SkillCategory] = {}
    for entry in catalog:
        category = categories.setdefault(entry.category, SkillCategory(name=entry.category))
        rank_row = by_skill.get(entry.id)
        category.skills.append(
            Skill(
                id=entry.id,
                code=entry.code,
                name=entry.name,
                category_name=entry.category,
                rank=rank_row.rank if rank_row else None,
                status=rank_row.status if rank_row else "not-started",
            )
        )
    return list(categories.values())


class SkillsService:
    """Skill tree of one EIT."""

    def __init__(self, user_id: str, feed: ChangeFeed | None = None):
        self.user_id = user_id
        self.feed = feed or get_change_feed()
        self.categories: list[SkillCategory] = []
        self.error: str | None = None

    @property
    def loaded(self) -> bool:
        return bool(self.categories)

    async def load_user_skills(self, force: bool = False) -> list[SkillCategory]:
        """Load the tree unless it is already loaded.

        A first load for an EIT without rank rows seeds one unranked row per
        catalog skill. On backend errors the previous tree is kept and the
        error is recorded.
        """
        if self.categories and not force:
            return self.categories

        try:
            categories = await asyncio.to_thread(self._load_tree)
        except sqlite3.Error as e:
            self.error = f"Failed to load skills: {e}"
            logger.error("skills.load_failed", user_id=self.user_id, error=str(e))
            return self.categories

        self.categories = categories
        self.error = None
        logger.debug(
            "skills.loaded",
            user_id=self.user_id,
            categories=len(categories),
            completed=self.completed_count(),
        )
        return self.categories

    def _load_tree(self) -> list[SkillCategory]:
        catalog = skills_repository.get_catalog()
        ranks = skills_repository.get_eit_skills(self.user_id)
        if not ranks and catalog:
            skills_repository.seed_eit_skills(self.user_id, [s.id for s in catalog])
            ranks = skills_repository.get_eit_skills(self.user_id)
        return build_category_tree(catalog, ranks)

    async def refresh(self) -> list[SkillCategory]:
        return await self.load_user_skills(force=True)

    def find_skill(self, skill_id: str) -> Skill | None:
        for category in self.categories:
            for skill in category.skills:
                if skill.id == skill_id:
                    return skill
        return None

    async def update_skill_rank(self, skill_id: str, rank: int | None) -> Skill:
        """Set (or clear) the rank of a skill and publish the change.

        Raises:
            ValueError: If the rank is out of range
            SkillNotFoundError: If the skill is not in the catalog
        """
        validate_rank(rank)
        await self.load_user_skills()

        skill = self.find_skill(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)

        record = await asyncio.to_thread(
            skills_repository.upsert_eit_skill, self.user_id, skill_id, rank
        )
        skill.rank = record.rank
        skill.status = record.status

        logger.info("skills.rank_updated", user_id=self.user_id, skill_id=skill_id, rank=rank)
        await self.feed.publish(
            Change(
                "eit_skills",
                "UPDATE",
                {"user_id": self.user_id, "skill_id": skill_id, "rank": rank},
            )
        )
        return skill

    def completed_count(self) -> int:
        return sum(c.completed for c in self.categories)

    def category_progress(self) -> list[dict[str, Any]]:
        return [
            {
                "name": c.name,
                "completed": c.completed,
                "total": c.total,
                "percentage": c.percentage,
            }
            for c in self.categories
        ]
