"""Tests for the Skills Store (F2)."""

import sqlite3

import pytest

from accreda.core.catalog import skill_id_for
from accreda.core.skills import (
    SkillCategory,
    SkillNotFoundError,
    SkillsService,
    validate_rank,
)
from accreda.db import skills_repository


class TestSkillCategory:
    """Tests for category percentages."""

    def test_empty_category_is_zero_percent(self):
        assert SkillCategory(name="Empty").percentage == 0


class TestValidateRank:
    @pytest.mark.parametrize("rank", [None, 0, 3, 5])
    def test_valid(self, rank):
        validate_rank(rank)

    @pytest.mark.parametrize("rank", [-1, 6, True, 2.5])
    def test_invalid(self, rank):
        with pytest.raises(ValueError):
            validate_rank(rank)


class TestLoadUserSkills:
    """Tests for SkillsService.load_user_skills."""

    @pytest.mark.asyncio
    async def test_first_load_seeds_unranked_rows(self, make_eit, feed):
        eit = make_eit()
        service = SkillsService(eit, feed)

        categories = await service.load_user_skills()

        assert len(categories) == 6
        assert sum(c.total for c in categories) == 22
        assert service.completed_count() == 0
        assert len(skills_repository.get_eit_skills(eit)) == 22

    @pytest.mark.asyncio
    async def test_completed_means_rank_defined(self, make_eit, feed):
        eit = make_eit()
        skills_repository.seed_eit_skills(eit, [s.id for s in skills_repository.get_catalog()])
        skills_repository.upsert_eit_skill(eit, skill_id_for("1.1"), 0)
        skills_repository.upsert_eit_skill(eit, skill_id_for("2.1"), 5)

        service = SkillsService(eit, feed)
        await service.load_user_skills()

        assert service.completed_count() == 2
        progress = {c["name"]: c for c in service.category_progress()}
        technical = progress["Category 1 – Technical Competence"]
        assert technical["completed"] == 1
        assert technical["total"] == 10
        assert technical["percentage"] == 10

    @pytest.mark.asyncio
    async def test_skips_reload_unless_forced(self, make_eit, feed):
        eit = make_eit()
        service = SkillsService(eit, feed)
        first = await service.load_user_skills()

        skills_repository.upsert_eit_skill(eit, skill_id_for("1.1"), 3)

        assert await service.load_user_skills() is first
        assert service.completed_count() == 0
        await service.load_user_skills(force=True)
        assert service.completed_count() == 1

    @pytest.mark.asyncio
    async def test_backend_error_keeps_stale_tree(self, make_eit, feed, monkeypatch):
        eit = make_eit()
        service = SkillsService(eit, feed)
        loaded = await service.load_user_skills()

        def fail(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(skills_repository, "get_catalog", fail)
        result = await service.load_user_skills(force=True)

        assert result is loaded
        assert service.error is not None
        assert "locked" in service.error


class TestUpdateSkillRank:
    """Tests for SkillsService.update_skill_rank."""

    @pytest.mark.asyncio
    async def test_updates_tree_and_publishes(self, make_eit, feed):
        eit = make_eit()
        changes = []

        async def on_change(change):
            changes.append(change)

        feed.subscribe("eit_skills", on_change, user_id=eit)
        service = SkillsService(eit, feed)

        skill = await service.update_skill_rank(skill_id_for("3.1"), 4)

        assert skill.rank == 4
        assert skill.completed
        assert service.completed_count() == 1
        assert len(changes) == 1
        assert changes[0].row["skill_id"] == skill_id_for("3.1")

    @pytest.mark.asyncio
    async def test_rejects_out_of_range(self, make_eit, feed):
        service = SkillsService(make_eit(), feed)
        with pytest.raises(ValueError):
            await service.update_skill_rank(skill_id_for("1.1"), 9)

    @pytest.mark.asyncio
    async def test_unknown_skill(self, make_eit, feed):
        service = SkillsService(make_eit(), feed)
        with pytest.raises(SkillNotFoundError):
            await service.update_skill_rank("skill-9.9", 2)
