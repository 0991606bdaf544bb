"""Tests for experiences and supervisor approvals (F5)."""

import pytest

from accreda.core.experiences import ExperienceNotFoundError, ExperienceService, NotSupervisorError
from accreda.core.notifications import NotificationSender
from accreda.core.progress import ProgressService
from accreda.db import notifications_repository, relationships_repository


@pytest.fixture
def service(feed):
    return ExperienceService(NotificationSender(feed), feed)


def _link(eit: str, supervisor: str, status: str = "active") -> None:
    rel = relationships_repository.upsert_pending(eit, supervisor)
    if status != "pending":
        relationships_repository.update_status(rel.id, status)


class TestExperiences:
    @pytest.mark.asyncio
    async def test_add_and_list(self, make_eit, service):
        eit = make_eit()
        record = await service.add_experience(eit, "Site inspection", "Bridge deck", True)

        listed = await service.list_experiences(eit)

        assert [e.id for e in listed] == [record.id]
        assert listed[0].is_documented

    @pytest.mark.asyncio
    async def test_empty_title(self, make_eit, service):
        with pytest.raises(ValueError):
            await service.add_experience(make_eit(), " ")

    @pytest.mark.asyncio
    async def test_mark_documented(self, make_eit, service):
        eit = make_eit()
        record = await service.add_experience(eit, "Design review")

        updated = await service.mark_documented(eit, record.id)

        assert updated.is_documented
        assert (await service.list_experiences(eit))[0].is_documented

    @pytest.mark.asyncio
    async def test_mark_documented_other_eit(self, make_eit, service):
        record = await service.add_experience(make_eit(), "Design review")
        with pytest.raises(ExperienceNotFoundError):
            await service.mark_documented(make_eit(), record.id)


class TestApproval:
    @pytest.mark.asyncio
    async def test_supervisor_approves_and_notifies(self, make_eit, make_supervisor, service):
        eit, supervisor = make_eit(), make_supervisor()
        _link(eit, supervisor)
        record = await service.add_experience(eit, "Commissioning", is_documented=True)

        approved = await service.approve_experience(supervisor, record.id)

        assert approved.supervisor_approved
        assert approved.approved_by == supervisor
        notes = notifications_repository.list_notifications(eit)
        assert [n.type for n in notes] == ["approval"]
        assert "Commissioning" in notes[0].message

    @pytest.mark.asyncio
    async def test_approve_twice_notifies_once(self, make_eit, make_supervisor, service):
        eit, supervisor = make_eit(), make_supervisor()
        _link(eit, supervisor)
        record = await service.add_experience(eit, "Commissioning")

        await service.approve_experience(supervisor, record.id)
        await service.approve_experience(supervisor, record.id)

        assert len(notifications_repository.list_notifications(eit)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [None, "pending", "rejected", "completed"])
    async def test_requires_active_relationship(self, make_eit, make_supervisor, service, status):
        eit, supervisor = make_eit(), make_supervisor()
        if status is not None:
            _link(eit, supervisor, status)
        record = await service.add_experience(eit, "Commissioning")

        with pytest.raises(NotSupervisorError):
            await service.approve_experience(supervisor, record.id)

    @pytest.mark.asyncio
    async def test_unknown_experience(self, make_supervisor, service):
        with pytest.raises(ExperienceNotFoundError):
            await service.approve_experience(make_supervisor(), "missing")

    @pytest.mark.asyncio
    async def test_progress_follows_writes(self, make_eit, make_supervisor, service, feed):
        eit, supervisor = make_eit(), make_supervisor()
        _link(eit, supervisor)
        progress = ProgressService(eit, feed=feed)
        await progress.initialize()

        record = await service.add_experience(eit, "Commissioning", is_documented=True)
        await service.approve_experience(supervisor, record.id)

        assert progress.snapshot.documented_experiences == 1
        assert progress.snapshot.supervisor_approvals == 1
        progress.dispose()
