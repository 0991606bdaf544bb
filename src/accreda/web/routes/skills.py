"""Skill tree endpoints."""

from fastapi import APIRouter, Depends, Query

from accreda.core.roles import Role
from accreda.web.deps import get_identity_services, require_role
from accreda.web.schemas import SkillRankUpdate, SkillResponse, SkillsResponse
from accreda.web.services import IdentityServices

router = APIRouter(
    prefix="/api/skills",
    tags=["skills"],
    dependencies=[Depends(require_role(Role.EIT))],
)


@router.get("", response_model=SkillsResponse)
async def list_skills(
    force: bool = Query(default=False),
    services: IdentityServices = Depends(get_identity_services),
) -> SkillsResponse:
    categories = await services.skills.load_user_skills(force=force)
    return SkillsResponse(
        categories=[c.to_dict() for c in categories],
        completed=services.skills.completed_count(),
    )


@router.put("/{skill_id}/rank", response_model=SkillResponse)
async def update_rank(
    skill_id: str,
    body: SkillRankUpdate,
    services: IdentityServices = Depends(get_identity_services),
) -> SkillResponse:
    """Set or clear the rank of a skill."""
    skill = await services.skills.update_skill_rank(skill_id, body.rank)
    return SkillResponse(**skill.to_dict())
