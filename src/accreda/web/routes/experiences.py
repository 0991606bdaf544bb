"""Experience endpoints."""

from fastapi import APIRouter, Depends, status

from accreda.core.accounts import Session
from accreda.core.roles import Role
from accreda.web.deps import get_registry, require_role
from accreda.web.schemas import ExperienceCreate, ExperienceResponse
from accreda.web.services import ServiceRegistry

router = APIRouter(prefix="/api/experiences", tags=["experiences"])

eit_only = require_role(Role.EIT)
supervisor_only = require_role(Role.SUPERVISOR)


@router.get("", response_model=list[ExperienceResponse])
async def list_experiences(
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> list[ExperienceResponse]:
    records = await registry.experiences.list_experiences(session.user_id)
    return [ExperienceResponse.model_validate(r) for r in records]


@router.post("", response_model=ExperienceResponse, status_code=status.HTTP_201_CREATED)
async def add_experience(
    body: ExperienceCreate,
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> ExperienceResponse:
    record = await registry.experiences.add_experience(
        session.user_id, body.title, body.description, body.is_documented
    )
    return ExperienceResponse.model_validate(record)


@router.post("/{experience_id}/documented", response_model=ExperienceResponse)
async def mark_documented(
    experience_id: str,
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> ExperienceResponse:
    record = await registry.experiences.mark_documented(session.user_id, experience_id)
    return ExperienceResponse.model_validate(record)


@router.post("/{experience_id}/approve", response_model=ExperienceResponse)
async def approve_experience(
    experience_id: str,
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> ExperienceResponse:
    """Approve an experience of a supervised EIT."""
    record = await registry.experiences.approve_experience(session.user_id, experience_id)
    return ExperienceResponse.model_validate(record)
