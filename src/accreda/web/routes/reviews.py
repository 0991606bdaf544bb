"""Supervisor review endpoints: skill scores, SAO feedback and nudges."""

from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from accreda.core.accounts import Session
from accreda.core.roles import Role
from accreda.web.deps import get_registry, require_role
from accreda.web.schemas import (
    FeedbackSubmit,
    NudgeRequest,
    SaoFeedbackResponse,
    SkillScoreCreate,
    SkillValidationResponse,
)
from accreda.web.services import ServiceRegistry

router = APIRouter(prefix="/api/reviews", tags=["reviews"])

eit_only = require_role(Role.EIT)
supervisor_only = require_role(Role.SUPERVISOR)
any_role = require_role()


@router.post("/skills", response_model=SkillValidationResponse, status_code=status.HTTP_201_CREATED)
async def score_skill(
    body: SkillScoreCreate,
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> SkillValidationResponse:
    """Score a skill of a supervised EIT."""
    record = await registry.reviews.score_skill(
        session.user_id, body.eit_id, body.skill_id, body.score, body.feedback
    )
    return SkillValidationResponse.model_validate(record)


@router.get("/skills", response_model=list[SkillValidationResponse])
async def list_skill_validations(
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> list[SkillValidationResponse]:
    records = await registry.reviews.list_skill_validations(session.user_id)
    return [SkillValidationResponse.model_validate(r) for r in records]


@router.post(
    "/saos/{sao_id}/feedback-request",
    response_model=SaoFeedbackResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_sao_feedback(
    sao_id: str,
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> SaoFeedbackResponse:
    """Ask the active supervisor for feedback on an SAO."""
    record = await registry.reviews.request_sao_feedback(session.user_id, sao_id)
    return SaoFeedbackResponse.model_validate(record)


@router.get("/saos/{sao_id}/feedback", response_model=list[SaoFeedbackResponse])
async def list_sao_feedback(
    sao_id: str,
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> list[SaoFeedbackResponse]:
    records = await registry.reviews.list_sao_feedback(session.user_id, sao_id)
    return [SaoFeedbackResponse.model_validate(r) for r in records]


@router.get("/feedback", response_model=list[SaoFeedbackResponse])
async def list_feedback_requests(
    feedback_status: Literal["pending", "submitted", "resolved"] | None = Query(
        default=None, alias="status"
    ),
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> list[SaoFeedbackResponse]:
    """Feedback requests addressed to the supervisor."""
    records = await registry.reviews.list_feedback_requests(session.user_id, feedback_status)
    return [SaoFeedbackResponse.model_validate(r) for r in records]


@router.post("/feedback/{feedback_id}", response_model=SaoFeedbackResponse)
async def submit_sao_feedback(
    feedback_id: str,
    body: FeedbackSubmit,
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> SaoFeedbackResponse:
    record = await registry.reviews.submit_sao_feedback(
        session.user_id, feedback_id, body.feedback, body.score
    )
    return SaoFeedbackResponse.model_validate(record)


@router.post("/feedback/{feedback_id}/resolve", response_model=SaoFeedbackResponse)
async def resolve_feedback(
    feedback_id: str,
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> SaoFeedbackResponse:
    record = await registry.reviews.resolve_feedback(session.user_id, feedback_id)
    return SaoFeedbackResponse.model_validate(record)


@router.post("/nudge", status_code=status.HTTP_204_NO_CONTENT)
async def nudge(
    body: NudgeRequest,
    session: Session = Depends(any_role),
    registry: ServiceRegistry = Depends(get_registry),
) -> None:
    """Nudge the other party of an active connection."""
    await registry.reviews.nudge(session.user_id, body.user_id)
