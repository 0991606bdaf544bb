"""Route guard endpoint used by clients before rendering a view."""

from fastapi import APIRouter, Depends, Query

from accreda.core.accounts import Session
from accreda.core.roles import Role
from accreda.web.deps import get_optional_session, get_registry
from accreda.web.schemas import RouteGuardResponse
from accreda.web.services import ServiceRegistry

router = APIRouter(prefix="/api/route-guard", tags=["auth"])


@router.get("", response_model=RouteGuardResponse)
async def check_route(
    required_role: Role | None = Query(default=None),
    session: Session | None = Depends(get_optional_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> RouteGuardResponse:
    """Decide whether the caller may see a view for a role."""
    decision = await registry.roles.guard(session.user_id if session else None, required_role)
    return RouteGuardResponse(
        allowed=decision.allowed,
        redirect_to=decision.redirect_to,
        role=decision.role,
    )
