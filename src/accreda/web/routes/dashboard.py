"""EIT dashboard endpoints."""

from fastapi import APIRouter, Depends

from accreda.core.roles import Role
from accreda.web.deps import get_identity_services, require_role
from accreda.web.schemas import ProgressResponse
from accreda.web.services import IdentityServices

router = APIRouter(
    prefix="/api/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(require_role(Role.EIT))],
)


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(services: IdentityServices = Depends(get_identity_services)) -> ProgressResponse:
    """Overall progress; computed on first use, then kept current."""
    snapshot = await services.progress.initialize()
    return ProgressResponse(**snapshot.to_dict())


@router.post("/progress/refresh", response_model=ProgressResponse)
async def refresh_progress(
    services: IdentityServices = Depends(get_identity_services),
) -> ProgressResponse:
    snapshot = await services.progress.refresh()
    return ProgressResponse(**snapshot.to_dict())
