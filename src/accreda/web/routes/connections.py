"""Supervisor connection endpoints."""

from fastapi import APIRouter, Depends

from accreda.core.accounts import Session
from accreda.core.roles import Role
from accreda.web.deps import get_registry, require_role
from accreda.web.schemas import (
    ConnectionRequest,
    ConnectionResultResponse,
    ProfileResponse,
    RelationshipResponse,
)
from accreda.web.services import ServiceRegistry

router = APIRouter(prefix="/api/connections", tags=["connections"])

eit_only = require_role(Role.EIT)
supervisor_only = require_role(Role.SUPERVISOR)
any_role = require_role()


@router.post("", response_model=ConnectionResultResponse)
async def request_connection(
    body: ConnectionRequest,
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> ConnectionResultResponse:
    """Ask a supervisor to connect. The outcome is reported in ``status``."""
    result = await registry.connections.request_connection(session.user_id, body.supervisor_email)
    return ConnectionResultResponse(
        status=result.status.value,
        relationship=(
            RelationshipResponse.model_validate(result.relationship)
            if result.relationship
            else None
        ),
        supervisor_name=result.supervisor.full_name if result.supervisor else None,
    )


@router.get("/supervisor", response_model=ProfileResponse | None)
async def get_active_supervisor(
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> ProfileResponse | None:
    supervisor = await registry.connections.active_supervisor(session.user_id)
    return ProfileResponse.model_validate(supervisor) if supervisor else None


@router.get("/pending", response_model=list[RelationshipResponse])
async def list_pending(
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> list[RelationshipResponse]:
    """Pending requests addressed to the supervisor, oldest first."""
    rows = await registry.connections.list_pending(session.user_id)
    return [RelationshipResponse.model_validate(r) for r in rows]


@router.get("/eits", response_model=list[ProfileResponse])
async def list_active_eits(
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> list[ProfileResponse]:
    profiles = await registry.connections.list_active_eits(session.user_id)
    return [ProfileResponse.model_validate(p) for p in profiles]


@router.post("/{relationship_id}/accept", response_model=RelationshipResponse)
async def accept(
    relationship_id: str,
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> RelationshipResponse:
    relationship = await registry.connections.accept(relationship_id, session.user_id)
    return RelationshipResponse.model_validate(relationship)


@router.post("/{relationship_id}/deny", response_model=RelationshipResponse)
async def deny(
    relationship_id: str,
    session: Session = Depends(supervisor_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> RelationshipResponse:
    relationship = await registry.connections.deny(relationship_id, session.user_id)
    return RelationshipResponse.model_validate(relationship)


@router.get("/active", response_model=RelationshipResponse | None)
async def get_active_relationship(
    session: Session = Depends(eit_only),
    registry: ServiceRegistry = Depends(get_registry),
) -> RelationshipResponse | None:
    relationship = await registry.connections.active_relationship(session.user_id)
    return RelationshipResponse.model_validate(relationship) if relationship else None


@router.post("/{relationship_id}/complete", response_model=RelationshipResponse)
async def complete(
    relationship_id: str,
    session: Session = Depends(any_role),
    registry: ServiceRegistry = Depends(get_registry),
) -> RelationshipResponse:
    """End an active connection. Either the EIT or the supervisor may call this."""
    relationship = await registry.connections.complete(relationship_id, session.user_id)
    return RelationshipResponse.model_validate(relationship)
