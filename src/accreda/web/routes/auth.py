"""Signup, login and logout endpoints."""

from fastapi import APIRouter, Depends, Request, status

from accreda.core.accounts import Session
from accreda.web.deps import get_current_session, get_registry
from accreda.web.schemas import LoginRequest, SessionResponse, SignupRequest
from accreda.web.services import ServiceRegistry

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def _session_response(session: Session, registry: ServiceRegistry) -> SessionResponse:
    decision = await registry.roles.guard(session.user_id)
    return SessionResponse(
        token=session.token,
        user_id=session.user_id,
        email=session.email,
        role=decision.role,
        redirect_to=decision.role.home if decision.role else decision.redirect_to,
    )


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    request: Request,
    registry: ServiceRegistry = Depends(get_registry),
) -> SessionResponse:
    """Create an account with a profile and sign it in."""
    session = await registry.accounts.signup(
        email=body.email,
        password=body.password,
        confirm=body.confirm_password,
        full_name=body.full_name,
        role=body.role,
        organization=body.organization,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return await _session_response(session, registry)


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    registry: ServiceRegistry = Depends(get_registry),
) -> SessionResponse:
    session = await registry.accounts.login(body.email, body.password)
    return await _session_response(session, registry)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    session: Session = Depends(get_current_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> None:
    """End the session. The identity's services are disposed with its last session."""
    await registry.accounts.logout(session.token)


@router.get("/session", response_model=SessionResponse)
async def current_session(
    session: Session = Depends(get_current_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> SessionResponse:
    return await _session_response(session, registry)
