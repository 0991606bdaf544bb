"""Request dependencies: current session, role guard, identity services."""

from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accreda.core.accounts import Session
from accreda.core.roles import LOGIN_PATH, Role
from accreda.web.services import IdentityServices, ServiceRegistry, get_service_registry

security = HTTPBearer(auto_error=False)


def get_registry() -> ServiceRegistry:
    return get_service_registry()


async def get_optional_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    registry: ServiceRegistry = Depends(get_registry),
) -> Session | None:
    """Session for the bearer token, or None."""
    if credentials is None:
        return None
    return await registry.accounts.get_session(credentials.credentials)


async def get_current_session(
    session: Session | None = Depends(get_optional_session),
) -> Session:
    """Get the signed-in session or fail with 401."""
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "redirect_to": LOGIN_PATH},
        )
    return session


def require_role(role: Role | None = None):
    """Dependency factory running the route guard for a role.

    ``None`` only requires a completed profile.
    """

    async def _guard(
        session: Session = Depends(get_current_session),
        registry: ServiceRegistry = Depends(get_registry),
    ) -> Session:
        decision = await registry.roles.guard(session.user_id, role)
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"message": "Not allowed", "redirect_to": decision.redirect_to},
            )
        return session

    return _guard


async def get_identity_services(
    session: Session = Depends(get_current_session),
    registry: ServiceRegistry = Depends(get_registry),
) -> IdentityServices:
    return await registry.for_user(session.user_id)
