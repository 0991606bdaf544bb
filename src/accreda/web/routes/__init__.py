"""Route handlers for the Web API."""

from accreda.web.routes.auth import router as auth_router
from accreda.web.routes.connections import router as connections_router
from accreda.web.routes.dashboard import router as dashboard_router
from accreda.web.routes.experiences import router as experiences_router
from accreda.web.routes.export import router as export_router
from accreda.web.routes.health import router as health_router
from accreda.web.routes.notifications import router as notifications_router
from accreda.web.routes.reviews import router as reviews_router
from accreda.web.routes.route_guard import router as route_guard_router
from accreda.web.routes.saos import router as saos_router
from accreda.web.routes.settings import router as settings_router
from accreda.web.routes.skills import router as skills_router

__all__ = [
    "auth_router",
    "connections_router",
    "dashboard_router",
    "experiences_router",
    "export_router",
    "health_router",
    "notifications_router",
    "reviews_router",
    "route_guard_router",
    "saos_router",
    "settings_router",
    "skills_router",
]
