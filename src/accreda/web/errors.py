"""Mapping of domain errors to HTTP responses.

Clients get a generic message; the details go to the log.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from accreda.backend.functions import FunctionInvocationError
from accreda.backend.storage import AvatarUploadError
from accreda.core.accounts import AccountError, AuthenticationError, PasswordValidationError
from accreda.core.connections import (
    ConnectionLimitError,
    InvalidTransitionError,
    RelationshipNotFoundError,
)
from accreda.core.experiences import ExperienceNotFoundError, NotSupervisorError
from accreda.core.notifications import NotificationError
from accreda.core.reviews import FeedbackNotFoundError, SaoNotFoundError
from accreda.core.saos import SaoLimitError
from accreda.core.skills import SkillNotFoundError
from accreda.reports.csaw import CsawExportError

logger = structlog.get_logger(__name__)

# Exception type -> (status code, client message); first match wins
ERROR_RESPONSES: list[tuple[type[Exception], int, str]] = [
    (PasswordValidationError, status.HTTP_400_BAD_REQUEST, "Password does not meet the requirements"),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED, "Authentication failed"),
    (AccountError, status.HTTP_400_BAD_REQUEST, "Account request could not be completed"),
    (AvatarUploadError, status.HTTP_400_BAD_REQUEST, "Avatar could not be uploaded"),
    (NotSupervisorError, status.HTTP_403_FORBIDDEN, "Not allowed"),
    (RelationshipNotFoundError, status.HTTP_404_NOT_FOUND, "Connection not found"),
    (ExperienceNotFoundError, status.HTTP_404_NOT_FOUND, "Experience not found"),
    (SkillNotFoundError, status.HTTP_404_NOT_FOUND, "Skill not found"),
    (SaoNotFoundError, status.HTTP_404_NOT_FOUND, "SAO not found"),
    (FeedbackNotFoundError, status.HTTP_404_NOT_FOUND, "Feedback request not found"),
    (InvalidTransitionError, status.HTTP_409_CONFLICT, "Connection is not in a state that allows this"),
    (ConnectionLimitError, status.HTTP_409_CONFLICT, "Connection limit reached for this plan"),
    (SaoLimitError, status.HTTP_409_CONFLICT, "SAO limit reached for your plan"),
    (CsawExportError, status.HTTP_422_UNPROCESSABLE_CONTENT, "CSAW export could not be generated"),
    (NotificationError, status.HTTP_400_BAD_REQUEST, "Invalid notification"),
    (FunctionInvocationError, status.HTTP_502_BAD_GATEWAY, "Upstream service failed"),
    (ValueError, status.HTTP_400_BAD_REQUEST, "Invalid request"),
]


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    for exc_type, status_code, message in ERROR_RESPONSES:
        if isinstance(exc, exc_type):
            break
    else:
        status_code, message = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"

    logger.warning(
        "api.request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        status_code=status_code,
    )
    content: dict = {"detail": message}
    if isinstance(exc, PasswordValidationError):
        content["errors"] = exc.errors
    elif isinstance(exc, ValueError):
        content["errors"] = [str(exc)]
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    for exc_type, _, _ in ERROR_RESPONSES:
        app.add_exception_handler(exc_type, domain_error_handler)
