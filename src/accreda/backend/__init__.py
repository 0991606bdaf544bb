"""Clients for hosted backend services (functions, storage)."""

from accreda.backend.functions import (
    FunctionInvocationError,
    FunctionsClient,
    FunctionsConfig,
)
from accreda.backend.storage import AvatarStorage, AvatarUploadError

__all__ = [
    "AvatarStorage",
    "AvatarUploadError",
    "FunctionInvocationError",
    "FunctionsClient",
    "FunctionsConfig",
]
