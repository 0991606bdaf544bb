"""Notification endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from accreda.web.deps import get_identity_services, require_role
from accreda.web.schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from accreda.web.services import IdentityServices

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_role())],
)


async def _center(services: IdentityServices):
    center = services.notifications
    if not center.initialized:
        await center.initialize()
    return center


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    services: IdentityServices = Depends(get_identity_services),
) -> NotificationListResponse:
    """Notifications newest first."""
    center = await _center(services)
    return NotificationListResponse(
        notifications=[NotificationResponse(**n.to_dict()) for n in center.notifications],
        unread_count=center.unread_count,
    )


@router.post("/{notification_id}/read", response_model=NotificationListResponse)
async def mark_read(
    notification_id: str,
    services: IdentityServices = Depends(get_identity_services),
) -> NotificationListResponse:
    center = await _center(services)
    if not await center.mark_as_read(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification '{notification_id}' not found",
        )
    return NotificationListResponse(
        notifications=[NotificationResponse(**n.to_dict()) for n in center.notifications],
        unread_count=center.unread_count,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    services: IdentityServices = Depends(get_identity_services),
) -> MarkAllReadResponse:
    center = await _center(services)
    marked = await center.mark_all_as_read()
    return MarkAllReadResponse(marked=marked, unread_count=center.unread_count)
