"""Settings and account endpoints."""

from fastapi import APIRouter, Depends, File, UploadFile, status

from accreda.web.deps import get_identity_services, require_role
from accreda.web.schemas import (
    AvatarResponse,
    CheckoutRequest,
    CheckoutResponse,
    DeleteAccountResponse,
    PasswordChange,
    PreferencesUpdate,
    ProfileResponse,
    ProfileUpdate,
    SubscriptionResponse,
    SupportRequest,
    TimelineUpdate,
)
from accreda.web.services import IdentityServices

router = APIRouter(
    prefix="/api/settings",
    tags=["settings"],
    dependencies=[Depends(require_role())],
)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(services: IdentityServices = Depends(get_identity_services)) -> ProfileResponse:
    profile = await services.settings.get_profile()
    return ProfileResponse.model_validate(profile)


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    services: IdentityServices = Depends(get_identity_services),
) -> ProfileResponse:
    profile = await services.settings.update_profile(**body.model_dump(exclude_none=True))
    return ProfileResponse.model_validate(profile)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    body: PasswordChange,
    services: IdentityServices = Depends(get_identity_services),
) -> None:
    await services.settings.change_password(
        body.current_password, body.new_password, body.confirm_password
    )


@router.put("/timeline", response_model=ProfileResponse)
async def update_timeline(
    body: TimelineUpdate,
    services: IdentityServices = Depends(get_identity_services),
) -> ProfileResponse:
    profile = await services.settings.update_timeline(body.start_date, body.target_date)
    return ProfileResponse.model_validate(profile)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    services: IdentityServices = Depends(get_identity_services),
) -> SubscriptionResponse:
    info = await services.settings.get_subscription()
    return SubscriptionResponse(**info.to_dict())


@router.post("/subscription/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    services: IdentityServices = Depends(get_identity_services),
) -> CheckoutResponse:
    url = await services.settings.create_checkout_session(body.tier)
    return CheckoutResponse(url=url)


@router.get("/notifications", response_model=dict[str, bool])
async def get_preferences(
    services: IdentityServices = Depends(get_identity_services),
) -> dict[str, bool]:
    return await services.settings.get_notification_preferences()


@router.put("/notifications", response_model=dict[str, bool])
async def update_preferences(
    body: PreferencesUpdate,
    services: IdentityServices = Depends(get_identity_services),
) -> dict[str, bool]:
    return await services.settings.update_notification_preferences(
        **body.model_dump(exclude_none=True)
    )


@router.post("/avatar", response_model=AvatarResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    services: IdentityServices = Depends(get_identity_services),
) -> AvatarResponse:
    content = await file.read()
    extension = (file.filename or "").rsplit(".", 1)[-1] if "." in (file.filename or "") else ""
    url = await services.settings.upload_avatar(content, extension)
    return AvatarResponse(avatar_url=url)


@router.post("/support", status_code=status.HTTP_202_ACCEPTED)
async def contact_support(
    body: SupportRequest,
    services: IdentityServices = Depends(get_identity_services),
) -> dict[str, str]:
    await services.settings.contact_support(body.subject, body.message)
    return {"status": "sent"}


@router.delete("/account", response_model=DeleteAccountResponse)
async def delete_account(
    services: IdentityServices = Depends(get_identity_services),
) -> DeleteAccountResponse:
    """Delete the account and everything it owns."""
    removed = await services.settings.delete_account()
    return DeleteAccountResponse(deleted_rows=removed)
