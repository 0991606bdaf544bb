"""SAO and validator endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from accreda.core.roles import Role
from accreda.web.deps import get_identity_services, require_role
from accreda.web.schemas import SaoCreate, SaoResponse, ValidationRequest, ValidatorResponse
from accreda.web.services import IdentityServices

router = APIRouter(
    prefix="/api/saos",
    tags=["saos"],
    dependencies=[Depends(require_role(Role.EIT))],
)


@router.get("", response_model=list[SaoResponse])
async def list_saos(services: IdentityServices = Depends(get_identity_services)) -> list[SaoResponse]:
    saos = await services.saos.list_saos()
    return [SaoResponse.model_validate(s) for s in saos]


@router.post("", response_model=SaoResponse, status_code=status.HTTP_201_CREATED)
async def create_sao(
    body: SaoCreate,
    services: IdentityServices = Depends(get_identity_services),
) -> SaoResponse:
    """Write an SAO; fails with 409 when the plan limit is reached."""
    sao = await services.saos.create_sao(
        title=body.title,
        situation=body.situation,
        action=body.action,
        outcome=body.outcome,
        employer=body.employer,
        skill_ids=body.skill_ids,
    )
    return SaoResponse.model_validate(sao)


@router.delete("/{sao_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sao(sao_id: str, services: IdentityServices = Depends(get_identity_services)) -> None:
    if not await services.saos.delete_sao(sao_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"SAO '{sao_id}' not found",
        )


@router.get("/validators", response_model=list[ValidatorResponse])
async def list_validators(
    services: IdentityServices = Depends(get_identity_services),
) -> list[ValidatorResponse]:
    validators = await services.saos.list_validators()
    return [ValidatorResponse.model_validate(v) for v in validators]


@router.post("/validators", response_model=ValidatorResponse, status_code=status.HTTP_201_CREATED)
async def request_validation(
    body: ValidationRequest,
    services: IdentityServices = Depends(get_identity_services),
) -> ValidatorResponse:
    validator = await services.saos.request_validation(
        body.skill_id, body.first_name, body.last_name, body.email
    )
    return ValidatorResponse.model_validate(validator)
