from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.careteam.api.v1.deps import get_services, raise_for_result
from src.careteam.domain.errors import CareTeamValidationError, OperationResult
from src.careteam.domain.models.care_team import ProviderPatient, ProviderWorkload
from src.careteam.domain.models.provider_identity import ProviderDetails, ProviderIdentity, RoleType
from src.careteam.security import get_api_key
from src.careteam.services.container import CareCoordinationServices


router = APIRouter(
    prefix="/providers",
    tags=["providers"],
    dependencies=[Depends(get_api_key)],
)


class CreateProviderRequest(BaseModel):
    owner_user_id: str
    role_type: RoleType
    details: ProviderDetails


class StatusChangeRequest(BaseModel):
    actor_id: str
    reason: Optional[str] = None


class UpdateProviderRequest(BaseModel):
    rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    consultation_fee: Optional[float] = None
    specializations: Optional[List[str]] = None
    max_patients: Optional[int] = Field(default=None, ge=1)
    is_accepting_patients: Optional[bool] = None
    total_consultations: Optional[int] = None


@router.post("/", response_model=ProviderIdentity, status_code=status.HTTP_201_CREATED)
async def create_provider(
    payload: CreateProviderRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> ProviderIdentity:
    try:
        return services.registry.create_profile(payload.owner_user_id, payload.role_type, payload.details)
    except CareTeamValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/", response_model=List[ProviderIdentity])
async def search_providers(
    role_type: Optional[RoleType] = None,
    specialization: Optional[str] = None,
    is_active: Optional[bool] = None,
    min_rating: Optional[float] = None,
    services: CareCoordinationServices = Depends(get_services),
) -> List[ProviderIdentity]:
    return services.registry.search_by(
        role_type=role_type,
        specialization=specialization,
        is_active=is_active,
        min_rating=min_rating,
    )


@router.get("/{provider_id}", response_model=ProviderIdentity)
async def get_provider(
    provider_id: str,
    services: CareCoordinationServices = Depends(get_services),
) -> ProviderIdentity:
    profile = services.registry.get_profile(provider_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
    return profile


@router.patch("/{provider_id}", response_model=OperationResult)
async def update_provider(
    provider_id: str,
    payload: UpdateProviderRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.registry.update_profile(provider_id, **payload.model_dump(exclude_none=True))
    raise_for_result(result)
    return result


@router.post("/{provider_id}/approve", response_model=OperationResult)
async def approve_provider(
    provider_id: str,
    payload: StatusChangeRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.registry.approve(provider_id, payload.actor_id)
    raise_for_result(result)
    return result


@router.post("/{provider_id}/reject", response_model=OperationResult)
async def reject_provider(
    provider_id: str,
    payload: StatusChangeRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.registry.reject(provider_id, payload.actor_id, payload.reason)
    raise_for_result(result)
    return result


@router.post("/{provider_id}/suspend", response_model=OperationResult)
async def suspend_provider(
    provider_id: str,
    payload: StatusChangeRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.registry.suspend(provider_id, payload.actor_id, payload.reason)
    raise_for_result(result)
    return result


@router.get("/{provider_id}/patients", response_model=List[ProviderPatient])
async def provider_patients(
    provider_id: str,
    services: CareCoordinationServices = Depends(get_services),
) -> List[ProviderPatient]:
    return services.assignments.get_provider_patients(provider_id)


@router.get("/{provider_id}/workload", response_model=ProviderWorkload)
async def provider_workload(
    provider_id: str,
    services: CareCoordinationServices = Depends(get_services),
) -> ProviderWorkload:
    return services.assignments.workload(provider_id)
