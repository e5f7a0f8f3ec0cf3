from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.careteam.api.v1.deps import get_services, raise_for_result
from src.careteam.domain.errors import OperationResult
from src.careteam.domain.models.provider_identity import RoleType
from src.careteam.domain.models.user import MultiRoleUser, RoleGrantResult
from src.careteam.security import get_api_key
from src.careteam.services.container import CareCoordinationServices


router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_api_key)],
)


class RegisterRoleRequest(BaseModel):
    email: str
    name: str
    role: RoleType
    phone: Optional[str] = None


class AddRoleRequest(BaseModel):
    role: RoleType
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    reason: str = ""


class SwitchRoleRequest(BaseModel):
    role: RoleType


class RoleDecisionRequest(BaseModel):
    actor_id: str


@router.post("/", response_model=RoleGrantResult, status_code=status.HTTP_201_CREATED)
async def register_role(
    payload: RegisterRoleRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> RoleGrantResult:
    result = services.identities.create_or_add_role(payload.email, payload.name, payload.role, phone=payload.phone)
    raise_for_result(result)
    return result


@router.get("/{email}", response_model=MultiRoleUser)
async def get_user(
    email: str,
    services: CareCoordinationServices = Depends(get_services),
) -> MultiRoleUser:
    user = services.identities.get_user(email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/{email}/roles/active", response_model=List[RoleType])
async def active_roles(
    email: str,
    services: CareCoordinationServices = Depends(get_services),
) -> List[RoleType]:
    return services.identities.get_user_active_roles(email)


@router.post("/{email}/roles", response_model=RoleGrantResult, status_code=status.HTTP_201_CREATED)
async def add_role(
    email: str,
    payload: AddRoleRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> RoleGrantResult:
    result = services.identities.add_role(
        email,
        payload.role,
        specialization=payload.specialization,
        license_number=payload.license_number,
        reason=payload.reason,
    )
    raise_for_result(result)
    return result


@router.post("/{email}/switch", response_model=OperationResult)
async def switch_role(
    email: str,
    payload: SwitchRoleRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.identities.switch_role(email, payload.role)
    raise_for_result(result)
    return result


@router.post("/{email}/roles/{role}/approve", response_model=OperationResult)
async def approve_role(
    email: str,
    role: RoleType,
    payload: RoleDecisionRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.identities.approve_role(email, role, payload.actor_id)
    raise_for_result(result)
    return result


@router.post("/{email}/roles/{role}/reject", response_model=OperationResult)
async def reject_role(
    email: str,
    role: RoleType,
    payload: RoleDecisionRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.identities.reject_role(email, role, payload.actor_id)
    raise_for_result(result)
    return result
