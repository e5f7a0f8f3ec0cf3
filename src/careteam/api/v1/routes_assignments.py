from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.careteam.api.v1.deps import get_services, raise_for_result
from src.careteam.domain.errors import OperationResult
from src.careteam.domain.models.care_team import (
    AssignmentRecord,
    AssignmentReport,
    BulkAssignItem,
    BulkAssignResult,
    CareTeamAssignment,
    TeamMember,
)
from src.careteam.security import get_api_key
from src.careteam.services.container import CareCoordinationServices


router = APIRouter(
    prefix="/assignments",
    tags=["assignments"],
    dependencies=[Depends(get_api_key)],
)


class AssignRequest(BaseModel):
    patient_id: str
    patient_name: str
    service_type: str
    provider_id: str
    provider_name: Optional[str] = None
    actor_id: str
    notes: Optional[str] = None


class RemoveRequest(BaseModel):
    actor_id: str
    reason: Optional[str] = None


class BulkAssignRequest(BaseModel):
    actor_id: str
    items: List[BulkAssignItem]


@router.post("/", response_model=OperationResult)
async def assign_provider(
    payload: AssignRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    provider_name = payload.provider_name or services.assignments.provider_display_name(payload.provider_id)
    result = services.assignments.assign(
        payload.patient_id,
        payload.patient_name,
        payload.service_type,
        payload.provider_id,
        provider_name,
        payload.actor_id,
        notes=payload.notes,
    )
    raise_for_result(result)
    return result


@router.post("/bulk", response_model=BulkAssignResult)
async def bulk_assign(
    payload: BulkAssignRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> BulkAssignResult:
    return services.assignments.bulk_assign(payload.items, payload.actor_id)


@router.get("/report", response_model=AssignmentReport)
async def assignment_report(
    services: CareCoordinationServices = Depends(get_services),
) -> AssignmentReport:
    return services.assignments.report()


@router.get("/{patient_id}", response_model=CareTeamAssignment)
async def get_assignment(
    patient_id: str,
    services: CareCoordinationServices = Depends(get_services),
) -> CareTeamAssignment:
    record = services.assignments.get_assignment(patient_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No assignments for patient")
    return record


@router.get("/{patient_id}/team", response_model=List[TeamMember])
async def get_team(
    patient_id: str,
    exclude_provider_id: Optional[str] = None,
    services: CareCoordinationServices = Depends(get_services),
) -> List[TeamMember]:
    return services.assignments.team_members(patient_id, exclude_provider_id=exclude_provider_id)


@router.get("/{patient_id}/{service_type}/history", response_model=List[AssignmentRecord])
async def get_history(
    patient_id: str,
    service_type: str,
    services: CareCoordinationServices = Depends(get_services),
) -> List[AssignmentRecord]:
    return services.assignments.get_history(patient_id, service_type)


@router.post("/{patient_id}/{service_type}/remove", response_model=OperationResult)
async def remove_provider(
    patient_id: str,
    service_type: str,
    payload: RemoveRequest,
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.assignments.remove(patient_id, service_type, payload.actor_id, payload.reason)
    raise_for_result(result)
    return result
