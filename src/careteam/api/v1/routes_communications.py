from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel

from src.careteam.api.v1.deps import get_services, raise_for_result
from src.careteam.domain.errors import OperationResult
from src.careteam.domain.models.communication import (
    CommunicationRecord,
    MessageType,
    SendResult,
    SharedDataLedger,
    SharedDataType,
    ShareDataResult,
)
from src.careteam.security import get_acting_provider, get_api_key
from src.careteam.services.container import CareCoordinationServices


router = APIRouter(
    prefix="/communications",
    tags=["communications"],
    dependencies=[Depends(get_api_key)],
)


class SendRequest(BaseModel):
    patient_id: str
    to_service_type: str
    message_type: MessageType
    subject: str
    content: str
    related_data: Optional[Dict[str, Any]] = None
    is_urgent: bool = False


class RespondRequest(BaseModel):
    response: str


class ShareDataRequest(BaseModel):
    patient_id: str
    data_type: SharedDataType
    data_id: str
    notify_team: bool = True


def _dispatch_outbox(services: CareCoordinationServices) -> None:
    services.outbox.dispatch(services.notifier)


@router.post("/", response_model=SendResult, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: SendRequest,
    background_tasks: BackgroundTasks,
    provider_id: str = Depends(get_acting_provider),
    services: CareCoordinationServices = Depends(get_services),
) -> SendResult:
    result = services.router.send(
        payload.patient_id,
        provider_id,
        payload.to_service_type,
        payload.message_type,
        payload.subject,
        payload.content,
        related_data=payload.related_data,
        is_urgent=payload.is_urgent,
    )
    raise_for_result(result)
    if payload.is_urgent:
        background_tasks.add_task(_dispatch_outbox, services)
    return result


@router.get("/", response_model=List[CommunicationRecord])
async def list_my_messages(
    provider_id: str = Depends(get_acting_provider),
    services: CareCoordinationServices = Depends(get_services),
) -> List[CommunicationRecord]:
    return services.router.list_for_provider(provider_id)


@router.get("/templates")
async def quick_message_templates(
    services: CareCoordinationServices = Depends(get_services),
) -> Dict[str, List[str]]:
    return {f"{src}_to_{dst}": subjects for (src, dst), subjects in services.router.quick_message_templates().items()}


@router.get("/patients/{patient_id}", response_model=List[CommunicationRecord])
async def list_patient_messages(
    patient_id: str,
    provider_id: str = Depends(get_acting_provider),
    services: CareCoordinationServices = Depends(get_services),
) -> List[CommunicationRecord]:
    return services.router.list_for_patient(patient_id, provider_id)


@router.post("/share", response_model=ShareDataResult)
async def share_data(
    payload: ShareDataRequest,
    background_tasks: BackgroundTasks,
    provider_id: str = Depends(get_acting_provider),
    services: CareCoordinationServices = Depends(get_services),
) -> ShareDataResult:
    result = services.router.share_data(
        payload.patient_id,
        provider_id,
        payload.data_type,
        payload.data_id,
        notify_team=payload.notify_team,
    )
    raise_for_result(result)
    if payload.notify_team and payload.data_type == SharedDataType.LAB_REPORT:
        background_tasks.add_task(_dispatch_outbox, services)
    return result


@router.get("/shared/{patient_id}", response_model=SharedDataLedger)
async def get_shared_data(
    patient_id: str,
    provider_id: str = Depends(get_acting_provider),
    services: CareCoordinationServices = Depends(get_services),
) -> SharedDataLedger:
    if not services.assignments.is_active_member(patient_id, provider_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not on this patient's care team")
    ledger = services.router.shared_data(patient_id)
    if ledger is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No shared data for patient")
    return ledger


@router.post("/{communication_id}/responses", response_model=OperationResult)
async def respond_to_message(
    communication_id: str,
    payload: RespondRequest,
    provider_id: str = Depends(get_acting_provider),
    services: CareCoordinationServices = Depends(get_services),
) -> OperationResult:
    result = services.router.respond(communication_id, provider_id, payload.response)
    raise_for_result(result)
    return result
