from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.careteam.domain.errors import OperationResult


class MessageType(str, Enum):
    CONSULTATION_REQUEST = "consultation_request"
    LAB_REVIEW = "lab_review"
    PRESCRIPTION_UPDATE = "prescription_update"
    PROGRESS_NOTE = "progress_note"
    EMERGENCY_ALERT = "emergency_alert"
    DATA_UPDATE = "data_update"


RESPONSE_REQUIRED_TYPES = frozenset({MessageType.CONSULTATION_REQUEST, MessageType.EMERGENCY_ALERT})


class SharedDataType(str, Enum):
    LAB_REPORT = "lab_report"
    PRESCRIPTION = "prescription"
    TREATMENT_PLAN = "treatment_plan"
    PROGRESS_NOTE = "progress_note"
    MEDICAL_RECORD = "medical_record"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class CommunicationResponse(BaseModel):
    provider_id: str
    provider_type: str
    response: str
    timestamp: datetime


class CommunicationRecord(BaseModel):
    id: str
    patient_id: str
    from_provider_id: str
    from_provider_type: str
    to_provider_id: str
    to_provider_type: str
    message_type: MessageType
    subject: str
    content: str
    related_data: Optional[Dict[str, Any]] = None
    is_urgent: bool = False
    requires_response: bool = False
    created_at: datetime
    responses: List[CommunicationResponse] = Field(default_factory=list)


class SharedDataLedger(BaseModel):
    patient_id: str
    shared: Dict[SharedDataType, List[str]] = Field(default_factory=dict)
    updated_at: datetime


class UrgentNotification(BaseModel):
    """Outbox entry for an urgent message awaiting external delivery."""

    id: str
    communication_id: str
    patient_id: str
    provider_id: str
    subject: str
    created_at: datetime
    attempts: int = 0
    last_error: Optional[str] = None
    delivered_at: Optional[datetime] = None

    @property
    def is_delivered(self) -> bool:
        return self.delivered_at is not None


class DispatchSummary(BaseModel):
    delivered: int = 0
    failed: int = 0


class SendResult(OperationResult):
    target_provider: Optional[str] = None
    target_provider_name: Optional[str] = None
    communication_id: Optional[str] = None


class ShareDataResult(OperationResult):
    notified_providers: List[str] = Field(default_factory=list)
