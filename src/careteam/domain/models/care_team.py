from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


# Service types always reported by the assignment report, even when empty.
CORE_SERVICE_TYPES = ("doctor", "nutritionist", "therapist", "yoga_instructor")


class AssignmentRecord(BaseModel):
    provider_id: str
    provider_name: str
    assigned_at: datetime
    assigned_by: str
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    notes: Optional[str] = None
    removed_at: Optional[datetime] = None
    removed_by: Optional[str] = None


class CareTeamAssignment(BaseModel):
    """All service-type assignments for one patient.

    ``assignments`` is the current pointer per service type; ``history`` is
    the append-only log of every record that was assigned or deactivated for
    that service type, oldest first.
    """

    patient_id: str
    patient_name: str
    assignments: Dict[str, AssignmentRecord] = Field(default_factory=dict)
    history: Dict[str, List[AssignmentRecord]] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    last_modified_by: str

    def active_members(self) -> Dict[str, AssignmentRecord]:
        return {
            service_type: record
            for service_type, record in self.assignments.items()
            if record.status == AssignmentStatus.ACTIVE
        }


class ProviderPatient(BaseModel):
    patient_id: str
    patient_name: str
    service_type: str
    assigned_at: datetime
    status: AssignmentStatus


class TeamMember(BaseModel):
    service_type: str
    provider_id: str
    provider_name: str
    can_contact: bool = True


class ProviderWorkload(BaseModel):
    provider_id: str
    total_patients: int
    service_types: List[str]


class BulkAssignItem(BaseModel):
    patient_id: str
    service_type: str
    provider_id: str
    patient_name: Optional[str] = None
    provider_name: Optional[str] = None
    notes: Optional[str] = None


class BulkAssignResult(BaseModel):
    success: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class AssignmentReport(BaseModel):
    total_patients: int
    total_providers: int
    assignments_by_service: Dict[str, int]
    unassigned_patients: int
    overloaded_providers: List[str]
    recent_assignments: List[CareTeamAssignment]
