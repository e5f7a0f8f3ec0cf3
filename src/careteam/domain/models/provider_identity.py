from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.careteam.domain.errors import InvalidProviderId


class RoleType(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    RADIOLOGIST = "radiologist"
    LAB_TECHNICIAN = "lab_technician"
    NUTRITIONIST = "nutritionist"
    THERAPIST = "therapist"
    YOGA_INSTRUCTOR = "yoga_instructor"
    PHARMACY = "pharmacy"
    FOOD_SERVICE = "food_service"
    COMMUNITY_MANAGER = "community_manager"
    ADMIN = "admin"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


_ROLE_SLUG = re.compile(r"^[a-z][a-z0-9_]*$")


class ProviderId(BaseModel):
    """Structured provider identifier.

    The string form is ``<role_type>_<sequence>`` with the sequence padded to
    at least three digits. Role types may contain underscores, so the last
    underscore is always the boundary and the suffix is always numeric.
    """

    model_config = {"frozen": True}

    role_type: str
    sequence: int = Field(ge=1)

    @classmethod
    def parse(cls, text: str) -> "ProviderId":
        role_type, sep, suffix = (text or "").rpartition("_")
        if not sep or not suffix.isdigit() or not _ROLE_SLUG.match(role_type):
            raise InvalidProviderId(f"'{text}' is not a <role_type>_<sequence> provider id")
        sequence = int(suffix)
        if sequence < 1:
            raise InvalidProviderId(f"'{text}' has a non-positive sequence")
        return cls(role_type=role_type, sequence=sequence)

    def __str__(self) -> str:
        return f"{self.role_type}_{self.sequence:03d}"


class StatusChange(BaseModel):
    from_status: VerificationStatus
    to_status: VerificationStatus
    changed_by: str
    reason: Optional[str] = None
    changed_at: datetime


class ProviderDetails(BaseModel):
    """Professional details supplied when a provider role is granted."""

    display_name: str
    specializations: List[str] = Field(default_factory=list)
    license_number: Optional[str] = None
    consultation_fee: float = 0.0
    max_patients: Optional[int] = Field(default=None, ge=1)


class ProviderIdentity(BaseModel):
    id: str
    owner_user_id: str
    role_type: RoleType
    display_name: str
    service_title: str
    specializations: List[str] = Field(default_factory=list)
    license_number: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.PENDING
    is_active: bool = False
    consultation_fee: float = 0.0
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    total_consultations: int = 0
    # None means "use the configured default capacity".
    max_patients: Optional[int] = Field(default=None, ge=1)
    is_accepting_patients: bool = True
    join_date: datetime
    status_history: List[StatusChange] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.parse(self.id)
