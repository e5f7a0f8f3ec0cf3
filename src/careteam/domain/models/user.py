from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from src.careteam.domain.errors import OperationResult
from src.careteam.domain.models.provider_identity import RoleType


class RoleGrantStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    REJECTED = "rejected"


class RoleGrant(BaseModel):
    role: RoleType
    status: RoleGrantStatus
    added_at: datetime
    approved_by: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    notes: Optional[str] = None


class MultiRoleUser(BaseModel):
    id: str
    email: EmailStr
    name: str
    phone: Optional[str] = None
    roles: List[RoleGrant] = Field(default_factory=list)
    current_role: RoleType
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    def grant_for(self, role: RoleType) -> Optional[RoleGrant]:
        for grant in self.roles:
            if grant.role == role:
                return grant
        return None


class RoleGrantResult(OperationResult):
    user: Optional[MultiRoleUser] = None
    is_new_user: bool = False
    needs_approval: bool = False
    # Provider identity minted for the granted role, when one was created.
    provider_id: Optional[str] = None
