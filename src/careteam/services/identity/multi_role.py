from __future__ import annotations

import logging
from threading import RLock
from typing import List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError

from src.careteam.config import Settings, settings as default_settings
from src.careteam.domain.errors import ErrorCode, OperationResult
from src.careteam.domain.models.provider_identity import ProviderDetails, RoleType
from src.careteam.domain.models.user import MultiRoleUser, RoleGrant, RoleGrantResult, RoleGrantStatus
from src.careteam.infra.store.base import MULTI_USERS_KEY, KeyValueStore
from src.careteam.services.audit.service import AuditService
from src.careteam.services.clock import Clock, utcnow
from src.careteam.services.identity.registry import ProviderIdentityRegistry

logger = logging.getLogger("careteam.identity")

_EMAIL = TypeAdapter(EmailStr)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class MultiRoleIdentity:
    """Role bookkeeping for people who hold several professional roles.

    Each user keeps one grant per role. Provider roles (the configured
    ``provider_roles`` set) start pending and need approval; every other role
    is active immediately. When a registry is wired in, granting a provider
    role also mints the matching provider identity.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        registry: Optional[ProviderIdentityRegistry] = None,
        settings: Optional[Settings] = None,
        audit: Optional[AuditService] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._registry = registry
        self._settings = settings or default_settings
        self._audit = audit or AuditService()
        self._clock = clock
        self._lock = RLock()

    def _load(self) -> List[MultiRoleUser]:
        raw = self._store.get(MULTI_USERS_KEY) or []
        return [MultiRoleUser.model_validate(item) for item in raw]

    def _save(self, users: List[MultiRoleUser]) -> None:
        self._store.set(MULTI_USERS_KEY, [u.model_dump(mode="json") for u in users])

    def needs_approval(self, role: Union[RoleType, str]) -> bool:
        return RoleType(role).value in self._settings.provider_roles

    @staticmethod
    def _find(users: List[MultiRoleUser], email: str) -> Optional[MultiRoleUser]:
        wanted = _normalize_email(email)
        return next((u for u in users if u.email.lower() == wanted), None)

    def _new_grant(
        self,
        role: RoleType,
        *,
        specialization: Optional[str] = None,
        license_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Tuple[RoleGrant, bool]:
        needs_approval = self.needs_approval(role)
        grant = RoleGrant(
            role=role,
            status=RoleGrantStatus.PENDING if needs_approval else RoleGrantStatus.ACTIVE,
            added_at=self._clock(),
            specialization=specialization,
            license_number=license_number,
            notes=notes,
        )
        return grant, needs_approval

    def _mint_identity(
        self,
        user: MultiRoleUser,
        role: RoleType,
        specialization: Optional[str],
        license_number: Optional[str],
    ) -> Optional[str]:
        if self._registry is None or not self.needs_approval(role):
            return None
        existing = self._registry.get_provider_id_for_role(user.id, role)
        if existing is not None:
            return existing
        details = ProviderDetails(
            display_name=user.name,
            specializations=[specialization] if specialization else [],
            license_number=license_number,
        )
        return self._registry.create_profile(user.id, role, details).id

    # Operations

    def create_or_add_role(
        self,
        email: str,
        name: str,
        role: Union[RoleType, str],
        phone: Optional[str] = None,
    ) -> RoleGrantResult:
        try:
            role = RoleType(role)
        except ValueError:
            return RoleGrantResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown role '{role}'")
        normalized = _normalize_email(email)
        try:
            _EMAIL.validate_python(normalized)
        except PydanticValidationError:
            return RoleGrantResult.fail(ErrorCode.VALIDATION_ERROR, f"'{email}' is not a valid email address")

        with self._lock:
            users = self._load()
            user = self._find(users, normalized)
            now = self._clock()

            if user is None:
                if not name or not name.strip():
                    return RoleGrantResult.fail(ErrorCode.VALIDATION_ERROR, "name is required for a new user")
                grant, needs_approval = self._new_grant(role, notes="Initial role")
                user = MultiRoleUser(
                    id=f"user_{uuid4().hex}",
                    email=normalized,
                    name=name.strip(),
                    phone=phone,
                    roles=[grant],
                    current_role=role,
                    created_at=now,
                    updated_at=now,
                )
                users.append(user)
                is_new_user = True
            else:
                if user.grant_for(role) is not None:
                    return RoleGrantResult.fail(
                        ErrorCode.DUPLICATE_ROLE, f"User {normalized} already has the {role.value} role"
                    )
                grant, needs_approval = self._new_grant(role, notes="Role added via registration")
                user.roles.append(grant)
                user.current_role = role
                user.updated_at = now
                is_new_user = False

            self._save(users)

        provider_id = self._mint_identity(user, role, None, None)
        self._audit.log_event(
            action="grant_role",
            resource_type="user",
            resource_id=user.id,
            extra={"role": role.value, "is_new_user": is_new_user, "needs_approval": needs_approval},
        )
        return RoleGrantResult.ok(
            user=user,
            is_new_user=is_new_user,
            needs_approval=needs_approval,
            provider_id=provider_id,
        )

    def add_role(
        self,
        email: str,
        role: Union[RoleType, str],
        specialization: Optional[str] = None,
        license_number: Optional[str] = None,
        reason: str = "",
    ) -> RoleGrantResult:
        try:
            role = RoleType(role)
        except ValueError:
            return RoleGrantResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown role '{role}'")

        with self._lock:
            users = self._load()
            user = self._find(users, email)
            if user is None:
                return RoleGrantResult.fail(ErrorCode.NOT_FOUND, f"User {email} not found")
            if user.grant_for(role) is not None:
                return RoleGrantResult.fail(ErrorCode.DUPLICATE_ROLE, f"User {email} already has the {role.value} role")

            grant, needs_approval = self._new_grant(
                role, specialization=specialization, license_number=license_number, notes=reason or None
            )
            user.roles.append(grant)
            user.updated_at = self._clock()
            self._save(users)

        provider_id = self._mint_identity(user, role, specialization, license_number)
        self._audit.log_event(
            action="add_role",
            resource_type="user",
            resource_id=user.id,
            extra={"role": role.value, "needs_approval": needs_approval},
        )
        return RoleGrantResult.ok(user=user, needs_approval=needs_approval, provider_id=provider_id)

    def switch_role(self, email: str, new_role: Union[RoleType, str]) -> OperationResult:
        try:
            new_role = RoleType(new_role)
        except ValueError:
            return OperationResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown role '{new_role}'")

        with self._lock:
            users = self._load()
            user = self._find(users, email)
            if user is None:
                return OperationResult.fail(ErrorCode.NOT_FOUND, f"User {email} not found")
            grant = user.grant_for(new_role)
            if grant is None:
                return OperationResult.fail(ErrorCode.NOT_FOUND, f"User {email} does not hold the {new_role.value} role")
            if grant.status != RoleGrantStatus.ACTIVE:
                return OperationResult.fail(ErrorCode.UNAUTHORIZED, f"The {new_role.value} role is not active")

            user.current_role = new_role
            user.updated_at = self._clock()
            self._save(users)
        return OperationResult.ok()

    def _decide(
        self,
        email: str,
        role: Union[RoleType, str],
        decided_by: str,
        target: RoleGrantStatus,
    ) -> OperationResult:
        try:
            role = RoleType(role)
        except ValueError:
            return OperationResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown role '{role}'")

        with self._lock:
            users = self._load()
            user = self._find(users, email)
            grant = user.grant_for(role) if user is not None else None
            if user is None or grant is None:
                return OperationResult.fail(ErrorCode.NOT_FOUND, f"No {role.value} role request for {email}")
            if grant.status != RoleGrantStatus.PENDING:
                return OperationResult.fail(
                    ErrorCode.INVALID_TRANSITION, f"The {role.value} role is already {grant.status.value}"
                )
            grant.status = target
            grant.approved_by = decided_by
            user.updated_at = self._clock()
            self._save(users)

        if self._registry is not None:
            provider_id = self._registry.get_provider_id_for_role(user.id, role)
            if provider_id is not None:
                if target == RoleGrantStatus.ACTIVE:
                    outcome = self._registry.approve(provider_id, decided_by)
                else:
                    outcome = self._registry.reject(provider_id, decided_by)
                if not outcome.success:
                    logger.warning("Provider identity %s not updated: %s", provider_id, outcome.message)
        return OperationResult.ok()

    def approve_role(self, email: str, role: Union[RoleType, str], approved_by: str) -> OperationResult:
        return self._decide(email, role, approved_by, RoleGrantStatus.ACTIVE)

    def reject_role(self, email: str, role: Union[RoleType, str], rejected_by: str) -> OperationResult:
        return self._decide(email, role, rejected_by, RoleGrantStatus.REJECTED)

    # Queries

    def get_user(self, email: str) -> Optional[MultiRoleUser]:
        return self._find(self._load(), email)

    def get_user_active_roles(self, email: str) -> List[RoleType]:
        user = self.get_user(email)
        if user is None:
            return []
        return [grant.role for grant in user.roles if grant.status == RoleGrantStatus.ACTIVE]

    def can_access_role(self, email: str, role: Union[RoleType, str]) -> bool:
        try:
            role = RoleType(role)
        except ValueError:
            return False
        return role in self.get_user_active_roles(email)
