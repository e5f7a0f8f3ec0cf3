from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Dict, List, Optional

from src.careteam.domain.errors import CareTeamValidationError, ErrorCode, OperationResult
from src.careteam.domain.models.provider_identity import (
    ProviderDetails,
    ProviderId,
    ProviderIdentity,
    RoleType,
    StatusChange,
    VerificationStatus,
)
from src.careteam.infra.store.base import PROVIDER_SERVICES_KEY, KeyValueStore
from src.careteam.services.audit.service import AuditService
from src.careteam.services.clock import Clock, utcnow

logger = logging.getLogger("careteam.identity")


ROLE_DISPLAY_PREFIXES: Dict[RoleType, str] = {
    RoleType.DOCTOR: "Dr.",
    RoleType.RADIOLOGIST: "Dr.",
    RoleType.LAB_TECHNICIAN: "Lab Tech",
    RoleType.NUTRITIONIST: "Nutritionist",
    RoleType.THERAPIST: "Therapist",
    RoleType.YOGA_INSTRUCTOR: "Yoga Instructor",
    RoleType.PHARMACY: "Pharmacist",
    RoleType.FOOD_SERVICE: "Food Service",
    RoleType.COMMUNITY_MANAGER: "Community Manager",
    RoleType.ADMIN: "Administrator",
}

# Allowed verification transitions. Rejected and suspended are terminal.
_TRANSITIONS: Dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset({VerificationStatus.VERIFIED, VerificationStatus.REJECTED}),
    VerificationStatus.VERIFIED: frozenset({VerificationStatus.SUSPENDED}),
    VerificationStatus.REJECTED: frozenset(),
    VerificationStatus.SUSPENDED: frozenset(),
}

_UPDATABLE_FIELDS = frozenset(
    {
        "rating",
        "consultation_fee",
        "specializations",
        "license_number",
        "max_patients",
        "is_accepting_patients",
        "total_consultations",
        "display_name",
        "service_title",
    }
)


class ProviderIdentityRegistry:
    """Mints and tracks one provider identity per (person, professional role).

    Identifiers are ``<role_type>_<sequence>`` where the sequence is one more
    than the largest sequence ever minted for that role type, so numbers are
    never reused and gaps stay gaps.
    """

    def __init__(self, store: KeyValueStore, *, audit: Optional[AuditService] = None, clock: Clock = utcnow) -> None:
        self._store = store
        self._audit = audit or AuditService()
        self._clock = clock
        self._lock = RLock()

    def _load(self) -> List[ProviderIdentity]:
        raw = self._store.get(PROVIDER_SERVICES_KEY) or []
        return [ProviderIdentity.model_validate(item) for item in raw]

    def _save(self, profiles: List[ProviderIdentity]) -> None:
        self._store.set(PROVIDER_SERVICES_KEY, [p.model_dump(mode="json") for p in profiles])

    @staticmethod
    def _next_id(role_type: RoleType, profiles: List[ProviderIdentity]) -> ProviderId:
        highest = 0
        for profile in profiles:
            if profile.role_type != role_type:
                continue
            highest = max(highest, profile.provider_id.sequence)
        return ProviderId(role_type=role_type.value, sequence=highest + 1)

    # Creation

    def create_profile(
        self,
        owner_user_id: str,
        role_type: RoleType,
        details: ProviderDetails,
    ) -> ProviderIdentity:
        if not owner_user_id:
            raise CareTeamValidationError("owner_user_id is required", field="owner_user_id")
        display_name = (details.display_name or "").strip()
        if not display_name:
            raise CareTeamValidationError("display_name is required", field="display_name")
        role_type = RoleType(role_type)

        with self._lock:
            profiles = self._load()
            provider_id = self._next_id(role_type, profiles)
            now = self._clock()
            prefix = ROLE_DISPLAY_PREFIXES.get(role_type, "")
            focus = details.specializations[0] if details.specializations else role_type.value
            profile = ProviderIdentity(
                id=str(provider_id),
                owner_user_id=owner_user_id,
                role_type=role_type,
                display_name=f"{prefix} {display_name}".strip(),
                service_title=f"{display_name} - {focus}",
                specializations=list(details.specializations),
                license_number=details.license_number,
                consultation_fee=details.consultation_fee,
                max_patients=details.max_patients,
                verification_status=VerificationStatus.PENDING,
                is_active=False,
                join_date=now,
                created_at=now,
                updated_at=now,
            )
            profiles.append(profile)
            self._save(profiles)

        logger.info("Minted provider identity %s for user %s", profile.id, owner_user_id)
        self._audit.log_event(
            action="create_provider_profile",
            resource_type="provider_identity",
            resource_id=profile.id,
            extra={"role_type": role_type.value},
        )
        return profile

    # Status transitions

    def _transition(
        self,
        provider_id: str,
        target: VerificationStatus,
        actor_id: str,
        reason: Optional[str],
    ) -> OperationResult:
        with self._lock:
            profiles = self._load()
            profile = next((p for p in profiles if p.id == provider_id), None)
            if profile is None:
                return OperationResult.fail(ErrorCode.NOT_FOUND, f"Provider {provider_id} not found")

            current = profile.verification_status
            if target not in _TRANSITIONS[current]:
                return OperationResult.fail(
                    ErrorCode.INVALID_TRANSITION,
                    f"Cannot move provider {provider_id} from {current.value} to {target.value}",
                )

            now = self._clock()
            profile.status_history.append(
                StatusChange(from_status=current, to_status=target, changed_by=actor_id, reason=reason, changed_at=now)
            )
            profile.verification_status = target
            profile.is_active = target == VerificationStatus.VERIFIED
            profile.updated_at = now
            self._save(profiles)

        self._audit.log_event(
            action=f"provider_{target.value}",
            resource_type="provider_identity",
            resource_id=provider_id,
            subject=actor_id,
            extra={"from_status": current.value},
        )
        return OperationResult.ok()

    def approve(self, provider_id: str, approved_by: str) -> OperationResult:
        return self._transition(provider_id, VerificationStatus.VERIFIED, approved_by, None)

    def reject(self, provider_id: str, rejected_by: str, reason: Optional[str] = None) -> OperationResult:
        return self._transition(provider_id, VerificationStatus.REJECTED, rejected_by, reason)

    def suspend(self, provider_id: str, suspended_by: str, reason: Optional[str] = None) -> OperationResult:
        return self._transition(provider_id, VerificationStatus.SUSPENDED, suspended_by, reason)

    def update_profile(self, provider_id: str, **updates: Any) -> OperationResult:
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            return OperationResult.fail(
                ErrorCode.VALIDATION_ERROR, f"Fields cannot be updated: {', '.join(sorted(unknown))}"
            )

        with self._lock:
            profiles = self._load()
            index = next((i for i, p in enumerate(profiles) if p.id == provider_id), None)
            if index is None:
                return OperationResult.fail(ErrorCode.NOT_FOUND, f"Provider {provider_id} not found")

            merged = profiles[index].model_dump()
            merged.update(updates)
            merged["updated_at"] = self._clock()
            try:
                profiles[index] = ProviderIdentity.model_validate(merged)
            except ValueError as exc:
                return OperationResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))
            self._save(profiles)

        return OperationResult.ok()

    # Lookups

    def get_profile(self, provider_id: str) -> Optional[ProviderIdentity]:
        return next((p for p in self._load() if p.id == provider_id), None)

    def get_profiles_for_user(self, user_id: str) -> List[ProviderIdentity]:
        return [p for p in self._load() if p.owner_user_id == user_id]

    def get_provider_id_for_role(self, user_id: str, role_type: RoleType) -> Optional[str]:
        for profile in self._load():
            if profile.owner_user_id == user_id and profile.role_type == role_type:
                return profile.id
        return None

    def list_profiles(self) -> List[ProviderIdentity]:
        return self._load()

    def search_by(
        self,
        *,
        role_type: Optional[RoleType] = None,
        specialization: Optional[str] = None,
        is_active: Optional[bool] = None,
        min_rating: Optional[float] = None,
    ) -> List[ProviderIdentity]:
        needle = specialization.lower() if specialization else None
        results: List[ProviderIdentity] = []
        for profile in self._load():
            if role_type is not None and profile.role_type != role_type:
                continue
            if needle and not any(needle in s.lower() for s in profile.specializations):
                continue
            if is_active is not None and profile.is_active != is_active:
                continue
            if min_rating is not None and profile.rating < min_rating:
                continue
            results.append(profile)
        return results
