from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, Iterable, List, Optional

from src.careteam.config import Settings, settings as default_settings
from src.careteam.domain.errors import ErrorCode, OperationResult
from src.careteam.domain.models.care_team import (
    CORE_SERVICE_TYPES,
    AssignmentRecord,
    AssignmentReport,
    AssignmentStatus,
    BulkAssignItem,
    BulkAssignResult,
    CareTeamAssignment,
    ProviderPatient,
    ProviderWorkload,
    TeamMember,
)
from src.careteam.infra.store.base import PATIENT_ASSIGNMENTS_KEY, KeyValueStore
from src.careteam.services.audit.service import AuditService
from src.careteam.services.clock import Clock, utcnow
from src.careteam.services.identity.registry import ProviderIdentityRegistry

logger = logging.getLogger("careteam.assignments")

RECENT_ASSIGNMENTS_LIMIT = 10


class CareTeamAssignmentStore:
    """Per-patient, per-service-type provider assignments with audit history.

    The current holder of each service slot lives in
    ``CareTeamAssignment.assignments``. Every assignment and removal is also
    appended to ``CareTeamAssignment.history`` so replacing a provider never
    loses the previous occupant.
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

    def _load(self) -> List[CareTeamAssignment]:
        raw = self._store.get(PATIENT_ASSIGNMENTS_KEY) or []
        return [CareTeamAssignment.model_validate(item) for item in raw]

    def _save(self, records: List[CareTeamAssignment]) -> None:
        self._store.set(PATIENT_ASSIGNMENTS_KEY, [r.model_dump(mode="json") for r in records])

    # Mutations

    def assign(
        self,
        patient_id: str,
        patient_name: str,
        service_type: str,
        provider_id: str,
        provider_name: str,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> OperationResult:
        missing = [
            name
            for name, value in (
                ("patient_id", patient_id),
                ("service_type", service_type),
                ("provider_id", provider_id),
                ("actor_id", actor_id),
            )
            if not value
        ]
        if missing:
            return OperationResult.fail(ErrorCode.VALIDATION_ERROR, f"Missing required fields: {', '.join(missing)}")

        with self._lock:
            records = self._load()
            now = self._clock()
            patient = next((r for r in records if r.patient_id == patient_id), None)
            if patient is None:
                patient = CareTeamAssignment(
                    patient_id=patient_id,
                    patient_name=patient_name or f"Patient {patient_id}",
                    created_at=now,
                    updated_at=now,
                    last_modified_by=actor_id,
                )
                records.append(patient)
            elif patient_name:
                patient.patient_name = patient_name

            previous = patient.assignments.get(service_type)
            record = AssignmentRecord(
                provider_id=provider_id,
                provider_name=provider_name or f"Provider {provider_id}",
                assigned_at=now,
                assigned_by=actor_id,
                status=AssignmentStatus.ACTIVE,
                notes=notes,
            )
            patient.assignments[service_type] = record
            patient.history.setdefault(service_type, []).append(record.model_copy())
            patient.updated_at = now
            patient.last_modified_by = actor_id
            self._save(records)

        if previous is not None and previous.status == AssignmentStatus.ACTIVE:
            logger.info(
                "Replaced %s for patient %s: %s -> %s", service_type, patient_id, previous.provider_id, provider_id
            )
        self._audit.log_event(
            action="assign_provider",
            resource_type="care_team",
            resource_id=patient_id,
            subject=actor_id,
            extra={
                "service_type": service_type,
                "provider_id": provider_id,
                "replaced_provider_id": previous.provider_id if previous is not None else None,
            },
        )
        return OperationResult.ok()

    def remove(
        self,
        patient_id: str,
        service_type: str,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> OperationResult:
        with self._lock:
            records = self._load()
            patient = next((r for r in records if r.patient_id == patient_id), None)
            if patient is None or service_type not in patient.assignments:
                return OperationResult.fail(
                    ErrorCode.NOT_FOUND, f"No {service_type} assignment found for patient {patient_id}"
                )

            record = patient.assignments[service_type]
            if record.status != AssignmentStatus.ACTIVE:
                return OperationResult.fail(
                    ErrorCode.INVALID_TRANSITION,
                    f"The {service_type} assignment for patient {patient_id} is already {record.status.value}",
                )

            now = self._clock()
            record.status = AssignmentStatus.INACTIVE
            record.notes = reason or "Removed by admin"
            record.removed_at = now
            record.removed_by = actor_id
            patient.history.setdefault(service_type, []).append(record.model_copy())
            patient.updated_at = now
            patient.last_modified_by = actor_id
            self._save(records)

        self._audit.log_event(
            action="remove_provider",
            resource_type="care_team",
            resource_id=patient_id,
            subject=actor_id,
            extra={"service_type": service_type, "provider_id": record.provider_id},
        )
        return OperationResult.ok()

    def bulk_assign(self, items: Iterable[BulkAssignItem], actor_id: str) -> BulkAssignResult:
        """Assign many providers, continuing past per-item failures."""

        result = BulkAssignResult()
        for index, item in enumerate(items):
            provider_name = item.provider_name or self.provider_display_name(item.provider_id)
            outcome = self.assign(
                item.patient_id,
                item.patient_name or f"Patient {item.patient_id}",
                item.service_type,
                item.provider_id,
                provider_name,
                actor_id,
                notes=item.notes,
            )
            if outcome.success:
                result.success += 1
            else:
                result.failed += 1
                error = outcome.error.value if outcome.error else "UnknownError"
                result.errors.append(f"item {index}: {error}: {outcome.message}")
        logger.info("Bulk assignment by %s: %d succeeded, %d failed", actor_id, result.success, result.failed)
        return result

    # Queries

    def get_assignment(self, patient_id: str) -> Optional[CareTeamAssignment]:
        return next((r for r in self._load() if r.patient_id == patient_id), None)

    def get_history(self, patient_id: str, service_type: str) -> List[AssignmentRecord]:
        patient = self.get_assignment(patient_id)
        if patient is None:
            return []
        return list(patient.history.get(service_type, []))

    def is_active_member(self, patient_id: str, provider_id: str) -> bool:
        """Return True when ``provider_id`` currently holds an active slot for the patient."""

        patient = self.get_assignment(patient_id)
        if patient is None:
            return False
        return any(r.provider_id == provider_id for r in patient.active_members().values())

    def team_members(self, patient_id: str, exclude_provider_id: Optional[str] = None) -> List[TeamMember]:
        patient = self.get_assignment(patient_id)
        if patient is None:
            return []
        return [
            TeamMember(service_type=service_type, provider_id=record.provider_id, provider_name=record.provider_name)
            for service_type, record in patient.active_members().items()
            if record.provider_id != exclude_provider_id
        ]

    def get_provider_patients(self, provider_id: str) -> List[ProviderPatient]:
        results: List[ProviderPatient] = []
        for patient in self._load():
            for service_type, record in patient.active_members().items():
                if record.provider_id != provider_id:
                    continue
                results.append(
                    ProviderPatient(
                        patient_id=patient.patient_id,
                        patient_name=patient.patient_name,
                        service_type=service_type,
                        assigned_at=record.assigned_at,
                        status=record.status,
                    )
                )
        return results

    def workload(self, provider_id: str) -> ProviderWorkload:
        patients = self.get_provider_patients(provider_id)
        service_types = sorted({p.service_type for p in patients})
        return ProviderWorkload(provider_id=provider_id, total_patients=len(patients), service_types=service_types)

    def current_patient_counts(self) -> Dict[str, int]:
        """Active assignment count per provider id across all patients."""

        counts: Dict[str, int] = {}
        for patient in self._load():
            for record in patient.active_members().values():
                counts[record.provider_id] = counts.get(record.provider_id, 0) + 1
        return counts

    def capacity_for(self, provider_id: str) -> int:
        if self._registry is not None:
            profile = self._registry.get_profile(provider_id)
            if profile is not None and profile.max_patients:
                return profile.max_patients
        return self._settings.default_max_patients

    def report(self) -> AssignmentReport:
        records = self._load()
        assignments_by_service: Dict[str, int] = {service: 0 for service in CORE_SERVICE_TYPES}
        counts: Dict[str, int] = {}
        unassigned = 0

        for patient in records:
            active = patient.active_members()
            if not active:
                unassigned += 1
            for service_type, record in active.items():
                assignments_by_service[service_type] = assignments_by_service.get(service_type, 0) + 1
                counts[record.provider_id] = counts.get(record.provider_id, 0) + 1

        threshold = self._settings.overload_ratio_threshold
        overloaded = sorted(
            provider_id
            for provider_id, current in counts.items()
            if current / self.capacity_for(provider_id) > threshold
        )
        recent = sorted(records, key=lambda r: r.updated_at, reverse=True)[:RECENT_ASSIGNMENTS_LIMIT]

        return AssignmentReport(
            total_patients=len(records),
            total_providers=len(counts),
            assignments_by_service=assignments_by_service,
            unassigned_patients=unassigned,
            overloaded_providers=overloaded,
            recent_assignments=recent,
        )

    def provider_display_name(self, provider_id: str) -> str:
        if self._registry is not None:
            profile = self._registry.get_profile(provider_id)
            if profile is not None:
                return profile.display_name
        return f"Provider {provider_id}"
