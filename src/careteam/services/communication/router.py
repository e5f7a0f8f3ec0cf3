from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from src.careteam.domain.errors import ErrorCode, InvalidProviderId, OperationResult
from src.careteam.domain.models.care_team import AssignmentStatus
from src.careteam.domain.models.communication import (
    RESPONSE_REQUIRED_TYPES,
    CommunicationRecord,
    CommunicationResponse,
    MessageType,
    SendResult,
    SharedDataLedger,
    SharedDataType,
    ShareDataResult,
)
from src.careteam.domain.models.provider_identity import ProviderId
from src.careteam.infra.store.base import COMMUNICATIONS_KEY, SHARED_DATA_KEY, KeyValueStore
from src.careteam.services.assignments.service import CareTeamAssignmentStore
from src.careteam.services.audit.service import AuditService
from src.careteam.services.clock import Clock, utcnow
from src.careteam.services.communication import templates
from src.careteam.services.communication.outbox import UrgentNotificationOutbox

logger = logging.getLogger("careteam.communication")


class CommunicationRouter:
    """Routes provider-to-provider messages about a patient by service type.

    Senders name the *kind* of provider they want ("doctor", "nutritionist")
    and the router resolves the concrete provider through the patient's
    current care-team assignments.
    """

    def __init__(
        self,
        store: KeyValueStore,
        assignments: CareTeamAssignmentStore,
        *,
        outbox: Optional[UrgentNotificationOutbox] = None,
        audit: Optional[AuditService] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._assignments = assignments
        self._clock = clock
        self._outbox = outbox or UrgentNotificationOutbox(store, clock=clock)
        self._audit = audit or AuditService()
        self._lock = RLock()

    @property
    def outbox(self) -> UrgentNotificationOutbox:
        return self._outbox

    def _load(self) -> List[CommunicationRecord]:
        raw = self._store.get(COMMUNICATIONS_KEY) or []
        return [CommunicationRecord.model_validate(item) for item in raw]

    def _save(self, records: List[CommunicationRecord]) -> None:
        self._store.set(COMMUNICATIONS_KEY, [r.model_dump(mode="json") for r in records])

    def _load_ledgers(self) -> List[SharedDataLedger]:
        raw = self._store.get(SHARED_DATA_KEY) or []
        return [SharedDataLedger.model_validate(item) for item in raw]

    def _save_ledgers(self, ledgers: List[SharedDataLedger]) -> None:
        self._store.set(SHARED_DATA_KEY, [l.model_dump(mode="json") for l in ledgers])

    # Sending

    def send(
        self,
        patient_id: str,
        from_provider_id: str,
        to_service_type: str,
        message_type: Union[MessageType, str],
        subject: str,
        content: str,
        related_data: Optional[Dict[str, Any]] = None,
        is_urgent: bool = False,
    ) -> SendResult:
        try:
            message_type = MessageType(message_type)
        except ValueError:
            return SendResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown message type '{message_type}'")
        try:
            sender = ProviderId.parse(from_provider_id)
        except InvalidProviderId as exc:
            return SendResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))
        if not patient_id or not to_service_type:
            return SendResult.fail(ErrorCode.VALIDATION_ERROR, "patient_id and to_service_type are required")
        if not subject or not content:
            return SendResult.fail(ErrorCode.VALIDATION_ERROR, "subject and content are required")

        care_team = self._assignments.get_assignment(patient_id)
        target = care_team.assignments.get(to_service_type) if care_team is not None else None
        if target is None or target.status != AssignmentStatus.ACTIVE:
            return SendResult.fail(
                ErrorCode.TARGET_NOT_ASSIGNED, f"No {to_service_type} assigned to patient {patient_id}"
            )

        record = CommunicationRecord(
            id=f"comm_{uuid4().hex}",
            patient_id=patient_id,
            from_provider_id=from_provider_id,
            from_provider_type=sender.role_type,
            to_provider_id=target.provider_id,
            to_provider_type=to_service_type,
            message_type=message_type,
            subject=subject,
            content=content,
            related_data=related_data,
            is_urgent=is_urgent,
            requires_response=message_type in RESPONSE_REQUIRED_TYPES,
            created_at=self._clock(),
        )
        with self._lock:
            records = self._load()
            records.append(record)
            self._save(records)

        if is_urgent:
            self._outbox.enqueue(record)

        self._audit.log_event(
            action="send_message",
            resource_type="communication",
            resource_id=record.id,
            subject=from_provider_id,
            extra={
                "patient_id": patient_id,
                "to_provider_id": target.provider_id,
                "message_type": message_type.value,
                "is_urgent": is_urgent,
            },
        )
        return SendResult.ok(
            target_provider=target.provider_id,
            target_provider_name=target.provider_name,
            communication_id=record.id,
        )

    def respond(self, communication_id: str, provider_id: str, response_text: str) -> OperationResult:
        if not response_text or not response_text.strip():
            return OperationResult.fail(ErrorCode.VALIDATION_ERROR, "response text is required")
        try:
            responder = ProviderId.parse(provider_id)
        except InvalidProviderId as exc:
            return OperationResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))

        with self._lock:
            records = self._load()
            record = next((r for r in records if r.id == communication_id), None)
            if record is None:
                return OperationResult.fail(ErrorCode.NOT_FOUND, f"Communication {communication_id} not found")

            if provider_id != record.to_provider_id and not self._assignments.is_active_member(
                record.patient_id, provider_id
            ):
                logger.warning("Rejected response from %s on %s: not on care team", provider_id, communication_id)
                return OperationResult.fail(
                    ErrorCode.UNAUTHORIZED,
                    f"Provider {provider_id} is not on the care team for patient {record.patient_id}",
                )

            timestamp = self._clock()
            if record.responses and record.responses[-1].timestamp > timestamp:
                timestamp = record.responses[-1].timestamp
            record.responses.append(
                CommunicationResponse(
                    provider_id=provider_id,
                    provider_type=responder.role_type,
                    response=response_text,
                    timestamp=timestamp,
                )
            )
            self._save(records)

        self._audit.log_event(
            action="respond_message",
            resource_type="communication",
            resource_id=communication_id,
            subject=provider_id,
        )
        return OperationResult.ok()

    # Queries

    def get(self, communication_id: str) -> Optional[CommunicationRecord]:
        return next((r for r in self._load() if r.id == communication_id), None)

    def list_for_provider(self, provider_id: str) -> List[CommunicationRecord]:
        records = [r for r in self._load() if provider_id in (r.from_provider_id, r.to_provider_id)]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def list_for_patient(self, patient_id: str, requesting_provider_id: str) -> List[CommunicationRecord]:
        if not self._assignments.is_active_member(patient_id, requesting_provider_id):
            return []
        records = [r for r in self._load() if r.patient_id == patient_id]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    # Data sharing

    def share_data(
        self,
        patient_id: str,
        from_provider_id: str,
        data_type: Union[SharedDataType, str],
        data_id: str,
        notify_team: bool = True,
    ) -> ShareDataResult:
        try:
            data_type = SharedDataType(data_type)
        except ValueError:
            return ShareDataResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown data type '{data_type}'")
        if not data_id:
            return ShareDataResult.fail(ErrorCode.VALIDATION_ERROR, "data_id is required")
        try:
            ProviderId.parse(from_provider_id)
        except InvalidProviderId as exc:
            return ShareDataResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))

        care_team = self._assignments.get_assignment(patient_id)
        if care_team is None:
            return ShareDataResult.fail(ErrorCode.NOT_FOUND, f"No care team found for patient {patient_id}")

        with self._lock:
            ledgers = self._load_ledgers()
            ledger = next((l for l in ledgers if l.patient_id == patient_id), None)
            if ledger is None:
                ledger = SharedDataLedger(patient_id=patient_id, updated_at=self._clock())
                ledgers.append(ledger)
            ledger.shared.setdefault(data_type, []).append(data_id)
            ledger.updated_at = self._clock()
            self._save_ledgers(ledgers)

        notified: List[str] = []
        if notify_team:
            urgent = data_type == SharedDataType.LAB_REPORT
            for service_type, member in care_team.active_members().items():
                if member.provider_id == from_provider_id:
                    continue
                outcome = self.send(
                    patient_id,
                    from_provider_id,
                    service_type,
                    MessageType.DATA_UPDATE,
                    f"New {data_type.label} available",
                    f"A new {data_type.label} has been added for {care_team.patient_name}. "
                    "Please review when convenient.",
                    related_data={"data_type": data_type.value, "data_id": data_id},
                    is_urgent=urgent,
                )
                if outcome.success and outcome.target_provider:
                    notified.append(outcome.target_provider)
                else:
                    logger.warning(
                        "Could not notify %s about %s for patient %s: %s",
                        service_type,
                        data_id,
                        patient_id,
                        outcome.message,
                    )

        return ShareDataResult.ok(notified_providers=notified)

    def shared_data(self, patient_id: str) -> Optional[SharedDataLedger]:
        return next((l for l in self._load_ledgers() if l.patient_id == patient_id), None)

    # Templates

    @staticmethod
    def quick_message_templates() -> Dict[Tuple[str, str], List[str]]:
        return templates.quick_message_templates()

    @staticmethod
    def templates_for(from_role: str, to_role: str) -> List[str]:
        return templates.templates_for(from_role, to_role)
