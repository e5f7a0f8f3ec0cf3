from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, List, Optional, Protocol
from uuid import uuid4

import httpx

from src.careteam.config import Settings, settings as default_settings
from src.careteam.domain.models.communication import CommunicationRecord, DispatchSummary, UrgentNotification
from src.careteam.infra.store.base import URGENT_OUTBOX_KEY, KeyValueStore
from src.careteam.services.clock import Clock, utcnow

logger = logging.getLogger("careteam.outbox")


class UrgentNotifier(Protocol):
    """External delivery channel for urgent notifications.

    Implementations raise on failure; the outbox keeps the entry pending and
    retries it on the next dispatch.
    """

    def notify(self, notification: UrgentNotification) -> None: ...


class LoggingNotifier:
    """Default notifier that only writes a warning-level log line."""

    def notify(self, notification: UrgentNotification) -> None:
        logger.warning(
            "URGENT: %s has a critical message about patient %s (communication %s)",
            notification.provider_id,
            notification.patient_id,
            notification.communication_id,
        )


class WebhookNotifier:
    """POSTs each urgent notification as JSON to a configured webhook.

    Only identifiers and the subject line are sent; message content stays in
    the communication store.
    """

    def __init__(self, url: str, *, timeout_seconds: float = 5.0, client: Optional[httpx.Client] = None) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def notify(self, notification: UrgentNotification) -> None:
        response = self._client.post(self._url, json=notification.model_dump(mode="json"))
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WebhookNotifier":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def notifier_from_settings(settings: Optional[Settings] = None) -> UrgentNotifier:
    cfg = settings or default_settings
    if cfg.urgent_webhook_url:
        return WebhookNotifier(cfg.urgent_webhook_url, timeout_seconds=cfg.urgent_webhook_timeout_seconds)
    return LoggingNotifier()


class UrgentNotificationOutbox:
    """Persistent queue of urgent notifications with at-least-once delivery.

    Sending a message only enqueues; ``dispatch`` hands pending entries to a
    notifier and marks them delivered once the notifier returns without
    raising. Entries that fail stay pending with their attempt count bumped.
    """

    def __init__(self, store: KeyValueStore, *, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock
        self._lock = RLock()

    def _load(self) -> List[UrgentNotification]:
        raw = self._store.get(URGENT_OUTBOX_KEY) or []
        return [UrgentNotification.model_validate(item) for item in raw]

    def _save(self, entries: List[UrgentNotification]) -> None:
        self._store.set(URGENT_OUTBOX_KEY, [e.model_dump(mode="json") for e in entries])

    def enqueue(self, record: CommunicationRecord) -> UrgentNotification:
        entry = UrgentNotification(
            id=f"urgent_{uuid4().hex}",
            communication_id=record.id,
            patient_id=record.patient_id,
            provider_id=record.to_provider_id,
            subject=record.subject,
            created_at=self._clock(),
        )
        with self._lock:
            entries = self._load()
            entries.append(entry)
            self._save(entries)
        logger.info("Queued urgent notification %s for %s", entry.id, entry.provider_id)
        return entry

    def pending(self) -> List[UrgentNotification]:
        return [e for e in self._load() if not e.is_delivered]

    def all(self) -> List[UrgentNotification]:
        return self._load()

    def dispatch(self, notifier: UrgentNotifier) -> DispatchSummary:
        """Deliver every pending entry once.

        The notifier runs without the outbox lock held, so enqueues made while
        a slow delivery is in flight are not blocked. Outcomes are merged back
        by entry id afterwards.
        """

        summary = DispatchSummary()
        outcomes: Dict[str, UrgentNotification] = {}
        for entry in self.pending():
            entry.attempts += 1
            try:
                notifier.notify(entry)
            except Exception as exc:
                logger.exception("Urgent notification %s failed (attempt %d)", entry.id, entry.attempts)
                entry.last_error = str(exc) or exc.__class__.__name__
                summary.failed += 1
            else:
                entry.delivered_at = self._clock()
                entry.last_error = None
                summary.delivered += 1
            outcomes[entry.id] = entry

        if outcomes:
            with self._lock:
                entries = self._load()
                for stored in entries:
                    outcome = outcomes.get(stored.id)
                    if outcome is None or stored.is_delivered:
                        continue
                    stored.attempts += 1
                    stored.last_error = outcome.last_error
                    stored.delivered_at = outcome.delivered_at
                self._save(entries)
        return summary
