from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.careteam.config import Settings, settings as default_settings
from src.careteam.infra.store.base import KeyValueStore
from src.careteam.infra.store.bootstrap import build_store
from src.careteam.services.assignments.service import CareTeamAssignmentStore
from src.careteam.services.audit.service import AuditService
from src.careteam.services.clock import Clock, utcnow
from src.careteam.services.communication.outbox import UrgentNotificationOutbox, UrgentNotifier, notifier_from_settings
from src.careteam.services.communication.router import CommunicationRouter
from src.careteam.services.identity.multi_role import MultiRoleIdentity
from src.careteam.services.identity.registry import ProviderIdentityRegistry
from src.careteam.services.recommendations.service import ProviderRecommendationEngine


@dataclass
class CareCoordinationServices:
    """One explicitly wired set of services sharing a single store."""

    settings: Settings
    store: KeyValueStore
    registry: ProviderIdentityRegistry
    identities: MultiRoleIdentity
    assignments: CareTeamAssignmentStore
    recommendations: ProviderRecommendationEngine
    outbox: UrgentNotificationOutbox
    router: CommunicationRouter
    notifier: UrgentNotifier

    def close(self) -> None:
        """Release resources held by the notifier (e.g. the webhook HTTP client)."""

        close = getattr(self.notifier, "close", None)
        if close is not None:
            close()


def build_services(
    store: Optional[KeyValueStore] = None,
    *,
    settings: Optional[Settings] = None,
    notifier: Optional[UrgentNotifier] = None,
    clock: Clock = utcnow,
) -> CareCoordinationServices:
    """Construct all services over ``store`` (or the configured store).

    Call once per process, or once per test for isolation.
    """

    cfg = settings or default_settings
    kv = store if store is not None else build_store(cfg)
    audit = AuditService()

    registry = ProviderIdentityRegistry(kv, audit=audit, clock=clock)
    identities = MultiRoleIdentity(kv, registry=registry, settings=cfg, audit=audit, clock=clock)
    assignments = CareTeamAssignmentStore(kv, registry=registry, settings=cfg, audit=audit, clock=clock)
    recommendations = ProviderRecommendationEngine(registry, assignments)
    outbox = UrgentNotificationOutbox(kv, clock=clock)
    router = CommunicationRouter(kv, assignments, outbox=outbox, audit=audit, clock=clock)

    return CareCoordinationServices(
        settings=cfg,
        store=kv,
        registry=registry,
        identities=identities,
        assignments=assignments,
        recommendations=recommendations,
        outbox=outbox,
        router=router,
        notifier=notifier or notifier_from_settings(cfg),
    )
