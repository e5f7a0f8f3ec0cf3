from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from src.careteam.config import Settings
from src.careteam.domain.models.communication import UrgentNotification
from src.careteam.domain.models.provider_identity import ProviderDetails, RoleType
from src.careteam.infra.store.inmemory import InMemoryKeyValueStore
from src.careteam.services.container import build_services


class SteppingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self) -> None:
        self._now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


class RecordingNotifier:
    def __init__(self) -> None:
        self.delivered: List[UrgentNotification] = []

    def notify(self, notification: UrgentNotification) -> None:
        self.delivered.append(notification)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def services(notifier):
    return build_services(
        InMemoryKeyValueStore(),
        settings=Settings(store_backend="memory"),
        notifier=notifier,
        clock=SteppingClock(),
    )


@pytest.fixture
def register_provider(services):
    """Factory that creates a provider identity and optionally verifies it."""

    def _register(role, name, *, rating=0.0, specializations=None, max_patients=None, approve=True):
        profile = services.registry.create_profile(
            f"user-{name.lower().replace(' ', '-')}",
            RoleType(role),
            ProviderDetails(display_name=name, specializations=specializations or [], max_patients=max_patients),
        )
        if rating:
            services.registry.update_profile(profile.id, rating=rating)
        if approve:
            services.registry.approve(profile.id, "admin-1")
        return services.registry.get_profile(profile.id)

    return _register
