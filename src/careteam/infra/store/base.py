from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


# Fixed collection keys. Each collection is stored whole under one key.
PROVIDER_SERVICES_KEY = "careteam_provider_services"
PATIENT_ASSIGNMENTS_KEY = "careteam_patient_assignments"
COMMUNICATIONS_KEY = "careteam_communications"
SHARED_DATA_KEY = "careteam_shared_data"
MULTI_USERS_KEY = "careteam_multi_users"
URGENT_OUTBOX_KEY = "careteam_urgent_outbox"


class KeyValueStore(ABC):
    """Persistence collaborator consumed only through get/set.

    Values are JSON-compatible structures. There are no secondary indices:
    callers load a whole collection and filter in memory.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError
