from __future__ import annotations

import json
from typing import Any, Dict, Optional

from src.careteam.infra.store.base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store used for tests and local development.

    Values go through a JSON round-trip on the way in and out so callers can
    never mutate stored state without calling ``set``, matching the semantics
    of a real serialized backend.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def keys(self) -> list[str]:
        return sorted(self._data)
