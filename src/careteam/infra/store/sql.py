from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from src.careteam.infra.store.base import KeyValueStore
from src.careteam.infra.store.models import KeyValueORM
from src.careteam.infra.store.session import SessionFactory


class SqlKeyValueStore(KeyValueStore):
    """SQL-backed key-value store, one row per collection key.

    Writes replace the whole row, so concurrent writers to the same key are
    last-write-wins exactly like the in-memory store.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        session = self._session_factory()
        try:
            orm = session.get(KeyValueORM, key)
            if orm is None:
                return None
            return json.loads(orm.value)
        finally:
            session.close()

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        now = datetime.now(timezone.utc)
        session = self._session_factory()
        try:
            existing = session.get(KeyValueORM, key)
            if existing is None:
                session.add(KeyValueORM(key=key, value=payload, updated_at=now))
            else:
                existing.value = payload
                existing.updated_at = now
            session.commit()
        finally:
            session.close()
