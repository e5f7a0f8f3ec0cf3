from __future__ import annotations

import logging
from typing import Optional

from src.careteam.config import Settings, settings as default_settings
from src.careteam.infra.store.base import KeyValueStore
from src.careteam.infra.store.inmemory import InMemoryKeyValueStore
from src.careteam.infra.store.models import Base
from src.careteam.infra.store.session import create_sqlalchemy_engine, create_sqlalchemy_session_factory
from src.careteam.infra.store.sql import SqlKeyValueStore

logger = logging.getLogger("careteam.store")


def build_store(settings: Optional[Settings] = None, *, database_url: Optional[str] = None) -> KeyValueStore:
    """Return the key-value store selected by configuration.

    STORE_BACKEND=sql with a DATABASE_URL yields a SQL-backed store (tables
    are created if missing). Anything else, including a misconfigured SQL
    backend, falls back to the in-memory store.
    """

    cfg = settings or default_settings
    if cfg.store_backend.lower() != "sql":
        return InMemoryKeyValueStore()

    db_url = database_url or cfg.database_url
    if not db_url:
        logger.warning("STORE_BACKEND=sql but DATABASE_URL is not set; using in-memory store")
        return InMemoryKeyValueStore()

    engine = create_sqlalchemy_engine(db_url)
    # Migrations are out of scope; create the single table on demand.
    Base.metadata.create_all(engine)
    return SqlKeyValueStore(create_sqlalchemy_session_factory(engine))
