from src.careteam.config import Settings
from src.careteam.infra.store.bootstrap import build_store
from src.careteam.infra.store.inmemory import InMemoryKeyValueStore
from src.careteam.infra.store.sql import SqlKeyValueStore
from src.careteam.services.container import build_services


def _sql_settings(tmp_path):
    return Settings(store_backend="sql", database_url=f"sqlite:///{tmp_path / 'careteam.db'}")


def test_in_memory_store_copies_values():
    store = InMemoryKeyValueStore()
    value = {"patients": ["pat-1"]}
    store.set("k", value)
    value["patients"].append("pat-2")

    assert store.get("k") == {"patients": ["pat-1"]}
    assert store.get("missing") is None
    assert store.keys() == ["k"]


def test_build_store_defaults_to_memory():
    assert isinstance(build_store(Settings(store_backend="memory")), InMemoryKeyValueStore)
    assert isinstance(build_store(Settings(store_backend="sql", database_url=None)), InMemoryKeyValueStore)


def test_sql_store_round_trip(tmp_path):
    store = build_store(_sql_settings(tmp_path))
    assert isinstance(store, SqlKeyValueStore)

    assert store.get("careteam_provider_services") is None
    store.set("careteam_provider_services", [{"id": "doctor_001"}])
    store.set("careteam_provider_services", [{"id": "doctor_001"}, {"id": "doctor_002"}])

    assert store.get("careteam_provider_services") == [{"id": "doctor_001"}, {"id": "doctor_002"}]


def test_services_share_state_through_sql(tmp_path):
    settings = _sql_settings(tmp_path)
    writer = build_services(settings=settings)
    writer.assignments.assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")

    reader = build_services(build_store(settings), settings=settings)
    assert reader.assignments.is_active_member("pat-1", "doctor_001")
