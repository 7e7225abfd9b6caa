import json

import pytest

from rally.engine import ScoringEngine
from rally.exceptions import StorageError
from rally.models import LiveMatchSession, MatchSettings, SetScore
from rally.storage import (
    InMemoryStore,
    JsonFileStore,
    load_session,
    save_session,
    session_from_dict,
    session_to_dict,
)


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

def played_session(clock):
    engine = ScoringEngine(clock=clock)
    session = LiveMatchSession.new("m.1", MatchSettings(target_points=11), clock())
    for side in "a" * 11:
        session = engine.add_point(session, side).unwrap()
    session = engine.advance_set(session).unwrap()
    session = engine.add_point(session, "b").unwrap()
    clock.advance(30)
    return engine.pause(session).unwrap()


# ---------------------------------------------------------
# Codec
# ---------------------------------------------------------

def test_session_survives_json(clock):
    session = played_session(clock)

    payload = json.loads(json.dumps(session_to_dict(session)))

    assert session_from_dict(payload) == session


def test_unsupported_schema_rejected(clock):
    payload = session_to_dict(played_session(clock))
    payload["schema_version"] = 99

    with pytest.raises(StorageError):
        session_from_dict(payload)


def test_malformed_payload_rejected(clock):
    payload = session_to_dict(played_session(clock))
    del payload["target_points"]

    with pytest.raises(StorageError):
        session_from_dict(payload)


# ---------------------------------------------------------
# Stores
# ---------------------------------------------------------

def test_in_memory_store_isolates_values():
    store = InMemoryStore()
    value = {"x": [1]}

    store.put("k", value)
    value["x"].append(2)

    assert store.get("k") == {"x": [1]}


def test_json_file_store_layout(tmp_path, clock):
    store = JsonFileStore(tmp_path)
    session = played_session(clock)

    save_session(store, session)

    assert (tmp_path / "live" / "m.1.json").exists()
    assert list(store.keys()) == ["live/m.1"]

    loaded = load_session(store, "m.1")
    assert loaded.completed_sets == (SetScore(11, 0),)
    assert loaded.is_paused


def test_json_file_store_delete(tmp_path):
    store = JsonFileStore(tmp_path)
    store.put("live/x", {"a": 1})

    store.delete("live/x")
    store.delete("live/x")

    assert store.get("live/x") is None


def test_json_file_store_rejects_traversal(tmp_path):
    with pytest.raises(StorageError):
        JsonFileStore(tmp_path).put("../escape", {})


def test_json_file_store_corrupt_file(tmp_path):
    (tmp_path / "live").mkdir()
    (tmp_path / "live" / "bad.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        JsonFileStore(tmp_path).get("live/bad")
