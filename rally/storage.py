import json
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Protocol

from rally.config import SCHEMA_VERSION, SESSIONS_DIR
from rally.exceptions import StorageError
from rally.models import LiveMatchSession, MatchRecord


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def put(self, key: str, value: Dict[str, Any]) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


def live_key(match_id: str) -> str:
    return f"live/{match_id}"


def record_key(match_id: str) -> str:
    return f"match/{match_id}"


# =========================================================
# STORES
# =========================================================

class InMemoryStore:
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        # Kept as JSON text; every get() returns a fresh copy.
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(sorted(self._data))


class JsonFileStore:
    """
    One pretty-printed JSON file per key under `directory`.

    Key "live/abc" lands in "<directory>/live/abc.json".
    """

    def __init__(self, directory: Path = SESSIONS_DIR):
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        parts = key.split("/")
        if any(p in ("", ".", "..") for p in parts):
            raise StorageError(f"Invalid storage key: {key!r}")
        *dirs, name = parts
        return self._directory.joinpath(*dirs, f"{name}.json")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise StorageError(f"Corrupt payload at {path}: {e}") from e

    def put(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_name(f"{path.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=4)
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> Iterator[str]:
        if not self._directory.exists():
            return iter([])

        found = [
            p.relative_to(self._directory).as_posix()[: -len(".json")]
            for p in self._directory.rglob("*.json")
        ]
        return iter(sorted(found))


# =========================================================
# CODECS
# =========================================================

def _check_schema(data: Dict[str, Any]) -> None:
    if not isinstance(data, dict):
        raise StorageError("payload must be an object")

    if data.get("schema_version") != SCHEMA_VERSION:
        raise StorageError(f"Unsupported schema_version: {data.get('schema_version')!r}")


def session_to_dict(session: LiveMatchSession) -> Dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, **session.to_dict()}


def session_from_dict(data: Dict[str, Any]) -> LiveMatchSession:
    _check_schema(data)
    try:
        return LiveMatchSession.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StorageError(f"Invalid live session payload: {e}") from e


def record_to_dict(record: MatchRecord) -> Dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, **record.to_dict()}


def record_from_dict(data: Dict[str, Any]) -> MatchRecord:
    _check_schema(data)
    try:
        return MatchRecord.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StorageError(f"Invalid match record payload: {e}") from e


def save_session(store: KeyValueStore, session: LiveMatchSession) -> None:
    store.put(live_key(session.match_id), session_to_dict(session))


def load_session(store: KeyValueStore, match_id: str) -> Optional[LiveMatchSession]:
    data = store.get(live_key(match_id))
    return session_from_dict(data) if data is not None else None


def save_record(store: KeyValueStore, record: MatchRecord) -> None:
    store.put(record_key(record.match_id), record_to_dict(record))


def load_record(store: KeyValueStore, match_id: str) -> Optional[MatchRecord]:
    data = store.get(record_key(match_id))
    return record_from_dict(data) if data is not None else None
