# session_store.py
import json
import logging
import os
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SessionStore:
    """Key/value storage for quiz snapshots: load, save and clear by key."""

    def load(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def save(self, key: str, state: Any) -> None:
        raise NotImplementedError

    def clear(self, key: str) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._data: Dict[str, str] = {}

    def load(self, key):
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key, state):
        # stored serialized, so callers never share mutable state with the store
        self._data[key] = json.dumps(state)

    def clear(self, key):
        self._data.pop(key, None)


class JsonFileSessionStore(SessionStore):
    """All keys in one JSON document on disk, rewritten on every save."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring session file %s: expected a JSON object, got %s",
                           self.path, type(data).__name__)
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp, self.path)

    def load(self, key):
        with self._lock:
            return self._read().get(key)

    def save(self, key, state):
        with self._lock:
            data = self._read()
            data[key] = state
            self._write(data)

    def clear(self, key):
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)
