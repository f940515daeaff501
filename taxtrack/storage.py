"""
storage.py - local slot store

A small stand-in for browser local storage: one JSON file holding four
independent string slots. Values are strings; get_json/set_json wrap the
JSON-encoded slots (user profile, transactions, settings).
"""

from typing import Any, Dict, Optional
import json
import logging
import os
import shutil
import tempfile
import threading

from taxtrack.errors import PersistenceError

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "USER_LOGGED_IN": "taxtrack_loggedIn",
    "USER_DATA": "taxtrack_userData",
    "TRANSACTIONS": "taxtrack_transactions",
    "SETTINGS": "taxtrack_settings",
}

# one lock per store file, shared by every LocalStore on that path
_path_locks: Dict[str, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.RLock:
    with _path_locks_guard:
        if path not in _path_locks:
            _path_locks[path] = threading.RLock()
        return _path_locks[path]


class LocalStore:
    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.lock = _lock_for(self.path)

    @staticmethod
    def _check_key(key: str):
        if key not in STORAGE_KEYS.values():
            raise KeyError(f"Unknown storage slot {key!r}")

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Failed to read %s, treating store as empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed store file %s", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]):
        # atomic write: write to temp file then move
        dirn = os.path.dirname(self.path)
        tmp_path = None
        try:
            os.makedirs(dirn, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix="tmp_taxtrack_", dir=dirn, text=True)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            shutil.move(tmp_path, self.path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceError(f"Could not write {self.path}", detail=str(exc)) from exc

    def get_item(self, key: str) -> Optional[str]:
        self._check_key(key)
        return self._read_all().get(key)

    def set_item(self, key: str, value: str):
        self._check_key(key)
        with self.lock:
            data = self._read_all()
            data[key] = str(value)
            self._write_all(data)

    def remove_item(self, key: str):
        self._check_key(key)
        with self.lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Slot %s holds invalid JSON, using default", key)
            return default

    def set_json(self, key: str, value: Any):
        self.set_item(key, json.dumps(value, ensure_ascii=False))
