"""File-based local cache: the always-written fallback tier of the stores."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from ..config import settings

logger = logging.getLogger(__name__)

SESSION_STATE_TABLE = "session_state"


class LocalCache:
    """Keyed JSON maps, one file per table under ``<root>/cache``.

    Store I/O runs in worker threads, so every read-modify-write of a table
    file happens under one lock.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.cache_root = self.root / "cache"
        self.cache_root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _path(self, table: str) -> Path:
        return self.cache_root / f"{table}.json"

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)
        os.replace(tmp_path, path)

    def _load(self, table: str) -> dict[str, Any]:
        path = self._path(table)
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as e:
            logger.error(f"Local cache {path} is corrupt, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def all(self, table: str) -> dict[str, Any]:
        with self._lock:
            return self._load(table)

    def get(self, table: str, key: str) -> Any | None:
        with self._lock:
            return self._load(table).get(key)

    def put(self, table: str, key: str, value: Any) -> None:
        with self._lock:
            data = self._load(table)
            data[key] = value
            self.write_json(self._path(table), data)

    def remove(self, table: str, key: str) -> bool:
        with self._lock:
            data = self._load(table)
            if key not in data:
                return False
            del data[key]
            self.write_json(self._path(table), data)
            return True


class SessionMarkers:
    """Survives restarts: which codes had a live session, and the driver's current code."""

    ACTIVE_CODE_KEY = "active_driver_code"

    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    @staticmethod
    def _tracking_key(code: str) -> str:
        return f"tracking_state_{code}"

    def mark_active(self, code: str) -> None:
        self.cache.put(SESSION_STATE_TABLE, self._tracking_key(code), "active")

    def clear_active(self, code: str) -> None:
        self.cache.remove(SESSION_STATE_TABLE, self._tracking_key(code))

    def is_active(self, code: str) -> bool:
        return self.cache.get(SESSION_STATE_TABLE, self._tracking_key(code)) == "active"

    def active_codes(self) -> list[str]:
        prefix = self._tracking_key("")
        return sorted(
            key[len(prefix):]
            for key, value in self.cache.all(SESSION_STATE_TABLE).items()
            if key.startswith(prefix) and value == "active"
        )

    def remember_driver_code(self, code: str) -> None:
        self.cache.put(SESSION_STATE_TABLE, self.ACTIVE_CODE_KEY, code)

    def driver_code(self) -> str | None:
        return self.cache.get(SESSION_STATE_TABLE, self.ACTIVE_CODE_KEY)

    def forget_driver_code(self) -> None:
        self.cache.remove(SESSION_STATE_TABLE, self.ACTIVE_CODE_KEY)
