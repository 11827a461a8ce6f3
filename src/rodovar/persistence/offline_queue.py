"""Single-slot offline write buffer, one slot per shipment code.

Writing a slot replaces whatever was buffered before for that code: within a
device the most recent snapshot wins.
"""

from __future__ import annotations

from typing import Any

from .cache import LocalCache

OFFLINE_QUEUE_TABLE = "offline_queue"


class OfflineQueue:
    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    def put(self, code: str, record: dict[str, Any]) -> None:
        self.cache.put(OFFLINE_QUEUE_TABLE, code, record)

    def get(self, code: str) -> dict[str, Any] | None:
        return self.cache.get(OFFLINE_QUEUE_TABLE, code)

    def discard(self, code: str) -> None:
        self.cache.remove(OFFLINE_QUEUE_TABLE, code)

    def has_pending(self, code: str) -> bool:
        return self.get(code) is not None

    def pending_codes(self) -> list[str]:
        return sorted(self.cache.all(OFFLINE_QUEUE_TABLE))

    def records(self) -> dict[str, dict[str, Any]]:
        return self.cache.all(OFFLINE_QUEUE_TABLE)
