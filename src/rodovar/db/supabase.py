"""Supabase-backed remote store for shipment and driver records.

Every table holds one JSON record per key::

    {"code": "RODOVAR1234", "version": 3, "data": {...}}   # shipments
    {"id": "d1", "version": 1, "data": {...}}              # drivers

The configuration is resolved once at process start into a `StoreConfig`.
Without credentials the store runs in `StoreMode.LOCAL_ONLY` and
`open_remote_store` hands back an `UnconfiguredRemoteStore`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import httpx
from supabase import Client, create_client

from ..config import Settings, settings as default_settings
from ..errors import ConflictError, StoreUnreachable

logger = logging.getLogger(__name__)


class StoreMode(str, Enum):
    REMOTE = "remote"
    LOCAL_ONLY = "local_only"


@dataclass(frozen=True, slots=True)
class StoreConfig:
    mode: StoreMode
    local_root: Path
    supabase_url: str | None = None
    supabase_key: str | None = None
    shipments_table: str = "shipments"
    drivers_table: str = "drivers"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "StoreConfig":
        settings = settings or default_settings
        configured = bool(settings.supabase_url and settings.supabase_key)
        if not configured:
            logger.warning("Supabase credentials not configured (missing URL or key), running local-only")
        return cls(
            mode=StoreMode.REMOTE if configured else StoreMode.LOCAL_ONLY,
            local_root=settings.data_root,
            supabase_url=settings.supabase_url if configured else None,
            supabase_key=settings.supabase_key if configured else None,
            shipments_table=settings.shipments_table,
            drivers_table=settings.drivers_table,
        )

    @property
    def key_columns(self) -> dict[str, str]:
        return {self.shipments_table: "code", self.drivers_table: "id"}


class RemoteStore(Protocol):
    """Key-value contract the tracking core needs from the durable store."""

    def select(self, table: str, key: str) -> dict[str, Any] | None: ...

    def select_all(self, table: str) -> dict[str, dict[str, Any]]: ...

    def upsert(
        self,
        table: str,
        key: str,
        value: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> None: ...

    def delete(self, table: str, key: str) -> None: ...

    def ping(self) -> bool: ...


class UnconfiguredRemoteStore:
    """Remote tier of a local-only deployment: never reachable."""

    def _unreachable(self) -> StoreUnreachable:
        return StoreUnreachable("Remote store is not configured (local-only mode)")

    def select(self, table: str, key: str) -> dict[str, Any] | None:
        raise self._unreachable()

    def select_all(self, table: str) -> dict[str, dict[str, Any]]:
        raise self._unreachable()

    def upsert(self, table: str, key: str, value: dict[str, Any], *, expected_version: int | None = None) -> None:
        raise self._unreachable()

    def delete(self, table: str, key: str) -> None:
        raise self._unreachable()

    def ping(self) -> bool:
        return False


class SupabaseRemoteStore:
    def __init__(self, client: Client, key_columns: dict[str, str]) -> None:
        self.client = client
        self.key_columns = key_columns

    def _key_column(self, table: str) -> str:
        try:
            return self.key_columns[table]
        except KeyError as e:
            raise ValueError(f"Unknown table '{table}'") from e

    def _execute(self, description: str, query: Any) -> Any:
        try:
            return query.execute()
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"Supabase {description} failed: {e}")
            raise StoreUnreachable(f"Supabase {description} failed: {e}") from e

    def select(self, table: str, key: str) -> dict[str, Any] | None:
        column = self._key_column(table)
        response = self._execute(
            f"select {table}/{key}",
            self.client.table(table).select("*").eq(column, key).limit(1),
        )
        rows = response.data or []
        return rows[0].get("data") if rows else None

    def select_all(self, table: str) -> dict[str, dict[str, Any]]:
        column = self._key_column(table)
        response = self._execute(f"select {table}", self.client.table(table).select("*"))
        return {str(row[column]): row.get("data") for row in (response.data or []) if row.get("data")}

    def upsert(
        self,
        table: str,
        key: str,
        value: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> None:
        column = self._key_column(table)
        row = {column: key, "version": int(value.get("version", 0)), "data": value}
        if expected_version is None:
            self._execute(f"upsert {table}/{key}", self.client.table(table).upsert(row))
            return

        # Conditional write: only succeeds if nobody wrote since expected_version
        response = self._execute(
            f"conditional update {table}/{key}",
            self.client.table(table)
            .update({"version": row["version"], "data": value})
            .eq(column, key)
            .eq("version", expected_version),
        )
        if not response.data:
            raise ConflictError(key, expected_version)

    def delete(self, table: str, key: str) -> None:
        column = self._key_column(table)
        self._execute(f"delete {table}/{key}", self.client.table(table).delete().eq(column, key))

    def ping(self) -> bool:
        table = next(iter(self.key_columns))
        try:
            self._execute("ping", self.client.table(table).select(self._key_column(table)).limit(1))
        except StoreUnreachable:
            return False
        return True


def open_remote_store(config: StoreConfig) -> RemoteStore:
    """Build the remote tier for a configuration.

    Note: this does not test the connection; the first query that fails marks
    the store offline.
    """
    if config.mode is StoreMode.LOCAL_ONLY:
        return UnconfiguredRemoteStore()
    try:
        client = create_client(config.supabase_url, config.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client, falling back to local-only: {e}")
        return UnconfiguredRemoteStore()
    logger.info("Connected to Supabase")
    return SupabaseRemoteStore(client, config.key_columns)
