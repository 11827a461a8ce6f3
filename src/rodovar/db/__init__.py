"""Database clients and utilities."""

from .supabase import RemoteStore, StoreConfig, StoreMode, open_remote_store

__all__ = ["RemoteStore", "StoreConfig", "StoreMode", "open_remote_store"]
