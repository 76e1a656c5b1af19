"""
Record and settings stores.

Provides the store protocols used by the sync service and two
implementations: an in-memory store and a Supabase-backed store.
"""

from __future__ import annotations

from artefact_sync.core.config.models import StoreConfig
from artefact_sync.core.exceptions import ConfigError
from artefact_sync.core.store.base import (
    PrincipalResolver,
    RecordStore,
    SyncStore,
    TargetStore,
)
from artefact_sync.core.store.memory import InMemoryStore
from artefact_sync.core.store.supabase import SupabaseStore


def create_store(config: StoreConfig) -> SyncStore:
    """
    Build the store selected by configuration.

    Raises:
        ConfigError: If the Supabase backend is selected without URL or key
    """
    if config.backend == "supabase":
        if not config.supabase_url or config.supabase_key is None:
            raise ConfigError(
                "Supabase store requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
            )
        return SupabaseStore(config.supabase_url, config.supabase_key)
    return InMemoryStore()


__all__ = [
    "InMemoryStore",
    "PrincipalResolver",
    "RecordStore",
    "SupabaseStore",
    "SyncStore",
    "TargetStore",
    "create_store",
]
