"""
Sync orchestration.

Resolves where a user's or team's content goes and publishes it to GitHub as
one commit per run.
"""

from artefact_sync.core.sync.models import (
    ConnectionCheck,
    Principal,
    ScopeKind,
    SyncResult,
    SyncScope,
    SyncTarget,
    TargetSettings,
)
from artefact_sync.core.sync.resolver import EndpointResolver
from artefact_sync.core.sync.service import SyncService, build_commit_message, collect_files

__all__ = [
    "ConnectionCheck",
    "EndpointResolver",
    "Principal",
    "ScopeKind",
    "SyncResult",
    "SyncScope",
    "SyncService",
    "SyncTarget",
    "TargetSettings",
    "build_commit_message",
    "collect_files",
]
