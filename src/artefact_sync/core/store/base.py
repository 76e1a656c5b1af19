"""
Store protocols.

The sync service never talks to a database directly. It reads records and
sync settings through these protocols, so the hosted database and the
in-memory store used in tests are interchangeable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from artefact_sync.core.artefacts.models import ArtefactKind, ContentRecord
from artefact_sync.core.sync.models import Principal, SyncScope, TargetSettings


@runtime_checkable
class RecordStore(Protocol):
    """Read-only access to content records."""

    async def fetch_records(
        self, kind: ArtefactKind, principal: Principal, scope: SyncScope
    ) -> list[ContentRecord]:
        """
        Fetch every record of one kind in a scope.

        Personal scope returns records authored by the principal that belong
        to no team; team scope returns every record of the team.

        Raises:
            StoreError: If the records cannot be read
        """
        ...


@runtime_checkable
class TargetStore(Protocol):
    """Sync settings and team membership."""

    async def load_target_settings(
        self, principal: Principal, scope: SyncScope
    ) -> TargetSettings | None:
        """
        Load stored settings and credential for a scope.

        Returns:
            The settings, or None when the profile or team does not exist
        """
        ...

    async def is_team_member(self, team_id: str, user_id: str) -> bool:
        """Whether ``user_id`` belongs to ``team_id``."""
        ...

    async def mark_synced(self, principal: Principal, scope: SyncScope, when: datetime) -> None:
        """Record the time of the last successful sync on the scope's settings."""
        ...


@runtime_checkable
class PrincipalResolver(Protocol):
    """Turns a bearer token into the user it belongs to."""

    async def resolve_principal(self, access_token: str) -> Principal | None:
        """Return the principal, or None if the token is not valid."""
        ...


class SyncStore(RecordStore, TargetStore, PrincipalResolver, Protocol):
    """A store that provides everything a sync needs."""
