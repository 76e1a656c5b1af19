"""
In-memory store.

Holds records, settings and team membership in plain dicts. Used by tests
and for local runs against a scratch repository.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from pydantic import SecretStr

from artefact_sync.core.artefacts.models import ArtefactKind, ContentRecord
from artefact_sync.core.sync.models import Principal, SyncScope, TargetSettings

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Dict-backed implementation of every store protocol.

    Example:
        >>> store = InMemoryStore()
        >>> store.set_profile("u1", repository="acme/library", access_token="ghp_x")
        >>> store.register_token("session-1", Principal(user_id="u1"))
    """

    def __init__(self, records: Iterable[ContentRecord] = ()) -> None:
        self.records: list[ContentRecord] = list(records)
        self.profiles: dict[str, TargetSettings] = {}
        self.teams: dict[str, TargetSettings] = {}
        self.members: dict[str, set[str]] = {}
        self.tokens: dict[str, Principal] = {}

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def add_records(self, *records: ContentRecord) -> None:
        self.records.extend(records)

    @staticmethod
    def _settings(
        repository: str | None,
        access_token: str | None,
        branch: str | None,
        folder: str | None,
    ) -> TargetSettings:
        return TargetSettings(
            repository=repository,
            access_token=SecretStr(access_token) if access_token else None,
            branch=branch,
            folder=folder,
        )

    def set_profile(
        self,
        user_id: str,
        *,
        repository: str | None = None,
        access_token: str | None = None,
        branch: str | None = None,
        folder: str | None = None,
    ) -> None:
        """Create or replace a user's sync settings."""
        self.profiles[user_id] = self._settings(repository, access_token, branch, folder)

    def set_team(
        self,
        team_id: str,
        *,
        repository: str | None = None,
        access_token: str | None = None,
        branch: str | None = None,
        folder: str | None = None,
        members: Iterable[str] = (),
    ) -> None:
        """Create or replace a team's sync settings and add members."""
        self.teams[team_id] = self._settings(repository, access_token, branch, folder)
        self.members.setdefault(team_id, set()).update(members)

    def register_token(self, access_token: str, principal: Principal) -> None:
        self.tokens[access_token] = principal

    # ------------------------------------------------------------------
    # Protocol implementation
    # ------------------------------------------------------------------

    async def fetch_records(
        self, kind: ArtefactKind, principal: Principal, scope: SyncScope
    ) -> list[ContentRecord]:
        if scope.is_team:
            return [r for r in self.records if r.kind == kind and r.team_id == scope.team_id]
        return [
            r
            for r in self.records
            if r.kind == kind and r.author_id == principal.user_id and not r.team_id
        ]

    async def load_target_settings(
        self, principal: Principal, scope: SyncScope
    ) -> TargetSettings | None:
        if scope.is_team:
            return self.teams.get(scope.team_id or "")
        return self.profiles.get(principal.user_id)

    async def is_team_member(self, team_id: str, user_id: str) -> bool:
        return user_id in self.members.get(team_id, set())

    async def mark_synced(self, principal: Principal, scope: SyncScope, when: datetime) -> None:
        table = self.teams if scope.is_team else self.profiles
        key = scope.team_id if scope.is_team else principal.user_id
        if key in table:
            table[key] = table[key].model_copy(update={"last_synced_at": when})
        else:
            logger.warning("No settings to mark as synced for %s", scope)

    async def resolve_principal(self, access_token: str) -> Principal | None:
        return self.tokens.get(access_token)
