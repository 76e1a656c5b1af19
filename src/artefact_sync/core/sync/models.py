"""
Data models for the sync service.

Defines Pydantic models for who is syncing (principal and scope), where the
content goes (sync target) and what happened (sync result).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from artefact_sync.core.github.models import RepoInfo


class Principal(BaseModel):
    """An authenticated user triggering a sync."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    email: str | None = None

    @property
    def display_name(self) -> str:
        """Identity written into commit messages."""
        return self.email or self.user_id


class ScopeKind(str, Enum):
    """Ownership context of a sync."""

    PERSONAL = "personal"
    TEAM = "team"


class SyncScope(BaseModel):
    """
    Which records and which settings a sync uses.

    Example:
        >>> SyncScope.parse("team:abc").team_id
        'abc'
        >>> str(SyncScope.personal())
        'personal'
    """

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    team_id: str | None = None

    @classmethod
    def personal(cls) -> SyncScope:
        return cls(kind=ScopeKind.PERSONAL)

    @classmethod
    def team(cls, team_id: str) -> SyncScope:
        return cls(kind=ScopeKind.TEAM, team_id=team_id)

    @classmethod
    def parse(cls, value: str) -> SyncScope:
        """
        Parse ``personal`` or ``team:<id>``.

        Raises:
            ValueError: If the value is neither form
        """
        value = value.strip()
        if value == ScopeKind.PERSONAL.value:
            return cls.personal()
        prefix = f"{ScopeKind.TEAM.value}:"
        if value.startswith(prefix) and value[len(prefix) :].strip():
            return cls.team(value[len(prefix) :].strip())
        raise ValueError(f"Invalid scope '{value}'. Use 'personal' or 'team:<id>'")

    @property
    def is_team(self) -> bool:
        return self.kind == ScopeKind.TEAM

    def __str__(self) -> str:
        if self.is_team:
            return f"team:{self.team_id}"
        return self.kind.value


class TargetSettings(BaseModel):
    """
    Sync settings exactly as stored for a user or a team.

    Any field may be missing; the endpoint resolver validates them.
    """

    access_token: SecretStr | None = None
    repository: str | None = None
    branch: str | None = None
    folder: str | None = None
    last_synced_at: datetime | None = None


class SyncTarget(BaseModel):
    """Validated destination of a sync run."""

    model_config = ConfigDict(frozen=True)

    scope: SyncScope
    access_token: SecretStr
    repo: RepoInfo
    branch: str
    folder: str = ""
    last_synced_at: datetime | None = None

    def describe(self) -> str:
        """Repository, branch and folder for log messages (no credential)."""
        location = f"{self.repo.full_name}@{self.branch}"
        return f"{location}:{self.folder}" if self.folder else location


class ConnectionCheck(BaseModel):
    """Outcome of a successful connection test."""

    repository: str
    default_branch: str | None = None
    can_push: bool | None = None
    message: str = "Connection successful"


class SyncResult(BaseModel):
    """
    Result of a sync run.

    Provides detailed feedback about what happened during the sync.
    """

    success: bool = Field(description="Whether the run published (or had nothing to do)")

    message: str = Field(default="", description="Human-readable result message")

    commit_sha: str | None = Field(
        default=None,
        description="Commit the branch points at after the run",
    )

    files_updated: int = Field(default=0, description="Files written in the commit")
    files_deleted: int = Field(default=0, description="Stale files removed")

    counts: dict[str, int] = Field(
        default_factory=dict,
        description="Records synced per kind (prompt, skill, workflow)",
    )

    bootstrapped: bool = Field(
        default=False,
        description="Whether the empty repository was seeded first",
    )
    unchanged: bool = Field(
        default=False,
        description="Whether the tree matched the branch head and no commit was made",
    )

    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate run duration in seconds."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return delta.total_seconds()
        return None

    def summary(self) -> str:
        """Generate a human-readable summary of the result."""
        if not self.success:
            return f"sync failed: {self.message}"

        parts = ["sync succeeded"]

        if self.commit_sha:
            parts.append(f"commit {self.commit_sha[:8]}")

        if self.files_updated:
            parts.append(f"{self.files_updated} files updated")

        if self.files_deleted:
            parts.append(f"{self.files_deleted} files removed")

        if self.bootstrapped:
            parts.append("repository initialized")

        if self.message:
            parts.append(self.message)

        return ", ".join(parts)
