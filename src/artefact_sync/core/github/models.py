"""
GitHub data models for artefact-sync.

Defines Pydantic models for repository coordinates and the git object graph
(refs, commits, trees) as exposed by the GitHub Git Data API.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class RepoInfo(BaseModel):
    """
    GitHub repository coordinates.

    Example:
        >>> RepoInfo.parse("octo/library").full_name
        'octo/library'
        >>> RepoInfo.parse("octo/library/extra") is None
        True
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Repository owner (user or organization)")
    repo: str = Field(..., description="Repository name")

    @computed_field
    @property
    def full_name(self) -> str:
        """Full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, identifier: str) -> RepoInfo | None:
        """
        Parse an ``owner/name`` identifier.

        Exactly one ``/`` with non-empty text on both sides is accepted.

        Args:
            identifier: Repository identifier as stored in settings

        Returns:
            RepoInfo or None if the identifier is malformed
        """
        parts = identifier.strip().split("/")
        if len(parts) != 2:
            return None
        owner, repo = (part.strip() for part in parts)
        if not owner or not repo:
            return None
        return cls(owner=owner, repo=repo)


class HeadState(str, Enum):
    """What reading a branch ref found."""

    PRESENT = "present"
    EMPTY_REPOSITORY = "empty_repository"
    MISSING_BRANCH = "missing_branch"


class BranchHead(BaseModel):
    """Result of resolving a branch to its head commit."""

    state: HeadState
    commit_sha: str | None = None

    @property
    def exists(self) -> bool:
        """Whether the branch has a head commit to build on."""
        return self.state == HeadState.PRESENT


class CommitInfo(BaseModel):
    """The parts of a commit object the sync needs."""

    sha: str
    tree_sha: str
    parents: list[str] = Field(default_factory=list)


class TreeItem(BaseModel):
    """One entry of an existing tree, as listed recursively."""

    path: str
    mode: str
    type: str
    sha: str


class TreeEntry(BaseModel):
    """
    One entry of a tree to create.

    ``sha=None`` removes the path from the base tree.
    """

    path: str
    sha: str | None
    mode: str = "100644"
    type: str = "blob"


class RepositoryInfo(BaseModel):
    """Repository metadata returned by the connection check."""

    full_name: str
    default_branch: str | None = None
    private: bool = False
    can_push: bool | None = None
