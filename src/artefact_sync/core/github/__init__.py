"""
GitHub integration for artefact-sync.

Wraps the Git Data API (blobs, trees, commits, refs) so a sync can publish
many files as one commit without a local git checkout.
"""

from artefact_sync.core.github.bootstrap import EmptyRepositoryBootstrapper
from artefact_sync.core.github.client import GitHubClient
from artefact_sync.core.github.models import (
    BranchHead,
    CommitInfo,
    HeadState,
    RepoInfo,
    RepositoryInfo,
    TreeEntry,
    TreeItem,
)

__all__ = [
    "BranchHead",
    "CommitInfo",
    "EmptyRepositoryBootstrapper",
    "GitHubClient",
    "HeadState",
    "RepoInfo",
    "RepositoryInfo",
    "TreeEntry",
    "TreeItem",
]
