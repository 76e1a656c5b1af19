"""
Seed an empty repository so the Git Data API has something to build on.

The Git Data endpoints refuse to create objects in a repository without any
commit. The contents endpoint does not have that restriction, so a single
README is written through it; the commit it creates becomes the parent of the
first sync commit.
"""

from __future__ import annotations

import logging

from artefact_sync.core.github.client import GitHubClient
from artefact_sync.core.github.models import RepoInfo

logger = logging.getLogger(__name__)

SEED_PATH = "README.md"
SEED_MESSAGE = "Initialize repository for {source} sync"

SEED_README = """# {source} Sync

This repository is synced from {source_link}.

## Structure

- `prompts/` - AI prompts
- `skills/` - AI skills
- `workflows/` - AI workflows

Each file contains YAML frontmatter with metadata and the content in Markdown format.
"""


def render_seed_readme(source_name: str, source_url: str | None = None) -> str:
    """Render the README written into an empty repository."""
    source_link = f"[{source_name}]({source_url})" if source_url else source_name
    return SEED_README.format(source=source_name, source_link=source_link)


class EmptyRepositoryBootstrapper:
    """
    Creates the first commit of an empty repository.

    Only call this after ``resolve_branch_head`` reported an empty repository;
    on a repository with history it would add an unrelated README commit.
    """

    def __init__(
        self,
        client: GitHubClient,
        source_name: str,
        source_url: str | None = None,
    ) -> None:
        self.client = client
        self.source_name = source_name
        self.source_url = source_url

    async def bootstrap(self, repo: RepoInfo, branch: str) -> str:
        """
        Write the seed README and return the commit it created.

        Args:
            repo: Target repository (must have no commits)
            branch: Branch to create

        Returns:
            SHA of the seed commit

        Raises:
            GitHubAPIError: If the contents endpoint rejects the write
        """
        logger.info("Initializing empty repository %s (%s)", repo.full_name, branch)
        commit_sha = await self.client.put_file(
            repo,
            SEED_PATH,
            render_seed_readme(self.source_name, self.source_url),
            SEED_MESSAGE.format(source=self.source_name),
            branch,
        )
        logger.info("Seed commit %s created on %s", commit_sha[:8], branch)
        return commit_sha
