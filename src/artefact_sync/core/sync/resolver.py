"""
Resolve where a sync publishes to.

Turns the stored settings of a user or team into a validated ``SyncTarget``
and checks that the principal may use them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import SecretStr

from artefact_sync.core.exceptions import (
    AccessDeniedError,
    ConfigError,
    GitHubAPIError,
    TargetNotFoundError,
)
from artefact_sync.core.github.client import GitHubClient
from artefact_sync.core.github.models import RepoInfo
from artefact_sync.core.sync.models import ConnectionCheck, Principal, SyncScope, SyncTarget

if TYPE_CHECKING:
    from artefact_sync.core.store.base import TargetStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[SecretStr], GitHubClient]

TOKEN_MISSING = "GitHub token not configured. Please add your Personal Access Token in Settings."
REPOSITORY_MISSING = "GitHub repository not configured. Please set the repository in Settings."
REPOSITORY_INVALID = "Invalid repository format. Use owner/repo"
NOT_A_MEMBER = "You are not a member of this team"
CONNECTION_FAILED = (
    "Failed to connect to repository. Check your token and repository settings."
)


class EndpointResolver:
    """
    Validates sync settings for a principal and scope.

    Example:
        >>> resolver = EndpointResolver(store, GitHubClient)
        >>> target = await resolver.resolve(principal, SyncScope.personal())
        >>> target.repo.full_name
        'acme/library'
    """

    def __init__(
        self,
        store: TargetStore,
        client_factory: ClientFactory = GitHubClient,
        default_branch: str = "main",
    ) -> None:
        self.store = store
        self.client_factory = client_factory
        self.default_branch = default_branch

    async def resolve(self, principal: Principal, scope: SyncScope) -> SyncTarget:
        """
        Load and validate the settings for ``scope``.

        Raises:
            AccessDeniedError: If the principal is not a member of the team
            TargetNotFoundError: If the profile or team does not exist
            ConfigError: If the credential or repository is missing or malformed
        """
        if scope.is_team and not await self.store.is_team_member(
            scope.team_id or "", principal.user_id
        ):
            logger.warning("User %s is not a member of team %s", principal.user_id, scope.team_id)
            raise AccessDeniedError(NOT_A_MEMBER, scope=str(scope))

        settings = await self.store.load_target_settings(principal, scope)
        if settings is None:
            what = "Team" if scope.is_team else "Profile"
            raise TargetNotFoundError(f"{what} not found", scope=str(scope))

        if settings.access_token is None or not settings.access_token.get_secret_value():
            raise ConfigError(TOKEN_MISSING, scope=str(scope))

        if not settings.repository or not settings.repository.strip():
            raise ConfigError(REPOSITORY_MISSING, scope=str(scope))

        repo = RepoInfo.parse(settings.repository.strip())
        if repo is None:
            raise ConfigError(REPOSITORY_INVALID, scope=str(scope), repository=settings.repository)

        target = SyncTarget(
            scope=scope,
            access_token=settings.access_token,
            repo=repo,
            branch=(settings.branch or "").strip() or self.default_branch,
            folder=(settings.folder or "").strip().strip("/"),
            last_synced_at=settings.last_synced_at,
        )
        logger.debug("Resolved %s to %s", scope, target.describe())
        return target

    async def test_connection(self, target: SyncTarget) -> ConnectionCheck:
        """
        Check that the credential can read the repository.

        Only repository metadata is read; nothing is written.

        Raises:
            ConfigError: If the repository cannot be reached with the credential
        """
        async with self.client_factory(target.access_token) as client:
            try:
                info = await client.get_repository(target.repo)
            except GitHubAPIError as e:
                logger.warning("Connection test for %s failed: %s", target.repo.full_name, e)
                raise ConfigError(CONNECTION_FAILED, repository=target.repo.full_name) from e

        return ConnectionCheck(
            repository=info.full_name,
            default_branch=info.default_branch,
            can_push=info.can_push,
        )
