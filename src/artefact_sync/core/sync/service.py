"""
Publish content records to a GitHub repository as a single commit.

Uses the Git Data API instead of a local checkout:
- blobs are created for every rendered file (concurrently)
- one tree is layered on the current head's tree
- one commit is created on top of the current head
- the branch ref is advanced without force

The ref update is the only visible write. If the branch moved since it was
read, the update is rejected and the run fails; the orphaned objects created
before that are unreachable and harmless.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import SecretStr

from artefact_sync.core.artefacts.models import ArtefactKind, ContentRecord, SerializedFile
from artefact_sync.core.artefacts.serializer import is_managed_path, serialize
from artefact_sync.core.config.models import AppConfig
from artefact_sync.core.exceptions import StoreError, SyncError
from artefact_sync.core.github.bootstrap import EmptyRepositoryBootstrapper
from artefact_sync.core.github.client import GitHubClient
from artefact_sync.core.github.models import HeadState, TreeEntry
from artefact_sync.core.github.retry import RetryConfig, call_with_retry
from artefact_sync.core.sync.models import (
    ConnectionCheck,
    Principal,
    SyncResult,
    SyncScope,
    SyncTarget,
)
from artefact_sync.core.sync.resolver import ClientFactory, EndpointResolver

if TYPE_CHECKING:
    from artefact_sync.core.store.base import SyncStore

logger = logging.getLogger(__name__)

NOTHING_TO_SYNC = "No artefacts to sync"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def collect_files(
    records: list[ContentRecord], folder_prefix: str = ""
) -> list[SerializedFile]:
    """
    Render records into files with unique paths.

    Records of each kind are rendered in ``(created_at, id)`` order. When two
    records render to the same path the later one wins and the collision is
    logged.

    Raises:
        SerializationError: If any record cannot be rendered
    """
    by_path: dict[str, SerializedFile] = {}
    for kind in ArtefactKind:
        ordered = sorted(
            (r for r in records if r.kind == kind), key=lambda r: (r.created_at, r.id)
        )
        for record in ordered:
            file = serialize(record, folder_prefix)
            previous = by_path.get(file.path)
            if previous is not None:
                logger.warning(
                    "Path collision at %s: %s %s replaces %s",
                    file.path,
                    kind.label,
                    record.id,
                    previous.record_id,
                )
            by_path[file.path] = file
    return list(by_path.values())


def count_records(records: list[ContentRecord]) -> dict[str, int]:
    """Number of records per kind, every kind present."""
    return {kind.value: sum(1 for r in records if r.kind == kind) for kind in ArtefactKind}


def build_commit_message(
    source_name: str, counts: dict[str, int], principal: Principal, when: datetime
) -> str:
    """
    Render the sync commit message.

    Example:
        >>> when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        >>> print(build_commit_message("Library", {"prompt": 1}, Principal(user_id="u1"), when))
        Sync from Library (2024-05-01)
        <BLANKLINE>
        Updated:
        - 1 prompt(s)
        - 0 skill(s)
        - 0 workflow(s)
        <BLANKLINE>
        Synced by: u1
    """
    lines = [f"Sync from {source_name} ({when.date().isoformat()})", "", "Updated:"]
    for kind in ArtefactKind:
        lines.append(f"- {counts.get(kind.value, 0)} {kind.label}(s)")
    lines.extend(["", f"Synced by: {principal.display_name}"])
    return "\n".join(lines)


class SyncService:
    """
    Service for publishing a principal's or team's records to GitHub.

    Example:
        >>> service = SyncService(store, load_config())
        >>> result = await service.sync(principal, SyncScope.personal())
        >>> print(result.summary())
    """

    def __init__(
        self,
        store: SyncStore,
        config: AppConfig | None = None,
        *,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize the sync service.

        Args:
            store: Source of records and sync settings
            config: Application configuration (defaults apply when omitted)
            client_factory: Builds a GitHub client from a credential
            clock: Source of the current time (UTC)
        """
        self.store = store
        self.config = config or AppConfig()
        self.client_factory = client_factory or self._default_client
        self.clock = clock
        self.resolver = EndpointResolver(
            store, self.client_factory, self.config.sync.default_branch
        )

    def _default_client(self, token: SecretStr) -> GitHubClient:
        return GitHubClient(
            token, api_url=self.config.github.api_url, timeout=self.config.github.timeout
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def test_connection(self, principal: Principal, scope: SyncScope) -> ConnectionCheck:
        """Resolve the scope's settings and check the repository is reachable."""
        target = await self.resolver.resolve(principal, scope)
        return await self.resolver.test_connection(target)

    async def fetch_records(self, principal: Principal, scope: SyncScope) -> list[ContentRecord]:
        """Fetch the records of every kind in a scope."""
        batches = await asyncio.gather(
            *(self.store.fetch_records(kind, principal, scope) for kind in ArtefactKind)
        )
        return [record for batch in batches for record in batch]

    async def plan(
        self, principal: Principal, scope: SyncScope
    ) -> tuple[SyncTarget, list[SerializedFile]]:
        """
        Resolve and render without touching the repository.

        Returns:
            The target and the files a sync would write
        """
        target = await self.resolver.resolve(principal, scope)
        records = await self.fetch_records(principal, scope)
        return target, collect_files(records, target.folder)

    async def sync(self, principal: Principal, scope: SyncScope) -> SyncResult:
        """
        Publish every record of ``scope`` as one commit.

        Raises:
            ConfigError: If the settings are missing, malformed or not accessible
            SerializationError: If any record cannot be rendered
            GitHubAPIError: If a provider call fails
            RefConflictError: If the branch moved during the run
            StoreError: If records cannot be read or the sync time not saved
        """
        started_at = self.clock()

        target = await self.resolver.resolve(principal, scope)
        logger.info("Syncing %s to %s", scope, target.describe())

        records = await self.fetch_records(principal, scope)
        if not records:
            logger.info("Nothing to sync for %s", scope)
            return SyncResult(
                success=True,
                message=NOTHING_TO_SYNC,
                started_at=started_at,
                completed_at=self.clock(),
            )

        files = collect_files(records, target.folder)
        counts = count_records(records)

        async with self.client_factory(target.access_token) as client:
            result = await self._publish(client, target, files, counts, principal)

        result.started_at = started_at
        completed_at = self.clock()
        result.completed_at = completed_at

        try:
            await self.store.mark_synced(principal, scope, completed_at)
        except StoreError as e:
            logger.error(
                "Commit %s published but saving the sync time failed: %s", result.commit_sha, e
            )
            raise StoreError(
                f"Published commit {result.commit_sha} but failed to record the sync time",
                commit_sha=result.commit_sha,
            ) from e

        logger.info("Sync of %s finished: %s", scope, result.summary())
        return result

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    @contextmanager
    def _step(self, name: str, target: SyncTarget) -> Iterator[None]:
        try:
            yield
        except SyncError as e:
            logger.error(
                "Sync step '%s' failed for %s@%s: %s",
                name,
                target.repo.full_name,
                target.branch,
                e,
            )
            raise

    async def _create_blobs(
        self, client: GitHubClient, target: SyncTarget, files: list[SerializedFile]
    ) -> list[str]:
        semaphore = asyncio.Semaphore(self.config.github.max_concurrency)
        retry = RetryConfig(max_retries=self.config.github.blob_retries)

        async def create(file: SerializedFile) -> str:
            async with semaphore:
                return await call_with_retry(
                    lambda: client.create_blob(target.repo, file.content),
                    retry,
                    description=f"create blob {file.path}",
                )

        return list(await asyncio.gather(*(create(file) for file in files)))

    async def _stale_entries(
        self,
        client: GitHubClient,
        target: SyncTarget,
        tree_sha: str,
        files: list[SerializedFile],
    ) -> list[TreeEntry]:
        written = {file.path for file in files}
        items = await client.list_tree(target.repo, tree_sha)
        return [
            TreeEntry(path=item.path, sha=None, mode=item.mode)
            for item in items
            if item.type == "blob"
            and item.path not in written
            and is_managed_path(item.path, target.folder)
        ]

    async def _publish(
        self,
        client: GitHubClient,
        target: SyncTarget,
        files: list[SerializedFile],
        counts: dict[str, int],
        principal: Principal,
    ) -> SyncResult:
        repo, branch = target.repo, target.branch
        bootstrapped = False

        with self._step("resolve_branch_head", target):
            head = await client.resolve_branch_head(repo, branch)

        if head.state == HeadState.EMPTY_REPOSITORY:
            bootstrapper = EmptyRepositoryBootstrapper(
                client, self.config.sync.source_name, self.config.sync.source_url
            )
            with self._step("bootstrap", target):
                parent_sha: str | None = await bootstrapper.bootstrap(repo, branch)
            bootstrapped = True
        else:
            parent_sha = head.commit_sha

        base_tree: str | None = None
        stale: list[TreeEntry] = []
        if parent_sha:
            with self._step("get_commit", target):
                base_tree = (await client.get_commit(repo, parent_sha)).tree_sha
            if self.config.sync.prune_stale:
                with self._step("list_tree", target):
                    stale = await self._stale_entries(client, target, base_tree, files)

        with self._step("create_blobs", target):
            blob_shas = await self._create_blobs(client, target, files)

        entries = [
            TreeEntry(path=file.path, sha=sha) for file, sha in zip(files, blob_shas)
        ] + stale

        with self._step("create_tree", target):
            tree_sha = await client.create_tree(repo, base_tree, entries)

        if self.config.sync.skip_unchanged and tree_sha == base_tree:
            logger.info("Tree of %s is unchanged, skipping commit", target.describe())
            return SyncResult(
                success=True,
                message="Repository already up to date",
                commit_sha=parent_sha,
                counts=counts,
                unchanged=True,
                bootstrapped=bootstrapped,
            )

        message = build_commit_message(
            self.config.sync.source_name, counts, principal, self.clock()
        )
        with self._step("create_commit", target):
            commit_sha = await client.create_commit(repo, message, tree_sha, parent_sha)

        if head.state == HeadState.MISSING_BRANCH:
            with self._step("create_branch_ref", target):
                await client.create_branch_ref(repo, branch, commit_sha)
        else:
            with self._step("update_branch_ref", target):
                await client.update_branch_ref(repo, branch, commit_sha)

        logger.info("Published %d files to %s as %s", len(files), target.describe(), commit_sha[:8])
        return SyncResult(
            success=True,
            message=f"Synced {len(files)} files to GitHub",
            commit_sha=commit_sha,
            files_updated=len(files),
            files_deleted=len(stale),
            counts=counts,
            bootstrapped=bootstrapped,
        )
