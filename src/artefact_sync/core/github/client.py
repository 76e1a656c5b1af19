"""
GitHub Git Data API client for artefact-sync.

Provides one coroutine per git primitive (ref, commit, tree, blob) plus the
contents endpoint used to seed empty repositories. The client holds no state
beyond its HTTP session and never retries: each call is a single request.
"""

from __future__ import annotations

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import SecretStr

from artefact_sync.core.exceptions import GitHubAPIError, RefConflictError
from artefact_sync.core.github.models import (
    BranchHead,
    CommitInfo,
    HeadState,
    RepoInfo,
    RepositoryInfo,
    TreeEntry,
    TreeItem,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


def _encode(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _escape(path: str) -> str:
    """Percent-encode a branch or file path for use in a URL, keeping slashes."""
    return quote(path, safe="/")


def _is_rate_limited(response: httpx.Response, detail: str) -> bool:
    """429, or a 403 that GitHub marks as a primary or secondary rate limit."""
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in detail.lower()


class GitHubClient:
    """
    Async client for the GitHub Git Data API.

    Authenticates with a bearer token. Use as an async context manager, or
    pass an existing ``httpx.AsyncClient`` (tests pass one built on
    ``httpx.MockTransport``).

    Example:
        >>> async with GitHubClient(SecretStr("ghp_...")) as client:
        ...     head = await client.resolve_branch_head(repo, "main")
    """

    def __init__(
        self,
        token: SecretStr,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize GitHubClient.

        Args:
            token: Personal access token (kept secret)
            api_url: API base URL (override for GitHub Enterprise)
            timeout: Request timeout in seconds
            http: Optional preconfigured HTTP client
        """
        headers = {
            "Authorization": f"Bearer {token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if http is None:
            self._http = httpx.AsyncClient(
                base_url=api_url.rstrip("/"), headers=headers, timeout=timeout
            )
            self._owns_http = True
        else:
            http.headers.update(headers)
            self._http = http
            self._owns_http = False

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        logger.debug("GitHub %s: %s %s", operation, method, path)
        try:
            return await self._http.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise GitHubAPIError(operation, f"GitHub request failed: {e}", path=path) from e

    @staticmethod
    def _fail(operation: str, response: httpx.Response) -> GitHubAPIError:
        try:
            detail = str(response.json().get("message", ""))
        except (ValueError, AttributeError):
            detail = response.text[:200]
        logger.error(
            "GitHub %s failed with HTTP %d: %s", operation, response.status_code, detail
        )
        message = f"Failed to {operation.replace('_', ' ')}"
        if detail:
            message = f"{message}: {detail}"
        return GitHubAPIError(
            operation,
            message,
            status=response.status_code,
            rate_limited=_is_rate_limited(response, detail),
            path=response.request.url.path,
        )

    @staticmethod
    def _sha(operation: str, response: httpx.Response) -> str:
        try:
            sha = response.json()["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError(
                operation, "GitHub response did not contain a sha", status=response.status_code
            ) from e
        return str(sha)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def resolve_branch_head(self, repo: RepoInfo, branch: str) -> BranchHead:
        """
        Resolve a branch to its head commit.

        A 409 means the repository has no commits at all; a 404 means the
        branch does not exist. Neither is an error.

        Raises:
            GitHubAPIError: On any other failure
        """
        response = await self._request(
            "resolve_branch_head",
            "GET",
            f"/repos/{repo.owner}/{repo.repo}/git/ref/heads/{_escape(branch)}",
        )
        if response.status_code == 409:
            logger.info("Repository %s is empty", repo.full_name)
            return BranchHead(state=HeadState.EMPTY_REPOSITORY)
        if response.status_code == 404:
            logger.info("Branch %s does not exist in %s", branch, repo.full_name)
            return BranchHead(state=HeadState.MISSING_BRANCH)
        if not response.is_success:
            raise self._fail("resolve_branch_head", response)

        try:
            sha = response.json()["object"]["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError(
                "resolve_branch_head", "GitHub ref response was malformed"
            ) from e
        return BranchHead(state=HeadState.PRESENT, commit_sha=sha)

    async def get_commit(self, repo: RepoInfo, commit_sha: str) -> CommitInfo:
        """Read a commit object (its tree and parents)."""
        response = await self._request(
            "get_commit", "GET", f"/repos/{repo.owner}/{repo.repo}/git/commits/{commit_sha}"
        )
        if not response.is_success:
            raise self._fail("get_commit", response)

        try:
            data = response.json()
            return CommitInfo(
                sha=data["sha"],
                tree_sha=data["tree"]["sha"],
                parents=[parent["sha"] for parent in data.get("parents", [])],
            )
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError("get_commit", "GitHub commit response was malformed") from e

    async def list_tree(self, repo: RepoInfo, tree_sha: str) -> list[TreeItem]:
        """
        List a tree recursively.

        Raises:
            GitHubAPIError: If the tree cannot be read or was truncated
        """
        response = await self._request(
            "list_tree",
            "GET",
            f"/repos/{repo.owner}/{repo.repo}/git/trees/{tree_sha}",
            params={"recursive": "1"},
        )
        if not response.is_success:
            raise self._fail("list_tree", response)

        data = response.json()
        if data.get("truncated"):
            raise GitHubAPIError(
                "list_tree", "Repository tree is too large to list in one request"
            )
        return [TreeItem.model_validate(item) for item in data.get("tree", [])]

    async def get_repository(self, repo: RepoInfo) -> RepositoryInfo:
        """Read repository metadata; works for empty repositories too."""
        response = await self._request(
            "get_repository", "GET", f"/repos/{repo.owner}/{repo.repo}"
        )
        if not response.is_success:
            raise self._fail("get_repository", response)

        data = response.json()
        permissions = data.get("permissions") or {}
        return RepositoryInfo(
            full_name=data.get("full_name", repo.full_name),
            default_branch=data.get("default_branch"),
            private=bool(data.get("private", False)),
            can_push=permissions.get("push"),
        )

    # ------------------------------------------------------------------
    # Object creation
    # ------------------------------------------------------------------

    async def create_blob(self, repo: RepoInfo, content: str) -> str:
        """Store file content as a blob and return its sha."""
        response = await self._request(
            "create_blob",
            "POST",
            f"/repos/{repo.owner}/{repo.repo}/git/blobs",
            json={"content": _encode(content), "encoding": "base64"},
        )
        if not response.is_success:
            raise self._fail("create_blob", response)
        return self._sha("create_blob", response)

    async def create_tree(
        self,
        repo: RepoInfo,
        base_tree: str | None,
        entries: list[TreeEntry],
    ) -> str:
        """
        Create a tree from entries, layered on ``base_tree`` when given.

        Paths of the base tree that are not mentioned are inherited unchanged;
        entries with ``sha=None`` remove a path.
        """
        body: dict[str, Any] = {"tree": [entry.model_dump() for entry in entries]}
        if base_tree:
            body["base_tree"] = base_tree

        response = await self._request(
            "create_tree", "POST", f"/repos/{repo.owner}/{repo.repo}/git/trees", json=body
        )
        if not response.is_success:
            raise self._fail("create_tree", response)
        return self._sha("create_tree", response)

    async def create_commit(
        self,
        repo: RepoInfo,
        message: str,
        tree_sha: str,
        parent_sha: str | None,
    ) -> str:
        """Create a commit; no parent only for the first commit of a branch."""
        response = await self._request(
            "create_commit",
            "POST",
            f"/repos/{repo.owner}/{repo.repo}/git/commits",
            json={
                "message": message,
                "tree": tree_sha,
                "parents": [parent_sha] if parent_sha else [],
            },
        )
        if not response.is_success:
            raise self._fail("create_commit", response)
        return self._sha("create_commit", response)

    # ------------------------------------------------------------------
    # Ref updates
    # ------------------------------------------------------------------

    async def update_branch_ref(self, repo: RepoInfo, branch: str, commit_sha: str) -> None:
        """
        Fast-forward a branch to ``commit_sha``.

        Raises:
            RefConflictError: If the branch moved since it was read
            GitHubAPIError: On any other failure
        """
        response = await self._request(
            "update_branch_ref",
            "PATCH",
            f"/repos/{repo.owner}/{repo.repo}/git/refs/heads/{_escape(branch)}",
            json={"sha": commit_sha, "force": False},
        )
        if response.status_code in (409, 422):
            raise RefConflictError(
                f"Branch '{branch}' was updated by another sync. Please run the sync again.",
                repository=repo.full_name,
                branch=branch,
            )
        if not response.is_success:
            raise self._fail("update_branch_ref", response)

    async def create_branch_ref(self, repo: RepoInfo, branch: str, commit_sha: str) -> None:
        """
        Create a branch pointing at ``commit_sha``.

        Raises:
            RefConflictError: If the branch was created concurrently
            GitHubAPIError: On any other failure
        """
        response = await self._request(
            "create_branch_ref",
            "POST",
            f"/repos/{repo.owner}/{repo.repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": commit_sha},
        )
        if response.status_code == 422:
            raise RefConflictError(
                f"Branch '{branch}' was created by another sync. Please run the sync again.",
                repository=repo.full_name,
                branch=branch,
            )
        if not response.is_success:
            raise self._fail("create_branch_ref", response)

    async def put_file(
        self,
        repo: RepoInfo,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> str:
        """
        Write one file through the contents endpoint and return the commit sha.

        Unlike the Git Data endpoints this works on a repository without any
        commits, creating the branch on the way.
        """
        response = await self._request(
            "put_file",
            "PUT",
            f"/repos/{repo.owner}/{repo.repo}/contents/{_escape(path)}",
            json={"message": message, "content": _encode(content), "branch": branch},
        )
        if not response.is_success:
            raise self._fail("put_file", response)

        try:
            return str(response.json()["commit"]["sha"])
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError("put_file", "GitHub contents response was malformed") from e
