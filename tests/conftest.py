"""
Pytest configuration and shared fixtures.

Provides an in-memory fake of the GitHub Git Data API (served through
``httpx.MockTransport``), sample records, and a populated in-memory store.
"""

import base64
import hashlib
import json
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from pydantic import SecretStr

from artefact_sync.core.artefacts.models import Prompt, Skill, Workflow
from artefact_sync.core.config import clear_cache
from artefact_sync.core.config.models import AppConfig, GitHubConfig, SyncConfig
from artefact_sync.core.github.client import GitHubClient
from artefact_sync.core.store.memory import InMemoryStore
from artefact_sync.core.sync.models import Principal
from artefact_sync.core.sync.service import SyncService

API_URL = "https://api.github.test"
OWNER = "acme"
REPO = "library"
TOKEN = "ghp_test_token_value"
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

# ==============================================================================
# Fake GitHub
# ==============================================================================


def _sha(kind: str, payload: str) -> str:
    return hashlib.sha1(f"{kind}\0{payload}".encode()).hexdigest()


class FakeGitHub:
    """
    Minimal in-memory model of a GitHub repository's object graph.

    Blobs and trees are content-addressed like in git; commits get a serial
    number mixed into their sha so that re-committing the same tree yields a
    new commit. Trees are stored as flat ``path -> (mode, blob_sha)`` maps.
    """

    def __init__(self, owner: str = OWNER, repo: str = REPO, token: str = TOKEN) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, tuple[str, str]]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.refs: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, tuple[int, int | None]] = {}
        self.failure_counts: dict[str, int] = {}
        self.before_ref_update: Callable[[], None] | None = None
        self._serial = 0

    # -- object helpers ---------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.commits

    def store_tree(self, files: dict[str, tuple[str, str]]) -> str:
        sha = _sha("tree", json.dumps(sorted(files.items())))
        self.trees[sha] = dict(files)
        return sha

    def store_commit(self, tree_sha: str, parents: list[str], message: str) -> str:
        self._serial += 1
        sha = _sha("commit", json.dumps([tree_sha, parents, message, self._serial]))
        self.commits[sha] = {"tree": tree_sha, "parents": parents, "message": message}
        return sha

    def seed(self, files: dict[str, str], branch: str = "main", message: str = "seed") -> str:
        """Create a commit holding ``files`` on ``branch`` (test setup)."""
        entries = {}
        for path, content in files.items():
            blob_sha = _sha("blob", content)
            self.blobs[blob_sha] = content
            entries[path] = ("100644", blob_sha)
        parents = [self.refs[branch]] if branch in self.refs else []
        commit_sha = self.store_commit(self.store_tree(entries), parents, message)
        self.refs[branch] = commit_sha
        return commit_sha

    def files_at(self, branch: str = "main") -> dict[str, str]:
        """Path to content of the tree the branch points at."""
        tree = self.trees[self.commits[self.refs[branch]]["tree"]]
        return {path: self.blobs[sha] for path, (_, sha) in tree.items()}

    def head_commit(self, branch: str = "main") -> dict[str, Any]:
        return self.commits[self.refs[branch]]

    def ancestors(self, sha: str) -> set[str]:
        seen: set[str] = set()
        pending = [sha]
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            pending.extend(self.commits[current]["parents"])
        return seen

    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "GET"]

    def fail(self, operation: str, status: int, times: int | None = None) -> None:
        """Make ``operation`` answer with ``status`` (``times`` times, or always)."""
        self.failures[operation] = (status, times)

    # -- HTTP ---------------------------------------------------------------

    @staticmethod
    def _json(status: int, body: Any) -> httpx.Response:
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.calls.append((method, path))

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return self._json(401, {"message": "Bad credentials"})

        prefix = f"/repos/{self.owner}/{self.repo}"
        if not path.startswith(prefix):
            return self._json(404, {"message": "Not Found"})
        rest = path[len(prefix):]
        body = json.loads(request.content) if request.content else {}

        operation, response = self._route(method, rest, body)
        if operation in self.failures:
            status, times = self.failures[operation]
            count = self.failure_counts.get(operation, 0)
            if times is None or count < times:
                self.failure_counts[operation] = count + 1
                return self._json(status, {"message": "Injected failure"})
        return response()

    def _route(
        self, method: str, rest: str, body: dict[str, Any]
    ) -> tuple[str, Callable[[], httpx.Response]]:
        if method == "GET" and rest == "":
            return "get_repository", self._get_repository
        if method == "GET" and (m := re.fullmatch(r"/git/ref/heads/(.+)", rest)):
            return "resolve_branch_head", lambda: self._get_ref(m.group(1))
        if method == "GET" and (m := re.fullmatch(r"/git/commits/(\w+)", rest)):
            return "get_commit", lambda: self._get_commit(m.group(1))
        if method == "GET" and (m := re.fullmatch(r"/git/trees/(\w+)", rest)):
            return "list_tree", lambda: self._get_tree(m.group(1))
        if method == "POST" and rest == "/git/blobs":
            return "create_blob", lambda: self._create_blob(body)
        if method == "POST" and rest == "/git/trees":
            return "create_tree", lambda: self._create_tree(body)
        if method == "POST" and rest == "/git/commits":
            return "create_commit", lambda: self._create_commit(body)
        if method == "PATCH" and (m := re.fullmatch(r"/git/refs/heads/(.+)", rest)):
            return "update_branch_ref", lambda: self._update_ref(m.group(1), body)
        if method == "POST" and rest == "/git/refs":
            return "create_branch_ref", lambda: self._create_ref(body)
        if method == "PUT" and (m := re.fullmatch(r"/contents/(.+)", rest)):
            return "put_file", lambda: self._put_file(m.group(1), body)
        return "unknown", lambda: self._json(404, {"message": "Not Found"})

    def _get_repository(self) -> httpx.Response:
        return self._json(
            200,
            {
                "full_name": f"{self.owner}/{self.repo}",
                "default_branch": "main",
                "private": True,
                "permissions": {"push": True},
            },
        )

    def _get_ref(self, branch: str) -> httpx.Response:
        if self.is_empty:
            return self._json(409, {"message": "Git Repository is empty."})
        if branch not in self.refs:
            return self._json(404, {"message": "Not Found"})
        return self._json(
            200, {"ref": f"refs/heads/{branch}", "object": {"sha": self.refs[branch]}}
        )

    def _get_commit(self, sha: str) -> httpx.Response:
        if sha not in self.commits:
            return self._json(404, {"message": "Not Found"})
        commit = self.commits[sha]
        return self._json(
            200,
            {
                "sha": sha,
                "tree": {"sha": commit["tree"]},
                "parents": [{"sha": parent} for parent in commit["parents"]],
                "message": commit["message"],
            },
        )

    def _get_tree(self, sha: str) -> httpx.Response:
        if sha not in self.trees:
            return self._json(404, {"message": "Not Found"})
        items = [
            {"path": path, "mode": mode, "type": "blob", "sha": blob_sha}
            for path, (mode, blob_sha) in sorted(self.trees[sha].items())
        ]
        return self._json(200, {"sha": sha, "tree": items, "truncated": False})

    def _create_blob(self, body: dict[str, Any]) -> httpx.Response:
        if self.is_empty:
            return self._json(409, {"message": "Git Repository is empty."})
        content = base64.b64decode(body["content"]).decode("utf-8")
        sha = _sha("blob", content)
        self.blobs[sha] = content
        return self._json(201, {"sha": sha})

    def _create_tree(self, body: dict[str, Any]) -> httpx.Response:
        if self.is_empty:
            return self._json(409, {"message": "Git Repository is empty."})
        files: dict[str, tuple[str, str]] = {}
        if base := body.get("base_tree"):
            if base not in self.trees:
                return self._json(422, {"message": "Invalid tree"})
            files.update(self.trees[base])
        for entry in body["tree"]:
            if entry["sha"] is None:
                files.pop(entry["path"], None)
            else:
                if entry["sha"] not in self.blobs:
                    return self._json(422, {"message": "Invalid blob"})
                files[entry["path"]] = (entry["mode"], entry["sha"])
        return self._json(201, {"sha": self.store_tree(files)})

    def _create_commit(self, body: dict[str, Any]) -> httpx.Response:
        if body["tree"] not in self.trees:
            return self._json(422, {"message": "Invalid tree"})
        if any(parent not in self.commits for parent in body["parents"]):
            return self._json(422, {"message": "Invalid parent"})
        sha = self.store_commit(body["tree"], body["parents"], body["message"])
        return self._json(201, {"sha": sha})

    def _update_ref(self, branch: str, body: dict[str, Any]) -> httpx.Response:
        if self.before_ref_update is not None:
            self.before_ref_update()
        if branch not in self.refs:
            return self._json(422, {"message": "Reference does not exist"})
        new_sha = body["sha"]
        if not body.get("force") and self.refs[branch] not in self.ancestors(new_sha):
            return self._json(422, {"message": "Update is not a fast forward"})
        self.refs[branch] = new_sha
        return self._json(200, {"object": {"sha": new_sha}})

    def _create_ref(self, body: dict[str, Any]) -> httpx.Response:
        branch = body["ref"].removeprefix("refs/heads/")
        if branch in self.refs:
            return self._json(422, {"message": "Reference already exists"})
        self.refs[branch] = body["sha"]
        return self._json(201, {"object": {"sha": body["sha"]}})

    def _put_file(self, path: str, body: dict[str, Any]) -> httpx.Response:
        branch = body["branch"]
        content = base64.b64decode(body["content"]).decode("utf-8")
        blob_sha = _sha("blob", content)
        self.blobs[blob_sha] = content
        files: dict[str, tuple[str, str]] = {}
        parents: list[str] = []
        if branch in self.refs:
            parents = [self.refs[branch]]
            files.update(self.trees[self.commits[parents[0]]["tree"]])
        files[path] = ("100644", blob_sha)
        commit_sha = self.store_commit(self.store_tree(files), parents, body["message"])
        self.refs[branch] = commit_sha
        return self._json(201, {"content": {"path": path}, "commit": {"sha": commit_sha}})


# ==============================================================================
# GitHub Fixtures
# ==============================================================================


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Provide an empty fake repository acme/library."""
    return FakeGitHub()


@pytest.fixture
def client_factory(fake_github: FakeGitHub) -> Callable[[SecretStr], GitHubClient]:
    """Build GitHub clients that talk to the fake repository."""

    def factory(token: SecretStr) -> GitHubClient:
        http = httpx.AsyncClient(
            base_url=API_URL, transport=httpx.MockTransport(fake_github.handler)
        )
        return GitHubClient(token, http=http)

    return factory


@pytest.fixture
def github_client(client_factory) -> GitHubClient:
    """Provide a client authenticated with the fake repository's token."""
    return client_factory(SecretStr(TOKEN))


# ==============================================================================
# Record Fixtures
# ==============================================================================


def _timestamps(offset_minutes: int) -> dict[str, datetime]:
    created = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=offset_minutes)
    return {"created_at": created, "updated_at": created + timedelta(hours=1)}


def _make_prompt(**overrides: Any) -> Prompt:
    data: dict[str, Any] = {
        "id": "p-1",
        "title": "Summarize Text",
        "content": "Summarize: {{input}}",
        "description": "Condense any text",
        "category": "writing",
        "tags": ["nlp"],
        "is_public": True,
        "author_id": "u1",
        **_timestamps(0),
    }
    data.update(overrides)
    return Prompt(**data)


def _make_skill(**overrides: Any) -> Skill:
    data: dict[str, Any] = {
        "id": "s-1",
        "title": "Code Review",
        "content": "Review the diff carefully.",
        "description": "Structured review checklist",
        "tags": ["review", "quality"],
        "published": False,
        "author_id": "u1",
        **_timestamps(1),
    }
    data.update(overrides)
    return Skill(**data)


def _make_workflow(**overrides: Any) -> Workflow:
    data: dict[str, Any] = {
        "id": "w-1",
        "title": "Release Checklist",
        "json": {"steps": [{"name": "build"}, {"name": "publish"}]},
        "published": True,
        "author_id": "u1",
        **_timestamps(2),
    }
    data.update(overrides)
    return Workflow(**data)


@pytest.fixture
def make_prompt():
    """Factory for prompts; keyword arguments override the defaults."""
    return _make_prompt


@pytest.fixture
def make_skill():
    return _make_skill


@pytest.fixture
def make_workflow():
    return _make_workflow


@pytest.fixture
def prompt() -> Prompt:
    return _make_prompt()


@pytest.fixture
def skill() -> Skill:
    return _make_skill()


@pytest.fixture
def workflow() -> Workflow:
    return _make_workflow()


# ==============================================================================
# Store and Service Fixtures
# ==============================================================================


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id="u1", email="ada@example.com")


@pytest.fixture
def store() -> InMemoryStore:
    """
    Provide a store with personal and team settings pointing at the fake repo.

    - user u1: personal target acme/library@main, member of team t1
    - team t1: target acme/library@main under folder "team"
    """
    memory = InMemoryStore()
    memory.set_profile("u1", repository=f"{OWNER}/{REPO}", access_token=TOKEN)
    memory.set_team(
        "t1",
        repository=f"{OWNER}/{REPO}",
        access_token=TOKEN,
        folder="team",
        members=["u1"],
    )
    memory.register_token("session-u1", Principal(user_id="u1", email="ada@example.com"))
    return memory


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        github=GitHubConfig(api_url=API_URL),
        sync=SyncConfig(source_name="Prompt Library", source_url="https://library.test"),
    )


@pytest.fixture
def sync_service(store, app_config, client_factory) -> SyncService:
    return SyncService(store, app_config, client_factory=client_factory, clock=lambda: FIXED_NOW)


@pytest.fixture(autouse=True)
def reset_config_cache():
    """Clear the config cache so tests never see each other's settings."""
    clear_cache()
    yield
    clear_cache()
