"""Shared pytest fixtures for spec-git-sync tests."""

from __future__ import annotations

import base64
import hashlib
import json
import threading
from collections.abc import Callable

import pytest
from dotenv import load_dotenv

from spec_git_sync.config import Config
from spec_git_sync.core.payloads import (
    BlobInfo,
    CommitInfo,
    ContentEntry,
    Owner,
    RepositoryInfo,
    ShaRef,
    TreeInfo,
    TreeItem,
    UserInfo,
)
from spec_git_sync.errors import NotFound, RefConflict, RemoteError
from spec_git_sync.store import DocumentStore
from spec_git_sync.sync.codec import PathCodec
from spec_git_sync.sync.engine import SyncOrchestrator
from spec_git_sync.sync.models import SyncTarget, TreeEntry

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live hosting API and token",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live hosting API"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory Git host
# ---------------------------------------------------------------------------


def git_blob_sha(content: str) -> str:
    """Git's own blob address: SHA-1 of ``blob <len>\\0<bytes>``."""
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


class FakeGitHub:
    """GitHubClient replacement backed by in-memory Git objects.

    Blobs are addressed exactly as Git addresses them.  Trees are stored
    flattened (full path -> blob sha).  Refs are keyed by
    ``(owner/repo, branch)``.

    Attributes:
        calls: Method names in call order.
        failures: Method name -> exception raised on every call.
        hooks: Method name -> callable run at the start of every call.
        inline_limit: Files larger than this come back from
            ``get_contents`` without inline content, like the real API.
        listing_limit: Directory listings are cut to this many entries,
            silently, like the real API.
    """

    def __init__(self, login: str = "alice") -> None:
        self.login = login
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict] = {}
        self.refs: dict[tuple[str, str], str] = {}
        self.repos: dict[str, RepositoryInfo] = {}
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.hooks: dict[str, Callable[[], None]] = {}
        self.inline_limit = 1_000_000
        self.listing_limit = 1000
        self._counter = 0
        self._lock = threading.RLock()

    # -- helpers -----------------------------------------------------------

    def _enter(self, name: str) -> None:
        with self._lock:
            self.calls.append(name)
        hook = self.hooks.get(name)
        if hook is not None:
            hook()
        if name in self.failures:
            raise self.failures[name]

    def _store_tree(self, mapping: dict[str, str]) -> str:
        canonical = json.dumps(sorted(mapping.items())).encode("utf-8")
        sha = hashlib.sha1(b"tree " + canonical).hexdigest()
        self.trees[sha] = dict(mapping)
        return sha

    def _head_files(
        self, target: SyncTarget, ref: str | None = None
    ) -> dict[str, str] | None:
        head = ref if ref in self.commits else None
        if head is None:
            head = self.refs.get((target.full_name, target.branch))
        if head is None:
            return None
        return self.trees[self.commits[head]["tree"]]

    def _is_ancestor(self, ancestor: str, sha: str) -> bool:
        pending = [sha]
        while pending:
            current = pending.pop()
            if current == ancestor:
                return True
            pending.extend(self.commits[current]["parents"])
        return False

    def seed(
        self, target: SyncTarget, files: dict[str, str], message: str = "seed"
    ) -> str:
        """Commit *files* on top of the current head and move the branch."""
        with self._lock:
            head = self.refs.get((target.full_name, target.branch))
            mapping = dict(self._head_files(target) or {})
            for path, content in files.items():
                sha = git_blob_sha(content)
                self.blobs[sha] = content
                mapping[path] = sha
            tree = self._store_tree(mapping)
            commit = self._new_commit(message, tree, [head] if head else [])
            self.refs[(target.full_name, target.branch)] = commit
            return commit

    def _new_commit(self, message: str, tree: str, parents: list[str]) -> str:
        self._counter += 1
        payload = f"{tree}|{','.join(parents)}|{message}|{self._counter}"
        sha = hashlib.sha1(b"commit " + payload.encode()).hexdigest()
        self.commits[sha] = {"tree": tree, "parents": parents, "message": message}
        return sha

    def files_at(self, target: SyncTarget) -> dict[str, str]:
        """Path -> text of every file on the branch head."""
        mapping = self._head_files(target) or {}
        return {path: self.blobs[sha] for path, sha in mapping.items()}

    def head(self, target: SyncTarget) -> str | None:
        return self.refs.get((target.full_name, target.branch))

    # -- client surface ----------------------------------------------------

    def get_authenticated_user(self) -> UserInfo:
        self._enter("get_authenticated_user")
        return UserInfo(login=self.login)

    def create_repository(
        self,
        name: str,
        private: bool = True,
        description: str = "",
        auto_init: bool = True,
    ) -> RepositoryInfo:
        self._enter("create_repository")
        full_name = f"{self.login}/{name}"
        if full_name in self.repos:
            raise RemoteError(422, "name already exists on this account")
        repo = RepositoryInfo(
            name=name,
            full_name=full_name,
            owner=Owner(login=self.login),
            html_url=f"https://github.com/{full_name}",
            default_branch="main",
            private=private,
        )
        self.repos[full_name] = repo
        if auto_init:
            self.seed(
                SyncTarget(owner=self.login, repo=name),
                {"README.md": f"# {name}\n"},
                "Initial commit",
            )
        return repo

    def get_contents(
        self, target: SyncTarget, path: str, ref: str | None = None
    ) -> list[ContentEntry] | ContentEntry:
        self._enter("get_contents")
        mapping = self._head_files(target, ref)
        if mapping is None:
            raise NotFound("This repository is empty.")
        if path in mapping:
            sha = mapping[path]
            text = self.blobs[sha]
            size = len(text.encode("utf-8"))
            inline = size <= self.inline_limit
            return ContentEntry(
                type="file",
                name=path.rsplit("/", 1)[-1],
                path=path,
                sha=sha,
                size=size,
                content=(
                    base64.b64encode(text.encode("utf-8")).decode("ascii")
                    if inline
                    else ""
                ),
                encoding="base64" if inline else "none",
            )
        prefix = f"{path}/"
        children: dict[str, ContentEntry] = {}
        for full, sha in sorted(mapping.items()):
            if not full.startswith(prefix):
                continue
            rest = full[len(prefix) :]
            name = rest.split("/", 1)[0]
            child = f"{prefix}{name}"
            if "/" in rest:
                children.setdefault(
                    name,
                    ContentEntry(type="dir", name=name, path=child, sha="0" * 40),
                )
            else:
                children[name] = ContentEntry(
                    type="file", name=name, path=child, sha=sha
                )
        if not children:
            raise NotFound(f"{path}: Not Found")
        return list(children.values())[: self.listing_limit]

    def get_blob(self, target: SyncTarget, sha: str) -> BlobInfo:
        self._enter("get_blob")
        if sha not in self.blobs:
            raise NotFound(f"blob {sha}")
        encoded = base64.b64encode(self.blobs[sha].encode("utf-8")).decode()
        # The real API wraps base64 at 60 columns
        wrapped = "\n".join(
            encoded[i : i + 60] for i in range(0, len(encoded), 60)
        )
        return BlobInfo(sha=sha, content=wrapped, encoding="base64")

    def create_blob(self, target: SyncTarget, content: str) -> str:
        self._enter("create_blob")
        sha = git_blob_sha(content)
        with self._lock:
            self.blobs[sha] = content
        return sha

    def create_tree(
        self,
        target: SyncTarget,
        entries: list[TreeEntry],
        base_tree: str | None = None,
    ) -> str:
        self._enter("create_tree")
        with self._lock:
            if base_tree is not None and base_tree not in self.trees:
                raise RemoteError(422, "base_tree is not a valid tree")
            mapping = dict(self.trees[base_tree]) if base_tree else {}
            for entry in entries:
                if entry.sha is None:
                    mapping.pop(entry.path, None)
                    continue
                if entry.sha not in self.blobs:
                    raise RemoteError(422, f"tree.sha {entry.sha} is not a valid blob")
                mapping[entry.path] = entry.sha
            return self._store_tree(mapping)

    def get_tree(
        self, target: SyncTarget, sha: str, recursive: bool = True
    ) -> TreeInfo:
        self._enter("get_tree")
        if sha not in self.trees:
            raise NotFound(f"tree {sha}")
        items = [
            TreeItem(path=path, mode="100644", type="blob", sha=blob)
            for path, blob in sorted(self.trees[sha].items())
        ]
        return TreeInfo(sha=sha, tree=items)

    def get_commit(self, target: SyncTarget, sha: str) -> CommitInfo:
        self._enter("get_commit")
        if sha not in self.commits:
            raise NotFound(f"commit {sha}")
        data = self.commits[sha]
        return CommitInfo(
            sha=sha,
            tree=ShaRef(sha=data["tree"]),
            parents=[ShaRef(sha=p) for p in data["parents"]],
            message=data["message"],
        )

    def create_commit(
        self,
        target: SyncTarget,
        message: str,
        tree_sha: str,
        parents: list[str],
    ) -> str:
        self._enter("create_commit")
        with self._lock:
            if tree_sha not in self.trees:
                raise RemoteError(422, "tree is not a valid tree")
            return self._new_commit(message, tree_sha, list(parents))

    def get_ref(self, target: SyncTarget) -> str | None:
        self._enter("get_ref")
        return self.refs.get((target.full_name, target.branch))

    def create_ref(self, target: SyncTarget, sha: str) -> None:
        self._enter("create_ref")
        key = (target.full_name, target.branch)
        with self._lock:
            if key in self.refs:
                raise RefConflict(
                    target.branch, None, self.refs[key], "Reference already exists"
                )
            self.refs[key] = sha

    def update_ref(
        self, target: SyncTarget, sha: str, expected_prior: str | None = None
    ) -> None:
        self._enter("update_ref")
        key = (target.full_name, target.branch)
        with self._lock:
            current = self.refs.get(key)
            if current is None:
                raise NotFound("Reference does not exist")
            if not self._is_ancestor(current, sha):
                raise RefConflict(
                    target.branch, expected_prior, current, "Update is not a fast forward"
                )
            self.refs[key] = sha


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        token="ghp_testtoken",
        api_url="https://api.github.example.com",
        repo="alice/specs",
        branch="main",
        insecure=False,
        read_retries=0,
    )


@pytest.fixture
def target():
    return SyncTarget(owner="alice", repo="specs", branch="main")


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def store(tmp_path):
    return DocumentStore(tmp_path / "store.json")


@pytest.fixture
def orchestrator(fake_github, store):
    return SyncOrchestrator(client=fake_github, store=store, codec=PathCodec())


@pytest.fixture(autouse=True)
def _reset_semaphore():
    """The request semaphore is module-global; never let it leak between loops."""
    import spec_git_sync.core.async_utils as async_utils

    original = async_utils._semaphore
    yield
    async_utils._semaphore = original


@pytest.fixture
def server_ctx(mock_config, fake_github, store, orchestrator, target):
    """ServerContext wired to the in-memory host, as the lifespan would build it."""
    from spec_git_sync.mcp.lifespan import ServerContext

    return ServerContext(
        config=mock_config,
        client=fake_github,
        store=store,
        orchestrator=orchestrator,
        default_target=target,
        login="alice",
    )
