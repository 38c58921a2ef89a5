"""Pydantic models for the sync engine.

Defines the data contracts shared by the publishers, the cloner and the
orchestrator:

- ``SyncTarget``: Which repository and branch a sync talks to.
- ``TreeEntry``: One path binding inside a tree object.
- ``SyncStatus`` / ``SyncKind``: Orchestrator state machine values.
- ``PushReport`` / ``CloneReport``: Outcome of a completed sync.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field

_REPO_URL_PATTERN = re.compile(
    r"^(?:https?://[^/]+/|git@[^:]+:)?"
    r"(?P<owner>[A-Za-z0-9._-]+)/(?P<repo>[A-Za-z0-9._-]+?)"
    r"(?:\.git)?/?(?:@(?P<branch>[^\s@]+))?$"
)

FILE_MODE = "100644"


class SyncTarget(BaseModel):
    """Repository and branch a sync operation reads and writes.

    Attributes:
        owner: Account or organisation login.
        repo: Repository name.
        branch: The single tracked branch.
    """

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    branch: str = Field(default="main", min_length=1)

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, ref: str, branch: str | None = None) -> SyncTarget:
        """Parse ``owner/repo``, a repository URL, or either with ``@branch``.

        Examples::

            SyncTarget.parse("acme/specs")
            SyncTarget.parse("https://github.com/acme/specs.git")
            SyncTarget.parse("acme/specs@drafts")

        Args:
            ref: Repository reference.
            branch: Branch used when *ref* carries none.

        Raises:
            ValueError: If *ref* cannot be parsed.
        """
        match = _REPO_URL_PATTERN.match(ref.strip())
        if match is None:
            raise ValueError(
                f"Invalid repository reference '{ref}': expected owner/repo "
                "or a repository URL"
            )
        return cls(
            owner=match.group("owner"),
            repo=match.group("repo"),
            branch=match.group("branch") or branch or "main",
        )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}@{self.branch}"


class TreeEntry(BaseModel):
    """One ``path -> blob`` binding submitted to the tree builder.

    A ``sha`` of ``None`` removes *path* from the base tree.
    """

    path: str
    mode: str = FILE_MODE
    type: str = "blob"
    sha: str | None

    model_config = {"frozen": True}

    def to_payload(self) -> dict:
        return {
            "path": self.path,
            "mode": self.mode,
            "type": self.type,
            "sha": self.sha,
        }


class SyncStatus(str, Enum):
    """Orchestrator state machine."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SyncKind(str, Enum):
    PUSH = "push"
    CLONE = "clone"


class PushReport(BaseModel):
    """Result of a successful push.

    Attributes:
        target: Repository and branch that was pushed.
        bootstrap: True when the branch was created by this push.
        parent_sha: Previous head commit (``None`` on bootstrap).
        commit_sha: New head commit.
        tree_sha: Tree of the new commit.
        files: Mapping of repository path to blob sha for every document.
        removed: Paths removed by pruning.
        blobs_published: Number of distinct contents uploaded.
        started_at: ISO 8601 timestamp when the push started.
        completed_at: ISO 8601 timestamp when the ref was advanced.
    """

    target: SyncTarget
    bootstrap: bool
    parent_sha: str | None = None
    commit_sha: str
    tree_sha: str
    files: dict[str, str] = {}
    removed: list[str] = []
    blobs_published: int = 0
    started_at: str
    completed_at: str

    model_config = {"frozen": True}

    @property
    def kind(self) -> SyncKind:
        return SyncKind.PUSH


class CloneReport(BaseModel):
    """Result of a successful clone.

    Attributes:
        target: Repository and branch that was cloned.
        keys: Document keys now in the store.
        skipped: Repository paths outside the namespace that were ignored.
        commit_sha: Commit every document was read from (``None`` when
            the branch has no commits).
        started_at: ISO 8601 timestamp when the clone started.
        completed_at: ISO 8601 timestamp when the store was replaced.
    """

    target: SyncTarget
    keys: list[str] = []
    skipped: list[str] = []
    commit_sha: str | None = None
    started_at: str
    completed_at: str

    model_config = {"frozen": True}

    @property
    def kind(self) -> SyncKind:
        return SyncKind.CLONE
