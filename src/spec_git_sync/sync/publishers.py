"""Remote object publishers used by a push.

Each publisher wraps exactly one kind of remote write:

- ``BlobPublisher`` -- one content object per distinct document content.
- ``TreeBuilder`` -- a directory snapshot, optionally layered over a base tree.
- ``CommitPublisher`` -- a commit with zero or one parent.
- ``RefPublisher`` -- creates or fast-forwards the tracked branch.

Blobs, trees and commits are content-addressed and immutable, so a push
that fails after creating some of them leaves only unreferenced objects
behind.  The branch ref is the only mutable object and is written last.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from spec_git_sync.core.async_utils import gather_limited, run_sync_limited
from spec_git_sync.errors import RefConflict
from spec_git_sync.sync.models import SyncTarget, TreeEntry

if TYPE_CHECKING:
    from spec_git_sync.core.client import GitHubClient

logger = logging.getLogger(__name__)


class BlobPublisher:
    """Create content objects and return their addresses."""

    def __init__(self, client: GitHubClient, target: SyncTarget) -> None:
        self.client = client
        self.target = target

    async def publish(self, content: str) -> str:
        """Upload *content* and return its sha.

        The remote may deduplicate identical content, so callers must
        not assume a fresh address per call.
        """
        return await run_sync_limited(
            self.client.create_blob, self.target, content
        )

    async def publish_many(self, contents: list[str]) -> dict[str, str]:
        """Publish each distinct content once, concurrently.

        Returns:
            Mapping of content to blob sha.
        """
        distinct = list(dict.fromkeys(contents))
        shas = await gather_limited([self.publish(c) for c in distinct])
        logger.info("Published %d distinct blobs", len(distinct))
        return dict(zip(distinct, shas))


class TreeBuilder:
    """Create tree objects from ``TreeEntry`` sets."""

    def __init__(self, client: GitHubClient, target: SyncTarget) -> None:
        self.client = client
        self.target = target

    async def build(
        self, entries: list[TreeEntry], base_tree: str | None = None
    ) -> str:
        """Create a tree and return its sha.

        With *base_tree*, entries not mentioned are carried over and
        mentioned paths replace (or, with ``sha=None``, remove) the prior
        entry.  Without it the tree holds exactly *entries*.

        Raises:
            ValueError: If two entries share a path.
        """
        paths = [e.path for e in entries]
        if len(paths) != len(set(paths)):
            raise ValueError("Tree entries must be unique by path")
        if base_tree is None and any(e.sha is None for e in entries):
            raise ValueError("Removal entries require a base tree")
        ordered = sorted(entries, key=lambda e: e.path)
        sha = await run_sync_limited(
            self.client.create_tree, self.target, ordered, base_tree
        )
        logger.info(
            "Built tree %s (%d entries, base=%s)",
            sha,
            len(ordered),
            base_tree or "none",
        )
        return sha


class CommitPublisher:
    """Create commit objects with linear history."""

    def __init__(self, client: GitHubClient, target: SyncTarget) -> None:
        self.client = client
        self.target = target

    async def commit(
        self, tree_sha: str, parent_sha: str | None, message: str
    ) -> str:
        parents = [parent_sha] if parent_sha else []
        sha = await run_sync_limited(
            self.client.create_commit,
            self.target,
            message,
            tree_sha,
            parents,
        )
        logger.info("Created commit %s (parent=%s)", sha, parent_sha or "none")
        return sha


class RefPublisher:
    """Create or fast-forward the tracked branch."""

    def __init__(self, client: GitHubClient, target: SyncTarget) -> None:
        self.client = client
        self.target = target

    async def read_head(self) -> str | None:
        return await run_sync_limited(self.client.get_ref, self.target)

    async def advance(self, target_sha: str, expected_prior: str | None) -> None:
        """Point the branch at *target_sha*.

        The current head is re-read first; if it differs from
        *expected_prior* nothing is written.  The write itself is sent
        once and never retried.

        Raises:
            RefConflict: If the branch moved since it was read, or the
                provider rejects the update as not a fast-forward.
        """
        current = await self.read_head()
        if current != expected_prior:
            raise RefConflict(self.target.branch, expected_prior, current)

        if expected_prior is None:
            await run_sync_limited(
                self.client.create_ref, self.target, target_sha
            )
            logger.info(
                "Created branch %s at %s", self.target.branch, target_sha
            )
        else:
            await run_sync_limited(
                self.client.update_ref,
                self.target,
                target_sha,
                expected_prior,
            )
            logger.info(
                "Advanced branch %s %s -> %s",
                self.target.branch,
                expected_prior,
                target_sha,
            )
