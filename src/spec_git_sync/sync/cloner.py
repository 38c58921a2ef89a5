"""Reconstruct documents from the remote namespace directory.

``RepoCloner`` resolves the branch head once and reads everything at that
commit, so a branch that moves mid-clone cannot mix two snapshots.  It
walks the namespace with an explicit worklist: each round lists every
pending directory concurrently, queues the subdirectories it finds, and
collects file entries.  Once the walk is complete all recognised files
are fetched concurrently.  Concurrency is bounded by the shared request
semaphore.

The Contents API returns at most ``LISTING_LIMIT`` entries per directory
without saying so.  A listing that reaches the limit is replaced by the
matching part of the commit's recursive tree; if that tree is itself
truncated the clone fails with ``IncompleteListing``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from spec_git_sync.core.async_utils import gather_limited, run_sync_limited
from spec_git_sync.core.payloads import ContentEntry, TreeInfo, decode_base64_text
from spec_git_sync.errors import EncodingError, IncompleteListing, NotFound
from spec_git_sync.store import Document
from spec_git_sync.sync.codec import PathCodec
from spec_git_sync.sync.models import SyncTarget

if TYPE_CHECKING:
    from spec_git_sync.core.client import GitHubClient

logger = logging.getLogger(__name__)

LISTING_LIMIT = 1000


class RepoCloner:
    """Read every recognised document under the namespace root.

    Args:
        client: API client.
        target: Repository and branch to read.
        codec: Path codec deciding which files are documents.

    Attributes:
        commit_sha: Commit the last clone read from (``None`` for an
            empty branch).
        skipped: Paths under the namespace that are not documents.
    """

    def __init__(
        self, client: GitHubClient, target: SyncTarget, codec: PathCodec
    ) -> None:
        self.client = client
        self.target = target
        self.codec = codec
        self.commit_sha: str | None = None
        self.skipped: list[str] = []
        self._tree: TreeInfo | None = None

    async def clone(self) -> list[Document]:
        """Return the documents found on the tracked branch, sorted by key.

        A missing branch or namespace root means an empty project and
        yields no documents.
        """
        self.skipped = []
        self._tree = None
        self.commit_sha = await run_sync_limited(self.client.get_ref, self.target)
        if self.commit_sha is None:
            logger.info("%s has no commits, nothing to clone", self.target)
            return []

        files = await self._walk(self.codec.root)
        wanted: list[tuple[str, ContentEntry]] = []
        for entry in files:
            key = self.codec.decode(entry.path)
            if key is None:
                self.skipped.append(entry.path)
                continue
            wanted.append((key, entry))

        contents = await gather_limited(
            [self._fetch_text(entry) for _, entry in wanted]
        )
        documents = [
            Document(key=key, content=text)
            for (key, _), text in zip(wanted, contents)
        ]
        documents.sort(key=lambda d: d.key)
        logger.info(
            "Cloned %d documents from %s at %s (%d files skipped)",
            len(documents),
            self.target,
            self.commit_sha,
            len(self.skipped),
        )
        return documents

    async def _walk(self, root: str) -> list[ContentEntry]:
        pending = [root]
        files: list[ContentEntry] = []
        depth = 0
        while pending:
            listings = await gather_limited(
                [self._list_dir(path) for path in pending]
            )
            pending = []
            for listing in listings:
                for entry in listing:
                    if entry.type == "dir":
                        pending.append(entry.path)
                    elif entry.type == "file":
                        files.append(entry)
                    else:
                        self.skipped.append(entry.path)
            depth += 1
            logger.debug(
                "Walk depth %d: %d files so far, %d dirs queued",
                depth,
                len(files),
                len(pending),
            )
        return files

    async def _list_dir(self, path: str) -> list[ContentEntry]:
        try:
            listing = await run_sync_limited(
                self.client.get_contents, self.target, path, self.commit_sha
            )
        except NotFound:
            logger.info("%s not found on %s, treating as empty", path, self.target)
            return []
        if isinstance(listing, ContentEntry):
            # The namespace root is a file, not a directory
            self.skipped.append(listing.path)
            return []
        if len(listing) >= LISTING_LIMIT:
            logger.info(
                "Listing of %s hit %d entries, reading the commit tree instead",
                path,
                LISTING_LIMIT,
            )
            return await self._list_from_tree(path)
        return listing

    async def _list_from_tree(self, path: str) -> list[ContentEntry]:
        """Every file below *path*, flattened, from the recursive tree."""
        if self._tree is None:
            commit = await run_sync_limited(
                self.client.get_commit, self.target, self.commit_sha
            )
            self._tree = await run_sync_limited(
                self.client.get_tree, self.target, commit.tree.sha, True
            )
        if self._tree.truncated:
            raise IncompleteListing(
                f"{path} on {self.target} has more entries than the API "
                "returns and the recursive tree is truncated"
            )
        prefix = f"{path}/"
        entries = []
        for item in self._tree.tree:
            if not item.path.startswith(prefix):
                continue
            if item.type == "blob":
                entries.append(
                    ContentEntry(
                        type="file",
                        name=item.path.rsplit("/", 1)[-1],
                        path=item.path,
                        sha=item.sha,
                    )
                )
            elif item.type == "commit":
                self.skipped.append(item.path)
        return entries

    async def _fetch_text(self, entry: ContentEntry) -> str:
        item = await run_sync_limited(
            self.client.get_contents, self.target, entry.path, self.commit_sha
        )
        if not isinstance(item, ContentEntry):
            raise EncodingError(f"{entry.path}: expected a file, got a listing")
        if item.encoding == "base64" and item.content is not None:
            return item.decoded_text()
        # Large files come back without inline content
        blob = await run_sync_limited(self.client.get_blob, self.target, item.sha)
        return decode_base64_text(blob.content, entry.path)
