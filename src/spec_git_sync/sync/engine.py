"""Sync orchestrator: push the local store to a branch, or clone it back.

A push runs these steps in order, each consuming the previous address:

1. Read the branch head.  Absent means *bootstrap*, present means *update*.
2. In update mode, read the head commit to get its tree (the base tree).
3. Snapshot the store and encode every key as a repository path.
4. Publish one blob per distinct content (concurrently, bounded).
5. Build a tree: bare in bootstrap mode, layered over the base tree in
   update mode so files outside the namespace survive.
6. Create a commit (parent = previous head in update mode).
7. Create or fast-forward the branch ref.  Attempted once.

Any failure before step 7 leaves the branch untouched.  A clone walks the
namespace directory and replaces the store contents in one batch, so a
failed clone leaves the store as it was.

Only one sync runs at a time; a second request is rejected with
``SyncInProgress``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, TypeVar

from spec_git_sync.config import DEFAULT_COMMIT_MESSAGE
from spec_git_sync.core.async_utils import run_sync_limited
from spec_git_sync.errors import (
    AuthError,
    EncodingError,
    PartialPublishFailure,
    SyncError,
    SyncInProgress,
)
from spec_git_sync.store import DocumentStore
from spec_git_sync.sync.cloner import RepoCloner
from spec_git_sync.sync.codec import PathCodec
from spec_git_sync.sync.models import (
    CloneReport,
    PushReport,
    SyncKind,
    SyncStatus,
    SyncTarget,
    TreeEntry,
)
from spec_git_sync.sync.publishers import (
    BlobPublisher,
    CommitPublisher,
    RefPublisher,
    TreeBuilder,
)

if TYPE_CHECKING:
    from spec_git_sync.assistant import AssistantResponse, FileOperation
    from spec_git_sync.core.client import GitHubClient

logger = logging.getLogger(__name__)

R = TypeVar("R")

INITIAL_COMMIT_MESSAGE = "Initial commit from spec-git-sync"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncOrchestrator:
    """Coordinate push and clone between a ``DocumentStore`` and a branch.

    Args:
        client: API client used for every remote call.
        store: Local document store.
        codec: Key/path codec (default: ``specs/<key>.json``).
        commit_message: Default message for push commits.
    """

    def __init__(
        self,
        client: GitHubClient,
        store: DocumentStore,
        codec: PathCodec | None = None,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> None:
        self.client = client
        self.store = store
        self.codec = codec or PathCodec()
        self.commit_message = commit_message

        self.status = SyncStatus.IDLE
        self.running: SyncKind | None = None
        self.last_error: BaseException | None = None
        self.last_report: PushReport | CloneReport | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def push(
        self,
        target: SyncTarget,
        message: str | None = None,
        prune: bool = False,
    ) -> PushReport:
        """Publish the whole store as one commit on *target*'s branch.

        Args:
            target: Repository and branch.
            message: Commit message (default: ``commit_message``).
            prune: Also remove namespace files whose keys are no longer
                in the store.  Files outside the namespace are never
                removed.

        Raises:
            SyncInProgress: Another sync is running.
            AuthError: Credential rejected.
            RefConflict: Branch moved during the push; retry from scratch.
            PartialPublishFailure: A blob, tree or commit call failed.
            EncodingError: A document cannot be encoded, or a response
                had an unexpected shape.
            NetworkError: Reading the head failed after retries.
        """
        return await self._run(
            SyncKind.PUSH, lambda: self._push(target, message, prune)
        )

    async def clone(self, target: SyncTarget) -> CloneReport:
        """Replace the store contents with the documents on *target*'s branch.

        Raises:
            SyncInProgress: Another sync is running.
            AuthError: Credential rejected.
            EncodingError: A remote file is not valid base64/UTF-8.
            NetworkError: A read failed after retries.
        """
        return await self._run(SyncKind.CLONE, lambda: self._clone(target))

    async def publish_new_repository(
        self,
        name: str,
        private: bool = True,
        branch: str | None = None,
        message: str = INITIAL_COMMIT_MESSAGE,
    ) -> PushReport:
        """Create a repository owned by the token's user and push the store.

        Returns:
            Report of the initial push; ``report.target`` identifies the
            new repository.
        """

        async def _create_and_push() -> PushReport:
            repo = await run_sync_limited(
                self.client.create_repository, name, private
            )
            target = SyncTarget(
                owner=repo.owner.login,
                repo=repo.name,
                branch=branch or repo.default_branch,
            )
            return await self._push(target, message, False)

        return await self._run(SyncKind.PUSH, _create_and_push)

    def apply_operations(self, operations: Iterable[FileOperation]) -> int:
        """Apply an assistant-issued batch to the store atomically."""
        ops = list(operations)
        self.store.apply(ops)
        logger.info("Applied %d file operations", len(ops))
        return len(ops)

    def apply_assistant_response(self, response: AssistantResponse) -> int:
        return response.apply_to(self.store)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _run(
        self, kind: SyncKind, operation: Callable[[], Awaitable[R]]
    ) -> R:
        if self._lock.locked():
            raise SyncInProgress(
                f"a {self.running.value if self.running else 'sync'} is already running"
            )
        async with self._lock:
            self.status = SyncStatus.RUNNING
            self.running = kind
            self.last_error = None
            try:
                report = await operation()
            except SyncError as exc:
                self.status = SyncStatus.FAILED
                self.last_error = exc
                logger.error("%s failed: %s", kind.value, exc.summary())
                raise
            except asyncio.CancelledError as exc:
                self.status = SyncStatus.FAILED
                self.last_error = exc
                logger.warning("%s abandoned by caller", kind.value)
                raise
            except Exception as exc:
                self.status = SyncStatus.FAILED
                self.last_error = exc
                logger.exception("%s failed unexpectedly", kind.value)
                raise
            finally:
                self.running = None
            self.status = SyncStatus.SUCCEEDED
            self.last_report = report  # type: ignore[assignment]
            return report

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def _push(
        self, target: SyncTarget, message: str | None, prune: bool
    ) -> PushReport:
        started_at = _now()
        refs = RefPublisher(self.client, target)

        head = await refs.read_head()
        base_tree: str | None = None
        if head is not None:
            head_commit = await run_sync_limited(
                self.client.get_commit, target, head
            )
            base_tree = head_commit.tree.sha
        logger.info(
            "Pushing to %s in %s mode (head=%s)",
            target,
            "update" if head else "bootstrap",
            head or "none",
        )

        try:
            files = {
                self.codec.encode(doc.key): doc.content
                for doc in self.store.list_all()
            }
        except ValueError as exc:
            raise EncodingError(str(exc)) from exc

        step = "blob"
        removed: list[str] = []
        try:
            blob_shas = await BlobPublisher(self.client, target).publish_many(
                list(files.values())
            )
            entries = [
                TreeEntry(path=path, sha=blob_shas[content])
                for path, content in files.items()
            ]
            if prune and base_tree is not None:
                step = "prune"
                removed = await self._stale_paths(target, base_tree, files)
                entries.extend(TreeEntry(path=p, sha=None) for p in removed)

            step = "tree"
            tree_sha = await TreeBuilder(self.client, target).build(
                entries, base_tree
            )

            step = "commit"
            commit_sha = await CommitPublisher(self.client, target).commit(
                tree_sha, head, message or self.commit_message
            )
        except (AuthError, EncodingError):
            raise
        except SyncError as exc:
            raise PartialPublishFailure(step, exc) from exc

        await refs.advance(commit_sha, head)

        return PushReport(
            target=target,
            bootstrap=head is None,
            parent_sha=head,
            commit_sha=commit_sha,
            tree_sha=tree_sha,
            files={path: blob_shas[content] for path, content in files.items()},
            removed=removed,
            blobs_published=len(blob_shas),
            started_at=started_at,
            completed_at=_now(),
        )

    async def _stale_paths(
        self, target: SyncTarget, base_tree: str, current: dict[str, str]
    ) -> list[str]:
        tree = await run_sync_limited(
            self.client.get_tree, target, base_tree, True
        )
        if tree.truncated:
            logger.warning(
                "Base tree listing for %s is truncated; prune may be incomplete",
                target,
            )
        stale = sorted(
            item.path
            for item in tree.tree
            if item.type == "blob"
            and self.codec.owns(item.path)
            and item.path not in current
        )
        if stale:
            logger.info("Pruning %d remote documents", len(stale))
        return stale

    # ------------------------------------------------------------------
    # Clone
    # ------------------------------------------------------------------

    async def _clone(self, target: SyncTarget) -> CloneReport:
        started_at = _now()
        cloner = RepoCloner(self.client, target, self.codec)
        documents = await cloner.clone()
        self.store.replace_all(documents)
        return CloneReport(
            target=target,
            keys=[d.key for d in documents],
            skipped=cloner.skipped,
            commit_sha=cloner.commit_sha,
            started_at=started_at,
            completed_at=_now(),
        )
