"""Push/clone sync between the local document store and a Git branch.

Architecture
------------
Every document is one file under a namespace directory of the tracked
branch (``specs/<key>.json`` by default).  A push publishes the whole
store as a single commit through the Git object API: blobs, then a tree
layered over the previous head's tree, then a commit, and finally a
fast-forward of the branch ref.  A clone walks the namespace directory
and replaces the store contents in one batch.

Modules:

- ``engine``     -- ``SyncOrchestrator``: push/clone state machine.
- ``publishers`` -- ``BlobPublisher``, ``TreeBuilder``, ``CommitPublisher``,
  ``RefPublisher``: one remote write kind each.
- ``cloner``     -- ``RepoCloner``: namespace walk and bounded fetches.
- ``codec``      -- ``PathCodec``: key <-> repository path mapping.
- ``models``     -- ``SyncTarget``, ``TreeEntry``, ``SyncStatus``,
  ``SyncKind``, ``PushReport``, ``CloneReport``.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from spec_git_sync.config import load_config
    from spec_git_sync.core.client import GitHubClient
    from spec_git_sync.store import DocumentStore
    from spec_git_sync.sync import SyncOrchestrator, SyncTarget, format_push_report

    config = load_config()
    orchestrator = SyncOrchestrator(
        client=GitHubClient(config),
        store=DocumentStore(Path(config.store_path)),
    )
    report = await orchestrator.push(SyncTarget.parse("acme/specs"))
    print(format_push_report(report))
"""

from .cloner import RepoCloner
from .codec import PathCodec
from .engine import SyncOrchestrator
from .models import (
    CloneReport,
    PushReport,
    SyncKind,
    SyncStatus,
    SyncTarget,
    TreeEntry,
)
from .publishers import BlobPublisher, CommitPublisher, RefPublisher, TreeBuilder
from .reporter import format_clone_report, format_push_report, report_to_json

__all__ = [
    "BlobPublisher",
    "CloneReport",
    "CommitPublisher",
    "PathCodec",
    "PushReport",
    "RefPublisher",
    "RepoCloner",
    "SyncKind",
    "SyncOrchestrator",
    "SyncStatus",
    "SyncTarget",
    "TreeBuilder",
    "TreeEntry",
    "format_clone_report",
    "format_push_report",
    "report_to_json",
]
