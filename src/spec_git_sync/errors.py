"""Error taxonomy for remote sync operations.

Every failure a push or clone can end with is a ``SyncError`` subclass.
Callers see exactly one terminal error per operation; ``summary()``
gives the human-readable line shown by the CLI and MCP tools.

- ``AuthError`` -- credential rejected (401/403). Never retried.
- ``NotFound`` -- absent path or ref. Usually absorbed as empty state.
- ``RefConflict`` -- the branch moved between reading and advancing it.
- ``PartialPublishFailure`` -- a blob/tree/commit call failed mid-push.
- ``EncodingError`` -- content or a response payload has an unexpected shape.
- ``NetworkError`` -- transport failure, timeout, or 5xx after retries.
- ``RemoteError`` -- any other non-success HTTP status.
- ``SyncInProgress`` -- a second sync was requested while one is running.
- ``IncompleteListing`` -- the remote could not list a directory in full.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync failures."""

    kind = "sync_error"

    def summary(self) -> str:
        return f"{self.kind}: {self}"


class AuthError(SyncError):
    kind = "auth_error"


class NotFound(SyncError):
    kind = "not_found"


class RefConflict(SyncError):
    """The tracked branch no longer points where the push expected."""

    kind = "ref_conflict"

    def __init__(
        self,
        branch: str,
        expected: str | None,
        actual: str | None,
        detail: str = "",
    ) -> None:
        self.branch = branch
        self.expected = expected
        self.actual = actual
        message = (
            f"branch '{branch}' moved (expected {expected or 'no ref'}, "
            f"found {actual or 'no ref'})"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PartialPublishFailure(SyncError):
    """One of the object-creation steps of a push failed.

    Objects created before the failure stay on the remote unreferenced;
    the branch itself is untouched.
    """

    kind = "partial_publish_failure"

    def __init__(self, step: str, cause: Exception) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"{step} step failed: {cause}")


class EncodingError(SyncError):
    kind = "encoding_error"


class NetworkError(SyncError):
    kind = "network_error"


class RemoteError(SyncError):
    """Unclassified non-success response from the hosting provider."""

    kind = "remote_error"

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        super().__init__(f"HTTP {status}: {message}")


class SyncInProgress(SyncError):
    kind = "sync_in_progress"


class IncompleteListing(SyncError):
    """A directory listing is capped and no complete tree is available."""

    kind = "incomplete_listing"
