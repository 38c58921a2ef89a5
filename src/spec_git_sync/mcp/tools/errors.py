"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    AuthError,
    EncodingError,
    IncompleteListing,
    NetworkError,
    NotFound,
    PartialPublishFailure,
    RefConflict,
    RemoteError,
    SyncError,
    SyncInProgress,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, auth_error, ref_conflict,
            validation_error, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "features/9 not found", "Use spec_list to see keys.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: SyncError) -> types.CallToolResult:
    """Map a ``SyncError`` subclass to a structured error response."""
    match error:
        case AuthError():
            action = (
                "The token was rejected. Check SPEC_GIT_TOKEN has repository "
                "contents write access, then retry."
            )
        case RefConflict():
            action = (
                "The branch changed during the push. Run repo_clone to pick "
                "up the remote documents, reapply your edits, then retry repo_push."
            )
        case PartialPublishFailure():
            action = (
                f"The {error.step} step failed and the branch was not changed. "
                "Retry repo_push."
            )
        case SyncInProgress():
            action = "Wait for the running sync to finish (see sync_status), then retry."
        case EncodingError():
            action = (
                "A document or response could not be encoded. Check the "
                "document content is valid text."
            )
        case IncompleteListing():
            action = (
                "The remote listing was cut short and the store was not "
                "changed. Split very large document directories, then retry."
            )
        case NetworkError():
            action = "The API is unreachable or failing. Retry later."
        case NotFound():
            action = "Check the repository name and branch, and that the token can see it."
        case RemoteError():
            action = "The API rejected the request. Check the parameters and retry."
        case _:
            action = "Retry later or check the server log."
    return build_error_response(error.kind, str(error), action)
