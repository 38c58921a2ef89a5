"""
Input validation for document keys and repository names.

Validators return ``(is_valid, error_message)`` tuples so callers can
decide whether to raise, skip, or report.
"""

import re

_REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,100}$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Document key")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_document_key(key: str) -> tuple[bool, str]:
    """
    Validate a document key such as ``features/17`` or ``library/docs/3``.

    Args:
        key: The key to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot start or end with '/'
        - Cannot have empty segments (e.g., 'features//1')
        - Segments cannot be '.' or '..'
        - Cannot contain backslashes or control characters
    """
    if not isinstance(key, str) or not key.strip():
        return (
            False,
            format_validation_error("Document key", "cannot be empty"),
        )

    if key.startswith("/") or key.endswith("/"):
        return (
            False,
            format_validation_error(
                "Document key", "cannot start or end with '/'"
            ),
        )

    if "\\" in key or any(ord(ch) < 0x20 for ch in key):
        return (
            False,
            format_validation_error(
                "Document key",
                "cannot contain backslashes or control characters",
            ),
        )

    for segment in key.split("/"):
        if not segment:
            return (
                False,
                format_validation_error(
                    "Document key", "cannot have empty path segments"
                ),
            )
        if segment in (".", ".."):
            return (
                False,
                format_validation_error(
                    "Document key", "cannot contain '.' or '..' segments"
                ),
            )

    return (True, "")


def validate_repo_name(name: str) -> tuple[bool, str]:
    """
    Validate a repository name for creation.

    Allowed: letters, digits, '.', '_' and '-', at most 100 characters.
    """
    if not name or not name.strip():
        return (
            False,
            format_validation_error("Repository name", "cannot be empty"),
        )
    if name in (".", ".."):
        return (
            False,
            format_validation_error(
                "Repository name", "cannot be '.' or '..'"
            ),
        )
    if not _REPO_NAME_PATTERN.match(name):
        return (
            False,
            format_validation_error(
                "Repository name",
                "may only contain letters, digits, '.', '_' and '-' (max 100)",
            ),
        )
    return (True, "")
