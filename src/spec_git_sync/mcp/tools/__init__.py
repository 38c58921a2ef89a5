"""MCP tool handlers.

This package wraps the document store and the sync orchestrator with
async handlers and structured error responses.
"""

from .errors import build_error_response, translate_sync_error
from .registry import ToolRegistry, ToolSpec
from .repo import REPO_SPECS
from .specs import SPEC_SPECS

ALL_SPECS: list[ToolSpec] = SPEC_SPECS + REPO_SPECS

__all__ = [
    "ALL_SPECS",
    "REPO_SPECS",
    "SPEC_SPECS",
    "ToolRegistry",
    "ToolSpec",
    "build_error_response",
    "translate_sync_error",
]
