"""Core hosting API client shared between CLI and MCP server."""

from .async_utils import run_sync
from .client import GitHubClient

__all__ = ["GitHubClient", "run_sync"]
