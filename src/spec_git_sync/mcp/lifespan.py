"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_fallbacks
from ..core.async_utils import init_semaphore, run_sync
from ..core.client import GitHubClient
from ..store import DocumentStore
from ..sync.codec import PathCodec
from ..sync.engine import SyncOrchestrator
from ..sync.models import SyncTarget

logger = logging.getLogger(__name__)


@dataclass
class ServerContext:
    """Objects shared by every tool handler for the life of the server."""

    config: Config
    client: GitHubClient
    store: DocumentStore
    orchestrator: SyncOrchestrator
    default_target: SyncTarget | None = None
    login: str | None = None


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[ServerContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Open the local store and check the token against the API
    - Fail fast if the token is rejected or the API is unreachable

    Args:
        config_overrides: Optional dict with values from CLI (token, repo,
            branch, store_path, insecure)

    Yields:
        ServerContext with client, store and orchestrator

    Raises:
        RuntimeError: If configuration is invalid or the API check fails.
    """
    logger.info("MCP server starting...")
    _stderr_print("spec-git-sync MCP server starting...")

    try:
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = to_fallbacks(unified)
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            token=overrides.get("token"),
            repo=overrides.get("repo"),
            branch=overrides.get("branch"),
            store_path=overrides.get("store_path"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        default_target = (
            SyncTarget.parse(config.repo, branch=config.branch)
            if config.repo
            else None
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  API URL: {config.api_url}")
        _stderr_print(f"  Default target: {default_target or '(none)'}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure SPEC_GIT_TOKEN is set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure SPEC_GIT_TOKEN is set."
        ) from e

    logger.info("Checking API token...")
    _stderr_print("  Checking API token...")
    try:
        client = GitHubClient(config)
        user = await run_sync(client.get_authenticated_user)
        logger.info("Authenticated as %s", user.login)
        _stderr_print(f"  Authenticated as {user.login}")
        init_semaphore(config.max_parallel_requests)
        _stderr_print(
            f"  Parallel requests: {config.max_parallel_requests}"
        )
    except Exception as e:
        logger.error("API check failed: %s", e)
        _stderr_print("ERROR: API check failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check SPEC_GIT_TOKEN and SPEC_GIT_API_URL.")
        raise RuntimeError(
            f"API check failed: {e}. Check SPEC_GIT_TOKEN and SPEC_GIT_API_URL."
        ) from e

    store = DocumentStore(Path(config.store_path))
    _stderr_print(f"  Store: {config.store_path} ({store.count()} documents)")
    orchestrator = SyncOrchestrator(
        client=client,
        store=store,
        codec=PathCodec(root=config.namespace),
        commit_message=config.commit_message,
    )
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield ServerContext(
        config=config,
        client=client,
        store=store,
        orchestrator=orchestrator,
        default_target=default_target,
        login=user.login,
    )

    logger.info("MCP server shutting down")
    _stderr_print("spec-git-sync MCP server shutting down.")
