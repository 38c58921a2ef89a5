"""Unified configuration schema for spec_git_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the hosting API, sync behaviour and logging, plus an adapter
that flattens them into the fallbacks consumed by ``load_config()``.

Usage:
    from spec_git_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """Hosting API connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    token: str | None = Field(default=None, description="Bearer token")
    api_url: str | None = Field(
        default=None, description="REST API base URL"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent API requests (1-100)",
    )
    read_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for read-only requests (0-10)",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """What to sync and where.

    Attributes:
        repo: Default sync target as ``owner/repo``.
        branch: Tracked branch.
        namespace: Repository directory that holds the documents.
        store_path: Local store file.
        commit_message: Message used for push commits.
        prune: Remove remote files whose documents were deleted locally.
    """

    repo: str | None = Field(default=None, description="owner/repo")
    branch: str | None = Field(default=None, description="Tracked branch")
    namespace: str | None = Field(
        default=None, description="Repository directory for documents"
    )
    store_path: str | None = Field(
        default=None, description="Local store file"
    )
    commit_message: str | None = Field(
        default=None, description="Commit message for pushes"
    )
    prune: bool = Field(
        default=False,
        description="Remove remote documents deleted locally",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the merged YAML dict.

    Handles missing sections gracefully; anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the ``github`` and ``sync`` sections for ``load_config()``.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    merged = {
        **unified.github.model_dump(),
        **unified.sync.model_dump(),
    }
    return {k: v for k, v in merged.items() if v is not None}
