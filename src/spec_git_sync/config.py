"""Runtime configuration for the sync tools.

Reads connection and sync settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SPEC_GIT_TOKEN: Bearer token for the hosting API (falls back to GITHUB_TOKEN)
    SPEC_GIT_API_URL: REST API base URL (optional, default: https://api.github.com)
    SPEC_GIT_REPO: Default sync target, ``owner/repo`` (optional)
    SPEC_GIT_BRANCH: Tracked branch (optional, default: main)
    SPEC_GIT_STORE: Local store file (optional, default: .spec_git/store.json)
    SPEC_GIT_NAMESPACE: Repository directory holding documents (optional, default: specs)
    SPEC_GIT_INSECURE: Skip SSL verification (optional, default: false)
    SPEC_GIT_MAX_PARALLEL_REQUESTS: Max concurrent API requests (optional, default: 5)
    SPEC_GIT_READ_RETRIES: Retries for read-only requests (optional, default: 3)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_STORE_PATH = ".spec_git/store.json"
DEFAULT_COMMIT_MESSAGE = "Update project specifications"


@dataclass
class Config:
    token: str
    api_url: str = DEFAULT_API_URL
    repo: str | None = None
    branch: str = "main"
    store_path: str = DEFAULT_STORE_PATH
    namespace: str = "specs"
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    prune: bool = False
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 5
    read_retries: int = 3
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed or the token is empty.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.token.strip():
        raise ValueError(
            "API token cannot be empty. Set SPEC_GIT_TOKEN environment variable."
        )

    if not config.branch.strip():
        raise ValueError("Branch name cannot be empty.")

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_int_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def resolve_store_path(
    store_path: str | None = None, yaml_fallbacks: dict | None = None
) -> str:
    """Local store file: CLI arg > SPEC_GIT_STORE > YAML ``store_path`` > default."""
    fb = yaml_fallbacks or {}
    return (
        store_path
        or os.getenv("SPEC_GIT_STORE")
        or fb.get("store_path")
        or DEFAULT_STORE_PATH
    )


def load_config(
    token: str | None = None,
    repo: str | None = None,
    branch: str | None = None,
    store_path: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override API token.
        repo: Override default sync target (``owner/repo``).
        branch: Override tracked branch.
        store_path: Override local store file.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML ``github`` and
            ``sync`` sections.  Used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the token is missing after checking all sources,
            or a numeric setting is out of range.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_token = (
        token
        or os.getenv("SPEC_GIT_TOKEN")
        or os.getenv("GITHUB_TOKEN")
        or fb.get("token")
    )
    if not final_token:
        raise ValueError(
            "API token not found. Set SPEC_GIT_TOKEN environment variable, "
            "pass --token CLI argument, or add 'github.token' to config.yml."
        )

    api_url = os.getenv("SPEC_GIT_API_URL") or fb.get("api_url") or DEFAULT_API_URL
    final_repo = repo or os.getenv("SPEC_GIT_REPO") or fb.get("repo")
    final_branch = (
        branch or os.getenv("SPEC_GIT_BRANCH") or fb.get("branch") or "main"
    )
    final_store = resolve_store_path(store_path, fb)
    namespace = (
        os.getenv("SPEC_GIT_NAMESPACE") or fb.get("namespace") or "specs"
    )
    commit_message = fb.get("commit_message") or DEFAULT_COMMIT_MESSAGE

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("SPEC_GIT_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("SPEC_GIT_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    max_parallel = _get_int_env("SPEC_GIT_MAX_PARALLEL_REQUESTS", 1, 100)
    if max_parallel is None:
        max_parallel = int(fb.get("max_parallel_requests", 5))

    read_retries = _get_int_env("SPEC_GIT_READ_RETRIES", 0, 10)
    if read_retries is None:
        read_retries = int(fb.get("read_retries", 3))

    config = Config(
        token=final_token.strip(),
        api_url=api_url,
        repo=final_repo.strip() if final_repo else None,
        branch=final_branch.strip(),
        store_path=final_store,
        namespace=namespace,
        commit_message=commit_message,
        prune=bool(fb.get("prune", False)),
        insecure=final_insecure,
        debug=final_debug,
        max_parallel_requests=max_parallel,
        read_retries=read_retries,
    )

    validate_config(config)

    return config
