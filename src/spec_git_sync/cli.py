"""Command-line interface for spec-git-sync.

Subcommands:

- ``push``   -- publish the local store as one commit on the tracked branch.
- ``clone``  -- replace the local store with the documents on the branch.
- ``create`` -- create a repository and push the store into it.
- ``status`` -- show the local store and the remote branch head.
- ``whoami`` -- check the token and show the login it belongs to.
- ``list``   -- list local document keys (no network access).
- ``init``   -- write a starter ``.spec_git/config.yml`` if none exists.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import DEFAULT_STORE_PATH, Config, load_config, resolve_store_path
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .core.async_utils import init_semaphore, run_sync
from .core.client import GitHubClient
from .errors import SyncError
from .logger import setup_logging
from .store import DocumentStore
from .sync.codec import PathCodec
from .sync.engine import SyncOrchestrator
from .sync.models import SyncTarget
from .sync.reporter import (
    format_clone_report,
    format_push_report,
    report_to_json,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spec-git-sync",
        description="Sync project specification documents with a Git repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Push the local store to the configured repository
  spec-git-sync push

  # Push to an explicit repository and branch, removing stale documents
  spec-git-sync push --repo acme/specs --branch drafts --prune

  # Replace the local store with the remote documents
  spec-git-sync clone --repo https://github.com/acme/specs.git

  # Create a private repository and push the store into it
  spec-git-sync create acme-specs

The token is read from SPEC_GIT_TOKEN (or GITHUB_TOKEN), a .env file, or
.spec_git/config.yml.  Prefer the environment over --token.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"spec-git-sync version {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo",
        help="Sync target as owner/repo or a repository URL (optional @branch suffix)",
    )
    common.add_argument("--branch", help="Tracked branch (default: main)")
    common.add_argument(
        "--store",
        help=f"Local store file (default: {DEFAULT_STORE_PATH})",
    )
    common.add_argument(
        "--token",
        help="API token (visible in process list -- prefer SPEC_GIT_TOKEN)",
    )
    common.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    common.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print machine-readable JSON instead of text",
    )
    common.add_argument("--debug", action="store_true", help="Debug logging")
    common.add_argument("--log-file", help="Also write logs to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    push = sub.add_parser("push", parents=[common], help="Push the local store")
    push.add_argument("--message", "-m", help="Commit message")
    push.add_argument(
        "--prune",
        action="store_true",
        default=None,
        help="Remove remote documents whose keys are no longer local",
    )
    push.add_argument(
        "--verbose", "-v", action="store_true", help="List every pushed file"
    )

    sub.add_parser("clone", parents=[common], help="Replace the local store")

    create = sub.add_parser(
        "create", parents=[common], help="Create a repository and push to it"
    )
    create.add_argument("name", help="New repository name")
    create.add_argument(
        "--public", action="store_true", help="Create a public repository"
    )

    sub.add_parser(
        "status", parents=[common], help="Show local store and remote head"
    )
    sub.add_parser("whoami", parents=[common], help="Check the API token")

    lst = sub.add_parser("list", parents=[common], help="List local keys")
    lst.add_argument("prefix", nargs="?", default="", help="Key prefix filter")

    sub.add_parser(
        "init", help="Write a starter config file if none exists"
    ).set_defaults(as_json=False, debug=False, log_file=None)

    return parser


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _load_unified() -> UnifiedConfig:
    """Load .env first so ${VAR} interpolation in YAML can see it."""
    load_dotenv()
    if discover_config_files():
        return build_config(load_hierarchical_config())
    return UnifiedConfig()


def _build_config(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    return load_config(
        token=args.token,
        repo=args.repo,
        branch=args.branch,
        store_path=args.store,
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=to_fallbacks(unified),
    )


def _resolve_target(args: argparse.Namespace, config: Config) -> SyncTarget:
    if not config.repo:
        raise ValueError(
            "No repository given. Pass --repo owner/name, set SPEC_GIT_REPO, "
            "or add 'sync.repo' to config.yml."
        )
    # An explicit --branch beats an @branch suffix from config
    target = SyncTarget.parse(config.repo, branch=config.branch)
    if args.branch:
        target = target.model_copy(update={"branch": args.branch})
    return target


def _emit(args: argparse.Namespace, text: str, data: dict[str, Any]) -> None:
    if args.as_json:
        print(json.dumps(data, indent=2))
    else:
        print(text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_list(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    store_path = resolve_store_path(args.store, to_fallbacks(unified))
    store = DocumentStore(Path(store_path))
    docs = store.query_by_prefix(args.prefix) if args.prefix else store.list_all()
    keys = [d.key for d in docs]
    _emit(
        args,
        "\n".join(keys) if keys else "(no documents)",
        {"store": store_path, "count": len(keys), "keys": keys},
    )
    return 0


async def _run_remote(args: argparse.Namespace, config: Config) -> int:
    init_semaphore(config.max_parallel_requests)
    client = GitHubClient(config)
    store = DocumentStore(Path(config.store_path))
    orchestrator = SyncOrchestrator(
        client=client,
        store=store,
        codec=PathCodec(root=config.namespace),
        commit_message=config.commit_message,
    )

    match args.command:
        case "whoami":
            user = await run_sync(client.get_authenticated_user)
            _emit(
                args,
                f"Authenticated as {user.login}",
                {"login": user.login, "api_url": config.api_url},
            )

        case "push":
            target = _resolve_target(args, config)
            prune = config.prune if args.prune is None else args.prune
            report = await orchestrator.push(
                target, message=args.message, prune=prune
            )
            _emit(
                args,
                format_push_report(report, verbose=args.verbose),
                report_to_json(report),
            )

        case "clone":
            target = _resolve_target(args, config)
            report = await orchestrator.clone(target)
            _emit(args, format_clone_report(report), report_to_json(report))

        case "create":
            report = await orchestrator.publish_new_repository(
                args.name,
                private=not args.public,
                branch=args.branch,
            )
            text = (
                f"Created repository {report.target.full_name}\n\n"
                + format_push_report(report)
            )
            _emit(args, text, report_to_json(report))

        case "status":
            target = _resolve_target(args, config)
            head = await run_sync(client.get_ref, target)
            lines = [
                f"Target:  {target}",
                f"Store:   {config.store_path} ({store.count()} documents)",
                f"Remote:  {head or 'no commits on branch'}",
            ]
            _emit(
                args,
                "\n".join(lines),
                {
                    "repository": target.full_name,
                    "branch": target.branch,
                    "store": config.store_path,
                    "documents": store.count(),
                    "head": head,
                },
            )

        case _:
            raise ValueError(f"Unknown command: {args.command}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``spec-git-sync`` console script."""
    args = build_parser().parse_args(argv)

    try:
        unified = _load_unified()
    except Exception as e:
        print(f"ERROR: Failed to load config file: {e}", file=sys.stderr)
        return 2

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
    )

    if args.command == "init":
        print(f"Config file: {ensure_config()}")
        return 0

    if args.command == "list":
        return _cmd_list(args, unified)

    try:
        config = _build_config(args, unified)
        return asyncio.run(_run_remote(args, config))
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except SyncError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {e.summary()}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
