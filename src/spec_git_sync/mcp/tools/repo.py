"""MCP tool handlers for repository sync.

Defines four tools:

- ``repo_push`` -- publish the store as one commit on the tracked branch.
- ``repo_clone`` -- replace the store with the documents on the branch.
- ``repo_create`` -- create a repository and push the store into it.
- ``sync_status`` -- orchestrator state and the last report.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import mcp.types as types

from ...sync.models import SyncTarget
from ...sync.reporter import (
    format_clone_report,
    format_push_report,
    report_to_json,
)
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import ServerContext

logger = logging.getLogger(__name__)


def resolve_target(ctx: ServerContext, args: dict) -> SyncTarget:
    """Target from the ``repo``/``branch`` arguments, else the configured default.

    Raises:
        ValueError: If neither is available.
    """
    repo = args.get("repo")
    branch = args.get("branch")
    if repo:
        return SyncTarget.parse(repo, branch=branch or ctx.config.branch)
    if ctx.default_target is None:
        raise ValueError(
            "No repository given and no default configured. Pass 'repo' "
            "as owner/name or set SPEC_GIT_REPO."
        )
    if branch:
        return ctx.default_target.model_copy(update={"branch": branch})
    return ctx.default_target


async def _handle_repo_push(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    target = resolve_target(ctx, args)
    prune = args.get("prune")
    report = await ctx.orchestrator.push(
        target,
        message=args.get("message"),
        prune=ctx.config.prune if prune is None else bool(prune),
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_push_report(report))],
        structuredContent=report_to_json(report),
    )


async def _handle_repo_clone(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    target = resolve_target(ctx, args)
    report = await ctx.orchestrator.clone(target)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_clone_report(report))
        ],
        structuredContent=report_to_json(report),
    )


async def _handle_repo_create(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    name = args.get("name")
    if not name:
        raise ValueError("name is required")
    report = await ctx.orchestrator.publish_new_repository(
        name,
        private=args.get("private", True),
        branch=args.get("branch"),
    )
    text = (
        f"Created repository {report.target.full_name}\n\n"
        + format_push_report(report)
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=report_to_json(report),
    )


async def _handle_sync_status(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    orch = ctx.orchestrator
    last = orch.last_report
    lines = [
        f"Status:         {orch.status.value}",
        f"Default target: {ctx.default_target or '(none)'}",
        f"Documents:      {ctx.store.count()}",
    ]
    if orch.last_error is not None:
        lines.append(f"Last error:     {orch.last_error}")
    if last is not None:
        lines.append(
            f"Last {last.kind.value}:      {last.target} at {last.completed_at}"
        )

    structured = {
        "status": orch.status.value,
        "running": orch.running.value if orch.running else None,
        "default_target": str(ctx.default_target) if ctx.default_target else None,
        "documents": ctx.store.count(),
        "last_error": str(orch.last_error) if orch.last_error else None,
        "last_report": report_to_json(last) if last is not None else None,
    }
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


_TARGET_PROPERTIES = {
    "repo": {
        "type": "string",
        "description": "owner/name or repository URL (default: configured repo)",
    },
    "branch": {
        "type": "string",
        "description": "Tracked branch (default: configured branch)",
    },
}

REPO_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="repo_push",
            description=(
                "Publish every document in the local store as a single commit "
                "on the tracked branch. Files outside the document directory "
                "are kept. Fails with ref_conflict if the branch moved."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_TARGET_PROPERTIES,
                    "message": {
                        "type": "string",
                        "description": "Commit message",
                    },
                    "prune": {
                        "type": "boolean",
                        "description": "Remove remote documents whose keys are no longer local",
                    },
                },
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_repo_push,
    ),
    ToolSpec(
        tool=types.Tool(
            name="repo_clone",
            description=(
                "Replace the local store with the documents on the tracked "
                "branch. The store is left unchanged if the clone fails."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": dict(_TARGET_PROPERTIES),
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_repo_clone,
    ),
    ToolSpec(
        tool=types.Tool(
            name="repo_create",
            description=(
                "Create a repository owned by the token's user and push the "
                "local store into it."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Repository name"},
                    "private": {
                        "type": "boolean",
                        "default": True,
                        "description": "Create as private",
                    },
                    "branch": {
                        "type": "string",
                        "description": "Branch to push (default: repository default branch)",
                    },
                },
                "required": ["name"],
            },
        ),
        mutating=True,
        handler=_handle_repo_create,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_status",
            description="Show sync state, the default target and the last push or clone report.",
            annotations=types.ToolAnnotations(
                readOnlyHint=True, openWorldHint=False
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        mutating=False,
        handler=_handle_sync_status,
    ),
]
