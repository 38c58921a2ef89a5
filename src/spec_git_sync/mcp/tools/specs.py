"""MCP tool handlers for the local document store.

Defines five tools:

- ``spec_list`` -- list keys, optionally filtered by prefix.
- ``spec_get`` -- read one document.
- ``spec_write`` -- create or replace one document.
- ``spec_delete`` -- remove one document.
- ``spec_apply`` -- apply an assistant reply's file operations as one batch.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...assistant import FileOperation, parse_assistant_response
from ...core.async_utils import run_sync
from ...store import Document
from .errors import build_error_response
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import ServerContext

logger = logging.getLogger(__name__)


def _text(text: str, structured: dict | None = None) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def _content_arg(value: Any) -> str:
    """Documents are stored serialized; accept objects and serialize them."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_spec_list(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    prefix = args.get("prefix") or ""
    docs = (
        ctx.store.query_by_prefix(prefix) if prefix else ctx.store.list_all()
    )
    keys = [d.key for d in docs]
    text = "\n".join(keys) if keys else "(no documents)"
    return _text(text, {"prefix": prefix, "count": len(keys), "keys": keys})


async def _handle_spec_get(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    key = args.get("key")
    if not key:
        raise ValueError("key is required")
    doc = ctx.store.get(key)
    if doc is None:
        return build_error_response(
            "not_found",
            f"No document with key '{key}'",
            "Use spec_list to see available keys.",
        )
    return _text(doc.content, {"key": doc.key, "content": doc.content})


async def _handle_spec_write(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    key = args.get("key")
    if not key:
        raise ValueError("key is required")
    if "content" not in args:
        raise ValueError("content is required")
    doc = Document(key=key, content=_content_arg(args["content"]))
    existed = ctx.store.get(key) is not None
    await run_sync(ctx.store.put, doc)
    verb = "Updated" if existed else "Created"
    return _text(f"{verb} {key}", {"key": key, "created": not existed})


async def _handle_spec_delete(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    key = args.get("key")
    if not key:
        raise ValueError("key is required")
    existed = ctx.store.get(key) is not None
    await run_sync(ctx.store.delete, key)
    text = f"Deleted {key}" if existed else f"{key} did not exist"
    return _text(text, {"key": key, "deleted": existed})


async def _handle_spec_apply(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    if "response" in args:
        response = parse_assistant_response(args["response"])
        applied = await run_sync(
            ctx.orchestrator.apply_assistant_response, response
        )
        chat = response.chat_response
    elif "operations" in args:
        ops = [FileOperation.model_validate(op) for op in args["operations"]]
        applied = await run_sync(ctx.orchestrator.apply_operations, ops)
        chat = ""
    else:
        raise ValueError("Provide either 'response' or 'operations'")
    text = f"Applied {applied} file operations"
    if chat:
        text = f"{chat}\n\n{text}"
    return _text(
        text,
        {"applied": applied, "chat_response": chat, "count": ctx.store.count()},
    )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_KEY_SCHEMA = {
    "type": "string",
    "description": "Document key, e.g. 'features/17' or 'pages/2'",
}

SPEC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="spec_list",
            description="List document keys in the local store, optionally filtered by key prefix.",
            annotations=types.ToolAnnotations(
                readOnlyHint=True, openWorldHint=False
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "prefix": {
                        "type": "string",
                        "description": "Key prefix, e.g. 'features/'",
                    },
                },
                "required": [],
            },
        ),
        mutating=False,
        handler=_handle_spec_list,
    ),
    ToolSpec(
        tool=types.Tool(
            name="spec_get",
            description="Read one document from the local store.",
            annotations=types.ToolAnnotations(
                readOnlyHint=True, openWorldHint=False
            ),
            inputSchema={
                "type": "object",
                "properties": {"key": _KEY_SCHEMA},
                "required": ["key"],
            },
        ),
        mutating=False,
        handler=_handle_spec_get,
    ),
    ToolSpec(
        tool=types.Tool(
            name="spec_write",
            description=(
                "Create or replace one document in the local store. "
                "Content may be a JSON string or an object."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "key": _KEY_SCHEMA,
                    "content": {
                        "description": "Serialized document (string) or an object to serialize",
                    },
                },
                "required": ["key", "content"],
            },
        ),
        mutating=True,
        handler=_handle_spec_write,
    ),
    ToolSpec(
        tool=types.Tool(
            name="spec_delete",
            description="Remove one document from the local store. Deleting a missing key is a no-op.",
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {"key": _KEY_SCHEMA},
                "required": ["key"],
            },
        ),
        mutating=True,
        handler=_handle_spec_delete,
    ),
    ToolSpec(
        tool=types.Tool(
            name="spec_apply",
            description=(
                "Apply a batch of write/delete operations atomically. Pass an "
                "assistant reply ({chatResponse, fileOperations}) as 'response', "
                "or a bare list as 'operations'."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "response": {
                        "description": "Assistant reply as a JSON string or object",
                    },
                    "operations": {
                        "type": "array",
                        "items": {"type": "object"},
                        "description": (
                            "Operations: {action: 'write', file: {id, content}} "
                            "or {action: 'delete', key}"
                        ),
                    },
                },
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_spec_apply,
    ),
]
