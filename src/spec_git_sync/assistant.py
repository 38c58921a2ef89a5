"""Structured response contract for the spec assistant.

The assistant receives the user's utterance plus the current key listing
and must answer with a JSON object::

    {
      "chatResponse": "I've added a Billing feature.",
      "fileOperations": [
        {"action": "write", "file": {"id": "features/42", "content": "{...}"}},
        {"action": "delete", "key": "pages/3"}
      ]
    }

``fileOperations`` is optional.  A delete may name its target either with
``key`` or with ``file.id``.  The whole list is applied to the store as one
atomic batch.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import EncodingError
from .store import Document, DocumentStore
from .validators import validate_document_key

logger = logging.getLogger(__name__)


class FileOperation(BaseModel):
    """One write or delete issued against the document store.

    Attributes:
        action: ``"write"`` or ``"delete"``.
        document: Full document for a write.
        key: Target key for a delete.
    """

    action: Literal["write", "delete"]
    document: Document | None = None
    key: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _accept_file_alias(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "file" not in data:
            return data
        data = dict(data)
        file = data.pop("file")
        if isinstance(file, dict):
            if data.get("action") == "delete":
                data.setdefault("key", file.get("id", file.get("key")))
            else:
                data.setdefault(
                    "document",
                    {
                        "key": file.get("id", file.get("key")),
                        "content": file.get("content"),
                    },
                )
        return data

    @model_validator(mode="after")
    def _check_payload(self) -> FileOperation:
        if self.action == "write":
            if self.document is None:
                raise ValueError("write operation requires a document")
        else:
            if self.key is None:
                raise ValueError("delete operation requires a key")
            ok, reason = validate_document_key(self.key)
            if not ok:
                raise ValueError(reason)
        return self

    @property
    def target(self) -> str:
        if self.document is not None:
            return self.document.key
        return self.key or ""


class AssistantResponse(BaseModel):
    """Reply text plus an optional ordered batch of file operations."""

    chat_response: str = Field(alias="chatResponse")
    file_operations: list[FileOperation] = Field(
        default_factory=list, alias="fileOperations"
    )

    model_config = {"frozen": True, "populate_by_name": True}

    def apply_to(self, store: DocumentStore) -> int:
        """Apply the operations to *store* as one batch.

        Returns:
            Number of operations applied.
        """
        if not self.file_operations:
            return 0
        store.apply(self.file_operations)
        logger.info(
            "Applied %d assistant file operations",
            len(self.file_operations),
        )
        return len(self.file_operations)


def parse_assistant_response(raw: str | dict) -> AssistantResponse:
    """Validate an assistant reply.

    Args:
        raw: JSON text or an already-decoded dict.

    Returns:
        Validated ``AssistantResponse``.

    Raises:
        EncodingError: If the reply is not JSON or does not match the
            contract.
    """
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EncodingError(
                f"assistant reply is not valid JSON: {exc}"
            ) from exc
    else:
        data = raw
    if isinstance(data, dict) and data.get("fileOperations") is None:
        data = {k: v for k, v in data.items() if k != "fileOperations"}
    try:
        return AssistantResponse.model_validate(data)
    except ValidationError as exc:
        raise EncodingError(
            f"assistant reply has unexpected shape: {exc}"
        ) from exc


def build_key_listing(store: DocumentStore) -> str:
    """Newline-joined list of every key, as shown to the assistant."""
    return "\n".join(store.keys())
