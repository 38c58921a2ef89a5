"""Local keyed document store.

``DocumentStore`` holds every spec document in memory and mirrors it to a
JSON file on disk.  Key design choices:

* **Snapshot reads** -- the key/content mapping is never mutated in
  place.  Every write builds a new mapping and swaps the reference under
  a lock, so a reader holding the previous snapshot sees either none or
  all of a batch.
* **Persist before publish** -- a new mapping is written to disk
  (temp file + ``os.replace()``) before it becomes visible.  If the write
  fails the in-memory state is unchanged.
* **One batch primitive** -- ``apply()`` is the only mutation path;
  ``put``, ``bulk_put``, ``delete``, ``clear`` and ``replace_all`` are
  expressed as batches so UI edits, assistant batches and clone
  serialize through the same lock.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, field_validator

from .validators import validate_document_key

if TYPE_CHECKING:
    from .assistant import FileOperation

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class Document(BaseModel):
    """One spec item.

    Attributes:
        key: Path-like unique key (e.g. ``features/17``).
        content: Serialized payload, normally a JSON string.
    """

    key: str
    content: str

    model_config = {"frozen": True}

    @field_validator("key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        ok, reason = validate_document_key(value)
        if not ok:
            raise ValueError(reason)
        return value

    def payload(self) -> Any:
        """Parse ``content`` as JSON."""
        return json.loads(self.content)


class DocumentStore:
    """Keyed document collection with atomic batch writes.

    Args:
        path: JSON file used for durable storage.  ``None`` keeps the
            store in memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._docs: Mapping[str, str] = self._load()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str) -> Document | None:
        content = self._docs.get(key)
        if content is None:
            return None
        return Document(key=key, content=content)

    def query_by_prefix(self, prefix: str) -> list[Document]:
        """Return every document whose key starts with *prefix*."""
        snapshot = self._docs
        return [
            Document(key=k, content=v)
            for k, v in sorted(snapshot.items())
            if k.startswith(prefix)
        ]

    def list_all(self) -> list[Document]:
        snapshot = self._docs
        return [
            Document(key=k, content=v) for k, v in sorted(snapshot.items())
        ]

    def keys(self) -> list[str]:
        return sorted(self._docs)

    def count(self) -> int:
        return len(self._docs)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, doc: Document) -> None:
        self.bulk_put([doc])

    def bulk_put(self, docs: Iterable[Document]) -> None:
        from .assistant import FileOperation

        self.apply(
            [FileOperation(action="write", document=d) for d in docs]
        )

    def delete(self, key: str) -> None:
        from .assistant import FileOperation

        self.apply([FileOperation(action="delete", key=key)])

    def clear(self) -> None:
        self.replace_all([])

    def apply(self, operations: Iterable[FileOperation]) -> None:
        """Apply an ordered batch of writes and deletes atomically.

        Operations are applied in order, so a later write to the same
        key wins and a delete after a write removes it.  Deleting an
        absent key is a no-op.
        """
        ops = list(operations)
        with self._lock:
            updated = dict(self._docs)
            for op in ops:
                if op.action == "write" and op.document is not None:
                    updated[op.document.key] = op.document.content
                elif op.action == "delete" and op.key is not None:
                    updated.pop(op.key, None)
                else:
                    raise ValueError(f"{op.action} operation has no target")
            self._publish(updated)
        logger.debug("Applied batch of %d operations", len(ops))

    def replace_all(self, docs: Iterable[Document]) -> None:
        """Swap the entire contents for *docs* in one step.

        Readers never observe an empty store in between.
        """
        replacement = {d.key: d.content for d in docs}
        with self._lock:
            self._publish(replacement)
        logger.info("Store replaced with %d documents", len(replacement))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _publish(self, mapping: dict[str, str]) -> None:
        # Caller holds self._lock.
        if self._path is not None:
            self._save(self._path, mapping)
        self._docs = mapping

    def _load(self) -> dict[str, str]:
        if self._path is None or not self._path.exists():
            return {}
        with open(self._path, encoding="utf-8") as fh:
            data = json.load(fh)
        documents = data.get("documents", {}) if isinstance(data, dict) else {}
        if not isinstance(documents, dict):
            raise ValueError(f"Malformed store file: {self._path}")
        loaded: dict[str, str] = {}
        for key, content in documents.items():
            ok, reason = validate_document_key(key)
            if not ok or not isinstance(content, str):
                logger.warning(
                    "Skipping invalid entry %r in %s: %s",
                    key,
                    self._path,
                    reason or "content is not a string",
                )
                continue
            loaded[key] = content
        logger.debug("Loaded %d documents from %s", len(loaded), self._path)
        return loaded

    def _save(self, path: Path, mapping: dict[str, str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(
                    {"version": STORE_FORMAT_VERSION, "documents": mapping},
                    fh,
                    indent=2,
                    ensure_ascii=False,
                )
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
