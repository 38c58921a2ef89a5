"""Narrow, validated views of the hosting provider's JSON responses.

Only the fields the sync engine reads are declared; everything else in a
response is ignored.  ``parse_payload`` turns a validation failure into
``EncodingError`` so untyped data never leaks past the client.
"""

from __future__ import annotations

import base64
import binascii
from typing import Literal, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import EncodingError

P = TypeVar("P")

_IGNORE_EXTRA = {"frozen": True, "extra": "ignore"}


class Owner(BaseModel):
    login: str

    model_config = _IGNORE_EXTRA


class RepositoryInfo(BaseModel):
    """Identity of a repository (``POST /user/repos`` response)."""

    name: str
    full_name: str
    owner: Owner
    html_url: str
    default_branch: str = "main"
    private: bool = True

    model_config = _IGNORE_EXTRA


class ShaResponse(BaseModel):
    """Any creation response that carries the new object's address."""

    sha: str

    model_config = _IGNORE_EXTRA


class ShaRef(BaseModel):
    sha: str

    model_config = _IGNORE_EXTRA


class CommitInfo(BaseModel):
    """``GET /git/commits/{sha}`` and ``POST /git/commits`` responses."""

    sha: str
    tree: ShaRef
    parents: list[ShaRef] = []
    message: str = ""

    model_config = _IGNORE_EXTRA


class RefObject(BaseModel):
    sha: str
    type: str = "commit"

    model_config = _IGNORE_EXTRA


class RefInfo(BaseModel):
    """``GET /git/ref/heads/{branch}`` response."""

    ref: str
    object: RefObject

    model_config = _IGNORE_EXTRA


class TreeItem(BaseModel):
    path: str
    mode: str
    type: str
    sha: str

    model_config = _IGNORE_EXTRA


class TreeInfo(BaseModel):
    """``GET /git/trees/{sha}`` response."""

    sha: str
    tree: list[TreeItem] = []
    truncated: bool = False

    model_config = _IGNORE_EXTRA


class ContentEntry(BaseModel):
    """One item of a ``GET /contents/{path}`` listing, or a single file.

    ``content`` is only present when a single file was requested.
    """

    type: Literal["file", "dir", "symlink", "submodule"]
    name: str
    path: str
    sha: str
    size: int = 0
    content: str | None = None
    encoding: str | None = None

    model_config = _IGNORE_EXTRA

    def decoded_text(self) -> str:
        """Decode the inline base64 content as UTF-8 text.

        Raises:
            EncodingError: If content is missing or not valid base64/UTF-8.
        """
        if self.content is None or self.encoding != "base64":
            raise EncodingError(
                f"{self.path}: no inline base64 content (encoding={self.encoding})"
            )
        return decode_base64_text(self.content, self.path)


class BlobInfo(BaseModel):
    """``GET /git/blobs/{sha}`` response."""

    sha: str
    content: str
    encoding: str = "base64"

    model_config = _IGNORE_EXTRA


class UserInfo(BaseModel):
    login: str

    model_config = _IGNORE_EXTRA


def parse_payload(model: type[P], data: object, what: str) -> P:
    """Validate *data* against *model*.

    Raises:
        EncodingError: If the payload does not have the expected shape.
    """
    try:
        return TypeAdapter(model).validate_python(data)
    except ValidationError as exc:
        raise EncodingError(
            f"unexpected {what} response: {exc.error_count()} validation "
            f"error(s), first: {exc.errors()[0]['msg']}"
        ) from exc


def encode_base64_text(content: str) -> str:
    """UTF-8 then base64, the transport encoding for blob creation.

    Raises:
        EncodingError: If *content* cannot be encoded as UTF-8 (for
            example it holds lone surrogates).
    """
    try:
        raw = content.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError(
            f"content is not representable as UTF-8: {exc.reason}"
        ) from exc
    return base64.b64encode(raw).decode("ascii")


def decode_base64_text(content: str, label: str = "content") -> str:
    """Inverse of ``encode_base64_text``; tolerates embedded newlines."""
    compact = "".join(content.split())
    try:
        raw = base64.b64decode(compact.encode("ascii"), validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, UnicodeEncodeError) as exc:
        raise EncodingError(f"{label}: cannot decode base64 text: {exc}") from exc
