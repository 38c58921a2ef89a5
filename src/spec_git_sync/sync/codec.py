"""Bidirectional mapping between document keys and repository paths.

Every document lives under a single namespace directory and keeps its
key's slash segments as nested directories, plus a fixed suffix::

    features/17        <->  specs/features/17.json
    library/docs/3     <->  specs/library/docs/3.json

``decode()`` returns ``None`` for any path outside the namespace, without
the suffix, or whose remaining key is invalid, so clone never imports
unrelated repository files such as a README.

A directory segment may not end with the suffix: key ``a`` is the file
``specs/a.json``, so ``a.json/x`` would need that same path to be a
directory.
"""

from __future__ import annotations

from spec_git_sync.validators import validate_document_key

DEFAULT_NAMESPACE = "specs"
DEFAULT_SUFFIX = ".json"


class PathCodec:
    """Encode document keys as repository paths and back.

    Args:
        root: Namespace directory at the top of the repository.
        suffix: Serialization suffix appended to the last segment.
    """

    def __init__(
        self, root: str = DEFAULT_NAMESPACE, suffix: str = DEFAULT_SUFFIX
    ) -> None:
        root = root.strip("/")
        ok, reason = validate_document_key(root)
        if not ok:
            raise ValueError(f"Invalid namespace root '{root}': {reason}")
        if not suffix or "/" in suffix:
            raise ValueError(f"Invalid suffix '{suffix}'")
        self.root = root
        self.suffix = suffix

    def encode(self, key: str) -> str:
        """Map a document key to its repository path.

        Raises:
            ValueError: If *key* is not a valid document key.
        """
        reason = self._check_key(key)
        if reason:
            raise ValueError(reason)
        return f"{self.root}/{key}{self.suffix}"

    def decode(self, path: str) -> str | None:
        """Map a repository path back to a document key.

        Returns:
            The key, or ``None`` if *path* is outside the namespace.
        """
        prefix = f"{self.root}/"
        if not path.startswith(prefix) or not path.endswith(self.suffix):
            return None
        key = path[len(prefix) : len(path) - len(self.suffix)]
        if self._check_key(key):
            return None
        return key

    def owns(self, path: str) -> bool:
        """True if *path* decodes to a document key."""
        return self.decode(path) is not None

    def _check_key(self, key: str) -> str:
        """Return why *key* has no path of its own, or ``""``."""
        ok, reason = validate_document_key(key)
        if not ok:
            return reason
        for segment in key.split("/")[:-1]:
            if segment.endswith(self.suffix):
                return (
                    f"Document key '{key}': directory segment '{segment}' "
                    f"cannot end with '{self.suffix}'"
                )
        return ""
