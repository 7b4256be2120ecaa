"""Shared JSON documents mutated by this installer and by other actors.

All mutation is read, filter, write: a document is loaded, changed in
memory, and written back through a temporary file and an atomic rename.
A backup of the pre-change document is kept until the write succeeds and
restored on any failure.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from plugin_installer.errors import DocumentError
from plugin_installer.filesystem import RealFileSystem
from plugin_installer.protocols import FileSystem

logger = logging.getLogger(__name__)

DEFAULT_MODE = 0o644


class SharedDocument:
    """A JSON object document with transactional updates."""

    def __init__(
        self,
        path: Path,
        filesystem: FileSystem | None = None,
        mode: int | None = None,
    ) -> None:
        """Initialize a shared document.

        Args:
            path: Location of the JSON document.
            filesystem: Filesystem abstraction. Defaults to RealFileSystem.
            mode: Permission bits forced on every write. When None, an
                existing file keeps its mode and new files get 0644.
        """
        self.path = path
        self.fs = filesystem or RealFileSystem()
        self.mode = mode

    def exists(self) -> bool:
        """Check whether the document is present on disk."""
        return self.fs.exists(self.path)

    def load(self) -> dict[str, Any]:
        """Read the document.

        Returns:
            Parsed JSON object; an absent or blank file reads as {}.

        Raises:
            DocumentError: If the content is not a JSON object.
        """
        if not self.fs.exists(self.path):
            return {}
        text = self.fs.read_text(self.path)
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DocumentError(self.path, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DocumentError(self.path, "expected a JSON object")
        return data

    def save(self, data: dict[str, Any]) -> None:
        """Write the document atomically."""
        mode = self.mode
        if mode is None:
            mode = self.fs.file_mode(self.path) if self.fs.exists(self.path) else DEFAULT_MODE
        self.fs.atomic_write_text(self.path, json.dumps(data, indent=2) + "\n", mode=mode)

    def delete(self) -> None:
        """Remove the document file."""
        self.fs.unlink(self.path)

    @contextmanager
    def transaction(self) -> Iterator[dict[str, Any]]:
        """Load the document for modification and write it back on success.

        The yielded dict is mutated in place by the caller. If the block or
        the write raises, the backup is restored and the error re-raised,
        wrapped in DocumentError unless it already is one or is not an
        ordinary Exception.

        Yields:
            The parsed document.

        Raises:
            DocumentError: On parse, merge or write failure.
        """
        data = self.load()
        backup = self.fs.backup_file(self.path) if self.fs.exists(self.path) else None
        try:
            yield data
            self.save(data)
        except BaseException as e:
            if backup is not None:
                logger.debug("Restoring %s from %s", self.path, backup)
                self.fs.replace(backup, self.path)
            if isinstance(e, Exception) and not isinstance(e, DocumentError):
                raise DocumentError(self.path, str(e)) from e
            raise
        if backup is not None:
            self.fs.unlink(backup)
