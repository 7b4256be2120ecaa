"""Filesystem abstraction for testability.

This module provides a filesystem abstraction that enables testing
without real I/O operations. The RealFileSystem implementation
wraps standard library operations, including the symlink and atomic
write primitives the installer builds on.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path


class RealFileSystem:
    """Production filesystem implementation.

    Wraps standard library Path, os and shutil operations.
    Satisfies the FileSystem protocol structurally.
    """

    def read_text(self, path: Path) -> str:
        """Read text content from a file."""
        return path.read_text(encoding="utf-8")

    def atomic_write_text(self, path: Path, content: str, mode: int | None = None) -> None:
        """Write text through a temporary sibling file and an atomic rename.

        The temporary file is removed on every exit path that does not
        rename it into place, including KeyboardInterrupt.

        Args:
            path: Destination file.
            content: Text to write.
            mode: Optional permission bits applied before the rename.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", dir=path.parent)
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            if mode is not None:
                os.chmod(tmp, mode)
            os.replace(tmp, path)
        finally:
            if tmp.exists():
                tmp.unlink()

    def exists(self, path: Path) -> bool:
        """Check if a path exists (following symlinks)."""
        return path.exists()

    def lexists(self, path: Path) -> bool:
        """Check if a path exists without following symlinks."""
        return path.is_symlink() or path.exists()

    def file_mode(self, path: Path) -> int:
        """Return the permission bits of a file."""
        return path.stat().st_mode & 0o777

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        return path.is_dir()

    def is_symlink(self, path: Path) -> bool:
        """Check if a path is a symlink."""
        return path.is_symlink()

    def readlink(self, path: Path) -> Path:
        """Return the raw target of a symlink."""
        return Path(os.readlink(path))

    def resolve(self, path: Path) -> Path:
        """Resolve a path through every symlink, without requiring it to exist."""
        return Path(os.path.realpath(path))

    def symlink(self, target: Path, link: Path) -> None:
        """Create a symlink at link pointing to target."""
        link.symlink_to(target, target_is_directory=target.is_dir())

    def iterdir(self, path: Path) -> list[Path]:
        """List directory entries sorted by name."""
        return sorted(path.iterdir())

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        path.mkdir(parents=parents, exist_ok=exist_ok)

    def rmdir(self, path: Path) -> bool:
        """Remove a directory if it is empty.

        Returns:
            True if removed, False if it was not empty or not present.
        """
        try:
            path.rmdir()
        except OSError:
            return False
        return True

    def unlink(self, path: Path) -> None:
        """Remove a file or symlink."""
        path.unlink()

    def backup_file(self, path: Path) -> Path:
        """Copy a file to a fresh sibling with a unique name.

        Existing files are never overwritten, so backups the user keeps
        next to the document survive.

        Returns:
            Path of the copy.
        """
        fd, backup_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".bak", dir=path.parent)
        os.close(fd)
        backup = Path(backup_name)
        try:
            shutil.copy2(path, backup)
        except BaseException:
            backup.unlink()
            raise
        return backup

    def replace(self, src: Path, dst: Path) -> None:
        """Atomically move src over dst."""
        os.replace(src, dst)
