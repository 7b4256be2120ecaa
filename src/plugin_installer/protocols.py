"""Protocol definitions for core abstractions.

This module defines abstract interfaces (Protocols) for the services the
engine depends on. Designing to interfaces enables:
- Loose coupling between components
- Easy substitution of test doubles
- Clear contracts for implementations

All concrete implementations satisfy these protocols structurally (duck typing).
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from plugin_installer.discovery import Component, Plugin
    from plugin_installer.registry import Profile
    from plugin_installer.types import ComponentType


ConfirmCallback = Callable[[str], bool]
"""Asked before destructive actions; receives a prompt, returns consent."""


@runtime_checkable
class PluginCatalog(Protocol):
    """Protocol for read-only access to the plugin source tree."""

    def list_plugins(self) -> list[Plugin]:
        """List every plugin with a readable manifest.

        Returns:
            Plugins ordered by directory name.
        """
        ...

    def get_plugin(self, name: str) -> Plugin | None:
        """Get a plugin by name.

        Args:
            name: Plugin directory or manifest name.

        Returns:
            Plugin if found, None otherwise.
        """
        ...

    def scan_components(self, plugin_dir: Path, plugin_name: str) -> dict[ComponentType, list[Component]]:
        """Enumerate typed component groups inside a plugin directory.

        Args:
            plugin_dir: Directory laid out like a plugin.
            plugin_name: Name recorded on each component.

        Returns:
            Components grouped by type.
        """
        ...

    def components(self, plugin: Plugin) -> list[Component]:
        """List all components of a plugin, in type order."""
        ...

    def describe(self, component: Component) -> str:
        """Read a component's one-line description."""
        ...

    def list_profiles(self) -> list[Profile]:
        """List named profiles.

        Returns:
            Profiles ordered by file name.
        """
        ...

    def get_profile(self, name: str) -> Profile | None:
        """Get a profile by name.

        Args:
            name: Profile name.

        Returns:
            Profile if found, None otherwise.
        """
        ...


@runtime_checkable
class SourceRepository(Protocol):
    """Protocol for version-control operations on the source tree."""

    def pull(self) -> str:
        """Fast-forward the source tree to its upstream.

        Returns:
            Short description of the result.
        """
        ...

    def is_repository(self) -> bool:
        """Check whether the source tree is under version control.

        Returns:
            True if a repository is found.
        """
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for filesystem operations.

    Enables testing without real I/O by substituting a test double.
    """

    def read_text(self, path: Path) -> str:
        """Read text content from a file.

        Args:
            path: Path to the file.

        Returns:
            File content as string.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        ...

    def atomic_write_text(self, path: Path, content: str, mode: int | None = None) -> None:
        """Write text through a temporary file and an atomic rename."""
        ...

    def file_mode(self, path: Path) -> int:
        """Return the permission bits of a file."""
        ...

    def exists(self, path: Path) -> bool:
        """Check if a path exists, following symlinks."""
        ...

    def lexists(self, path: Path) -> bool:
        """Check if a path exists without following symlinks."""
        ...

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        ...

    def is_symlink(self, path: Path) -> bool:
        """Check if a path is a symlink."""
        ...

    def readlink(self, path: Path) -> Path:
        """Return the raw target of a symlink."""
        ...

    def resolve(self, path: Path) -> Path:
        """Resolve a path through every symlink."""
        ...

    def symlink(self, target: Path, link: Path) -> None:
        """Create a symlink at link pointing to target."""
        ...

    def iterdir(self, path: Path) -> list[Path]:
        """List directory entries sorted by name."""
        ...

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        ...

    def rmdir(self, path: Path) -> bool:
        """Remove an empty directory, returning whether it was removed."""
        ...

    def unlink(self, path: Path) -> None:
        """Remove a file or symlink."""
        ...

    def backup_file(self, path: Path) -> Path:
        """Copy a file to a uniquely named sibling and return its path."""
        ...

    def replace(self, src: Path, dst: Path) -> None:
        """Atomically move src over dst."""
        ...
