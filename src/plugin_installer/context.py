"""Application context for dependency injection.

This module separates object creation from object use, enabling testability
and reducing coupling in CLI commands.

Dependencies are typed using Protocols (abstract interfaces) rather than
concrete implementations, so test doubles can be injected without
inheritance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from plugin_installer.config import InstallerPaths
from plugin_installer.protocols import FileSystem, PluginCatalog, SourceRepository

if TYPE_CHECKING:
    from plugin_installer.engine import InstallEngine


def _default_filesystem() -> FileSystem:
    """Create the default filesystem implementation."""
    from plugin_installer.filesystem import RealFileSystem

    return RealFileSystem()


@dataclass
class AppContext:
    """Container for application dependencies.

    Provides a single injection point for all services used by CLI commands.
    """

    paths: InstallerPaths
    catalog: PluginCatalog
    source: SourceRepository
    engine: InstallEngine
    filesystem: FileSystem = field(default_factory=_default_filesystem)


def create_context(source_root: Path | None = None) -> AppContext:
    """Factory for application dependencies.

    Creates all services with proper wiring. Use this in production code.
    For tests, construct AppContext directly with test doubles.

    Args:
        source_root: Override the source tree root (otherwise taken from
            PLUGIN_INSTALLER_SOURCE or the current directory).

    Returns:
        Configured AppContext with all dependencies.

    Raises:
        ResolutionError: If no source tree can be located.
    """
    from plugin_installer.discovery import ComponentIndex
    from plugin_installer.engine import InstallEngine
    from plugin_installer.filesystem import RealFileSystem
    from plugin_installer.gitops import SourceTree

    paths = InstallerPaths.from_env(source_root=source_root)
    catalog = ComponentIndex.create(paths)
    source = SourceTree.create(paths.source_root)
    filesystem = RealFileSystem()
    engine = InstallEngine.create(
        paths, catalog=catalog, source=source, filesystem=filesystem
    )

    return AppContext(
        paths=paths,
        catalog=catalog,
        source=source,
        engine=engine,
        filesystem=filesystem,
    )
