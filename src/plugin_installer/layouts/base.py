"""Base layout implementation with shared behavior.

Global and project scopes place the same Reference concept in two
different trees. Layouts vary in where references go and what counts as
a stale reference; materialization and reversal are written once against
this interface.

Pattern: Strategy - the materializer delegates slot placement to a layout.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from plugin_installer.types import ComponentType, Reference, Scope

if TYPE_CHECKING:
    from plugin_installer.discovery import Component, Plugin
    from plugin_installer.protocols import FileSystem


class BaseLayout(ABC):
    """Base class for reference layouts.

    Subclasses decide where each reference goes (`plan`), how existing
    references are found (`discover`), and which directories may be pruned
    once empty (`containers`).
    """

    scope: Scope
    dedupe_against_global: bool = False

    def __init__(self, root: Path) -> None:
        """Initialize layout.

        Args:
            root: Root of the reference tree.
        """
        self.root = root

    @abstractmethod
    def plan(
        self, plugin: Plugin, components: dict[ComponentType, list[Component]]
    ) -> list[Reference]:
        """Compute the references a plugin needs."""
        ...

    @abstractmethod
    def discover(self, fs: FileSystem) -> list[Path]:
        """Find symlinks currently present in the reference tree."""
        ...

    @abstractmethod
    def containers(self, fs: FileSystem) -> list[Path]:
        """Directories that may be removed once empty, deepest first."""
        ...

    def stale(self, plugin: Plugin, fs: FileSystem) -> list[Path]:
        """Existing references superseded by this plugin's new plan.

        Override in layouts where a reinstall replaces rather than refreshes.
        """
        return []

    def _symlinks_in(self, directory: Path, fs: FileSystem) -> list[Path]:
        if not fs.is_dir(directory) or fs.is_symlink(directory):
            return []
        return [p for p in fs.iterdir(directory) if fs.is_symlink(p)]
