"""Reference layouts for each install scope."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from plugin_installer.types import ComponentType, Reference, Scope

from .base import BaseLayout
from .flat import FlatLayout
from .versioned import VersionedLayout

if TYPE_CHECKING:
    from plugin_installer.discovery import Component, Plugin
    from plugin_installer.protocols import FileSystem


@runtime_checkable
class ReferenceLayout(Protocol):
    """Protocol defining where a scope places its references.

    New layouts can be added without modifying the materializer or the
    reversal engine.
    """

    scope: Scope
    root: Path
    dedupe_against_global: bool

    def plan(
        self, plugin: Plugin, components: dict[ComponentType, list[Component]]
    ) -> list[Reference]:
        """Compute the references a plugin needs.

        Args:
            plugin: Plugin being installed.
            components: The plugin's components grouped by type.

        Returns:
            Planned references.
        """
        raise NotImplementedError

    def stale(self, plugin: Plugin, fs: FileSystem) -> list[Path]:
        """Existing references superseded by the plugin's new plan."""
        raise NotImplementedError

    def discover(self, fs: FileSystem) -> list[Path]:
        """Find symlinks currently present in the reference tree."""
        raise NotImplementedError

    def containers(self, fs: FileSystem) -> list[Path]:
        """Directories that may be removed once empty, deepest first."""
        raise NotImplementedError


__all__ = [
    "BaseLayout",
    "FlatLayout",
    "LAYOUTS",
    "ReferenceLayout",
    "VersionedLayout",
    "get_layout",
]


LAYOUTS: dict[Scope, type[BaseLayout]] = {
    Scope.GLOBAL: VersionedLayout,
    Scope.PROJECT: FlatLayout,
}


def get_layout(scope: Scope, root: Path) -> ReferenceLayout:
    """Get the layout for a scope.

    Args:
        scope: Install level.
        root: Root of the reference tree.

    Returns:
        Layout instance.

    Raises:
        ValueError: If scope is not supported.
    """
    if scope not in LAYOUTS:
        raise ValueError(f"Unknown scope: {scope}. Supported: {[s.value for s in LAYOUTS]}")
    return LAYOUTS[scope](root)
