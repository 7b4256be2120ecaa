"""Versioned layout used at global scope.

One reference per plugin: <root>/<plugin>/<version> -> plugin directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from plugin_installer.layouts.base import BaseLayout
from plugin_installer.types import ComponentType, Reference, Scope

if TYPE_CHECKING:
    from plugin_installer.discovery import Component, Plugin
    from plugin_installer.protocols import FileSystem


class VersionedLayout(BaseLayout):
    """Global-scope layout keyed by plugin name and version."""

    scope = Scope.GLOBAL
    dedupe_against_global = False

    def plugin_dir(self, plugin_name: str) -> Path:
        """Directory holding every version reference of a plugin."""
        return self.root / plugin_name

    def plan(
        self, plugin: Plugin, components: dict[ComponentType, list[Component]]
    ) -> list[Reference]:
        """Plan the single versioned reference for a plugin."""
        return [
            Reference(
                path=self.plugin_dir(plugin.name) / plugin.version,
                target=plugin.path,
                plugin=plugin.name,
            )
        ]

    def stale(self, plugin: Plugin, fs: FileSystem) -> list[Path]:
        """Every other version reference of the same plugin.

        A symlink sitting where the plugin directory should be is stale too.
        """
        parent = self.plugin_dir(plugin.name)
        if fs.is_symlink(parent):
            return [parent]
        return [p for p in self._symlinks_in(parent, fs) if p.name != plugin.version]

    def discover(self, fs: FileSystem) -> list[Path]:
        """Find version references under every plugin directory."""
        if not fs.is_dir(self.root):
            return []
        links: list[Path] = []
        for entry in fs.iterdir(self.root):
            if fs.is_symlink(entry):
                links.append(entry)
            elif fs.is_dir(entry):
                links.extend(self._symlinks_in(entry, fs))
        return links

    def containers(self, fs: FileSystem) -> list[Path]:
        """Plugin directories, then the namespace root."""
        if not fs.is_dir(self.root):
            return []
        dirs = [
            entry
            for entry in fs.iterdir(self.root)
            if fs.is_dir(entry) and not fs.is_symlink(entry)
        ]
        return [*dirs, self.root]
