"""Flat layout used at project scope.

One reference per component: <root>/<group>/<name> -> component path.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from plugin_installer.layouts.base import BaseLayout
from plugin_installer.types import LINKED_TYPES, ComponentType, Reference, Scope

if TYPE_CHECKING:
    from plugin_installer.discovery import Component, Plugin
    from plugin_installer.protocols import FileSystem


class FlatLayout(BaseLayout):
    """Project-scope layout with typed subdirectories."""

    scope = Scope.PROJECT
    dedupe_against_global = True

    def group_dir(self, component_type: ComponentType) -> Path:
        """Destination directory for a component type."""
        return self.root / component_type.group_dir

    def plan(
        self, plugin: Plugin, components: dict[ComponentType, list[Component]]
    ) -> list[Reference]:
        """Plan one reference per linkable component."""
        references = []
        for component_type in LINKED_TYPES:
            for component in components.get(component_type, []):
                references.append(
                    Reference(
                        path=self.group_dir(component_type) / component.name,
                        target=component.path,
                        plugin=plugin.name,
                        component_type=component_type,
                    )
                )
        return references

    def discover(self, fs: FileSystem) -> list[Path]:
        """Find symlinks in every typed directory."""
        links: list[Path] = []
        for component_type in LINKED_TYPES:
            links.extend(self._symlinks_in(self.group_dir(component_type), fs))
        return links

    def containers(self, fs: FileSystem) -> list[Path]:
        """Typed directories, then the project's host directory."""
        return [*(self.group_dir(t) for t in LINKED_TYPES), self.root]
