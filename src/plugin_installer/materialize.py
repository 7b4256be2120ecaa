"""Reference materialization: live symlinks from destination slots to sources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from plugin_installer.config import InstallerPaths
from plugin_installer.discovery import Plugin
from plugin_installer.documents import SharedDocument
from plugin_installer.errors import DocumentError
from plugin_installer.filesystem import RealFileSystem
from plugin_installer.layouts import ReferenceLayout
from plugin_installer.protocols import FileSystem, PluginCatalog
from plugin_installer.types import ComponentType, Reference

logger = logging.getLogger(__name__)

GlobalComponentIndex = dict[ComponentType, set[str]]


def points_inside(link: Path, root: Path, fs: FileSystem) -> bool:
    """Check whether a symlink resolves to a location inside root.

    Broken links are judged by where they would resolve to.
    """
    return fs.resolve(link).is_relative_to(fs.resolve(root))


@dataclass
class MaterializeResult:
    """Outcome of materializing one plugin."""

    plugin: str
    linked: list[Reference] = field(default_factory=list)
    skipped_duplicates: list[Reference] = field(default_factory=list)
    replaced: list[Path] = field(default_factory=list)
    conflicts: list[Path] = field(default_factory=list)


def build_global_component_index(
    paths: InstallerPaths,
    catalog: PluginCatalog,
    filesystem: FileSystem | None = None,
) -> GlobalComponentIndex:
    """Index destination names already available at global scope.

    Only plugins marked enabled in the global enabled-plugin registry and
    present in the reference cache are considered.

    Args:
        paths: Installer paths.
        catalog: Component index used to scan referenced plugin directories.
        filesystem: Filesystem abstraction.

    Returns:
        Mapping of component type to destination names.
    """
    fs = filesystem or RealFileSystem()
    index: GlobalComponentIndex = {t: set() for t in ComponentType}

    try:
        settings = SharedDocument(paths.global_settings, fs).load()
    except DocumentError as e:
        logger.warning("Cannot read global settings, no global components indexed: %s", e)
        return index

    enabled = settings.get("enabledPlugins")
    if not isinstance(enabled, dict):
        return index

    for key, value in enabled.items():
        if value is not True or "@" not in key:
            continue
        plugin_name, _, namespace = key.rpartition("@")
        cache_dir = paths.cache_base / namespace / plugin_name
        if not fs.is_dir(cache_dir):
            continue
        versions = [d for d in fs.iterdir(cache_dir) if fs.is_dir(d)]
        if not versions:
            continue
        for component_type, components in catalog.scan_components(versions[0], plugin_name).items():
            index[component_type].update(c.name for c in components)

    logger.debug(
        "Global component index: %s",
        {t.value: len(names) for t, names in index.items() if names},
    )
    return index


class ReferenceMaterializer:
    """Creates and refreshes references for selected plugins.

    Follows Separate Use from Creation: constructor requires all dependencies.
    Use factory method `create()` for production instantiation with defaults.
    """

    def __init__(
        self,
        catalog: PluginCatalog,
        filesystem: FileSystem,
        source_root: Path,
    ) -> None:
        """Initialize materializer.

        Args:
            catalog: Component index over the source tree.
            filesystem: Filesystem abstraction.
            source_root: Root every reference must resolve into.
        """
        self.catalog = catalog
        self.fs = filesystem
        self.source_root = source_root

    @classmethod
    def create(
        cls,
        catalog: PluginCatalog,
        source_root: Path,
        filesystem: FileSystem | None = None,
    ) -> ReferenceMaterializer:
        """Factory method for production instantiation."""
        return cls(
            catalog=catalog,
            filesystem=filesystem or RealFileSystem(),
            source_root=source_root,
        )

    def plan(
        self,
        plugin: Plugin,
        layout: ReferenceLayout,
        global_index: GlobalComponentIndex | None = None,
    ) -> tuple[list[Reference], list[Reference]]:
        """Split a plugin's references into wanted and globally duplicated.

        Args:
            plugin: Plugin to materialize.
            layout: Destination layout.
            global_index: Names already present at global scope.

        Returns:
            Tuple of (references to materialize, references skipped).
        """
        components = self.catalog.scan_components(plugin.path, plugin.name)
        wanted: list[Reference] = []
        skipped: list[Reference] = []
        for ref in layout.plan(plugin, components):
            if self._available_globally(ref, layout, global_index):
                skipped.append(ref)
            else:
                wanted.append(ref)
        return wanted, skipped

    def materialize(
        self,
        plugin: Plugin,
        layout: ReferenceLayout,
        global_index: GlobalComponentIndex | None = None,
    ) -> MaterializeResult:
        """Create or refresh every reference a plugin needs.

        Re-running with the same plugin leaves correct links untouched.
        Existing files, directories, and symlinks pointing outside the
        source tree are reported as conflicts and left alone.

        Args:
            plugin: Plugin to materialize.
            layout: Destination layout.
            global_index: Names already present at global scope.

        Returns:
            MaterializeResult with linked, skipped and conflicting slots.
        """
        result = MaterializeResult(plugin=plugin.name)
        wanted, result.skipped_duplicates = self.plan(plugin, layout, global_index)

        for stale in layout.stale(plugin, self.fs):
            if points_inside(stale, self.source_root, self.fs):
                self.fs.unlink(stale)
                result.replaced.append(stale)
                logger.debug("Removed superseded reference %s", stale)
            else:
                result.conflicts.append(stale)

        for ref in wanted:
            if self._link(ref):
                result.linked.append(ref)
            else:
                result.conflicts.append(ref.path)

        return result

    def _available_globally(
        self,
        ref: Reference,
        layout: ReferenceLayout,
        global_index: GlobalComponentIndex | None,
    ) -> bool:
        if not global_index or not layout.dedupe_against_global or ref.component_type is None:
            return False
        return ref.name in global_index.get(ref.component_type, set())

    def _link(self, ref: Reference) -> bool:
        """Point ref.path at ref.target, returning False on a foreign occupant."""
        if self.fs.is_symlink(ref.path.parent):
            logger.warning("Not writing through symlinked directory %s", ref.path.parent)
            return False
        if self.fs.is_symlink(ref.path):
            if self.fs.readlink(ref.path) == ref.target:
                return True
            if not points_inside(ref.path, self.source_root, self.fs):
                logger.warning("Not replacing foreign symlink %s", ref.path)
                return False
            self.fs.unlink(ref.path)
        elif self.fs.lexists(ref.path):
            logger.warning("Not replacing existing entry %s", ref.path)
            return False

        self.fs.mkdir(ref.path.parent, parents=True, exist_ok=True)
        self.fs.symlink(ref.target, ref.path)
        return True
