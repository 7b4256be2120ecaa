"""Integrity checks for global references after the source tree moves."""

from __future__ import annotations

import logging

from plugin_installer.config import InstallerPaths
from plugin_installer.filesystem import RealFileSystem
from plugin_installer.layouts import VersionedLayout
from plugin_installer.protocols import FileSystem
from plugin_installer.types import IntegrityStatus, LinkStatus

logger = logging.getLogger(__name__)


class IntegrityChecker:
    """Reports whether every global reference still resolves.

    Advisory only: nothing is modified. Broken references are repaired by
    installing again.
    """

    def __init__(self, paths: InstallerPaths, filesystem: FileSystem) -> None:
        """Initialize checker.

        Args:
            paths: Installer paths.
            filesystem: Filesystem abstraction.
        """
        self.paths = paths
        self.fs = filesystem

    @classmethod
    def create(
        cls, paths: InstallerPaths, filesystem: FileSystem | None = None
    ) -> IntegrityChecker:
        """Factory method for production instantiation."""
        return cls(paths=paths, filesystem=filesystem or RealFileSystem())

    def check(self) -> list[IntegrityStatus]:
        """Check every reference in the global reference tree.

        Returns:
            One status per reference, ordered by plugin then version.
        """
        layout = VersionedLayout(self.paths.cache_root)
        statuses = []
        for link in layout.discover(self.fs):
            if link.parent == layout.root:
                plugin, version = link.name, ""
            else:
                plugin, version = link.parent.name, link.name
            target = self.fs.resolve(link)
            status = LinkStatus.OK if self.fs.exists(target) else LinkStatus.BROKEN
            if status is LinkStatus.BROKEN:
                logger.warning("Broken reference %s -> %s", link, self.fs.readlink(link))
            statuses.append(
                IntegrityStatus(
                    plugin=plugin,
                    version=version,
                    path=link,
                    target=target,
                    status=status,
                )
            )
        return statuses
