"""Exception hierarchy for plugin installer."""

from __future__ import annotations

from pathlib import Path


class PluginInstallerError(Exception):
    """Base class for all installer errors."""

    pass


class ResolutionError(PluginInstallerError):
    """Fatal pre-flight error raised before any mutation.

    Covers unknown profiles, profiles referencing missing plugins,
    invalid project paths and an empty source tree.
    """

    pass


class ManifestError(PluginInstallerError):
    """A plugin manifest or fragment could not be read."""

    def __init__(self, plugin: str, message: str) -> None:
        """Initialize manifest error.

        Args:
            plugin: Name of the plugin the manifest belongs to.
            message: Description of the problem.
        """
        super().__init__(f"{plugin}: {message}")
        self.plugin = plugin


class DocumentError(PluginInstallerError):
    """A shared JSON document could not be parsed or written."""

    def __init__(self, path: Path, message: str) -> None:
        """Initialize document error.

        Args:
            path: Path of the shared document.
            message: Description of the problem.
        """
        super().__init__(f"{path}: {message}")
        self.path = path


class SourceSyncError(PluginInstallerError):
    """The source tree could not be fast-forwarded."""

    pass
