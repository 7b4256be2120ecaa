"""Target resolution: scope and selection to destination and plugin list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from plugin_installer.config import InstallConfig, InstallerPaths
from plugin_installer.errors import ResolutionError
from plugin_installer.protocols import PluginCatalog
from plugin_installer.types import Scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallTarget:
    """Destination of an install at one scope.

    Attributes:
        scope: Install level.
        root: Root of the reference tree.
        hook_registry: Shared hook document for this scope.
        service_registry: Shared service document for this scope.
        project_path: Project directory (project scope only).
    """

    scope: Scope
    root: Path
    hook_registry: Path
    service_registry: Path
    project_path: Path | None = None


@dataclass(frozen=True)
class Resolution:
    """Outcome of target resolution."""

    target: InstallTarget
    plugins: list[str] = field(default_factory=list)
    selection: str = "all"


class TargetResolver:
    """Resolves install requests before anything is mutated.

    All failures raise ResolutionError, so a bad request never leaves
    partial state behind.
    """

    def __init__(self, paths: InstallerPaths, catalog: PluginCatalog) -> None:
        """Initialize resolver.

        Args:
            paths: Installer paths.
            catalog: Component index over the source tree.
        """
        self.paths = paths
        self.catalog = catalog

    def check_source_tree(self) -> None:
        """Fail unless the source tree holds at least one plugin directory.

        Raises:
            ResolutionError: If the plugins directory is missing or empty.
        """
        plugins_dir = self.paths.plugins_dir
        if not plugins_dir.is_dir():
            raise ResolutionError(f"Plugins directory not found: {plugins_dir}")
        if not any(p.is_dir() for p in plugins_dir.iterdir()):
            raise ResolutionError(f"No plugins found in {plugins_dir}")

    def target_for(self, scope: Scope, project_path: Path | None = None) -> InstallTarget:
        """Build the destination for a scope.

        Args:
            scope: Install level.
            project_path: Project directory, required for project scope.

        Returns:
            InstallTarget with absolute paths.

        Raises:
            ResolutionError: If the project directory is missing.
        """
        if scope is Scope.GLOBAL:
            return InstallTarget(
                scope=scope,
                root=self.paths.cache_root,
                hook_registry=self.paths.global_settings,
                service_registry=self.paths.global_services,
            )

        if project_path is None:
            raise ResolutionError("A project directory is required for project scope")
        if not project_path.is_dir():
            raise ResolutionError(f"Project directory does not exist: {project_path}")
        project = project_path.resolve()
        return InstallTarget(
            scope=scope,
            root=self.paths.project_root(project),
            hook_registry=self.paths.project_settings(project),
            service_registry=self.paths.project_services(project),
            project_path=project,
        )

    def resolve(self, config: InstallConfig) -> Resolution:
        """Resolve an install request.

        Selection order: explicit plugin list, then named profile, then all
        plugins in the source tree.

        Args:
            config: Install request.

        Returns:
            Resolution with target and ordered, de-duplicated plugin names.

        Raises:
            ResolutionError: On unknown profile, profile referencing a missing
                plugin, missing project directory, or empty source tree.
        """
        self.check_source_tree()
        target = self.target_for(config.scope, config.project_path)

        if config.plugins:
            names = list(config.plugins)
            selection = "plugins"
        elif config.profile:
            names = self._profile_plugins(config.profile)
            selection = f"profile:{config.profile}"
        else:
            names = [p.name for p in self.catalog.list_plugins()]
            selection = "all"

        unique = list(dict.fromkeys(names))
        logger.debug("Resolved %s selection to %s", selection, unique)
        return Resolution(target=target, plugins=unique, selection=selection)

    def _profile_plugins(self, name: str) -> list[str]:
        try:
            profile = self.catalog.get_profile(name)
        except (ValidationError, ValueError) as e:
            raise ResolutionError(f"Profile '{name}' is invalid: {e}") from e
        if profile is None:
            raise ResolutionError(f"Profile not found: {name}")

        for plugin_name in profile.plugins:
            if not (self.paths.plugins_dir / plugin_name).is_dir():
                raise ResolutionError(
                    f"Profile '{name}' references non-existent plugin: {plugin_name}"
                )
        return list(profile.plugins)
