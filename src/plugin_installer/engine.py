"""Installation and synchronization engine.

Ties resolution, materialization, merging, reversal and integrity checks
together. Every operation returns a structured report; per-plugin failures
are recorded in the report and the batch continues. Only pre-flight
failures raise.
"""

from __future__ import annotations

import logging
from pathlib import Path

from plugin_installer.config import InstallConfig, InstallerPaths
from plugin_installer.discovery import ComponentIndex, Plugin
from plugin_installer.errors import DocumentError, ManifestError
from plugin_installer.filesystem import RealFileSystem
from plugin_installer.gitops import SourceTree
from plugin_installer.integrity import IntegrityChecker
from plugin_installer.layouts import ReferenceLayout, get_layout
from plugin_installer.materialize import (
    GlobalComponentIndex,
    ReferenceMaterializer,
    build_global_component_index,
)
from plugin_installer.merge import SharedDocumentMerger
from plugin_installer.protocols import ConfirmCallback, FileSystem, PluginCatalog, SourceRepository
from plugin_installer.resolver import InstallTarget, TargetResolver
from plugin_installer.types import InstallReport, Scope, UninstallReport, UpdateReport
from plugin_installer.uninstall import ReversalEngine

logger = logging.getLogger(__name__)


class InstallEngine:
    """Installs, uninstalls and verifies plugins at one scope per call.

    Follows Separate Use from Creation: constructor requires all dependencies.
    Use factory method `create()` for production instantiation with defaults.
    """

    def __init__(
        self,
        paths: InstallerPaths,
        catalog: PluginCatalog,
        source: SourceRepository,
        filesystem: FileSystem,
    ) -> None:
        """Initialize engine with required dependencies.

        Args:
            paths: Installer paths.
            catalog: Component index over the source tree.
            source: Version control for the source tree.
            filesystem: Filesystem abstraction.
        """
        self.paths = paths
        self.catalog = catalog
        self.source = source
        self.fs = filesystem
        self.resolver = TargetResolver(paths, catalog)
        self.materializer = ReferenceMaterializer(catalog, filesystem, paths.source_root)
        self.merger = SharedDocumentMerger(paths, filesystem)
        self.reversal = ReversalEngine(paths, filesystem)
        self.integrity = IntegrityChecker(paths, filesystem)

    @classmethod
    def create(
        cls,
        paths: InstallerPaths,
        catalog: PluginCatalog | None = None,
        source: SourceRepository | None = None,
        filesystem: FileSystem | None = None,
    ) -> InstallEngine:
        """Factory method for production instantiation.

        Args:
            paths: Installer paths.
            catalog: Optional component index (created if not provided).
            source: Optional source repository (created if not provided).
            filesystem: Optional filesystem abstraction (created if not provided).

        Returns:
            Configured InstallEngine instance.
        """
        return cls(
            paths=paths,
            catalog=catalog or ComponentIndex.create(paths),
            source=source or SourceTree.create(paths.source_root),
            filesystem=filesystem or RealFileSystem(),
        )

    def install(self, config: InstallConfig) -> InstallReport:
        """Install the selected plugins at the requested scope.

        Args:
            config: Install request.

        Returns:
            InstallReport with counts, planned references (dry run) and
            per-plugin errors.

        Raises:
            ResolutionError: Before any mutation, if the request cannot be resolved.
        """
        resolution = self.resolver.resolve(config)
        target = resolution.target
        layout = get_layout(target.scope, target.root)
        report = InstallReport(
            scope=target.scope,
            target_root=target.root,
            plugins=list(resolution.plugins),
            dry_run=config.dry_run,
        )
        logger.debug(
            "Installing %s at %s scope into %s", resolution.plugins, target.scope.value, target.root
        )

        global_index: GlobalComponentIndex | None = None
        global_keys: set[str] = set()
        if target.scope is Scope.PROJECT:
            global_index = build_global_component_index(self.paths, self.catalog, self.fs)
            global_keys = self.merger.global_service_keys()

        installed: list[Plugin] = []
        for name in resolution.plugins:
            plugin = self._load_plugin(name, report)
            if plugin is None:
                continue
            if config.dry_run:
                wanted, skipped = self.materializer.plan(plugin, layout, global_index)
                report.planned.extend(wanted)
                report.skipped_duplicates += len(skipped)
                installed.append(plugin)
                continue
            if self._materialize(plugin, layout, global_index, report):
                installed.append(plugin)

        report.installed = [p.name for p in installed]
        if config.dry_run or not installed:
            return report

        if target.scope is Scope.GLOBAL:
            self._enable(installed, report)
        for plugin in installed:
            self._merge(plugin, target, global_keys, report)
        return report

    def uninstall(
        self,
        scope: Scope,
        confirm: ConfirmCallback,
        project_path: Path | None = None,
    ) -> UninstallReport:
        """Remove everything this installer owns at a scope.

        Args:
            scope: Install level.
            confirm: Asked once before anything is deleted.
            project_path: Project directory, required for project scope.

        Returns:
            UninstallReport.

        Raises:
            ResolutionError: If the source tree or the project directory is missing.
        """
        # Ownership of references is decided against the source tree
        self.resolver.check_source_tree()
        target = self.resolver.target_for(scope, project_path)
        return self.reversal.uninstall(target, confirm)

    def update(self, pull: bool = True) -> UpdateReport:
        """Optionally fast-forward the source tree, then verify global references.

        Args:
            pull: Whether to pull the source tree first.

        Returns:
            UpdateReport listing every global reference.

        Raises:
            SourceSyncError: If the pull fails.
        """
        report = UpdateReport()
        if pull:
            report.pull_summary = self.source.pull()
            report.pulled = True
        report.references = self.integrity.check()
        return report

    def _load_plugin(self, name: str, report: InstallReport) -> Plugin | None:
        try:
            plugin = self.catalog.get_plugin(name)
        except ManifestError as e:
            logger.warning("Skipping %s: %s", name, e)
            report.add_error(name, "manifest", str(e))
            return None
        if plugin is None:
            logger.warning("Plugin not found: %s", name)
            report.add_error(name, "manifest", f"Plugin not found in {self.paths.plugins_dir}")
        return plugin

    def _materialize(
        self,
        plugin: Plugin,
        layout: ReferenceLayout,
        global_index: GlobalComponentIndex | None,
        report: InstallReport,
    ) -> bool:
        try:
            result = self.materializer.materialize(plugin, layout, global_index)
        except OSError as e:
            logger.warning("Failed to link %s: %s", plugin.name, e)
            report.add_error(plugin.name, "materialize", str(e))
            return False

        report.materialized += len(result.linked)
        report.skipped_duplicates += len(result.skipped_duplicates)
        for path in result.conflicts:
            report.warnings.append(f"{plugin.name}: {path} is occupied, left in place")

        if layout.scope is Scope.GLOBAL and not result.linked:
            report.add_error(plugin.name, "materialize", "Reference slot is occupied")
            return False
        return True

    def _enable(self, plugins: list[Plugin], report: InstallReport) -> None:
        try:
            self.merger.enable_plugins([p.name for p in plugins])
        except DocumentError as e:
            logger.warning("Failed to enable plugins: %s", e)
            report.add_error(e.path.name, "settings", str(e))

    def _merge(
        self,
        plugin: Plugin,
        target: InstallTarget,
        global_keys: set[str],
        report: InstallReport,
    ) -> None:
        if plugin.has_hooks:
            try:
                hooks = self.merger.merge_hooks(plugin, target.hook_registry)
                report.merged += hooks.merged
            except (ManifestError, DocumentError) as e:
                logger.warning("Failed to merge hooks for %s: %s", plugin.name, e)
                report.add_error(plugin.name, "hooks", str(e))

        if plugin.has_services:
            try:
                services = self.merger.merge_services(
                    plugin, target.service_registry, target.scope, global_keys
                )
            except (ManifestError, DocumentError) as e:
                logger.warning("Failed to merge services for %s: %s", plugin.name, e)
                report.add_error(plugin.name, "services", str(e))
                return
            report.merged += len(services.added)
            report.services_added.extend(services.added)
            report.skipped_duplicates += len(services.skipped_global)
            report.services_skipped.extend(services.skipped_global)
            report.services_skipped.extend(services.skipped_existing)
            for key in services.skipped_existing:
                report.warnings.append(f"{plugin.name}: service '{key}' is already defined, kept")
