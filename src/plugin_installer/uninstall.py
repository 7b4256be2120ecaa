"""Reversal: remove the references and tagged entries this installer owns.

Installed state is reconstructed by inspection. References count as owned
only when they resolve inside the source tree; document entries count as
owned only when they carry the provenance tag and an owner key of
this namespace.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugin_installer.config import InstallerPaths
from plugin_installer.documents import SharedDocument
from plugin_installer.errors import DocumentError
from plugin_installer.filesystem import RealFileSystem
from plugin_installer.layouts import get_layout
from plugin_installer.materialize import points_inside
from plugin_installer.merge import ENABLED_KEY, HOOKS_KEY, SERVICES_KEY
from plugin_installer.protocols import ConfirmCallback, FileSystem
from plugin_installer.registry import ProvenanceManifest
from plugin_installer.resolver import InstallTarget
from plugin_installer.tagged import in_namespace, strip_tagged
from plugin_installer.types import PluginError, Scope, UninstallReport

logger = logging.getLogger(__name__)

CleanupStep = Callable[[UninstallReport, InstallTarget, "OwnedSet"], None]


@dataclass
class OwnedSet:
    """What an uninstall at one target would remove."""

    references: list[Path] = field(default_factory=list)
    foreign: list[Path] = field(default_factory=list)
    hook_entries: int = 0
    service_keys: list[str] = field(default_factory=list)
    enabled_keys: list[str] = field(default_factory=list)
    manifest: bool = False
    problems: list[PluginError] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        """True if nothing owned is present."""
        return not (
            self.references
            or self.hook_entries
            or self.service_keys
            or self.enabled_keys
            or self.manifest
        )

    def source_mismatch(self, scope: Scope) -> bool:
        """True if the reference tree only holds links into another source tree.

        The versioned tree belongs to one namespace, so this means the
        installer is pointed at the wrong source root.
        """
        return scope is Scope.GLOBAL and bool(self.foreign) and not self.references

    def describe(self, target: InstallTarget) -> str:
        """Summary used in the confirmation prompt."""
        parts = [f"{len(self.references)} references"]
        if self.hook_entries:
            parts.append(f"{self.hook_entries} hook entries")
        if self.service_keys:
            parts.append(f"{len(self.service_keys)} services")
        if self.enabled_keys:
            parts.append(f"{len(self.enabled_keys)} enabled plugins")
        return f"Remove {', '.join(parts)} from {target.root}?"


class ReversalEngine:
    """Removes owned references and tagged entries at one scope.

    Follows Separate Use from Creation: constructor requires all dependencies.
    Use factory method `create()` for production instantiation with defaults.
    """

    def __init__(self, paths: InstallerPaths, filesystem: FileSystem) -> None:
        """Initialize reversal engine.

        Args:
            paths: Installer paths; source_root bounds what may be deleted.
            filesystem: Filesystem abstraction.
        """
        self.paths = paths
        self.fs = filesystem

    @classmethod
    def create(
        cls, paths: InstallerPaths, filesystem: FileSystem | None = None
    ) -> ReversalEngine:
        """Factory method for production instantiation."""
        return cls(paths=paths, filesystem=filesystem or RealFileSystem())

    def inspect(self, target: InstallTarget) -> OwnedSet:
        """Compute what this installer owns at a target.

        Unreadable documents are recorded as problems and counted as
        owning nothing.

        Args:
            target: Destination to inspect.

        Returns:
            OwnedSet for the target.
        """
        owned = OwnedSet()
        layout = get_layout(target.scope, target.root)
        for link in layout.discover(self.fs):
            if points_inside(link, self.paths.source_root, self.fs):
                owned.references.append(link)
            else:
                owned.foreign.append(link)

        try:
            owned.hook_entries = self._count_tagged_hooks(target.hook_registry)
        except DocumentError as e:
            owned.problems.append(PluginError(target.hook_registry.name, "hooks", str(e)))

        try:
            owned.service_keys = self._owned_service_keys(target)
        except DocumentError as e:
            owned.problems.append(PluginError(target.service_registry.name, "services", str(e)))

        if target.scope is Scope.GLOBAL:
            owned.manifest = self.fs.exists(self.paths.provenance_manifest)
            try:
                owned.enabled_keys = self._owned_enabled_keys()
            except DocumentError as e:
                owned.problems.append(
                    PluginError(self.paths.global_settings.name, "settings", str(e))
                )
        return owned

    def uninstall(self, target: InstallTarget, confirm: ConfirmCallback) -> UninstallReport:
        """Remove everything owned at a target, after confirmation.

        Args:
            target: Destination to clean.
            confirm: Asked once before anything is deleted.

        Returns:
            UninstallReport; nothing_to_do is set when nothing owned exists,
            cancelled when the confirmation was declined.
        """
        report = UninstallReport(scope=target.scope, target_root=target.root)
        owned = self.inspect(target)
        report.refused = list(owned.foreign)
        report.errors.extend(owned.problems)

        if owned.empty:
            logger.debug("Nothing owned at %s", target.root)
            report.nothing_to_do = True
            return report

        if owned.source_mismatch(target.scope):
            message = (
                f"None of {len(owned.foreign)} references points into {self.paths.source_root}; "
                "run uninstall from the source tree the plugins were installed from"
            )
            logger.warning("Refusing to uninstall at %s: %s", target.root, message)
            report.errors.append(PluginError(target.root.name, "references", message))
            return report

        if not confirm(owned.describe(target)):
            report.cancelled = True
            return report

        steps: list[tuple[Path, str, CleanupStep]] = []
        if owned.service_keys:
            steps.append((target.service_registry, "services", self._remove_services))
        if owned.hook_entries:
            steps.append((target.hook_registry, "hooks", self._remove_hooks))
        if owned.enabled_keys:
            steps.append((self.paths.global_settings, "settings", self._disable_plugins))
        for path, stage, step in steps:
            try:
                step(report, target, owned)
            except DocumentError as e:
                logger.warning("Failed to clean %s: %s", path, e)
                report.errors.append(PluginError(path.name, stage, str(e)))

        for link in owned.references:
            self.fs.unlink(link)
            report.references_removed += 1
            logger.debug("Removed reference %s", link)

        # The manifest outlives a failed service cleanup so a rerun can finish it.
        if owned.manifest and not any(e.stage == "services" for e in report.errors):
            self.fs.unlink(self.paths.provenance_manifest)

        self._prune_containers(target)

        if target.scope is Scope.PROJECT and self.fs.exists(target.service_registry):
            report.notices.append(
                f"{target.service_registry} was not removed (may contain other services)"
            )
        for link in report.refused:
            logger.warning("Left %s in place: it does not point into %s", link, self.paths.source_root)
        return report

    def _remove_services(
        self, report: UninstallReport, target: InstallTarget, owned: OwnedSet
    ) -> None:
        with SharedDocument(target.service_registry, self.fs).transaction() as doc:
            servers = doc.get(SERVICES_KEY, {})
            for key in owned.service_keys:
                if in_namespace(servers.get(key), self.paths.namespace):
                    del servers[key]
                    report.services_removed.append(key)

    def _remove_hooks(
        self, report: UninstallReport, target: InstallTarget, owned: OwnedSet
    ) -> None:
        # The global settings belong to the user; emptied containers stay.
        prune = target.scope is Scope.PROJECT
        document = SharedDocument(target.hook_registry, self.fs)
        with document.transaction() as doc:
            hooks = doc.get(HOOKS_KEY, {})
            for event in list(hooks):
                entries = hooks[event]
                if not isinstance(entries, list):
                    continue
                kept, removed = strip_tagged(entries, namespace=self.paths.namespace)
                if not removed:
                    continue
                report.hooks_removed += removed
                if kept or not prune:
                    hooks[event] = kept
                else:
                    del hooks[event]
            if not hooks and prune:
                doc.pop(HOOKS_KEY, None)
        if not doc and prune:
            document.delete()
            logger.debug("Removed %s, it held only installer hooks", target.hook_registry)

    def _disable_plugins(
        self, report: UninstallReport, target: InstallTarget, owned: OwnedSet
    ) -> None:
        with SharedDocument(self.paths.global_settings, self.fs).transaction() as doc:
            enabled = doc.get(ENABLED_KEY, {})
            for key in owned.enabled_keys:
                if enabled.pop(key, None) is not None:
                    report.plugins_disabled.append(key)

    def _prune_containers(self, target: InstallTarget) -> None:
        layout = get_layout(target.scope, target.root)
        for directory in layout.containers(self.fs):
            if self.fs.is_dir(directory) and not self.fs.is_symlink(directory):
                if self.fs.rmdir(directory):
                    logger.debug("Removed empty directory %s", directory)

    def _count_tagged_hooks(self, path: Path) -> int:
        hooks = _object(SharedDocument(path, self.fs).load(), HOOKS_KEY)
        return sum(
            strip_tagged(entries, namespace=self.paths.namespace)[1]
            for entries in hooks.values()
            if isinstance(entries, list)
        )

    def _owned_service_keys(self, target: InstallTarget) -> list[str]:
        servers = _object(SharedDocument(target.service_registry, self.fs).load(), SERVICES_KEY)
        tagged = [key for key, entry in servers.items() if in_namespace(entry, self.paths.namespace)]
        if target.scope is Scope.PROJECT:
            return tagged
        try:
            offered = ProvenanceManifest.load(self.paths.provenance_manifest).keys
        except DocumentError as e:
            logger.warning("Falling back to every tagged service of this namespace: %s", e)
            return tagged
        return [key for key in offered if key in tagged]

    def _owned_enabled_keys(self) -> list[str]:
        enabled = _object(SharedDocument(self.paths.global_settings, self.fs).load(), ENABLED_KEY)
        suffix = f"@{self.paths.namespace}"
        return [key for key in enabled if key.endswith(suffix)]


def _object(doc: dict[str, Any], key: str) -> dict[str, Any]:
    value = doc.get(key)
    return value if isinstance(value, dict) else {}
