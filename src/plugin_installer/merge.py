"""Merging plugin fragments into shared, multi-owner JSON documents.

Three documents are touched:

- the hook registry (`hooks`: event name -> ordered hook groups),
- the service registry (`mcpServers`: service name -> descriptor),
- the enabled-plugin registry (`enabledPlugins`, global scope only).

Entries written here are tagged with the installer's provenance marker
and the owning plugin key. Untagged entries, and entries written for
another namespace, are never modified or removed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plugin_installer.config import InstallerPaths
from plugin_installer.discovery import Plugin
from plugin_installer.documents import SharedDocument
from plugin_installer.errors import DocumentError, ManifestError
from plugin_installer.filesystem import RealFileSystem
from plugin_installer.protocols import FileSystem
from plugin_installer.registry import HookFragment, ProvenanceManifest, ServiceFragment
from plugin_installer.tagged import TaggedEntry, in_namespace, strip_tagged, tag_all
from plugin_installer.types import Scope

logger = logging.getLogger(__name__)

HOOKS_KEY = "hooks"
SERVICES_KEY = "mcpServers"
ENABLED_KEY = "enabledPlugins"
PRIVATE_MODE = 0o600


@dataclass
class HookMergeResult:
    """Outcome of merging one plugin's hooks."""

    plugin: str
    merged: int = 0
    replaced: int = 0
    events: list[str] = field(default_factory=list)


@dataclass
class ServiceMergeResult:
    """Outcome of merging one plugin's services."""

    plugin: str
    added: list[str] = field(default_factory=list)
    skipped_global: list[str] = field(default_factory=list)
    skipped_existing: list[str] = field(default_factory=list)


def _section(doc: dict[str, Any], key: str, path: Path) -> dict[str, Any]:
    section = doc.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise DocumentError(path, f"'{key}' must be a JSON object")
    return section


class SharedDocumentMerger:
    """Merges plugin-owned fragments into shared documents."""

    def __init__(self, paths: InstallerPaths, filesystem: FileSystem) -> None:
        """Initialize merger.

        Args:
            paths: Installer paths.
            filesystem: Filesystem abstraction.

        Note:
            Prefer using factory method `create()` for construction.
        """
        self.paths = paths
        self.fs = filesystem

    @classmethod
    def create(
        cls, paths: InstallerPaths, filesystem: FileSystem | None = None
    ) -> SharedDocumentMerger:
        """Create a merger with a default filesystem."""
        return cls(paths=paths, filesystem=filesystem or RealFileSystem())

    def merge_hooks(self, plugin: Plugin, registry_path: Path) -> HookMergeResult:
        """Merge a plugin's hook fragment into a hook registry.

        For each event in the fragment, this plugin's previously tagged
        entries are removed and the fragment's entries appended, freshly
        tagged. Other events and all untagged entries are left as they are.

        Args:
            plugin: Plugin whose hooks/hooks.json is merged.
            registry_path: Hook registry document.

        Returns:
            HookMergeResult with counts.

        Raises:
            ManifestError: If the fragment cannot be read.
            DocumentError: If the registry cannot be parsed or written; the
                document is left unchanged.
        """
        try:
            fragment = HookFragment.from_file(plugin.hooks_file, plugin.path)
        except (json.JSONDecodeError, ValidationError, ValueError, FileNotFoundError) as e:
            raise ManifestError(plugin.name, f"Failed to parse hooks: {e}") from e

        owner = self.paths.plugin_key(plugin.name)
        result = HookMergeResult(plugin=plugin.name)
        with SharedDocument(registry_path, self.fs).transaction() as doc:
            hooks = _section(doc, HOOKS_KEY, registry_path)
            for event, entries in fragment.hooks.items():
                existing = hooks.get(event, [])
                if not isinstance(existing, list):
                    raise DocumentError(registry_path, f"hooks.{event} must be a JSON array")
                kept, removed = strip_tagged(existing, owner=owner)
                hooks[event] = kept + tag_all(entries, owner)
                result.replaced += removed
                result.merged += len(entries)
                result.events.append(event)
            doc[HOOKS_KEY] = hooks

        logger.debug("Merged %d hooks from %s into %s", result.merged, plugin.name, registry_path)
        return result

    def merge_services(
        self,
        plugin: Plugin,
        registry_path: Path,
        scope: Scope,
        global_keys: Iterable[str] = (),
    ) -> ServiceMergeResult:
        """Merge a plugin's service fragment into a service registry.

        A key is written only when it is absent or already owned by this
        installer in the same namespace. At project scope, keys defined in
        the global registry are skipped. At global scope, command-based services default to
        `type: stdio`, offered keys are recorded in the provenance manifest,
        and the file is kept private.

        Args:
            plugin: Plugin whose .mcp.json is merged.
            registry_path: Service registry document.
            scope: Install level.
            global_keys: Service names already present at global scope.

        Returns:
            ServiceMergeResult listing added and skipped keys.

        Raises:
            ManifestError: If the fragment cannot be read.
            DocumentError: If the registry cannot be parsed or written; the
                document is left unchanged.
        """
        try:
            servers = ServiceFragment.from_file(plugin.services_file).servers
        except (json.JSONDecodeError, ValidationError, ValueError, FileNotFoundError) as e:
            raise ManifestError(plugin.name, f"Failed to parse .mcp.json: {e}") from e

        result = ServiceMergeResult(plugin=plugin.name)
        if scope is Scope.GLOBAL:
            servers = {k: self._with_default_type(v) for k, v in servers.items()}
        else:
            global_set = set(global_keys)
            result.skipped_global = [k for k in servers if k in global_set]
            servers = {k: v for k, v in servers.items() if k not in global_set}

        if servers:
            mode = PRIVATE_MODE if scope is Scope.GLOBAL else None
            with SharedDocument(registry_path, self.fs, mode=mode).transaction() as doc:
                registry = _section(doc, SERVICES_KEY, registry_path)
                for key, descriptor in servers.items():
                    current = registry.get(key)
                    if current is not None and not in_namespace(current, self.paths.namespace):
                        result.skipped_existing.append(key)
                        continue
                    registry[key] = TaggedEntry(
                        value=descriptor, owner=self.paths.plugin_key(plugin.name)
                    ).to_json()
                    result.added.append(key)
                doc[SERVICES_KEY] = registry

        if scope is Scope.GLOBAL:
            self.record_offered(list(servers))

        logger.debug(
            "Services from %s: added=%s skipped_global=%s skipped_existing=%s",
            plugin.name,
            result.added,
            result.skipped_global,
            result.skipped_existing,
        )
        return result

    def record_offered(self, keys: list[str]) -> None:
        """Add service keys to the global provenance manifest.

        An unreadable manifest is rebuilt from the tagged entries of this
        namespace in the global service registry.

        Raises:
            DocumentError: If the manifest must be rebuilt and the global
                service registry cannot be read.
        """
        path = self.paths.provenance_manifest
        try:
            manifest = ProvenanceManifest.load(path)
        except DocumentError as e:
            logger.warning("Rebuilding provenance manifest from tagged services: %s", e)
            manifest = ProvenanceManifest(keys=self.tagged_global_keys())
        self.fs.atomic_write_text(path, manifest.merged_with(keys).to_json(), mode=0o644)

    def tagged_global_keys(self) -> list[str]:
        """Global service keys tagged for this namespace, in document order.

        Raises:
            DocumentError: If the global service registry cannot be read.
        """
        doc = SharedDocument(self.paths.global_services, self.fs).load()
        servers = _section(doc, SERVICES_KEY, self.paths.global_services)
        return [key for key, entry in servers.items() if in_namespace(entry, self.paths.namespace)]

    def enable_plugins(self, plugin_names: list[str]) -> list[str]:
        """Mark plugins enabled in the global enabled-plugin registry.

        Args:
            plugin_names: Installed plugin names.

        Returns:
            Registry keys set to true.

        Raises:
            DocumentError: If the settings document cannot be updated.
        """
        keys = [self.paths.plugin_key(name) for name in plugin_names]
        if not keys:
            return []
        with SharedDocument(self.paths.global_settings, self.fs).transaction() as doc:
            enabled = _section(doc, ENABLED_KEY, self.paths.global_settings)
            for key in keys:
                enabled[key] = True
            doc[ENABLED_KEY] = enabled
        return keys

    def global_service_keys(self) -> set[str]:
        """Service names defined in the global service registry.

        An unreadable global registry counts as empty, with a warning.
        """
        try:
            doc = SharedDocument(self.paths.global_services, self.fs).load()
            return set(_section(doc, SERVICES_KEY, self.paths.global_services))
        except DocumentError as e:
            logger.warning("Cannot read global services, none skipped: %s", e)
            return set()

    @staticmethod
    def _with_default_type(descriptor: dict[str, Any]) -> dict[str, Any]:
        if descriptor.get("command") and not descriptor.get("type"):
            return {**descriptor, "type": "stdio"}
        return descriptor
