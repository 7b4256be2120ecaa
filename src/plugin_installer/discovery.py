"""Component index: read-only view over the plugin source tree."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import ValidationError

from plugin_installer.config import InstallerPaths
from plugin_installer.errors import ManifestError
from plugin_installer.registry import PluginManifest, Profile
from plugin_installer.types import ComponentType

logger = logging.getLogger(__name__)


@dataclass
class Component:
    """A typed, named unit belonging to one plugin."""

    name: str  # destination name (base filename)
    component_type: ComponentType
    path: Path
    plugin: str
    description: str = ""


@dataclass
class Plugin:
    """A plugin directory in the source tree."""

    name: str
    version: str
    path: Path
    description: str = ""
    groups: list[ComponentType] = field(default_factory=list)

    @property
    def hooks_file(self) -> Path:
        """Hook fragment merged into the hook registry."""
        return self.path / "hooks" / "hooks.json"

    @property
    def services_file(self) -> Path:
        """Service fragment merged into the service registry."""
        return self.path / ".mcp.json"

    @property
    def has_hooks(self) -> bool:
        """Whether the plugin ships a hook fragment."""
        return self.hooks_file.is_file()

    @property
    def has_services(self) -> bool:
        """Whether the plugin ships a service fragment."""
        return self.services_file.is_file()


class ComponentIndex:
    """Enumerates plugins, profiles and component groups in a source tree."""

    MANIFEST_DIR = ".claude-plugin"
    MANIFEST_FILE = "plugin.json"
    SKILL_FILE = "SKILL.md"

    def __init__(self, plugins_dir: Path, profiles_dir: Path) -> None:
        """Initialize the index.

        Args:
            plugins_dir: Directory with one subdirectory per plugin.
            profiles_dir: Directory with <profile>.json files.

        Note:
            Prefer using factory method `create()` for construction.
        """
        self.plugins_dir = plugins_dir
        self.profiles_dir = profiles_dir

    @classmethod
    def create(cls, paths: InstallerPaths) -> ComponentIndex:
        """Create an index for the configured source tree.

        Args:
            paths: Installer paths.

        Returns:
            Configured ComponentIndex instance.
        """
        return cls(plugins_dir=paths.plugins_dir, profiles_dir=paths.profiles_dir)

    def manifest_path(self, plugin_dir: Path) -> Path:
        """Location of a plugin's manifest."""
        return plugin_dir / self.MANIFEST_DIR / self.MANIFEST_FILE

    def plugin_dirs(self) -> list[Path]:
        """List plugin directories, ordered by name."""
        if not self.plugins_dir.is_dir():
            return []
        return sorted(
            p for p in self.plugins_dir.iterdir() if p.is_dir() and not p.name.startswith(".")
        )

    def load_plugin(self, plugin_dir: Path) -> Plugin:
        """Load a plugin from its directory.

        Args:
            plugin_dir: Plugin directory.

        Returns:
            Plugin with its component groups.

        Raises:
            ManifestError: If the manifest is missing or invalid.
        """
        manifest_path = self.manifest_path(plugin_dir)
        try:
            manifest = PluginManifest.from_file(manifest_path)
        except FileNotFoundError as e:
            raise ManifestError(plugin_dir.name, f"No plugin.json found in {plugin_dir}") from e
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            raise ManifestError(plugin_dir.name, f"Failed to parse {manifest_path}: {e}") from e

        groups = [t for t in ComponentType if (plugin_dir / t.group_dir).is_dir()]
        return Plugin(
            name=manifest.name,
            version=manifest.version,
            path=plugin_dir.resolve(),
            description=manifest.description,
            groups=groups,
        )

    def list_plugins(self) -> list[Plugin]:
        """List every plugin with a readable manifest.

        Returns:
            Plugins ordered by directory name. Unreadable ones are logged and skipped.
        """
        plugins = []
        for plugin_dir in self.plugin_dirs():
            try:
                plugins.append(self.load_plugin(plugin_dir))
            except ManifestError as e:
                logger.warning("Skipping plugin directory %s: %s", plugin_dir.name, e)
        return plugins

    def get_plugin(self, name: str) -> Plugin | None:
        """Get a plugin by directory name, falling back to manifest name.

        Args:
            name: Plugin name.

        Returns:
            Plugin if found, None otherwise.

        Raises:
            ManifestError: If the named directory exists but its manifest is unusable.
        """
        plugin_dir = self.plugins_dir / name
        if plugin_dir.is_dir():
            return self.load_plugin(plugin_dir)
        for plugin in self.list_plugins():
            if plugin.name == name:
                return plugin
        return None

    def scan_components(
        self, plugin_dir: Path, plugin_name: str
    ) -> dict[ComponentType, list[Component]]:
        """Enumerate typed component groups inside a plugin directory.

        Agents, commands and docs are *.md files; skills are directories;
        templates and hook scripts are any entry. Hidden entries are ignored.

        Args:
            plugin_dir: Directory laid out like a plugin (may be a symlink).
            plugin_name: Name recorded on each component.

        Returns:
            Components grouped by type, each group ordered by name.
        """
        result: dict[ComponentType, list[Component]] = {}
        for component_type in ComponentType:
            group_dir = plugin_dir / component_type.group_dir
            if not group_dir.is_dir():
                continue
            components = [
                Component(
                    name=entry.name,
                    component_type=component_type,
                    path=entry,
                    plugin=plugin_name,
                )
                for entry in sorted(group_dir.iterdir())
                if self._is_component(entry, component_type)
            ]
            if components:
                result[component_type] = components
        return result

    def components(self, plugin: Plugin) -> list[Component]:
        """List all components of a plugin, in type order."""
        grouped = self.scan_components(plugin.path, plugin.name)
        return [c for t in ComponentType for c in grouped.get(t, [])]

    def describe(self, component: Component) -> str:
        """Read a component's description from its YAML frontmatter.

        Args:
            component: Component to describe.

        Returns:
            Description, or empty string if none is declared.
        """
        if component.component_type is ComponentType.SKILL:
            source = component.path / self.SKILL_FILE
        elif component.path.suffix == ".md":
            source = component.path
        else:
            return ""
        try:
            content = source.read_text(encoding="utf-8")
        except OSError:
            return ""
        description = self._parse_frontmatter(content).get("description", "")
        return str(description) if description else ""

    def list_profiles(self) -> list[Profile]:
        """List named profiles, skipping unreadable files.

        Returns:
            Profiles ordered by file name.
        """
        if not self.profiles_dir.is_dir():
            return []
        profiles = []
        for profile_file in sorted(self.profiles_dir.glob("*.json")):
            try:
                profiles.append(Profile.from_file(profile_file))
            except (json.JSONDecodeError, ValidationError, ValueError) as e:
                logger.warning("Skipping profile %s: %s", profile_file.name, e)
        return profiles

    def get_profile(self, name: str) -> Profile | None:
        """Get a profile by name.

        Args:
            name: Profile name (the file stem).

        Returns:
            Profile if found, None otherwise.

        Raises:
            ValueError: If the profile file exists but is invalid.
        """
        profile_file = self.profiles_dir / f"{name}.json"
        if not profile_file.is_file():
            return None
        return Profile.from_file(profile_file)

    def _is_component(self, entry: Path, component_type: ComponentType) -> bool:
        if entry.name.startswith("."):
            return False
        if component_type is ComponentType.SKILL:
            return entry.is_dir()
        if component_type in (ComponentType.TEMPLATE, ComponentType.HOOK_SCRIPT):
            return entry.exists()
        return entry.is_file() and entry.suffix == ".md"

    def _parse_frontmatter(self, content: str) -> dict:
        """Parse YAML frontmatter from content.

        Args:
            content: File content with frontmatter.

        Returns:
            Parsed frontmatter dict, empty if none found.
        """
        if not content.startswith("---"):
            return {}

        try:
            end_idx = content.index("---", 3)
            data = yaml.safe_load(content[3:end_idx].strip()) or {}
        except (ValueError, yaml.YAMLError):
            return {}
        return data if isinstance(data, dict) else {}
