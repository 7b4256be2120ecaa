"""Manifest and fragment models read from the source tree.

Also holds the provenance manifest, the one piece of persisted install
history: the list of service-registry keys offered at global scope.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plugin_installer.errors import DocumentError

PLUGIN_ROOT_PLACEHOLDER = "${CLAUDE_PLUGIN_ROOT}"
DEFAULT_VERSION = "0.0.0"


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


class PluginManifest(BaseModel):
    """Plugin manifest from .claude-plugin/plugin.json."""

    model_config = ConfigDict(extra="allow")

    name: str
    version: str = DEFAULT_VERSION
    description: str = ""

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Missing 'name' field")
        return value

    @field_validator("version", mode="before")
    @classmethod
    def _default_version(cls, value: Any) -> Any:
        # An empty or null version falls back rather than failing the plugin
        return value or DEFAULT_VERSION

    @field_validator("version")
    @classmethod
    def _version_is_path_segment(cls, value: str) -> str:
        # The version names a directory in the reference tree
        if "/" in value or "\\" in value or ".." in value or value.strip() in ("", "."):
            raise ValueError(f"Invalid version {value!r}: must be a single path segment")
        return value

    @classmethod
    def from_file(cls, path: Path) -> PluginManifest:
        """Load a plugin manifest from a JSON file.

        Args:
            path: Path to plugin.json.

        Returns:
            Parsed PluginManifest.

        Raises:
            FileNotFoundError: If file doesn't exist.
            ValueError: If JSON is invalid or required fields are missing.
        """
        return cls.model_validate(_read_json(path))


class Profile(BaseModel):
    """Named plugin selection from installer/profiles/<name>.json."""

    name: str
    description: str = ""
    plugins: list[str] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path) -> Profile:
        """Load a profile from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist.
            ValueError: If JSON is invalid.
        """
        return cls.model_validate(_read_json(path))


class HookFragment(BaseModel):
    """Plugin hook definitions from hooks/hooks.json.

    Uses the host's event-keyed format:
    {"hooks": {"Stop": [{"hooks": [{"type": "command", "command": "..."}]}]}}
    """

    model_config = ConfigDict(extra="allow")

    hooks: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)

    @classmethod
    def from_file(cls, path: Path, plugin_dir: Path) -> HookFragment:
        """Load a hook fragment, resolving the plugin root placeholder.

        Args:
            path: Path to hooks.json.
            plugin_dir: Absolute plugin directory substituted for
                ${CLAUDE_PLUGIN_ROOT}.

        Returns:
            Parsed HookFragment.

        Raises:
            FileNotFoundError: If file doesn't exist.
            ValueError: If JSON is invalid or does not match the format.
        """
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        text = path.read_text(encoding="utf-8")
        # Substitute inside JSON strings, so the path itself must be escaped
        escaped = json.dumps(str(plugin_dir))[1:-1]
        return cls.model_validate(json.loads(text.replace(PLUGIN_ROOT_PLACEHOLDER, escaped)))

    @property
    def entry_count(self) -> int:
        """Total number of hook groups across all events."""
        return sum(len(entries) for entries in self.hooks.values())


class ServiceFragment(BaseModel):
    """Plugin service definitions from .mcp.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    servers: dict[str, dict[str, Any]] = Field(default_factory=dict, alias="mcpServers")

    @classmethod
    def from_file(cls, path: Path) -> ServiceFragment:
        """Load a service fragment.

        Raises:
            FileNotFoundError: If file doesn't exist.
            ValueError: If JSON is invalid.
        """
        return cls.model_validate(_read_json(path))


class ProvenanceManifest(BaseModel):
    """Service-registry keys this installer has offered at global scope."""

    keys: list[str] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> ProvenanceManifest:
        """Load the manifest, treating a missing file as empty.

        Args:
            path: Path to the manifest (a JSON array of keys).

        Returns:
            ProvenanceManifest.

        Raises:
            DocumentError: If the file exists but is not a JSON array of keys.
        """
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cls(keys=data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise DocumentError(path, f"not a JSON array of service keys: {e}") from e

    def merged_with(self, keys: list[str]) -> ProvenanceManifest:
        """Return a manifest holding the union of both key sets, order kept."""
        merged = list(self.keys)
        merged.extend(k for k in keys if k not in merged)
        return ProvenanceManifest(keys=merged)

    def to_json(self) -> str:
        """Serialize as a JSON array."""
        return json.dumps(self.keys, indent=2) + "\n"
