"""Shared data types for plugin installer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

__all__ = [
    "ComponentType",
    "IntegrityStatus",
    "InstallReport",
    "LinkStatus",
    "PluginError",
    "Reference",
    "Scope",
    "UninstallReport",
    "UpdateReport",
]


class Scope(str, Enum):
    """Installation level."""

    GLOBAL = "global"
    PROJECT = "project"


class ComponentType(str, Enum):
    """Kind of component shipped inside a plugin."""

    AGENT = "agent"
    COMMAND = "command"
    SKILL = "skill"
    DOC = "doc"
    TEMPLATE = "template"
    HOOK_SCRIPT = "hook-script"

    @property
    def group_dir(self) -> str:
        """Directory name holding this component group, in source and destination."""
        return _GROUP_DIRS[self]

    @property
    def linked(self) -> bool:
        """Whether components of this type get their own project-scope reference.

        Hook scripts are reached through the plugin directory referenced by
        the merged hook entries, so they are indexed but never linked.
        """
        return self is not ComponentType.HOOK_SCRIPT


_GROUP_DIRS = {
    ComponentType.AGENT: "agents",
    ComponentType.COMMAND: "commands",
    ComponentType.SKILL: "skills",
    ComponentType.DOC: "docs",
    ComponentType.TEMPLATE: "templates",
    ComponentType.HOOK_SCRIPT: "scripts",
}

LINKED_TYPES: tuple[ComponentType, ...] = tuple(t for t in ComponentType if t.linked)


@dataclass(frozen=True)
class Reference:
    """A live filesystem pointer from a destination slot to a source path.

    Attributes:
        path: Destination path of the symlink.
        target: Source path the symlink points to.
        plugin: Name of the plugin that owns the source.
        component_type: Component type for flat references, None for a
            whole-plugin versioned reference.
    """

    path: Path
    target: Path
    plugin: str
    component_type: ComponentType | None = None

    @property
    def name(self) -> str:
        """Destination name used for deduplication."""
        return self.path.name


@dataclass
class PluginError:
    """A recoverable failure attributed to one plugin or document.

    Attributes:
        plugin: Plugin name (or document name for document-wide failures).
        stage: Pipeline stage (materialize, hooks, services, settings, uninstall).
        message: Human-readable description.
    """

    plugin: str
    stage: str
    message: str

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.plugin:
            raise ValueError("plugin cannot be empty")
        if not self.message:
            raise ValueError("message cannot be empty")


@dataclass
class InstallReport:
    """Structured result of an install run."""

    scope: Scope
    target_root: Path
    plugins: list[str] = field(default_factory=list)
    installed: list[str] = field(default_factory=list)
    materialized: int = 0
    merged: int = 0
    skipped_duplicates: int = 0
    services_added: list[str] = field(default_factory=list)
    services_skipped: list[str] = field(default_factory=list)
    planned: list[Reference] = field(default_factory=list)
    errors: list[PluginError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """True if no plugin reported an error."""
        return not self.errors

    def add_error(self, plugin: str, stage: str, message: str) -> None:
        """Record a per-plugin failure."""
        self.errors.append(PluginError(plugin=plugin, stage=stage, message=message))


@dataclass
class UninstallReport:
    """Structured result of an uninstall run."""

    scope: Scope
    target_root: Path
    references_removed: int = 0
    hooks_removed: int = 0
    services_removed: list[str] = field(default_factory=list)
    plugins_disabled: list[str] = field(default_factory=list)
    refused: list[Path] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)
    errors: list[PluginError] = field(default_factory=list)
    nothing_to_do: bool = False
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """True if no step failed."""
        return not self.errors


class LinkStatus(str, Enum):
    """Health of a global reference."""

    OK = "ok"
    BROKEN = "broken"


@dataclass(frozen=True)
class IntegrityStatus:
    """Health of a single global reference."""

    plugin: str
    version: str
    path: Path
    target: Path | None
    status: LinkStatus


@dataclass
class UpdateReport:
    """Structured result of an update run."""

    pulled: bool = False
    pull_summary: str = ""
    references: list[IntegrityStatus] = field(default_factory=list)

    @property
    def broken(self) -> list[IntegrityStatus]:
        """References whose source no longer exists."""
        return [r for r in self.references if r.status is LinkStatus.BROKEN]

    @property
    def success(self) -> bool:
        """True if every reference resolves."""
        return not self.broken
