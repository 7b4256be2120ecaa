"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from plugin_installer.config import InstallerPaths
from plugin_installer.engine import InstallEngine

PluginFactory = Callable[..., Path]


def write_json(path: Path, data: Any) -> None:
    """Write a JSON fixture file, creating parents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ============================================================================
# Source Tree Fixtures
# ============================================================================


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """Create an empty source tree with a plugins directory."""
    root = tmp_path / "source"
    (root / "plugins").mkdir(parents=True)
    return root.resolve()


@pytest.fixture
def make_plugin(source_root: Path) -> PluginFactory:
    """Factory writing a plugin directory into the source tree.

    Args (of the returned callable):
        name: Plugin directory and manifest name.
        version: Manifest version, or None to omit it.
        files: Mapping of relative path to file content.
        hooks: Event-keyed hook entries for hooks/hooks.json.
        services: mcpServers mapping for .mcp.json.
    """

    def _make(
        name: str,
        version: str | None = "1.0.0",
        files: dict[str, str] | None = None,
        hooks: dict[str, list[dict[str, Any]]] | None = None,
        services: dict[str, dict[str, Any]] | None = None,
        description: str = "",
    ) -> Path:
        plugin_dir = source_root / "plugins" / name
        manifest: dict[str, Any] = {"name": name, "description": description}
        if version is not None:
            manifest["version"] = version
        write_json(plugin_dir / ".claude-plugin" / "plugin.json", manifest)
        for rel, content in (files or {}).items():
            target = plugin_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        if hooks is not None:
            write_json(plugin_dir / "hooks" / "hooks.json", {"hooks": hooks})
        if services is not None:
            write_json(plugin_dir / ".mcp.json", {"mcpServers": services})
        return plugin_dir

    return _make


@pytest.fixture
def make_profile(source_root: Path) -> Callable[..., Path]:
    """Factory writing installer/profiles/<name>.json."""

    def _make(name: str, plugins: list[str], description: str = "") -> Path:
        path = source_root / "installer" / "profiles" / f"{name}.json"
        write_json(path, {"name": name, "description": description, "plugins": plugins})
        return path

    return _make


@pytest.fixture
def stop_hook() -> dict[str, Any]:
    """A Stop hook group referencing a script through the plugin root."""
    return {
        "hooks": [
            {"type": "command", "command": "${CLAUDE_PLUGIN_ROOT}/scripts/notify.sh"},
        ]
    }


@pytest.fixture
def sample_tree(
    make_plugin: PluginFactory,
    make_profile: Callable[..., Path],
    stop_hook: dict[str, Any],
) -> Path:
    """Source tree with three plugins and two profiles.

    - core: agents, commands, a skill, docs, templates, a hook script, a Stop hook
    - notifications: one command, hooks on Stop and Notification
    - mcp-servers: the redis and github services
    """
    core = make_plugin(
        "core",
        version="1.0.0",
        description="Core agents and commands",
        files={
            "agents/reviewer.md": "---\nname: reviewer\ndescription: Reviews code\n---\n# Reviewer\n",
            "commands/commit.md": "---\ndescription: Write a commit\n---\nCommit.\n",
            "skills/testing/SKILL.md": "---\nname: testing\ndescription: Test skill\n---\n",
            "docs/guide.md": "# Guide\n",
            "templates/pr.md": "## Summary\n",
            "scripts/notify.sh": "#!/bin/sh\n",
        },
        hooks={"Stop": [stop_hook]},
    )
    make_plugin(
        "notifications",
        version="0.2.0",
        files={"commands/beep.md": "Beep.\n", "scripts/beep.sh": "#!/bin/sh\n"},
        hooks={
            "Stop": [{"hooks": [{"type": "command", "command": "${CLAUDE_PLUGIN_ROOT}/scripts/beep.sh"}]}],
            "Notification": [{"hooks": [{"type": "command", "command": "echo hi"}]}],
        },
    )
    make_plugin(
        "mcp-servers",
        version="2.1.0",
        services={
            "redis": {"command": "npx", "args": ["-y", "redis-mcp"]},
            "github": {"type": "http", "url": "https://example.invalid/mcp"},
        },
    )
    make_profile("minimal", ["core"], description="Just the basics")
    make_profile("full", ["core", "notifications", "mcp-servers"])
    return core.parent.parent


# ============================================================================
# Install Target Fixtures
# ============================================================================


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Create the base directory of the global scope."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    return home_dir


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create an empty project directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir.resolve()


@pytest.fixture
def paths(home: Path, source_root: Path) -> InstallerPaths:
    """Installer paths over the temporary home and source tree."""
    return InstallerPaths.create(home=home, source_root=source_root, namespace="test-ns")


@pytest.fixture
def engine(paths: InstallerPaths) -> InstallEngine:
    """Create an engine using the factory method."""
    return InstallEngine.create(paths)


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_filesystem() -> MagicMock:
    """Create a mock FileSystem for testing.

    The mock tracks all filesystem operations without touching real files.
    """
    fs = MagicMock()
    fs.exists.return_value = False
    fs.is_dir.return_value = False
    fs.is_symlink.return_value = False
    fs.read_text.return_value = ""
    return fs


@pytest.fixture
def mock_app_context(tmp_path: Path) -> MagicMock:
    """Create a complete mock AppContext for CLI testing."""
    from plugin_installer.context import AppContext

    ctx = MagicMock(spec=AppContext)
    ctx.paths = InstallerPaths.create(home=tmp_path, source_root=tmp_path / "source")
    ctx.catalog = MagicMock()
    ctx.source = MagicMock()
    ctx.engine = MagicMock()
    ctx.filesystem = MagicMock()
    return ctx
