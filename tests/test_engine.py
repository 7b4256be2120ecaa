"""End-to-end tests for the install engine against a temporary home and source tree."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from plugin_installer.config import InstallConfig, InstallerPaths
from plugin_installer.engine import InstallEngine
from plugin_installer.errors import ResolutionError, SourceSyncError
from plugin_installer.tagged import OWNER_FIELD, is_tagged
from plugin_installer.types import LinkStatus, Scope


def load(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text())


def always(message: str) -> bool:
    return True


USER_HOOK = {"matcher": "", "hooks": [{"type": "command", "command": "say done"}]}


@pytest.fixture
def user_settings(paths: InstallerPaths) -> dict[str, Any]:
    """Global settings the user already has before any install."""
    data = {"model": "opus", "hooks": {"Stop": [USER_HOOK]}}
    paths.global_settings.parent.mkdir(parents=True, exist_ok=True)
    paths.global_settings.write_text(json.dumps(data, indent=2))
    return data


class TestGlobalInstall:
    """Tests for installing at global scope."""

    def test_full_profile(self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths) -> None:
        """A global install links, enables and merges every plugin."""
        report = engine.install(InstallConfig(profile="full"))

        assert report.success
        assert report.installed == ["core", "notifications", "mcp-servers"]
        assert report.materialized == 3
        assert report.merged == 5
        assert report.services_added == ["redis", "github"]
        assert (paths.cache_root / "notifications" / "0.2.0").is_symlink()
        assert load(paths.global_settings)["enabledPlugins"] == {
            "core@test-ns": True,
            "notifications@test-ns": True,
            "mcp-servers@test-ns": True,
        }

    def test_idempotent(
        self,
        sample_tree: Path,
        engine: InstallEngine,
        paths: InstallerPaths,
        user_settings: dict[str, Any],
    ) -> None:
        """Installing twice leaves every document byte-identical."""
        engine.install(InstallConfig(profile="full"))
        settings = paths.global_settings.read_text()
        services = paths.global_services.read_text()
        links = sorted(paths.cache_root.rglob("*"))

        report = engine.install(InstallConfig(profile="full"))

        assert report.success
        assert paths.global_settings.read_text() == settings
        assert paths.global_services.read_text() == services
        assert sorted(paths.cache_root.rglob("*")) == links

    def test_untagged_content_conserved(
        self,
        sample_tree: Path,
        engine: InstallEngine,
        paths: InstallerPaths,
        user_settings: dict[str, Any],
    ) -> None:
        """Install then uninstall leaves the user's own entries as they were."""
        engine.install(InstallConfig(profile="full"))
        engine.uninstall(Scope.GLOBAL, always)

        settings = load(paths.global_settings)
        assert settings["model"] == "opus"
        assert settings["hooks"]["Stop"] == user_settings["hooks"]["Stop"]
        assert settings["hooks"]["Notification"] == []
        assert settings["enabledPlugins"] == {}

    def test_version_bump(
        self,
        sample_tree: Path,
        engine: InstallEngine,
        paths: InstallerPaths,
        user_settings: dict[str, Any],
    ) -> None:
        """A new version swaps the reference and keeps one tagged hook entry."""
        engine.install(InstallConfig(plugins=["core"]))
        manifest = sample_tree / "plugins" / "core" / ".claude-plugin" / "plugin.json"
        manifest.write_text(json.dumps({"name": "core", "version": "2.0.0"}))

        report = engine.install(InstallConfig(plugins=["core"]))

        assert report.success
        assert [p.name for p in (paths.cache_root / "core").iterdir()] == ["2.0.0"]
        stop = load(paths.global_settings)["hooks"]["Stop"]
        assert stop[0] == USER_HOOK
        assert [e[OWNER_FIELD] for e in stop if is_tagged(e)] == ["core@test-ns"]

    def test_unknown_plugin_is_per_plugin(
        self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths
    ) -> None:
        """An unknown plugin fails alone; the rest of the batch installs."""
        report = engine.install(InstallConfig(plugins=["ghost", "core"]))

        assert not report.success
        assert [(e.plugin, e.stage) for e in report.errors] == [("ghost", "manifest")]
        assert report.installed == ["core"]
        assert (paths.cache_root / "core" / "1.0.0").is_symlink()

    def test_version_escaping_reference_tree(
        self, sample_tree: Path, make_plugin, engine: InstallEngine, home: Path
    ) -> None:
        """A version that is not a single path segment fails that plugin only."""
        make_plugin("evil", version="../../escape")

        report = engine.install(InstallConfig(plugins=["evil", "core"]))

        assert [(e.plugin, e.stage) for e in report.errors] == [("evil", "manifest")]
        assert report.installed == ["core"]
        assert list(home.rglob("escape")) == []

    def test_occupied_slot(
        self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths
    ) -> None:
        """A directory in a version slot is left in place and the plugin fails."""
        (paths.cache_root / "core" / "1.0.0").mkdir(parents=True)

        report = engine.install(InstallConfig(plugins=["core", "notifications"]))

        assert [(e.plugin, e.stage) for e in report.errors] == [("core", "materialize")]
        assert report.installed == ["notifications"]
        assert "core@test-ns" not in load(paths.global_settings)["enabledPlugins"]

    def test_corrupt_settings_isolated(
        self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths
    ) -> None:
        """An unparseable settings document fails its stages without touching other documents."""
        paths.global_settings.parent.mkdir(parents=True)
        paths.global_settings.write_text("{nope")

        report = engine.install(InstallConfig(profile="full"))

        stages = {(e.plugin, e.stage) for e in report.errors}
        assert ("settings.json", "settings") in stages
        assert ("core", "hooks") in stages
        assert paths.global_settings.read_text() == "{nope"
        assert report.services_added == ["redis", "github"]
        assert (paths.cache_root / "core" / "1.0.0").is_symlink()

    def test_dry_run_writes_nothing(
        self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths
    ) -> None:
        """A dry run plans references and writes nothing."""
        report = engine.install(InstallConfig(profile="full", dry_run=True))

        assert report.dry_run
        assert len(report.planned) == 3
        assert report.materialized == 0
        assert not paths.cache_root.exists()
        assert not paths.global_settings.exists()
        assert not paths.global_services.exists()

    def test_unknown_profile_writes_nothing(
        self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths
    ) -> None:
        """Pre-flight failures raise before any mutation."""
        with pytest.raises(ResolutionError):
            engine.install(InstallConfig(profile="nope"))

        assert not paths.host_dir.exists()


class TestProjectInstall:
    """Tests for installing at project scope."""

    def test_minimal_profile(
        self, sample_tree: Path, engine: InstallEngine, project: Path, paths: InstallerPaths
    ) -> None:
        """A project install links components and merges hooks locally."""
        report = engine.install(
            InstallConfig(scope=Scope.PROJECT, project_path=project, profile="minimal")
        )

        assert report.success
        assert report.materialized == 5
        assert report.merged == 1
        stop = load(project / ".claude" / "settings.local.json")["hooks"]["Stop"]
        assert stop[0]["hooks"][0]["command"].startswith(str(sample_tree / "plugins" / "core"))
        assert not paths.global_settings.exists()

    def test_global_service_not_duplicated(
        self, sample_tree: Path, engine: InstallEngine, project: Path, paths: InstallerPaths
    ) -> None:
        """A service already defined globally is skipped in the project."""
        paths.global_services.write_text(json.dumps({"mcpServers": {"redis": {"command": "r"}}}))

        report = engine.install(
            InstallConfig(scope=Scope.PROJECT, project_path=project, plugins=["mcp-servers"])
        )

        assert report.skipped_duplicates == 1
        assert report.services_skipped == ["redis"]
        assert list(load(project / ".mcp.json")["mcpServers"]) == ["github"]

    def test_globally_installed_components_skipped(
        self, sample_tree: Path, engine: InstallEngine, project: Path
    ) -> None:
        """Components enabled at global scope are not linked again."""
        engine.install(InstallConfig(plugins=["core"]))

        report = engine.install(
            InstallConfig(scope=Scope.PROJECT, project_path=project, plugins=["core"])
        )

        assert report.materialized == 0
        assert report.skipped_duplicates == 5
        assert not (project / ".claude" / "agents").exists()

    def test_user_file_left_with_warning(
        self, sample_tree: Path, engine: InstallEngine, project: Path
    ) -> None:
        """A user's file in a slot produces a warning, not an error."""
        mine = project / ".claude" / "commands" / "commit.md"
        mine.parent.mkdir(parents=True)
        mine.write_text("mine")

        report = engine.install(
            InstallConfig(scope=Scope.PROJECT, project_path=project, plugins=["core"])
        )

        assert report.success
        assert mine.read_text() == "mine"
        assert report.warnings == [f"core: {mine} is occupied, left in place"]

    def test_untagged_service_kept_with_warning(
        self, sample_tree: Path, engine: InstallEngine, project: Path
    ) -> None:
        """A project's own service with the same name is kept."""
        (project / ".mcp.json").write_text(json.dumps({"mcpServers": {"github": {"url": "mine"}}}))

        report = engine.install(
            InstallConfig(scope=Scope.PROJECT, project_path=project, plugins=["mcp-servers"])
        )

        assert load(project / ".mcp.json")["mcpServers"]["github"] == {"url": "mine"}
        assert "mcp-servers: service 'github' is already defined, kept" in report.warnings

    def test_missing_project(self, sample_tree: Path, engine: InstallEngine, tmp_path: Path) -> None:
        """A missing project directory is a pre-flight failure."""
        with pytest.raises(ResolutionError):
            engine.install(
                InstallConfig(scope=Scope.PROJECT, project_path=tmp_path / "nowhere")
            )


class TestUninstall:
    """Tests for engine-level uninstall."""

    def test_project_roundtrip(self, sample_tree: Path, engine: InstallEngine, project: Path) -> None:
        """Uninstall after install restores an empty project."""
        engine.install(InstallConfig(scope=Scope.PROJECT, project_path=project, profile="minimal"))

        report = engine.uninstall(Scope.PROJECT, always, project_path=project)

        assert report.success
        assert report.references_removed == 5
        assert list(project.iterdir()) == []

    def test_twice(self, sample_tree: Path, engine: InstallEngine) -> None:
        """The second uninstall has nothing to do."""
        engine.install(InstallConfig(profile="full"))
        engine.uninstall(Scope.GLOBAL, always)

        assert engine.uninstall(Scope.GLOBAL, always).nothing_to_do

    def test_missing_project(self, sample_tree: Path, engine: InstallEngine, tmp_path: Path) -> None:
        """Project uninstall needs an existing directory."""
        with pytest.raises(ResolutionError):
            engine.uninstall(Scope.PROJECT, always, project_path=tmp_path / "nowhere")

    def test_without_source_tree(self, engine: InstallEngine) -> None:
        """Uninstall refuses to run when the source tree has no plugins."""
        with pytest.raises(ResolutionError, match="Plugins directory not found"):
            engine.uninstall(Scope.GLOBAL, always)

    def test_from_other_source_tree(
        self,
        sample_tree: Path,
        engine: InstallEngine,
        paths: InstallerPaths,
        home: Path,
        tmp_path: Path,
    ) -> None:
        """Pointed at a different source tree, uninstall changes nothing and fails."""
        engine.install(InstallConfig(profile="full"))
        settings = paths.global_settings.read_text()
        services = paths.global_services.read_text()
        other_root = tmp_path / "other-source"
        (other_root / "plugins" / "unrelated").mkdir(parents=True)
        other = InstallEngine.create(InstallerPaths.create(home, other_root, namespace="test-ns"))

        report = other.uninstall(Scope.GLOBAL, always)

        assert not report.success
        assert [e.stage for e in report.errors] == ["references"]
        assert len(report.refused) == 3
        assert report.plugins_disabled == []
        assert paths.global_settings.read_text() == settings
        assert paths.global_services.read_text() == services
        assert (paths.cache_root / "core" / "1.0.0").is_symlink()

    def test_other_namespace_survives(
        self, sample_tree: Path, home: Path, source_root: Path
    ) -> None:
        """Uninstalling one namespace keeps every entry of another."""
        ns_a = InstallEngine.create(InstallerPaths.create(home, source_root, namespace="ns-a"))
        ns_b = InstallEngine.create(InstallerPaths.create(home, source_root, namespace="ns-b"))
        ns_a.install(InstallConfig(plugins=["core"]))
        ns_b.install(InstallConfig(plugins=["notifications"]))

        report = ns_a.uninstall(Scope.GLOBAL, always)

        assert report.success
        assert report.hooks_removed == 1
        settings = load(ns_b.paths.global_settings)
        assert settings["enabledPlugins"] == {"notifications@ns-b": True}
        owners = {e[OWNER_FIELD] for entries in settings["hooks"].values() for e in entries}
        assert owners == {"notifications@ns-b"}
        assert len(settings["hooks"]["Notification"]) == 1
        assert (ns_b.paths.cache_root / "notifications" / "0.2.0").is_symlink()
        assert not ns_a.paths.cache_root.exists()

    def test_user_hook_shape_kept(
        self, sample_tree: Path, engine: InstallEngine, paths: InstallerPaths
    ) -> None:
        """Event lists the user had before install remain after uninstall, even when empty."""
        paths.global_settings.parent.mkdir(parents=True)
        paths.global_settings.write_text(json.dumps({"hooks": {"Stop": []}}))
        engine.install(InstallConfig(profile="minimal"))

        engine.uninstall(Scope.GLOBAL, always)

        assert load(paths.global_settings) == {"hooks": {"Stop": []}, "enabledPlugins": {}}


class TestUpdate:
    """Tests for update and integrity verification."""

    @pytest.fixture
    def source(self) -> MagicMock:
        source = MagicMock()
        source.pull.return_value = "abc1234..def5678"
        return source

    def test_pull_then_verify(
        self, sample_tree: Path, paths: InstallerPaths, source: MagicMock
    ) -> None:
        """Update pulls and reports every global reference."""
        engine = InstallEngine.create(paths, source=source)
        engine.install(InstallConfig(profile="minimal"))

        report = engine.update()

        source.pull.assert_called_once()
        assert report.pull_summary == "abc1234..def5678"
        assert [r.status for r in report.references] == [LinkStatus.OK]
        assert report.success

    def test_no_pull(self, sample_tree: Path, paths: InstallerPaths, source: MagicMock) -> None:
        """Verification alone does not touch the source tree."""
        engine = InstallEngine.create(paths, source=source)

        report = engine.update(pull=False)

        source.pull.assert_not_called()
        assert not report.pulled
        assert report.references == []

    def test_broken_after_rename(
        self, sample_tree: Path, paths: InstallerPaths, source: MagicMock
    ) -> None:
        """A plugin moved away upstream shows as broken until reinstalled."""
        engine = InstallEngine.create(paths, source=source)
        engine.install(InstallConfig(plugins=["core"]))
        (sample_tree / "plugins" / "core").rename(sample_tree / "plugins" / "core-renamed")

        report = engine.update(pull=False)

        assert [r.plugin for r in report.broken] == ["core"]

    def test_pull_failure(self, paths: InstallerPaths, source: MagicMock) -> None:
        """Pull errors propagate to the caller."""
        source.pull.side_effect = SourceSyncError("Could not fast-forward")
        engine = InstallEngine.create(paths, source=source)

        with pytest.raises(SourceSyncError):
            engine.update()
