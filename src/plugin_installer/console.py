"""Console output, prompts and the interactive install collector."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from plugin_installer.config import InstallConfig
from plugin_installer.types import LinkStatus, Scope

if TYPE_CHECKING:
    from plugin_installer.discovery import Plugin
    from plugin_installer.protocols import PluginCatalog
    from plugin_installer.registry import Profile
    from plugin_installer.types import InstallReport, UninstallReport, UpdateReport


class TUI:
    """Text User Interface for plugin-installer."""

    def __init__(self, console: Console | None = None) -> None:
        """Initialize TUI.

        Args:
            console: Rich console to write to. Defaults to stdout.
        """
        self.console = console or Console()

    def show_welcome(self, version: str) -> None:
        """Display welcome banner."""
        self.console.print(
            Panel(
                f"[bold blue]Plugin Installer[/bold blue] v{version}\n"
                "Install and synchronize Claude Code plugins",
                title="Welcome",
                border_style="blue",
            )
        )

    def confirm(self, message: str, default: bool = False) -> bool:
        """Show confirmation prompt.

        Args:
            message: Confirmation message.
            default: Default response.

        Returns:
            User's response.
        """
        return Confirm.ask(message, default=default)

    def show_success(self, message: str) -> None:
        """Show success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def show_error(self, message: str) -> None:
        """Show error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def show_warning(self, message: str) -> None:
        """Show warning message."""
        self.console.print(f"[yellow]![/yellow] {message}")

    def show_info(self, message: str) -> None:
        """Show info message."""
        self.console.print(f"[blue]i[/blue] {message}")

    def show_plugins(self, plugins: list[Plugin]) -> None:
        """Display available plugins table.

        Args:
            plugins: Plugins from the source tree.
        """
        if not plugins:
            self.console.print("[yellow]No plugins found[/yellow]")
            return

        table = Table(title="Available Plugins")
        table.add_column("Name", style="cyan")
        table.add_column("Version")
        table.add_column("Components")
        table.add_column("Description")

        for plugin in plugins:
            groups = ", ".join(t.group_dir for t in plugin.groups)
            table.add_row(plugin.name, plugin.version, groups, plugin.description)

        self.console.print(table)

    def show_components(self, catalog: PluginCatalog, plugins: list[Plugin]) -> None:
        """Display every component of each plugin with its description.

        Args:
            catalog: Component index used to enumerate and describe components.
            plugins: Plugins to list.
        """
        for plugin in plugins:
            self.console.print(f"\n[bold]{plugin.name}[/bold] [dim]{plugin.version}[/dim]")
            components = catalog.components(plugin)
            if not components:
                self.console.print("  [dim]no components[/dim]")
                continue
            for component in components:
                description = catalog.describe(component)
                desc = f" - {description}" if description else ""
                self.console.print(
                    f"  [cyan]{component.component_type.value}[/cyan] {component.name}{desc}"
                )

    def show_profiles(self, profiles: list[Profile]) -> None:
        """Display profiles table."""
        if not profiles:
            return

        table = Table(title="Profiles")
        table.add_column("Name", style="cyan")
        table.add_column("Plugins")
        table.add_column("Description")
        for profile in profiles:
            table.add_row(profile.name, ", ".join(profile.plugins), profile.description)
        self.console.print(table)

    def show_install_report(self, report: InstallReport) -> None:
        """Render the outcome of an install run."""
        if report.dry_run:
            self.show_info(f"Dry run: nothing written under {report.target_root}")
            for ref in report.planned:
                self.console.print(f"  {ref.path} -> {ref.target}")
            self.show_info(
                f"{len(report.planned)} references planned, "
                f"{report.skipped_duplicates} skipped as already global"
            )
        else:
            for name in report.installed:
                self.show_success(f"Installed {name}")
            self.show_info(
                f"{report.materialized} references, {report.merged} merged entries, "
                f"{report.skipped_duplicates} skipped as already global"
            )
            if report.services_added:
                self.show_info(f"Services added: {', '.join(report.services_added)}")

        for warning in report.warnings:
            self.show_warning(warning)
        for error in report.errors:
            self.show_error(f"{error.plugin} ({error.stage}): {error.message}")

    def show_uninstall_report(self, report: UninstallReport) -> None:
        """Render the outcome of an uninstall run."""
        if report.nothing_to_do:
            self.show_success(f"Nothing installed under {report.target_root}. Nothing to do.")
        elif report.cancelled:
            self.show_info("Cancelled.")
        else:
            self.show_success(f"Removed {report.references_removed} references")
            if report.hooks_removed:
                self.show_success(f"Removed {report.hooks_removed} hook entries")
            if report.services_removed:
                self.show_success(f"Removed services: {', '.join(report.services_removed)}")
            if report.plugins_disabled:
                self.show_success(f"Disabled {', '.join(report.plugins_disabled)}")

        for path in report.refused:
            self.show_warning(f"Left {path} in place: not owned by this installer")
        for notice in report.notices:
            self.show_info(notice)
        for error in report.errors:
            self.show_error(f"{error.plugin} ({error.stage}): {error.message}")

    def show_update_report(self, report: UpdateReport) -> None:
        """Render the outcome of an update run."""
        if report.pulled:
            self.show_success(f"Source tree: {report.pull_summary}")

        if not report.references:
            self.show_info("No plugins installed at global scope")
            return

        for status in report.references:
            label = f"{status.plugin}@{status.version}" if status.version else status.plugin
            if status.status is LinkStatus.OK:
                self.show_success(label)
            else:
                self.show_warning(f"{label} - broken reference {status.path}")

        broken = len(report.broken)
        if broken:
            self.show_warning(f"{broken} broken references found. Run install to fix.")
        else:
            self.show_success("All plugins up to date.")

    def collect_install_config(self, catalog: PluginCatalog, cwd: Path) -> InstallConfig:
        """Ask for scope and selection, producing an install request.

        Args:
            catalog: Component index, for profiles and plugin names.
            cwd: Default project directory.

        Returns:
            InstallConfig built from the answers.
        """
        self.console.print("\n[bold]1.[/bold] Installation mode?")
        self.console.print("  [P] Project-level (current directory)")
        self.console.print("  [U] User-level (all projects)")
        mode = Prompt.ask("Choose", choices=["p", "u"], default="p", case_sensitive=False)

        project_path = None
        if mode.lower() == "p":
            scope = Scope.PROJECT
            project_path = Path(Prompt.ask("Project directory", default=str(cwd))).expanduser()
        else:
            scope = Scope.GLOBAL

        profile = None
        plugins: list[str] = []
        profiles = catalog.list_profiles()
        self.console.print("\n[bold]2.[/bold] Which plugins?")
        for i, p in enumerate(profiles, 1):
            self.console.print(f"  [{i}] {p.name} -- {', '.join(p.plugins)}")
        self.console.print("  [a] All plugins")
        self.console.print("  [c] Choose plugins")
        choices = [str(i) for i in range(1, len(profiles) + 1)] + ["a", "c"]
        answer = Prompt.ask("Choose", choices=choices, default="1" if profiles else "a")

        if answer == "c":
            self.show_plugins(catalog.list_plugins())
            names = Prompt.ask("Plugin names (comma-separated)")
            plugins = [n.strip() for n in names.split(",") if n.strip()]
        elif answer != "a":
            profile = profiles[int(answer) - 1].name

        return InstallConfig(
            scope=scope,
            project_path=project_path,
            profile=profile,
            plugins=plugins,
        )
