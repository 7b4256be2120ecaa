"""CLI commands using Typer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:
    from plugin_installer.context import AppContext

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from plugin_installer import __version__
from plugin_installer.config import InstallConfig
from plugin_installer.console import TUI
from plugin_installer.context import create_context
from plugin_installer.errors import ResolutionError, SourceSyncError
from plugin_installer.types import Scope

app = typer.Typer(
    name="plugin-installer",
    help="Install and synchronize Claude Code plugins at global or project scope",
    no_args_is_help=True,
)

console = Console()
tui = TUI(console)

INTERRUPTED = 130

_options: dict[str, Path | None] = {"source": None}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"plugin-installer v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


def _get_context(context: AppContext | None) -> AppContext:
    if context is not None:
        return context
    try:
        return create_context(source_root=_options["source"])
    except ResolutionError as e:
        tui.show_error(str(e))
        raise typer.Exit(1) from e


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    source: Annotated[
        Path | None,
        typer.Option(
            "--source",
            "-s",
            help=(
                "Plugin source tree (defaults to $PLUGIN_INSTALLER_SOURCE, "
                "or the current directory if it has plugins/)"
            ),
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """Install and synchronize Claude Code plugins."""
    _options["source"] = source
    _configure_logging(verbose)


def _project_dir(project: bool, directory: Path | None) -> Path | None:
    if not project:
        return None
    return directory or Path.cwd()


# ============================================================================
# Install Commands
# ============================================================================


@app.command()
def install(
    directory: Annotated[
        Path | None, typer.Argument(help="Project directory for --project (default: current)")
    ] = None,
    project: Annotated[
        bool, typer.Option("--project", "-p", help="Install into a project instead of globally")
    ] = False,
    profile: Annotated[
        str | None, typer.Option("--profile", help="Install the plugins of a named profile")
    ] = None,
    enable: Annotated[
        list[str] | None, typer.Option("--enable", "-e", help="Install only this plugin (repeatable)")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Show what would be linked, change nothing")
    ] = False,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip the interactive questions")
    ] = False,
    _context=None,
) -> None:
    """Install plugins (interactive when run without options)."""
    ctx = _get_context(_context)

    try:
        if not (project or directory or profile or enable or dry_run or yes):
            tui.show_welcome(__version__)
            config = tui.collect_install_config(ctx.catalog, Path.cwd())
        else:
            config = InstallConfig(
                scope=Scope.PROJECT if project else Scope.GLOBAL,
                project_path=_project_dir(project, directory),
                profile=profile,
                plugins=enable or [],
                dry_run=dry_run,
            )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Installing plugins...", total=None)
            report = ctx.engine.install(config)
    except ResolutionError as e:
        tui.show_error(str(e))
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        tui.show_warning("Interrupted")
        raise typer.Exit(INTERRUPTED) from None

    tui.show_install_report(report)
    if not report.success:
        raise typer.Exit(1)


@app.command()
def uninstall(
    directory: Annotated[
        Path | None, typer.Argument(help="Project directory for --project (default: current)")
    ] = None,
    project: Annotated[
        bool, typer.Option("--project", "-p", help="Uninstall from a project instead of globally")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    _context=None,
) -> None:
    """Remove every reference and tagged entry this installer added."""
    ctx = _get_context(_context)
    scope = Scope.PROJECT if project else Scope.GLOBAL

    def confirm(message: str) -> bool:
        return yes or tui.confirm(message)

    try:
        report = ctx.engine.uninstall(scope, confirm, project_path=_project_dir(project, directory))
    except ResolutionError as e:
        tui.show_error(str(e))
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        tui.show_warning("Interrupted")
        raise typer.Exit(INTERRUPTED) from None

    tui.show_uninstall_report(report)
    if not report.success:
        raise typer.Exit(1)


# ============================================================================
# Update Commands
# ============================================================================


@app.command()
def update(
    pull: Annotated[
        bool, typer.Option("--pull/--no-pull", help="Fast-forward the source tree first")
    ] = True,
    _context=None,
) -> None:
    """Pull the source tree and verify global references."""
    ctx = _get_context(_context)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Pulling latest changes..." if pull else "Verifying...", total=None)
            report = ctx.engine.update(pull=pull)
    except SourceSyncError as e:
        tui.show_error(str(e))
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        tui.show_warning("Interrupted")
        raise typer.Exit(INTERRUPTED) from None

    tui.show_update_report(report)


@app.command("list")
def list_plugins(
    components: Annotated[
        bool, typer.Option("--components", "-c", help="List each plugin's components")
    ] = False,
    _context=None,
) -> None:
    """List plugins and profiles in the source tree."""
    ctx = _get_context(_context)
    plugins = ctx.catalog.list_plugins()

    if components:
        tui.show_components(ctx.catalog, plugins)
    else:
        tui.show_plugins(plugins)
    tui.show_profiles(ctx.catalog.list_profiles())


if __name__ == "__main__":
    app()
