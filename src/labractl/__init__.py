#!/usr/bin/env python3
"""
labractl - CLI tool to create and start a LabraGo project

Usage:
    labractl create <project-name> [--yes]
    labractl start
    labractl check
    labractl version

Install globally:
    uv tool install labractl
    labractl create my-project
"""

import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.align import Align
from rich.panel import Panel
from rich.text import Text
from typer.core import TyperGroup

from labractl.config import (
    DEFAULT_PACKAGE_MANAGER,
    PACKAGE_MANAGER_CHOICES,
    REPO_URL,
    Settings,
    env_flag,
    installed_version,
)
from labractl.console import StepTracker, configure_logging, console, emoji
from labractl.errors import InvalidProjectNameError, LaunchError, ManifestError, PipelineError
from labractl.launcher import ServiceLauncher
from labractl.prerequisites import REQUIRED_TOOLS, PrerequisiteChecker, ToolState
from labractl.project import ProjectContext, ProjectInitializer
from labractl.update import check_latest_version

__version__ = installed_version()

# ASCII Art Banner
BANNER = """
██╗      █████╗ ██████╗ ██████╗  █████╗  ██████╗  ██████╗
██║     ██╔══██╗██╔══██╗██╔══██╗██╔══██╗██╔════╝ ██╔═══██╗
██║     ███████║██████╔╝██████╔╝███████║██║  ███╗██║   ██║
██║     ██╔══██║██╔══██╗██╔══██╗██╔══██║██║   ██║██║   ██║
███████╗██║  ██║██████╔╝██║  ██║██║  ██║╚██████╔╝╚██████╔╝
╚══════╝╚═╝  ╚═╝╚═════╝ ╚═╝  ╚═╝╚═╝  ╚═╝ ╚═════╝  ╚═════╝
"""

TAGLINE = "labractl - create and run LabraGo projects"


class BannerGroup(TyperGroup):
    """Custom group that shows banner before help."""

    def format_help(self, ctx, formatter):
        show_banner()
        super().format_help(ctx, formatter)


def _notify_update(*_args, **_kwargs):
    check_latest_version(__version__)


app = typer.Typer(
    name="labractl",
    help="CLI tool to create and start a LabraGo project",
    add_completion=False,
    invoke_without_command=True,
    cls=BannerGroup,
    result_callback=_notify_update,
)


def show_banner():
    """Display the ASCII art banner."""
    banner_lines = BANNER.strip().split('\n')
    colors = ["bright_blue", "blue", "cyan", "bright_cyan", "white", "bright_white"]

    styled_banner = Text()
    for i, line in enumerate(banner_lines):
        color = colors[i % len(colors)]
        styled_banner.append(line + "\n", style=color)

    console.print(Align.center(styled_banner))
    console.print(Align.center(Text(TAGLINE, style="italic bright_yellow")))
    console.print()


@app.callback()
def callback(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable debug logs (or set LABRA_DEBUG=1)"),
):
    """Configure logging and show the banner when no subcommand is provided."""
    enable_debug = debug or env_flag("LABRA_DEBUG")
    configure_logging(enable_debug)
    ctx.obj = Settings(debug=enable_debug)
    if ctx.invoked_subcommand is None and "--help" not in sys.argv and "-h" not in sys.argv:
        show_banner()
        console.print(Align.center("[dim]Run 'labractl --help' for usage information[/dim]"))
        console.print()


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings()


def _check_package_manager(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    if value not in PACKAGE_MANAGER_CHOICES:
        raise typer.BadParameter(f"Choose from: {', '.join(PACKAGE_MANAGER_CHOICES)}")
    return value


def _error_panel(title: str, message: str, detail: str = "") -> None:
    body = message
    if detail:
        body += f"\n\n[dim]{detail}[/dim]"
    console.print()
    console.print(Panel(body, title=f"[red]{title}[/red]", border_style="red", padding=(1, 2)))


@app.command()
def create(
    ctx: typer.Context,
    project_name: str = typer.Argument(..., help="Name for your new project directory and database"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Automatic yes to prompts"),
    package_manager: Optional[str] = typer.Option(
        None,
        "--package-manager",
        "--pm",
        callback=_check_package_manager,
        help="Frontend package manager: yarn or npm (prompted when omitted)",
    ),
    repo: str = typer.Option(REPO_URL, "--repo", help="Template repository to clone"),
):
    """
    Create a new LabraGo project.

    This command will:
    1. Check that git, go, node and psql are available (offering to install them)
    2. Clone the LabraGo template into a new directory
    3. Point go.mod at the local API module and write the .env files
    4. Run go mod tidy / go generate and install frontend dependencies
    5. Create a PostgreSQL database named after the project

    Examples:
        labractl create my-project
        labractl create my-project --yes
        labractl create my-project --pm npm
    """
    settings = replace(_settings(ctx), assume_yes=yes, repo_url=repo, package_manager=package_manager)

    try:
        project = ProjectContext.create(project_name, settings.repo_url)
    except InvalidProjectNameError as e:
        _error_panel("Invalid Project Name", str(e))
        raise typer.Exit(1)

    if project.root.exists():
        error_panel = Panel(
            f"Directory '[cyan]{project_name}[/cyan]' already exists\n"
            "Please choose a different project name or remove the existing directory.",
            title="[red]Directory Conflict[/red]",
            border_style="red",
            padding=(1, 2)
        )
        console.print()
        console.print(error_panel)
        raise typer.Exit(1)

    console.print(f"{emoji('🚀', '->')} Creating LabraGo project: [green]{project_name}[/green]")
    setup_lines = [
        "[cyan]LabraGo Project Setup[/cyan]",
        "",
        f"{'Project':<15} [green]{project.name}[/green]",
        f"{'Template':<15} [dim]{project.repo_url}[/dim]",
        f"{'Target Path':<15} [dim]{project.root}[/dim]",
    ]
    console.print(Panel("\n".join(setup_lines), border_style="cyan", padding=(1, 2)))

    tracker = StepTracker("Create LabraGo Project")
    initializer = ProjectInitializer(project, settings, tracker=tracker)
    try:
        initializer.run()
    except PipelineError as e:
        console.print(tracker.render())
        cause = e.__cause__
        _error_panel("Failure", f"{emoji('❌', 'X')} {e}", str(getattr(cause, "output", "") or ""))
        raise typer.Exit(1)

    console.print(tracker.render())
    console.print(f"\n{emoji('✅', '[ok]')} [bold green]Project created at {project.name}[/bold green]")

    steps_lines = [
        f"1. Go to the project folder: [cyan]cd {project.name}[/cyan]",
        "2. Start backend and frontend: [cyan]labractl start[/cyan]",
    ]
    if tracker.status("database") == "warning":
        steps_lines.append(
            f"3. Create the [cyan]{project.name}[/cyan] PostgreSQL database before starting "
            "(setup did not complete, see warnings above)"
        )
    console.print()
    console.print(Panel("\n".join(steps_lines), title="Next Steps", border_style="cyan", padding=(1, 2)))


@app.command()
def start(
    package_manager: str = typer.Option(
        DEFAULT_PACKAGE_MANAGER,
        "--package-manager",
        "--pm",
        callback=_check_package_manager,
        help="Package manager used to run the start scripts: yarn or npm",
    ),
):
    """Start both backend and frontend servers."""
    launcher = ServiceLauncher(Path.cwd(), package_manager)
    try:
        launcher.run()
    except ManifestError as e:
        _error_panel("package.json Error", f"{emoji('❌', 'X')} {e}")
        raise typer.Exit(1)
    except LaunchError as e:
        _error_panel("Start Failed", f"{emoji('❌', 'X')} {e}")
        raise typer.Exit(1)


@app.command()
def check(ctx: typer.Context):
    """Check that all required tools are installed."""
    show_banner()
    console.print("[bold]Checking for installed tools...[/bold]\n")

    tracker = StepTracker("Check Available Tools")
    for req in REQUIRED_TOOLS:
        tracker.add(req.name, req.label)

    report = PrerequisiteChecker(_settings(ctx)).scan()
    for name, state in report.items():
        if state == ToolState.DETECTED:
            tracker.complete(name, "available")
        else:
            tracker.error(name, "not found")

    console.print(tracker.render())

    missing = [name for name, state in report.items() if state != ToolState.DETECTED]
    if missing:
        console.print(f"\n[yellow]Missing tools:[/yellow] {', '.join(missing)}")
        console.print("[dim]Tip: run 'labractl create' to be offered an automatic install[/dim]")
    else:
        console.print("\n[bold green]labractl is ready to use![/bold green]")


@app.command()
def version():
    """Print labractl version."""
    console.print(emoji("🧰", "version:"), __version__)


def main():
    app()


if __name__ == "__main__":
    main()
