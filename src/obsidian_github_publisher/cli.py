"""CLI entry point for Obsidian Github Publisher."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.traceback import install as install_traceback

from . import __version__
from .doctor import Doctor
from .menu import MenuItem, Platform
from .plugin import PublisherPlugin
from .publisher import GithubPublisher, PublishError
from .settings import (
    DEFAULT_SMART_KEY,
    Repository,
    SettingsError,
    VaultError,
    default_repo,
    find_vault_path,
    write_default_settings,
)

install_traceback()
console = Console()


def get_vault_path(vault_path: str | None) -> Path:
    """Resolve vault path from argument or auto-detect."""
    if vault_path:
        path = Path(vault_path).expanduser().resolve()
        if not path.exists():
            console.print(f"[red]Error: Vault path does not exist: {path}[/red]")
            sys.exit(1)
        return path

    detected = find_vault_path()
    if detected:
        console.print(f"[green]Auto-detected vault: {detected}[/green]")
        return Path(detected).resolve()

    console.print("[red]Error: Could not auto-detect Obsidian vault. Use --vault-path.[/red]")
    sys.exit(1)


def get_plugin(ctx: click.Context) -> PublisherPlugin:
    """Load the publisher for the selected vault, exiting on bad settings."""
    vault = get_vault_path(ctx.obj["vault_path"])
    platform = Platform(is_desktop=False) if ctx.obj["mobile"] else Platform.detect()
    try:
        return PublisherPlugin(vault, platform=platform, console=console)
    except (SettingsError, VaultError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def find_repository(plugin: PublisherPlugin, smart_key: str | None) -> Repository:
    if not smart_key or smart_key.lower() == DEFAULT_SMART_KEY:
        return default_repo(plugin.settings)
    for repo in plugin.settings.github.other_repo:
        if repo.smart_key.lower() == smart_key.lower():
            return repo
    console.print(f"[red]Error: No repository with smart key '{smart_key}'[/red]")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="obsidian-github-publisher")
@click.option("--vault-path", "-v", type=str, help="Path to Obsidian vault")
@click.option("--mobile", is_flag=True, help="Lay menus out inline, as on mobile")
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, vault_path: str | None, mobile: bool, verbose: bool) -> None:
    """Publish shared Obsidian notes to GitHub repositories."""
    ctx.ensure_object(dict)
    ctx.obj["vault_path"] = vault_path
    ctx.obj["mobile"] = mobile
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@cli.command()
@click.option("--overwrite", is_flag=True, help="Replace existing settings")
@click.pass_context
def init(ctx: click.Context, overwrite: bool) -> None:
    """Create the publisher settings in the vault."""
    vault = get_vault_path(ctx.obj["vault_path"])

    try:
        path = write_default_settings(vault, overwrite=overwrite)
    except (SettingsError, VaultError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]Settings ready at: {path}[/green]")
    console.print("[yellow]Note: Set github.user and github.repo, and export GITHUB_TOKEN[/yellow]")


@cli.command()
@click.argument("path", type=str, default="")
@click.pass_context
def menu(ctx: click.Context, path: str) -> None:
    """Show the publish menu of a note or folder."""
    plugin = get_plugin(ctx)

    try:
        file_menu = plugin.file_menu(path)
    except VaultError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if file_menu.is_empty():
        console.print(f"[yellow]'{path or plugin.vault.name}' is not shared[/yellow]")
        return

    console.print(file_menu.render(path or plugin.vault.name))


def _select_action(actions: list[MenuItem], item: Optional[int], smart_key: Optional[str]) -> MenuItem:
    if smart_key:
        suffix = f" to {smart_key.upper()}"
        matching = [action for action in actions if action.title.endswith(suffix)]
        if not matching:
            console.print(f"[red]Error: No menu entry publishes to '{smart_key}'[/red]")
            sys.exit(1)
        return matching[0]

    if item is not None:
        if not 1 <= item <= len(actions):
            console.print(f"[red]Error: Menu entry {item} does not exist (1-{len(actions)})[/red]")
            sys.exit(1)
        return actions[item - 1]

    if len(actions) == 1:
        return actions[0]

    choice = click.prompt("Menu entry", type=click.IntRange(1, len(actions)))
    return actions[choice - 1]


@cli.command()
@click.argument("path", type=str, default="")
@click.option("--item", "-i", type=int, help="Number of the menu entry to run")
@click.option("--repo", "-r", "smart_key", type=str, help="Smart key of the target repository")
@click.pass_context
def share(ctx: click.Context, path: str, item: int | None, smart_key: str | None) -> None:
    """Publish a note or the shared notes of a folder."""
    plugin = get_plugin(ctx)

    try:
        file_menu = plugin.file_menu(path)
    except VaultError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    actions = file_menu.actions()
    if not actions:
        console.print(f"[yellow]'{path or plugin.vault.name}' is not shared, nothing to publish[/yellow]")
        sys.exit(1)

    if item is None and smart_key is None and len(actions) > 1:
        console.print(file_menu.render(path or plugin.vault.name))

    action = _select_action(actions, item, smart_key)
    console.print(f"[blue]{action.title}[/blue]")

    try:
        action.click()
    except PublishError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if e.details and ctx.obj["verbose"]:
            console.print(f"[yellow]{e.details}[/yellow]")
        sys.exit(1)
    except VaultError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--repo", "-r", "smart_key", type=str, help="Smart key of the repository")
@click.pass_context
def shared(ctx: click.Context, smart_key: str | None) -> None:
    """List the notes shared with a repository."""
    plugin = get_plugin(ctx)
    repo = find_repository(plugin, smart_key)

    try:
        files = GithubPublisher(plugin.settings, plugin.vault, console=console).get_shared_files(repo)
    except VaultError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(f"\n[bold]Repository:[/bold] {repo.smart_key.upper()} ({repo.full_name}@{repo.branch})")
    if not files:
        console.print("[yellow]No shared notes[/yellow]")
        return

    console.print(f"[bold]Shared notes ({len(files)}):[/bold]")
    for f in files:
        console.print(f"  • {f.path}")


@cli.command()
@click.option("--fix", is_flag=True, help="Attempt to fix issues automatically")
@click.pass_context
def doctor(ctx: click.Context, fix: bool) -> None:
    """Diagnose common issues with the publisher setup."""
    vault = get_vault_path(ctx.obj["vault_path"])
    verbose = ctx.obj["verbose"]

    doc = Doctor(vault, verbose=verbose)
    issues = doc.run_checks(fix=fix)

    if not issues:
        console.print("[green]✓ All checks passed![/green]")
        return

    console.print(f"\n[yellow]Found {len(issues)} issue(s):[/yellow]")
    for issue in issues:
        status = "[green]✓ Fixed[/green]" if issue.get("fixed") else "[red]✗[/red]"
        console.print(f"{status} {issue['message']}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
