"""Share commands: publish one note, or every marked note of a set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

import click
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from .publisher import GithubPublisher, PublishError, PublishResult
from .settings import Repository, Settings, VaultError, default_repo
from .validation import RepoTargets, as_target_list, get_repo_frontmatter
from .vault import VaultFile

if TYPE_CHECKING:
    from .plugin import PublisherPlugin, StatusBarItem

logger = logging.getLogger(__name__)

RepositoryChooser = Callable[[list[Repository], str], Optional[Repository]]


@dataclass
class MonoRepoProperties:
    """Targets shared by every note of a batch."""

    frontmatter: RepoTargets
    repo: Optional[Repository]


@dataclass
class ShareResult:
    """Outcome of a batch share."""

    published: list[PublishResult] = field(default_factory=list)
    failures: list[tuple[VaultFile, str]] = field(default_factory=list)
    merged: bool = False

    @property
    def success(self) -> bool:
        return bool(self.published) and not self.failures


def describe_targets(targets: RepoTargets) -> str:
    return ", ".join(str(target) for target in as_target_list(targets))


class ShareStatusBar:
    """Progress of a batch share, shown in the status bar and on the console."""

    def __init__(self, status_bar_item: "StatusBarItem", number_of_files: int, attachment: bool = False) -> None:
        self.status_bar_item = status_bar_item
        self.total = number_of_files
        self.counter = 0
        self.noun = "attachments" if attachment else "notes"
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=status_bar_item.console,
            transient=True,
        )
        self.task = self.progress.add_task(f"Sharing {self.noun}", total=number_of_files)
        self.progress.start()
        self.status_bar_item.set_text(f"⌛Sharing {number_of_files} {self.noun}...")

    def increment(self) -> None:
        self.counter += 1
        self.progress.advance(self.task)
        self.status_bar_item.set_text(f"⌛Sharing {self.counter}/{self.total} {self.noun}")

    def stop(self) -> None:
        self.progress.stop()

    def finish(self) -> None:
        self.stop()
        self.status_bar_item.set_text(f"✅ {self.counter} {self.noun} shared")

    def error(self) -> None:
        self.stop()
        self.status_bar_item.set_text(f"❌ Error while sharing {self.noun}")


def share_one_note(
    branch_name: str,
    publisher: GithubPublisher,
    file: VaultFile,
    repository: Optional[Repository],
    file_name: str,
    target: Optional[RepoTargets] = None,
) -> PublishResult:
    """Publish one note to its repository (or to ``target`` when given).

    Raises:
        PublishError: If any step fails; the error is reported first.
    """
    console = publisher.console
    targets = target or get_repo_frontmatter(publisher.settings, repository, publisher.vault.frontmatter(file))
    logger.info(f"Sharing {file.path} to {describe_targets(targets)} on branch {branch_name}")

    try:
        publisher.check_repository(targets)
        publisher.new_branch(targets, branch_name)
        result = publisher.publish(file, targets, branch_name)
        merged = publisher.update_repository(targets, branch_name)
    except PublishError as e:
        logger.error(f"Sharing {file.path} failed: {e.message} ({e.details})")
        console.print(f"[red]Error while sharing \"{file_name}\": {e.message}[/red]")
        raise

    if publisher.dry_run:
        console.print(f"[blue]Dry run: \"{file_name}\" written for {describe_targets(targets)}[/blue]")
    elif merged:
        console.print(f"[green]Successfully published \"{file_name}\" to {describe_targets(targets)}[/green]")
    else:
        console.print(f"[yellow]\"{file_name}\" uploaded, pull request awaiting merge[/yellow]")
    return result


def share_all_marked_notes(
    publisher: GithubPublisher,
    status_bar_item: "StatusBarItem",
    branch_name: str,
    mono_properties: MonoRepoProperties,
    shared_files: list[VaultFile],
    create_github_branch: bool = True,
) -> ShareResult:
    """Publish every note of ``shared_files`` to the batch targets.

    A note that fails is reported and skipped; the others are still merged.

    Raises:
        PublishError: If the targets cannot be prepared or merged.
    """
    console = publisher.console
    result = ShareResult()
    if not shared_files:
        console.print("[yellow]No shared notes found[/yellow]")
        return result

    targets = mono_properties.frontmatter
    status_bar = ShareStatusBar(status_bar_item, len(shared_files))
    try:
        if create_github_branch:
            publisher.check_repository(targets)
            publisher.new_branch(targets, branch_name)

        for file in shared_files:
            try:
                result.published.append(publisher.publish(file, targets, branch_name))
            except PublishError as e:
                logger.warning(f"Skipping {file.path}: {e.message}")
                result.failures.append((file, e.message))
            except VaultError as e:
                logger.warning(f"Skipping {file.path}: {e}")
                result.failures.append((file, str(e)))
            status_bar.increment()

        if result.published:
            result.merged = publisher.update_repository(targets, branch_name)
    except PublishError as e:
        status_bar.error()
        logger.error(f"Sharing {len(shared_files)} notes failed: {e.message} ({e.details})")
        console.print(f"[red]Error while sharing notes: {e.message}[/red]")
        raise
    except Exception:
        status_bar.error()
        raise
    finally:
        status_bar.stop()

    status_bar.finish()
    console.print(
        f"[green]{len(result.published)} notes published to {describe_targets(targets)}[/green]"
    )
    for file, message in result.failures:
        console.print(f"[red]✗ {file.path}: {message}[/red]")
    return result


def repositories_to_choose(settings: Settings, key_to_find: Optional[str]) -> list[Repository]:
    """Repositories offered by the "other repository" chooser.

    With a share key, the repositories using that key come first; share-all
    repositories are always offered. Nothing matching means everything is
    offered.
    """
    default = default_repo(settings)
    found: list[Repository] = []

    def _add(repo: Repository) -> None:
        if all(repo.smart_key != r.smart_key for r in found):
            found.append(repo)

    if key_to_find:
        if key_to_find == settings.plugin.share_key:
            _add(default)
        for repo in settings.github.other_repo:
            if repo.share_key == key_to_find:
                _add(repo)
    if settings.plugin.share_all and settings.plugin.share_all.enable:
        _add(default)
    for repo in settings.github.other_repo:
        if repo.share_all and repo.share_all.enable:
            _add(repo)

    if not found:
        return [default, *settings.github.other_repo]
    return found


def prompt_for_repository(
    repositories: list[Repository],
    title: str,
    console: Optional[Console] = None,
) -> Optional[Repository]:
    """Ask on the terminal which repository to use; 0 cancels."""
    console = console or Console()
    console.print(f"[bold]{title}[/bold]")
    for n, repo in enumerate(repositories, start=1):
        console.print(f"  [cyan]{n}.[/cyan] {repo.smart_key.upper()} ({repo.full_name}@{repo.branch})")
    choice = click.prompt("Repository", type=click.IntRange(0, len(repositories)), default=0, show_default=False)
    return repositories[choice - 1] if choice else None


class ChooseRepoToRun:
    """Offer the configured repositories and run ``on_submit`` with the chosen one."""

    def __init__(
        self,
        plugin: "PublisherPlugin",
        key_to_find: Optional[str],
        branch_name: str,
        type: str,
        file_name: Optional[str],
        on_submit: Callable[[Repository], object],
    ) -> None:
        self.plugin = plugin
        self.key_to_find = key_to_find
        self.branch_name = branch_name
        self.type = type
        self.file_name = file_name
        self.on_submit = on_submit

    def get_items(self) -> list[Repository]:
        return repositories_to_choose(self.plugin.settings, self.key_to_find)

    def open(self) -> object:
        subject = f'"{self.file_name}"' if self.file_name else f"this {self.type}"
        choice = self.plugin.chooser(self.get_items(), f"Upload {subject} to which repository?")
        if choice is None:
            logger.info("Repository choice cancelled")
            return None
        return self.on_submit(choice)
