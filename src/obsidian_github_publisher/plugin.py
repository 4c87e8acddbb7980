"""Application object tying settings, vault, platform and GitHub client together."""

from __future__ import annotations

import logging
from datetime import date
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional, Union

from rich.console import Console

from .commands import RepositoryChooser, prompt_for_repository
from .file_menu import add_menu_file, add_menu_folder
from .menu import Menu, Platform
from .publisher import AuthenticationError, GithubPublisher, build_client, get_title_field
from .settings import Settings, get_token, load_settings
from .validation import Frontmatter
from .vault import Vault, VaultFile, VaultFolder

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Settings, Optional[str]], Any]


class StatusBarItem:
    """Status bar entry; keeps the texts it showed."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self.text = ""
        self.history: list[str] = []

    def set_text(self, text: str) -> None:
        self.text = text
        self.history.append(text)
        logger.debug(f"status: {text}")


class PublisherPlugin:
    """The publisher for one vault."""

    def __init__(
        self,
        vault_path: Union[str, Path],
        settings: Optional[Settings] = None,
        platform: Optional[Platform] = None,
        console: Optional[Console] = None,
        client_factory: Optional[ClientFactory] = None,
        chooser: Optional[RepositoryChooser] = None,
    ) -> None:
        self.vault = Vault(vault_path)
        self.vault_path = self.vault.root
        self.settings = settings if settings is not None else load_settings(self.vault_path)
        self.platform = platform or Platform.detect()
        self.console = console or Console()
        self.client_factory = client_factory or build_client
        self.chooser = chooser or partial(prompt_for_repository, console=self.console)
        self.status_bar_items: list[StatusBarItem] = []

    @property
    def branch_name(self) -> str:
        """Work branch of the day, e.g. ``My-Vault-10-18-2026``."""
        today = date.today()
        vault_name = self.vault.name.replace(" ", "-").replace(".", "-")
        return f"{vault_name}-{today.month}-{today.day}-{today.year}"

    def frontmatter(self, file: VaultFile) -> Frontmatter:
        return self.vault.frontmatter(file)

    def get_title_field_for_command(self, file: VaultFile, frontmatter: Frontmatter) -> str:
        return get_title_field(self.settings, file, frontmatter)

    def reload_octokit(self) -> GithubPublisher:
        """Build a publisher with a fresh GitHub client.

        Raises:
            AuthenticationError: If no token is configured outside of dry run.
        """
        token = get_token(self.settings, self.vault_path)
        if not token and not self.settings.github.dry_run.enable:
            raise AuthenticationError(
                "No GitHub token configured",
                "Set GITHUB_TOKEN, or add it to the env file at github.tokenPath",
            )
        client = self.client_factory(self.settings, token) if token else None
        return GithubPublisher(self.settings, self.vault, client, console=self.console)

    def add_status_bar_item(self) -> StatusBarItem:
        item = StatusBarItem(self.console)
        self.status_bar_items.append(item)
        return item

    def file_menu(self, path: Union[str, Path], branch_name: Optional[str] = None) -> Menu:
        """Menu shown for a file or folder of the vault."""
        target = self.vault.get_abstract_file(path)
        branch_name = branch_name or self.branch_name
        menu = Menu()
        if isinstance(target, VaultFolder):
            add_menu_folder(menu, target, branch_name, self)
        else:
            add_menu_file(self, target, branch_name, menu)
        return menu
