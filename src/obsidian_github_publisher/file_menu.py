"""File explorer menus: pick the repository a file or folder is published to."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .commands import ChooseRepoToRun, MonoRepoProperties, ShareResult, share_all_marked_notes, share_one_note
from .menu import Menu, MenuItem
from .settings import DEFAULT_SMART_KEY, Repository, default_repo
from .validation import (
    as_target_list,
    get_repo_frontmatter,
    get_repo_shared_key,
    is_enabled,
    is_shared,
    multiple_shared_key,
)
from .vault import VaultFile, VaultFolder

if TYPE_CHECKING:
    from .plugin import PublisherPlugin

logger = logging.getLogger(__name__)

MENU_TITLE = "Github Publisher"
DEFAULT_LABEL = DEFAULT_SMART_KEY.upper()


def share_on_title(doc: str, smart_key: str) -> str:
    return f'Upload "{doc}" to {smart_key}'


def share_other_title() -> str:
    return "Upload to another repository..."


def share_folder_repo(
    plugin: "PublisherPlugin",
    folder: VaultFolder,
    branch_name: str,
    repo: Optional[Repository],
) -> ShareResult:
    """Share every shared note of a folder to a repository."""
    publisher = plugin.reload_octokit()
    status_bar_items = plugin.add_status_bar_item()
    mono_properties = MonoRepoProperties(
        frontmatter=get_repo_frontmatter(plugin.settings, repo, None),
        repo=repo,
    )
    return share_all_marked_notes(
        publisher,
        status_bar_items,
        branch_name,
        mono_properties,
        publisher.get_shared_file_of_folder(folder, repo),
        True,
    )


def _folder_name(plugin: "PublisherPlugin", folder: VaultFolder) -> str:
    return folder.name or plugin.vault.name


def _open_submenu(plugin: "PublisherPlugin", item: MenuItem, original_menu: Menu) -> Menu:
    """Submenu of ``item`` on desktop, the original menu (inline) on mobile."""
    return item.set_submenu() if plugin.platform.is_desktop else original_menu


def _prepare_group_item(plugin: "PublisherPlugin", item: MenuItem, menu: Menu) -> None:
    item.set_title(MENU_TITLE)
    if plugin.platform.is_desktop:
        item.set_icon("upload-cloud")
    else:
        # label first, then a separator, then the inline commands
        menu.add_separator()
        item.set_is_label(True)


def add_sub_menu_commands_folder(
    plugin: "PublisherPlugin",
    item: MenuItem,
    folder: VaultFolder,
    branch_name: str,
    original_menu: Menu,
) -> Menu:
    """Create a submenu if multiple repositories are set up.

    On desktop the commands go in a submenu of ``item``; elsewhere they are
    added to the original menu, in line.
    """
    sub_menu = _open_submenu(plugin, item, original_menu)
    sub_menu.add_item(
        lambda sub_item: sub_item.set_title(share_on_title(_folder_name(plugin, folder), DEFAULT_LABEL))
        .set_icon("folder-up")
        .on_click(
            lambda: share_folder_repo(plugin, folder, branch_name, get_repo_shared_key(plugin.settings, None))
        )
    )

    activated_repo_commands = [repo for repo in plugin.settings.github.other_repo if repo.create_shortcuts]
    for other_repo in activated_repo_commands:
        sub_menu.add_item(
            lambda sub_item, other_repo=other_repo: sub_item.set_title(
                share_on_title(_folder_name(plugin, folder), other_repo.smart_key.upper())
            )
            .set_icon("folder-up")
            .on_click(lambda: share_folder_repo(plugin, folder, branch_name, other_repo))
        )

    sub_menu.add_item(
        lambda sub_item: sub_item.set_title(share_other_title())
        .set_icon("folder-symlink")
        .on_click(
            lambda: ChooseRepoToRun(
                plugin,
                None,
                branch_name,
                "folder",
                None,
                lambda chosen: share_folder_repo(plugin, folder, branch_name, chosen),
            ).open()
        )
    )
    return sub_menu


def add_menu_file(plugin: "PublisherPlugin", file: VaultFile, branch_name: str, menu: Menu) -> None:
    """Add the share command(s) of a shared file to ``menu``.

    A file shared under several keys, or sent to several repositories,
    gets a group of commands; any other shared file gets a single one.
    """
    settings = plugin.settings
    frontmatter = plugin.frontmatter(file)
    shared_key = get_repo_shared_key(settings, frontmatter)
    all_keys_from_file = multiple_shared_key(frontmatter, settings)
    if not (is_shared(frontmatter, settings, file, shared_key) and settings.plugin.file_menu):
        logger.debug(f"{file.path} is not shared, no menu entry")
        return

    repo_frontmatter = get_repo_frontmatter(settings, shared_key, frontmatter)

    def _build(item: MenuItem) -> None:
        if len(all_keys_from_file) > 1 or len(as_target_list(repo_frontmatter)) > 1:
            _prepare_group_item(plugin, item, menu)
            sub_menu_commands_file(plugin, item, file, branch_name, shared_key, menu)
            return

        file_name = plugin.get_title_field_for_command(file, frontmatter).replace(".md", "")
        target_repo = shared_key
        if not frontmatter or not is_enabled(frontmatter.get(settings.plugin.share_key)):
            other_repo = next(
                (repo for repo in settings.github.other_repo if repo.share_all and repo.share_all.enable),
                None,
            )
            if other_repo:
                target_repo = other_repo
            elif settings.plugin.share_all and settings.plugin.share_all.enable:
                target_repo = default_repo(settings)
        else:
            target_repo = default_repo(settings)

        smart_key = target_repo.smart_key.upper() if target_repo else DEFAULT_LABEL
        item.set_title(share_on_title(file_name, smart_key)).set_icon("file-up").on_click(
            lambda: share_one_note(branch_name, plugin.reload_octokit(), file, target_repo, file_name)
        )

    menu.add_item(_build)


def sub_menu_commands_file(
    plugin: "PublisherPlugin",
    item: MenuItem,
    file: VaultFile,
    branch_name: str,
    repo: Optional[Repository],
    original_menu: Menu,
) -> Menu:
    """Create the commands of a file shared to multiple repositories.

    On desktop the commands go in a submenu of ``item``; elsewhere they are
    added to the original menu, in line.
    """
    settings = plugin.settings
    frontmatter = plugin.frontmatter(file) or {}
    file_name = plugin.get_title_field_for_command(file, frontmatter).replace(".md", "")
    sub_menu = _open_submenu(plugin, item, original_menu)
    repo_frontmatter = as_target_list(get_repo_frontmatter(settings, repo, frontmatter))

    carries_default_key = is_enabled(frontmatter.get(settings.plugin.share_key))
    uses_default_key = repo is not None and repo.share_key == settings.plugin.share_key
    if (uses_default_key or carries_default_key) and (
        not frontmatter.get("repo") or not frontmatter.get("multipleRepo")
    ):
        sub_menu.add_item(
            lambda sub_item: sub_item.set_title(share_on_title(file_name, DEFAULT_LABEL))
            .set_icon("file-up")
            .on_click(
                lambda: share_one_note(
                    branch_name, plugin.reload_octokit(), file, default_repo(settings), file_name
                )
            )
        )

    activated_repo_commands = [other for other in settings.github.other_repo if other.create_shortcuts]
    for other_repo in activated_repo_commands:
        matches_key = repo is not None and other_repo.share_key == repo.share_key
        if not (matches_key or is_enabled(frontmatter.get(other_repo.share_key))):
            continue
        sub_menu.add_item(
            lambda sub_item, other_repo=other_repo: sub_item.set_title(
                share_on_title(file_name, other_repo.smart_key.upper())
            )
            .set_icon("file-up")
            .on_click(
                lambda: share_one_note(branch_name, plugin.reload_octokit(), file, other_repo, file_name)
            )
        )

    if len(repo_frontmatter) > 1:
        for repo_front in repo_frontmatter:
            sub_menu.add_item(
                lambda sub_item, repo_front=repo_front: sub_item.set_title(
                    share_on_title(file_name, repo_front.repo.upper())
                )
                .set_icon("file-up")
                .on_click(
                    lambda: share_one_note(
                        branch_name, plugin.reload_octokit(), file, repo, file_name, target=repo_front
                    )
                )
            )

    sub_menu.add_item(
        lambda sub_item: sub_item.set_title(share_other_title())
        .set_icon("file-input")
        .on_click(
            lambda: ChooseRepoToRun(
                plugin,
                repo.share_key if repo else None,
                branch_name,
                "file",
                file.basename,
                lambda chosen: share_one_note(
                    branch_name, plugin.reload_octokit(), file, chosen, file_name
                ),
            ).open()
        )
    )
    return sub_menu


def add_menu_folder(menu: Menu, folder: VaultFolder, branch_name: str, plugin: "PublisherPlugin") -> None:
    """Add the share command(s) of a folder to ``menu``."""

    def _build(item: MenuItem) -> None:
        if plugin.settings.github.other_repo:
            _prepare_group_item(plugin, item, menu)
            add_sub_menu_commands_folder(plugin, item, folder, branch_name, menu)
            return

        item.set_section("action")
        item.set_title(share_on_title(_folder_name(plugin, folder), DEFAULT_LABEL)).set_icon("folder-up").on_click(
            lambda: share_folder_repo(
                plugin, folder, branch_name, get_repo_shared_key(plugin.settings, None)
            )
        )

    menu.add_item(_build)

