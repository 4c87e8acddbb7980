"""Menu model standing in for the host application's context menus.

Items are built through callbacks (``menu.add_item(lambda item: ...)``) and
their setters chain, so menu code reads like it would against the host API.
A menu renders as a rich ``Tree`` where every clickable entry gets a number.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

from rich.tree import Tree

PLATFORM_ENV = "GITHUB_PUBLISHER_PLATFORM"

ICONS = {
    "upload-cloud": "☁",
    "file-up": "📄",
    "folder-up": "📁",
    "file-input": "📥",
    "folder-symlink": "🔗",
}


@dataclass(frozen=True)
class Platform:
    """Which kind of host the menus are laid out for."""

    is_desktop: bool = True

    @property
    def is_mobile(self) -> bool:
        return not self.is_desktop

    @classmethod
    def detect(cls) -> "Platform":
        return cls(is_desktop=os.getenv(PLATFORM_ENV, "desktop").lower() != "mobile")


class MenuItem:
    """One entry of a menu."""

    def __init__(self, menu: "Menu") -> None:
        self.menu = menu
        self.title = ""
        self.icon: Optional[str] = None
        self.section: Optional[str] = None
        self.is_label = False
        self.is_separator = False
        self.submenu: Optional[Menu] = None
        self._callback: Optional[Callable[[], Any]] = None

    def set_title(self, title: str) -> "MenuItem":
        self.title = title
        return self

    def set_icon(self, icon: str) -> "MenuItem":
        self.icon = icon
        return self

    def set_section(self, section: str) -> "MenuItem":
        self.section = section
        return self

    def set_is_label(self, is_label: bool) -> "MenuItem":
        self.is_label = is_label
        return self

    def on_click(self, callback: Callable[[], Any]) -> "MenuItem":
        self._callback = callback
        return self

    def set_submenu(self) -> "Menu":
        self.submenu = Menu()
        return self.submenu

    @property
    def is_clickable(self) -> bool:
        return self._callback is not None and not self.is_label and not self.is_separator

    def click(self) -> Any:
        if not self.is_clickable:
            raise RuntimeError(f"Menu item '{self.title}' has no action")
        return self._callback()

    def __repr__(self) -> str:
        return f"MenuItem(title={self.title!r}, icon={self.icon!r})"


class Menu:
    """An ordered list of items, possibly nested through submenus."""

    def __init__(self) -> None:
        self.items: list[MenuItem] = []

    def add_item(self, callback: Callable[[MenuItem], Any]) -> "Menu":
        item = MenuItem(self)
        self.items.append(item)
        callback(item)
        return self

    def add_separator(self) -> "Menu":
        separator = MenuItem(self)
        separator.is_separator = True
        self.items.append(separator)
        return self

    def actions(self) -> list[MenuItem]:
        """Clickable items, depth first, in display order."""
        found: list[MenuItem] = []
        for item in self.items:
            if item.is_clickable:
                found.append(item)
            if item.submenu is not None:
                found.extend(item.submenu.actions())
        return found

    def titles(self) -> list[str]:
        return [item.title for item in self.actions()]

    def is_empty(self) -> bool:
        return not self.actions()

    def render(self, label: str = "Menu") -> Tree:
        tree = Tree(f"[bold]{label}[/bold]")
        self._render_into(tree, {id(item): n for n, item in enumerate(self.actions(), start=1)})
        return tree

    def _render_into(self, tree: Tree, numbers: dict[int, int]) -> None:
        for item in self.items:
            if item.is_separator:
                tree.add("[dim]────────[/dim]")
                continue
            icon = ICONS.get(item.icon or "", "")
            text = f"{icon} {item.title}".strip()
            if item.is_label:
                node = tree.add(f"[bold]{text}[/bold]")
            elif id(item) in numbers:
                node = tree.add(f"[cyan]{numbers[id(item)]}.[/cyan] {text}")
            else:
                node = tree.add(text)
            if item.submenu is not None:
                item.submenu._render_into(node, numbers)
