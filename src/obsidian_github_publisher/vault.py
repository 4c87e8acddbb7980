"""Vault model: files, folders and the frontmatter cache."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Iterator, Optional, Union
from urllib.parse import unquote

import frontmatter
import yaml

from .settings import VaultError, get_vault_name

logger = logging.getLogger(__name__)

# ![[image.png]], ![[image.png|200]], ![[doc.pdf#page=2]]
WIKI_EMBED_RE = re.compile(r"!\[\[([^\]|#^]+)(?:[#^|][^\]]*)?\]\]")
# ![alt](path/to/image.png "title")
MARKDOWN_EMBED_RE = re.compile(r"!\[[^\]]*\]\(<?([^)>\s]+)>?(?:\s+\"[^\"]*\")?\)")


@dataclass(frozen=True)
class VaultFile:
    """A file of the vault, addressed by its POSIX path relative to the root."""

    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".").lower()

    @property
    def parent(self) -> str:
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent


@dataclass
class VaultFolder:
    """A folder of the vault; ``path`` is empty for the root."""

    path: str
    children: list[Union["VaultFile", "VaultFolder"]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name if self.path else ""

    @property
    def is_root(self) -> bool:
        return not self.path


AbstractFile = Union[VaultFile, VaultFolder]


class Vault:
    """Read-only view over a vault directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser().resolve()
        if not self.root.is_dir():
            raise VaultError(f"Vault path is not a directory: {self.root}")
        self._frontmatter: dict[str, dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return get_vault_name(str(self.root))

    def _absolute(self, rel: str) -> Path:
        return self.root / PurePosixPath(rel)

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    @staticmethod
    def _is_hidden(rel: str) -> bool:
        return any(part.startswith(".") for part in PurePosixPath(rel).parts)

    def normalize(self, path: Union[str, Path]) -> str:
        """Turn an absolute or vault-relative path into a vault-relative one."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            try:
                return self._relative(candidate.resolve())
            except ValueError:
                raise VaultError(f"Path is outside of the vault: {path}")
        rel = PurePosixPath(str(path).replace("\\", "/")).as_posix()
        return "" if rel in (".", "/") else rel.strip("/")

    def get_file(self, rel: str) -> Optional[VaultFile]:
        rel = self.normalize(rel)
        if rel and self._absolute(rel).is_file():
            return VaultFile(rel)
        return None

    def get_folder(self, rel: str) -> Optional[VaultFolder]:
        rel = self.normalize(rel)
        absolute = self._absolute(rel)
        if not absolute.is_dir():
            return None
        folder = VaultFolder(rel)
        for child in sorted(absolute.iterdir()):
            if child.name.startswith("."):
                continue
            child_rel = self._relative(child)
            if child.is_dir():
                folder.children.append(self.get_folder(child_rel))
            elif child.is_file():
                folder.children.append(VaultFile(child_rel))
        return folder

    def get_abstract_file(self, rel: Union[str, Path]) -> AbstractFile:
        """Return the file or folder at ``rel``.

        Raises:
            VaultError: If nothing exists at that path.
        """
        rel = self.normalize(rel)
        found = self.get_file(rel) or self.get_folder(rel)
        if found is None:
            raise VaultError(f"No file or folder at '{rel}' in vault {self.root}")
        return found

    def files_in(self, folder: VaultFolder) -> Iterator[VaultFile]:
        """Every file below ``folder``, depth first."""
        for child in folder.children:
            if isinstance(child, VaultFolder):
                yield from self.files_in(child)
            else:
                yield child

    def all_files(self) -> list[VaultFile]:
        return sorted(
            (
                VaultFile(self._relative(path))
                for path in self.root.rglob("*")
                if path.is_file() and not self._is_hidden(self._relative(path))
            ),
            key=lambda f: f.path,
        )

    def markdown_files(self) -> list[VaultFile]:
        return [f for f in self.all_files() if f.extension == "md"]

    def read(self, file: VaultFile) -> str:
        """Text of a note.

        Raises:
            VaultError: If the file cannot be read or is not valid UTF-8.
        """
        try:
            return self._absolute(file.path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise VaultError(f"{file.path} is not valid UTF-8: {e.reason}") from e
        except OSError as e:
            raise VaultError(f"Failed to read {file.path}: {e}") from e

    def read_bytes(self, file: VaultFile) -> bytes:
        try:
            return self._absolute(file.path).read_bytes()
        except OSError as e:
            raise VaultError(f"Failed to read {file.path}: {e}") from e

    def frontmatter(self, file: VaultFile) -> Optional[dict[str, Any]]:
        """Frontmatter of a markdown note, or None when it has none.

        Raises:
            VaultError: If the note cannot be read or its frontmatter
                block is not valid YAML.
        """
        if file.extension != "md":
            return None
        if file.path not in self._frontmatter:
            try:
                post = frontmatter.loads(self.read(file))
            except yaml.YAMLError as e:
                raise VaultError(f"Invalid frontmatter in {file.path}: {e}") from e
            self._frontmatter[file.path] = dict(post.metadata or {})
        metadata = self._frontmatter[file.path]
        return metadata or None

    def resolve_link(self, link: str, source: Optional[VaultFile] = None) -> Optional[VaultFile]:
        """Resolve an Obsidian link target to a vault file.

        Tries the path as written from the vault root, then relative to the
        source note, then a unique file name match anywhere in the vault.
        """
        link = unquote(link.strip())
        if not link or "://" in link:
            return None

        found = self.get_file(link)
        if found:
            return found

        if source is not None and source.parent:
            found = self.get_file(f"{source.parent}/{link}")
            if found:
                return found

        name = PurePosixPath(link).name
        matches = [f for f in self.all_files() if f.name == name]
        if not matches and not PurePosixPath(name).suffix:
            matches = [f for f in self.all_files() if f.name == f"{name}.md"]
        if len(matches) > 1:
            logger.debug(f"Link '{link}' is ambiguous, using {matches[0].path}")
        return matches[0] if matches else None

    def embedded_files(self, file: VaultFile) -> list[VaultFile]:
        """Non-markdown files embedded in a note, in order of appearance."""
        text = self.read(file)
        links = WIKI_EMBED_RE.findall(text) + MARKDOWN_EMBED_RE.findall(text)
        embedded: list[VaultFile] = []
        for link in links:
            target = self.resolve_link(link, file)
            if target is None:
                logger.debug(f"Embed '{link}' in {file.path} not found in vault")
                continue
            if target.extension != "md" and target not in embedded:
                embedded.append(target)
        return embedded
