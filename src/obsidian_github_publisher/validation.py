"""Share-state lookup: which notes are shared, and with which repositories."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from .settings import DEFAULT_SMART_KEY, Repository, Settings, default_repo
from .vault import AbstractFile, VaultFile

logger = logging.getLogger(__name__)

# "/regex/flags" entries of excludedFolder
REGEX_ENTRY_RE = re.compile(r"^/(.*)/([imsx]*)$")
REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

TRUE_VALUES = ("true", "1", "yes")

Frontmatter = Optional[dict[str, Any]]


@dataclass
class RepoFrontmatter:
    """Resolved upload target of a note."""

    owner: str
    repo: str
    branch: str
    commit_msg: str = "[PUBLISHER] Merge"
    workflow_name: str = ""
    automatically_merge_pr: bool = True
    verified_repo: bool = False
    smart_key: str = DEFAULT_SMART_KEY

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}@{self.branch}"


RepoTargets = Union[RepoFrontmatter, list[RepoFrontmatter]]


def is_enabled(value: Any) -> bool:
    """Truthiness of a frontmatter share flag (``true``, ``1``, ``yes``)."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def compile_excluded_folder(entry: str) -> Optional[re.Pattern[str]]:
    """Compile a ``/regex/flags`` entry, or None for a plain path entry.

    Raises:
        re.error: If the entry looks like a regex but does not compile.
    """
    match = REGEX_ENTRY_RE.match(entry.strip())
    if not match:
        return None
    flags = 0
    for flag in match.group(2):
        flags |= REGEX_FLAGS[flag]
    return re.compile(match.group(1), flags)


def _share_all_repos(settings: Settings) -> list[Repository]:
    return [repo for repo in settings.github.other_repo if repo.share_all and repo.share_all.enable]


def _global_share_all(settings: Settings) -> bool:
    return bool(settings.plugin.share_all and settings.plugin.share_all.enable)


def is_excluded_path(
    settings: Settings,
    file: AbstractFile,
    repository: Optional[Repository] = None,
) -> bool:
    """Check whether a file or folder is excluded from sharing.

    Under share-all, names starting with the excluded prefix are out.
    Entries of ``excludedFolder`` match as substrings of the path, or as
    regular expressions when written ``/regex/flags``.
    """
    repo_share_all = repository.share_all if repository and repository.share_all else None
    if _global_share_all(settings) or (repo_share_all and repo_share_all.enable):
        prefix = (
            repo_share_all.excluded_file_name
            if repo_share_all
            else settings.plugin.share_all.excluded_file_name
        )
        if prefix and file.name.startswith(prefix):
            return True

    for folder in settings.plugin.excluded_folder:
        if not folder.strip():
            continue
        try:
            regex = compile_excluded_folder(folder)
        except re.error:
            logger.warning(f"Ignoring invalid excluded folder regex: {folder}")
            continue
        if regex is not None:
            if regex.search(file.path):
                return True
        elif folder.strip() in file.path:
            return True
    return False


def is_shared(
    frontmatter: Frontmatter,
    settings: Settings,
    file: Optional[VaultFile],
    repository: Optional[Repository] = None,
) -> bool:
    """Decide if a note is shared with ``repository`` (default repo if None)."""
    if file is None or file.extension != "md":
        return False

    share_all_repos = _share_all_repos(settings)
    if not _global_share_all(settings) and not share_all_repos:
        share_key = repository.share_key if repository else settings.plugin.share_key
        if not frontmatter or not is_enabled(frontmatter.get(share_key)):
            return False
        return not is_excluded_path(settings, file, repository)

    prefixes = [repo.share_all.excluded_file_name for repo in share_all_repos]
    if _global_share_all(settings):
        prefixes.append(settings.plugin.share_all.excluded_file_name)
    if any(prefix and file.basename.startswith(prefix) for prefix in prefixes):
        return False
    return not is_excluded_path(settings, file, repository)


def get_repo_shared_key(settings: Settings, frontmatter: Frontmatter = None) -> Optional[Repository]:
    """Find the repository a note (or a folder, without frontmatter) is shared with."""
    if frontmatter:
        for repo in settings.github.other_repo:
            if is_enabled(frontmatter.get(repo.share_key)):
                return repo
        if is_enabled(frontmatter.get(settings.plugin.share_key)):
            return default_repo(settings)

    if _global_share_all(settings):
        return default_repo(settings)
    share_all_repos = _share_all_repos(settings)
    if share_all_repos:
        return share_all_repos[0]
    return None


def multiple_shared_key(frontmatter: Frontmatter, settings: Settings) -> list[str]:
    """All distinct share keys under which a note is shared."""
    keys: list[str] = []

    def _add(key: str) -> None:
        if key not in keys:
            keys.append(key)

    if _global_share_all(settings):
        _add(settings.plugin.share_key)
    for repo in _share_all_repos(settings):
        _add(repo.share_key)

    if not frontmatter:
        return keys

    all_keys = [repo.share_key for repo in settings.github.other_repo]
    all_keys.append(settings.plugin.share_key)
    for key in all_keys:
        if is_enabled(frontmatter.get(key)):
            _add(key)
    return keys


def _base_target(settings: Settings, repository: Optional[Repository]) -> RepoFrontmatter:
    repo = repository or default_repo(settings)
    return RepoFrontmatter(
        owner=repo.user,
        repo=repo.repo,
        branch=repo.branch,
        commit_msg=repo.workflow.commit_message,
        workflow_name=repo.workflow.name,
        automatically_merge_pr=repo.automatically_merge_pr,
        verified_repo=repo.verified_repo,
        smart_key=repo.smart_key,
    )


def repository_string_slice(parts: list[str], target: RepoFrontmatter) -> RepoFrontmatter:
    """Apply an ``owner/repo/branch`` frontmatter string to a target.

    One part is the repository, two are owner and repository, three or
    more add the branch.
    """
    parts = [part.strip() for part in parts if part.strip()]
    if len(parts) == 1:
        return replace(target, repo=parts[0])
    if len(parts) == 2:
        return replace(target, owner=parts[0], repo=parts[1])
    if len(parts) >= 3:
        return replace(target, owner=parts[0], repo=parts[1], branch=parts[2])
    return target


def _apply_repo_value(value: Any, target: RepoFrontmatter) -> RepoFrontmatter:
    if isinstance(value, dict):
        return replace(
            target,
            owner=str(value.get("owner") or target.owner),
            repo=str(value.get("repo") or target.repo),
            branch=str(value.get("branch") or target.branch),
        )
    return repository_string_slice(str(value).split("/"), target)


def remove_duplicate_repo(targets: list[RepoFrontmatter]) -> list[RepoFrontmatter]:
    unique: list[RepoFrontmatter] = []
    seen: set[tuple[str, str, str]] = set()
    for target in targets:
        key = (target.owner, target.repo, target.branch)
        if key not in seen:
            seen.add(key)
            unique.append(target)
    return unique


def _short_repo_targets(
    settings: Settings,
    short_repo: list[Any],
    base: RepoFrontmatter,
) -> list[RepoFrontmatter]:
    targets: list[RepoFrontmatter] = []
    for smart_key in short_repo:
        smart_key = str(smart_key).strip().lower()
        if smart_key == DEFAULT_SMART_KEY:
            targets.append(_base_target(settings, None))
            continue
        found = next(
            (repo for repo in settings.github.other_repo if repo.smart_key.lower() == smart_key),
            None,
        )
        if found is None:
            logger.warning(f"shortRepo '{smart_key}' matches no configured repository")
            continue
        targets.append(_base_target(settings, found))
    return targets or [base]


def _unwrap(targets: list[RepoFrontmatter]) -> RepoTargets:
    return targets[0] if len(targets) == 1 else targets


def get_repo_frontmatter(
    settings: Settings,
    repository: Optional[Repository],
    frontmatter: Frontmatter = None,
) -> RepoTargets:
    """Resolve the upload target(s) of a note.

    The repository (or default settings) gives the base target. The note
    can override it with ``repo`` (``owner/repo/branch`` or a mapping),
    send it to several places with ``multipleRepo``, or pick configured
    repositories by smart key with ``shortRepo``.
    """
    base = _base_target(settings, repository)
    if not frontmatter:
        return base

    if frontmatter.get("multipleRepo"):
        multiple = frontmatter["multipleRepo"]
        if not isinstance(multiple, list):
            multiple = [multiple]
        targets = [_apply_repo_value(value, base) for value in multiple]
        return _unwrap(remove_duplicate_repo(targets))

    if frontmatter.get("repo"):
        return _apply_repo_value(frontmatter["repo"], base)

    short_repo = frontmatter.get("shortRepo")
    if short_repo:
        if not isinstance(short_repo, list):
            short_repo = [short_repo]
        return _unwrap(remove_duplicate_repo(_short_repo_targets(settings, short_repo, base)))

    return base


def as_target_list(targets: RepoTargets) -> list[RepoFrontmatter]:
    return targets if isinstance(targets, list) else [targets]
