"""Vault detection and publisher settings module.

This module provides utilities for:
- Auto-detecting Obsidian vaults in common locations
- Validating vault structure
- Loading the publisher settings (``data.json``) into typed records
- Resolving the GitHub token
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

PLUGIN_ID = "obsidian-mkdocs-publisher"
DEFAULT_SMART_KEY = "default"

# Common Obsidian vault locations to check
DEFAULT_VAULT_PATHS: Sequence[str] = [
    "~/Obsidian",
    "~/Documents/Obsidian",
    "~/obsidian",
    "~/notes",
    "~/Notes",
]

# Settings template, same layout as the plugin data.json
DEFAULT_SETTINGS: dict[str, Any] = {
    "github": {
        "user": "",
        "repo": "",
        "branch": "main",
        "token": "",
        "tokenPath": f"%configDir%/plugins/{PLUGIN_ID}/env",
        "automaticallyMergePR": True,
        "verifiedRepo": False,
        "api": {
            "tiersForApi": "Github Free/Pro/Team (default)",
            "hostname": "",
        },
        "workflow": {
            "commitMessage": "[PUBLISHER] Merge",
            "name": "",
        },
        "otherRepo": [],
        "dryRun": {
            "enable": False,
            "folderName": "github-publisher",
        },
    },
    "upload": {
        "behavior": "fixed",
        "defaultName": "",
        "rootFolder": "",
        "yamlFolderKey": "",
        "frontmatterTitle": {
            "enable": False,
            "key": "filename",
        },
    },
    "embed": {
        "attachments": True,
        "folder": "",
    },
    "plugin": {
        "shareKey": "share",
        "excludedFolder": [],
        "fileMenu": True,
        "shareAll": {
            "enable": False,
            "excludedFileName": "DRAFT",
        },
        "setFrontmatterKey": "Set",
    },
}

ENTERPRISE_TIER = "Enterprise"
UPLOAD_BEHAVIORS = ("fixed", "obsidian", "yaml")


class VaultError(Exception):
    """Raised when there's an issue with the Obsidian vault."""


class SettingsError(Exception):
    """Raised when the publisher settings cannot be read."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


@dataclass
class Api:
    tiers_for_api: str = "Github Free/Pro/Team (default)"
    hostname: str = ""

    @property
    def is_enterprise(self) -> bool:
        return self.tiers_for_api == ENTERPRISE_TIER and bool(self.hostname)


@dataclass
class Workflow:
    commit_message: str = "[PUBLISHER] Merge"
    name: str = ""


@dataclass
class ShareAll:
    enable: bool = False
    excluded_file_name: str = "DRAFT"


@dataclass
class Repository:
    """A target repository, either the default one or an "other repo"."""

    smart_key: str
    user: str
    repo: str
    branch: str = "main"
    share_key: str = "share"
    automatically_merge_pr: bool = True
    verified_repo: bool = False
    create_shortcuts: bool = False
    api: Api = field(default_factory=Api)
    workflow: Workflow = field(default_factory=Workflow)
    share_all: Optional[ShareAll] = None

    @property
    def full_name(self) -> str:
        return f"{self.user}/{self.repo}"


@dataclass
class DryRun:
    enable: bool = False
    folder_name: str = "github-publisher"


@dataclass
class GithubSettings:
    user: str = ""
    repo: str = ""
    branch: str = "main"
    token: str = ""
    token_path: str = ""
    automatically_merge_pr: bool = True
    verified_repo: bool = False
    api: Api = field(default_factory=Api)
    workflow: Workflow = field(default_factory=Workflow)
    other_repo: list[Repository] = field(default_factory=list)
    dry_run: DryRun = field(default_factory=DryRun)


@dataclass
class FrontmatterTitle:
    enable: bool = False
    key: str = "filename"


@dataclass
class UploadSettings:
    behavior: str = "fixed"
    default_name: str = ""
    root_folder: str = ""
    yaml_folder_key: str = ""
    frontmatter_title: FrontmatterTitle = field(default_factory=FrontmatterTitle)


@dataclass
class EmbedSettings:
    attachments: bool = True
    folder: str = ""


@dataclass
class PluginSettings:
    share_key: str = "share"
    excluded_folder: list[str] = field(default_factory=list)
    file_menu: bool = True
    share_all: Optional[ShareAll] = None
    set_frontmatter_key: str = "Set"


@dataclass
class Settings:
    github: GithubSettings = field(default_factory=GithubSettings)
    upload: UploadSettings = field(default_factory=UploadSettings)
    embed: EmbedSettings = field(default_factory=EmbedSettings)
    plugin: PluginSettings = field(default_factory=PluginSettings)


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise SettingsError(
            f"Invalid settings: '{key}' must be an object",
            f"Got {type(value).__name__}",
        )
    return value


def _merged(defaults: dict[str, Any], raw: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``raw`` over ``defaults`` so partial files still load."""
    merged = dict(defaults)
    for key, value in raw.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merged(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_share_all(raw: Any) -> Optional[ShareAll]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise SettingsError("Invalid settings: 'shareAll' must be an object")
    return ShareAll(
        enable=bool(raw.get("enable", False)),
        excluded_file_name=str(raw.get("excludedFileName", "DRAFT")),
    )


def _parse_api(raw: dict[str, Any]) -> Api:
    return Api(
        tiers_for_api=str(raw.get("tiersForApi", Api.tiers_for_api)),
        hostname=str(raw.get("hostname", "")),
    )


def _parse_workflow(raw: dict[str, Any]) -> Workflow:
    return Workflow(
        commit_message=str(raw.get("commitMessage", Workflow.commit_message)),
        name=str(raw.get("name", "")),
    )


def _parse_repository(raw: Any, default_share_key: str) -> Repository:
    if not isinstance(raw, dict):
        raise SettingsError("Invalid settings: every 'otherRepo' entry must be an object")
    if not raw.get("smartKey"):
        raise SettingsError(
            "Invalid settings: an 'otherRepo' entry has no smartKey",
            json.dumps(raw),
        )
    return Repository(
        smart_key=str(raw["smartKey"]),
        user=str(raw.get("user", "")),
        repo=str(raw.get("repo", "")),
        branch=str(raw.get("branch", "main")),
        share_key=str(raw.get("shareKey") or default_share_key),
        automatically_merge_pr=bool(raw.get("automaticallyMergePR", True)),
        verified_repo=bool(raw.get("verifiedRepo", False)),
        create_shortcuts=bool(raw.get("createShortcuts", False)),
        api=_parse_api(raw.get("api") or {}),
        workflow=_parse_workflow(raw.get("workflow") or {}),
        share_all=_parse_share_all(raw.get("shareAll")),
    )


def parse_settings(raw: dict[str, Any]) -> Settings:
    """Build a :class:`Settings` from a ``data.json`` mapping.

    Missing keys fall back to :data:`DEFAULT_SETTINGS`.

    Raises:
        SettingsError: If a section has the wrong shape.
    """
    if not isinstance(raw, dict):
        raise SettingsError("Invalid settings: top level must be an object")
    data = _merged(DEFAULT_SETTINGS, raw)

    plugin_raw = _section(data, "plugin")
    share_key = str(plugin_raw.get("shareKey") or "share")
    excluded = plugin_raw.get("excludedFolder") or []
    if not isinstance(excluded, list):
        raise SettingsError("Invalid settings: 'excludedFolder' must be a list")
    plugin = PluginSettings(
        share_key=share_key,
        excluded_folder=[str(folder) for folder in excluded],
        file_menu=bool(plugin_raw.get("fileMenu", True)),
        share_all=_parse_share_all(plugin_raw.get("shareAll")),
        set_frontmatter_key=str(plugin_raw.get("setFrontmatterKey", "Set")),
    )

    github_raw = _section(data, "github")
    other_raw = github_raw.get("otherRepo") or []
    if not isinstance(other_raw, list):
        raise SettingsError("Invalid settings: 'otherRepo' must be a list")
    dry_run_raw = github_raw.get("dryRun") or {}
    github = GithubSettings(
        user=str(github_raw.get("user", "")),
        repo=str(github_raw.get("repo", "")),
        branch=str(github_raw.get("branch") or "main"),
        token=str(github_raw.get("token", "")),
        token_path=str(github_raw.get("tokenPath", "")),
        automatically_merge_pr=bool(github_raw.get("automaticallyMergePR", True)),
        verified_repo=bool(github_raw.get("verifiedRepo", False)),
        api=_parse_api(github_raw.get("api") or {}),
        workflow=_parse_workflow(github_raw.get("workflow") or {}),
        other_repo=[_parse_repository(repo, share_key) for repo in other_raw],
        dry_run=DryRun(
            enable=bool(dry_run_raw.get("enable", False)),
            folder_name=str(dry_run_raw.get("folderName") or "github-publisher"),
        ),
    )

    upload_raw = _section(data, "upload")
    behavior = str(upload_raw.get("behavior", "fixed")).lower()
    if behavior not in UPLOAD_BEHAVIORS:
        raise SettingsError(
            f"Invalid settings: unknown upload behavior '{behavior}'",
            f"Expected one of: {', '.join(UPLOAD_BEHAVIORS)}",
        )
    title_raw = upload_raw.get("frontmatterTitle") or {}
    upload = UploadSettings(
        behavior=behavior,
        default_name=str(upload_raw.get("defaultName", "")),
        root_folder=str(upload_raw.get("rootFolder", "")),
        yaml_folder_key=str(upload_raw.get("yamlFolderKey", "")),
        frontmatter_title=FrontmatterTitle(
            enable=bool(title_raw.get("enable", False)),
            key=str(title_raw.get("key", "filename")),
        ),
    )

    embed_raw = _section(data, "embed")
    embed = EmbedSettings(
        attachments=bool(embed_raw.get("attachments", True)),
        folder=str(embed_raw.get("folder", "")),
    )

    return Settings(github=github, upload=upload, embed=embed, plugin=plugin)


def settings_path(vault_path: str | Path) -> Path:
    """Location of the publisher ``data.json`` inside a vault."""
    return Path(vault_path).expanduser() / ".obsidian" / "plugins" / PLUGIN_ID / "data.json"


def load_settings(vault_path: str | Path) -> Settings:
    """Load the publisher settings of a vault.

    A vault without a settings file gets the defaults.

    Raises:
        SettingsError: If the file exists but is not valid settings JSON.
    """
    path = settings_path(vault_path)
    if not path.exists():
        logger.info(f"No settings found at {path}, using defaults")
        return parse_settings({})

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SettingsError(
            f"Settings file is not valid JSON: {path}",
            str(e),
        ) from e
    except OSError as e:
        raise SettingsError(f"Failed to read settings file: {path}", str(e)) from e

    logger.debug(f"Loaded settings from {path}")
    return parse_settings(raw)


def write_default_settings(vault_path: str | Path, overwrite: bool = False) -> Path:
    """Create the publisher ``data.json`` with default values.

    Raises:
        VaultError: If the vault is invalid.
        SettingsError: If the file cannot be written.
    """
    validate_vault(str(vault_path))
    path = settings_path(vault_path)

    if path.exists() and not overwrite:
        logger.info(f"Settings already exist at: {path}")
        return path

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(DEFAULT_SETTINGS, f, indent=2)
    except OSError as e:
        raise SettingsError(
            f"Failed to write settings: {path}",
            str(e),
        ) from e

    logger.info(f"Wrote default settings to: {path}")
    return path


def default_repo(settings: Settings) -> Repository:
    """The repository described by the top-level github settings."""
    github = settings.github
    return Repository(
        smart_key=DEFAULT_SMART_KEY,
        user=github.user,
        repo=github.repo,
        branch=github.branch,
        share_key=settings.plugin.share_key,
        automatically_merge_pr=github.automatically_merge_pr,
        verified_repo=github.verified_repo,
        create_shortcuts=False,
        api=github.api,
        workflow=github.workflow,
        share_all=settings.plugin.share_all,
    )


def _read_env_file(path: Path) -> Optional[str]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None
    for line in lines:
        key, _, value = line.partition("=")
        if key.strip() == "GITHUB_TOKEN" and value.strip():
            return value.strip().strip('"')
    return None


def get_token(settings: Settings, vault_path: str | Path) -> Optional[str]:
    """Resolve the GitHub token.

    Looks in order at the ``GITHUB_TOKEN`` environment variable, the env
    file at ``github.tokenPath`` and the token stored in the settings.
    """
    token = os.getenv("GITHUB_TOKEN")
    if token:
        return token

    if settings.github.token_path:
        token_path = settings.github.token_path.replace(
            "%configDir%", str(Path(vault_path) / ".obsidian")
        )
        token = _read_env_file(Path(token_path).expanduser())
        if token:
            return token

    return settings.github.token or None


def find_vault_path() -> str | None:
    """Auto-detect an Obsidian vault in common locations.

    Returns:
        Path to the detected vault, or None if no vault found.
    """
    for path in DEFAULT_VAULT_PATHS:
        expanded_path = Path(path).expanduser()
        if expanded_path.exists() and expanded_path.is_dir():
            if _is_vault_directory(expanded_path):
                return str(expanded_path)
    return None


def _is_vault_directory(path: Path) -> bool:
    """Check if a directory appears to be an Obsidian vault.

    A valid vault has a .obsidian directory or contains .md files.
    """
    obsidian_dir = path / ".obsidian"
    if obsidian_dir.exists() and obsidian_dir.is_dir():
        return True

    try:
        if any(path.glob("*.md")):
            return True
    except (PermissionError, OSError):
        pass

    return False


def validate_vault(vault_path: str) -> bool:
    """Check if directory is a valid Obsidian vault.

    Raises:
        VaultError: If the vault is invalid with detailed reason.
    """
    path = Path(vault_path).expanduser()

    if not path.exists():
        raise VaultError(f"Vault path does not exist: {vault_path}")

    if not path.is_dir():
        raise VaultError(f"Vault path is not a directory: {vault_path}")

    if not os.access(path, os.R_OK):
        raise VaultError(f"Vault directory is not readable: {vault_path}")

    if not _is_vault_directory(path):
        raise VaultError(
            f"Directory does not appear to be an Obsidian vault: {vault_path}\n"
            "Expected either a .obsidian directory or markdown (.md) files."
        )

    return True


def get_vault_name(vault_path: str) -> str:
    """Extract vault name from path."""
    return Path(vault_path).expanduser().name
