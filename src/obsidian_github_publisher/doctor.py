"""Doctor module for diagnosing common configuration issues."""

import logging
import re
from pathlib import Path

from .settings import (
    DEFAULT_SMART_KEY,
    SettingsError,
    get_token,
    load_settings,
    settings_path,
    write_default_settings,
)
from .validation import compile_excluded_folder


class Doctor:
    """Diagnose and fix common publisher setup issues."""

    def __init__(self, vault_path: Path, verbose: bool = False) -> None:
        self.vault_path = vault_path
        self.verbose = verbose
        self.issues: list[dict] = []

        if verbose:
            logging.basicConfig(level=logging.DEBUG)

    def run_checks(self, fix: bool = False) -> list[dict]:
        """Run all diagnostic checks."""
        self.issues = []

        if self._check_settings_exist():
            self._check_settings_valid()

        if fix:
            self._attempt_fixes()

        return self.issues

    def _check_settings_exist(self) -> bool:
        """Check if the settings file exists."""
        if not settings_path(self.vault_path).exists():
            self.issues.append({
                "severity": "error",
                "message": "Publisher settings not found",
                "fixable": True,
                "fix_action": "settings",
            })
            return False
        return True

    def _check_settings_valid(self) -> None:
        """Check the content of the settings file."""
        try:
            settings = load_settings(self.vault_path)
        except SettingsError as e:
            self.issues.append({
                "severity": "error",
                "message": f"Invalid settings: {e.message}",
                "fixable": False,
                "fix_action": None,
                "details": [e.details] if e.details else [],
            })
            return

        if not get_token(settings, self.vault_path):
            self.issues.append({
                "severity": "error" if not settings.github.dry_run.enable else "info",
                "message": "No GitHub token found (GITHUB_TOKEN, token file or settings)",
                "fixable": False,
                "fix_action": None,
            })

        if not settings.github.user or not settings.github.repo:
            self.issues.append({
                "severity": "error",
                "message": "Default repository is not configured (github.user / github.repo)",
                "fixable": False,
                "fix_action": None,
            })

        seen: set[str] = set()
        for repo in settings.github.other_repo:
            key = repo.smart_key.lower()
            if key == DEFAULT_SMART_KEY:
                self.issues.append({
                    "severity": "error",
                    "message": f"Smart key '{repo.smart_key}' is reserved for the default repository",
                    "fixable": False,
                    "fix_action": None,
                })
            elif key in seen:
                self.issues.append({
                    "severity": "error",
                    "message": f"Smart key '{repo.smart_key}' is used by several repositories",
                    "fixable": False,
                    "fix_action": None,
                })
            seen.add(key)

            if not repo.user or not repo.repo:
                self.issues.append({
                    "severity": "warning",
                    "message": f"Repository '{repo.smart_key}' has no user or repo name",
                    "fixable": False,
                    "fix_action": None,
                })

        for folder in settings.plugin.excluded_folder:
            try:
                compile_excluded_folder(folder)
            except re.error as e:
                self.issues.append({
                    "severity": "warning",
                    "message": f"Excluded folder regex does not compile: {folder} ({e})",
                    "fixable": False,
                    "fix_action": None,
                })

    def _attempt_fixes(self) -> None:
        """Attempt to fix auto-fixable issues."""
        for issue in self.issues:
            if not issue.get("fixable"):
                continue

            if issue.get("fix_action") == "settings":
                write_default_settings(self.vault_path)
                issue["fixed"] = True
