"""
GitHub publishing module for obsidian-github-publisher.

Uploads shared notes and their attachments to the configured repositories
through the GitHub REST API. Work happens on a dedicated branch which is
then merged through a pull request. With dry run enabled, files are written
to a folder of the vault instead.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from github import Auth, Github
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    UnknownObjectException,
)
from rich.console import Console

from .settings import Repository, Settings, VaultError
from .validation import (
    Frontmatter,
    RepoFrontmatter,
    RepoTargets,
    as_target_list,
    is_shared,
)
from .vault import Vault, VaultFile, VaultFolder

logger = logging.getLogger(__name__)


class PublishError(Exception):
    """Base exception for publishing operations."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(PublishError):
    """Raised when GitHub rejects the token."""
    pass


class RepositoryNotFoundError(PublishError):
    """Raised when a target repository does not exist or is not visible."""
    pass


class UploadError(PublishError):
    """Raised when a file cannot be written to a repository."""
    pass


@dataclass
class UploadResult:
    """Outcome of one file upload."""

    path: str
    target: RepoFrontmatter
    action: str
    sha: Optional[str] = None


@dataclass
class PublishResult:
    """Outcome of publishing one note to its targets."""

    file: VaultFile
    targets: list[RepoFrontmatter]
    uploads: list[UploadResult] = field(default_factory=list)

    @property
    def attachments(self) -> list[UploadResult]:
        return [u for u in self.uploads if not u.path.endswith(".md")]


def build_client(settings: Settings, token: Optional[str]) -> Github:
    """Create a PyGithub client, pointing at GitHub Enterprise when configured."""
    auth = Auth.Token(token) if token else None
    api = settings.github.api
    if api.is_enterprise:
        base_url = f"https://{api.hostname.strip('/')}/api/v3"
        logger.debug(f"Using GitHub Enterprise API at {base_url}")
        return Github(base_url=base_url, auth=auth)
    return Github(auth=auth)


def get_title_field(settings: Settings, file: VaultFile, frontmatter: Frontmatter) -> str:
    """File name of a note, replaced by its frontmatter title when enabled."""
    title = settings.upload.frontmatter_title
    if frontmatter and title.enable and frontmatter.get(title.key):
        value = str(frontmatter[title.key])
        if value != file.name:
            return value if value.endswith(".md") else f"{value}.md"
    return file.name


def _join(*parts: str) -> str:
    return posixpath.join(*[p.strip("/") for p in parts if p and p.strip("/")])


class GithubPublisher:
    """Pushes notes of a vault to GitHub repositories."""

    def __init__(
        self,
        settings: Settings,
        vault: Vault,
        client: Optional[Github] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.settings = settings
        self.vault = vault
        self.client = client
        self.console = console or Console()
        self._repos: dict[str, Any] = {}

    @property
    def dry_run(self) -> bool:
        return self.settings.github.dry_run.enable

    def get_shared_files(self, repo: Optional[Repository] = None) -> list[VaultFile]:
        """Every note of the vault shared with ``repo``, dry run copies excluded."""
        dry_run_folder = self.settings.github.dry_run.folder_name.strip("/") + "/"
        return [
            file
            for file in self.vault.markdown_files()
            if not file.path.startswith(dry_run_folder) and self._is_shared_note(file, repo)
        ]

    def get_shared_file_of_folder(self, folder: VaultFolder, repo: Optional[Repository] = None) -> list[VaultFile]:
        """Notes below ``folder`` shared with ``repo``."""
        return [
            file
            for file in self.vault.files_in(folder)
            if file.extension == "md" and self._is_shared_note(file, repo)
        ]

    def _is_shared_note(self, file: VaultFile, repo: Optional[Repository]) -> bool:
        try:
            frontmatter = self.vault.frontmatter(file)
        except VaultError as e:
            logger.warning(f"Skipping unreadable note {file.path}: {e}")
            return False
        return is_shared(frontmatter, self.settings, file, repo)

    def _github_repo(self, target: RepoFrontmatter) -> Any:
        if target.full_name in self._repos:
            return self._repos[target.full_name]
        if self.client is None:
            raise AuthenticationError(
                "No GitHub client configured",
                "Set GITHUB_TOKEN or the token in the publisher settings",
            )
        try:
            repo = self.client.get_repo(target.full_name)
        except BadCredentialsException as e:
            raise AuthenticationError(
                "GitHub rejected the token",
                "Check that the token is valid and has the 'repo' scope",
            ) from e
        except UnknownObjectException as e:
            raise RepositoryNotFoundError(
                f"Repository not found: {target.full_name}",
                "Check the owner and repository name, and the token permissions",
            ) from e
        except GithubException as e:
            raise PublishError(f"Failed to reach {target.full_name}: {e}") from e
        self._repos[target.full_name] = repo
        return repo

    def check_repository(self, targets: RepoTargets) -> None:
        """Make sure every target repository and base branch exists.

        Raises:
            AuthenticationError: If the token is missing or rejected.
            RepositoryNotFoundError: If a repository or its branch is missing.
        """
        if self.dry_run:
            return
        for target in as_target_list(targets):
            if target.verified_repo:
                logger.debug(f"Skipping check of verified repository {target}")
                continue
            repo = self._github_repo(target)
            try:
                repo.get_branch(target.branch)
            except GithubException as e:
                raise RepositoryNotFoundError(
                    f"Branch '{target.branch}' not found in {target.full_name}",
                    str(e),
                ) from e
            logger.info(f"Repository {target} is reachable")

    def new_branch(self, targets: RepoTargets, branch_name: str) -> None:
        """Create ``branch_name`` from each target's base branch if missing."""
        if self.dry_run:
            return
        for target in as_target_list(targets):
            repo = self._github_repo(target)
            try:
                repo.get_git_ref(f"heads/{branch_name}")
                logger.debug(f"Branch {branch_name} already exists in {target.full_name}")
                continue
            except UnknownObjectException:
                pass
            except GithubException as e:
                raise PublishError(
                    f"Failed to look up branch {branch_name} in {target.full_name}",
                    str(e),
                ) from e
            try:
                base = repo.get_branch(target.branch)
                repo.create_git_ref(ref=f"refs/heads/{branch_name}", sha=base.commit.sha)
            except GithubException as e:
                raise PublishError(
                    f"Failed to create branch {branch_name} in {target.full_name}",
                    str(e),
                ) from e
            logger.info(f"Created branch {branch_name} in {target.full_name}")

    def receipt_path(self, file: VaultFile, frontmatter: Frontmatter) -> str:
        """Path of a note inside the target repository."""
        upload = self.settings.upload
        name = get_title_field(self.settings, file, frontmatter)

        if upload.behavior == "yaml":
            category = None
            if frontmatter and upload.yaml_folder_key:
                category = frontmatter.get(upload.yaml_folder_key)
            if isinstance(category, list):
                category = "/".join(str(part) for part in category)
            if category:
                return _join(upload.root_folder, str(category), name)
            return _join(upload.default_name, name)

        if upload.behavior == "obsidian":
            return _join(upload.default_name, file.parent, name)

        return _join(upload.default_name, name)

    def attachment_path(self, attachment: VaultFile, note_path: str) -> str:
        folder = self.settings.embed.folder or posixpath.dirname(note_path)
        return _join(folder, attachment.name)

    def upload_file(
        self,
        path: str,
        content: bytes,
        target: RepoFrontmatter,
        branch_name: str,
        message: str,
    ) -> UploadResult:
        """Create or update one file on ``branch_name`` of ``target``.

        Raises:
            UploadError: If GitHub refuses the write.
        """
        if self.dry_run:
            return self._write_dry_run(path, content, target, branch_name)

        repo = self._github_repo(target)
        try:
            existing = repo.get_contents(path, ref=branch_name)
        except UnknownObjectException:
            existing = None
        except GithubException as e:
            raise UploadError(f"Failed to read {path} in {target.full_name}", str(e)) from e

        if isinstance(existing, list):
            raise UploadError(
                f"Cannot upload {path}: a folder with that name exists in {target.full_name}"
            )

        try:
            if existing is None:
                res = repo.create_file(path, message, content, branch=branch_name)
                action = "created"
            elif existing.decoded_content == content:
                logger.debug(f"{path} unchanged in {target.full_name}")
                return UploadResult(path=path, target=target, action="unchanged", sha=existing.sha)
            else:
                res = repo.update_file(path, message, content, existing.sha, branch=branch_name)
                action = "updated"
        except GithubException as e:
            raise UploadError(
                f"Failed to upload {path} to {target.full_name}",
                str(getattr(e, "data", None) or e),
            ) from e

        commit = res.get("commit") if isinstance(res, dict) else getattr(res, "commit", None)
        sha = getattr(commit, "sha", None) if commit else None
        logger.info(f"Uploaded {path} to {target.full_name} ({action})")
        return UploadResult(path=path, target=target, action=action, sha=sha)

    def _write_dry_run(self, path: str, content: bytes, target: RepoFrontmatter, branch_name: str) -> UploadResult:
        folder = self.settings.github.dry_run.folder_name
        destination = Path(self.vault.root, folder, target.owner, target.repo, branch_name, *path.split("/"))
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(content)
        except OSError as e:
            raise UploadError(f"Failed to write dry run copy of {path}", str(e)) from e
        logger.info(f"[dry run] wrote {destination}")
        return UploadResult(path=path, target=target, action="written")

    def publish(self, file: VaultFile, targets: RepoTargets, branch_name: str) -> PublishResult:
        """Upload a note and its embedded attachments to every target."""
        frontmatter = self.vault.frontmatter(file)
        target_list = as_target_list(targets)
        result = PublishResult(file=file, targets=target_list)
        note_path = self.receipt_path(file, frontmatter)
        content = self.vault.read_bytes(file)
        attachments = self.vault.embedded_files(file) if self.settings.embed.attachments else []

        for target in target_list:
            result.uploads.append(
                self.upload_file(note_path, content, target, branch_name, f"PUSH NOTE : {file.name}")
            )
            for attachment in attachments:
                result.uploads.append(
                    self.upload_file(
                        self.attachment_path(attachment, note_path),
                        self.vault.read_bytes(attachment),
                        target,
                        branch_name,
                        f"PUSH ATTACHMENT : {attachment.name}",
                    )
                )
        return result

    def update_repository(self, targets: RepoTargets, branch_name: str) -> bool:
        """Merge ``branch_name`` into each target's base branch.

        Opens (or reuses) a pull request, merges it when the target allows
        automatic merge, removes the work branch and dispatches the
        configured workflow.

        Returns:
            True if every target was merged or had nothing to merge.
        """
        if self.dry_run:
            return True

        all_merged = True
        for target in as_target_list(targets):
            repo = self._github_repo(target)
            try:
                comparison = repo.compare(target.branch, branch_name)
                if comparison.ahead_by == 0:
                    logger.info(f"Nothing to merge into {target}")
                    self._delete_branch(repo, branch_name)
                    continue

                pulls = repo.get_pulls(state="open", head=f"{target.owner}:{branch_name}", base=target.branch)
                pull = pulls[0] if pulls.totalCount else repo.create_pull(
                    title=f"[PUBLISHER] Merge {branch_name}",
                    body="",
                    head=branch_name,
                    base=target.branch,
                )
                logger.info(f"Pull request #{pull.number} open on {target.full_name}")

                if not target.automatically_merge_pr:
                    all_merged = False
                    continue

                pull.merge(commit_message=target.commit_msg)
                self._delete_branch(repo, branch_name)
                logger.info(f"Merged pull request #{pull.number} into {target}")
            except GithubException as e:
                raise PublishError(
                    f"Failed to merge {branch_name} into {target}",
                    str(e),
                ) from e

            if target.workflow_name:
                self._dispatch_workflow(repo, target)
        return all_merged

    @staticmethod
    def _delete_branch(repo: Any, branch_name: str) -> None:
        try:
            repo.get_git_ref(f"heads/{branch_name}").delete()
        except UnknownObjectException:
            pass

    @staticmethod
    def _dispatch_workflow(repo: Any, target: RepoFrontmatter) -> None:
        try:
            workflow = repo.get_workflow(target.workflow_name)
            workflow.create_dispatch(ref=target.branch)
            logger.info(f"Dispatched workflow {target.workflow_name} on {target}")
        except GithubException as e:
            logger.warning(f"Could not dispatch workflow {target.workflow_name} on {target}: {e}")
