"""Tests for the share commands and the repository chooser."""

import io
from datetime import date

import click
import pytest
from github.GithubException import GithubException
from rich.console import Console

from obsidian_github_publisher.commands import (
    ChooseRepoToRun,
    MonoRepoProperties,
    ShareStatusBar,
    prompt_for_repository,
    repositories_to_choose,
    share_all_marked_notes,
    share_one_note,
)
from obsidian_github_publisher.plugin import PublisherPlugin, StatusBarItem
from obsidian_github_publisher.publisher import (
    GithubPublisher,
    PublishError,
    RepositoryNotFoundError,
    UploadError,
)
from obsidian_github_publisher.settings import default_repo
from obsidian_github_publisher.validation import RepoFrontmatter
from obsidian_github_publisher.vault import Vault, VaultFile


SHARED = "---\nshare: true\n---\nbody\n"


@pytest.fixture
def publisher(make_vault, make_settings, fake_github):
    vault = Vault(make_vault({"a.md": SHARED, "b.md": SHARED, "c.md": SHARED}))
    return GithubPublisher(make_settings(), vault, fake_github, console=Console(quiet=True))


@pytest.fixture
def status_bar():
    return StatusBarItem(Console(quiet=True))


def garden_properties(settings):
    return MonoRepoProperties(
        frontmatter=RepoFrontmatter(owner="mara", repo="garden", branch="main"),
        repo=default_repo(settings),
    )


class TestRepositoriesToChoose:
    def test_matching_share_key(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        assert [r.smart_key for r in repositories_to_choose(settings, "docs")] == ["docs"]
        assert [r.smart_key for r in repositories_to_choose(settings, "share")] == ["default"]

    def test_everything_when_nothing_matches(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        keys = [r.smart_key for r in repositories_to_choose(settings, None)]
        assert keys == ["default", "blog", "docs"]

    def test_share_all_repositories_are_offered(self, make_settings, other_repos):
        other_repos[1]["shareAll"] = {"enable": True}
        settings = make_settings(github={"otherRepo": other_repos})
        assert [r.smart_key for r in repositories_to_choose(settings, "blog")] == ["blog", "docs"]

    def test_chooser_title_and_cancel(self, make_plugin):
        seen = []

        def chooser(repos, title):
            seen.append(title)
            return None

        plugin = make_plugin({"a.md": SHARED}, chooser=chooser)
        modal = ChooseRepoToRun(plugin, None, "work", "folder", None, lambda repo: repo)
        assert modal.open() is None
        assert seen == ["Upload this folder to which repository?"]


class TestShareOneNote:
    def test_error_is_raised(self, make_vault, make_settings, fake_github):
        settings = make_settings(github={"repo": "missing"})
        publisher = GithubPublisher(settings, Vault(make_vault({"a.md": SHARED})), fake_github, console=Console(quiet=True))
        with pytest.raises(RepositoryNotFoundError):
            share_one_note("work", publisher, VaultFile("a.md"), default_repo(settings), "a")


class TestShareAllMarkedNotes:
    def test_no_files(self, publisher, status_bar):
        result = share_all_marked_notes(publisher, status_bar, "work", garden_properties(publisher.settings), [])
        assert not result.success
        assert result.published == []
        assert status_bar.history == []

    def test_status_bar_progress(self, publisher, status_bar, fake_github):
        files = publisher.get_shared_files()
        result = share_all_marked_notes(publisher, status_bar, "work", garden_properties(publisher.settings), files)

        assert result.success
        assert result.merged
        assert status_bar.history == [
            "⌛Sharing 3 notes...",
            "⌛Sharing 1/3 notes",
            "⌛Sharing 2/3 notes",
            "⌛Sharing 3/3 notes",
            "✅ 3 notes shared",
        ]
        garden = fake_github.repos["mara/garden"]
        assert {path for branch, path in garden.files if branch == "main"} == {"a.md", "b.md", "c.md"}

    def test_failed_note_is_skipped(self, publisher, status_bar, fake_github, monkeypatch):
        publish = publisher.publish

        def flaky_publish(file, targets, branch_name):
            if file.name == "b.md":
                raise UploadError("rejected")
            return publish(file, targets, branch_name)

        monkeypatch.setattr(publisher, "publish", flaky_publish)
        files = publisher.get_shared_files()
        result = share_all_marked_notes(publisher, status_bar, "work", garden_properties(publisher.settings), files)

        assert not result.success
        assert [r.file.name for r in result.published] == ["a.md", "c.md"]
        assert [(f.name, message) for f, message in result.failures] == [("b.md", "rejected")]
        assert ("main", "b.md") not in fake_github.repos["mara/garden"].files

    def test_broken_target_reports_error(self, make_vault, make_settings, fake_github, status_bar):
        settings = make_settings()
        vault = Vault(make_vault({"a.md": SHARED}))
        publisher = GithubPublisher(settings, vault, fake_github, console=Console(quiet=True))
        properties = MonoRepoProperties(
            frontmatter=RepoFrontmatter(owner="mara", repo="missing", branch="main"),
            repo=None,
        )
        with pytest.raises(RepositoryNotFoundError):
            share_all_marked_notes(publisher, status_bar, "work", properties, [VaultFile("a.md")])
        assert status_bar.text == "❌ Error while sharing notes"

    def test_unexpected_branch_failure_stops_progress(
        self, publisher, status_bar, fake_github, monkeypatch
    ):
        stopped = []
        stop = ShareStatusBar.stop

        def record_stop(bar):
            stopped.append(bar.counter)
            stop(bar)

        def conflict(ref):
            raise GithubException(409, {"message": "Git Repository is empty."}, None)

        monkeypatch.setattr(ShareStatusBar, "stop", record_stop)
        monkeypatch.setattr(fake_github.repos["mara/garden"], "get_git_ref", conflict)
        properties = MonoRepoProperties(
            frontmatter=RepoFrontmatter(owner="mara", repo="garden", branch="main", verified_repo=True),
            repo=None,
        )

        with pytest.raises(PublishError):
            share_all_marked_notes(publisher, status_bar, "work", properties, [VaultFile("a.md")])
        assert status_bar.text == "❌ Error while sharing notes"
        assert stopped

    def test_unreadable_note_is_a_failure(self, make_vault, make_settings, fake_github, status_bar):
        vault = Vault(make_vault({"a.md": SHARED, "b.md": b"caf\xe9\n"}))
        publisher = GithubPublisher(make_settings(), vault, fake_github, console=Console(quiet=True))
        files = [VaultFile("a.md"), VaultFile("b.md")]

        result = share_all_marked_notes(publisher, status_bar, "work", garden_properties(publisher.settings), files)

        assert [r.file.name for r in result.published] == ["a.md"]
        assert [f.name for f, _ in result.failures] == ["b.md"]
        assert status_bar.text == "✅ 2 notes shared"


class TestPrompt:
    def test_default_prompt_prints_on_plugin_console(self, make_vault, make_settings, monkeypatch):
        output = io.StringIO()
        plugin = PublisherPlugin(make_vault({}), settings=make_settings(), console=Console(file=output))
        monkeypatch.setattr(click, "prompt", lambda *args, **kwargs: 1)

        repos = repositories_to_choose(plugin.settings, None)
        assert plugin.chooser(repos, "Upload this folder to which repository?") is repos[0]
        assert "Upload this folder to which repository?" in output.getvalue()
        assert "DEFAULT (mara/garden@main)" in output.getvalue()

    def test_zero_cancels(self, make_settings, monkeypatch):
        monkeypatch.setattr(click, "prompt", lambda *args, **kwargs: 0)
        repos = repositories_to_choose(make_settings(), None)
        assert prompt_for_repository(repos, "Pick", Console(quiet=True)) is None


class TestBranchName:
    def test_branch_name_from_vault_name(self, make_plugin):
        plugin = make_plugin({})
        today = date.today()
        assert plugin.vault.name == "My Vault"
        assert plugin.branch_name == f"My-Vault-{today.month}-{today.day}-{today.year}"
