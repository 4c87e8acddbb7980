"""Tests for share-state lookup."""

import re

import pytest

from obsidian_github_publisher.validation import (
    RepoFrontmatter,
    compile_excluded_folder,
    get_repo_frontmatter,
    get_repo_shared_key,
    is_enabled,
    is_excluded_path,
    is_shared,
    multiple_shared_key,
)
from obsidian_github_publisher.vault import VaultFile, VaultFolder


NOTE = VaultFile("notes/note.md")


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), ("yes", True), ("TRUE", True), (1, True), (False, False), ("false", False), ("0", False), (None, False)],
)
def test_is_enabled(value, expected):
    assert is_enabled(value) is expected


class TestIsShared:
    def test_shared_with_share_key(self, make_settings):
        assert is_shared({"share": True}, make_settings(), NOTE) is True
        assert is_shared({"share": "yes"}, make_settings(), NOTE) is True

    def test_not_shared(self, make_settings):
        settings = make_settings()
        assert is_shared({"share": "false"}, settings, NOTE) is False
        assert is_shared({"title": "x"}, settings, NOTE) is False
        assert is_shared(None, settings, NOTE) is False

    def test_only_markdown_is_shared(self, make_settings):
        assert is_shared({"share": True}, make_settings(), VaultFile("image.png")) is False
        assert is_shared({"share": True}, make_settings(), None) is False

    def test_uses_repository_share_key(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        blog = settings.github.other_repo[0]
        assert is_shared({"blog": True}, settings, NOTE, blog) is True
        assert is_shared({"blog": True}, settings, NOTE) is False

    def test_excluded_folder(self, make_settings):
        settings = make_settings(plugin={"excludedFolder": ["private"]})
        assert is_shared({"share": True}, settings, VaultFile("private/diary.md")) is False
        assert is_shared({"share": True}, settings, NOTE) is True

    def test_excluded_folder_regex(self, make_settings):
        settings = make_settings(plugin={"excludedFolder": ["/^arch/i"]})
        assert is_shared({"share": True}, settings, VaultFile("Archive/old.md")) is False
        assert is_shared({"share": True}, settings, VaultFile("notes/archive.md")) is True

    def test_share_all(self, make_settings):
        settings = make_settings(plugin={"shareAll": {"enable": True, "excludedFileName": "DRAFT"}})
        assert is_shared(None, settings, NOTE) is True
        assert is_shared(None, settings, VaultFile("DRAFT idea.md")) is False

    def test_share_all_on_other_repository(self, make_settings, other_repos):
        other_repos[1]["shareAll"] = {"enable": True, "excludedFileName": "_"}
        settings = make_settings(github={"otherRepo": other_repos})
        assert is_shared(None, settings, NOTE, settings.github.other_repo[1]) is True
        assert is_shared(None, settings, VaultFile("_wip.md")) is False


class TestExcludedPath:
    def test_folders_can_be_excluded(self, make_settings):
        settings = make_settings(plugin={"excludedFolder": ["templates"]})
        assert is_excluded_path(settings, VaultFolder("templates/daily")) is True
        assert is_excluded_path(settings, VaultFolder("notes")) is False

    def test_invalid_regex_is_ignored(self, make_settings):
        settings = make_settings(plugin={"excludedFolder": ["/[/"]})
        assert is_excluded_path(settings, NOTE) is False

    def test_compile_excluded_folder(self):
        assert compile_excluded_folder("private") is None
        assert compile_excluded_folder("/^priv/i").flags & re.IGNORECASE
        with pytest.raises(re.error):
            compile_excluded_folder("/[/")


class TestRepoSharedKey:
    def test_other_repository_key_wins(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        repo = get_repo_shared_key(settings, {"share": True, "docs": True})
        assert repo.smart_key == "docs"

    def test_default_key(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        assert get_repo_shared_key(settings, {"share": True}).smart_key == "default"

    def test_nothing_shared(self, make_settings):
        assert get_repo_shared_key(make_settings(), {"title": "x"}) is None
        assert get_repo_shared_key(make_settings(), None) is None

    def test_share_all_without_frontmatter(self, make_settings, other_repos):
        settings = make_settings(plugin={"shareAll": {"enable": True}})
        assert get_repo_shared_key(settings, None).smart_key == "default"

        other_repos[0]["shareAll"] = {"enable": True, "excludedFileName": "DRAFT"}
        settings = make_settings(github={"otherRepo": other_repos})
        assert get_repo_shared_key(settings, None).smart_key == "blog"


class TestMultipleSharedKey:
    def test_keys_in_file(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        assert multiple_shared_key({"share": True, "blog": True}, settings) == ["blog", "share"]
        assert multiple_shared_key({"share": True}, settings) == ["share"]
        assert multiple_shared_key(None, settings) == []

    def test_share_all_counts_once(self, make_settings):
        settings = make_settings(plugin={"shareAll": {"enable": True}})
        assert multiple_shared_key({"share": True}, settings) == ["share"]


class TestRepoFrontmatter:
    def test_base_target(self, make_settings):
        target = get_repo_frontmatter(make_settings(), None, None)
        assert target == RepoFrontmatter(owner="mara", repo="garden", branch="main")

    def test_repository_target(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        target = get_repo_frontmatter(settings, settings.github.other_repo[1], {"docs": True})
        assert str(target) == "mara/docs@master"
        assert target.smart_key == "docs"

    @pytest.mark.parametrize(
        "repo, expected",
        [
            ("notes", "mara/notes@main"),
            ("alice/notes", "alice/notes@main"),
            ("alice/notes/dev", "alice/notes@dev"),
            ({"owner": "bob"}, "bob/garden@main"),
            ({"repo": "wiki", "branch": "gh-pages"}, "mara/wiki@gh-pages"),
        ],
    )
    def test_repo_override(self, make_settings, repo, expected):
        target = get_repo_frontmatter(make_settings(), None, {"share": True, "repo": repo})
        assert str(target) == expected

    def test_multiple_repo(self, make_settings):
        targets = get_repo_frontmatter(
            make_settings(), None, {"multipleRepo": ["alice/x", {"owner": "bob", "repo": "y"}, "alice/x"]}
        )
        assert [str(t) for t in targets] == ["alice/x@main", "bob/y@main"]

    def test_single_multiple_repo_is_unwrapped(self, make_settings):
        target = get_repo_frontmatter(make_settings(), None, {"multipleRepo": ["alice/x"]})
        assert isinstance(target, RepoFrontmatter)

    def test_short_repo(self, make_settings, other_repos):
        settings = make_settings(github={"otherRepo": other_repos})
        targets = get_repo_frontmatter(settings, None, {"shortRepo": ["BLOG", "default", "unknown"]})
        assert [t.smart_key for t in targets] == ["blog", "default"]
