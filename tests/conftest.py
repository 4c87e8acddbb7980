"""Shared fixtures: vault builder, settings factory and an in-memory GitHub."""

import hashlib
import json
from types import SimpleNamespace

import pytest
from github.GithubException import GithubException, UnknownObjectException

from obsidian_github_publisher.menu import Platform
from obsidian_github_publisher.plugin import PublisherPlugin
from obsidian_github_publisher.settings import parse_settings, settings_path


def _not_found():
    return UnknownObjectException(404, {"message": "Not Found"}, None)


def _sha(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


class FakePaginatedList(list):
    @property
    def totalCount(self):
        return len(self)


class FakePull:
    def __init__(self, repo, number, head, base):
        self.repo = repo
        self.number = number
        self.head = SimpleNamespace(ref=head)
        self.base = SimpleNamespace(ref=base)
        self.merged = False
        self.merge_message = None

    def merge(self, commit_message=None):
        self.merged = True
        self.merge_message = commit_message
        for (branch, path), content in list(self.repo.files.items()):
            if branch == self.head.ref:
                self.repo.files[(self.base.ref, path)] = content
        self.repo.commits[self.base.ref] = self.repo.commits.get(self.base.ref, 0) + 1


class FakeRepo:
    """Just enough of PyGithub's Repository for the publisher."""

    def __init__(self, full_name, branches=("main",)):
        self.full_name = full_name
        self.commits = {branch: 0 for branch in branches}
        self.files = {}
        self.pulls = []
        self.dispatched = []
        self.created_refs = []
        self.deleted_refs = []

    def get_branch(self, name):
        if name not in self.commits:
            raise GithubException(404, {"message": "Branch not found"}, None)
        return SimpleNamespace(name=name, commit=SimpleNamespace(sha=f"{name}-sha"))

    def get_git_ref(self, ref):
        name = ref.split("/", 1)[1]
        if name not in self.commits:
            raise _not_found()
        return SimpleNamespace(ref=ref, delete=lambda: self._delete_branch(name))

    def _delete_branch(self, name):
        self.deleted_refs.append(name)
        del self.commits[name]

    def create_git_ref(self, ref, sha):
        name = ref[len("refs/heads/"):]
        self.created_refs.append(name)
        self.commits[name] = 0
        for (branch, path), content in list(self.files.items()):
            if branch == sha[: -len("-sha")]:
                self.files[(name, path)] = content

    def get_contents(self, path, ref=None):
        key = (ref, path)
        if key not in self.files:
            raise _not_found()
        content = self.files[key]
        return SimpleNamespace(path=path, decoded_content=content, sha=_sha(content))

    def _commit(self, path, content, branch):
        if branch not in self.commits:
            raise GithubException(422, {"message": "Branch does not exist"}, None)
        self.files[(branch, path)] = content
        self.commits[branch] += 1
        return {"content": SimpleNamespace(path=path), "commit": SimpleNamespace(sha=_sha(content))}

    def create_file(self, path, message, content, branch=None):
        return self._commit(path, content, branch)

    def update_file(self, path, message, content, sha, branch=None):
        return self._commit(path, content, branch)

    def compare(self, base, head):
        return SimpleNamespace(ahead_by=self.commits.get(head, 0))

    def get_pulls(self, state="open", head=None, base=None):
        branch = head.split(":", 1)[1] if head else None
        found = [p for p in self.pulls if not p.merged and p.head.ref == branch and p.base.ref == base]
        return FakePaginatedList(found)

    def create_pull(self, title, body, head, base):
        pull = FakePull(self, len(self.pulls) + 1, head, base)
        self.pulls.append(pull)
        return pull

    def get_workflow(self, name):
        return SimpleNamespace(create_dispatch=lambda ref: self.dispatched.append((name, ref)))


class FakeGithub:
    def __init__(self, *repos):
        self.repos = {repo.full_name: repo for repo in repos}

    def get_repo(self, full_name):
        if full_name not in self.repos:
            raise _not_found()
        return self.repos[full_name]


@pytest.fixture
def make_vault(tmp_path):
    """Write notes into a fresh vault; values are text or bytes."""

    def _make(files, settings=None):
        root = tmp_path / "My Vault"
        (root / ".obsidian").mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        if settings is not None:
            target = settings_path(root)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(settings), encoding="utf-8")
        return root

    return _make


BASE_SETTINGS = {
    "github": {"user": "mara", "repo": "garden", "branch": "main"},
}

OTHER_REPOS = [
    {
        "smartKey": "blog",
        "user": "mara",
        "repo": "blog",
        "branch": "main",
        "shareKey": "blog",
        "createShortcuts": True,
    },
    {
        "smartKey": "docs",
        "user": "mara",
        "repo": "docs",
        "branch": "master",
        "shareKey": "docs",
        "createShortcuts": False,
    },
]


def merge(base, override):
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


@pytest.fixture
def make_settings():
    def _make(**sections):
        return parse_settings(merge(BASE_SETTINGS, sections))

    return _make


@pytest.fixture
def fake_github():
    return FakeGithub(
        FakeRepo("mara/garden"),
        FakeRepo("mara/blog"),
        FakeRepo("mara/docs", branches=("master",)),
    )


@pytest.fixture
def make_plugin(make_vault, make_settings, fake_github, monkeypatch):
    """A plugin over a vault, talking to ``fake_github``."""
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")

    def _make(files, desktop=True, chooser=None, **sections):
        root = make_vault(files)
        return PublisherPlugin(
            root,
            settings=make_settings(**sections),
            platform=Platform(is_desktop=desktop),
            client_factory=lambda settings, token: fake_github,
            chooser=chooser or (lambda repos, title: None),
        )

    return _make


@pytest.fixture
def other_repos():
    return [dict(repo) for repo in OTHER_REPOS]
