"""
Obsidian Github Publisher - Publish shared Obsidian notes to GitHub repositories.
"""

__version__ = "0.1.0"

from .settings import (
    # Configuration
    Repository,
    Settings,
    load_settings,
    default_repo,

    # Exceptions
    SettingsError,
    VaultError,
)
from .validation import (
    # Share-state lookup
    RepoFrontmatter,
    is_shared,
    get_repo_shared_key,
    multiple_shared_key,
    get_repo_frontmatter,
)
from .publisher import (
    GithubPublisher,

    # Exceptions
    PublishError,
    AuthenticationError,
    RepositoryNotFoundError,
    UploadError,
)
from .plugin import PublisherPlugin

__all__ = [
    # Configuration
    "Repository",
    "Settings",
    "load_settings",
    "default_repo",

    # Share-state lookup
    "RepoFrontmatter",
    "is_shared",
    "get_repo_shared_key",
    "multiple_shared_key",
    "get_repo_frontmatter",

    # Publishing
    "GithubPublisher",
    "PublisherPlugin",

    # Exceptions
    "SettingsError",
    "VaultError",
    "PublishError",
    "AuthenticationError",
    "RepositoryNotFoundError",
    "UploadError",
]
