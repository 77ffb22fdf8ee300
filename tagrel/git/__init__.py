"""Git operations used to publish documentation branches."""

from .repository import GitError, Repository, basic_auth_header

__all__ = [
    "GitError",
    "Repository",
    "basic_auth_header",
]
