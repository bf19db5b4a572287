"""Exception types raised by the orchestration core and the git backend."""

from enum import Enum
from typing import Optional


class SyncError(Exception):
    """Base class for every error raised by repo-group-sync."""


class InvalidGroupError(SyncError):
    """Descriptor list is empty or repeats a repository identifier."""


class InvalidConfigError(SyncError):
    """A run setting (such as the concurrency limit) is out of range."""


class VcsErrorCategory(str, Enum):
    NETWORK = "network"
    AUTH = "auth"
    CONFLICT = "conflict"
    CORRUPTION = "corruption"
    NOT_FOUND = "not_found"
    IO = "io"
    INTERRUPTED = "interrupted"
    UNKNOWN = "unknown"


class VcsError(SyncError):
    """A backend operation failed for one repository.

    ``reason`` is a short machine-friendly tag (``network_error``,
    ``local_changes_conflict``, ``branch_not_found`` ...) and ``detail`` the
    backend's own message, usually the tail of git's stderr.
    """

    def __init__(self, category: VcsErrorCategory, reason: str, detail: str = ""):
        self.category = category
        self.reason = reason
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.detail:
            return f"{self.reason}: {self.detail}"
        return self.reason

    def __repr__(self) -> str:
        return f"VcsError({self.category.value!r}, {self.reason!r}, {self.detail!r})"

    @classmethod
    def branch_not_found(cls, branch: str) -> "VcsError":
        return cls(VcsErrorCategory.NOT_FOUND, "branch_not_found", f"failed to find branch: {branch}")

    @classmethod
    def repo_not_found(cls, repo: str) -> "VcsError":
        return cls(VcsErrorCategory.NOT_FOUND, "repo_not_found", f"failed to find repo: {repo}")

    @classmethod
    def url_not_set(cls, repo: Optional[str] = None) -> "VcsError":
        detail = "no url was set for the repo"
        if repo:
            detail = f"{detail}: {repo}"
        return cls(VcsErrorCategory.NOT_FOUND, "url_not_set", detail)

    @classmethod
    def fast_forward_only(cls, detail: str = "only fast-forward supported") -> "VcsError":
        return cls(VcsErrorCategory.CONFLICT, "not_fast_forward", detail)


class CanceledError(SyncError):
    """The repository was never operated on because the run was canceled."""

    def __init__(self, repo_id: str):
        self.repo_id = repo_id
        super().__init__(f"canceled before start: {repo_id}")
