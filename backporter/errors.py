"""Exception types raised by backporter."""

from typing import Optional


class BackporterError(Exception):
    """Base class for every error backporter reports to the user."""


class ConfigurationError(BackporterError):
    """Missing token, malformed version string or undetectable repository."""


class PreconditionError(BackporterError):
    """The repository is not in a state where work can start."""


class DirtyWorkingTreeError(PreconditionError):
    """The working tree has uncommitted changes."""

    def __init__(self, message: str = "Working tree has uncommitted changes, commit or stash them first"):
        super().__init__(message)


class BranchMismatchError(PreconditionError):
    """The checked out branch is not the expected backport branch."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected to be on branch {expected}, but on {actual}")


class ReferenceNotFoundError(PreconditionError):
    """A ref could not be resolved to a commit."""

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Could not resolve git reference '{ref}'")


class GitError(BackporterError):
    """A git command exited with a non-zero status."""


class GitHubAPIError(BackporterError):
    """A GitHub API call failed."""

    def __init__(self, message: str, status: Optional[int] = None, data: object = None):
        self.status = status
        self.data = data
        if status is not None:
            message = f"{message} (HTTP {status}): {data}"
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """GitHub kept rate limiting after all retries were spent."""


class StalePRDataError(BackporterError):
    """A pull request is still missing data after being refetched."""

    def __init__(self, number: int, missing: str = "commit count"):
        self.number = number
        super().__init__(f"PR #{number} has no {missing} even after refetching it")
