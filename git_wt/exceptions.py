"""Custom exceptions for git-wt"""

from typing import Optional


class GitWtError(Exception):
    """Base exception for all git-wt errors."""
    pass


class NotAGitRepositoryError(GitWtError):
    """Exception raised when a path is not inside a git repository."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a git repository: {path}")


class GitOperationError(GitWtError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class BranchResolutionError(GitOperationError):
    """Base class for failures while materializing a worktree's branch."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        super().__init__(operation, branch, message)
        # Resolution errors are shown to users verbatim
        if message:
            self.args = (message,)


class InvalidBaseReferenceError(BranchResolutionError):
    """Exception raised when a base reference does not resolve to a commit."""

    def __init__(self, base_ref: str, message: Optional[str] = None):
        self.base_ref = base_ref
        super().__init__(
            "verify_base",
            base_ref,
            message or f"Base branch '{base_ref}' does not exist or is not a valid reference.",
        )


class RemoteFetchError(BranchResolutionError):
    """Exception raised when a remote base cannot be fetched and has no local mirror."""

    def __init__(self, remote_branch: str, message: Optional[str] = None):
        self.remote_branch = remote_branch
        super().__init__(
            "fetch_base",
            remote_branch,
            message
            or (
                f"Failed to fetch remote branch '{remote_branch}' and no local copy exists. "
                "The remote branch may have been deleted."
            ),
        )
