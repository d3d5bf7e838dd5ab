"""Git-related services for git-wt."""

from .operations import GitOperations, find_repo_root, is_git_repo
from .branches import BranchResolver
from .worktrees import WorktreeService

__all__ = [
    "GitOperations",
    "BranchResolver",
    "WorktreeService",
    "find_repo_root",
    "is_git_repo",
]
