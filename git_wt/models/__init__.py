"""Data models for git-wt."""

from .branch import Branch, BranchSource, BranchResolutionResult
from .worktree import Worktree, WorktreeInfo, WorktreeResult, MergeResult
from .hook import HookContext, HookOptions, HookResult

__all__ = [
    "Branch",
    "BranchSource",
    "BranchResolutionResult",
    "Worktree",
    "WorktreeInfo",
    "WorktreeResult",
    "MergeResult",
    "HookContext",
    "HookOptions",
    "HookResult",
]
