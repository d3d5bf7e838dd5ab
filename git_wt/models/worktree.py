"""Worktree data models."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from git_wt.models.hook import HookResult


@dataclass
class Worktree:
    """A managed worktree found under the worktrees base directory."""

    name: str
    path: str
    branch: str


@dataclass
class WorktreeInfo:
    """One entry of git's own worktree registry."""

    path: str
    branch_name: str
    commit_sha: str
    is_main: bool  # Is this the main working tree?
    is_orphaned: bool  # Directory missing?
    is_bare: bool = False
    is_detached: bool = False

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def __str__(self) -> str:
        """String representation of worktree."""
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        branch = self.branch_name or "(detached)"
        return f"{branch} @ {self.path}{main_marker} [{status}]"


@dataclass
class WorktreeResult:
    """Outcome of creating or removing a worktree."""

    success: bool
    name: Optional[str] = None
    path: Optional[str] = None
    branch: Optional[str] = None
    branch_created: bool = False
    branch_source: Optional[str] = None
    error: Optional[str] = None
    needs_force: bool = False  # Removal blocked by modified or untracked files
    color: Optional[str] = None
    hook_results: List[HookResult] = field(default_factory=list)

    @property
    def failed_hooks(self) -> List[HookResult]:
        return [r for r in self.hook_results if not r.success]


@dataclass
class MergeResult:
    """Outcome of merging a worktree's branch into another branch."""

    success: bool
    source_branch: str
    target_branch: str
    stashed: bool = False
    error: Optional[str] = None
    removal: Optional[WorktreeResult] = None  # Set when the worktree was removed afterwards
    branch_deleted: bool = False
    cleanup_error: Optional[str] = None  # Merge succeeded but removal or branch deletion failed
