"""Worktree registry service for git-wt."""

import git
import os
import re
from typing import Optional, Dict, Any
from threading import Lock

from git_wt.exceptions import GitOperationError
from git_wt.models.worktree import WorktreeInfo
from git_wt.services.git.errors import git_error_detail, git_error_message
from git_wt.utils.logging import get_logger

logger = get_logger(__name__)

_CHECKED_OUT_PATTERN = re.compile(
    r"'(?P<branch>[^']+)' is already (?:checked out|used by worktree) at '(?P<path>[^']+)'"
)


def removal_blocked_by_changes(error_msg: Optional[str]) -> bool:
    """True if a failed ``git worktree remove`` needs --force because of local changes."""
    if not error_msg:
        return False
    return "modified or untracked files" in error_msg or "use --force" in error_msg


def describe_add_failure(branch_name: str, detail: str) -> str:
    """Most specific explanation for a failed ``git worktree add``."""
    match = _CHECKED_OUT_PATTERN.search(detail)
    if match:
        return (
            f"Branch '{match.group('branch')}' is already checked out in another worktree "
            f"at {match.group('path')}"
        )
    if "already exists" in detail:
        return f"Worktree path already exists: {detail}"
    if "invalid reference" in detail:
        return f"Branch '{branch_name}' does not exist"
    return detail


class WorktreeService:
    """Service wrapping git's own worktree registry."""

    def __init__(self, repo_path: str):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the git repository
        """
        self.repo_path = repo_path
        self._worktree_info: Optional[list[WorktreeInfo]] = None  # Registry snapshot, reset on every change
        self._cache_lock = Lock()

    def _get_repo(self):
        """Open the repository; one instance per call so threads never share one."""
        return git.Repo(self.repo_path)

    def clear_cache(self):
        """Clear the worktree information cache."""
        with self._cache_lock:
            self._worktree_info = None

    @staticmethod
    def _to_info(entry: Dict[str, Any], is_main: bool) -> WorktreeInfo:
        path = entry.get("path", "")
        return WorktreeInfo(
            path=path,
            branch_name=entry.get("branch", ""),
            commit_sha=entry.get("HEAD", ""),
            is_main=is_main,
            is_orphaned=not os.path.exists(path) if path else True,
            is_bare=entry.get("bare", False),
            is_detached=entry.get("detached", False),
        )

    @classmethod
    def parse_porcelain(cls, output: str) -> list[WorktreeInfo]:
        """Parse ``git worktree list --porcelain`` output.

        Format:
            worktree /path/to/worktree
            HEAD commit_sha
            branch refs/heads/branch-name   (or "detached" / "bare")
            (blank line between worktrees)

        The first entry is always the main working tree.
        """
        worktree_list: list[WorktreeInfo] = []
        current: Dict[str, Any] = {}

        for line in output.split("\n"):
            line = line.rstrip("\r")

            if line.startswith("worktree "):
                if current.get("path"):
                    worktree_list.append(cls._to_info(current, is_main=not worktree_list))
                current = {"path": line[len("worktree "):]}
            elif line.startswith("HEAD "):
                current["HEAD"] = line[len("HEAD "):]
            elif line.startswith("branch "):
                branch_ref = line[len("branch "):]
                if branch_ref.startswith("refs/heads/"):
                    current["branch"] = branch_ref[len("refs/heads/"):]
                else:
                    current["branch"] = branch_ref
            elif line == "detached":
                current["branch"] = ""
                current["detached"] = True
            elif line == "bare":
                current["bare"] = True

        # Output may end without a blank line
        if current.get("path"):
            worktree_list.append(cls._to_info(current, is_main=not worktree_list))

        return worktree_list

    def get_worktree_info(self) -> list[WorktreeInfo]:
        """Get detailed information about all registered worktrees.

        Returns:
            List of WorktreeInfo objects, main working tree first
        """
        with self._cache_lock:
            if self._worktree_info is not None:
                return self._worktree_info

        worktree_list = []
        try:
            output = self._get_repo().git.worktree("list", "--porcelain")
            worktree_list = self.parse_porcelain(output)
            logger.debug(f"Found {len(worktree_list)} worktrees")
            for wt in worktree_list:
                logger.debug(f"  {wt}")
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not list worktrees: {e}")

        with self._cache_lock:
            self._worktree_info = worktree_list
        return worktree_list

    def get_main_worktree_path(self) -> Optional[str]:
        """Path of the main working tree, or None if it can't be determined."""
        worktrees = self.get_worktree_info()
        return worktrees[0].path if worktrees else None

    def add_worktree(self, path: str, branch_name: str) -> None:
        """Attach a new working copy at ``path`` checked out to an existing branch.

        Raises:
            GitOperationError: With the most specific reason git reported
        """
        try:
            self._get_repo().git.worktree("add", path, branch_name)
        except git.exc.GitCommandError as e:
            reason = describe_add_failure(branch_name, git_error_detail(e))
            logger.error(f"Failed to add worktree at {path}: {reason}")
            raise GitOperationError("worktree_add", branch_name, reason)
        finally:
            self.clear_cache()
        logger.info(f"Added worktree at {path} for branch {branch_name}")

    def remove_worktree(self, path: str, force: bool = False) -> tuple[bool, Optional[str]]:
        """Detach and delete the working copy at ``path``.

        Args:
            path: Worktree directory
            force: Discard modified and untracked files

        Returns:
            (success, error_message); the message keeps git's own wording so
            callers can tell a dirty tree from other failures
        """
        args = ["remove", "--force", path] if force else ["remove", path]
        try:
            self._get_repo().git.worktree(*args)
        except git.exc.GitCommandError as e:
            error_msg = git_error_message("git worktree remove", e)
            logger.warning(f"Could not remove worktree at {path}: {error_msg}")
            return False, error_msg
        finally:
            self.clear_cache()
        logger.info(f"Removed worktree at {path}")
        return True, None

    def prune_worktrees(self) -> tuple[bool, Optional[str]]:
        """Forget registrations whose directory no longer exists.

        Returns:
            (success, error_message)
        """
        try:
            self._get_repo().git.worktree("prune")
        except git.exc.GitCommandError as e:
            error_msg = git_error_message("git worktree prune", e)
            logger.warning(f"Failed to prune worktrees: {error_msg}")
            return False, error_msg
        finally:
            self.clear_cache()
        logger.debug("Pruned stale worktree registrations")
        return True, None
