"""Repository queries and plain git actions."""

import git
from typing import List, Optional

from git_wt.constants import DETACHED_HEAD
from git_wt.exceptions import GitOperationError, NotAGitRepositoryError
from git_wt.models.branch import Branch
from git_wt.services.git.errors import git_error_message
from git_wt.utils.logging import get_logger

logger = get_logger(__name__)

MAIN_BRANCH_CANDIDATES = ("main", "master", "develop")


def find_repo_root(path: str) -> str:
    """Return the top-level directory of the working tree containing ``path``.

    Raises:
        NotAGitRepositoryError: If ``path`` is not inside a git working tree
    """
    try:
        repo = git.Repo(path, search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        raise NotAGitRepositoryError(path)
    try:
        if repo.working_tree_dir is None:
            raise NotAGitRepositoryError(path)
        return str(repo.working_tree_dir)
    finally:
        repo.close()


def is_git_repo(path: str) -> bool:
    """Check whether ``path`` is inside a git working tree."""
    try:
        find_repo_root(path)
        return True
    except NotAGitRepositoryError:
        return False


class GitOperations:
    """Service for repository queries and plain git actions."""

    def __init__(self, repo_path: str):
        """Initialize the service.

        Args:
            repo_path: Working tree the commands run in
        """
        self.repo_path = repo_path

    def _get_repo(self):
        """Open the repository afresh (GitPython Repo objects are not shared across threads)."""
        return git.Repo(self.repo_path)

    def get_current_branch(self) -> Optional[str]:
        """Name of the checked-out branch, "HEAD" when detached, None on error."""
        try:
            return self._get_repo().git.rev_parse("--abbrev-ref", "HEAD").strip()
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not read current branch: {e}")
            return None

    def is_detached(self) -> bool:
        """True when HEAD is detached or unreadable."""
        branch = self.get_current_branch()
        return not branch or branch == DETACHED_HEAD

    def fetch_all(self) -> bool:
        """Fetch and prune all remotes. Failures are logged, not raised.

        Returns:
            True if the fetch succeeded
        """
        try:
            self._get_repo().git.fetch("--all", "--prune")
            logger.debug("Fetched all remotes")
            return True
        except git.exc.GitCommandError as e:
            logger.info(git_error_message("git fetch --all", e))
            return False

    def get_local_branches(self) -> List[Branch]:
        """List local branches, marking the checked-out one."""
        try:
            repo = self._get_repo()
            current = self.get_current_branch()
            names = repo.git.for_each_ref("--format=%(refname:short)", "refs/heads").splitlines()
            return [
                Branch(name=name, is_current=name == current)
                for name in names
                if name
            ]
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not list local branches: {e}")
            return []

    def get_main_branch(self) -> str:
        """Guess the repository's main branch.

        Prefers main, master and develop in that order, then the first local branch.
        """
        names = [b.name for b in self.get_local_branches()]
        for candidate in MAIN_BRANCH_CANDIDATES:
            if candidate in names:
                return candidate
        return names[0] if names else "main"

    def has_uncommitted_changes(self, untracked: bool = True) -> bool:
        """Check for modified or staged files (and untracked ones unless disabled)."""
        try:
            return self._get_repo().is_dirty(untracked_files=untracked)
        except Exception as e:
            logger.warning(f"Could not check working tree status: {e}")
            return False

    def stash(self, include_untracked: bool = False) -> None:
        """Stash local changes to tracked files (and untracked ones if asked)."""
        args = ["push", "--include-untracked"] if include_untracked else ["push"]
        try:
            self._get_repo().git.stash(*args)
            logger.info(f"Stashed changes in {self.repo_path}")
        except git.exc.GitCommandError as e:
            raise GitOperationError("stash", message=git_error_message("git stash", e))

    def merge_branch(self, source_branch: str, target_branch: Optional[str] = None) -> str:
        """Merge ``source_branch`` into ``target_branch`` (or the current branch).

        Returns:
            Output of git merge

        Raises:
            GitOperationError: If the checkout or merge fails (e.g. conflicts)
        """
        repo = self._get_repo()
        if target_branch:
            try:
                repo.git.checkout(target_branch)
            except git.exc.GitCommandError as e:
                raise GitOperationError(
                    "checkout", target_branch, git_error_message("git checkout", e)
                )
        try:
            output = repo.git.merge(source_branch, "--no-edit")
            logger.info(f"Merged {source_branch} into {target_branch or 'current branch'}")
            return output
        except git.exc.GitCommandError as e:
            raise GitOperationError("merge", source_branch, git_error_message("git merge", e))

    def delete_branch(self, branch_name: str, force: bool = False) -> None:
        """Delete a local branch (``-D`` when forced)."""
        try:
            self._get_repo().git.branch("-D" if force else "-d", branch_name)
            logger.info(f"Deleted branch {branch_name}")
        except git.exc.GitCommandError as e:
            raise GitOperationError("delete_branch", branch_name, git_error_message("git branch", e))
