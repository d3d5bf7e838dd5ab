"""Branch resolution for new worktrees."""

import git
from typing import List, Optional, Tuple

from git_wt.constants import DEFAULT_REMOTE, DETACHED_HEAD
from git_wt.exceptions import GitOperationError, InvalidBaseReferenceError, RemoteFetchError
from git_wt.models.branch import BranchResolutionResult, BranchSource
from git_wt.services.git.errors import git_error_message
from git_wt.utils.logging import get_logger

logger = get_logger(__name__)


class BranchResolver:
    """Makes sure the branch behind a new worktree exists.

    The decision order never discards local work: an existing local branch
    is reused (and only fast-forwarded to a named remote base), a same-named
    remote branch is tracked, and a brand-new branch is created last.
    """

    def __init__(self, repo_path: str, remote_name: str = DEFAULT_REMOTE):
        """Initialize the resolver.

        Args:
            repo_path: Path to the git repository
            remote_name: Remote searched for a branch with the requested name
        """
        self.repo_path = repo_path
        self.remote_name = remote_name

    def _get_repo(self):
        """Get a fresh git.Repo instance (one per call for thread safety)."""
        return git.Repo(self.repo_path)

    def _rev_parse(self, repo, ref: str) -> Optional[str]:
        """Commit a ref points at, or None if it does not resolve to one."""
        try:
            return repo.git.rev_parse("--verify", "--quiet", f"{ref}^{{commit}}").strip() or None
        except git.exc.GitCommandError:
            return None

    def _split_remote_ref(self, repo, ref: Optional[str]) -> Optional[Tuple[str, str]]:
        """Split ``<remote>/<branch>`` into its parts when ``<remote>`` is configured."""
        if not ref or "/" not in ref:
            return None
        if ref.startswith("refs/remotes/"):
            ref = ref[len("refs/remotes/"):]
        remote, branch = ref.split("/", 1)
        remote_names: List[str] = [r.name for r in repo.remotes]
        if remote in remote_names and branch:
            return remote, branch
        return None

    def branch_exists_local(self, branch_name: str) -> bool:
        """Check whether ``refs/heads/<branch_name>`` exists."""
        try:
            self._get_repo().git.show_ref("--verify", "--quiet", f"refs/heads/{branch_name}")
            return True
        except git.exc.GitCommandError:
            return False

    def branch_exists_remote(self, branch_name: str) -> bool:
        """Ask the remote whether it has a branch named ``branch_name``."""
        try:
            output = self._get_repo().git.ls_remote(
                "--exit-code", "--heads", self.remote_name, f"refs/heads/{branch_name}"
            )
            return bool(output.strip())
        except git.exc.GitCommandError as e:
            logger.debug(f"No remote branch {self.remote_name}/{branch_name}: {e.status}")
            return False

    def ensure_branch(self, branch_name: str, base_ref: Optional[str] = None) -> BranchResolutionResult:
        """Make sure ``branch_name`` exists locally, creating or syncing it as needed.

        Args:
            branch_name: Branch the worktree will check out
            base_ref: Commit-ish to branch from; "HEAD" means the current
                (possibly detached) commit; ``<remote>/<branch>`` is fetched first

        Returns:
            BranchResolutionResult describing where the branch came from

        Raises:
            InvalidBaseReferenceError: If base_ref does not resolve to a commit
            RemoteFetchError: If a remote base_ref can't be fetched and was never fetched before
            GitOperationError: If creating or fetching the branch fails
        """
        repo = self._get_repo()

        # A detached checkout is pinned to its commit hash
        if base_ref == DETACHED_HEAD:
            sha = self._rev_parse(repo, DETACHED_HEAD)
            if sha is None:
                raise InvalidBaseReferenceError(
                    base_ref,
                    "HEAD does not point to a valid commit. Is this a new repository with no commits?",
                )
            logger.debug(f"Resolved detached HEAD to {sha}")
            base_ref = sha

        remote_base = self._split_remote_ref(repo, base_ref)
        if remote_base:
            remote, remote_branch = remote_base
            try:
                repo.git.fetch(remote, f"{remote_branch}:refs/remotes/{remote}/{remote_branch}")
                logger.debug(f"Fetched {remote}/{remote_branch}")
            except git.exc.GitCommandError as e:
                if self._rev_parse(repo, base_ref) is None:
                    raise RemoteFetchError(remote_branch)
                logger.warning(
                    f"Could not fetch {base_ref}, using previously fetched copy: "
                    f"{git_error_message('git fetch', e)}"
                )

        if base_ref is not None and self._rev_parse(repo, base_ref) is None:
            raise InvalidBaseReferenceError(base_ref)

        if self.branch_exists_local(branch_name):
            if remote_base:
                updated = self._sync_to_remote(repo, branch_name, base_ref)
                if updated:
                    return BranchResolutionResult(created=False, source=BranchSource.UPDATED_FROM_REMOTE)
            logger.debug(f"Using existing local branch {branch_name}")
            return BranchResolutionResult(created=False, source=BranchSource.LOCAL)

        if self.branch_exists_remote(branch_name):
            self._track_remote_branch(repo, branch_name)
            return BranchResolutionResult(created=False, source=BranchSource.REMOTE)

        try:
            if base_ref:
                repo.git.branch(branch_name, base_ref)
            else:
                repo.git.branch(branch_name)
        except git.exc.GitCommandError as e:
            raise GitOperationError("create_branch", branch_name, git_error_message("git branch", e))

        logger.info(f"Created branch {branch_name} from {base_ref or 'HEAD'}")
        return BranchResolutionResult(created=True, source=BranchSource.NEW)

    def _sync_to_remote(self, repo, branch_name: str, remote_ref: str) -> bool:
        """Force ``branch_name`` to ``remote_ref`` when they differ.

        Returns:
            True if the branch was moved. Comparison or update failures keep
            the local branch as it is.
        """
        local_sha = self._rev_parse(repo, f"refs/heads/{branch_name}")
        remote_sha = self._rev_parse(repo, remote_ref)
        if local_sha is None or remote_sha is None or local_sha == remote_sha:
            return False
        try:
            repo.git.branch("-f", branch_name, remote_ref)
        except git.exc.GitCommandError as e:
            # e.g. the branch is checked out in another worktree
            logger.warning(
                f"Keeping local {branch_name}: {git_error_message('git branch -f', e)}"
            )
            return False
        logger.info(f"Updated {branch_name} from {local_sha[:7]} to {remote_ref} ({remote_sha[:7]})")
        return True

    def _track_remote_branch(self, repo, branch_name: str) -> None:
        """Create a local branch from the same-named remote branch."""
        remote = self.remote_name
        try:
            repo.git.fetch(remote, f"{branch_name}:{branch_name}")
        except git.exc.GitCommandError as e:
            raise GitOperationError("fetch_branch", branch_name, git_error_message("git fetch", e))

        try:
            repo.git.branch(f"--set-upstream-to={remote}/{branch_name}", branch_name)
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not set upstream for {branch_name}: {e}")

        logger.info(f"Created local branch {branch_name} from {remote}/{branch_name}")
