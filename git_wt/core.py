"""Core worktree lifecycle for git-wt"""

import os
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable, List, Optional

import git

from git_wt.config import Config, resolve_config
from git_wt.constants import DETACHED_HEAD, GIT_POINTER, UNKNOWN_BRANCH, HookEvent
from git_wt.exceptions import GitOperationError, GitWtError
from git_wt.models.hook import HookContext, HookOptions
from git_wt.models.worktree import MergeResult, Worktree, WorktreeResult
from git_wt.services.color_service import ColorAssigner, is_worktree_name
from git_wt.services.git import BranchResolver, GitOperations, WorktreeService, find_repo_root
from git_wt.services.git.worktrees import removal_blocked_by_changes
from git_wt.services.hook_runner import HookRunner
from git_wt.utils.logging import get_logger
from git_wt.utils.threading import get_optimal_worker_count

logger = get_logger(__name__)

_INVALID_BRANCH_CHARS = re.compile(r"[\s~^:?*\[\]\\]")


def get_worktrees_base(repo_root: str, config: Config) -> str:
    """Directory holding the worktrees of ``repo_root``.

    A repository nested under ``projects_dir`` keeps its relative nesting
    under ``worktrees_dir``; any other repository uses its base name.
    """
    root = Path(os.path.abspath(repo_root))
    projects = Path(os.path.abspath(config.projects_dir))
    try:
        relative = root.relative_to(projects)
    except ValueError:
        relative = None
    if relative is None or not relative.parts:
        return os.path.join(config.worktrees_dir, root.name)
    return os.path.join(config.worktrees_dir, *relative.parts)


def build_branch_name(leaf: str, config: Config) -> str:
    """Full branch name for a worktree: ``<branch_prefix>/<leaf>``."""
    leaf = leaf.lstrip("/").replace(" ", "-")
    prefix = config.branch_prefix.rstrip("/")
    return f"{prefix}/{leaf}" if prefix else leaf


def is_valid_branch_name(name: str) -> bool:
    """Conservative subset of git's ref name rules."""
    if not name or name.startswith(("-", ".")) or name.endswith(("/", ".")):
        return False
    if ".." in name or "//" in name:
        return False
    return not _INVALID_BRANCH_CHARS.search(name)


def _read_branch(path: str) -> str:
    try:
        branch = git.Git(path).rev_parse("--abbrev-ref", "HEAD").strip()
    except git.exc.GitCommandError as e:
        logger.debug(f"Could not read branch of {path}: {e}")
        return UNKNOWN_BRANCH
    if not branch or branch == DETACHED_HEAD:
        return UNKNOWN_BRANCH
    return branch


def _config_scope(cwd: str, toplevel: str, repo_root: str):
    """(cwd, root) pair the config is resolved for.

    Inside a linked worktree the committed ``.wt/config.json`` files live in
    that worktree's own checkout, so its toplevel is the root of the scope
    chain. Anywhere else the main working tree is.
    """
    cwd_path = os.path.realpath(cwd)
    top_path = os.path.realpath(toplevel)
    if cwd_path == top_path or cwd_path.startswith(top_path + os.sep):
        return cwd_path, top_path
    return cwd, repo_root


def list_worktrees_under(repo_root: str, config: Config) -> List[Worktree]:
    """Worktrees of ``repo_root`` found on disk, sorted by name.

    A directory counts when it carries a ``.git`` pointer; its branch is
    read live and reported as "unknown" when detached or unreadable.
    """
    base = get_worktrees_base(repo_root, config)
    if not os.path.isdir(base):
        return []

    worktrees = []
    for name in sorted(os.listdir(base)):
        path = os.path.join(base, name)
        if not os.path.isdir(path) or not os.path.exists(os.path.join(path, GIT_POINTER)):
            continue
        worktrees.append(Worktree(name=name, path=path, branch=_read_branch(path)))
    return worktrees


class WorktreeManager:
    """Creates, lists, removes and merges the worktrees of one repository."""

    def __init__(
        self,
        repo_path: str,
        config: Optional[Config] = None,
        cwd: Optional[str] = None,
        color_assigner: Optional[ColorAssigner] = None,
        hook_runner: Optional[HookRunner] = None,
    ):
        """Initialize the manager.

        Args:
            repo_path: Any path inside the repository or one of its worktrees
            config: Effective configuration; resolved for ``cwd`` when omitted
            cwd: Working directory used to resolve the config (defaults to the process cwd)
            color_assigner: Color assignment service
            hook_runner: Hook execution service

        Raises:
            NotAGitRepositoryError: If ``repo_path`` is not inside a git repository
        """
        toplevel = find_repo_root(repo_path)
        self.worktree_service = WorktreeService(toplevel)
        # Linked worktrees share the main working tree's layout and colors
        self.repo_root = self.worktree_service.get_main_worktree_path() or toplevel
        if self.repo_root != toplevel:
            self.worktree_service = WorktreeService(self.repo_root)

        self.config = config or resolve_config(*_config_scope(cwd or os.getcwd(), toplevel, self.repo_root))
        self.git_ops = GitOperations(self.repo_root)
        self.branch_resolver = BranchResolver(self.repo_root)
        self.colors = color_assigner or ColorAssigner(config_loader=lambda _root: self.config)
        self.hooks = hook_runner or HookRunner()
        logger.debug(f"Managing worktrees of {self.repo_root} under {self.worktrees_base()}")

    def worktrees_base(self) -> str:
        return get_worktrees_base(self.repo_root, self.config)

    def main_repo_path(self) -> Optional[str]:
        """Path of the main working tree (first entry of git's worktree registry)."""
        return self.worktree_service.get_main_worktree_path()

    def create_worktree(self, name: str, branch_name: str, base_ref: Optional[str] = None) -> WorktreeResult:
        """Create the worktree directory ``name`` checked out to ``branch_name``.

        Args:
            name: Directory name under the worktrees base
            branch_name: Branch to check out, created or synced as needed
            base_ref: Commit-ish a new branch starts from

        Returns:
            WorktreeResult; an existing directory is reported, never touched

        Raises:
            BranchResolutionError: If the branch can't be resolved
            GitOperationError: If git refuses to add the worktree
        """
        base = self.worktrees_base()
        path = os.path.join(base, name)
        if os.path.exists(path):
            logger.warning(f"Worktree directory already exists: {path}")
            return WorktreeResult(
                success=False,
                name=name,
                path=path,
                branch=branch_name,
                error="Worktree directory already exists",
            )

        # Stale registrations would make git refuse the path
        self.worktree_service.prune_worktrees()
        os.makedirs(base, exist_ok=True)
        self.git_ops.fetch_all()

        resolution = self.branch_resolver.ensure_branch(branch_name, base_ref)
        self.worktree_service.add_worktree(path, branch_name)

        return WorktreeResult(
            success=True,
            name=name,
            path=path,
            branch=branch_name,
            branch_created=resolution.created,
            branch_source=resolution.source.value,
        )

    def remove_worktree(self, path: str, force: bool = False) -> WorktreeResult:
        """Remove the worktree at ``path``. Failures are returned, not raised.

        A removal refused because of modified or untracked files sets
        ``needs_force``; the caller decides whether to retry with ``force``.
        """
        self.worktree_service.prune_worktrees()
        success, error = self.worktree_service.remove_worktree(path, force=force)
        return WorktreeResult(
            success=success,
            name=os.path.basename(path.rstrip(os.sep)),
            path=path,
            error=error,
            needs_force=not success and not force and removal_blocked_by_changes(error),
        )

    def list_worktrees(self) -> List[Worktree]:
        return list_worktrees_under(self.repo_root, self.config)

    def find_worktree(self, name: str) -> Optional[Worktree]:
        """Worktree named exactly ``name``, else the only one whose name contains it."""
        worktrees = self.list_worktrees()
        for wt in worktrees:
            if wt.name == name:
                return wt
        matches = [wt for wt in worktrees if name in wt.name]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            logger.info(f"'{name}' matches {len(matches)} worktrees: {', '.join(w.name for w in matches)}")
        return None

    def current_worktree(self, cwd: Optional[str] = None) -> Optional[Worktree]:
        """Managed worktree containing ``cwd`` (defaults to the process cwd)."""
        cwd = os.path.realpath(cwd or os.getcwd())
        for wt in self.list_worktrees():
            wt_path = os.path.realpath(wt.path)
            if cwd == wt_path or cwd.startswith(wt_path + os.sep):
                return wt
        return None

    def create(
        self, name: str, base_ref: Optional[str] = None, hook_options: Optional[HookOptions] = None
    ) -> WorktreeResult:
        """Full creation pipeline: worktree, color and post-create hooks.

        Git and branch-resolution errors become failed results. Hook failures
        are reported in ``hook_results`` and never fail the result.
        """
        leaf = name.strip().lstrip("/").replace(" ", "-")
        if not is_worktree_name(leaf):
            return WorktreeResult(success=False, name=name, error=f"Invalid worktree name '{name}'")

        branch_name = build_branch_name(leaf, self.config)
        if not is_valid_branch_name(branch_name):
            return WorktreeResult(
                success=False, name=leaf, branch=branch_name, error=f"Invalid branch name '{branch_name}'"
            )

        try:
            result = self.create_worktree(leaf, branch_name, base_ref)
        except (GitWtError, OSError) as e:
            logger.error(f"Failed to create worktree {leaf}: {e}")
            return WorktreeResult(
                success=False,
                name=leaf,
                path=os.path.join(self.worktrees_base(), leaf),
                branch=branch_name,
                error=str(e),
            )
        if not result.success:
            return result

        result.color = self.colors.assign(self.repo_root, leaf)
        context = HookContext(
            source=self.repo_root,
            path=result.path,
            branch=branch_name,
            name=leaf,
            color=result.color,
        )
        result.hook_results = self.hooks.run(HookEvent.POST_CREATE, self.config, context, hook_options)
        logger.info(f"Created worktree {leaf} at {result.path} ({result.branch_source} branch {branch_name})")
        return result

    def create_many(
        self,
        names: Iterable[str],
        base_ref: Optional[str] = None,
        hook_options: Optional[HookOptions] = None,
        max_workers: Optional[int] = None,
    ) -> List[WorktreeResult]:
        """Run the creation pipeline for several names concurrently.

        Returns:
            One result per name, in input order
        """
        names = list(names)
        if not names:
            return []

        workers = get_optimal_worker_count(max_workers, task_count=len(names))
        logger.debug(f"Creating {len(names)} worktrees with {workers} workers")

        results: List[Optional[WorktreeResult]] = [None] * len(names)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(self.create, name, base_ref, hook_options): index
                for index, name in enumerate(names)
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    logger.error(f"Error creating worktree {names[index]}: {e}")
                    results[index] = WorktreeResult(success=False, name=names[index], error=str(e))
        return results

    def destroy(
        self, worktree: Worktree, force: bool = False, hook_options: Optional[HookOptions] = None
    ) -> WorktreeResult:
        """Run pre-destroy hooks, remove the worktree and release its color."""
        color = self.colors.get_color(self.repo_root, worktree.name)
        context = HookContext(
            source=self.repo_root,
            path=worktree.path,
            branch=worktree.branch,
            name=worktree.name,
            color=color,
        )
        hook_results = self.hooks.run(HookEvent.PRE_DESTROY, self.config, context, hook_options)

        result = self.remove_worktree(worktree.path, force=force)
        result.name = worktree.name
        result.branch = worktree.branch
        result.color = color
        result.hook_results = hook_results

        if result.success:
            self.colors.free(self.repo_root, worktree.name)
            logger.info(f"Destroyed worktree {worktree.name}")
        return result

    def merge(
        self,
        worktree: Worktree,
        target_branch: Optional[str] = None,
        stash: bool = False,
        remove: bool = False,
        delete_branch: bool = False,
        hook_options: Optional[HookOptions] = None,
    ) -> MergeResult:
        """Merge the worktree's branch into ``target_branch`` in the main working tree.

        Args:
            worktree: Worktree whose branch is merged
            target_branch: Branch receiving the merge (defaults to the main branch)
            stash: Stash uncommitted changes of the main working tree first
            remove: Destroy the worktree once the merge succeeded
            delete_branch: Also delete the merged branch; only after a removal
            hook_options: Options for the pre-destroy hooks of the removal

        Returns:
            MergeResult; conflicts and refusals are reported, not raised. A
            failed cleanup sets ``cleanup_error`` but leaves ``success`` True.
        """
        source_branch = worktree.branch
        main_ops = GitOperations(self.main_repo_path() or self.repo_root)
        if target_branch is None:
            target_branch = main_ops.get_main_branch()

        def failed(error: str, stashed: bool = False) -> MergeResult:
            logger.warning(f"Merge of {source_branch} into {target_branch} failed: {error}")
            return MergeResult(
                success=False,
                source_branch=source_branch,
                target_branch=target_branch,
                stashed=stashed,
                error=error,
            )

        if source_branch == UNKNOWN_BRANCH:
            return failed(f"Worktree '{worktree.name}' has no branch checked out")
        if source_branch == target_branch:
            return failed(f"Cannot merge branch '{source_branch}' into itself")
        if target_branch not in [b.name for b in main_ops.get_local_branches()]:
            return failed(f"Branch '{target_branch}' does not exist")

        stashed = False
        if main_ops.has_uncommitted_changes(untracked=False):
            if not stash:
                return failed("Main working tree has uncommitted changes; commit them or stash first")
            try:
                main_ops.stash()
            except GitOperationError as e:
                return failed(str(e))
            stashed = True

        try:
            main_ops.merge_branch(source_branch, target_branch)
        except GitOperationError as e:
            return failed(str(e), stashed=stashed)

        result = MergeResult(
            success=True,
            source_branch=source_branch,
            target_branch=target_branch,
            stashed=stashed,
        )
        if remove or delete_branch:
            self._clean_up_merged(worktree, result, main_ops, delete_branch, hook_options)
        return result

    def _clean_up_merged(
        self,
        worktree: Worktree,
        result: MergeResult,
        main_ops: GitOperations,
        delete_branch: bool,
        hook_options: Optional[HookOptions],
    ) -> None:
        result.removal = self.destroy(worktree, hook_options=hook_options)
        if not result.removal.success:
            result.cleanup_error = result.removal.error or "Failed to remove worktree"
            return
        if not delete_branch:
            return
        try:
            # Not forced: the branch was just merged
            main_ops.delete_branch(result.source_branch)
            result.branch_deleted = True
        except GitOperationError as e:
            logger.warning(f"Could not delete branch {result.source_branch}: {e}")
            result.cleanup_error = str(e)
