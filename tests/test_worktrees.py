"""Tests for the worktree registry service"""
import shutil

import pytest

from git_wt.exceptions import GitOperationError
from git_wt.services.git.worktrees import (
    WorktreeService,
    describe_add_failure,
    removal_blocked_by_changes,
)


PORCELAIN = """worktree /repo
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /wt/feature
HEAD 2222222222222222222222222222222222222222
branch refs/heads/alice/feature

worktree /wt/detached
HEAD 3333333333333333333333333333333333333333
detached
"""


class TestParsePorcelain:
    """Test parsing of `git worktree list --porcelain`."""

    def test_parse_entries(self):
        """Test main, linked and detached entries."""
        worktrees = WorktreeService.parse_porcelain(PORCELAIN)
        assert [w.path for w in worktrees] == ["/repo", "/wt/feature", "/wt/detached"]
        assert worktrees[0].is_main is True
        assert worktrees[1].is_main is False
        assert worktrees[1].branch_name == "alice/feature"
        assert worktrees[1].name == "feature"
        assert worktrees[2].is_detached is True
        assert worktrees[2].branch_name == ""

    def test_orphaned_paths(self):
        """Test entries whose directory is gone are flagged."""
        worktrees = WorktreeService.parse_porcelain(PORCELAIN)
        assert all(w.is_orphaned for w in worktrees)

    def test_bare_entry(self):
        """Test a bare main repository."""
        worktrees = WorktreeService.parse_porcelain("worktree /srv/repo.git\nbare\n")
        assert len(worktrees) == 1
        assert worktrees[0].is_bare is True

    def test_empty_output(self):
        """Test no output gives no worktrees."""
        assert WorktreeService.parse_porcelain("") == []


class TestErrorClassification:
    """Test interpretation of git's error messages."""

    def test_removal_blocked_by_changes(self):
        """Test detection of removals that need --force."""
        assert removal_blocked_by_changes(
            "fatal: '/wt/x' contains modified or untracked files, use --force to delete it"
        )
        assert not removal_blocked_by_changes("fatal: '/wt/x' is not a working tree")
        assert not removal_blocked_by_changes(None)

    def test_describe_branch_checked_out(self):
        """Test the branch-in-use explanation."""
        reason = describe_add_failure(
            "feature", "fatal: 'feature' is already checked out at '/repo'"
        )
        assert reason == "Branch 'feature' is already checked out in another worktree at /repo"

    def test_describe_branch_used_by_worktree(self):
        """Test the newer git wording for a branch in use."""
        reason = describe_add_failure(
            "feature", "fatal: 'feature' is already used by worktree at '/wt/feature'"
        )
        assert "already checked out in another worktree at /wt/feature" in reason

    def test_describe_other_failure(self):
        """Test unknown failures pass through."""
        assert describe_add_failure("x", "something odd") == "something odd"


class TestWorktreeService:
    """Test worktree registry operations against a real repository."""

    def test_main_worktree_path(self, git_repo):
        """Test the main working tree is the first registry entry."""
        service = WorktreeService(git_repo.working_tree_dir)
        assert service.get_main_worktree_path() == git_repo.working_tree_dir
        info = service.get_worktree_info()
        assert len(info) == 1
        assert info[0].branch_name == "main"
        assert info[0].is_orphaned is False

    def test_add_and_remove(self, git_repo, temp_dir):
        """Test adding a worktree updates the registry and removal cleans up."""
        git_repo.git.branch("feature")
        service = WorktreeService(git_repo.working_tree_dir)
        path = str(temp_dir / "wt" / "feature")

        service.add_worktree(path, "feature")
        paths = [w.path for w in service.get_worktree_info()]
        assert path in paths

        success, error = service.remove_worktree(path)
        assert success is True
        assert error is None
        assert path not in [w.path for w in service.get_worktree_info()]

    def test_add_branch_already_checked_out(self, git_repo, temp_dir):
        """Test adding a worktree for the main tree's branch fails with a clear reason."""
        service = WorktreeService(git_repo.working_tree_dir)
        with pytest.raises(GitOperationError) as exc_info:
            service.add_worktree(str(temp_dir / "dup"), "main")
        assert "already checked out in another worktree" in str(exc_info.value)

    def test_remove_dirty_needs_force(self, git_repo, temp_dir):
        """Test a worktree with untracked files is only removed with force."""
        git_repo.git.branch("feature")
        service = WorktreeService(git_repo.working_tree_dir)
        path = temp_dir / "wt" / "feature"
        service.add_worktree(str(path), "feature")
        (path / "scratch.txt").write_text("local work\n")

        success, error = service.remove_worktree(str(path))
        assert success is False
        assert removal_blocked_by_changes(error)
        assert path.exists()

        success, error = service.remove_worktree(str(path), force=True)
        assert success is True
        assert not path.exists()

    def test_prune_drops_deleted_directories(self, git_repo, temp_dir):
        """Test pruning forgets worktrees whose directory was deleted."""
        git_repo.git.branch("feature")
        service = WorktreeService(git_repo.working_tree_dir)
        path = temp_dir / "wt" / "feature"
        service.add_worktree(str(path), "feature")
        shutil.rmtree(path)

        success, error = service.prune_worktrees()
        assert success is True
        assert [w.path for w in service.get_worktree_info()] == [git_repo.working_tree_dir]
