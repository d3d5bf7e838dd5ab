"""Pytest fixtures for git-wt tests"""
import tempfile
from pathlib import Path

import pytest
import git

from git_wt.config import Config
from git_wt.core import WorktreeManager


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path_factory):
    """Point HOME at an empty directory and clear git-wt's environment overrides."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("WT_CONFIG", "W_PROJECTS_DIR", "W_WORKTREES_DIR", "W_DEFAULT_BRANCH_PREFIX"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


def _configure_user(repo):
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")


def commit_file(repo, name, content, message=None):
    """Write a file in the repo's working tree and commit it."""
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(message or f"Add {name}")


@pytest.fixture
def commit():
    """The commit_file helper, for tests that add history."""
    return commit_file


@pytest.fixture
def projects_dir(temp_dir):
    """Projects root the test repositories live under."""
    path = temp_dir / "code"
    path.mkdir()
    return path


@pytest.fixture
def git_repo(projects_dir):
    """Create a real Git repository with one commit on main."""
    repo_path = projects_dir / "app"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)
    _configure_user(repo)

    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")
    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def wt_config(projects_dir):
    """Config placing worktrees under <projects>/worktrees."""
    return Config(
        projects_dir=str(projects_dir),
        worktrees_dir=str(projects_dir / "worktrees"),
    )


@pytest.fixture
def manager(git_repo, wt_config):
    """WorktreeManager for git_repo with a fixed config."""
    return WorktreeManager(git_repo.working_tree_dir, config=wt_config)


@pytest.fixture
def bare_remote(temp_dir, git_repo):
    """Bare repository registered as git_repo's origin, with main pushed."""
    remote_path = temp_dir / "origin.git"
    git.Repo.init(remote_path, bare=True, initial_branch="main")
    git_repo.create_remote("origin", str(remote_path))
    git_repo.git.push("-u", "origin", "main")
    return remote_path


@pytest.fixture
def other_clone(temp_dir, bare_remote):
    """A second clone of the remote, used to publish commits git_repo hasn't seen."""
    repo = git.Repo.clone_from(str(bare_remote), temp_dir / "other")
    _configure_user(repo)
    yield repo
    repo.close()
