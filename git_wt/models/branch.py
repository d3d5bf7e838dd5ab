"""Branch model and related enums"""
from enum import Enum
from dataclasses import dataclass

class BranchSource(Enum):
    """How the branch behind a new worktree was obtained."""
    LOCAL = "local"
    REMOTE = "remote"
    NEW = "new"
    UPDATED_FROM_REMOTE = "updated-from-remote"

@dataclass
class Branch:
    """A branch as reported by git."""
    name: str
    is_current: bool = False

@dataclass(frozen=True)
class BranchResolutionResult:
    """Outcome of ensuring a branch exists."""
    created: bool
    source: BranchSource
