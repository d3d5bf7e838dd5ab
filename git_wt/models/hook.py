"""Hook execution models."""

from dataclasses import dataclass
from typing import Callable, Optional

from git_wt.constants import HOOK_TIMEOUT_SECONDS


@dataclass(frozen=True)
class HookContext:
    """Worktree details handed to hook commands through their environment."""

    source: str  # Repository root the worktree belongs to
    path: str  # Worktree path, also the working directory of each command
    branch: str
    name: Optional[str] = None
    color: Optional[str] = None


@dataclass
class HookOptions:
    """Options controlling how hook commands are run."""

    verbose: bool = False  # Keep each command's stdout in its result
    on_command_start: Optional[Callable[[str, int, int], None]] = None  # (command, index, total)
    timeout: float = HOOK_TIMEOUT_SECONDS


@dataclass
class HookResult:
    """Outcome of a single hook command."""

    command: str
    success: bool
    error: Optional[str] = None  # Only set on failure
    output: Optional[str] = None  # Only set in verbose mode
