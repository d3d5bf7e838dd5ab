"""
git-wt - Git worktree lifecycle manager
"""

from .__version__ import __version__
from .config import Config, resolve_config
from .core import WorktreeManager

__all__ = ["Config", "WorktreeManager", "resolve_config", "__version__"]
