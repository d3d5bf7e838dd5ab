"""Shared constants for git-wt."""

import re
from typing import List


# On-disk layout
CONFIG_DIR = ".wt"
CONFIG_FILE = "config.json"
WORKTREE_COLORS_FILE = "worktree-colors.json"
GIT_POINTER = ".git"

# Environment variables read by the config layer
ENV_GLOBAL_CONFIG = "WT_CONFIG"
ENV_PROJECTS_DIR = "W_PROJECTS_DIR"
ENV_WORKTREES_DIR = "W_WORKTREES_DIR"
ENV_BRANCH_PREFIX = "W_DEFAULT_BRANCH_PREFIX"

# Remote used for same-name branch lookups
DEFAULT_REMOTE = "origin"

# Sentinel base reference for a detached checkout
DETACHED_HEAD = "HEAD"

UNKNOWN_BRANCH = "unknown"


class HookEvent:
    """Lifecycle events hooks can be attached to."""

    POST_CREATE = "post-create"
    PRE_DESTROY = "pre-destroy"


# 5 minutes per hook command
HOOK_TIMEOUT_SECONDS = 300

# Environment variables handed to hook commands
HOOK_ENV_SOURCE = "WT_SOURCE"
HOOK_ENV_BRANCH = "WT_BRANCH"
HOOK_ENV_PATH = "WT_PATH"
HOOK_ENV_NAME = "WT_NAME"
HOOK_ENV_COLOR = "WT_COLOR"


HEX_COLOR_PATTERN = re.compile(r"#[0-9A-Fa-f]{6}")

# Distinct colors for worktree tabs, cycled through for assignment
WORKTREE_COLORS_PALETTE: List[str] = [
    "#E53935", "#D81B60", "#8E24AA", "#5E35B1",
    "#3949AB", "#1E88E5", "#039BE5", "#00ACC1",
    "#00897B", "#43A047", "#7CB342", "#C0CA33",
    "#FDD835", "#FFB300", "#FB8C00", "#F4511E",
]


def is_hex_color(value: object) -> bool:
    """Return True for strings shaped like ``#RRGGBB``."""
    return isinstance(value, str) and bool(HEX_COLOR_PATTERN.fullmatch(value))
