"""Configuration handling for git-wt.

Configuration is layered: a global, user-scoped file and one optional
``.wt/config.json`` per directory from the repository root down to the
current working directory. Every file is parsed leniently, field by field,
and the more specific scope wins.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from git_wt.constants import (
    CONFIG_DIR,
    CONFIG_FILE,
    ENV_BRANCH_PREFIX,
    ENV_GLOBAL_CONFIG,
    ENV_PROJECTS_DIR,
    ENV_WORKTREES_DIR,
    is_hex_color,
)
from git_wt.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class Config:
    """Effective configuration for a working directory."""

    projects_dir: str
    worktrees_dir: str
    branch_prefix: str = ""
    hooks: Dict[str, List[str]] = field(default_factory=dict)
    worktree_colors: Dict[str, str] = field(default_factory=dict)
    color_palette: Optional[List[str]] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        for name in ("projects_dir", "worktrees_dir"):
            value = getattr(self, name)
            if not os.path.isabs(value):
                raise ValueError(f"{name} must be an absolute path, got '{value}'")
        if self.branch_prefix.endswith("/"):
            raise ValueError(f"branch_prefix must not end with '/', got '{self.branch_prefix}'")

    def get_hooks(self, event: str) -> List[str]:
        """Commands configured for a lifecycle event, in run order."""
        return list(self.hooks.get(event, []))

    def to_dict(self) -> dict:
        """Convert config to a dictionary using the on-disk key names."""
        data = {
            "projectsDir": self.projects_dir,
            "worktreesDir": self.worktrees_dir,
            "branchPrefix": self.branch_prefix,
            "hooks": {event: list(commands) for event, commands in self.hooks.items()},
            "worktreeColors": dict(self.worktree_colors),
        }
        if self.color_palette is not None:
            data["colorPalette"] = list(self.color_palette)
        return data


@dataclass(frozen=True)
class PartialConfig:
    """Fields contributed by one config file. ``None`` means not defined."""

    projects_dir: Optional[str] = None
    worktrees_dir: Optional[str] = None
    branch_prefix: Optional[str] = None
    hooks: Optional[Dict[str, List[str]]] = None
    worktree_colors: Optional[Dict[str, str]] = None
    color_palette: Optional[List[str]] = None


# Field parsers: each returns (value, valid). Invalid values are treated as absent.

def _parse_path(value: Any) -> Tuple[Optional[str], bool]:
    if not isinstance(value, str) or not value.strip():
        return None, False
    expanded = os.path.expanduser(os.path.expandvars(value.strip()))
    if not os.path.isabs(expanded):
        return None, False
    return os.path.normpath(expanded), True


def _parse_branch_prefix(value: Any) -> Tuple[Optional[str], bool]:
    if not isinstance(value, str):
        return None, False
    return value.strip().rstrip("/"), True


def _parse_hooks(value: Any) -> Tuple[Optional[Dict[str, List[str]]], bool]:
    if not isinstance(value, dict):
        return None, False
    hooks = {}
    for event, commands in value.items():
        if isinstance(commands, list) and all(isinstance(c, str) for c in commands):
            hooks[event] = list(commands)
        else:
            logger.debug(f"Ignoring invalid hook list for '{event}'")
    return hooks, True


def _parse_worktree_colors(value: Any) -> Tuple[Optional[Dict[str, str]], bool]:
    if not isinstance(value, dict):
        return None, False
    colors = {name: hex_color for name, hex_color in value.items() if is_hex_color(hex_color)}
    return colors, True


def _parse_color_palette(value: Any) -> Tuple[Optional[List[str]], bool]:
    if not isinstance(value, list):
        return None, False
    palette = [c for c in value if is_hex_color(c)]
    if not palette:
        return None, False
    return palette, True


_FIELD_PARSERS: Dict[str, Tuple[str, Callable[[Any], Tuple[Any, bool]]]] = {
    "projectsDir": ("projects_dir", _parse_path),
    "worktreesDir": ("worktrees_dir", _parse_path),
    "branchPrefix": ("branch_prefix", _parse_branch_prefix),
    "hooks": ("hooks", _parse_hooks),
    "worktreeColors": ("worktree_colors", _parse_worktree_colors),
    "colorPalette": ("color_palette", _parse_color_palette),
}


def parse_config(data: Any) -> PartialConfig:
    """Parse a decoded config document into the fields it validly defines.

    Unknown keys are ignored and malformed fields are dropped; this never raises.

    Args:
        data: Decoded JSON document

    Returns:
        PartialConfig with every invalid or missing field left as None
    """
    if not isinstance(data, dict):
        return PartialConfig()

    fields = {}
    for key, (attr, parser) in _FIELD_PARSERS.items():
        if key not in data:
            continue
        value, valid = parser(data[key])
        if valid:
            fields[attr] = value
        else:
            logger.debug(f"Ignoring invalid config field '{key}': {data[key]!r}")
    return PartialConfig(**fields)


def load_config_file(path: PathLike) -> PartialConfig:
    """Load one config file. Missing, unreadable or invalid files yield an empty config."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return PartialConfig()
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable config file {path}: {e}")
        return PartialConfig()
    return parse_config(data)


def load_config(directory: PathLike) -> PartialConfig:
    """Load configuration stored in a directory.

    Tries ``<dir>/.wt/config.json`` first, then ``<dir>/config.json``.
    """
    for candidate in (Path(directory) / CONFIG_DIR / CONFIG_FILE, Path(directory) / CONFIG_FILE):
        if _is_file(candidate):
            return load_config_file(candidate)
    return PartialConfig()


def get_global_config_path() -> Path:
    """Path of the user-wide config file."""
    override = os.environ.get(ENV_GLOBAL_CONFIG)
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / CONFIG_DIR / CONFIG_FILE


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def find_config_files(
    cwd: PathLike, repo_root: Optional[PathLike], global_config_path: Optional[PathLike] = None
) -> List[Path]:
    """Find config files from least to most specific scope.

    The global file comes first, then the repository root's file, then one
    per directory down to ``cwd``. When ``cwd`` is outside ``repo_root`` only
    the global file applies.

    Args:
        cwd: Current working directory
        repo_root: Root of the repository, or None when not in one
        global_config_path: Override for the global config file location

    Returns:
        Existing config file paths, least specific first
    """
    paths = []

    global_path = Path(global_config_path) if global_config_path else get_global_config_path()
    if _is_file(global_path):
        paths.append(global_path)

    if repo_root is None:
        return paths

    cwd_path = Path(os.path.abspath(cwd))
    root_path = Path(os.path.abspath(repo_root))
    if not _is_within(cwd_path, root_path):
        logger.debug(f"{cwd_path} is outside {root_path}, using global config only")
        return paths

    current = root_path
    directories = [current]
    for part in cwd_path.relative_to(root_path).parts:
        current = current / part
        directories.append(current)

    for directory in directories:
        candidate = directory / CONFIG_DIR / CONFIG_FILE
        if _is_file(candidate):
            paths.append(candidate)

    return paths


def merge_configs(configs: Iterable[PartialConfig]) -> PartialConfig:
    """Merge partial configs, least specific first.

    Scalars are last-wins. Hook lists and color overrides are merged per key,
    with a later value replacing an earlier one wholesale.
    """
    merged: Dict[str, Any] = {}
    hooks: Optional[Dict[str, List[str]]] = None
    colors: Optional[Dict[str, str]] = None

    for config in configs:
        for attr in ("projects_dir", "worktrees_dir", "branch_prefix", "color_palette"):
            value = getattr(config, attr)
            if value is not None:
                merged[attr] = value
        if config.hooks is not None:
            hooks = {**(hooks or {}), **config.hooks}
        if config.worktree_colors is not None:
            colors = {**(colors or {}), **config.worktree_colors}

    return PartialConfig(hooks=hooks, worktree_colors=colors, **merged)


def default_config() -> PartialConfig:
    """Built-in defaults, overridable through the environment."""
    home = Path.home()
    projects_dir, valid = _parse_path(os.environ.get(ENV_PROJECTS_DIR))
    if not valid:
        projects_dir = str(home / "projects")
    worktrees_dir, valid = _parse_path(os.environ.get(ENV_WORKTREES_DIR))
    if not valid:
        worktrees_dir = str(home / "projects" / "worktrees")
    branch_prefix, valid = _parse_branch_prefix(os.environ.get(ENV_BRANCH_PREFIX))
    if not valid:
        branch_prefix = ""
    return PartialConfig(
        projects_dir=projects_dir,
        worktrees_dir=worktrees_dir,
        branch_prefix=branch_prefix,
        hooks={},
        worktree_colors={},
    )


def resolve_config(
    cwd: Optional[PathLike], repo_root: Optional[PathLike], global_config_path: Optional[PathLike] = None
) -> Config:
    """Resolve the effective config for ``cwd`` inside ``repo_root``.

    Args:
        cwd: Working directory (defaults to the process working directory)
        repo_root: Repository root, or None to apply only the global scope
        global_config_path: Override for the global config file location

    Returns:
        The merged Config with defaults filled in for undefined fields
    """
    if cwd is None:
        cwd = os.getcwd()

    config_paths = find_config_files(cwd, repo_root, global_config_path)
    logger.debug(f"Resolving config from {[str(p) for p in config_paths]}")

    merged = merge_configs(load_config_file(path) for path in config_paths)
    defaults = default_config()

    return Config(
        projects_dir=merged.projects_dir or defaults.projects_dir,
        worktrees_dir=merged.worktrees_dir or defaults.worktrees_dir,
        branch_prefix=merged.branch_prefix if merged.branch_prefix is not None else defaults.branch_prefix,
        hooks=merged.hooks if merged.hooks is not None else {},
        worktree_colors=merged.worktree_colors if merged.worktree_colors is not None else {},
        color_palette=merged.color_palette,
    )
