"""Per-repository worktree color assignments."""
import json
import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from git_wt.config import Config, resolve_config
from git_wt.constants import (
    CONFIG_DIR,
    WORKTREE_COLORS_FILE,
    WORKTREE_COLORS_PALETTE,
    is_hex_color,
)
from git_wt.utils.logging import get_logger

logger = get_logger(__name__)

# Serializes every load-modify-save of a color map in this process. Bulk
# creation runs worktree pipelines concurrently, but their color updates
# must not interleave or one assignment would overwrite another.
_assignment_lock = threading.Lock()


def is_worktree_name(name: object) -> bool:
    """Check that a persisted key looks like a worktree directory name."""
    if not isinstance(name, str) or not name or name.isdigit():
        return False
    if name.startswith(("-", ".")) or name.endswith("."):
        return False
    if "/" in name or "\\" in name or ".." in name:
        return False
    return not any(c.isspace() or c in "~^:?*[]" for c in name)


def get_colors_path(repo_root: str) -> Path:
    """Location of a repository's color map."""
    return Path(repo_root) / CONFIG_DIR / WORKTREE_COLORS_FILE


def load_colors(repo_root: str) -> Dict[str, str]:
    """Load the worktree name -> color map, dropping malformed entries.

    Args:
        repo_root: Repository root holding ``.wt/worktree-colors.json``

    Returns:
        Valid entries only; a missing or corrupt file gives an empty map
    """
    path = get_colors_path(repo_root)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable color map {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Color map {path} is not an object, ignoring it")
        return {}

    colors = {}
    for name, hex_color in data.items():
        if is_worktree_name(name) and is_hex_color(hex_color):
            colors[name] = hex_color
        else:
            logger.debug(f"Dropping malformed color entry {name!r}: {hex_color!r}")
    return colors


def save_colors(repo_root: str, mapping: Dict[str, str]) -> None:
    """Persist the color map atomically. Write failures are logged, not raised."""
    path = get_colors_path(repo_root)
    temp_file = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(mapping, f, indent=2)
            f.write("\n")
            f.flush()
        # Atomic rename (POSIX systems guarantee atomicity)
        os.replace(temp_file, path)
        logger.debug(f"Saved {len(mapping)} worktree colors to {path}")
    except OSError as e:
        logger.warning(f"Failed to save worktree colors: {e}")
    finally:
        if temp_file.exists():
            try:
                temp_file.unlink()
            except OSError:
                pass


class ColorAssigner:
    """Assigns each worktree a color that stays with it until it is removed."""

    def __init__(self, config_loader: Optional[Callable[[str], Config]] = None):
        """Initialize the assigner.

        Args:
            config_loader: Returns the effective config for a repository root;
                defaults to resolving it with the root as working directory
        """
        self._config_loader = config_loader or (lambda repo_root: resolve_config(repo_root, repo_root))

    def assign(self, repo_root: str, name: str) -> str:
        """Return the color of ``name``, assigning and persisting one if needed.

        Order: existing assignment, config override, first palette color not
        used by another worktree, then palette cycling by index.
        """
        with _assignment_lock:
            current = load_colors(repo_root)

            if name in current:
                return current[name]

            config = self._config_loader(repo_root)
            override = config.worktree_colors.get(name)
            if override:
                color = override
                logger.debug(f"Using configured color {color} for {name}")
            else:
                color = self.pick_color(config.color_palette or WORKTREE_COLORS_PALETTE, current)

            current[name] = color
            save_colors(repo_root, current)
            logger.info(f"Assigned color {color} to worktree {name}")
            return color

    @staticmethod
    def pick_color(palette: List[str], current: Dict[str, str]) -> str:
        """First palette color nobody uses, else cycle by how many distinct colors are in use."""
        used = {c.upper() for c in current.values()}
        for color in palette:
            if color.upper() not in used:
                return color
        return palette[len(used) % len(palette)]

    def get_color(self, repo_root: str, name: str) -> Optional[str]:
        """Color assigned to ``name``, or None."""
        return load_colors(repo_root).get(name)

    def free(self, repo_root: str, name: str) -> None:
        """Drop the assignment for ``name`` so its color can be reused."""
        with _assignment_lock:
            current = load_colors(repo_root)
            if name in current:
                del current[name]
                save_colors(repo_root, current)
                logger.info(f"Released color of worktree {name}")
