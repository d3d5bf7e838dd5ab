"""Command-line argument parsing for git-wt."""

import argparse
from typing import List, Optional

from git_wt.__version__ import __version__


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per lifecycle action."""
    parser = argparse.ArgumentParser(
        prog="git-wt",
        description="Manage git worktrees in a predictable directory layout",
        epilog="Configuration is read from ~/.wt/config.json (or $WT_CONFIG) and "
        ".wt/config.json files from the repository root down to the current directory.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument("--version", action="version", version=f"git-wt {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    new = subparsers.add_parser("new", help="Create one or more worktrees")
    new.add_argument("names", nargs="+", metavar="NAME", help="Worktree name(s)")
    new.add_argument(
        "--base",
        metavar="REF",
        help="Branch, commit or <remote>/<branch> new branches start from "
        "(default: the current branch)",
    )
    new.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of worktrees created in parallel (default: auto-detect)",
    )

    rm = subparsers.add_parser("rm", help="Remove a worktree")
    rm.add_argument("name", metavar="NAME", help="Worktree name (unique partial match allowed)")
    rm.add_argument(
        "--force", action="store_true", help="Remove even with modified or untracked files"
    )

    subparsers.add_parser("ls", help="List worktrees")

    merge = subparsers.add_parser("merge", help="Merge a worktree's branch into another branch")
    merge.add_argument("name", metavar="NAME", help="Worktree name (unique partial match allowed)")
    merge.add_argument(
        "--into",
        metavar="BRANCH",
        dest="target",
        help="Branch receiving the merge (default: the main branch)",
    )
    merge.add_argument(
        "--stash",
        action="store_true",
        help="Stash uncommitted changes of the main working tree before merging",
    )
    merge.add_argument(
        "--remove", action="store_true", help="Remove the worktree after a successful merge"
    )
    merge.add_argument(
        "--delete-branch",
        action="store_true",
        help="Remove the worktree and delete its branch after a successful merge",
    )

    subparsers.add_parser("config", help="Show the effective configuration")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
