"""Command-line interface for git-wt"""

import json
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from git_wt.cli.args import parse_args
from git_wt.config import resolve_config
from git_wt.constants import DETACHED_HEAD, UNKNOWN_BRANCH
from git_wt.core import WorktreeManager
from git_wt.exceptions import GitWtError
from git_wt.models.hook import HookOptions, HookResult
from git_wt.models.worktree import WorktreeResult
from git_wt.services.git import GitOperations, find_repo_root, is_git_repo
from git_wt.utils.logging import setup_logging

console = Console()


def _hook_options(verbose: bool) -> HookOptions:
    def on_command_start(command: str, index: int, total: int) -> None:
        console.print(f"[dim]  hook ({index}/{total}): {escape(command)}[/dim]")

    return HookOptions(verbose=verbose, on_command_start=on_command_start)


def _print_hook_results(hook_results: List[HookResult], verbose: bool) -> None:
    for hook in hook_results:
        if not hook.success:
            console.print(f"  [yellow]hook failed:[/yellow] {escape(hook.command)}: {escape(hook.error or '')}")
        if verbose and hook.output:
            console.print(Text(hook.output.rstrip()))


def _color_swatch(color: Optional[str]) -> Text:
    if not color:
        return Text("-", style="dim")
    return Text.assemble(("■ ", color), color)


def _print_created(result: WorktreeResult, verbose: bool) -> None:
    if result.success:
        console.print(
            Text.assemble(
                ("✓ ", "green"),
                "Created ",
                (result.name or "", "bold"),
                f" at {result.path} (",
                _color_swatch(result.color),
                f", {result.branch_source} branch {result.branch})",
            )
        )
    else:
        console.print(f"[red]✗ {escape(result.name or '')}: {escape(result.error or 'unknown error')}[/red]")
    _print_hook_results(result.hook_results, verbose)


def _default_base(cwd: str) -> Optional[str]:
    """Base for new branches: the branch checked out where the command runs."""
    ops = GitOperations(find_repo_root(cwd))
    if ops.is_detached():
        console.print("[yellow]HEAD is detached; new branches start from the current commit[/yellow]")
        return DETACHED_HEAD
    return ops.get_current_branch()


def cmd_new(args) -> int:
    cwd = os.getcwd()
    manager = WorktreeManager(cwd, cwd=cwd)
    base_ref = args.base or _default_base(cwd)
    hook_options = _hook_options(args.verbose)

    if len(args.names) == 1:
        results = [manager.create(args.names[0], base_ref, hook_options)]
    else:
        with console.status(f"Creating {len(args.names)} worktrees..."):
            results = manager.create_many(args.names, base_ref, hook_options, max_workers=args.workers)

    for result in results:
        _print_created(result, args.verbose)
    return 0 if all(r.success for r in results) else 1


def cmd_rm(args) -> int:
    cwd = os.getcwd()
    manager = WorktreeManager(cwd, cwd=cwd)
    worktree = manager.find_worktree(args.name)
    if worktree is None:
        console.print(f"[red]No worktree matches '{escape(args.name)}'[/red]")
        return 1

    result = manager.destroy(worktree, force=args.force, hook_options=_hook_options(args.verbose))
    _print_hook_results(result.hook_results, args.verbose)
    if result.success:
        console.print(f"[green]✓[/green] Removed {escape(worktree.name)} ({escape(worktree.path)})")
        return 0

    console.print(f"[red]✗ Could not remove {escape(worktree.name)}: {escape(result.error or '')}[/red]")
    if result.needs_force:
        console.print("[yellow]The worktree has modified or untracked files; use --force to remove it anyway[/yellow]")
    return 1


def cmd_ls(args) -> int:
    cwd = os.getcwd()
    manager = WorktreeManager(cwd, cwd=cwd)
    worktrees = manager.list_worktrees()
    if not worktrees:
        console.print(f"[dim]No worktrees under {escape(manager.worktrees_base())}[/dim]")
        return 0

    current = manager.current_worktree(cwd)
    table = Table()
    table.add_column("Name")
    table.add_column("Branch")
    table.add_column("Color")
    table.add_column("Path")
    for wt in worktrees:
        marker = "* " if current is not None and current.name == wt.name else ""
        table.add_row(
            Text(f"{marker}{wt.name}", style="bold" if marker else ""),
            Text(wt.branch, style="dim" if wt.branch == UNKNOWN_BRANCH else ""),
            _color_swatch(manager.colors.get_color(manager.repo_root, wt.name)),
            Text(wt.path),
        )
    console.print(table)
    return 0


def cmd_merge(args) -> int:
    cwd = os.getcwd()
    manager = WorktreeManager(cwd, cwd=cwd)
    worktree = manager.find_worktree(args.name)
    if worktree is None:
        console.print(f"[red]No worktree matches '{escape(args.name)}'[/red]")
        return 1

    result = manager.merge(
        worktree,
        args.target,
        stash=args.stash,
        remove=args.remove,
        delete_branch=args.delete_branch,
        hook_options=_hook_options(args.verbose),
    )
    if result.stashed:
        console.print("[yellow]Stashed uncommitted changes of the main working tree (git stash pop to restore)[/yellow]")
    if not result.success:
        console.print(f"[red]✗ {escape(result.error or 'Merge failed')}[/red]")
        return 1

    console.print(
        f"[green]✓[/green] Merged {escape(result.source_branch)} into {escape(result.target_branch)}"
    )
    if result.removal is not None:
        _print_hook_results(result.removal.hook_results, args.verbose)
        if result.removal.success:
            console.print(f"[green]✓[/green] Removed {escape(worktree.name)} ({escape(worktree.path)})")
    if result.branch_deleted:
        console.print(f"[green]✓[/green] Deleted branch {escape(result.source_branch)}")
    if result.cleanup_error:
        console.print(f"[yellow]Cleanup failed: {escape(result.cleanup_error)}[/yellow]")
        return 1
    return 0


def cmd_config(args) -> int:
    cwd = os.getcwd()
    if is_git_repo(cwd):
        config = WorktreeManager(cwd, cwd=cwd).config
    else:
        config = resolve_config(cwd, None)
    console.print_json(json.dumps(config.to_dict()))
    return 0


COMMANDS = {
    "new": cmd_new,
    "rm": cmd_rm,
    "ls": cmd_ls,
    "merge": cmd_merge,
    "config": cmd_config,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = parse_args(argv)
    setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

    try:
        return COMMANDS[parsed_args.command](parsed_args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except GitWtError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
