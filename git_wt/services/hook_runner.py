"""Lifecycle hook execution for git-wt."""

import os
import signal
import subprocess
from typing import Dict, List, Mapping, Optional

from git_wt.config import Config
from git_wt.constants import (
    HOOK_ENV_BRANCH,
    HOOK_ENV_COLOR,
    HOOK_ENV_NAME,
    HOOK_ENV_PATH,
    HOOK_ENV_SOURCE,
)
from git_wt.models.hook import HookContext, HookOptions, HookResult
from git_wt.utils.logging import get_logger

logger = get_logger(__name__)

# Time a terminated hook gets to exit before it is killed outright
TERMINATE_GRACE_SECONDS = 5

_POSIX = os.name == "posix"


def build_hook_env(context: HookContext, base_env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Environment for a hook command: the base environment plus WT_* variables.

    WT_NAME and WT_COLOR are only set when the context has them.
    """
    env = dict(os.environ if base_env is None else base_env)
    env[HOOK_ENV_SOURCE] = context.source
    env[HOOK_ENV_BRANCH] = context.branch
    env[HOOK_ENV_PATH] = context.path
    if context.name is not None:
        env[HOOK_ENV_NAME] = context.name
    if context.color is not None:
        env[HOOK_ENV_COLOR] = context.color
    return env


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


class HookRunner:
    """Runs the shell commands configured for a lifecycle event.

    Commands run one after another (later hooks may rely on earlier ones),
    each in its own process with the worktree as working directory. A failing
    command is recorded and the next one still runs.
    """

    def __init__(self, base_env: Optional[Mapping[str, str]] = None):
        """Initialize the runner.

        Args:
            base_env: Environment hooks inherit (defaults to this process's environment)
        """
        self.base_env = base_env

    def run(
        self,
        event_name: str,
        config: Config,
        context: HookContext,
        options: Optional[HookOptions] = None,
    ) -> List[HookResult]:
        """Run every command configured for ``event_name``.

        Args:
            event_name: Lifecycle event, e.g. "post-create"
            config: Effective configuration holding the hook lists
            context: Worktree the hooks run for
            options: Verbosity, progress callback and timeout

        Returns:
            One HookResult per command, in order. Empty if nothing is configured.
        """
        commands = config.get_hooks(event_name)
        if not commands:
            return []

        options = options or HookOptions()
        env = build_hook_env(context, self.base_env)
        total = len(commands)
        results = []

        logger.info(f"Running {total} {event_name} hook(s) in {context.path}")
        for index, command in enumerate(commands, start=1):
            if options.on_command_start is not None:
                options.on_command_start(command, index, total)
            result = self._run_command(command, context.path, env, options)
            if result.success:
                logger.debug(f"Hook succeeded: {command}")
            else:
                logger.warning(f"Hook failed: {command}: {result.error}")
            results.append(result)

        return results

    def _run_command(self, command: str, cwd: str, env: Dict[str, str], options: HookOptions) -> HookResult:
        """Run a single hook command through the shell."""
        try:
            process = subprocess.Popen(
                command,
                shell=True,
                cwd=cwd,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                # Own process group so a timeout reaches the shell's children too
                start_new_session=_POSIX,
            )
        except OSError as e:
            return HookResult(command=command, success=False, error=str(e))

        timed_out = False
        try:
            # communicate() drains both pipes so the child never blocks on a full pipe
            stdout, stderr = process.communicate(timeout=options.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            logger.warning(f"Hook exceeded {options.timeout:g}s, terminating: {command}")
            stdout, stderr = self._terminate(process)

        returncode = process.returncode
        if returncode == 0 and not timed_out:
            return HookResult(
                command=command,
                success=True,
                output=stdout if options.verbose else None,
            )

        if timed_out:
            detail = f"Killed by SIGTERM (timed out after {options.timeout:g}s)"
        elif returncode < 0:
            detail = (stderr or "").strip() or f"Killed by {_signal_name(-returncode)}"
        else:
            detail = (stderr or "").strip() or f"Exited with code {returncode}"

        return HookResult(
            command=command,
            success=False,
            error=detail,
            output=stdout if options.verbose else None,
        )

    def _terminate(self, process: subprocess.Popen) -> tuple:
        """Send SIGTERM to a hook (and its process group), escalating to SIGKILL."""
        self._signal(process, signal.SIGTERM)
        try:
            return process.communicate(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            self._signal(process, signal.SIGKILL if _POSIX else signal.SIGTERM)
            return process.communicate()

    @staticmethod
    def _signal(process: subprocess.Popen, signum: int) -> None:
        try:
            if _POSIX:
                os.killpg(process.pid, signum)
            else:
                process.send_signal(signum)
        except (ProcessLookupError, PermissionError):
            # Already gone
            pass


def run_hooks(
    event_name: str,
    config: Config,
    context: HookContext,
    options: Optional[HookOptions] = None,
) -> List[HookResult]:
    """Run the hooks for ``event_name`` with a default HookRunner."""
    return HookRunner().run(event_name, config, context, options)
