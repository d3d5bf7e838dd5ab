"""Helpers for turning GitPython command failures into readable messages."""

import git


def git_error_detail(error: git.exc.GitCommandError) -> str:
    """Best human-readable detail of a failed git command (stderr, else stdout)."""
    for stream in (getattr(error, "stderr", None), getattr(error, "stdout", None)):
        if stream:
            text = stream.strip()
            # GitPython wraps captured streams as "\n  stderr: '...'"
            for label in ("stderr:", "stdout:"):
                if text.startswith(label):
                    text = text[len(label):].strip()
                    # Only the outer pair; paths inside keep their quotes
                    if len(text) >= 2 and text[0] == text[-1] == "'":
                        text = text[1:-1].strip()
            if text:
                return text
    return str(error)


def git_error_message(action: str, error: git.exc.GitCommandError) -> str:
    """Format a failed git command as '<action> failed (exit N): <detail>'."""
    status = error.status if hasattr(error, "status") else "unknown"
    detail = git_error_detail(error)
    if detail:
        return f"{action} failed (exit {status}): {detail}"
    return f"{action} failed with exit code {status}"
