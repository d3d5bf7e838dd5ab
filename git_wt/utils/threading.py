"""Threading utilities for sizing the bulk-creation worker pool."""

import os
import sys
from typing import Optional


def is_free_threading_enabled() -> bool:
    """Detect if Python is running with free-threading enabled.

    Returns:
        True if running on Python 3.13+ with the GIL disabled, False otherwise
    """
    try:
        return hasattr(sys, "_is_gil_enabled") and not sys._is_gil_enabled()
    except Exception:
        return False


def get_optimal_worker_count(user_specified: Optional[int] = None, task_count: Optional[int] = None) -> int:
    """Calculate a worker count for I/O-bound git and hook work.

    Args:
        user_specified: User-specified worker count, if provided
        task_count: Number of tasks to run; the pool never exceeds it

    Returns:
        Number of workers for parallel processing (at least 1)
    """
    if user_specified is not None and user_specified > 0:
        workers = user_specified
    else:
        cpu_count = os.cpu_count() or 1
        if is_free_threading_enabled():
            workers = min(64, cpu_count * 2)
        else:
            # CPU_count + 4 is a good heuristic for I/O-bound work
            workers = min(32, cpu_count + 4)

    if task_count is not None:
        workers = min(workers, max(1, task_count))
    return workers
