"""Read-only git queries used by diff analysis.

- :func:`get_changed_files` -- paths changed by the current change.
- :func:`get_diff_stats` -- inserted/deleted line counts for the same change.

Both raise :class:`GitError` when git cannot answer; callers decide how to
degrade.
"""

from bulletproof.git.utils import (
    GIT_TIMEOUT_SECONDS,
    DiffStats,
    GitError,
    get_changed_files,
    get_diff_stats,
    parse_shortstat,
)

__all__ = [
    "DiffStats",
    "GIT_TIMEOUT_SECONDS",
    "GitError",
    "get_changed_files",
    "get_diff_stats",
    "parse_shortstat",
]
