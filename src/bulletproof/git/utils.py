"""Git subprocess helpers.

The current change is the diff between ``HEAD~1`` and the working tree.
When that comparison is unavailable (for example in a repository with a
single commit) the staged diff (``--cached``) is used instead.

Only read-only commands are issued here.  Fetching, merging, committing and
pushing belong to the caller.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GIT_TIMEOUT_SECONDS = 10

_INSERTIONS_RE = re.compile(r"(\d+) insertions?\(\+\)")
_DELETIONS_RE = re.compile(r"(\d+) deletions?\(-\)")


class GitError(RuntimeError):
    """Raised when a git query cannot be answered."""


class DiffStats(NamedTuple):
    """Line counts for the current change."""

    additions: int
    deletions: int

    @property
    def total(self) -> int:
        return self.additions + self.deletions


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_changed_files(cwd: Optional[Union[str, Path]] = None) -> list[str]:
    """Return the repository-relative paths changed by the current change.

    Raises
    ------
    GitError
        If git is unavailable or neither diff strategy succeeds.
    """
    output = _diff_with_fallback(["--name-only"], cwd)
    return [line.strip() for line in output.splitlines() if line.strip()]


def get_diff_stats(cwd: Optional[Union[str, Path]] = None) -> DiffStats:
    """Return inserted and deleted line counts for the current change.

    Raises
    ------
    GitError
        If git is unavailable or neither diff strategy succeeds.
    """
    output = _diff_with_fallback(["--shortstat"], cwd)
    return parse_shortstat(output)


def parse_shortstat(output: str) -> DiffStats:
    """Parse ``git diff --shortstat`` output.

    Either count may be missing from the output (``1 file changed, 3
    insertions(+)``); a missing count is zero.  Empty output means no change.
    """
    insertions = _INSERTIONS_RE.search(output)
    deletions = _DELETIONS_RE.search(output)
    return DiffStats(
        additions=int(insertions.group(1)) if insertions else 0,
        deletions=int(deletions.group(1)) if deletions else 0,
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _diff_with_fallback(
    args: list[str],
    cwd: Optional[Union[str, Path]],
) -> str:
    """Run ``git diff HEAD~1 <args>``, falling back to ``git diff --cached``."""
    primary = _run_git(["diff", "HEAD~1", *args], cwd)
    if primary.returncode == 0:
        return primary.stdout

    logger.debug(
        "git diff HEAD~1 failed (%s). Falling back to staged diff.",
        primary.stderr.strip(),
    )
    staged = _run_git(["diff", "--cached", *args], cwd)
    if staged.returncode == 0:
        return staged.stdout

    raise GitError(
        f"git diff failed with exit code {staged.returncode}: "
        f"{staged.stderr.strip() or primary.stderr.strip()}"
    )


def _run_git(
    args: list[str],
    cwd: Optional[Union[str, Path]],
) -> "subprocess.CompletedProcess[str]":
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired as exc:
        raise GitError(f"git {' '.join(args)} timed out") from exc
    except OSError as exc:
        raise GitError(f"could not run git: {exc}") from exc
