"""Diff analysis for check selection.

Classifies the files of the current change and picks the smallest safe set
of checks for it.  Every changed file lands in at most one category, tested
in this order: docs, config, scripts, tests, types, src.  Source files are
additionally tested against the coverage scope.

The decision tree is evaluated top to bottom; the first matching branch
fixes both the check assignment and the reason:

1. docs only              -> rules
2. config only            -> rules, typecheck
3. scripts only           -> rules, typecheck, tests
4. tests only             -> rules, typecheck, changed tests only
5. no covered source      -> rules, typecheck, tests
6. < 200 lines, <= 3 covered files  -> configured checks minus coverage,
                                       related tests
7. < 500 lines, <= 10 covered files -> configured checks, related tests
8. otherwise              -> configured checks, full test suite

Related-test eligibility is computed before the tree: at least one and at
most ten changed source/test files under ``src/`` and fewer than 500 changed
lines.  Branch 4 narrows it to the changed tests; branch 8 clears it.

If git cannot be queried or a coverage pattern does not compile,
:func:`analyze_diff` returns the configured checks unchanged with a reason
naming the failure.  Analysis never blocks a push.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from bulletproof.config import BulletproofConfig, CheckName, ChecksConfig
from bulletproof.git.utils import GitError, get_changed_files, get_diff_stats
from bulletproof.patterns import PatternMatcher

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class FileCategory(str, Enum):
    """Buckets for changed files.  ``COVERED_SRC`` is a subset of ``SRC``."""

    DOCS = "docs"
    CONFIG = "config"
    SCRIPTS = "scripts"
    TESTS = "tests"
    TYPES = "types"
    SRC = "src"
    COVERED_SRC = "covered_src"


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Category patterns in classification order.  First match wins.
FILE_PATTERNS: tuple[tuple[FileCategory, tuple["re.Pattern[str]", ...]], ...] = (
    (FileCategory.DOCS, (
        re.compile(r"\.(md|txt)$"),
        re.compile(r"^docs/"),
    )),
    (FileCategory.CONFIG, (
        re.compile(r"\.config\.(ts|js|mjs|mts)$"),
        re.compile(r"\.(json|yml|yaml)$"),
        re.compile(r"^\.cursorrules$"),
        re.compile(r"^\.gitignore$"),
        re.compile(r"^\.eslintrc\.json$"),
    )),
    (FileCategory.SCRIPTS, (
        re.compile(r"^scripts/"),
        re.compile(r"\.sh$"),
    )),
    (FileCategory.TESTS, (
        re.compile(r"\.test\."),
        re.compile(r"\.spec\."),
        re.compile(r"^src/test/"),
    )),
    (FileCategory.TYPES, (
        re.compile(r"\.d\.ts$"),
        re.compile(r"^src/types/"),
    )),
    (FileCategory.SRC, (
        re.compile(r"\.(ts|tsx|js|jsx)$"),
    )),
)

# Source tree that related-test runs can resolve files against.
SOURCE_ROOT = "src/"

RELATED_TESTS_MAX_FILES = 10
RELATED_TESTS_MAX_LINES = 500

SMALL_DIFF_MAX_LINES = 200
SMALL_DIFF_MAX_COVERED_FILES = 3

MEDIUM_DIFF_MAX_LINES = 500
MEDIUM_DIFF_MAX_COVERED_FILES = 10


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class FileCategories:
    """Changed files partitioned by :class:`FileCategory`."""

    docs: list[str] = field(default_factory=list)
    config: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    tests: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    src: list[str] = field(default_factory=list)
    covered_src: list[str] = field(default_factory=list)

    def get(self, category: FileCategory) -> list[str]:
        return getattr(self, FileCategory(category).value)

    def to_dict(self) -> dict:
        return {c.value: list(self.get(c)) for c in FileCategory}


@dataclass
class DiffAnalysis:
    """Result of diff analysis.

    Attributes:
        files: Every changed file path.
        additions: Inserted line count.
        deletions: Deleted line count.
        categories: Changed files by category.
        checks: Full check assignment for this change.
        use_related_tests: Whether tests should be limited to related files.
        related_files: Files to pass to the related-test command.
        reason: One sentence explaining the selection, with the counts used.
    """

    files: list[str] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0
    categories: FileCategories = field(default_factory=FileCategories)
    checks: ChecksConfig = field(default_factory=ChecksConfig)
    use_related_tests: bool = False
    related_files: list[str] = field(default_factory=list)
    reason: str = ""

    @property
    def total_lines(self) -> int:
        return self.additions + self.deletions

    def to_dict(self) -> dict:
        return {
            "files": list(self.files),
            "additions": self.additions,
            "deletions": self.deletions,
            "categories": self.categories.to_dict(),
            "checks": {c.value: self.checks.is_enabled(c) for c in CheckName},
            "use_related_tests": self.use_related_tests,
            "related_files": list(self.related_files),
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Categorisation
# ---------------------------------------------------------------------------


def categorize_file(
    path: str,
    coverage: PatternMatcher,
) -> tuple[Optional[FileCategory], bool]:
    """Return ``(category, in_coverage)`` for one changed file.

    ``in_coverage`` is only ever True for :attr:`FileCategory.SRC` files.
    Files matching no category return ``(None, False)``.
    """
    for category, patterns in FILE_PATTERNS:
        if any(p.search(path) for p in patterns):
            if category is FileCategory.SRC:
                return category, coverage.matches(path)
            return category, False
    return None, False


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def _no_related_suffix(result: DiffAnalysis) -> str:
    return "" if result.related_files else " (no related files)"


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def analyze_changes(
    config: BulletproofConfig,
    files: list[str],
    additions: int,
    deletions: int,
) -> DiffAnalysis:
    """Classify a change and select its checks.  See the module docstring."""
    result = DiffAnalysis(
        files=list(files),
        additions=additions,
        deletions=deletions,
        checks=config.checks.model_copy(),
    )

    coverage = config.coverage_scope.matcher()
    for path in result.files:
        category, in_coverage = categorize_file(path, coverage)
        if category is None:
            continue
        result.categories.get(category).append(path)
        if in_coverage:
            result.categories.covered_src.append(path)

    cats = result.categories
    file_count = len(result.files)
    total_lines = result.total_lines
    src_count = len(cats.src)
    covered_count = len(cats.covered_src)
    test_count = len(cats.tests)

    related_candidates = [
        f for f in [*cats.src, *cats.tests] if f.startswith(SOURCE_ROOT)
    ]
    if (
        related_candidates
        and len(related_candidates) <= RELATED_TESTS_MAX_FILES
        and total_lines < RELATED_TESTS_MAX_LINES
    ):
        result.use_related_tests = True
        result.related_files = related_candidates

    if file_count > 0 and file_count == len(cats.docs):
        result.checks = ChecksConfig.only(CheckName.RULES)
        result.reason = f"Docs only ({_plural(file_count, 'file')}) - rules check only"

    elif file_count > 0 and file_count == len(cats.config):
        result.checks = ChecksConfig.only(CheckName.RULES, CheckName.TYPECHECK)
        result.reason = f"Config only ({_plural(file_count, 'file')}) - skip tests"

    elif file_count > 0 and file_count == len(cats.scripts):
        result.checks = ChecksConfig.only(
            CheckName.RULES, CheckName.TYPECHECK, CheckName.TESTS
        )
        result.reason = f"Scripts only ({_plural(file_count, 'file')}) - skip coverage"

    elif test_count > 0 and file_count == test_count:
        result.checks = ChecksConfig.only(
            CheckName.RULES, CheckName.TYPECHECK, CheckName.TESTS
        )
        result.use_related_tests = True
        result.related_files = list(cats.tests)
        result.reason = (
            f"Tests only ({_plural(test_count, 'file')}) - run changed tests only"
        )

    elif covered_count == 0:
        result.checks = ChecksConfig.only(
            CheckName.RULES, CheckName.TYPECHECK, CheckName.TESTS
        )
        if src_count > 0:
            result.reason = (
                f"{_plural(src_count, 'file')} changed (not in coverage scope) "
                f"- skip coverage"
            )
        else:
            result.reason = (
                f"No covered code changed ({total_lines} lines) - skip coverage"
            )

    elif (
        total_lines < SMALL_DIFF_MAX_LINES
        and covered_count <= SMALL_DIFF_MAX_COVERED_FILES
    ):
        result.checks.coverage = False
        result.use_related_tests = True
        result.reason = (
            f"Small diff ({_plural(covered_count, 'covered file')}, "
            f"{total_lines} lines) - related tests only"
            f"{_no_related_suffix(result)}"
        )

    elif (
        total_lines < MEDIUM_DIFF_MAX_LINES
        and covered_count <= MEDIUM_DIFF_MAX_COVERED_FILES
    ):
        result.use_related_tests = True
        result.reason = (
            f"Medium diff ({_plural(covered_count, 'covered file')}, "
            f"{total_lines} lines) - related tests + coverage"
            f"{_no_related_suffix(result)}"
        )

    else:
        result.use_related_tests = False
        result.related_files = []
        result.reason = (
            f"Large diff ({_plural(covered_count, 'covered file')}, "
            f"{total_lines} lines) - full test suite"
        )

    logger.info("Diff analysis: %s", result.reason)
    return result


def analyze_diff(
    config: BulletproofConfig,
    cwd: Optional[Union[str, Path]] = None,
) -> DiffAnalysis:
    """Query git for the current change and analyse it.

    On a git failure, or a coverage pattern that does not compile, the
    configured checks are returned unchanged with a reason naming the
    failure class.
    """
    try:
        files = get_changed_files(cwd)
        stats = get_diff_stats(cwd)
        return analyze_changes(config, files, stats.additions, stats.deletions)
    except (GitError, OSError, re.error) as exc:
        logger.warning("Could not analyze diff, running all checks: %s", exc)
        return DiffAnalysis(
            checks=config.checks.model_copy(),
            reason=f"Full checks (could not analyze diff: {type(exc).__name__})",
        )
