"""Diff analysis: classify the current change and select checks for it."""

from bulletproof.diff.analyzer import (
    FILE_PATTERNS,
    SOURCE_ROOT,
    DiffAnalysis,
    FileCategories,
    FileCategory,
    analyze_changes,
    analyze_diff,
    categorize_file,
)

__all__ = [
    "DiffAnalysis",
    "FILE_PATTERNS",
    "FileCategories",
    "FileCategory",
    "SOURCE_ROOT",
    "analyze_changes",
    "analyze_diff",
    "categorize_file",
]
