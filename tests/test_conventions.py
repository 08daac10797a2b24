"""Tests for convention file discovery.

All tests use real files, directories and symlinks in temporary directories.
"""

import os
from pathlib import Path

import pytest

from bulletproof.config import ConventionsConfig
from bulletproof.discovery.conventions import (
    CONVENTION_PRIORITY,
    SOURCE_SEPARATOR,
    TRUNCATION_MARKER,
    ConventionFile,
    ConventionType,
    combine_conventions,
    deduplicate_content,
    discover_convention_files,
    get_conventions_for_prompt,
    is_safe_to_read,
    is_valid_text,
    load_file_content,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    return project


def _write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _file(type_: ConventionType, content: str, path: str = "x") -> ConventionFile:
    return ConventionFile(
        path=path,
        type=type_,
        size=len(content.encode("utf-8")),
        content=content,
    )


# ---------------------------------------------------------------------------
# Safety checks
# ---------------------------------------------------------------------------


class TestIsValidText:
    """Binary and non-UTF-8 content is rejected."""

    def test_plain_text(self) -> None:
        assert is_valid_text("# Rules\nUse tabs.\n".encode("utf-8"))

    def test_unicode_text(self) -> None:
        assert is_valid_text("Zeilenlänge: 100 ✓".encode("utf-8"))

    def test_nul_byte(self) -> None:
        assert not is_valid_text(b"abc\x00def")

    def test_invalid_utf8(self) -> None:
        assert not is_valid_text(b"\xff\xfe\xfa rules")

    def test_empty(self) -> None:
        assert is_valid_text(b"")


class TestIsSafeToRead:
    """Circular symlink chains are refused."""

    def test_regular_file(self, project_dir: Path) -> None:
        path = _write(project_dir, "CLAUDE.md", "rules")
        assert is_safe_to_read(path)

    def test_missing_file(self, project_dir: Path) -> None:
        assert is_safe_to_read(project_dir / "absent.md")

    def test_symlink_to_file(self, project_dir: Path) -> None:
        target = _write(project_dir, "real.md", "rules")
        link = project_dir / "CLAUDE.md"
        link.symlink_to(target)
        assert is_safe_to_read(link)

    def test_relative_symlink_chain(self, project_dir: Path) -> None:
        _write(project_dir, "real.md", "rules")
        os.symlink("real.md", project_dir / "middle.md")
        os.symlink("middle.md", project_dir / "CLAUDE.md")
        assert is_safe_to_read(project_dir / "CLAUDE.md")

    def test_two_link_cycle(self, project_dir: Path) -> None:
        os.symlink(project_dir / "b.md", project_dir / "a.md")
        os.symlink(project_dir / "a.md", project_dir / "b.md")
        assert not is_safe_to_read(project_dir / "a.md")

    def test_self_loop(self, project_dir: Path) -> None:
        os.symlink("loop.md", project_dir / "loop.md")
        assert not is_safe_to_read(project_dir / "loop.md")


# ---------------------------------------------------------------------------
# load_file_content
# ---------------------------------------------------------------------------


class TestLoadFileContent:
    """Per-file reading and truncation."""

    def test_small_file(self, project_dir: Path) -> None:
        path = _write(project_dir, "CLAUDE.md", "short")
        loaded = load_file_content(path, 100)
        assert loaded is not None
        assert loaded.content == "short"
        assert loaded.size == 5
        assert loaded.truncated is False

    def test_truncation_keeps_original_size(self, project_dir: Path) -> None:
        path = _write(project_dir, "CLAUDE.md", "0123456789" * 3)
        loaded = load_file_content(path, 10)
        assert loaded.content == "0123456789" + TRUNCATION_MARKER
        assert loaded.size == 30
        assert loaded.truncated is True

    def test_exact_limit_not_truncated(self, project_dir: Path) -> None:
        path = _write(project_dir, "CLAUDE.md", "0123456789")
        loaded = load_file_content(path, 10)
        assert loaded.content == "0123456789"
        assert loaded.truncated is False

    def test_truncation_inside_multibyte_character(self, project_dir: Path) -> None:
        path = _write(project_dir, "CLAUDE.md", "aé" * 4)
        loaded = load_file_content(path, 2)
        assert loaded.content == "a" + TRUNCATION_MARKER

    def test_missing_file(self, project_dir: Path) -> None:
        assert load_file_content(project_dir / "absent.md", 100) is None

    def test_directory(self, project_dir: Path) -> None:
        assert load_file_content(project_dir, 100) is None

    def test_binary_file(self, project_dir: Path) -> None:
        path = project_dir / "CLAUDE.md"
        path.write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00")
        assert load_file_content(path, 100) is None

    def test_circular_symlink(self, project_dir: Path) -> None:
        os.symlink("CLAUDE.md", project_dir / "CLAUDE.md")
        assert load_file_content(project_dir / "CLAUDE.md", 100) is None


# ---------------------------------------------------------------------------
# Deduplication and combination
# ---------------------------------------------------------------------------


class TestDeduplicateContent:
    """Identical content is kept once, at the highest priority."""

    def test_lower_priority_duplicate_dropped(self) -> None:
        files = [
            _file(ConventionType.CURSORRULES, "same rules", ".cursorrules"),
            _file(ConventionType.CLAUDE_MD, "same rules", "CLAUDE.md"),
        ]
        result = deduplicate_content(files)
        assert [f.path for f in result] == ["CLAUDE.md"]

    def test_whitespace_and_line_endings_normalised(self) -> None:
        files = [
            _file(ConventionType.CLAUDE_MD, "line one\nline two\n"),
            _file(ConventionType.CURSORRULES, "  line one\r\nline two  "),
        ]
        assert len(deduplicate_content(files)) == 1

    def test_distinct_content_kept_in_priority_order(self) -> None:
        files = [
            _file(ConventionType.CLAUDE_SETTINGS, "c"),
            _file(ConventionType.CURSOR_RULES_DIR, "b"),
            _file(ConventionType.CLAUDE_MD, "a"),
        ]
        result = deduplicate_content(files)
        assert [f.type for f in result] == [
            ConventionType.CLAUDE_MD,
            ConventionType.CURSOR_RULES_DIR,
            ConventionType.CLAUDE_SETTINGS,
        ]

    def test_idempotent(self) -> None:
        files = [
            _file(ConventionType.CURSORRULES, "x"),
            _file(ConventionType.CLAUDE_MD, "x"),
            _file(ConventionType.CURSOR_RULES_DIR, "y"),
            _file(ConventionType.CURSOR_RULES_DIR, "y\n"),
        ]
        once = deduplicate_content(files)
        assert deduplicate_content(once) == once

    def test_custom_priority(self) -> None:
        files = [
            _file(ConventionType.CLAUDE_MD, "same", "CLAUDE.md"),
            _file(ConventionType.CURSORRULES, "same", ".cursorrules"),
        ]
        order = list(reversed(CONVENTION_PRIORITY))
        result = deduplicate_content(files, order)
        assert [f.path for f in result] == [".cursorrules"]


class TestCombineConventions:
    """Rendering the combined text blob."""

    def test_no_files(self) -> None:
        assert combine_conventions([], True) == ""

    def test_single_file_without_markers(self) -> None:
        files = [_file(ConventionType.CLAUDE_MD, "  raw\n")]
        assert combine_conventions(files, False) == "  raw\n"

    def test_markers(self) -> None:
        files = [
            _file(ConventionType.CLAUDE_MD, "a", "/p/CLAUDE.md"),
            _file(ConventionType.CURSORRULES, "b", "/p/.cursorrules"),
        ]
        assert combine_conventions(files, True) == (
            "# Source: /p/CLAUDE.md\n\na"
            + SOURCE_SEPARATOR
            + "# Source: /p/.cursorrules\n\nb"
        )

    def test_single_file_with_marker(self) -> None:
        files = [_file(ConventionType.CLAUDE_MD, "a", "/p/CLAUDE.md")]
        assert combine_conventions(files, True) == "# Source: /p/CLAUDE.md\n\na"

    def test_multiple_files_without_markers(self) -> None:
        files = [
            _file(ConventionType.CLAUDE_MD, "a"),
            _file(ConventionType.CURSORRULES, "b"),
        ]
        assert combine_conventions(files, False) == "a" + SOURCE_SEPARATOR + "b"


# ---------------------------------------------------------------------------
# discover_convention_files
# ---------------------------------------------------------------------------


class TestDiscoverConventionFiles:
    """Discovery across all locations."""

    def test_empty_project(self, project_dir: Path) -> None:
        assert discover_convention_files(project_dir) == []

    def test_all_locations_in_priority_order(self, project_dir: Path) -> None:
        _write(project_dir, ".claude/settings.json", '{"rules": []}')
        _write(project_dir, ".cursor/rules/style.md", "style")
        _write(project_dir, ".cursorrules", "cursor")
        _write(project_dir, "CLAUDE.md", "claude")

        files = discover_convention_files(project_dir)
        assert [f.type for f in files] == list(CONVENTION_PRIORITY)
        assert [Path(f.path).name for f in files] == [
            "CLAUDE.md",
            ".cursorrules",
            "style.md",
            "settings.json",
        ]

    def test_paths_are_absolute(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "claude")
        files = discover_convention_files(project_dir)
        assert Path(files[0].path).is_absolute()

    def test_rules_directory_sorted_and_not_recursive(self, project_dir: Path) -> None:
        _write(project_dir, ".cursor/rules/b.md", "b")
        _write(project_dir, ".cursor/rules/a.md", "a")
        _write(project_dir, ".cursor/rules/nested/c.md", "c")

        files = discover_convention_files(project_dir)
        assert [Path(f.path).name for f in files] == ["a.md", "b.md"]

    def test_unreadable_entries_skipped(self, project_dir: Path) -> None:
        _write(project_dir, ".cursor/rules/good.md", "good")
        (project_dir / ".cursor/rules/bad.bin").write_bytes(b"\x00\x01")
        os.symlink("loop.md", project_dir / ".cursor/rules/loop.md")

        files = discover_convention_files(project_dir)
        assert [Path(f.path).name for f in files] == ["good.md"]

    def test_duplicates_removed(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "Use tabs.\n")
        _write(project_dir, ".cursorrules", "Use tabs.")
        files = discover_convention_files(project_dir)
        assert [f.type for f in files] == [ConventionType.CLAUDE_MD]

    def test_per_file_truncation(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "x" * 50)
        config = ConventionsConfig(max_file_size=20)
        files = discover_convention_files(project_dir, config)
        assert files[0].truncated is True
        assert files[0].size == 50
        assert files[0].content == "x" * 20 + TRUNCATION_MARKER

    def test_file_over_budget_skipped(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "a" * 60)
        _write(project_dir, ".cursorrules", "b" * 60)
        _write(project_dir, ".claude/settings.json", "c" * 30)
        config = ConventionsConfig(max_combined_size=100)

        files = discover_convention_files(project_dir, config)
        assert [f.type for f in files] == [
            ConventionType.CLAUDE_MD,
            ConventionType.CLAUDE_SETTINGS,
        ]
        assert sum(f.size for f in files) <= 100

    def test_scanning_stops_when_budget_reached(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "a" * 100)
        _write(project_dir, ".cursorrules", "b")
        config = ConventionsConfig(max_combined_size=100)

        files = discover_convention_files(project_dir, config)
        assert [f.type for f in files] == [ConventionType.CLAUDE_MD]

    def test_budget_counts_original_size(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "a" * 80)
        _write(project_dir, ".cursorrules", "b" * 30)
        config = ConventionsConfig(max_file_size=10, max_combined_size=100)

        files = discover_convention_files(project_dir, config)
        assert [f.type for f in files] == [ConventionType.CLAUDE_MD]


class TestGetConventionsForPrompt:
    """Discovery plus combination in one call."""

    def test_returns_text_and_files(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "Use tabs.")
        text, files = get_conventions_for_prompt(project_dir)
        assert len(files) == 1
        assert text.startswith("# Source: ")
        assert text.endswith("Use tabs.")

    def test_without_markers(self, project_dir: Path) -> None:
        _write(project_dir, "CLAUDE.md", "Use tabs.")
        config = ConventionsConfig(include_source_markers=False)
        text, _ = get_conventions_for_prompt(project_dir, config)
        assert text == "Use tabs."

    def test_empty_project(self, project_dir: Path) -> None:
        assert get_conventions_for_prompt(project_dir) == ("", [])
