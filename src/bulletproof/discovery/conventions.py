"""Convention file discovery.

Locates project-authored rules documents and combines them into one text
blob for the fixer.  Locations, highest authority first:

1. ``CLAUDE.md``
2. ``.cursorrules``
3. ``.cursor/rules/`` -- every regular file directly inside, in name order
4. ``.claude/settings.json``

Files are read with a per-file byte limit (content past the limit is cut and
a truncation marker appended) and a combined budget counted in original
byte sizes.  Binary files, invalid UTF-8 and circular symlink chains are
skipped silently.  Identical content found at several locations is kept only
at the highest-priority one.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, NamedTuple, Optional, Union

from bulletproof.config import ConventionsConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConventionType(str, Enum):
    """Kinds of convention file, declared in priority order (highest first)."""

    CLAUDE_MD = "claude-md"
    CURSORRULES = "cursorrules"
    CURSOR_RULES_DIR = "cursor-rules-dir"
    CLAUDE_SETTINGS = "claude-settings"


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CONVENTION_PRIORITY: tuple[ConventionType, ...] = tuple(ConventionType)

TRUNCATION_MARKER = "\n... [truncated]"
SOURCE_SEPARATOR = "\n\n---\n\n"

# Upper bound on symlink hops followed before a chain is treated as unsafe.
_MAX_SYMLINK_HOPS = 40


class _ConventionLocation(NamedTuple):
    path: str
    type: ConventionType
    is_directory: bool


CONVENTION_LOCATIONS: tuple[_ConventionLocation, ...] = (
    _ConventionLocation("CLAUDE.md", ConventionType.CLAUDE_MD, False),
    _ConventionLocation(".cursorrules", ConventionType.CURSORRULES, False),
    _ConventionLocation(".cursor/rules", ConventionType.CURSOR_RULES_DIR, True),
    _ConventionLocation(".claude/settings.json", ConventionType.CLAUDE_SETTINGS, False),
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConventionFile:
    """A convention file found during discovery.

    Attributes:
        path: Absolute path to the file.
        type: Which location the file came from.
        size: Original size in bytes, before any truncation.
        content: Decoded text, possibly truncated.
        truncated: Whether ``content`` was cut at the per-file limit.
    """

    path: str
    type: ConventionType
    size: int
    content: str
    truncated: bool = False

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "type": self.type.value,
            "size": self.size,
            "truncated": self.truncated,
        }


class LoadedContent(NamedTuple):
    """Text read from one file by :func:`load_file_content`."""

    content: str
    size: int
    truncated: bool


# ---------------------------------------------------------------------------
# Safety checks
# ---------------------------------------------------------------------------


def is_valid_text(raw: bytes) -> bool:
    """Return True if *raw* looks like UTF-8 text.

    NUL bytes mark a binary file; undecodable sequences show up as U+FFFD
    replacement characters after a lenient decode.
    """
    if b"\x00" in raw:
        return False
    return "\ufffd" not in raw.decode("utf-8", errors="replace")


def is_safe_to_read(path: Union[str, Path]) -> bool:
    """Return False if *path* is part of a circular symlink chain.

    Follows the chain one link at a time, tracking each absolute path
    visited.  Revisiting a path, exceeding the hop limit, or failing to
    read a link all count as unsafe.
    """
    visited: set[str] = set()
    current = os.path.abspath(path)

    for _ in range(_MAX_SYMLINK_HOPS):
        if current in visited:
            return False
        visited.add(current)
        try:
            if not os.path.islink(current):
                return True
            target = os.readlink(current)
        except OSError:
            return False
        current = os.path.abspath(os.path.join(os.path.dirname(current), target))

    return False


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_file_content(
    path: Union[str, Path],
    max_size: int,
) -> Optional[LoadedContent]:
    """Read a text file, truncating content past *max_size* bytes.

    Returns None for missing files, non-regular files, unsafe symlinks,
    binary or non-UTF-8 content, and read errors.  The returned ``size`` is
    always the original byte length.
    """
    file_path = Path(path)
    try:
        if not is_safe_to_read(file_path) or not file_path.is_file():
            return None
        raw = file_path.read_bytes()
    except OSError:
        logger.debug("Could not read convention file %s", file_path, exc_info=True)
        return None

    if not is_valid_text(raw):
        logger.debug("Skipping non-text convention file %s", file_path)
        return None

    size = len(raw)
    if size > max_size:
        content = raw[:max_size].decode("utf-8", errors="ignore") + TRUNCATION_MARKER
        return LoadedContent(content=content, size=size, truncated=True)
    return LoadedContent(content=raw.decode("utf-8"), size=size, truncated=False)


def _load_directory_files(dir_path: Path, max_file_size: int) -> list[ConventionFile]:
    """Load every regular file directly inside *dir_path*, in name order."""
    try:
        if not is_safe_to_read(dir_path) or not dir_path.is_dir():
            return []
        entries = sorted(os.listdir(dir_path))
    except OSError:
        logger.debug("Could not list %s", dir_path, exc_info=True)
        return []

    files: list[ConventionFile] = []
    for entry in entries:
        entry_path = dir_path / entry
        loaded = load_file_content(entry_path, max_file_size)
        if loaded is not None:
            files.append(
                ConventionFile(
                    path=str(entry_path),
                    type=ConventionType.CURSOR_RULES_DIR,
                    size=loaded.size,
                    content=loaded.content,
                    truncated=loaded.truncated,
                )
            )
    return files


# ---------------------------------------------------------------------------
# Deduplication and combination
# ---------------------------------------------------------------------------


def _normalise(content: str) -> str:
    return content.replace("\r\n", "\n").strip()


def deduplicate_content(
    files: Iterable[ConventionFile],
    priority_order: Iterable[ConventionType] = CONVENTION_PRIORITY,
) -> list[ConventionFile]:
    """Drop files whose normalised content repeats a higher-priority file.

    Files are ordered by *priority_order* (stable within one type), then each
    file's content is normalised (CRLF to LF, surrounding whitespace
    stripped) and compared with content already kept.
    """
    ranking = {t: i for i, t in enumerate(priority_order)}
    ordered = sorted(files, key=lambda f: ranking.get(f.type, len(ranking)))

    seen: set[str] = set()
    result: list[ConventionFile] = []
    for file in ordered:
        normalised = _normalise(file.content)
        if normalised in seen:
            logger.debug("Dropping duplicate convention file %s", file.path)
            continue
        seen.add(normalised)
        result.append(file)
    return result


def combine_conventions(
    files: list[ConventionFile],
    include_source_markers: bool,
) -> str:
    """Join convention files into one text blob.

    With source markers each file is rendered as ``# Source: <path>``
    followed by a blank line and its content.  Without markers a single
    file is returned verbatim.  No files gives an empty string.
    """
    if not files:
        return ""
    if len(files) == 1 and not include_source_markers:
        return files[0].content

    if include_source_markers:
        parts = [f"# Source: {f.path}\n\n{f.content}" for f in files]
    else:
        parts = [f.content for f in files]
    return SOURCE_SEPARATOR.join(parts)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_convention_files(
    cwd: Union[str, Path],
    config: Optional[ConventionsConfig] = None,
) -> list[ConventionFile]:
    """Discover, budget and deduplicate convention files under *cwd*.

    Locations are visited in priority order.  A file is skipped when adding
    its original size would exceed ``max_combined_size``; once the running
    total reaches the budget no further locations are scanned.
    """
    if config is None:
        config = ConventionsConfig()
    root = Path(cwd).resolve()

    discovered: list[ConventionFile] = []
    total_size = 0

    for location in CONVENTION_LOCATIONS:
        if total_size >= config.max_combined_size:
            break

        full_path = root / location.path
        if location.is_directory:
            candidates = _load_directory_files(full_path, config.max_file_size)
        else:
            loaded = load_file_content(full_path, config.max_file_size)
            if loaded is None:
                continue
            candidates = [
                ConventionFile(
                    path=str(full_path),
                    type=location.type,
                    size=loaded.size,
                    content=loaded.content,
                    truncated=loaded.truncated,
                )
            ]

        for candidate in candidates:
            if total_size + candidate.size > config.max_combined_size:
                logger.debug(
                    "Skipping %s: combined convention budget of %d bytes exceeded",
                    candidate.path,
                    config.max_combined_size,
                )
                continue
            discovered.append(candidate)
            total_size += candidate.size

    return deduplicate_content(discovered)


def get_conventions_for_prompt(
    cwd: Union[str, Path],
    config: Optional[ConventionsConfig] = None,
) -> tuple[str, list[ConventionFile]]:
    """Discover convention files and return ``(combined_text, files)``."""
    if config is None:
        config = ConventionsConfig()
    files = discover_convention_files(cwd, config)
    return combine_conventions(files, config.include_source_markers), files
