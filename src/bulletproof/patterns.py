"""Scope pattern compilation and matching.

Coverage scope and file categorisation both work on repository-relative
paths (``src/lib/util.ts``).  Patterns come in two flavours:

- **Glob strings** such as ``src/**/*.ts``.  They are translated into an
  anchored regular expression by :func:`glob_to_regex`.
- **Tagged regexes**, either a pre-compiled :class:`re.Pattern` or any object
  carrying a ``regex`` attribute (see ``RegexPattern`` in
  :mod:`bulletproof.config`).  They bypass translation and are applied with
  :meth:`re.Pattern.search`, so the author controls anchoring.

Typical usage::

    matcher = PatternMatcher(include=["src/**/*.ts"], exclude=["**/*.d.ts"])
    matcher.matches("src/lib/util.ts")   # True
    matcher.matches("src/lib/util.d.ts") # False
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Union

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Regex metacharacters escaped before glob wildcards are expanded.  ``*`` and
# ``?`` are left out: they are the glob wildcards.
_GLOB_META_RE = re.compile(r"[.+^${}()|\[\]\\]")

# Placeholder for ``**`` while single ``*`` is being expanded.  It contains no
# character that any later substitution touches.
_GLOBSTAR_MARKER = "\x00GLOBSTAR\x00"

PatternLike = Union[str, "re.Pattern[str]", Any]


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an anchored regular expression string.

    The steps run in a fixed order:

    1. escape regex metacharacters,
    2. replace ``**`` with a placeholder,
    3. expand ``*`` to ``[^/]*`` (stays within one path segment),
    4. expand ``?`` to ``[^/]`` (one character within a segment),
    5. expand the placeholder to ``.*`` (crosses segments).

    Note that ``src/**/*.ts`` requires at least one directory below
    ``src/``: it matches ``src/lib/a.ts`` but not ``src/a.ts``.

    Parameters
    ----------
    pattern:
        The glob pattern.

    Returns
    -------
    str
        A regex source string anchored with ``^`` and ``$``.
    """
    escaped = _GLOB_META_RE.sub(lambda m: "\\" + m.group(0), pattern)
    escaped = escaped.replace("**", _GLOBSTAR_MARKER)
    escaped = escaped.replace("*", "[^/]*")
    escaped = escaped.replace("?", "[^/]")
    escaped = escaped.replace(_GLOBSTAR_MARKER, ".*")
    return f"^{escaped}$"


def compile_pattern(pattern: PatternLike) -> "re.Pattern[str]":
    """Compile a glob string or tagged regex into a :class:`re.Pattern`.

    Raises
    ------
    TypeError
        If *pattern* is neither a string, a compiled pattern, nor an object
        with a string ``regex`` attribute.
    re.error
        If a tagged regex is not a valid regular expression.
    """
    if isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, str):
        return re.compile(glob_to_regex(pattern))
    regex = getattr(pattern, "regex", None)
    if isinstance(regex, str):
        return re.compile(regex)
    raise TypeError(f"Unsupported scope pattern: {pattern!r}")


def matches_any(path: str, patterns: Iterable["re.Pattern[str]"]) -> bool:
    """Return True if *path* matches at least one compiled pattern."""
    return any(p.search(path) for p in patterns)


# ---------------------------------------------------------------------------
# PatternMatcher
# ---------------------------------------------------------------------------


class PatternMatcher:
    """Include/exclude matcher over repository-relative paths.

    A path matches iff it matches at least one include pattern and no
    exclude pattern.  Patterns are compiled once at construction.
    """

    def __init__(
        self,
        include: Iterable[PatternLike] = (),
        exclude: Iterable[PatternLike] = (),
    ) -> None:
        self._include = tuple(compile_pattern(p) for p in include)
        self._exclude = tuple(compile_pattern(p) for p in exclude)

    @property
    def include(self) -> tuple["re.Pattern[str]", ...]:
        return self._include

    @property
    def exclude(self) -> tuple["re.Pattern[str]", ...]:
        return self._exclude

    def matches(self, path: str) -> bool:
        """Return True if *path* is in scope."""
        normalised = path.replace("\\", "/")
        if not matches_any(normalised, self._include):
            return False
        return not matches_any(normalised, self._exclude)

    def filter(self, paths: Iterable[str]) -> list[str]:
        """Return the in-scope subset of *paths*, preserving order."""
        return [p for p in paths if self.matches(p)]

    def __repr__(self) -> str:
        return (
            f"PatternMatcher(include={[p.pattern for p in self._include]!r}, "
            f"exclude={[p.pattern for p in self._exclude]!r})"
        )
