"""Script discovery from ``package.json``.

Finds the project's own lint, format, typecheck and build scripts so they can
be run without any configuration.  The flow is:

1. Detect the package manager from lockfiles (``bun > pnpm > yarn > npm``).
2. Read the ``scripts`` map of ``package.json``.
3. Classify each script name, in sorted order.  Blacklisted names (watchers,
   dev servers, fixers, CI variants, install hooks) are never classified.
4. Keep one script per category, preferring exact name matches over prefix
   matches.

The resolved run command is always ``<package manager> run <script name>``
(or ``yarn <name>``), never the script's own shell command.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ScriptCategory(str, Enum):
    """Check categories that can be resolved to a package.json script."""

    LINT = "lint"
    FORMAT = "format"
    TYPECHECK = "typecheck"
    BUILD = "build"


class PackageManager(str, Enum):
    """Supported JavaScript package managers."""

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"
    BUN = "bun"


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MANIFEST_FILE_NAME = "package.json"

# Execution order, which is also the order categories are tried in when
# classifying a script name.
CHECK_EXECUTION_ORDER: tuple[ScriptCategory, ...] = (
    ScriptCategory.LINT,
    ScriptCategory.FORMAT,
    ScriptCategory.TYPECHECK,
    ScriptCategory.BUILD,
)

# Lockfile -> package manager, highest priority first.  npm is the default.
LOCKFILE_PRIORITY: tuple[tuple[str, PackageManager], ...] = (
    ("bun.lockb", PackageManager.BUN),
    ("pnpm-lock.yaml", PackageManager.PNPM),
    ("yarn.lock", PackageManager.YARN),
)

_RUN_TEMPLATES: dict[PackageManager, str] = {
    PackageManager.NPM: "npm run {name}",
    PackageManager.YARN: "yarn {name}",
    PackageManager.PNPM: "pnpm run {name}",
    PackageManager.BUN: "bun run {name}",
}


@dataclass(frozen=True)
class _ScriptPatterns:
    exact: tuple[str, ...]
    prefix: tuple[str, ...]


SCRIPT_PATTERNS: dict[ScriptCategory, _ScriptPatterns] = {
    ScriptCategory.LINT: _ScriptPatterns(
        exact=("lint", "eslint"),
        prefix=("lint:",),
    ),
    ScriptCategory.FORMAT: _ScriptPatterns(
        exact=("format", "prettier", "fmt"),
        prefix=("format:",),
    ),
    ScriptCategory.TYPECHECK: _ScriptPatterns(
        exact=("typecheck", "type-check", "tsc", "types"),
        prefix=("typecheck:", "type-check:"),
    ),
    ScriptCategory.BUILD: _ScriptPatterns(
        exact=("build", "compile"),
        prefix=("build:",),
    ),
}

# Script names that are never discovered.  Strings match exactly; regexes
# are searched case-insensitively.
BLACKLIST_PATTERNS: tuple[Union[str, "re.Pattern[str]"], ...] = (
    # Watchers and dev servers.
    re.compile(r"watch", re.IGNORECASE),
    re.compile(r"dev$", re.IGNORECASE),
    re.compile(r":dev$", re.IGNORECASE),
    re.compile(r"^dev:", re.IGNORECASE),
    # Auto-fixers.
    re.compile(r":fix$", re.IGNORECASE),
    re.compile(r"fix$", re.IGNORECASE),
    # CI variants.
    re.compile(r":ci$", re.IGNORECASE),
    # Preview and serve.
    re.compile(r"preview", re.IGNORECASE),
    re.compile(r"serve", re.IGNORECASE),
    # Install hooks.
    re.compile(r"install", re.IGNORECASE),
    re.compile(r"postinstall", re.IGNORECASE),
    re.compile(r"preinstall", re.IGNORECASE),
    # Specific names with side effects.
    "lint-staged",
    "husky",
    "prepare",
    "prepublish",
    "prepublishOnly",
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveredScript:
    """A package.json script resolved to a check category.

    Attributes:
        name: Script name as written in package.json.
        command: The script's shell command (informational only).
        category: The check category the name was classified into.
        run_command: Package-manager invocation that runs the script.
    """

    name: str
    command: str
    category: ScriptCategory
    run_command: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "command": self.command,
            "category": self.category.value,
            "run_command": self.run_command,
        }


def _empty_script_map() -> dict[ScriptCategory, Optional[DiscoveredScript]]:
    return {category: None for category in CHECK_EXECUTION_ORDER}


@dataclass
class ScriptDiscoveryResult:
    """Result of :func:`discover_scripts`.

    Attributes:
        package_manager: Detected package manager.
        scripts: Best script per category, or None when the category has no
            script.
        all_scripts: Every classified script in sorted name order.
    """

    package_manager: PackageManager = PackageManager.NPM
    scripts: dict[ScriptCategory, Optional[DiscoveredScript]] = field(
        default_factory=_empty_script_map
    )
    all_scripts: list[DiscoveredScript] = field(default_factory=list)

    def ordered_checks(self) -> list[DiscoveredScript]:
        """Resolved scripts in :data:`CHECK_EXECUTION_ORDER`."""
        ordered: list[DiscoveredScript] = []
        for category in CHECK_EXECUTION_ORDER:
            script = self.scripts.get(category)
            if script is not None:
                ordered.append(script)
        return ordered

    def has_check(self, category: ScriptCategory) -> bool:
        return self.scripts.get(ScriptCategory(category)) is not None

    def get_check_command(self, category: ScriptCategory) -> Optional[str]:
        script = self.scripts.get(ScriptCategory(category))
        return script.run_command if script else None

    def to_dict(self) -> dict:
        return {
            "package_manager": self.package_manager.value,
            "scripts": {
                category.value: (script.to_dict() if script else None)
                for category, script in self.scripts.items()
            },
            "all_scripts": [s.to_dict() for s in self.all_scripts],
        }


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def is_blacklisted(script_name: str) -> bool:
    """Return True if *script_name* must never be discovered."""
    for pattern in BLACKLIST_PATTERNS:
        if isinstance(pattern, str):
            if script_name == pattern:
                return True
        elif pattern.search(script_name):
            return True
    return False


def categorize_script(script_name: str) -> Optional[ScriptCategory]:
    """Classify *script_name* into a check category.

    Categories are tried in :data:`CHECK_EXECUTION_ORDER`; the first whose
    exact names or prefixes match wins.  Blacklisted names return None.
    """
    if is_blacklisted(script_name):
        return None

    lower_name = script_name.lower()
    for category in CHECK_EXECUTION_ORDER:
        patterns = SCRIPT_PATTERNS[category]
        if lower_name in patterns.exact:
            return category
        if any(lower_name.startswith(prefix) for prefix in patterns.prefix):
            return category
    return None


def is_exact_match(script_name: str, category: ScriptCategory) -> bool:
    """Return True if *script_name* is one of *category*'s exact names."""
    return script_name.lower() in SCRIPT_PATTERNS[category].exact


# ---------------------------------------------------------------------------
# Package manager
# ---------------------------------------------------------------------------


def detect_package_manager(cwd: Union[str, Path]) -> PackageManager:
    """Detect the package manager from lockfiles; defaults to npm."""
    root = Path(cwd)
    for lockfile, manager in LOCKFILE_PRIORITY:
        if (root / lockfile).exists():
            return manager
    return PackageManager.NPM


def get_run_command(package_manager: PackageManager, script_name: str) -> str:
    """Return the command that runs *script_name* with *package_manager*."""
    return _RUN_TEMPLATES[PackageManager(package_manager)].format(name=script_name)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_scripts(cwd: Union[str, Path]) -> ScriptDiscoveryResult:
    """Discover check scripts in the project at *cwd*.

    A missing or unparseable package.json yields an empty result (every
    category None) rather than an error.
    """
    root = Path(cwd)
    result = ScriptDiscoveryResult(package_manager=detect_package_manager(root))

    scripts = _read_manifest_scripts(root / MANIFEST_FILE_NAME)
    if not scripts:
        return result

    for script_name in sorted(scripts):
        category = categorize_script(script_name)
        if category is None:
            continue

        discovered = DiscoveredScript(
            name=script_name,
            command=scripts[script_name],
            category=category,
            run_command=get_run_command(result.package_manager, script_name),
        )
        result.all_scripts.append(discovered)

        existing = result.scripts[category]
        if existing is None:
            result.scripts[category] = discovered
        elif is_exact_match(script_name, category) and not is_exact_match(
            existing.name, category
        ):
            result.scripts[category] = discovered

    logger.debug(
        "Discovered %d check scripts (%s) in %s",
        len(result.all_scripts),
        result.package_manager.value,
        root,
    )
    return result


def _read_manifest_scripts(path: Path) -> dict[str, str]:
    """Return the string-valued entries of the manifest's ``scripts`` map."""
    if not path.is_file():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        logger.warning("Could not parse %s. No scripts discovered.", path)
        return {}

    if not isinstance(data, dict):
        return {}
    scripts = data.get("scripts")
    if not isinstance(scripts, dict):
        return {}
    return {
        name: command
        for name, command in scripts.items()
        if isinstance(name, str) and isinstance(command, str)
    }
