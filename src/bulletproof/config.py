"""Configuration and settings module for BULLETPROOF.

Provides the :class:`BulletproofConfig` model which centralises all
configuration for the pre-push guardian.  Configuration is resolved in
priority order:

1. **Environment variables** (highest priority) -- ``BULLETPROOF_*``
2. **Config file** -- the first readable file among :data:`CONFIG_FILE_NAMES`
   at the project root, else the ``bulletproof`` key of ``package.json``
3. **Defaults** (lowest priority) -- the values in :data:`DEFAULT_CONFIG`

Config files use the camelCase keys of the JSON schema (``maxTurns``,
``coverageScope``, ``testCoverageRelated``).  Every field is optional; a
partial file is merged over the defaults by :func:`merge_config`.

Typical usage::

    config = load_config()                      # current working directory
    config = BulletproofConfig.load("/repo")    # explicit project root

    config.checks.coverage                      # True
    config.commands.test                        # "npm run test"
    is_in_coverage_scope("src/lib/a.ts", config.coverage_scope)
"""

from __future__ import annotations

import json
import logging
import os
import re
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from bulletproof.patterns import PatternMatcher

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Configuration file names, searched in this order at the project root.
CONFIG_FILE_NAMES = (
    "bulletproof.config.json",
    "bulletproof.config.js",
    ".bulletproofrc",
    ".bulletproofrc.json",
)

# Project manifest that may embed a config block under MANIFEST_CONFIG_KEY.
MANIFEST_FILE_NAME = "package.json"
MANIFEST_CONFIG_KEY = "bulletproof"

# Environment variable prefix.  ``BULLETPROOF_MODEL``, ``BULLETPROOF_MAX_TURNS``
# and ``BULLETPROOF_LOG_LEVEL`` override the corresponding fields.
ENV_PREFIX = "BULLETPROOF_"

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Top-level fields merged as plain values (partial wins unless absent/null).
_SCALAR_KEYS = (
    "model",
    "maxTurns",
    "rulesFile",
    "systemPrompt",
    "additionalInstructions",
    "logLevel",
)

# Top-level fields merged key-by-key.
_SECTION_KEYS = ("coverageThresholds", "coverageScope", "checks", "commands")

# ``commands`` keys where an explicit null clears the command.  A null for
# any other section key keeps the default.
_NULLABLE_COMMAND_KEYS = frozenset({"lint", "format", "build"})


# ---------------------------------------------------------------------------
# Check enumeration
# ---------------------------------------------------------------------------


class CheckName(str, Enum):
    """The verification types a pre-push run may perform."""

    RULES = "rules"
    LINT = "lint"
    FORMAT = "format"
    TYPECHECK = "typecheck"
    BUILD = "build"
    TESTS = "tests"
    COVERAGE = "coverage"


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class _ConfigModel(BaseModel):
    """Base for config sections: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CoverageThresholds(_ConfigModel):
    """Minimum coverage percentages reported to the fixer."""

    lines: float = Field(default=90, ge=0, le=100)
    statements: float = Field(default=90, ge=0, le=100)
    functions: float = Field(default=78, ge=0, le=100)
    branches: float = Field(default=80, ge=0, le=100)


class RegexPattern(_ConfigModel):
    """A coverage-scope pattern tagged as a regular expression.

    Written in JSON as ``{"regex": "^src/(?!legacy/).*\\.ts$"}``.  The
    expression is applied with ``re.search``, without glob translation.
    """

    regex: str = Field(..., min_length=1)

    @field_validator("regex")
    @classmethod
    def validate_regex(cls, value: str) -> str:
        """Reject expressions that :mod:`re` cannot compile."""
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid regex {value!r}: {exc}") from exc
        return value


ScopePattern = Union[str, RegexPattern]


def _pattern_key(pattern: Any) -> Any:
    """Hashable stand-in for a scope pattern; tagged regexes become compiled."""
    if isinstance(pattern, (str, re.Pattern)):
        return pattern
    return re.compile(pattern.regex)


@lru_cache(maxsize=32)
def _cached_matcher(include: tuple, exclude: tuple) -> PatternMatcher:
    return PatternMatcher(include=include, exclude=exclude)


class CoverageScopeConfig(_ConfigModel):
    """Patterns selecting the source files that require coverage.

    A file is in scope iff it matches at least one ``include`` pattern and
    no ``exclude`` pattern.
    """

    include: list[ScopePattern] = Field(
        default_factory=lambda: ["src/**/*.ts", "src/**/*.tsx"],
    )
    exclude: list[ScopePattern] = Field(
        default_factory=lambda: [
            "src/test/**",
            "**/*.test.ts",
            "**/*.test.tsx",
            "**/*.spec.ts",
            "**/*.spec.tsx",
            "**/types/**",
            "**/*.d.ts",
        ],
    )

    def matcher(self) -> PatternMatcher:
        """Return a :class:`PatternMatcher` for these patterns.

        Matchers are cached by pattern list, so repeated calls with the same
        patterns compile them only once.
        """
        return _cached_matcher(
            tuple(_pattern_key(p) for p in self.include),
            tuple(_pattern_key(p) for p in self.exclude),
        )

    def contains(self, path: str) -> bool:
        """Return True if *path* is in coverage scope."""
        return self.matcher().matches(path)


class ChecksConfig(_ConfigModel):
    """Which checks to run.  Always a full assignment over :class:`CheckName`."""

    rules: bool = Field(default=True, description="Convention compliance review.")
    lint: bool = Field(default=True, description="Lint (discovered from package.json).")
    format: bool = Field(default=True, description="Format check (discovered).")
    typecheck: bool = Field(default=True, description="Type checking.")
    build: bool = Field(default=True, description="Build (discovered).")
    tests: bool = Field(default=True, description="Test suite.")
    coverage: bool = Field(default=True, description="Coverage thresholds.")

    @classmethod
    def only(cls, *names: CheckName) -> "ChecksConfig":
        """Return an assignment enabling exactly *names*."""
        enabled = {CheckName(n).value for n in names}
        return cls(**{c.value: c.value in enabled for c in CheckName})

    def is_enabled(self, name: CheckName) -> bool:
        return bool(getattr(self, CheckName(name).value))

    def enabled(self) -> list[CheckName]:
        """Enabled checks in :class:`CheckName` order."""
        return [c for c in CheckName if self.is_enabled(c)]

    def disabled(self) -> list[CheckName]:
        return [c for c in CheckName if not self.is_enabled(c)]


class CommandsConfig(_ConfigModel):
    """Shell commands used for each check.

    ``lint``, ``format`` and ``build`` default to ``None``: they are filled in
    by script discovery unless set explicitly.
    """

    lint: Optional[str] = None
    format: Optional[str] = None
    typecheck: str = "npm run typecheck"
    build: Optional[str] = None
    test: str = "npm run test"
    test_coverage: str = "npm run test:coverage:ci"
    test_related: str = "npm run test:related"
    test_coverage_related: str = "npm run test:coverage:related"


class ConventionsConfig(_ConfigModel):
    """Limits and rendering options for convention file discovery."""

    max_file_size: int = Field(
        default=100 * 1024,
        ge=1,
        description="Maximum bytes read from one convention file.",
    )
    max_combined_size: int = Field(
        default=200 * 1024,
        ge=1,
        description="Maximum combined original size of all convention files.",
    )
    include_source_markers: bool = Field(
        default=True,
        description="Prefix each file with '# Source: <path>' when combining.",
    )


class DiscoveryConfig(_ConfigModel):
    """Discovery settings."""

    conventions: ConventionsConfig = Field(default_factory=ConventionsConfig)
    auto_discover_scripts: bool = True


class BulletproofConfig(_ConfigModel):
    """Merged configuration for one pre-push run.

    Attributes
    ----------
    model:
        Model name handed to the fixer.
    max_turns:
        Maximum number of fixer turns.
    coverage_thresholds:
        Coverage percentages the fixer is asked to meet.
    coverage_scope:
        Patterns selecting source files that require coverage.
    checks:
        Default check assignment before diff analysis narrows it.
    commands:
        Commands for each check.
    rules_file:
        Legacy single rules file, used when no convention file is discovered.
    discovery:
        Script and convention discovery settings.
    system_prompt:
        Extra text appended to the fixer's system prompt.
    additional_instructions:
        Extra text appended to the task description.
    log_level:
        Python logging level name for the ``bulletproof`` logger.
    """

    model: str = "claude-opus-4-6"
    max_turns: int = Field(default=50, ge=1)
    coverage_thresholds: CoverageThresholds = Field(default_factory=CoverageThresholds)
    coverage_scope: CoverageScopeConfig = Field(default_factory=CoverageScopeConfig)
    checks: ChecksConfig = Field(default_factory=ChecksConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    rules_file: str = ".cursorrules"
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    system_prompt: Optional[str] = None
    additional_instructions: Optional[str] = None
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_log_level(self) -> "BulletproofConfig":
        """Normalise and validate the log level string."""
        normalised = self.log_level.upper().strip()
        if normalised not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. "
                f"Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}."
            )
        self.log_level = normalised
        return self

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, cwd: Optional[Union[str, Path]] = None) -> "BulletproofConfig":
        """Load configuration for the project at *cwd*.  See :func:`load_config`."""
        return load_config(cwd)

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def configure_logging(self) -> None:
        """Apply the configured log level to the ``bulletproof`` logger.

        Adds a StreamHandler on first call only; calling it again just
        updates the level.
        """
        pkg_logger = logging.getLogger("bulletproof")
        pkg_logger.setLevel(self.log_level)

        if not pkg_logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(self.log_level)
            formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            handler.setFormatter(formatter)
            pkg_logger.addHandler(handler)
        else:
            for handler in pkg_logger.handlers:
                handler.setLevel(self.log_level)

    def to_dict(self) -> dict:
        """Return the configuration as a camelCase JSON-compatible dict."""
        return self.model_dump(by_alias=True, mode="json")


DEFAULT_CONFIG = BulletproofConfig()


# ---------------------------------------------------------------------------
# Loading and merging
# ---------------------------------------------------------------------------


def load_config_file(cwd: Union[str, Path]) -> Optional[dict]:
    """Return the raw partial config for the project at *cwd*.

    Tries each name in :data:`CONFIG_FILE_NAMES`; a file that cannot be
    read or does not hold a JSON object is skipped.  Falls back to the
    ``bulletproof`` key of ``package.json``.  Returns None when nothing is
    found.
    """
    root = Path(cwd)

    for file_name in CONFIG_FILE_NAMES:
        path = root / file_name
        if not path.is_file():
            continue
        data = _read_json_object(path)
        if data is not None:
            logger.info("Loaded configuration from %s", path)
            return data

    manifest = root / MANIFEST_FILE_NAME
    if manifest.is_file():
        data = _read_json_object(manifest)
        if data is not None:
            embedded = data.get(MANIFEST_CONFIG_KEY)
            if isinstance(embedded, dict) and embedded:
                logger.info(
                    "Loaded configuration from %s (%s key)",
                    manifest,
                    MANIFEST_CONFIG_KEY,
                )
                return embedded

    logger.debug("No configuration file in %s. Using defaults.", root)
    return None


def merge_config(
    partial: Optional[dict],
    defaults: Optional[BulletproofConfig] = None,
) -> BulletproofConfig:
    """Merge a raw partial config over *defaults*, one level deep.

    Scalars take the partial's value unless it is absent or null.
    ``coverageThresholds``, ``coverageScope``, ``checks``, ``commands`` and
    ``discovery.conventions`` merge key-by-key: keys present in the partial
    override, missing or null keys keep the default.  The exception is
    ``commands.lint``, ``commands.format`` and ``commands.build``, where a
    null clears the command.  Sections that are not JSON objects are ignored.

    Raises
    ------
    pydantic.ValidationError
        If the merged values do not validate (e.g. ``maxTurns: "many"``).
    """
    if defaults is None:
        defaults = DEFAULT_CONFIG
    if not partial:
        return defaults.model_copy(deep=True)

    base = defaults.model_dump(by_alias=True)
    merged: dict[str, Any] = dict(base)

    for key in _SCALAR_KEYS:
        if partial.get(key) is not None:
            merged[key] = partial[key]

    for key in _SECTION_KEYS:
        section = partial.get(key)
        if isinstance(section, dict):
            merged[key] = {**base[key], **_section_overrides(key, section)}

    discovery = partial.get("discovery")
    if isinstance(discovery, dict):
        merged_discovery = dict(base["discovery"])
        conventions = discovery.get("conventions")
        if isinstance(conventions, dict):
            merged_discovery["conventions"] = {
                **base["discovery"]["conventions"],
                **_section_overrides("conventions", conventions),
            }
        if discovery.get("autoDiscoverScripts") is not None:
            merged_discovery["autoDiscoverScripts"] = discovery["autoDiscoverScripts"]
        merged["discovery"] = merged_discovery

    return BulletproofConfig.model_validate(merged)


def load_config(cwd: Optional[Union[str, Path]] = None) -> BulletproofConfig:
    """Load and merge configuration: env -> file -> defaults.

    Never raises on bad input: a merged file config that fails validation
    is discarded with a warning and the defaults are used instead.
    """
    root = Path(cwd) if cwd is not None else Path.cwd()

    file_values = load_config_file(root)
    try:
        config = merge_config(file_values)
    except ValidationError:
        logger.warning(
            "Configuration in %s is invalid. Using defaults.",
            root,
            exc_info=True,
        )
        config = DEFAULT_CONFIG.model_copy(deep=True)

    env_values = _load_env_overrides()
    if env_values:
        try:
            config = merge_config(env_values, config)
        except ValidationError:
            logger.warning(
                "Environment overrides are invalid. Ignoring.",
                exc_info=True,
            )

    return config


def is_in_coverage_scope(file: str, scope: CoverageScopeConfig) -> bool:
    """Return True if *file* matches an include pattern and no exclude pattern."""
    return scope.contains(file)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _section_overrides(key: str, section: dict) -> dict:
    """Drop null entries from a partial section, except clearable commands."""
    return {
        name: value
        for name, value in section.items()
        if value is not None
        or (key == "commands" and name in _NULLABLE_COMMAND_KEYS)
    }


def _read_json_object(path: Path) -> Optional[dict]:
    """Read *path* as a JSON object, returning None on any read/parse problem."""
    try:
        with open(path, "r", encoding="utf-8") as fp:
            data = json.load(fp)
    except json.JSONDecodeError:
        logger.warning("%s contains invalid JSON. Ignoring.", path)
        return None
    except (OSError, UnicodeDecodeError):
        logger.warning("Could not read %s. Ignoring.", path, exc_info=True)
        return None

    if not isinstance(data, dict):
        logger.warning("%s does not contain a JSON object. Ignoring.", path)
        return None
    return data


def _load_env_overrides() -> dict:
    """Read ``BULLETPROOF_*`` environment variables into a camelCase partial.

    Supported variables:

    - ``BULLETPROOF_MODEL`` -- override model
    - ``BULLETPROOF_MAX_TURNS`` -- override maxTurns (integer)
    - ``BULLETPROOF_LOG_LEVEL`` -- override logLevel
    """
    overrides: dict = {}

    model = os.environ.get(f"{ENV_PREFIX}MODEL")
    if model:
        overrides["model"] = model

    max_turns = os.environ.get(f"{ENV_PREFIX}MAX_TURNS")
    if max_turns is not None:
        try:
            overrides["maxTurns"] = int(max_turns)
        except ValueError:
            logger.warning(
                "Invalid %sMAX_TURNS value: %r. Must be an integer. Ignoring.",
                ENV_PREFIX,
                max_turns,
            )

    log_level = os.environ.get(f"{ENV_PREFIX}LOG_LEVEL")
    if log_level:
        if log_level.upper().strip() in VALID_LOG_LEVELS:
            overrides["logLevel"] = log_level
        else:
            logger.warning(
                "Invalid %sLOG_LEVEL value: %r. Ignoring.", ENV_PREFIX, log_level
            )

    if overrides:
        logger.info(
            "Environment overrides applied: %s",
            ", ".join(overrides.keys()),
        )

    return overrides
