"""Project discovery: check scripts and convention files.

- :func:`discover_scripts` -- resolve lint/format/typecheck/build scripts
  from ``package.json``.
- :func:`discover_convention_files` -- locate, budget and deduplicate
  project convention documents.
- :func:`run_discovery` -- both of the above in one result.
"""

from bulletproof.discovery.conventions import (
    CONVENTION_LOCATIONS,
    CONVENTION_PRIORITY,
    SOURCE_SEPARATOR,
    TRUNCATION_MARKER,
    ConventionFile,
    ConventionType,
    LoadedContent,
    combine_conventions,
    deduplicate_content,
    discover_convention_files,
    get_conventions_for_prompt,
    is_safe_to_read,
    is_valid_text,
    load_file_content,
)
from bulletproof.discovery.orchestrator import (
    DiscoveryResult,
    format_discovery_summary,
    run_discovery,
)
from bulletproof.discovery.scripts import (
    BLACKLIST_PATTERNS,
    CHECK_EXECUTION_ORDER,
    LOCKFILE_PRIORITY,
    SCRIPT_PATTERNS,
    DiscoveredScript,
    PackageManager,
    ScriptCategory,
    ScriptDiscoveryResult,
    categorize_script,
    detect_package_manager,
    discover_scripts,
    get_run_command,
    is_blacklisted,
    is_exact_match,
)

__all__ = [
    "BLACKLIST_PATTERNS",
    "CHECK_EXECUTION_ORDER",
    "CONVENTION_LOCATIONS",
    "CONVENTION_PRIORITY",
    "ConventionFile",
    "ConventionType",
    "DiscoveredScript",
    "DiscoveryResult",
    "LOCKFILE_PRIORITY",
    "LoadedContent",
    "PackageManager",
    "SCRIPT_PATTERNS",
    "SOURCE_SEPARATOR",
    "ScriptCategory",
    "ScriptDiscoveryResult",
    "TRUNCATION_MARKER",
    "categorize_script",
    "combine_conventions",
    "deduplicate_content",
    "detect_package_manager",
    "discover_convention_files",
    "discover_scripts",
    "format_discovery_summary",
    "get_conventions_for_prompt",
    "get_run_command",
    "is_blacklisted",
    "is_exact_match",
    "is_safe_to_read",
    "is_valid_text",
    "load_file_content",
    "run_discovery",
]
