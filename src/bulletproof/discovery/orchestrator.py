"""Discovery orchestrator: scripts plus conventions in one pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from bulletproof.config import DiscoveryConfig
from bulletproof.discovery.conventions import (
    ConventionFile,
    combine_conventions,
    discover_convention_files,
)
from bulletproof.discovery.scripts import (
    CHECK_EXECUTION_ORDER,
    ScriptDiscoveryResult,
    discover_scripts,
)

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    """Everything discovery found for one project.

    Attributes:
        conventions: Deduplicated convention files, highest priority first.
        scripts: Script discovery result (empty when script discovery is off).
        conventions_text: The convention files combined into one blob.
    """

    conventions: list[ConventionFile] = field(default_factory=list)
    scripts: ScriptDiscoveryResult = field(default_factory=ScriptDiscoveryResult)
    conventions_text: str = ""

    def to_dict(self) -> dict:
        return {
            "conventions": [c.to_dict() for c in self.conventions],
            "scripts": self.scripts.to_dict(),
            "conventions_size": len(self.conventions_text.encode("utf-8")),
        }


def run_discovery(
    cwd: Union[str, Path],
    config: Optional[DiscoveryConfig] = None,
) -> DiscoveryResult:
    """Run convention and script discovery for the project at *cwd*.

    Script discovery is skipped when ``config.auto_discover_scripts`` is
    False; the result then holds an empty npm script map.
    """
    if config is None:
        config = DiscoveryConfig()

    conventions = discover_convention_files(cwd, config.conventions)
    scripts = (
        discover_scripts(cwd)
        if config.auto_discover_scripts
        else ScriptDiscoveryResult()
    )
    text = combine_conventions(conventions, config.conventions.include_source_markers)

    logger.info(
        "Discovery: %d convention file(s), %d check script(s), package manager %s",
        len(conventions),
        len(scripts.ordered_checks()),
        scripts.package_manager.value,
    )
    return DiscoveryResult(
        conventions=conventions,
        scripts=scripts,
        conventions_text=text,
    )


def format_discovery_summary(result: DiscoveryResult) -> str:
    """Render a plain-text summary of *result* for logs and the CLI."""
    lines: list[str] = []

    if result.conventions:
        lines.append(f"Convention files: {len(result.conventions)}")
        for file in result.conventions:
            size_kib = file.size / 1024
            lines.append(f"  - {file.type.value}: {file.path} ({size_kib:.1f}KB)")
    else:
        lines.append("Convention files: none found")

    lines.append(f"Package manager: {result.scripts.package_manager.value}")
    lines.append("Discovered checks:")
    for category in CHECK_EXECUTION_ORDER:
        command = result.scripts.get_check_command(category)
        lines.append(f"  - {category.value}: {command or 'not found'}")

    return "\n".join(lines)
