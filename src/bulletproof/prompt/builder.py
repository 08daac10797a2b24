"""PromptBuilder -- renders the task description handed to the fixer.

The builder turns a :class:`BulletproofConfig`, a :class:`DiffAnalysis` and
an optional :class:`DiscoveryResult` into two strings:

- **System prompt**: role, working-directory constraint, goals.
- **Task prompt**: ordered checks to run with their commands, skipped
  checks, coverage guidance, project conventions, and the success sentinel.

All output is deterministic for the same input.  The builder is pure: it
performs no I/O.

Typical usage::

    from bulletproof.prompt import generate_prompt, generate_system_prompt

    system = generate_system_prompt(config, discovery)
    task = generate_prompt(config, analysis, discovery)
"""

from __future__ import annotations

from typing import Optional

from bulletproof.config import BulletproofConfig, CheckName
from bulletproof.diff.analyzer import DiffAnalysis
from bulletproof.discovery.orchestrator import DiscoveryResult
from bulletproof.discovery.scripts import ScriptCategory

# Sentinel the fixer must print when every check passes.
SUCCESS_SENTINEL = "ALL CHECKS PASSED"

# Why each check is skipped, shown in the "skipped checks" section.
_SKIP_NOTES: dict[CheckName, str] = {
    CheckName.RULES: "Rules compliance (not requested)",
    CheckName.LINT: "Lint (not needed for this diff)",
    CheckName.FORMAT: "Format (not needed for this diff)",
    CheckName.TYPECHECK: "Typecheck (no code changes)",
    CheckName.BUILD: "Build (not needed for this diff)",
    CheckName.TESTS: "Tests (no testable changes)",
    CheckName.COVERAGE: "Coverage (not needed for this diff)",
}

_DISCOVERABLE: tuple[tuple[CheckName, ScriptCategory], ...] = (
    (CheckName.LINT, ScriptCategory.LINT),
    (CheckName.FORMAT, ScriptCategory.FORMAT),
    (CheckName.BUILD, ScriptCategory.BUILD),
)


def resolve_commands(
    config: BulletproofConfig,
    discovery: Optional[DiscoveryResult] = None,
) -> dict[CheckName, Optional[str]]:
    """Return the command for each command-backed check.

    For lint, format and build an explicit ``commands`` entry wins, then the
    discovered script's run command; None means no command is available.

    Typecheck always uses ``commands.typecheck``, even when discovery found
    a typecheck script.  The discovered script is reported by ``discover``
    but never replaces the configured command; set ``commands.typecheck``
    to use a different one.
    """
    commands = config.commands
    resolved: dict[CheckName, Optional[str]] = {
        CheckName.TYPECHECK: commands.typecheck,
    }
    for check, category in _DISCOVERABLE:
        explicit = getattr(commands, check.value)
        if explicit:
            resolved[check] = explicit
        elif discovery is not None:
            resolved[check] = discovery.scripts.get_check_command(category)
        else:
            resolved[check] = None
    return resolved


class PromptBuilder:
    """Builds fixer prompts.  Stateless; every method is a pure function.

    Commands come from :func:`resolve_commands`: discovered scripts fill in
    lint, format and build only.  Typecheck always runs the configured
    ``commands.typecheck``.
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def system_prompt(
        self,
        config: BulletproofConfig,
        discovery: Optional[DiscoveryResult] = None,
    ) -> str:
        rules_source = self._rules_source(config, discovery)
        base = (
            "You are an expert developer running pre-push checks and ensuring "
            "code follows project conventions.\n"
            "You are working in the current directory - DO NOT cd to any other "
            "directory.\n"
            "Your goals are:\n"
            "1. Make all requested checks pass\n"
            f"2. Ensure ALL changed files comply with the project conventions in "
            f"{rules_source}\n\n"
            "Be systematic: run checks, analyze failures, fix issues, verify "
            "fixes, repeat.\n"
            "Do NOT read files from other users' directories."
        )
        if config.system_prompt:
            return f"{base}\n\n{config.system_prompt}"
        return base

    def task_prompt(
        self,
        config: BulletproofConfig,
        analysis: DiffAnalysis,
        discovery: Optional[DiscoveryResult] = None,
    ) -> str:
        sections: list[str] = [
            "You are running pre-push checks for THIS project in the current "
            "working directory.",
            "",
            f"## Change summary\n{analysis.reason}",
            "",
        ]

        steps, skipped = self._plan_steps(config, analysis, discovery)

        if skipped:
            sections.append("## SKIPPED CHECKS (based on diff analysis):")
            sections.extend(f"- {note}" for note in skipped)
            sections.append("")
            sections.append(
                "These checks are skipped because the changes don't require them."
            )
            sections.append("")

        sections.append("## Your Task (in order):")
        if steps:
            sections.extend(f"{i}. {step}" for i, step in enumerate(steps, start=1))
        else:
            sections.append("No checks are required for this change.")
        sections.append("")

        sections.append(self._coverage_section(config, analysis))
        sections.append("")

        if analysis.checks.rules:
            sections.append(self._conventions_section(config, discovery))
            sections.append("")

        sections.append("## When finished:")
        sections.append(
            f'- If all checks AND rules compliance pass, say "{SUCCESS_SENTINEL}"'
        )
        sections.append("- If stuck, explain what's blocking you")
        sections.append("- Make minimal changes and follow existing code patterns")

        if config.additional_instructions:
            sections.append("")
            sections.append("## Additional Instructions:")
            sections.append(config.additional_instructions)

        return "\n".join(sections).rstrip() + "\n"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _plan_steps(
        self,
        config: BulletproofConfig,
        analysis: DiffAnalysis,
        discovery: Optional[DiscoveryResult],
    ) -> tuple[list[str], list[str]]:
        """Return ``(steps, skipped_notes)`` in check order."""
        commands = resolve_commands(config, discovery)
        related = (
            " ".join(analysis.related_files)
            if analysis.use_related_tests and analysis.related_files
            else ""
        )

        steps: list[str] = []
        skipped: list[str] = []
        for check in CheckName:
            if not analysis.checks.is_enabled(check):
                skipped.append(_SKIP_NOTES[check])
                continue

            if check is CheckName.RULES:
                steps.append(
                    "**RULES COMPLIANCE CHECK**: review changed files against "
                    "the project conventions"
                )
            elif check in (CheckName.LINT, CheckName.FORMAT, CheckName.BUILD):
                command = commands.get(check)
                if command:
                    steps.append(f"Run `{command}` - fix ALL {check.value} errors")
                else:
                    skipped.append(f"{check.value.capitalize()} (no script found)")
            elif check is CheckName.TYPECHECK:
                steps.append(
                    f"Run `{commands[CheckName.TYPECHECK]}` - fix ALL type errors"
                )
            elif check is CheckName.TESTS:
                if related:
                    steps.append(
                        f"Run `{config.commands.test_related} {related}` - run only "
                        f"tests related to changed files"
                    )
                else:
                    steps.append(
                        f"Run `{config.commands.test}` - verify all tests pass"
                    )
            elif check is CheckName.COVERAGE:
                if related:
                    steps.append(
                        f"Run `{config.commands.test_coverage_related} {related}` - "
                        f"coverage for related tests only"
                    )
                else:
                    steps.append(
                        f"Run `{config.commands.test_coverage}` - verify coverage "
                        f"thresholds"
                    )
        return steps, skipped

    def _coverage_section(
        self,
        config: BulletproofConfig,
        analysis: DiffAnalysis,
    ) -> str:
        if not analysis.checks.coverage:
            return (
                "## NOTE: Coverage check is SKIPPED for this diff.\n"
                f"Reason: {analysis.reason}\n"
                "Just run the checks listed above and report results."
            )

        t = config.coverage_thresholds
        return (
            "## COVERAGE:\n"
            f"Thresholds: Lines >={t.lines:g}%, Statements >={t.statements:g}%, "
            f"Functions >={t.functions:g}%, Branches >={t.branches:g}%\n"
            "Only add tests for NEW code that genuinely needs them. Scripts, "
            "config, documentation and type definitions do not need coverage."
        )

    def _conventions_section(
        self,
        config: BulletproofConfig,
        discovery: Optional[DiscoveryResult],
    ) -> str:
        if discovery is not None and discovery.conventions_text:
            return (
                "## PROJECT CONVENTIONS\n"
                "Changed files MUST follow these conventions:\n\n"
                f"{discovery.conventions_text}"
            )
        return (
            "## PROJECT CONVENTIONS\n"
            f"Run `cat {config.rules_file}` and read the entire file carefully. "
            "It contains the conventions your changes MUST follow."
        )

    @staticmethod
    def _rules_source(
        config: BulletproofConfig,
        discovery: Optional[DiscoveryResult],
    ) -> str:
        if discovery is not None and discovery.conventions:
            return ", ".join(c.path for c in discovery.conventions)
        return config.rules_file


_DEFAULT_BUILDER = PromptBuilder()


def generate_system_prompt(
    config: BulletproofConfig,
    discovery: Optional[DiscoveryResult] = None,
) -> str:
    """Render the fixer's system prompt."""
    return _DEFAULT_BUILDER.system_prompt(config, discovery)


def generate_prompt(
    config: BulletproofConfig,
    analysis: DiffAnalysis,
    discovery: Optional[DiscoveryResult] = None,
) -> str:
    """Render the fixer's task description."""
    return _DEFAULT_BUILDER.task_prompt(config, analysis, discovery)
