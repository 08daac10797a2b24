"""Pre-push hook: compose discovery, diff analysis and prompt rendering.

The hook turns the state of a working copy into a :class:`FixTask` and
hands it to a *fixer*: any callable that accepts a :class:`FixTask` and
returns True when every requested check passed.  Running the fixer,
committing its changes and pushing are the caller's concern.

Hook contract:

- :func:`build_plan` may raise (it is the building block for the CLI).
- :func:`run_pre_push` NEVER raises to the caller.  Planning failures and
  fixer exceptions are caught, logged, and returned as ``success=False``
  with an ``error`` field.
- Configuration is loaded once per run and passed down.

Typical usage::

    from bulletproof.hooks import run_pre_push

    result = run_pre_push(my_fixer, cwd="/repo")
    if not result.success:
        sys.exit(1)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from bulletproof.config import BulletproofConfig, load_config
from bulletproof.diff.analyzer import DiffAnalysis, analyze_diff
from bulletproof.discovery.orchestrator import DiscoveryResult, run_discovery
from bulletproof.prompt.builder import generate_prompt, generate_system_prompt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class FixTask:
    """Everything the fixer needs for one run."""

    prompt: str
    system_prompt: str
    model: str
    max_turns: int
    cwd: str

    def to_dict(self) -> dict:
        return {
            "prompt": self.prompt,
            "system_prompt": self.system_prompt,
            "model": self.model,
            "max_turns": self.max_turns,
            "cwd": self.cwd,
        }


@dataclass
class PrePushPlan:
    """The inputs and rendered task for one pre-push run."""

    config: BulletproofConfig
    discovery: DiscoveryResult
    analysis: DiffAnalysis
    task: FixTask

    def to_dict(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "discovery": self.discovery.to_dict(),
            "analysis": self.analysis.to_dict(),
            "task": self.task.to_dict(),
        }


@dataclass
class PrePushResult:
    """Outcome of :func:`run_pre_push`.

    Attributes:
        success: True when the fixer reported that every check passed.
        reason: The diff-analysis reason, when planning got that far.
        checks: Names of the checks that were requested.
        error: Failure description, or None.
    """

    success: bool
    reason: str = ""
    checks: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "reason": self.reason,
            "checks": list(self.checks),
            "error": self.error,
        }


Fixer = Callable[[FixTask], bool]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def build_plan(
    cwd: Optional[Union[str, Path]] = None,
    config: Optional[BulletproofConfig] = None,
) -> PrePushPlan:
    """Load config, discover, analyse the diff and render the fixer task.

    Parameters
    ----------
    cwd:
        Project root.  Defaults to the current working directory.
    config:
        Pre-loaded configuration.  Loaded from *cwd* when omitted.
    """
    root = Path(cwd) if cwd is not None else Path.cwd()
    if config is None:
        config = load_config(root)

    discovery = run_discovery(root, config.discovery)
    analysis = analyze_diff(config, root)

    task = FixTask(
        prompt=generate_prompt(config, analysis, discovery),
        system_prompt=generate_system_prompt(config, discovery),
        model=config.model,
        max_turns=config.max_turns,
        cwd=str(root),
    )
    logger.debug(
        "Pre-push plan for %s: %s (checks: %s)",
        root,
        analysis.reason,
        ", ".join(c.value for c in analysis.checks.enabled()) or "none",
    )
    return PrePushPlan(
        config=config,
        discovery=discovery,
        analysis=analysis,
        task=task,
    )


# ---------------------------------------------------------------------------
# Hook: run_pre_push
# ---------------------------------------------------------------------------


def run_pre_push(
    fixer: Fixer,
    cwd: Optional[Union[str, Path]] = None,
    config: Optional[BulletproofConfig] = None,
) -> PrePushResult:
    """Plan the run and hand the task to *fixer*.

    Returns
    -------
    PrePushResult
        ``success`` mirrors the fixer's return value.  Any exception raised
        while planning or fixing is reported through ``error``.
    """
    try:
        plan = build_plan(cwd, config)
    except Exception as exc:
        logger.warning("Pre-push planning failed: %s", exc, exc_info=True)
        return PrePushResult(success=False, error=f"Planning error: {exc}")

    reason = plan.analysis.reason
    checks = [c.value for c in plan.analysis.checks.enabled()]
    logger.info("Running pre-push checks: %s", reason)

    try:
        passed = bool(fixer(plan.task))
    except Exception as exc:
        logger.warning("Fixer raised: %s", exc, exc_info=True)
        return PrePushResult(
            success=False,
            reason=reason,
            checks=checks,
            error=f"Fixer error: {exc}",
        )

    if passed:
        logger.info("Pre-push checks passed.")
    else:
        logger.warning("Pre-push checks did not pass.")
    return PrePushResult(success=passed, reason=reason, checks=checks)
