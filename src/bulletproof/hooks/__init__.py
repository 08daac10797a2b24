"""Pre-push hook integration.

- :func:`build_plan` -- load config, discover, analyse the diff and render
  the fixer task.
- :func:`run_pre_push` -- build the plan and hand it to a fixer callable.

The hook is failure-tolerant: :func:`run_pre_push` reports every failure
through :class:`PrePushResult` instead of raising.
"""

from bulletproof.hooks.pre_push import (
    FixTask,
    Fixer,
    PrePushPlan,
    PrePushResult,
    build_plan,
    run_pre_push,
)

__all__ = [
    "FixTask",
    "Fixer",
    "PrePushPlan",
    "PrePushResult",
    "build_plan",
    "run_pre_push",
]
