"""Click CLI commands for inspecting pre-push runs.

Provides the ``bulletproof`` CLI entry point with subcommands:
- ``bulletproof config``   -- Print the merged configuration.
- ``bulletproof discover`` -- Show discovered conventions and check scripts.
- ``bulletproof analyze``  -- Show the diff analysis and selected checks.
- ``bulletproof plan``     -- Print the task description for the fixer.
"""

from bulletproof.cli.main import analyze, cli, discover, plan, show_config

__all__ = ["analyze", "cli", "discover", "plan", "show_config"]
