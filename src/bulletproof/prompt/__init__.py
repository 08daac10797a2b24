"""Task-description rendering for the external fixer."""

from bulletproof.prompt.builder import (
    SUCCESS_SENTINEL,
    PromptBuilder,
    generate_prompt,
    generate_system_prompt,
    resolve_commands,
)

__all__ = [
    "PromptBuilder",
    "SUCCESS_SENTINEL",
    "generate_prompt",
    "generate_system_prompt",
    "resolve_commands",
]
