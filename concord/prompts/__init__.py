"""Prompt template loader for inference backend prompts.

Loads Markdown prompt templates from the prompts/ directory and renders
them with Jinja2. Used by the LiteLLM backend to build the NLI
classification prompt.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import BaseLoader, Environment, StrictUndefined

_PROMPTS_DIR = Path(__file__).parent


def render_prompt(template_name: str, **variables: object) -> str:
    """Load a prompt template and render it with Jinja2 variables.

    Args:
        template_name: Name of the template file (without .md extension).
        **variables: Template variables to inject (text_a, text_b, ...).

    Returns:
        The fully rendered prompt string.

    Raises:
        FileNotFoundError: If the template file does not exist.
        jinja2.UndefinedError: If the template references a missing variable.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    # Both statements are mandatory, so a missing variable is a bug
    env = Environment(
        loader=BaseLoader(),
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    return env.from_string(path.read_text(encoding="utf-8")).render(**variables)
