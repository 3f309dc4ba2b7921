"""
Prompt templates for the learning agents, rendered with Jinja2.

Templates live in backend/prompts/ and use {{ var }} placeholders:

    from core.prompt_loader import load_prompt

    prompt = load_prompt("rule_synthesis.txt", corrections=examples, total=4)

StrictUndefined makes a missing variable an error instead of a silently
empty slot in a prompt that then reaches the LLM.
"""

import json
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

_PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


def _to_json(value, limit: int = None) -> str:
    """Jinja filter: compact JSON, optionally cut to `limit` chars."""
    text = json.dumps(value, default=str)
    return text[:limit] if limit else text


_env = Environment(
    loader=FileSystemLoader(str(_PROMPTS_DIR)),
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)
_env.filters['to_json'] = _to_json


def load_prompt(name: str, **kwargs) -> str:
    """
    Load and render a prompt template from the prompts/ directory.

    Raises:
        jinja2.TemplateNotFound: If prompt file doesn't exist
        jinja2.UndefinedError: If a required variable is missing
    """
    template = _env.get_template(name)
    return template.render(**kwargs)
