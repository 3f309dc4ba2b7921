"""
Base Agent Interface for the learning pipeline's LLM calls.
"""

from abc import ABC, abstractmethod
from typing import Any

from core.prompt_loader import load_prompt
from config.posthog import get_invoke_config


class BaseAgent(ABC):
    """
    Abstract base class for LLM-backed agents.
    Each agent has a single responsibility and clean I/O interface.
    """

    def __init__(self, name: str, llm):
        """
        Initialize base agent.

        Args:
            name: Agent name for logging and analytics attribution
            llm: LangChain chat model (anything with .invoke(prompt, config=...))
        """
        self.name = name
        self.llm = llm

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Execute the agent's main logic.
        Each agent implements its specific processing.
        """
        pass

    def render_prompt(self, prompt_name: str, **kwargs) -> str:
        """Render a template from backend/prompts/."""
        return load_prompt(prompt_name, **kwargs)

    def invoke_text(self, prompt: str) -> str:
        """
        Send a single-turn prompt and return the reply text, stripped.

        Chat models return either a plain string or a list of content
        blocks (Anthropic); only text blocks are kept.
        """
        response = self.llm.invoke(prompt, config=get_invoke_config(self.name))
        content = getattr(response, 'content', response)

        if isinstance(content, list):
            parts = []
            for block in content:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and block.get('type') == 'text':
                    parts.append(block.get('text', ''))
            content = ''.join(parts)

        return (content or '').strip()
