"""
Text/LLM Model Configuration
Centralized config for the LLM-backed learning agents.
"""

import os
from typing import Literal, Dict, Any
from dataclasses import dataclass

# ============================================================================
# TEXT MODEL PROVIDER OPTIONS
# ============================================================================

TextProvider = Literal['grok', 'claude', 'openai']

# ============================================================================
# CENTRALIZED TEXT MODEL CONFIGURATION
# ============================================================================

@dataclass
class TextModelConfig:
    """
    Configuration for all text-based AI models.

    RULE SYNTHESIS drafts durable rules from correction clusters and uses
    the standard model tier. ERROR GUIDANCE writes short guidance sentences
    for classified execution errors; it is higher-volume and lower-stakes,
    so it always runs on the light tier of its provider.
    """

    rule_synthesis: TextProvider = 'claude'
    error_guidance: TextProvider = 'claude'

    # ========================================================================
    # QUICK PRESETS
    # ========================================================================

    @classmethod
    def all_claude(cls):
        """Use Claude for everything (production quality)."""
        return cls(rule_synthesis='claude', error_guidance='claude')

    @classmethod
    def all_grok(cls):
        """Use Grok for everything (cheap testing)."""
        return cls(rule_synthesis='grok', error_guidance='grok')

    @classmethod
    def all_openai(cls):
        """Use OpenAI for everything"""
        return cls(rule_synthesis='openai', error_guidance='openai')


# ============================================================================
# ACTIVE CONFIGURATION - CHANGE THIS LINE TO SWITCH
# ============================================================================

CONFIG = TextModelConfig.all_claude()
# CONFIG = TextModelConfig.all_grok()


# ============================================================================
# MODEL SPECIFICATIONS
# ============================================================================

TEXT_MODEL_SPECS: Dict[TextProvider, Dict[str, Any]] = {
    'grok': {
        'model_name': 'grok-3',
        'api_key_env': 'XAI_API_KEY',
        'base_url': 'https://api.x.ai/v1',
        'max_tokens': 200,
    },
    'claude': {
        'model_name': 'claude-sonnet-4-5-20250929',
        'api_key_env': 'ANTHROPIC_API_KEY',
        'base_url': None,
        'max_tokens': 200,
    },
    'openai': {
        'model_name': 'gpt-4o',
        'api_key_env': 'OPENAI_API_KEY',
        'base_url': None,
        'max_tokens': 200,
    }
}

# Light/cheap models for error guidance
TEXT_MODEL_SPECS_LIGHT: Dict[TextProvider, Dict[str, Any]] = {
    'grok': {
        'model_name': 'grok-3-mini-beta',
        'api_key_env': 'XAI_API_KEY',
        'base_url': 'https://api.x.ai/v1',
        'max_tokens': 100,
    },
    'claude': {
        'model_name': 'claude-haiku-4-5-20251001',
        'api_key_env': 'ANTHROPIC_API_KEY',
        'base_url': None,
        'max_tokens': 100,
    },
    'openai': {
        'model_name': 'gpt-4o-mini',
        'api_key_env': 'OPENAI_API_KEY',
        'base_url': None,
        'max_tokens': 100,
    }
}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def get_text_provider(component: str) -> TextProvider:
    """Get configured provider for a component"""
    return getattr(CONFIG, component)


def get_model_specs(provider: TextProvider) -> Dict[str, Any]:
    """Get model specifications for a provider"""
    return TEXT_MODEL_SPECS[provider]


def _create_model_from_specs(provider: TextProvider, specs: Dict[str, Any]):
    """Create an LLM instance from provider + specs dict."""
    api_key = os.getenv(specs['api_key_env'])
    if not api_key:
        raise ValueError(f"API key not found: {specs['api_key_env']}")

    if provider == 'claude':
        from langchain_anthropic import ChatAnthropic
        return ChatAnthropic(
            model=specs['model_name'],
            api_key=api_key,
            max_tokens=specs['max_tokens'],
        )
    elif provider in ['grok', 'openai']:
        from langchain_openai import ChatOpenAI
        return ChatOpenAI(
            model=specs['model_name'],
            api_key=api_key,
            base_url=specs['base_url'],
            max_tokens=specs['max_tokens'],
        )
    else:
        raise ValueError(f"Unsupported provider: {provider}")


def create_text_model(component: str):
    """
    Create a standard LLM instance for a component.

    Args:
        component: Component name (e.g., 'rule_synthesis')

    Returns:
        Configured LLM instance
    """
    provider = get_text_provider(component)
    specs = get_model_specs(provider)
    return _create_model_from_specs(provider, specs)


def create_text_model_light(component: str):
    """
    Create a lightweight LLM instance for a component.
    Uses cheaper/faster models for high-volume calls.

    Args:
        component: Component name (e.g., 'error_guidance')

    Returns:
        Configured lightweight LLM instance
    """
    provider = get_text_provider(component)
    specs = TEXT_MODEL_SPECS_LIGHT[provider]
    return _create_model_from_specs(provider, specs)


def print_text_config():
    """Print current text model configuration"""
    print("\n" + "="*70)
    print("TEXT/LLM MODEL CONFIGURATION")
    print("="*70)
    synth = get_text_provider('rule_synthesis')
    guidance = get_text_provider('error_guidance')
    print(f"  RULE SYNTHESIS:   {synth.upper()} ({get_model_specs(synth)['model_name']})")
    print(f"  ERROR GUIDANCE:   {guidance.upper()} ({TEXT_MODEL_SPECS_LIGHT[guidance]['model_name']})")
    print("="*70 + "\n")
