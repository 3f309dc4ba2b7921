"""
Configuration Module
Centralized configuration for the Casa learning backend.

Clean structure - one file per concern:
- config/text.py        → LLM models (rule synthesis, error guidance)
- config/similarity.py  → Embeddings, pattern detection, rule conflicts
- config/learning.py    → Confidence steps, graduation, error learning
- config/database.py    → Table names and query limits
- config/rate_limit.py  → Flask-Limiter settings
- config/posthog.py     → Analytics (lazy client)

Usage:
    from config.text import create_text_model
    from config.learning import GraduationConfig
"""

from .text import (
    create_text_model,
    create_text_model_light,
    get_text_provider,
    print_text_config,
    TextProvider
)

from .similarity import EmbeddingConfig, PatternDetectionConfig, RuleConflictConfig
from .learning import (
    RuleConfidenceConfig,
    MessageFeedbackConfig,
    GraduationConfig,
    ErrorLearningConfig,
    ConcurrencyConfig,
)

__all__ = [
    # Text/LLM
    'create_text_model',
    'create_text_model_light',
    'get_text_provider',
    'print_text_config',
    'TextProvider',

    # Similarity
    'EmbeddingConfig',
    'PatternDetectionConfig',
    'RuleConflictConfig',

    # Learning
    'RuleConfidenceConfig',
    'MessageFeedbackConfig',
    'GraduationConfig',
    'ErrorLearningConfig',
    'ConcurrencyConfig',
]
