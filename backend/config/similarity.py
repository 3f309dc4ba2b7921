"""
Embedding, similarity matching, and pattern detection configuration.
"""


class EmbeddingConfig:
    """Sentence transformer and embedding settings."""

    MODEL_NAME: str = 'all-MiniLM-L6-v2'
    MAX_SEQ_LENGTH: int = 256
    DIMENSIONS: int = 384               # Must match the vector(384) columns
    MAX_INPUT_CHARS: int = 2000         # ~512 tokens


class PatternDetectionConfig:
    """Correction clustering thresholds."""

    RECENT_CORRECTIONS_LIMIT: int = 50  # Unmatched corrections scanned per detection
    MIN_CLUSTER_SIZE: int = 3
    SEMANTIC_THRESHOLD: float = 0.6     # Cosine, strictly greater than
    BAG_OF_WORDS_THRESHOLD: float = 0.3  # Token overlap, strictly greater than
    MIN_TOKEN_LENGTH: int = 4           # Tokens of 3 chars or fewer are dropped

    # Prompt shaping
    MAX_PROMPT_EXAMPLES: int = 5
    CONTEXT_SNIPPET_CHARS: int = 500


class RuleConflictConfig:
    """Near-duplicate rule detection."""

    SEARCH_THRESHOLD: float = 0.75      # Candidates above this are conflicts
    DUPLICATE_THRESHOLD: float = 0.85   # Above this the new rule is discarded
    SEARCH_LIMIT: int = 3
