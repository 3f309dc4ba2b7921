"""
Learning pipeline constants: rule confidence, graduation, error learning.
Import thresholds from here instead of hardcoding them.
"""


class RuleConfidenceConfig:
    """Decision-feedback confidence adjustments."""

    CORRECTION_RULE_CONFIDENCE: float = 0.70
    ERROR_RULE_CONFIDENCE: float = 0.50

    DEACTIVATION_FLOOR: float = 0.3     # active := confidence >= floor
    CONFIDENCE_DECIMALS: int = 2        # agent_rules.confidence is DECIMAL(3,2)
    SEMANTIC_MATCH_THRESHOLD: float = 0.65
    SUBSTRING_PREFIX_CHARS: int = 50

    DELTAS: dict[str, float] = {
        'approved': 0.05,
        'rejected': -0.15,
        'corrected': -0.10,
    }


class MessageFeedbackConfig:
    """
    Chat-message reaction adjustments.

    Deliberately smaller than the decision-feedback steps; pending product
    sign-off on whether reactions should stay a weaker signal.
    """

    DELTAS: dict[str, float] = {
        'positive': 0.02,
        'negative': -0.05,
    }
    MIN_WORD_LENGTH: int = 5            # Rule words longer than 4 chars
    MIN_SHARED_WORDS: int = 3


class GraduationConfig:
    """Autonomy graduation state machine."""

    INITIAL_LEVEL: int = 1
    MAX_LEVEL: int = 4
    DEFAULT_THRESHOLD: int = 10
    INITIAL_BACKOFF: int = 1
    MAX_BACKOFF: int = 8

    LEVEL_LABELS: dict[int, str] = {0: 'L0', 1: 'L1', 2: 'L2', 3: 'L3', 4: 'L4'}


class ErrorLearningConfig:
    """Error classification artifacts."""

    MIN_GUIDANCE_LENGTH: int = 11       # Guidance of 10 chars or fewer is rejected
    INPUT_SUMMARY_CHARS: int = 200
    TEMPLATE_ERROR_CHARS: int = 100

    FAILURE_PATTERN_KEY_CHARS: int = 80
    MAX_FAILURE_PARAMS: int = 10
    LAST_ERROR_CHARS: int = 200

    PROMPT_GUIDANCE_CATEGORY: str = 'prompt_guidance'
    CONTEXT_PATTERNS_CATEGORY: str = 'context_patterns'


class ConcurrencyConfig:
    """Optimistic concurrency for read-modify-write rows."""

    MAX_CAS_ATTEMPTS: int = 5
