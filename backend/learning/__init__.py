"""
Agent Learning System

Turns owner feedback on the assistant's actions into behavioral rules,
adjusts confidence in existing rules, and decides when a task category has
earned more autonomy.

Components:
- CorrectionRecorder: Stores corrections with embeddings, runs pattern detection
- PatternDetector / RuleSynthesizer: Cluster corrections, draft and dedup rules
- FeedbackRouter: Decision and chat-message feedback entry points
- GraduationTracker: Approval streaks, graduation accept/decline
- RuleConfidenceEngine: Confidence steps and deactivation
- ErrorClassifier: Artifacts from classified execution errors

Usage:
    from learning.service import LearningPipeline

    pipeline = LearningPipeline.from_environment()
    pipeline.process_feedback(user_id, decision_id, 'approved')

Only storage-free modules are re-exported here; database.models imports
learning.errors, so importing the components from this package would be
circular.
"""

from .categories import CATEGORIES, infer_category
from .errors import (
    LearningError,
    StorageError,
    DecisionNotFoundError,
    TrackingNotFoundError,
    ConcurrentUpdateError,
    EmbeddingUnavailableError,
    RuleSynthesisError,
)

__all__ = [
    'CATEGORIES',
    'infer_category',
    'LearningError',
    'StorageError',
    'DecisionNotFoundError',
    'TrackingNotFoundError',
    'ConcurrentUpdateError',
    'EmbeddingUnavailableError',
    'RuleSynthesisError',
]
