"""
Learning Pipeline

Wires the learning components together and exposes one method per RPC
action. Components are plain objects; tests build a pipeline from fakes,
production uses LearningPipeline.from_environment().
"""

import logging
from typing import Any, Dict, Optional

from config.text import create_text_model, create_text_model_light
from learning.corrections import CorrectionRecorder
from learning.embeddings import EmbeddingService
from learning.error_learning import ErrorClassifier, ErrorGuidanceAgent
from learning.feedback_router import FeedbackRouter
from learning.graduation import GraduationTracker
from learning.models import (
    AcceptGraduationResult,
    DeclineGraduationResult,
    ErrorType,
    FeedbackResult,
    FeedbackValue,
    GraduationStatus,
    LearnResult,
    MessageFeedbackResult,
    MessageFeedbackValue,
    RecordCorrectionResult,
)
from learning.pattern_detection import PatternDetector
from learning.rule_confidence import RuleConfidenceEngine
from learning.rule_synthesis import RuleConflictChecker, RuleSynthesisAgent, RuleSynthesizer

logger = logging.getLogger(__name__)


class LearningPipeline:
    """Facade over the correction-learning and graduation components."""

    def __init__(self, rule_llm, guidance_llm, embedder: EmbeddingService):
        """
        Args:
            rule_llm: Chat model for rule synthesis
            guidance_llm: Chat model for error guidance (light tier is enough)
            embedder: Embedding service shared by every component
        """
        self.embedder = embedder

        conflict_checker = RuleConflictChecker()
        synthesizer = RuleSynthesizer(RuleSynthesisAgent(rule_llm), embedder, conflict_checker)

        self.recorder = CorrectionRecorder(embedder, PatternDetector(synthesizer))
        self.graduation = GraduationTracker()
        self.confidence = RuleConfidenceEngine(embedder)
        self.router = FeedbackRouter(self.recorder, self.graduation, self.confidence)
        self.errors = ErrorClassifier(ErrorGuidanceAgent(guidance_llm), embedder, conflict_checker)

    @classmethod
    def from_environment(cls) -> "LearningPipeline":
        """Build with the configured LLM providers and the default embedding model."""
        logger.info("Initializing learning pipeline")
        return cls(
            rule_llm=create_text_model('rule_synthesis'),
            guidance_llm=create_text_model_light('error_guidance'),
            embedder=EmbeddingService(),
        )

    def record_correction(
        self,
        user_id: str,
        original_action: str,
        correction: str,
        context_snapshot: Dict[str, Any],
        decision_id: Optional[str] = None,
        category: Optional[str] = None
    ) -> RecordCorrectionResult:
        # Callers may send a category, but rules are labeled with the one
        # inferred from the correction text, same as clustering.
        return self.recorder.record(
            user_id, original_action, correction, context_snapshot,
            decision_id=decision_id,
        )

    def process_feedback(
        self,
        user_id: str,
        decision_id: str,
        feedback: FeedbackValue,
        correction: Optional[str] = None,
        category: Optional[str] = None
    ) -> FeedbackResult:
        return self.router.process_feedback(user_id, decision_id, feedback, correction, category)

    def process_message_feedback(
        self,
        user_id: str,
        message_id: str,
        feedback: MessageFeedbackValue,
        category: Optional[str] = None
    ) -> MessageFeedbackResult:
        return self.router.process_message_feedback(user_id, message_id, feedback, category)

    def check_graduation(self, user_id: str, category: str) -> GraduationStatus:
        return self.graduation.check(user_id, category)

    def accept_graduation(self, user_id: str, category: str) -> AcceptGraduationResult:
        return self.graduation.accept(user_id, category)

    def decline_graduation(self, user_id: str, category: str) -> DeclineGraduationResult:
        return self.graduation.decline(user_id, category)

    def classify_and_learn(
        self,
        user_id: str,
        error_type: ErrorType,
        tool_name: str,
        error_message: str,
        input_summary: Optional[Dict[str, Any]] = None,
        category: Optional[str] = None
    ) -> LearnResult:
        return self.errors.classify_and_learn(
            user_id, error_type, tool_name, error_message, input_summary, category,
        )
