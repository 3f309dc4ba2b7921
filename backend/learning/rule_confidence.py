"""
Rule Confidence

Nudges the confidence of a user's active rules when feedback arrives on a
decision or a chat message the rules plausibly influenced. A rule whose
confidence drops below the floor is deactivated; only active rules are ever
loaded, so a deactivated rule stays off until someone turns it back on.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from config.learning import (
    ConcurrencyConfig,
    MessageFeedbackConfig,
    RuleConfidenceConfig,
)
from config.posthog import capture_learning_event
from database.models import Rule, utc_now
from learning.embeddings import EmbeddingService, cosine_similarity, parse_embedding, try_embed
from learning.models import FeedbackValue, MessageFeedbackValue

logger = logging.getLogger(__name__)


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def step_confidence(confidence: float, delta: float) -> float:
    """Apply one step, rounded to the DECIMAL(3,2) column precision."""
    return round(clamp(confidence + delta), RuleConfidenceConfig.CONFIDENCE_DECIMALS)


def shared_rule_words(rule_text: str, content: str) -> int:
    """Long rule words that appear anywhere in the (lowercased) content."""
    words = [w for w in rule_text.lower().split() if len(w) >= MessageFeedbackConfig.MIN_WORD_LENGTH]
    content = content.lower()
    return sum(1 for w in words if w in content)


def _adjuster(delta: float, count_field: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Changes for one feedback step: shift confidence, bump a counter, re-derive active."""
    def adjust(rule):
        confidence = step_confidence(rule['confidence'], delta)
        return {
            'confidence': confidence,
            'active': confidence >= RuleConfidenceConfig.DEACTIVATION_FLOOR,
            count_field: rule.get(count_field, 0) + 1,
            'updated_at': utc_now(),
        }
    return adjust


class RuleConfidenceEngine:
    """Applies decision and message feedback to matching active rules."""

    def __init__(self, embedder: EmbeddingService):
        self.embedder = embedder

    def apply_decision_feedback(self, user_id: str, reasoning: str, feedback: FeedbackValue) -> bool:
        """
        Adjust every active rule that matches a decision's reasoning.

        Matching is semantic (cosine > 0.65) when both the reasoning and the
        rule have embeddings, and otherwise checks whether the start of the
        rule text appears in the reasoning.

        Returns:
            True if at least one rule changed
        """
        rules = Rule.get_active(user_id)
        if not rules:
            return False

        reasoning_embedding = try_embed(self.embedder, reasoning)
        adjust = _adjuster(
            RuleConfidenceConfig.DELTAS[feedback],
            'applications_count' if feedback == 'approved' else 'rejections_count',
        )

        updated = False
        for rule in rules:
            if not self._matches_reasoning(rule, reasoning, reasoning_embedding):
                continue
            if self._update_rule(rule, adjust):
                updated = True

        return updated

    def apply_message_feedback(self, user_id: str, content: str, feedback: MessageFeedbackValue) -> bool:
        """
        Adjust active rules that share enough vocabulary with a chat message.

        Message reactions are a weaker signal than decision feedback, so the
        steps are smaller (MessageFeedbackConfig.DELTAS).

        Returns:
            True if at least one rule changed
        """
        rules = Rule.get_active(user_id)
        if not rules:
            return False

        adjust = _adjuster(
            MessageFeedbackConfig.DELTAS[feedback],
            'applications_count' if feedback == 'positive' else 'rejections_count',
        )

        updated = False
        for rule in rules:
            if shared_rule_words(rule.get('rule_text', ''), content) < MessageFeedbackConfig.MIN_SHARED_WORDS:
                continue
            if self._update_rule(rule, adjust):
                updated = True

        return updated

    def _matches_reasoning(
        self,
        rule: Dict[str, Any],
        reasoning: str,
        reasoning_embedding: Optional[List[float]]
    ) -> bool:
        rule_embedding = parse_embedding(rule.get('embedding'))
        if reasoning_embedding is not None and rule_embedding is not None:
            similarity = cosine_similarity(np.asarray(reasoning_embedding), rule_embedding)
            return similarity > RuleConfidenceConfig.SEMANTIC_MATCH_THRESHOLD

        prefix = rule.get('rule_text', '').lower()[:RuleConfidenceConfig.SUBSTRING_PREFIX_CHARS]
        return prefix in reasoning.lower()

    def _update_rule(self, rule: Dict[str, Any], adjust: Callable[[Dict[str, Any]], Dict[str, Any]]) -> bool:
        """
        CAS-update one rule, recomputing from a fresh read on conflict.

        A rule that keeps losing the race, or that another request has
        deactivated meanwhile, is skipped so the other rules still get
        their update.
        """
        for _ in range(ConcurrencyConfig.MAX_CAS_ATTEMPTS):
            changes = adjust(rule)
            updated = Rule.compare_and_swap(rule['id'], rule.get('version', 0), changes)
            if updated:
                if not updated.get('active', True):
                    logger.info(
                        f"Rule {rule['id']} deactivated (confidence {updated['confidence']:.2f})"
                    )
                    capture_learning_event('rule_deactivated', {
                        'rule_id': rule['id'],
                        'confidence': updated['confidence'],
                    })
                return True

            rule = Rule.get_by_id(rule['id'])
            if not rule or not rule.get('active'):
                logger.info("Rule deactivated or removed concurrently, skipping")
                return False

        logger.warning(
            f"Skipping confidence update for rule {rule['id']}: "
            f"{ConcurrencyConfig.MAX_CAS_ATTEMPTS} concurrent-update conflicts"
        )
        return False
