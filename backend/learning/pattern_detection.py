"""
Correction Pattern Detection

Clusters a user's unmatched corrections by category and similarity and,
once enough agree, asks the rule synthesizer for a rule.

Strategy:
1. Same inferred category as the new correction
2. Embedding cosine similarity (primary signal, catches paraphrase)
3. Bag-of-words overlap (fallback when embeddings are down or find nothing)
"""

import logging
from typing import Dict, List

from config.similarity import PatternDetectionConfig
from database.models import Correction
from learning.categories import infer_category
from learning.embeddings import cosine_similarity, parse_embedding
from learning.models import PatternOutcome, PatternResult
from learning.rule_synthesis import RuleSynthesizer

logger = logging.getLogger(__name__)


def correction_text(correction: Dict) -> str:
    """Text used both for embedding and for word overlap."""
    return f"{correction.get('correction', '')} {correction.get('original_action', '')}"


def tokenize(text: str) -> List[str]:
    """Lowercase whitespace tokens, dropping short filler words."""
    return [w for w in text.lower().split() if len(w) >= PatternDetectionConfig.MIN_TOKEN_LENGTH]


def word_overlap(target_words: set, candidate_words: List[str]) -> float:
    """
    Share of candidate words found in the target, normalized by the larger
    of the two sizes so a long correction can't match on a few words.
    """
    denominator = max(len(target_words), len(candidate_words))
    if denominator == 0:
        return 0.0
    overlap = sum(1 for w in candidate_words if w in target_words)
    return overlap / denominator


class PatternDetector:
    """
    Decides whether a user's recent corrections justify a new rule.

    Example:
        >>> detector = PatternDetector(synthesizer)
        >>> result = detector.detect(user_id, new_correction)
        >>> result.outcome
        <PatternOutcome.RULE_CREATED: 'rule_created'>
    """

    def __init__(self, synthesizer: RuleSynthesizer):
        self.synthesizer = synthesizer

    def detect(self, user_id: str, correction: Dict) -> PatternResult:
        """
        Look for a pattern around a just-recorded correction.

        Args:
            user_id: User UUID
            correction: The stored correction row (may carry an embedding)

        Returns:
            PatternResult; only RULE_CREATED marks the cluster as matched
        """
        min_size = PatternDetectionConfig.MIN_CLUSTER_SIZE

        corrections = Correction.get_unmatched(user_id, PatternDetectionConfig.RECENT_CORRECTIONS_LIMIT)
        if len(corrections) < min_size:
            return PatternResult(outcome=PatternOutcome.INSUFFICIENT_CORRECTIONS)

        inferred = infer_category(correction.get('original_action'), correction.get('correction'))
        same_category = [
            c for c in corrections
            if infer_category(c.get('original_action'), c.get('correction')) == inferred
        ]
        if len(same_category) < min_size:
            return PatternResult(outcome=PatternOutcome.INSUFFICIENT_CATEGORY, category=inferred)

        cluster = self.find_similar(correction, same_category)
        if len(cluster) < min_size:
            logger.info(
                f"Pattern detection: {len(cluster)} similar {inferred} corrections for "
                f"user {user_id}, need {min_size}"
            )
            return PatternResult(outcome=PatternOutcome.INSUFFICIENT_SIMILARITY, category=inferred)

        result = self.synthesizer.synthesize(user_id, cluster, inferred)

        if result.outcome == PatternOutcome.RULE_CREATED:
            Correction.mark_pattern_matched(result.cluster_ids)

        return result

    def find_similar(self, target: Dict, candidates: List[Dict]) -> List[Dict]:
        """
        Candidates similar to the target.

        Semantic matches win when there are any; otherwise fall back to
        word overlap so detection keeps working without embeddings.
        """
        target_embedding = parse_embedding(target.get('embedding'))

        if target_embedding is not None:
            semantic = []
            for candidate in candidates:
                embedding = parse_embedding(candidate.get('embedding'))
                if embedding is None:
                    continue
                if cosine_similarity(target_embedding, embedding) > PatternDetectionConfig.SEMANTIC_THRESHOLD:
                    semantic.append(candidate)
            if semantic:
                return semantic

        target_words = set(tokenize(correction_text(target)))
        return [
            c for c in candidates
            if word_overlap(target_words, tokenize(correction_text(c))) > PatternDetectionConfig.BAG_OF_WORDS_THRESHOLD
        ]
