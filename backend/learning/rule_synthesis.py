"""
Rule Synthesis

Drafts a behavioral rule from a cluster of similar corrections, rejects it if
the user already has an equivalent rule, and persists it otherwise.

The LLM sits behind RuleSynthesisAgent.execute(corrections) -> rule text.
Anything with that method (a different model, a deterministic stub) can be
handed to RuleSynthesizer.
"""

import logging
from typing import Dict, List, Optional

from core.base_agent import BaseAgent
from config.learning import RuleConfidenceConfig
from config.posthog import capture_learning_event
from config.similarity import PatternDetectionConfig, RuleConflictConfig
from database.models import Rule
from learning.embeddings import (
    EmbeddingService,
    cosine_similarity,
    format_embedding,
    parse_embedding,
    try_embed,
)
from learning.errors import RuleSynthesisError
from learning.models import (
    ConflictCheck,
    PatternOutcome,
    PatternResult,
    RuleSource,
    RuleSummary,
)
from utils.logging_utils import log_agent_execution

logger = logging.getLogger(__name__)


class RuleSynthesisAgent(BaseAgent):
    """
    Asks the LLM for exactly one imperative rule sentence that captures
    what a cluster of corrections has in common.
    """

    def __init__(self, llm):
        super().__init__("rule_synthesis", llm)

    @log_agent_execution("RuleSynthesis")
    def execute(self, corrections: List[Dict]) -> str:
        """
        Draft rule text from corrections.

        Args:
            corrections: Correction rows (original_action, correction,
                         context_snapshot); only the first few are shown

        Returns:
            Rule text

        Raises:
            RuleSynthesisError: If the LLM call fails or returns nothing
        """
        prompt = self.render_prompt(
            "rule_synthesis.txt",
            total=len(corrections),
            corrections=corrections[:PatternDetectionConfig.MAX_PROMPT_EXAMPLES],
            context_chars=PatternDetectionConfig.CONTEXT_SNIPPET_CHARS,
        )

        try:
            rule_text = self.invoke_text(prompt)
        except Exception as e:
            raise RuleSynthesisError(f"Rule synthesis LLM call failed: {e}") from e

        if not rule_text:
            raise RuleSynthesisError("Rule synthesis returned empty text")

        return rule_text.strip('"').strip()


class RuleConflictChecker:
    """
    Nearest-neighbour search over the user's active rule embeddings.

    Similarity is computed in memory: a user has at most a few hundred
    active rules, so no vector index is needed.
    """

    def check(self, user_id: str, embedding: Optional[List[float]]) -> ConflictCheck:
        """
        Compare a candidate rule's embedding with existing active rules.

        A missing embedding (embedding service down) never blocks rule
        creation.

        Returns:
            ConflictCheck with should_skip=True when a match exceeds
            RuleConflictConfig.DUPLICATE_THRESHOLD. Matches in the band
            above SEARCH_THRESHOLD are reported but not skipped.
        """
        if embedding is None:
            return ConflictCheck()

        scored = []
        for rule in Rule.get_active(user_id):
            stored = parse_embedding(rule.get('embedding'))
            if stored is None:
                continue
            similarity = cosine_similarity(embedding, stored)
            if similarity > RuleConflictConfig.SEARCH_THRESHOLD:
                scored.append((rule, similarity))

        if not scored:
            return ConflictCheck()

        scored.sort(key=lambda x: x[1], reverse=True)
        top = scored[:RuleConflictConfig.SEARCH_LIMIT]
        best_rule, best_similarity = top[0]

        if best_similarity > RuleConflictConfig.DUPLICATE_THRESHOLD:
            return ConflictCheck(should_skip=True, conflict_id=best_rule['id'], similarity=best_similarity)

        return ConflictCheck(should_skip=False, conflict_id=best_rule['id'], similarity=best_similarity)


def report_conflict(user_id: str, conflict: ConflictCheck, source: str) -> None:
    """
    Log and record a near-duplicate (but allowed) rule for operator review.
    """
    logger.warning(
        f"Rule conflict for user {user_id}: new {source} rule similar to "
        f"{conflict.conflict_id} (similarity: {conflict.similarity:.3f})"
    )
    capture_learning_event('rule_conflict_detected', {
        'conflict_rule_id': conflict.conflict_id,
        'similarity': conflict.similarity,
        'source': source,
    })


class RuleSynthesizer:
    """Cluster -> LLM draft -> dedup -> persisted correction_pattern rule."""

    def __init__(
        self,
        agent: RuleSynthesisAgent,
        embedder: EmbeddingService,
        conflict_checker: Optional[RuleConflictChecker] = None
    ):
        self.agent = agent
        self.embedder = embedder
        self.conflict_checker = conflict_checker or RuleConflictChecker()

    def synthesize(self, user_id: str, cluster: List[Dict], category: str) -> PatternResult:
        """
        Turn a similarity cluster into a stored rule.

        Returns:
            PatternResult with outcome RULE_CREATED, DUPLICATE_RULE or
            SYNTHESIS_FAILED. The caller marks the cluster as matched only
            for RULE_CREATED.
        """
        cluster_ids = [c['id'] for c in cluster]

        try:
            rule_text = self.agent.execute(cluster)
        except RuleSynthesisError as e:
            logger.warning(f"No rule synthesized for user {user_id}: {e}")
            return PatternResult(
                outcome=PatternOutcome.SYNTHESIS_FAILED,
                category=category,
                cluster_ids=cluster_ids,
            )

        embedding = try_embed(self.embedder, rule_text)
        conflict = self.conflict_checker.check(user_id, embedding)

        if conflict.should_skip:
            logger.info(
                f"Rule dedup: skipping duplicate rule for user {user_id} "
                f"(similar to {conflict.conflict_id}, {conflict.similarity:.3f})"
            )
            capture_learning_event('rule_dedup_skipped', {
                'conflict_rule_id': conflict.conflict_id,
                'similarity': conflict.similarity,
                'source': RuleSource.CORRECTION_PATTERN.value,
            })
            return PatternResult(
                outcome=PatternOutcome.DUPLICATE_RULE,
                category=category,
                cluster_ids=cluster_ids,
                conflict_id=conflict.conflict_id,
            )

        if conflict.conflict_id:
            report_conflict(user_id, conflict, RuleSource.CORRECTION_PATTERN.value)

        try:
            rule = Rule.create(
                user_id=user_id,
                rule_text=rule_text,
                category=category,
                confidence=RuleConfidenceConfig.CORRECTION_RULE_CONFIDENCE,
                source=RuleSource.CORRECTION_PATTERN.value,
                correction_ids=cluster_ids,
                embedding=format_embedding(embedding) if embedding is not None else None,
            )
        except Exception as e:
            # The correction itself is already stored; leave the cluster
            # unmatched so a later correction can retry synthesis.
            logger.error(f"Failed to store rule for user {user_id}: {e}")
            return PatternResult(
                outcome=PatternOutcome.SYNTHESIS_FAILED,
                category=category,
                cluster_ids=cluster_ids,
            )

        logger.info(f"Created rule {rule['id']} for user {user_id} from {len(cluster)} corrections")
        capture_learning_event('rule_created', {
            'rule_id': rule['id'],
            'source': RuleSource.CORRECTION_PATTERN.value,
            'cluster_size': len(cluster),
        })

        return PatternResult(
            outcome=PatternOutcome.RULE_CREATED,
            category=category,
            rule=RuleSummary(id=rule['id'], rule_text=rule_text),
            cluster_ids=cluster_ids,
        )
