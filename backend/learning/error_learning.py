"""
Error Classification Learning

Turns a classified tool-execution error into a durable artifact the agent
consults next time:

- FACTUAL_ERROR   -> a low-confidence rule (deduplicated against existing rules)
- REASONING_ERROR -> prompt guidance preference for the category and tool
- TOOL_MISUSE     -> failure statistics on the tool genome
- CONTEXT_MISSING -> a "check this context first" preference for the tool
"""

import logging
import re
from typing import Any, Dict, Optional

from core.base_agent import BaseAgent
from config.learning import ErrorLearningConfig, RuleConfidenceConfig
from config.posthog import capture_learning_event
from database.models import AgentPreference, Rule, ToolGenome, utc_now
from learning.categories import infer_category
from learning.embeddings import EmbeddingService, format_embedding, try_embed
from learning.errors import RuleSynthesisError
from learning.models import ErrorType, LearnResult, RuleSource
from learning.rule_synthesis import RuleConflictChecker, report_conflict
from utils.logging_utils import log_agent_execution

logger = logging.getLogger(__name__)

_NON_KEY_CHARS = re.compile(r'[^a-zA-Z0-9_\s]')


def template_guidance(error_type: ErrorType, tool_name: str, error_message: str) -> str:
    """Canned guidance used when the LLM is unavailable."""
    if error_type == ErrorType.CONTEXT_MISSING:
        advice = 'verify referenced entities exist first'
    else:
        advice = 'verify data before execution'
    return (
        f'When using "{tool_name}": {advice}. '
        f'Error: {error_message[:ErrorLearningConfig.TEMPLATE_ERROR_CHARS]}'
    )


def failure_pattern_key(error_message: str) -> str:
    """Bucket an error message: first chars, punctuation stripped."""
    prefix = error_message[:ErrorLearningConfig.FAILURE_PATTERN_KEY_CHARS]
    return _NON_KEY_CHARS.sub('', prefix).strip()


class ErrorGuidanceAgent(BaseAgent):
    """
    Writes one specific, imperative sentence that would have prevented an
    error. Runs on the light model tier.
    """

    def __init__(self, llm):
        super().__init__("error_guidance", llm)

    @log_agent_execution("ErrorGuidance")
    def execute(
        self,
        error_type: ErrorType,
        tool_name: str,
        error_message: str,
        input_summary: Dict[str, Any]
    ) -> str:
        """
        Raises:
            RuleSynthesisError: If the LLM fails or the guidance is too short
                                to be useful
        """
        prompt = self.render_prompt(
            "error_guidance.txt",
            error_type=error_type.value,
            tool_name=tool_name,
            error_message=error_message,
            input_summary=input_summary,
            input_chars=ErrorLearningConfig.INPUT_SUMMARY_CHARS,
        )

        try:
            text = self.invoke_text(prompt)
        except Exception as e:
            raise RuleSynthesisError(f"Error guidance LLM call failed: {e}") from e

        if len(text) < ErrorLearningConfig.MIN_GUIDANCE_LENGTH:
            raise RuleSynthesisError(f"Error guidance too short: {text!r}")

        return text


class ErrorClassifier:
    """Dispatches a classified error to the artifact writer for its type."""

    def __init__(
        self,
        agent: ErrorGuidanceAgent,
        embedder: EmbeddingService,
        conflict_checker: Optional[RuleConflictChecker] = None
    ):
        self.agent = agent
        self.embedder = embedder
        self.conflict_checker = conflict_checker or RuleConflictChecker()

    def classify_and_learn(
        self,
        user_id: str,
        error_type: ErrorType,
        tool_name: str,
        error_message: str,
        input_summary: Optional[Dict[str, Any]] = None,
        category: Optional[str] = None
    ) -> LearnResult:
        """
        Learn from one execution error.

        Args:
            user_id: User UUID
            error_type: How the error was classified upstream
            tool_name: Tool that failed
            error_message: Raw error text
            input_summary: The tool's input (keys feed the tool genome)
            category: Task category; inferred from tool name and error when omitted

        Returns:
            LearnResult naming the artifact written (or the duplicate rule
            that made a new one unnecessary)
        """
        error_type = ErrorType(error_type)
        input_summary = input_summary or {}
        category = category or infer_category(tool_name, error_message)

        if error_type == ErrorType.FACTUAL_ERROR:
            return self._learn_rule(user_id, tool_name, error_message, input_summary, category)
        if error_type == ErrorType.REASONING_ERROR:
            return self._learn_reasoning_guidance(user_id, tool_name, error_message, input_summary, category)
        if error_type == ErrorType.TOOL_MISUSE:
            return self._learn_tool_misuse(user_id, tool_name, error_message, input_summary)
        return self._learn_missing_context(user_id, tool_name, error_message, input_summary)

    def guidance(
        self,
        error_type: ErrorType,
        tool_name: str,
        error_message: str,
        input_summary: Dict[str, Any]
    ) -> str:
        """LLM guidance, or the template when the LLM can't provide any."""
        try:
            return self.agent.execute(error_type, tool_name, error_message, input_summary)
        except RuleSynthesisError as e:
            logger.warning(f"Using template guidance for {tool_name}: {e}")
            return template_guidance(error_type, tool_name, error_message)

    def _learn_rule(self, user_id, tool_name, error_message, input_summary, category) -> LearnResult:
        rule_text = self.guidance(ErrorType.FACTUAL_ERROR, tool_name, error_message, input_summary)

        embedding = try_embed(self.embedder, rule_text)
        conflict = self.conflict_checker.check(user_id, embedding)

        if conflict.should_skip:
            logger.info(
                f"Rule dedup: factual error on {tool_name} already covered by "
                f"{conflict.conflict_id} ({conflict.similarity:.3f})"
            )
            capture_learning_event('rule_dedup_skipped', {
                'conflict_rule_id': conflict.conflict_id,
                'similarity': conflict.similarity,
                'source': RuleSource.ERROR_CLASSIFICATION.value,
            })
            return LearnResult(learned=False, artifact_type='rule_dedup', artifact_id=conflict.conflict_id)

        if conflict.conflict_id:
            report_conflict(user_id, conflict, RuleSource.ERROR_CLASSIFICATION.value)

        rule = Rule.create(
            user_id=user_id,
            rule_text=rule_text,
            category=category,
            confidence=RuleConfidenceConfig.ERROR_RULE_CONFIDENCE,
            source=RuleSource.ERROR_CLASSIFICATION.value,
            embedding=format_embedding(embedding) if embedding is not None else None,
        )

        logger.info(f"Created rule {rule['id']} from factual error on {tool_name}")
        capture_learning_event('rule_created', {
            'rule_id': rule['id'],
            'source': RuleSource.ERROR_CLASSIFICATION.value,
        })
        return LearnResult(learned=True, artifact_type='rule', artifact_id=rule['id'])

    def _learn_reasoning_guidance(self, user_id, tool_name, error_message, input_summary, category) -> LearnResult:
        text = self.guidance(ErrorType.REASONING_ERROR, tool_name, error_message, input_summary)
        pref_category = ErrorLearningConfig.PROMPT_GUIDANCE_CATEGORY

        embedding = try_embed(self.embedder, f"{pref_category} reasoning {category} {tool_name} {text}")
        pref = AgentPreference.upsert(
            user_id=user_id,
            category=pref_category,
            preference_key=f"reasoning_{category}_{tool_name}",
            preference_value=text,
            embedding=format_embedding(embedding) if embedding is not None else None,
        )
        return LearnResult(
            learned=True,
            artifact_type='prompt_guidance',
            artifact_id=pref.get('id') if pref else None,
        )

    def _learn_tool_misuse(self, user_id, tool_name, error_message, input_summary) -> LearnResult:
        genome = ToolGenome.get(user_id, tool_name) or {}

        failure_patterns = dict(genome.get('failure_patterns') or {})
        key = failure_pattern_key(error_message)
        failure_patterns[key] = failure_patterns.get(key, 0) + 1

        insights = dict(genome.get('parameter_insights') or {'success_params': [], 'failure_params': []})
        failure_params = list(insights.get('failure_params') or [])
        failure_params.append(','.join(sorted(input_summary.keys())))
        insights['failure_params'] = failure_params[-ErrorLearningConfig.MAX_FAILURE_PARAMS:]

        ToolGenome.upsert(user_id, tool_name, {
            'failure_patterns': failure_patterns,
            'parameter_insights': insights,
            'last_error': error_message[:ErrorLearningConfig.LAST_ERROR_CHARS],
            'last_error_at': utc_now(),
        })

        logger.info(f"Tool genome updated for {tool_name}: pattern '{key}' x{failure_patterns[key]}")
        return LearnResult(learned=True, artifact_type='tool_genome_update')

    def _learn_missing_context(self, user_id, tool_name, error_message, input_summary) -> LearnResult:
        text = self.guidance(ErrorType.CONTEXT_MISSING, tool_name, error_message, input_summary)
        pref_category = ErrorLearningConfig.CONTEXT_PATTERNS_CATEGORY

        embedding = try_embed(self.embedder, f"{pref_category} missing_context {tool_name} {text}")
        pref = AgentPreference.upsert(
            user_id=user_id,
            category=pref_category,
            preference_key=f"missing_context_{tool_name}",
            preference_value=text,
            embedding=format_embedding(embedding) if embedding is not None else None,
        )
        return LearnResult(
            learned=True,
            artifact_type='context_pattern',
            artifact_id=pref.get('id') if pref else None,
        )
