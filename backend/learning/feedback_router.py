"""
Feedback Router

Entry points for owner feedback. Decision feedback (approve, reject, correct)
fans out to graduation tracking, rule confidence and correction recording.
Chat-message reactions only touch rule confidence.
"""

import json
import logging
from typing import Optional

from config.database import QueryLimits
from database.models import Decision, Message
from learning.categories import infer_category
from learning.corrections import CorrectionRecorder
from learning.errors import DecisionNotFoundError
from learning.graduation import GraduationTracker
from learning.models import (
    FeedbackResult,
    FeedbackValue,
    MessageFeedbackResult,
    MessageFeedbackValue,
)
from learning.rule_confidence import RuleConfidenceEngine

logger = logging.getLogger(__name__)


def summarize_action(tool_name: Optional[str], input_data) -> str:
    """'tool_name: {input json}' with the JSON cut short, as stored on corrections."""
    input_json = json.dumps(input_data, separators=(',', ':'), default=str)
    return f"{tool_name}: {input_json[:QueryLimits.ORIGINAL_ACTION_INPUT_CHARS]}"


class FeedbackRouter:
    """Routes feedback events to the components that learn from them."""

    def __init__(
        self,
        recorder: CorrectionRecorder,
        graduation: GraduationTracker,
        confidence: RuleConfidenceEngine
    ):
        self.recorder = recorder
        self.graduation = graduation
        self.confidence = confidence

    def process_feedback(
        self,
        user_id: str,
        decision_id: str,
        feedback: FeedbackValue,
        correction: Optional[str] = None,
        category: Optional[str] = None
    ) -> FeedbackResult:
        """
        Apply owner feedback on an agent decision.

        Args:
            user_id: User UUID
            decision_id: The decision being reviewed
            feedback: 'approved', 'rejected' or 'corrected'
            correction: What the owner wanted instead (only used with 'corrected')
            category: Task category; inferred from the decision when omitted

        Returns:
            FeedbackResult with graduation eligibility and whether any rule changed

        Raises:
            DecisionNotFoundError: If the decision does not exist
        """
        Decision.record_feedback(decision_id, feedback, correction)

        decision = Decision.get_by_id(decision_id)
        if not decision:
            raise DecisionNotFoundError(decision_id)

        category = category or infer_category(decision.get('tool_name'), decision.get('decision_type'))

        graduation_eligible = self.graduation.record_feedback(user_id, category, feedback)

        rule_updated = False
        reasoning = decision.get('reasoning')
        if reasoning:
            rule_updated = self.confidence.apply_decision_feedback(user_id, reasoning, feedback)

        if feedback == 'corrected' and correction:
            self.recorder.record(
                user_id=user_id,
                original_action=summarize_action(decision.get('tool_name'), decision.get('input_data')),
                correction=correction,
                context_snapshot={
                    'tool_name': decision.get('tool_name'),
                    'decision_type': decision.get('decision_type'),
                    'input_data': decision.get('input_data'),
                    'output_data': decision.get('output_data'),
                },
                decision_id=decision_id,
            )

        logger.info(
            f"Feedback '{feedback}' on decision {decision_id} ({category}): "
            f"eligible={graduation_eligible}, rule_updated={rule_updated}"
        )
        return FeedbackResult(
            updated=True,
            graduation_eligible=graduation_eligible,
            rule_updated=rule_updated,
        )

    def process_message_feedback(
        self,
        user_id: str,
        message_id: str,
        feedback: MessageFeedbackValue,
        category: Optional[str] = None
    ) -> MessageFeedbackResult:
        """
        Apply a thumbs up/down on an assistant chat message.

        A message that no longer exists is not an error; there is simply
        nothing to learn from it.
        """
        message = Message.get_by_id(message_id)
        if not message:
            logger.info(f"Message {message_id} not found, feedback ignored")
            return MessageFeedbackResult(processed=False)

        content = message.get('content') or ''
        tool_names = ' '.join((tc or {}).get('name') or '' for tc in (message.get('tool_calls') or []))
        category = category or infer_category(tool_names, content)

        rule_updated = self.confidence.apply_message_feedback(user_id, content, feedback)

        logger.info(
            f"Message feedback '{feedback}' on {message_id} ({category}): rule_updated={rule_updated}"
        )
        return MessageFeedbackResult(processed=True, rule_updated=rule_updated)
