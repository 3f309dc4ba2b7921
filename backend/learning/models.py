"""
Request and result models for the learning pipeline.

Requests validate the JSON body of each RPC action; results are what the
pipeline hands back to the caller (serialized with exclude_none so optional
fields disappear instead of showing up as null).
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

FeedbackValue = Literal['approved', 'rejected', 'corrected']
MessageFeedbackValue = Literal['positive', 'negative']


class ErrorType(str, Enum):
    """Execution error kinds routed by the error classifier."""

    FACTUAL_ERROR = 'FACTUAL_ERROR'
    REASONING_ERROR = 'REASONING_ERROR'
    TOOL_MISUSE = 'TOOL_MISUSE'
    CONTEXT_MISSING = 'CONTEXT_MISSING'


class RuleSource(str, Enum):
    CORRECTION_PATTERN = 'correction_pattern'
    ERROR_CLASSIFICATION = 'error_classification'


# ============================================================================
# Requests
# ============================================================================

class RecordCorrectionRequest(BaseModel):
    user_id: str
    original_action: str
    correction: str
    context_snapshot: Dict[str, Any]
    decision_id: Optional[str] = None
    category: Optional[str] = None


class ProcessFeedbackRequest(BaseModel):
    user_id: str
    decision_id: str
    feedback: FeedbackValue
    correction: Optional[str] = None
    category: Optional[str] = None


class ProcessMessageFeedbackRequest(BaseModel):
    user_id: str
    message_id: str
    feedback: MessageFeedbackValue
    category: Optional[str] = None


class GraduationRequest(BaseModel):
    """Shared by check_graduation, accept_graduation and decline_graduation."""

    user_id: str
    category: str


class ClassifyAndLearnRequest(BaseModel):
    user_id: str
    error_type: ErrorType
    tool_name: str
    error_message: str
    input_summary: Dict[str, Any] = Field(default_factory=dict)
    category: Optional[str] = None


# ============================================================================
# Results
# ============================================================================

class RuleSummary(BaseModel):
    id: str
    rule_text: str


class RecordCorrectionResult(BaseModel):
    correction_id: str
    rule: Optional[RuleSummary] = None


class FeedbackResult(BaseModel):
    updated: bool
    graduation_eligible: Optional[bool] = None
    rule_updated: Optional[bool] = None


class MessageFeedbackResult(BaseModel):
    processed: bool
    rule_updated: Optional[bool] = None


class GraduationStatus(BaseModel):
    eligible: bool
    category: str
    current_level: int
    consecutive_approvals: int
    threshold: int = Field(..., description="graduation_threshold x backoff_multiplier")


class AcceptGraduationResult(BaseModel):
    new_level: int


class DeclineGraduationResult(BaseModel):
    success: bool = True


class LearnResult(BaseModel):
    learned: bool
    artifact_type: str
    artifact_id: Optional[str] = None


# ============================================================================
# Internal outcomes
# ============================================================================

class PatternOutcome(str, Enum):
    """
    Why pattern detection did or did not produce a rule.

    Only SYNTHESIS_FAILED leaves evidence that a later attempt could use;
    everything except RULE_CREATED is a non-event, not an error.
    """

    RULE_CREATED = 'rule_created'
    DUPLICATE_RULE = 'duplicate_rule'
    SYNTHESIS_FAILED = 'synthesis_failed'
    INSUFFICIENT_CORRECTIONS = 'insufficient_corrections'
    INSUFFICIENT_CATEGORY = 'insufficient_category'
    INSUFFICIENT_SIMILARITY = 'insufficient_similarity'


class PatternResult(BaseModel):
    outcome: PatternOutcome
    category: Optional[str] = None
    rule: Optional[RuleSummary] = None
    cluster_ids: List[str] = Field(default_factory=list)
    conflict_id: Optional[str] = None


class ConflictCheck(BaseModel):
    """Result of comparing a candidate rule against the user's active rules."""

    should_skip: bool = False
    conflict_id: Optional[str] = None
    similarity: Optional[float] = None
