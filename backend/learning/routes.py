"""
Learning RPC endpoint.

A single POST /agent-learning route dispatches on the body's "action" field,
so the chat agent can report every learning event through one call site.
"""

import logging
import threading
import traceback
import uuid
from typing import Optional

from flask import Blueprint, jsonify, request
from pydantic import BaseModel, ValidationError

from config.posthog import CLEAR, capture_agent_error, set_tracking_context
from learning.models import (
    ClassifyAndLearnRequest,
    GraduationRequest,
    ProcessFeedbackRequest,
    ProcessMessageFeedbackRequest,
    RecordCorrectionRequest,
)
from learning.service import LearningPipeline

logger = logging.getLogger(__name__)

learning_bp = Blueprint('learning', __name__)

# action -> request model; the pipeline method has the same name
ACTIONS = {
    'record_correction': RecordCorrectionRequest,
    'process_feedback': ProcessFeedbackRequest,
    'process_message_feedback': ProcessMessageFeedbackRequest,
    'check_graduation': GraduationRequest,
    'accept_graduation': GraduationRequest,
    'decline_graduation': GraduationRequest,
    'classify_and_learn': ClassifyAndLearnRequest,
}

_pipeline: Optional[LearningPipeline] = None
_pipeline_lock = threading.Lock()


def get_pipeline() -> LearningPipeline:
    """Shared pipeline, built on first request (loads models lazily)."""
    global _pipeline
    if _pipeline is None:
        with _pipeline_lock:
            if _pipeline is None:
                _pipeline = LearningPipeline.from_environment()
    return _pipeline


def set_pipeline(pipeline: Optional[LearningPipeline]) -> None:
    """Replace the shared pipeline (tests, alternative wiring)."""
    global _pipeline
    _pipeline = pipeline


@learning_bp.route('/agent-learning', methods=['POST'])
def agent_learning():
    """
    Run one learning action.

    Body: {"action": "<name>", ...params}

    Returns:
        200 with the action's result, 400 for an unknown action or invalid
        params, 500 when the action fails.
    """
    body = request.get_json(silent=True) or {}
    params = dict(body) if isinstance(body, dict) else {}
    action = params.pop('action', None)

    request_model = ACTIONS.get(action)
    if request_model is None:
        return jsonify({'error': f'Unknown action: {action}'}), 400

    try:
        parsed: BaseModel = request_model(**params)
    except ValidationError as e:
        return jsonify({
            'error': f'Invalid parameters for {action}',
            'details': e.errors(include_url=False, include_context=False, include_input=False),
        }), 400

    set_tracking_context(
        distinct_id=parsed.user_id,
        trace_id=f"learning-{uuid.uuid4().hex[:8]}",
        action=action,
        category=getattr(parsed, 'category', None) or CLEAR,
    )

    try:
        handler = getattr(get_pipeline(), action)
        result = handler(**parsed.model_dump())
        return jsonify(result.model_dump(mode='json', exclude_none=True))

    except Exception as e:
        logger.error(f"agent-learning {action} failed: {e}\n{traceback.format_exc()}")
        capture_agent_error(action, e)
        return jsonify({'error': str(e)}), 500
