"""
PostHog Analytics Configuration
LLM observability and learning-pipeline outcome tracking.

The PostHog client is lazily initialized on first use, NOT at import time.
Under Gunicorn with --preload the app module loads in the master process
which then forks workers; the SDK's consumer thread does not survive fork,
so the client must be created inside the worker process.

Analytics are disabled entirely when POSTHOG_API_KEY is not set.
"""

import os
import atexit
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

_posthog_client = None
_posthog_initialized = False
_init_lock = threading.Lock()
_local = threading.local()

# Sentinel: pass to set_tracking_context to explicitly clear a field
# (None = "don't update", CLEAR = "reset to None").
CLEAR = object()

_ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')


def _ensure_client():
    """
    Lazily initialize the PostHog client on first use.
    Thread-safe via lock. Returns the client or None.
    """
    global _posthog_client, _posthog_initialized

    if _posthog_initialized:
        return _posthog_client

    with _init_lock:
        if _posthog_initialized:
            return _posthog_client

        api_key = os.getenv('POSTHOG_API_KEY')
        if not api_key:
            logger.info("PostHog: POSTHOG_API_KEY not set, analytics disabled")
            _posthog_initialized = True
            return None

        try:
            from posthog import Posthog

            host = os.getenv('POSTHOG_HOST', 'https://us.i.posthog.com')
            _posthog_client = Posthog(api_key, host=host)
            atexit.register(_posthog_client.shutdown)
            logger.info(f"PostHog: Initialized in pid {os.getpid()} (host={host})")
        except Exception as e:
            logger.warning(f"PostHog: Failed to initialize: {e}")

        _posthog_initialized = True
        return _posthog_client


# ============================================================================
# Thread-local tracking context
# ============================================================================

# Attributes auto-included as properties on every captured event.
_AUTO_INCLUDE_ATTRS = (
    'action',       # RPC action being served (record_correction, process_feedback, ...)
    'category',     # task category being learned about
)


def _set(field, value):
    """Set a thread-local field. CLEAR resets to None, None is a no-op."""
    if value is CLEAR:
        setattr(_local, field, None)
    elif value is not None:
        setattr(_local, field, value)


def set_tracking_context(distinct_id=None, trace_id=None, action=None, category=None):
    """
    Set the tracking context for the current thread.
    Call this at the start of a request so every LLM call and outcome
    event is attributed to the right user and action.

    Pass None to skip a field (partial updates). Pass CLEAR to reset a field.
    """
    if distinct_id is not None:
        _local.distinct_id = distinct_id
    if trace_id is not None:
        _local.trace_id = trace_id
    _set('action', action)
    _set('category', category)


# Maps agent name → config component, so get_invoke_config() can resolve
# the actual provider instead of the LangChain class name.
_AGENT_TO_COMPONENT = {
    'rule_synthesis': 'rule_synthesis',
    'error_guidance': 'error_guidance',
}

_AGENT_LABELS = {
    'rule_synthesis': 'Rule Synthesis',
    'error_guidance': 'Error Guidance',
}


def _base_properties(agent_name=None):
    properties = {'environment': _ENVIRONMENT, '$ai_framework': 'casa-learning'}
    if agent_name:
        properties['agent_name'] = agent_name
    for attr in _AUTO_INCLUDE_ATTRS:
        val = getattr(_local, attr, None)
        if val is not None:
            properties[attr] = val
    return properties


def get_invoke_config(agent_name=None, properties=None):
    """
    Get LangChain invoke config with PostHog callback.
    Returns empty dict if PostHog is not configured.

    Args:
        agent_name: Name of the agent making the call (e.g., "rule_synthesis").
        properties: Optional dict of additional properties to attach to the LLM event.

    Usage:
        result = llm.invoke(prompt, config=get_invoke_config("rule_synthesis"))
    """
    client = _ensure_client()
    if not client:
        return {}

    try:
        from posthog.ai.langchain import CallbackHandler

        distinct_id = getattr(_local, 'distinct_id', None) or 'anonymous'
        trace_id = getattr(_local, 'trace_id', None)

        merged_properties = _base_properties(agent_name)

        component = _AGENT_TO_COMPONENT.get(agent_name)
        if component:
            try:
                from config.text import get_text_provider, get_model_specs
                provider = get_text_provider(component)
                merged_properties['provider'] = provider
                merged_properties['model'] = get_model_specs(provider)['model_name']
            except Exception:
                pass

        if properties:
            merged_properties.update(properties)

        callback = CallbackHandler(
            client=client,
            distinct_id=distinct_id,
            trace_id=trace_id,
            properties=merged_properties,
            privacy_mode=False,
        )
        callback.ignore_chain = True

        config = {"callbacks": [callback]}
        if agent_name:
            config["run_name"] = _AGENT_LABELS.get(agent_name, agent_name)
        return config
    except Exception as e:
        logger.debug(f"PostHog: Failed to create callback: {e}")
        return {}


# ============================================================================
# Learning outcome events
# ============================================================================

def capture_learning_event(event: str, properties: dict = None):
    """
    Capture a learning-pipeline outcome (rule_created, rule_dedup_skipped,
    rule_conflict_detected, graduation_eligible, ...).

    These are business outcomes, not errors. Operators review
    rule_conflict_detected events to decide on near-duplicate rules.
    """
    client = _ensure_client()
    if not client:
        return

    try:
        distinct_id = getattr(_local, 'distinct_id', None) or 'anonymous'
        event_properties = _base_properties()
        trace_id = getattr(_local, 'trace_id', None)
        if trace_id:
            event_properties['trace_id'] = str(trace_id)
        if properties:
            event_properties.update(properties)

        client.capture(
            distinct_id=distinct_id,
            event=event,
            properties=event_properties,
        )
    except Exception as e:
        logger.debug(f"PostHog: Failed to capture {event}: {e}")


def capture_agent_error(agent_name: str, error: Exception, extra: dict = None):
    """
    Capture a pipeline error as a PostHog event.

    Args:
        agent_name: Which component failed (e.g., "process_feedback")
        error: The exception that occurred
        extra: Optional dict of additional properties
    """
    client = _ensure_client()
    if not client:
        return

    try:
        distinct_id = getattr(_local, 'distinct_id', None) or 'anonymous'
        trace_id = getattr(_local, 'trace_id', None)

        event_properties = _base_properties(agent_name)
        event_properties.update({
            '$ai_trace_id': str(trace_id) if trace_id else None,
            '$ai_span_id': str(uuid.uuid4()),
            '$ai_span_name': _AGENT_LABELS.get(agent_name, agent_name),
            '$ai_is_error': True,
            '$ai_provider': 'casa-learning',
            '$ai_model': f'agent:{agent_name}',
            'error_type': type(error).__name__,
            'error_message': str(error),
        })
        if extra:
            event_properties.update(extra)

        client.capture(
            distinct_id=distinct_id,
            event='$ai_generation',
            properties=event_properties,
        )
    except Exception as e:
        logger.debug(f"PostHog: Failed to capture error event: {e}")


def flush_posthog():
    """Flush buffered PostHog events. Call after each request completes."""
    client = _ensure_client()
    if client:
        try:
            client.flush()
        except Exception as e:
            logger.warning(f"PostHog: Flush failed: {e}")
