"""
Learning pipeline exceptions.

Hard failures (storage, missing decision, lost concurrent updates) propagate
to the caller. Embedding and LLM failures are soft: they are raised by the
clients and always caught at the call site, which then falls back.
"""


class LearningError(Exception):
    """Base class for learning pipeline errors."""


class StorageError(LearningError):
    """A store write returned nothing or the store is unreachable."""


class DecisionNotFoundError(LearningError, ValueError):
    """The referenced decision does not exist."""

    def __init__(self, decision_id: str):
        super().__init__(f"Decision not found: {decision_id}")
        self.decision_id = decision_id


class TrackingNotFoundError(LearningError, ValueError):
    """No graduation tracking row exists for (user, category)."""

    def __init__(self, user_id: str, category: str):
        super().__init__(f"No tracking record found for category '{category}'")
        self.user_id = user_id
        self.category = category


class ConcurrentUpdateError(LearningError):
    """Compare-and-swap retries were exhausted."""


class EmbeddingUnavailableError(LearningError):
    """The embedding model could not produce a vector."""


class RuleSynthesisError(LearningError):
    """The LLM failed or returned unusable text."""
