"""
Correction Recorder

Stores a single human correction of an agent action and immediately checks
whether it completes a pattern worth turning into a rule.
"""

import logging
from typing import Any, Dict, Optional

from database.models import Correction
from learning.embeddings import EmbeddingService, format_embedding, try_embed
from learning.models import RecordCorrectionResult
from learning.pattern_detection import PatternDetector, correction_text

logger = logging.getLogger(__name__)


class CorrectionRecorder:
    """Persists corrections with embeddings and runs pattern detection."""

    def __init__(self, embedder: EmbeddingService, detector: PatternDetector):
        self.embedder = embedder
        self.detector = detector

    def record(
        self,
        user_id: str,
        original_action: str,
        correction: str,
        context_snapshot: Dict[str, Any],
        decision_id: Optional[str] = None
    ) -> RecordCorrectionResult:
        """
        Record a correction and run pattern detection on it.

        An embedding failure stores the correction without a vector; pattern
        detection then falls back to word overlap.

        Returns:
            RecordCorrectionResult with the new correction id and, if this
            correction completed a pattern, the rule it produced

        Raises:
            StorageError: If the correction cannot be stored
        """
        embedding = try_embed(
            self.embedder,
            correction_text({'correction': correction, 'original_action': original_action})
        )

        row = Correction.create(
            user_id=user_id,
            original_action=original_action,
            correction=correction,
            context_snapshot=context_snapshot or {},
            decision_id=decision_id,
            embedding=format_embedding(embedding) if embedding is not None else None,
        )
        logger.info(f"Recorded correction {row['id']} for user {user_id}")

        pattern = self.detector.detect(user_id, row)
        logger.info(f"Pattern detection for correction {row['id']}: {pattern.outcome.value}")

        return RecordCorrectionResult(correction_id=row['id'], rule=pattern.rule)
