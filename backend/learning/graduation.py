"""
Autonomy Graduation

Tracks approval streaks per (user, category) and decides when the assistant
has earned a suggestion to act with more autonomy. Owners accept or decline
the suggestion; declining doubles the streak needed before the next one.

All updates to a tracking row are compare-and-swap on its version column.
"""

import logging
from typing import Any, Callable, Dict

from config.learning import ConcurrencyConfig, GraduationConfig
from config.posthog import capture_learning_event
from database.models import AutonomySettings, GraduationTracking, utc_now
from learning.errors import ConcurrentUpdateError, TrackingNotFoundError
from learning.models import (
    AcceptGraduationResult,
    DeclineGraduationResult,
    FeedbackValue,
    GraduationStatus,
)

logger = logging.getLogger(__name__)


def _initial_tracking() -> Dict[str, Any]:
    return {
        'consecutive_approvals': 0,
        'total_approvals': 0,
        'total_rejections': 0,
        'current_level': GraduationConfig.INITIAL_LEVEL,
        'graduation_threshold': GraduationConfig.DEFAULT_THRESHOLD,
        'backoff_multiplier': GraduationConfig.INITIAL_BACKOFF,
    }


def effective_threshold(tracking: Dict[str, Any]) -> int:
    """Streak length needed for the next suggestion."""
    threshold = tracking.get('graduation_threshold') or GraduationConfig.DEFAULT_THRESHOLD
    backoff = tracking.get('backoff_multiplier') or GraduationConfig.INITIAL_BACKOFF
    return threshold * backoff


def is_eligible(tracking: Dict[str, Any]) -> bool:
    return (
        tracking.get('consecutive_approvals', 0) >= effective_threshold(tracking)
        and tracking.get('current_level', GraduationConfig.INITIAL_LEVEL) < GraduationConfig.MAX_LEVEL
    )


class GraduationTracker:
    """Per-category graduation state machine."""

    def _update(
        self,
        user_id: str,
        category: str,
        tracking: Dict[str, Any],
        transition: Callable[[Dict[str, Any]], Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Apply `transition` (current row -> changed fields) with CAS, re-reading
        and recomputing whenever another request got there first.

        Raises:
            ConcurrentUpdateError: If every attempt lost the race
            TrackingNotFoundError: If the row disappeared between attempts
        """
        for attempt in range(ConcurrencyConfig.MAX_CAS_ATTEMPTS):
            updated = GraduationTracking.compare_and_swap(
                tracking['id'],
                tracking.get('version', 0),
                transition(tracking),
            )
            if updated:
                return updated

            logger.info(
                f"Graduation tracking for {category} changed concurrently "
                f"(attempt {attempt + 1}), retrying"
            )
            tracking = GraduationTracking.get(user_id, category)
            if not tracking:
                raise TrackingNotFoundError(user_id, category)

        raise ConcurrentUpdateError(
            f"Could not update graduation tracking for category '{category}' "
            f"after {ConcurrencyConfig.MAX_CAS_ATTEMPTS} attempts"
        )

    def record_feedback(self, user_id: str, category: str, feedback: FeedbackValue) -> bool:
        """
        Count one piece of decision feedback toward the category's streak.

        The tracking row is created on first feedback.

        Returns:
            True if the user should now be offered a graduation
        """
        tracking = GraduationTracking.get_or_create(user_id, category, _initial_tracking())
        now = utc_now()

        if feedback == 'approved':
            def transition(row):
                return {
                    'consecutive_approvals': row.get('consecutive_approvals', 0) + 1,
                    'total_approvals': row.get('total_approvals', 0) + 1,
                    'last_approval_at': now,
                    'updated_at': now,
                }
        else:
            def transition(row):
                return {
                    'consecutive_approvals': 0,
                    'total_rejections': row.get('total_rejections', 0) + 1,
                    'last_rejection_at': now,
                    'updated_at': now,
                }

        updated = self._update(user_id, category, tracking, transition)

        if feedback != 'approved':
            return False

        eligible = is_eligible(updated)
        if eligible:
            logger.info(
                f"User {user_id} eligible for graduation in {category} "
                f"({updated['consecutive_approvals']} consecutive approvals)"
            )
            capture_learning_event('graduation_eligible', {
                'category': category,
                'current_level': updated.get('current_level'),
                'consecutive_approvals': updated.get('consecutive_approvals'),
            })
        return eligible

    def check(self, user_id: str, category: str) -> GraduationStatus:
        """Read-only eligibility snapshot; defaults when nothing is tracked yet."""
        tracking = GraduationTracking.get(user_id, category)

        if not tracking:
            return GraduationStatus(
                eligible=False,
                category=category,
                current_level=GraduationConfig.INITIAL_LEVEL,
                consecutive_approvals=0,
                threshold=GraduationConfig.DEFAULT_THRESHOLD,
            )

        return GraduationStatus(
            eligible=is_eligible(tracking),
            category=category,
            current_level=tracking.get('current_level', GraduationConfig.INITIAL_LEVEL),
            consecutive_approvals=tracking.get('consecutive_approvals', 0),
            threshold=effective_threshold(tracking),
        )

    def accept(self, user_id: str, category: str) -> AcceptGraduationResult:
        """
        Raise the category's autonomy level by one (capped) and start a new
        streak with backoff reset.

        The new level is also written into the user's autonomy overrides when
        the user has an autonomy settings row.

        Raises:
            TrackingNotFoundError: If the category was never tracked
        """
        tracking = GraduationTracking.get(user_id, category)
        if not tracking:
            raise TrackingNotFoundError(user_id, category)

        now = utc_now()

        def transition(row):
            level = row.get('current_level', GraduationConfig.INITIAL_LEVEL)
            return {
                'current_level': min(level + 1, GraduationConfig.MAX_LEVEL),
                'consecutive_approvals': 0,
                'backoff_multiplier': GraduationConfig.INITIAL_BACKOFF,
                'last_suggestion_at': now,
                'updated_at': now,
            }

        updated = self._update(user_id, category, tracking, transition)
        new_level = updated['current_level']

        settings = AutonomySettings.get(user_id)
        if settings:
            overrides = dict(settings.get('category_overrides') or {})
            overrides[category] = GraduationConfig.LEVEL_LABELS.get(new_level, f"L{new_level}")
            AutonomySettings.update_category_overrides(user_id, overrides)

        logger.info(f"User {user_id} accepted graduation in {category}: now level {new_level}")
        capture_learning_event('graduation_accepted', {
            'category': category,
            'new_level': new_level,
        })
        return AcceptGraduationResult(new_level=new_level)

    def decline(self, user_id: str, category: str) -> DeclineGraduationResult:
        """
        Reset the streak and double the backoff (capped). Declining an
        untracked category does nothing.
        """
        tracking = GraduationTracking.get(user_id, category)
        if not tracking:
            logger.info(f"Decline for untracked category {category} (user {user_id}), nothing to do")
            return DeclineGraduationResult()

        now = utc_now()

        def transition(row):
            backoff = row.get('backoff_multiplier') or GraduationConfig.INITIAL_BACKOFF
            return {
                'consecutive_approvals': 0,
                'backoff_multiplier': min(backoff * 2, GraduationConfig.MAX_BACKOFF),
                'last_suggestion_at': now,
                'updated_at': now,
            }

        updated = self._update(user_id, category, tracking, transition)

        logger.info(
            f"User {user_id} declined graduation in {category}: "
            f"backoff now {updated['backoff_multiplier']}"
        )
        capture_learning_event('graduation_declined', {
            'category': category,
            'backoff_multiplier': updated['backoff_multiplier'],
        })
        return DeclineGraduationResult()
