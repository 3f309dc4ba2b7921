"""
Tests for the autonomy graduation state machine, including concurrent
updates resolved by version compare-and-swap.
"""

import pytest

from config.database import Tables
from conftest import USER_ID
from learning.errors import ConcurrentUpdateError, TrackingNotFoundError
from learning.graduation import GraduationTracker


def seed_tracking(fake_db, category='maintenance', **overrides):
    fields = dict(
        user_id=USER_ID,
        category=category,
        consecutive_approvals=0,
        total_approvals=0,
        total_rejections=0,
        current_level=1,
        graduation_threshold=10,
        backoff_multiplier=1,
        version=0,
    )
    fields.update(overrides)
    return fake_db.seed(Tables.GRADUATION_TRACKING, **fields)


def tracking_row(fake_db, category='maintenance'):
    rows = [r for r in fake_db.rows(Tables.GRADUATION_TRACKING) if r['category'] == category]
    assert len(rows) == 1
    return rows[0]


@pytest.fixture
def tracker():
    return GraduationTracker()


class TestRecordFeedback:
    """Approval streaks and resets."""

    def test_first_feedback_creates_tracking(self, fake_db, tracker):
        eligible = tracker.record_feedback(USER_ID, 'maintenance', 'approved')

        row = tracking_row(fake_db)
        assert eligible is False
        assert row['consecutive_approvals'] == 1
        assert row['total_approvals'] == 1
        assert row['current_level'] == 1
        assert row['graduation_threshold'] == 10
        assert row['backoff_multiplier'] == 1
        assert row['last_approval_at']

    def test_eligible_at_threshold(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=9)

        assert tracker.record_feedback(USER_ID, 'maintenance', 'approved') is True

    def test_backoff_scales_threshold(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=19, backoff_multiplier=2)

        assert tracker.record_feedback(USER_ID, 'maintenance', 'approved') is True
        assert tracking_row(fake_db)['consecutive_approvals'] == 20

    def test_below_backed_off_threshold(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=10, backoff_multiplier=2)

        assert tracker.record_feedback(USER_ID, 'maintenance', 'approved') is False

    def test_never_eligible_at_max_level(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=50, current_level=4)

        assert tracker.record_feedback(USER_ID, 'maintenance', 'approved') is False

    @pytest.mark.parametrize("feedback", ['rejected', 'corrected'])
    def test_rejection_resets_streak(self, fake_db, tracker, feedback):
        seed_tracking(fake_db, consecutive_approvals=25, total_rejections=2)

        assert tracker.record_feedback(USER_ID, 'maintenance', feedback) is False

        row = tracking_row(fake_db)
        assert row['consecutive_approvals'] == 0
        assert row['total_rejections'] == 3
        assert row['last_rejection_at']

    def test_categories_tracked_separately(self, fake_db, tracker):
        tracker.record_feedback(USER_ID, 'maintenance', 'approved')
        tracker.record_feedback(USER_ID, 'financial', 'rejected')

        assert tracking_row(fake_db, 'maintenance')['consecutive_approvals'] == 1
        assert tracking_row(fake_db, 'financial')['total_rejections'] == 1

    def test_version_bumped(self, fake_db, tracker):
        seed_tracking(fake_db, version=3)

        tracker.record_feedback(USER_ID, 'maintenance', 'approved')

        assert tracking_row(fake_db)['version'] == 4


class TestConcurrentUpdates:
    """Lost CAS races are retried against the fresh row."""

    def test_concurrent_approval_not_lost(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=5)
        raced = []

        def other_writer(rows):
            # Another request approves between our read and our write, once
            if not raced:
                raced.append(True)
                row = rows[0]
                row['consecutive_approvals'] += 1
                row['total_approvals'] += 1
                row['version'] += 1

        fake_db.on_update(Tables.GRADUATION_TRACKING, other_writer)

        tracker.record_feedback(USER_ID, 'maintenance', 'approved')

        row = tracking_row(fake_db)
        assert row['consecutive_approvals'] == 7
        assert row['total_approvals'] == 2
        assert row['version'] == 2

    def test_exhausted_retries_raise(self, fake_db, tracker):
        seed_tracking(fake_db)

        def always_first(rows):
            rows[0]['version'] += 1

        fake_db.on_update(Tables.GRADUATION_TRACKING, always_first)

        with pytest.raises(ConcurrentUpdateError):
            tracker.record_feedback(USER_ID, 'maintenance', 'approved')

    def test_lazy_creation_is_idempotent(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=3)

        from database.models import GraduationTracking
        row = GraduationTracking.get_or_create(USER_ID, 'maintenance', {'consecutive_approvals': 0})

        assert row['consecutive_approvals'] == 3
        assert len(fake_db.rows(Tables.GRADUATION_TRACKING)) == 1


class TestCheck:
    """Read-only status."""

    def test_defaults_without_tracking(self, fake_db, tracker):
        status = tracker.check(USER_ID, 'scheduling')

        assert status.eligible is False
        assert status.category == 'scheduling'
        assert status.current_level == 1
        assert status.consecutive_approvals == 0
        assert status.threshold == 10
        assert fake_db.rows(Tables.GRADUATION_TRACKING) == []

    def test_reports_backed_off_threshold(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=12, backoff_multiplier=4, current_level=2)

        status = tracker.check(USER_ID, 'maintenance')

        assert status.threshold == 40
        assert status.eligible is False
        assert status.current_level == 2
        assert status.consecutive_approvals == 12

    def test_check_does_not_modify(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=10)

        assert tracker.check(USER_ID, 'maintenance').eligible is True
        assert tracking_row(fake_db)['version'] == 0


class TestAcceptDecline:
    """Owner responses to a graduation suggestion."""

    def test_accept_raises_level_and_resets(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=20, backoff_multiplier=2, current_level=2)

        result = tracker.accept(USER_ID, 'maintenance')

        row = tracking_row(fake_db)
        assert result.new_level == 3
        assert row['current_level'] == 3
        assert row['consecutive_approvals'] == 0
        assert row['backoff_multiplier'] == 1
        assert row['last_suggestion_at']

    def test_accept_capped_at_max_level(self, fake_db, tracker):
        seed_tracking(fake_db, current_level=4)

        assert tracker.accept(USER_ID, 'maintenance').new_level == 4

    def test_accept_writes_autonomy_override(self, fake_db, tracker):
        seed_tracking(fake_db, current_level=1)
        fake_db.seed(Tables.AUTONOMY_SETTINGS, user_id=USER_ID, category_overrides={'financial': 'L1'})

        tracker.accept(USER_ID, 'maintenance')

        settings = fake_db.rows(Tables.AUTONOMY_SETTINGS)[0]
        assert settings['category_overrides'] == {'financial': 'L1', 'maintenance': 'L2'}

    def test_accept_without_settings_row(self, fake_db, tracker):
        seed_tracking(fake_db)

        tracker.accept(USER_ID, 'maintenance')

        assert fake_db.rows(Tables.AUTONOMY_SETTINGS) == []

    def test_accept_without_tracking_raises(self, fake_db, tracker):
        with pytest.raises(TrackingNotFoundError, match="No tracking record found"):
            tracker.accept(USER_ID, 'maintenance')

    def test_decline_doubles_backoff(self, fake_db, tracker):
        seed_tracking(fake_db, consecutive_approvals=10, current_level=2)

        tracker.decline(USER_ID, 'maintenance')
        assert tracking_row(fake_db)['backoff_multiplier'] == 2

        tracker.decline(USER_ID, 'maintenance')
        row = tracking_row(fake_db)
        assert row['backoff_multiplier'] == 4
        assert row['consecutive_approvals'] == 0
        assert row['current_level'] == 2

    def test_decline_backoff_capped(self, fake_db, tracker):
        seed_tracking(fake_db, backoff_multiplier=8)

        tracker.decline(USER_ID, 'maintenance')

        assert tracking_row(fake_db)['backoff_multiplier'] == 8

    def test_decline_without_tracking_is_noop(self, fake_db, tracker):
        assert tracker.decline(USER_ID, 'maintenance').success is True
        assert fake_db.rows(Tables.GRADUATION_TRACKING) == []
