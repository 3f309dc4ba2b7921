"""
Tests for decision and chat-message feedback routing.
"""

import pytest

from config.database import Tables
from conftest import USER_ID, build_pipeline
from fakes import FailingEmbedder
from learning.errors import DecisionNotFoundError
from learning.feedback_router import summarize_action

RULE_TEXT = "Always get owner approval for maintenance quotes over $300"


def seed_decision(fake_db, **overrides):
    fields = dict(
        user_id=USER_ID,
        tool_name='approve_maintenance_quote',
        decision_type='maintenance_approval',
        input_data={'quote_id': 'q-1', 'amount': 450},
        output_data={'approved': True},
        reasoning=None,
    )
    fields.update(overrides)
    return fake_db.seed(Tables.DECISIONS, **fields)


@pytest.fixture
def pipeline():
    return build_pipeline(FailingEmbedder())


class TestProcessFeedback:
    """Decision feedback fans out to graduation, confidence and corrections."""

    def test_approval_records_feedback_and_tracks(self, fake_db, pipeline):
        decision = seed_decision(fake_db)

        result = pipeline.process_feedback(USER_ID, decision['id'], 'approved')

        assert result.updated is True
        assert result.graduation_eligible is False
        assert result.rule_updated is False

        stored = fake_db.rows(Tables.DECISIONS)[0]
        assert stored['owner_feedback'] == 'approved'
        assert stored['owner_correction'] is None

        tracking = fake_db.rows(Tables.GRADUATION_TRACKING)
        assert len(tracking) == 1
        assert tracking[0]['category'] == 'maintenance'
        assert tracking[0]['consecutive_approvals'] == 1

    def test_explicit_category_used(self, fake_db, pipeline):
        decision = seed_decision(fake_db)

        pipeline.process_feedback(USER_ID, decision['id'], 'approved', category='financial')

        assert fake_db.rows(Tables.GRADUATION_TRACKING)[0]['category'] == 'financial'

    def test_missing_decision_raises(self, fake_db, pipeline):
        with pytest.raises(DecisionNotFoundError):
            pipeline.process_feedback(USER_ID, 'no-such-decision', 'approved')

        assert fake_db.rows(Tables.GRADUATION_TRACKING) == []

    def test_reasoning_adjusts_rules(self, fake_db, pipeline):
        rule = fake_db.seed(
            Tables.RULES,
            user_id=USER_ID, rule_text=RULE_TEXT, category='maintenance', confidence=0.7,
            source='correction_pattern', active=True, applications_count=0,
            rejections_count=0, version=0,
        )
        decision = seed_decision(fake_db, reasoning=f"Rule applied: {RULE_TEXT}")

        result = pipeline.process_feedback(USER_ID, decision['id'], 'rejected')

        assert result.rule_updated is True
        assert fake_db.rows(Tables.RULES)[0]['confidence'] == pytest.approx(0.55)
        assert fake_db.rows(Tables.RULES)[0]['id'] == rule['id']

    def test_correction_is_recorded(self, fake_db, pipeline):
        decision = seed_decision(fake_db)

        pipeline.process_feedback(
            USER_ID, decision['id'], 'corrected',
            correction="Ask me before approving quotes over $300",
        )

        corrections = fake_db.rows(Tables.CORRECTIONS)
        assert len(corrections) == 1
        correction = corrections[0]
        assert correction['decision_id'] == decision['id']
        assert correction['original_action'] == 'approve_maintenance_quote: {"quote_id":"q-1","amount":450}'
        assert correction['context_snapshot'] == {
            'tool_name': 'approve_maintenance_quote',
            'decision_type': 'maintenance_approval',
            'input_data': {'quote_id': 'q-1', 'amount': 450},
            'output_data': {'approved': True},
        }
        assert fake_db.rows(Tables.DECISIONS)[0]['owner_correction'] == "Ask me before approving quotes over $300"
        assert fake_db.rows(Tables.GRADUATION_TRACKING)[0]['total_rejections'] == 1

    def test_corrected_without_text_records_nothing(self, fake_db, pipeline):
        decision = seed_decision(fake_db)

        pipeline.process_feedback(USER_ID, decision['id'], 'corrected')

        assert fake_db.rows(Tables.CORRECTIONS) == []

    def test_tenth_approval_is_eligible(self, fake_db, pipeline):
        decision = seed_decision(fake_db)

        results = [
            pipeline.process_feedback(USER_ID, decision['id'], 'approved')
            for _ in range(10)
        ]

        assert [r.graduation_eligible for r in results] == [False] * 9 + [True]


class TestSummarizeAction:

    def test_input_json_truncated(self):
        summary = summarize_action('send_message', {'body': 'x' * 500})

        assert summary.startswith('send_message: {"body":"')
        assert len(summary) == len('send_message: ') + 200

    def test_missing_input(self):
        assert summarize_action('noop', None) == 'noop: null'


class TestProcessMessageFeedback:
    """Chat-message reactions."""

    CONTENT = "I asked for owner approval because the maintenance quotes came in high."

    def test_missing_message_is_not_processed(self, fake_db, pipeline):
        result = pipeline.process_message_feedback(USER_ID, 'missing', 'positive')

        assert result.processed is False
        assert result.rule_updated is None

    def test_negative_reaction_lowers_matching_rule(self, fake_db, pipeline):
        fake_db.seed(
            Tables.RULES,
            user_id=USER_ID, rule_text=RULE_TEXT, category='maintenance', confidence=0.7,
            source='correction_pattern', active=True, applications_count=0,
            rejections_count=0, version=0,
        )
        message = fake_db.seed(
            Tables.MESSAGES,
            conversation_id='conv-1',
            content=self.CONTENT,
            tool_calls=[{'name': 'get_quotes'}],
            tool_results=[],
        )

        result = pipeline.process_message_feedback(USER_ID, message['id'], 'negative')

        assert result.processed is True
        assert result.rule_updated is True
        assert fake_db.rows(Tables.RULES)[0]['confidence'] == pytest.approx(0.65)

    def test_no_rules_nothing_updated(self, fake_db, pipeline):
        message = fake_db.seed(
            Tables.MESSAGES, conversation_id='conv-1', content=None, tool_calls=None, tool_results=None,
        )

        result = pipeline.process_message_feedback(USER_ID, message['id'], 'positive')

        assert result.processed is True
        assert result.rule_updated is False

    def test_message_feedback_does_not_touch_graduation(self, fake_db, pipeline):
        message = fake_db.seed(Tables.MESSAGES, conversation_id='c', content=self.CONTENT)

        pipeline.process_message_feedback(USER_ID, message['id'], 'positive')

        assert fake_db.rows(Tables.GRADUATION_TRACKING) == []
