"""
Shared fixtures for the learning pipeline tests.

Storage is an in-memory FakeSupabase patched in for database.models'
client; LLMs are LangChain fake chat models; embeddings are stubs.
"""

import os
import sys

import pytest

# Add backend to path for imports
backend_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

# Analytics stay off in tests
os.environ.pop('POSTHOG_API_KEY', None)

from langchain_core.language_models.fake_chat_models import FakeListChatModel

from fakes import FakeSupabase, StubEmbedder

USER_ID = 'user-1'

QUOTE_VECTOR = [1.0, 0.0, 0.0, 0.0]
LICENCE_VECTOR = [0.0, 1.0, 0.0, 0.0]


@pytest.fixture
def fake_db(monkeypatch):
    """Fresh in-memory store wired into database.models."""
    import database.models as models

    db = FakeSupabase()
    monkeypatch.setattr(models, 'get_supabase', lambda: db)
    return db


@pytest.fixture
def embedder():
    """Quote-related text and licensing-related text embed to orthogonal vectors."""
    return StubEmbedder({
        'quote': QUOTE_VECTOR,
        'licens': LICENCE_VECTOR,
    })


def fake_llm(*responses):
    return FakeListChatModel(responses=list(responses))


def build_pipeline(embedder, rule_responses=("Always get two quotes before approving plumbing repairs",),
                   guidance_responses=("Confirm the property exists before creating a work order.",),
                   rule_llm=None, guidance_llm=None):
    from learning.service import LearningPipeline

    return LearningPipeline(
        rule_llm=rule_llm or fake_llm(*rule_responses),
        guidance_llm=guidance_llm or fake_llm(*guidance_responses),
        embedder=embedder,
    )
