"""
Unit tests for embedding helpers. The sentence-transformer model itself is
never loaded here.
"""

import pytest

from config.similarity import EmbeddingConfig
from learning.embeddings import (
    EmbeddingService,
    cosine_similarity,
    format_embedding,
    parse_embedding,
    try_embed,
)
from learning.errors import EmbeddingUnavailableError
from fakes import FailingEmbedder


class TestVectorHelpers:

    def test_format_is_pgvector_literal(self):
        assert format_embedding([1, 0.5, -2]) == '[1.0,0.5,-2.0]'

    def test_parse_literal(self):
        assert list(parse_embedding('[1.0,0.5,-2.0]')) == [1.0, 0.5, -2.0]

    def test_parse_list(self):
        assert list(parse_embedding([0.1, 0.2])) == [0.1, 0.2]

    @pytest.mark.parametrize("value", [None, '', 'not a vector', '[]', '{"a": 1}', [[1, 2], [3, 4]]])
    def test_parse_bad_values(self, value):
        assert parse_embedding(value) is None

    def test_cosine_identical(self):
        assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)

    def test_cosine_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_cosine_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_cosine_shape_mismatch(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0


class TestEmbeddingService:

    def test_empty_text_is_zero_vector(self):
        vector = EmbeddingService().embed("   ")

        assert len(vector) == EmbeddingConfig.DIMENSIONS
        assert not any(vector)

    def test_model_failure_wrapped(self, monkeypatch):
        service = EmbeddingService()

        def broken_model():
            raise OSError("model files missing")

        monkeypatch.setattr(service, '_get_model', broken_model)

        with pytest.raises(EmbeddingUnavailableError):
            service.embed("get quotes")

    def test_input_truncated(self, monkeypatch):
        service = EmbeddingService()
        seen = []

        class RecordingModel:
            def encode(self, text, **kwargs):
                import numpy as np
                seen.append(text)
                return np.ones(EmbeddingConfig.DIMENSIONS)

        monkeypatch.setattr(service, '_get_model', lambda: RecordingModel())

        service.embed("x" * 5000)

        assert len(seen[0]) == EmbeddingConfig.MAX_INPUT_CHARS

    def test_try_embed_swallows_outage(self):
        assert try_embed(FailingEmbedder(), "anything") is None
