"""
Embedding Service

Turns text into fixed-length vectors for similarity matching between
corrections, rules, and decision reasoning. Vectors are stored in pgvector
columns, which PostgREST reads and writes as "[0.1,0.2,...]" literals.

Every failure surfaces as EmbeddingUnavailableError so call sites can fall
back to lexical matching instead of failing the request.
"""

import json
import logging
import threading
from typing import List, Optional, Sequence, Union

import numpy as np
from sentence_transformers import SentenceTransformer

from config.similarity import EmbeddingConfig
from learning.errors import EmbeddingUnavailableError

logger = logging.getLogger(__name__)

Vector = Union[np.ndarray, Sequence[float]]


class EmbeddingService:
    """
    Sentence-transformer embeddings, normalized for cosine similarity.

    The model is loaded on first use and shared by every request in the
    worker process.
    """

    def __init__(self, model_name: str = EmbeddingConfig.MODEL_NAME):
        self.model_name = model_name
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.Lock()

    def _get_model(self) -> SentenceTransformer:
        if self._model is None:
            with self._lock:
                if self._model is None:
                    model = SentenceTransformer(self.model_name)
                    model.max_seq_length = EmbeddingConfig.MAX_SEQ_LENGTH
                    self._model = model
        return self._model

    def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Empty text yields a zero vector. Text longer than
        EmbeddingConfig.MAX_INPUT_CHARS is truncated.

        Raises:
            EmbeddingUnavailableError: If the model cannot be loaded or run
        """
        if not text or not text.strip():
            return [0.0] * EmbeddingConfig.DIMENSIONS

        truncated = text.strip()[:EmbeddingConfig.MAX_INPUT_CHARS]

        try:
            vector = self._get_model().encode(
                truncated,
                convert_to_numpy=True,
                normalize_embeddings=True
            )
        except Exception as e:
            raise EmbeddingUnavailableError(f"Embedding failed: {e}") from e

        return vector.tolist()


def try_embed(embedder: EmbeddingService, text: str) -> Optional[List[float]]:
    """Embed `text`, or log and return None when embeddings are down."""
    try:
        return embedder.embed(text)
    except EmbeddingUnavailableError as e:
        logger.warning(f"Embedding unavailable, continuing without: {e}")
        return None


def format_embedding(vector: Vector) -> str:
    """Format a vector as a pgvector literal."""
    return '[' + ','.join(str(float(x)) for x in vector) + ']'


def parse_embedding(value) -> Optional[np.ndarray]:
    """
    Parse a stored embedding (pgvector literal or JSON list).

    Returns None for missing or malformed values; a bad vector on one row
    must never break matching for the others.
    """
    if value is None:
        return None

    try:
        if isinstance(value, str):
            value = json.loads(value)
        vector = np.asarray(value, dtype=float)
    except (ValueError, TypeError):
        logger.debug("Ignoring malformed embedding value")
        return None

    if vector.ndim != 1 or vector.size == 0:
        return None
    return vector


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity; 0.0 when either vector is zero or shapes differ."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        return 0.0

    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)
