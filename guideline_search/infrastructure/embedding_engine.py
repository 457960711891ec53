# guideline_search/infrastructure/embedding_engine.py
# The model is loaded on initialize(), not in __init__.

import logging
from typing import Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from guideline_search.domain.errors import EmbeddingError, EngineInitializationError
from guideline_search.domain.interfaces import EmbeddingPort


logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "all-MiniLM-L6-v2"


class SentenceTransformerEngine(EmbeddingPort):
    """
    Mean-pooled, L2-normalized sentence embeddings. On unit vectors cosine
    similarity and dot product coincide.
    """

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME, device: Optional[str] = None):
        self._model_name = model_name
        self._device = device
        self._model: Optional[SentenceTransformer] = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def is_initialized(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        if self._model is not None:
            return

        logger.info(f"[EmbeddingEngine] Loading model: {self._model_name} ...")
        try:
            self._model = SentenceTransformer(self._model_name, device=self._device)
        except Exception as error:
            raise EngineInitializationError(
                f"Failed to load embedding model '{self._model_name}'.\n"
                f"Check the model name and that it is cached locally or reachable.\n"
                f"Original error: {error}"
            ) from error
        logger.info("[EmbeddingEngine] Model ready.")

    def embed(self, text: str) -> np.ndarray:
        if self._model is None:
            raise EngineInitializationError(
                "Embedding model not loaded. Call initialize() first."
            )
        try:
            return self._model.encode(
                text,
                convert_to_numpy=True,
                normalize_embeddings=True,
            )
        except Exception as error:
            raise EmbeddingError(f"Failed to embed text: {error}") from error
