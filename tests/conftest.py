# tests/conftest.py

import json
from pathlib import Path
from typing import Dict, List

import numpy as np
import pytest

from guideline_search.application.search_engine import SemanticSearchEngine
from guideline_search.domain.interfaces import EmbeddingPort
from guideline_search.domain.models import Document
from guideline_search.infrastructure.index_storage import (
    BOOKMARKS_FILENAME,
    FileSystemIndexStorage,
)


class KeywordEmbedder(EmbeddingPort):
    """
    Deterministic stand-in for a sentence model: every new word gets its own
    axis (wrapping after `dimension` words), vectors are L2-normalized.
    Texts sharing words are similar; identical texts embed identically.
    """

    def __init__(self, dimension: int = 32, model_name: str = "stub-model"):
        self._dimension = dimension
        self._model_name = model_name
        self._axes: Dict[str, int] = {}
        self.initialize_calls = 0
        self.embedded: List[str] = []

    @property
    def model_name(self) -> str:
        return self._model_name

    def initialize(self) -> None:
        self.initialize_calls += 1

    def embed(self, text: str) -> np.ndarray:
        self.embedded.append(text)
        vector = np.zeros(self._dimension, dtype=np.float32)
        for word in text.lower().split():
            axis = self._axes.setdefault(word, len(self._axes) % self._dimension)
            vector[axis] += 1.0
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0 else vector


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "vector_db")


@pytest.fixture
def storage(db_path) -> FileSystemIndexStorage:
    return FileSystemIndexStorage(db_path)


@pytest.fixture
def engine(embedder, storage) -> SemanticSearchEngine:
    return SemanticSearchEngine(embedding_engine=embedder, storage=storage)


@pytest.fixture
def sample_documents() -> List[Document]:
    return [
        Document(id="1", text="hello world", source="test", node_index=0),
        Document(id="2", text="foo bar", source="test", node_index=1),
        Document(id="3", text="baz qux", source="test", node_index=2),
    ]


def write_bookmarks(db_path: str, entries: List[dict]) -> None:
    root = Path(db_path)
    root.mkdir(parents=True, exist_ok=True)
    (root / BOOKMARKS_FILENAME).write_text(json.dumps(entries), encoding="utf-8")
