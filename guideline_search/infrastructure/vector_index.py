# guideline_search/infrastructure/vector_index.py

import logging
from typing import List, Optional, Sequence, Union

import numpy as np

from guideline_search.domain.errors import DimensionMismatchError
from guideline_search.domain.models import DistanceFunction, VectorHit


logger = logging.getLogger(__name__)

VectorLike = Union[np.ndarray, Sequence[float]]

# Euclidean score = 1 / (offset + distance). Cosine scores are used as-is.
DEFAULT_SCORE_OFFSET = 1.0


def score_from_distance(
    distance: float,
    distance_function: DistanceFunction,
    offset: float = DEFAULT_SCORE_OFFSET,
) -> float:
    """Map a raw metric value onto a higher-is-better score."""
    if distance_function.higher_is_better:
        return float(distance)
    return 1.0 / (offset + float(distance))


class FlatVectorIndex:
    """
    Brute-force exact nearest-neighbor index.

    Every query computes the metric against all stored vectors, so results
    are exact and carry their distances. At a few thousand short passages
    this is a single matrix-vector product per query.

    Ranking:
        cosineSimilarity  → descending (higher = closer)
        euclideanDistance → ascending  (lower = closer)
    Ties keep insertion order.
    """

    def __init__(self, distance_function: DistanceFunction = DistanceFunction.COSINE):
        self._distance_function = DistanceFunction(distance_function)
        self._ids: List[str] = []
        self._vectors: List[np.ndarray] = []
        self._id_set: set = set()
        self._dimension: Optional[int] = None
        # Stacked lazily on first query after an add()
        self._matrix: Optional[np.ndarray] = None

    @property
    def distance_function(self) -> DistanceFunction:
        return self._distance_function

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, vector_id: str) -> bool:
        return vector_id in self._id_set

    def add(self, vector_id: str, vector: VectorLike) -> None:
        if vector_id in self._id_set:
            raise ValueError(
                f"Duplicate id '{vector_id}'. Ids must be unique within an index."
            )

        array = self._as_vector(vector)
        if self._dimension is None:
            self._dimension = array.shape[0]

        self._ids.append(vector_id)
        self._id_set.add(vector_id)
        self._vectors.append(array)
        self._matrix = None

    def query(self, query_vector: VectorLike, k: int) -> List[str]:
        return [hit.id for hit in self.query_with_distances(query_vector, k)]

    def query_with_distances(self, query_vector: VectorLike, k: int) -> List[VectorHit]:
        if not self._ids or k <= 0:
            return []

        query = self._as_vector(query_vector)
        values = self._compute_distances(query)

        if self._distance_function.higher_is_better:
            order = np.argsort(-values, kind="stable")
        else:
            order = np.argsort(values, kind="stable")

        return [
            VectorHit(id=self._ids[i], distance=float(values[i]))
            for i in order[:k]
        ]

    # ─── Serialization ───────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "vectors": [
                {"id": vector_id, "vector": vector.tolist()}
                for vector_id, vector in zip(self._ids, self._vectors)
            ],
            "distanceFunction": self._distance_function.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FlatVectorIndex":
        index = cls(DistanceFunction.from_space(data["distanceFunction"]))
        for entry in data.get("vectors") or []:
            index.add(str(entry["id"]), entry["vector"])
        logger.info(f"[VectorIndex] Loaded {len(index)} vectors.")
        return index

    # ─── Private ─────────────────────────────────────────────────────────────

    def _as_vector(self, vector: VectorLike) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32)
        if array.ndim != 1:
            raise DimensionMismatchError(
                f"Expected a 1-D vector, got shape {array.shape}."
            )
        if self._dimension is not None and array.shape[0] != self._dimension:
            raise DimensionMismatchError(
                f"Vector has dimension {array.shape[0]}, "
                f"index expects {self._dimension}."
            )
        return array

    def _compute_distances(self, query: np.ndarray) -> np.ndarray:
        if self._matrix is None:
            self._matrix = np.stack(self._vectors)

        if self._distance_function is DistanceFunction.EUCLIDEAN:
            return np.linalg.norm(self._matrix - query, axis=1)

        dots = self._matrix @ query
        magnitudes = np.linalg.norm(self._matrix, axis=1) * np.linalg.norm(query)
        # Zero-magnitude vectors have no direction: similarity 0
        return np.divide(
            dots,
            magnitudes,
            out=np.zeros_like(dots),
            where=magnitudes != 0,
        )
