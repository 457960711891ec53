# guideline_search/domain/interfaces.py

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional
import numpy as np

from .models import BookmarkEntry, IndexMetadata

if TYPE_CHECKING:
    from guideline_search.infrastructure.index_storage import PersistedIndex


class EmbeddingPort(ABC):
    """
    Port for any embedding engine.
    The model name is part of the port because persisted indexes are
    fingerprinted with it.
    """

    @property
    @abstractmethod
    def model_name(self) -> str: ...

    @abstractmethod
    def initialize(self) -> None:
        """Load the model. Repeat calls after a success are no-ops."""
        ...

    @abstractmethod
    def embed(self, text: str) -> np.ndarray: ...


class IndexStoragePort(ABC):
    """
    Where a built index lives between the offline indexing run and query time.
    """

    @property
    @abstractmethod
    def location(self) -> str: ...

    @abstractmethod
    def exists(self) -> bool: ...

    @abstractmethod
    def load(self, model_name: Optional[str] = None) -> "PersistedIndex":
        """
        Read the full asset set. Raises IndexNotFoundError when any artifact
        is missing; warns (does not raise) when model_name differs from the
        one recorded at indexing time.
        """
        ...

    @abstractmethod
    def save(self, persisted: "PersistedIndex") -> None: ...

    @abstractmethod
    def read_metadata(self) -> Optional[IndexMetadata]: ...

    @abstractmethod
    def load_bookmarks(self) -> List[BookmarkEntry]: ...
