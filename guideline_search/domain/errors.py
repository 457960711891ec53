# guideline_search/domain/errors.py


class SearchEngineError(RuntimeError):
    """Base class for failures the search engine surfaces to its caller."""


class EngineInitializationError(SearchEngineError):
    """The embedding model could not be loaded, or was never loaded."""


class IndexNotFoundError(SearchEngineError):
    """No index in memory and no persisted assets to load one from."""

    def __init__(self, location: str = ""):
        where = f" at '{location}'" if location else ""
        super().__init__(
            f"No index found{where}. Please index documents first."
        )
        self.location = location


class IndexCorruptedError(SearchEngineError):
    """Persisted assets exist but cannot be read back into a consistent index."""


class EmbeddingError(SearchEngineError):
    """The embedding model failed on a query or on a document being indexed."""


class DimensionMismatchError(ValueError):
    """A vector's length differs from the dimension fixed by the index."""
