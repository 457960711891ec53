# guideline_search/application/search_engine.py

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence

from guideline_search.domain.errors import (
    EmbeddingError,
    EngineInitializationError,
)
from guideline_search.domain.interfaces import EmbeddingPort, IndexStoragePort
from guideline_search.domain.models import (
    BookmarkEntry,
    DistanceFunction,
    Document,
    EngineStats,
    IndexingErrorPolicy,
    IndexingReport,
    IndexMetadata,
    SearchResult,
    SearchResultMetadata,
)
from guideline_search.infrastructure.bookmarks import BookmarkMapping
from guideline_search.infrastructure.document_store import DocumentStore
from guideline_search.infrastructure.embedding_engine import (
    DEFAULT_MODEL_NAME,
    SentenceTransformerEngine,
)
from guideline_search.infrastructure.index_storage import (
    FileSystemIndexStorage,
    PersistedIndex,
)
from guideline_search.infrastructure.vector_index import (
    DEFAULT_SCORE_OFFSET,
    FlatVectorIndex,
    score_from_distance,
)


logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "./data/vector_db"
DEFAULT_TOP_K = 5
DEFAULT_DIMENSION = 384
PROGRESS_LOG_INTERVAL = 10


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FAILED = "failed"
    READY = "ready"
    INDEXED = "indexed"


class SemanticSearchEngine:
    """
    Single entry point for offline semantic search over the guideline manual.

    Lifecycle:
        UNINITIALIZED ─initialize()→ READY ─index_documents() / first search()→ INDEXED
        INDEXED ─clear_index()→ READY
        A failed initialize() → FAILED; every call then fails fast until an
        explicit initialize() succeeds.

    Not safe for concurrent use while initialize() or index_documents() runs.
    search() calls may overlap once INDEXED.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        db_path: str = DEFAULT_DB_PATH,
        space: str = "cosine",
        score_offset: float = DEFAULT_SCORE_OFFSET,
        embedding_engine: Optional[EmbeddingPort] = None,
        storage: Optional[IndexStoragePort] = None,
    ):
        self._embedding_engine = embedding_engine or SentenceTransformerEngine(model_name)
        self._model_name = self._embedding_engine.model_name
        self._storage = storage or FileSystemIndexStorage(db_path)
        self._db_path = self._storage.location
        self._distance_function = DistanceFunction.from_space(space)
        self._score_offset = score_offset

        self._state = EngineState.UNINITIALIZED
        self._init_error: Optional[Exception] = None
        self._bookmarks = BookmarkMapping()
        self._index: Optional[FlatVectorIndex] = None
        self._documents = DocumentStore()
        self._dimension = DEFAULT_DIMENSION

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def distance_function(self) -> DistanceFunction:
        """
        Metric of the loaded index, else the configured one. A loaded index
        keeps the metric it was built with; index_documents() always builds
        with the configured metric.
        """
        if self._index is not None:
            return self._index.distance_function
        return self._distance_function

    # ─── Lifecycle ────────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Load the embedding model and bookmark mapping. Idempotent."""
        if self._state in (EngineState.READY, EngineState.INDEXED):
            return

        try:
            self._embedding_engine.initialize()
        except Exception as error:
            self._state = EngineState.FAILED
            self._init_error = error
            logger.error(f"[SearchEngine] Initialization failed: {error}")
            if isinstance(error, EngineInitializationError):
                raise
            raise EngineInitializationError(
                f"Failed to initialize embedding model '{self._model_name}': {error}"
            ) from error

        self._bookmarks = BookmarkMapping(self._storage.load_bookmarks())
        self._init_error = None
        self._state = EngineState.READY
        logger.info(
            f"[SearchEngine] Ready. {len(self._bookmarks)} bookmarks loaded."
        )

    def clear_index(self) -> None:
        """Drop in-memory vectors and documents. Model and bookmarks stay loaded."""
        self._index = None
        self._documents = DocumentStore()
        if self._state is EngineState.INDEXED:
            self._state = EngineState.READY
        logger.info("[SearchEngine] Index cleared.")

    # ─── Indexing ─────────────────────────────────────────────────────────────

    def index_documents(
        self,
        documents: Sequence[Document],
        on_error: IndexingErrorPolicy = IndexingErrorPolicy.ABORT,
    ) -> IndexingReport:
        """
        Embed, index and persist a full corpus, replacing any loaded index.

        With IndexingErrorPolicy.ABORT an embedding failure raises
        EmbeddingError and the previously loaded index stays in place.
        With IndexingErrorPolicy.SKIP the failing ids are logged, recorded in
        the report and left out of the index.
        """
        self._ensure_initialized()

        report = IndexingReport()
        if not documents:
            logger.info("[SearchEngine] No documents to index.")
            return report

        unique_documents = self._deduplicate(documents, report)
        total = len(unique_documents)
        logger.info(f"[SearchEngine] Indexing {total} documents...")

        index = FlatVectorIndex(self._distance_function)
        store = DocumentStore()

        for position, document in enumerate(unique_documents):
            if position % PROGRESS_LOG_INTERVAL == 0:
                logger.info(f"[SearchEngine] Processing: {position + 1}/{total}")

            try:
                embedding = self._embedding_engine.embed(document.text)
            except Exception as error:
                if on_error is IndexingErrorPolicy.SKIP:
                    logger.warning(
                        f"[SearchEngine] ⚠ Skipping document '{document.id}': {error}"
                    )
                    report.skipped_ids.append(document.id)
                    continue
                logger.error(
                    f"[SearchEngine] Embedding failed for document '{document.id}'. "
                    f"Indexing aborted."
                )
                if isinstance(error, EmbeddingError):
                    raise
                raise EmbeddingError(
                    f"Failed to embed document '{document.id}': {error}"
                ) from error

            index.add(document.id, embedding)
            store.put(document)

        metadata = IndexMetadata(
            dimension=index.dimension or self._dimension,
            document_count=len(store),
            space=self._distance_function.space,
            model_name=self._model_name,
        )
        self._storage.save(PersistedIndex(metadata=metadata, index=index, documents=store))
        self._install(index, store, metadata)

        report.indexed_count = len(store)
        logger.info(f"[SearchEngine] Successfully indexed {report.indexed_count} documents.")
        if report.skipped_ids:
            logger.warning(
                f"[SearchEngine] ⚠ {len(report.skipped_ids)} documents skipped: "
                f"{report.skipped_ids}"
            )
        return report

    # ─── Querying ─────────────────────────────────────────────────────────────

    def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[SearchResult]:
        self._ensure_initialized()
        self._ensure_index()

        query = query.strip()
        if not query:
            raise ValueError("Query cannot be empty.")

        try:
            query_embedding = self._embedding_engine.embed(query)
        except EmbeddingError:
            raise
        except Exception as error:
            raise EmbeddingError(f"Failed to embed query: {error}") from error

        k = min(top_k, len(self._index))
        hits = self._index.query_with_distances(query_embedding, k)

        results: List[SearchResult] = []
        for hit in hits:
            document = self._documents.get(hit.id)
            if document is None:
                logger.debug(
                    f"[SearchEngine] Vector hit '{hit.id}' has no document. Dropped."
                )
                continue

            results.append(SearchResult(
                id=document.id,
                text=document.text,
                metadata=self._build_metadata(document),
                distance=hit.distance,
                score=score_from_distance(
                    hit.distance,
                    self._index.distance_function,
                    self._score_offset,
                ),
            ))

        return results

    def list_bookmarks(self) -> List[BookmarkEntry]:
        """Table of contents: every bookmark, in page order."""
        self._ensure_initialized()
        return self._bookmarks.table_of_contents()

    def get_stats(self) -> EngineStats:
        if self._index is None:
            metadata = self._storage.read_metadata()
            if metadata is not None:
                return EngineStats(
                    document_count=metadata.document_count,
                    dimension=metadata.dimension or self._dimension,
                    model_name=metadata.model_name or self._model_name,
                    db_path=self._db_path,
                )

        return EngineStats(
            document_count=len(self._documents),
            dimension=self._dimension,
            model_name=self._model_name,
            db_path=self._db_path,
        )

    # ─── Private ─────────────────────────────────────────────────────────────

    def _ensure_initialized(self) -> None:
        if self._state is EngineState.FAILED:
            raise EngineInitializationError(
                f"Search engine failed to initialize: {self._init_error}. "
                f"Call initialize() again to retry."
            )
        if self._state is EngineState.UNINITIALIZED:
            self.initialize()

    def _ensure_index(self) -> None:
        if self._index is not None:
            return

        # Raises IndexNotFoundError when nothing has been indexed yet
        persisted = self._storage.load(model_name=self._model_name)
        self._install(persisted.index, persisted.documents, persisted.metadata)

    def _install(
        self,
        index: FlatVectorIndex,
        documents: DocumentStore,
        metadata: IndexMetadata,
    ) -> None:
        if index.distance_function is not self._distance_function:
            logger.info(
                f"[SearchEngine] Index uses '{index.distance_function.space}', "
                f"configured '{self._distance_function.space}'. Using the index metric."
            )
        self._index = index
        self._documents = documents
        self._dimension = index.dimension or metadata.dimension or self._dimension
        self._state = EngineState.INDEXED

    def _build_metadata(self, document: Document) -> SearchResultMetadata:
        metadata = SearchResultMetadata(
            source=document.source,
            node_index=document.node_index,
            xpath=document.xpath,
            tag_name=document.tag_name,
            bookmark=document.bookmark,
        )
        entry = self._bookmarks.get(document.bookmark)
        if entry is not None:
            metadata.title = entry.title
            metadata.page_number = entry.page_number
        return metadata

    @staticmethod
    def _deduplicate(
        documents: Sequence[Document],
        report: IndexingReport,
    ) -> List[Document]:
        """Last write wins; the surviving document keeps its first position."""
        by_id: Dict[str, Document] = {}
        for document in documents:
            if document.id in by_id and document.id not in report.duplicate_ids:
                report.duplicate_ids.append(document.id)
            by_id[document.id] = document

        if report.duplicate_ids:
            logger.warning(
                f"[SearchEngine] ⚠ Duplicate document ids, keeping the last of each: "
                f"{report.duplicate_ids}"
            )
        return list(by_id.values())
