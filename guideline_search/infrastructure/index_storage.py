# guideline_search/infrastructure/index_storage.py

import json
import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from guideline_search.domain.errors import (
    IndexCorruptedError,
    IndexNotFoundError,
)
from guideline_search.domain.interfaces import IndexStoragePort
from guideline_search.domain.models import BookmarkEntry, IndexMetadata
from guideline_search.infrastructure.document_store import DocumentStore
from guideline_search.infrastructure.vector_index import FlatVectorIndex


logger = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

INDEX_DIRECTORY_NAME   = "index"
PREVIOUS_DIRECTORY     = ".index-previous"
STAGING_PREFIX         = ".index-staging-"

METADATA_FILENAME      = "metadata.json"
DOCUMENTS_FILENAME     = "documents.json"
VECTORS_FILENAME       = "index.json"
BOOKMARKS_FILENAME     = "title_page.json"

ARTIFACT_FILENAMES = (METADATA_FILENAME, DOCUMENTS_FILENAME, VECTORS_FILENAME)


@dataclass
class PersistedIndex:
    """Everything one indexing run produces: vectors, documents and run metadata."""
    metadata: IndexMetadata
    index: FlatVectorIndex
    documents: DocumentStore


class _JsonIndexStorage(IndexStoragePort):
    """
    Shared read path for both backends.

    Layout under the root directory:
        index/metadata.json   { dimension, numElements, space, modelName }
        index/documents.json  [[id, document], ...]
        index/index.json      { vectors: [{id, vector}], distanceFunction }
        title_page.json       [{ title, page_number, bookmark_id }, ...]
    """

    def __init__(self, root: Union[str, Path]):
        self._root = Path(root)

    @property
    def location(self) -> str:
        return str(self._root)

    def exists(self) -> bool:
        directory = self._index_directory()
        return directory is not None and all(
            (directory / name).is_file() for name in ARTIFACT_FILENAMES
        )

    def read_metadata(self) -> Optional[IndexMetadata]:
        directory = self._index_directory()
        if directory is None or not (directory / METADATA_FILENAME).is_file():
            return None
        try:
            return self._read_metadata(directory)
        except IndexCorruptedError as error:
            logger.warning(f"[IndexStorage] ⚠ Ignoring unreadable metadata: {error}")
            return None

    def load(self, model_name: Optional[str] = None) -> PersistedIndex:
        if not self.exists():
            raise IndexNotFoundError(self.location)

        directory = self._index_directory()
        metadata = self._read_metadata(directory)

        if model_name and metadata.model_name and metadata.model_name != model_name:
            logger.warning(
                f"[IndexStorage] ⚠ Model mismatch: index was created with "
                f"'{metadata.model_name}' but the engine uses '{model_name}'. "
                f"Scores may be meaningless. Consider reindexing."
            )

        try:
            index = FlatVectorIndex.from_dict(self._read_json(directory / VECTORS_FILENAME))
            documents = DocumentStore.from_pairs(self._read_json(directory / DOCUMENTS_FILENAME))
        except (AttributeError, KeyError, TypeError, ValueError) as error:
            raise IndexCorruptedError(
                f"Index assets in '{directory}' are inconsistent.\n"
                f"Fix: rerun the indexing tool.\n"
                f"Original error: {error}"
            ) from error

        if len(index) != len(documents):
            logger.warning(
                f"[IndexStorage] ⚠ {len(index)} vectors but {len(documents)} documents "
                f"in '{directory}'. Hits without a document will be dropped."
            )
        if index.dimension is not None and metadata.dimension != index.dimension:
            logger.warning(
                f"[IndexStorage] ⚠ Metadata declares dimension {metadata.dimension}, "
                f"vectors have {index.dimension}."
            )

        logger.info(
            f"[IndexStorage] Loaded index with {len(documents)} documents "
            f"from '{directory}'."
        )
        return PersistedIndex(metadata=metadata, index=index, documents=documents)

    def load_bookmarks(self) -> List[BookmarkEntry]:
        path = self._root / BOOKMARKS_FILENAME
        if not path.is_file():
            logger.info(f"[IndexStorage] No bookmark mapping at '{path}'.")
            return []

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return [BookmarkEntry.from_dict(item) for item in raw]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as error:
            logger.warning(
                f"[IndexStorage] ⚠ Could not load bookmark mapping from "
                f"'{path}': {error}"
            )
            return []

    # ─── Private ─────────────────────────────────────────────────────────────

    def _index_directory(self) -> Optional[Path]:
        current = self._root / INDEX_DIRECTORY_NAME
        if current.is_dir():
            return current
        return None

    def _read_metadata(self, directory: Path) -> IndexMetadata:
        path = directory / METADATA_FILENAME
        try:
            return IndexMetadata.from_dict(self._read_json(path))
        except (AttributeError, KeyError, TypeError, ValueError) as error:
            raise IndexCorruptedError(
                f"Index metadata in '{path}' is malformed.\n"
                f"Fix: rerun the indexing tool.\n"
                f"Original error: {error}"
            ) from error

    @staticmethod
    def _read_json(path: Path):
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as error:
            raise IndexCorruptedError(
                f"Could not parse '{path}'. Rerun the indexing tool.\n"
                f"Original error: {error}"
            ) from error


class FileSystemIndexStorage(_JsonIndexStorage):
    """
    Read-write backend used by the offline indexing tool.

    save() writes all artifacts into a staging directory and only then swaps
    it in for the current index directory, so readers never see a half
    written asset set.
    """

    def save(self, persisted: PersistedIndex) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        staging = self._root / f"{STAGING_PREFIX}{uuid.uuid4().hex}"
        current = self._root / INDEX_DIRECTORY_NAME
        previous = self._root / PREVIOUS_DIRECTORY

        try:
            staging.mkdir()
            self._write_json(staging / VECTORS_FILENAME, persisted.index.to_dict())
            self._write_json(staging / DOCUMENTS_FILENAME, persisted.documents.to_pairs(), indent=2)
            self._write_json(staging / METADATA_FILENAME, persisted.metadata.to_dict(), indent=2)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        if previous.exists():
            shutil.rmtree(previous)
        if current.exists():
            current.rename(previous)
        staging.rename(current)
        shutil.rmtree(previous, ignore_errors=True)

        logger.info(f"[IndexStorage] Index saved to '{current}'.")

    def _index_directory(self) -> Optional[Path]:
        directory = super()._index_directory()
        if directory is not None:
            return directory
        # Interrupted between the two renames in save(): the old set is intact
        previous = self._root / PREVIOUS_DIRECTORY
        if previous.is_dir():
            logger.warning(
                f"[IndexStorage] ⚠ Current index missing, using previous index at '{previous}'."
            )
            return previous
        return None

    @staticmethod
    def _write_json(path: Path, data, indent: Optional[int] = None) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)


class BundledIndexStorage(_JsonIndexStorage):
    """
    Read-only backend for assets shipped with the application.
    save() is a no-op: bundled assets are build output and only the offline
    indexing tool (FileSystemIndexStorage) writes them.
    """

    def save(self, persisted: PersistedIndex) -> None:
        logger.info(
            f"[IndexStorage] Bundled assets at '{self.location}' are read-only; "
            f"in-memory index with {len(persisted.documents)} documents not saved."
        )
