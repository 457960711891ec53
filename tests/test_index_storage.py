# tests/test_index_storage.py

import json
import logging
from pathlib import Path

import pytest

from guideline_search.domain.errors import IndexCorruptedError, IndexNotFoundError
from guideline_search.domain.models import DistanceFunction, Document, IndexMetadata
from guideline_search.infrastructure.document_store import DocumentStore
from guideline_search.infrastructure.index_storage import (
    BundledIndexStorage,
    FileSystemIndexStorage,
    INDEX_DIRECTORY_NAME,
    METADATA_FILENAME,
    PREVIOUS_DIRECTORY,
    PersistedIndex,
    VECTORS_FILENAME,
)
from guideline_search.infrastructure.vector_index import FlatVectorIndex

from conftest import write_bookmarks


def _persisted(model_name: str = "modelA", count: int = 3) -> PersistedIndex:
    index = FlatVectorIndex(DistanceFunction.COSINE)
    documents = DocumentStore()
    for i in range(count):
        vector = [0.0] * count
        vector[i] = 1.0
        index.add(f"d{i}", vector)
        documents.put(Document(id=f"d{i}", text=f"passage {i}", source="manual", node_index=i))
    metadata = IndexMetadata(
        dimension=count,
        document_count=count,
        space="cosine",
        model_name=model_name,
    )
    return PersistedIndex(metadata=metadata, index=index, documents=documents)


# ── Save / load ───────────────────────────────────────────────────────────────

def test_save_then_load_round_trip(db_path):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted())

    loaded = FileSystemIndexStorage(db_path).load(model_name="modelA")

    assert loaded.metadata.document_count == 3
    assert loaded.index.ids == ["d0", "d1", "d2"]
    assert loaded.documents.get("d1").text == "passage 1"
    assert loaded.index.query([0.0, 1.0, 0.0], k=1) == ["d1"]


def test_metadata_file_format(db_path):
    FileSystemIndexStorage(db_path).save(_persisted())

    raw = json.loads(
        (Path(db_path) / INDEX_DIRECTORY_NAME / METADATA_FILENAME).read_text()
    )
    assert raw == {"dimension": 3, "numElements": 3, "space": "cosine", "modelName": "modelA"}


def test_save_replaces_previous_index_in_full(db_path):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted(count=3))
    storage.save(_persisted(count=2))

    loaded = storage.load()
    assert loaded.index.ids == ["d0", "d1"]
    assert not (Path(db_path) / PREVIOUS_DIRECTORY).exists()
    assert [p.name for p in Path(db_path).iterdir()] == [INDEX_DIRECTORY_NAME]


def test_failed_save_keeps_current_index(db_path, monkeypatch):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted(count=3))

    def broken_write(path, data, indent=None):
        raise OSError("disk full")

    monkeypatch.setattr(FileSystemIndexStorage, "_write_json", staticmethod(broken_write))
    with pytest.raises(OSError):
        storage.save(_persisted(count=2))

    monkeypatch.undo()
    assert storage.load().index.ids == ["d0", "d1", "d2"]
    assert [p.name for p in Path(db_path).iterdir()] == [INDEX_DIRECTORY_NAME]


def test_interrupted_swap_falls_back_to_previous(db_path):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted(count=3))
    (Path(db_path) / INDEX_DIRECTORY_NAME).rename(Path(db_path) / PREVIOUS_DIRECTORY)

    assert storage.exists()
    assert len(storage.load().documents) == 3


# ── Failure modes ─────────────────────────────────────────────────────────────

def test_missing_assets_raise_index_not_found(db_path):
    with pytest.raises(IndexNotFoundError, match="index documents first"):
        FileSystemIndexStorage(db_path).load()


def test_partial_asset_set_counts_as_missing(db_path):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted())
    (Path(db_path) / INDEX_DIRECTORY_NAME / VECTORS_FILENAME).unlink()

    assert storage.exists() is False
    with pytest.raises(IndexNotFoundError):
        storage.load()


def test_model_mismatch_warns_but_loads(db_path, caplog):
    FileSystemIndexStorage(db_path).save(_persisted(model_name="modelA"))

    with caplog.at_level(logging.WARNING):
        loaded = FileSystemIndexStorage(db_path).load(model_name="modelB")

    assert len(loaded.documents) == 3
    assert "Model mismatch" in caplog.text
    assert "modelA" in caplog.text


def test_corrupt_vectors_raise_index_corrupted(db_path):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted())
    (Path(db_path) / INDEX_DIRECTORY_NAME / VECTORS_FILENAME).write_text("{not json")

    with pytest.raises(IndexCorruptedError):
        storage.load()


@pytest.mark.parametrize("content", [
    [],
    {"dimension": None, "numElements": 3, "space": "cosine", "modelName": "modelA"},
])
def test_wrong_shape_metadata_raises_index_corrupted(db_path, content):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted())
    (Path(db_path) / INDEX_DIRECTORY_NAME / METADATA_FILENAME).write_text(json.dumps(content))

    with pytest.raises(IndexCorruptedError, match="malformed"):
        storage.load()


def test_read_metadata_ignores_wrong_shape_metadata(db_path, caplog):
    storage = FileSystemIndexStorage(db_path)
    storage.save(_persisted())
    (Path(db_path) / INDEX_DIRECTORY_NAME / METADATA_FILENAME).write_text("[]")

    with caplog.at_level(logging.WARNING):
        assert storage.read_metadata() is None
    assert "unreadable metadata" in caplog.text


def test_read_metadata_without_index_returns_none(db_path):
    assert FileSystemIndexStorage(db_path).read_metadata() is None


# ── Bookmarks ─────────────────────────────────────────────────────────────────

def test_load_bookmarks(db_path):
    write_bookmarks(db_path, [{"title": "Airway", "page_number": 42, "bookmark_id": "B1"}])

    entries = FileSystemIndexStorage(db_path).load_bookmarks()

    assert len(entries) == 1
    assert entries[0].bookmark_id == "B1"
    assert entries[0].page_number == 42


def test_missing_bookmark_file_gives_empty_mapping(db_path):
    assert FileSystemIndexStorage(db_path).load_bookmarks() == []


def test_malformed_bookmark_file_warns(db_path, caplog):
    write_bookmarks(db_path, [{"title": "No id"}])

    with caplog.at_level(logging.WARNING):
        entries = FileSystemIndexStorage(db_path).load_bookmarks()

    assert entries == []
    assert "Could not load bookmark mapping" in caplog.text


# ── Bundled (read-only) backend ───────────────────────────────────────────────

def test_bundled_storage_reads_assets(db_path):
    FileSystemIndexStorage(db_path).save(_persisted())

    loaded = BundledIndexStorage(db_path).load()
    assert len(loaded.documents) == 3


def test_bundled_storage_save_is_noop(tmp_path):
    root = tmp_path / "assets"
    BundledIndexStorage(root).save(_persisted())

    assert not root.exists()
