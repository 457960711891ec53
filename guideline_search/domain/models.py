# guideline_search/domain/models.py

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


# Characters of passage text used as a label when a hit has no bookmark title
SECTION_LABEL_LENGTH = 100


class DistanceFunction(str, Enum):
    """
    Metric used by the vector index. The value is the name written to
    index.json; `space` is the short form written to metadata.json.
    """
    COSINE = "cosineSimilarity"
    EUCLIDEAN = "euclideanDistance"

    @property
    def space(self) -> str:
        return "l2" if self is DistanceFunction.EUCLIDEAN else "cosine"

    @property
    def higher_is_better(self) -> bool:
        return self is DistanceFunction.COSINE

    @classmethod
    def from_space(cls, space: str) -> "DistanceFunction":
        """Accepts either the metadata short form or the index long form."""
        if space in ("l2", "euclidean", cls.EUCLIDEAN.value):
            return cls.EUCLIDEAN
        if space in ("cosine", cls.COSINE.value):
            return cls.COSINE
        raise ValueError(
            f"Unsupported distance space '{space}'. Use 'cosine' or 'l2'."
        )


class IndexingErrorPolicy(str, Enum):
    """What index_documents() does when a single document fails to embed."""
    ABORT = "abort"
    SKIP = "skip"


@dataclass
class Document:
    """
    A single searchable passage extracted from the source manual.
    Serialized with the camelCase keys used by the extraction output.
    """
    id: str
    text: str
    source: str
    node_index: int = 0
    xpath: Optional[str] = None
    tag_name: Optional[str] = None
    bookmark: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "text": self.text,
            "source": self.source,
            "nodeIndex": self.node_index,
        }
        if self.xpath is not None:
            data["xpath"] = self.xpath
        if self.tag_name is not None:
            data["tagName"] = self.tag_name
        if self.bookmark is not None:
            data["bookmark"] = self.bookmark
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            id=str(data["id"]),
            text=data["text"],
            source=data.get("source", "unknown"),
            node_index=int(data.get("nodeIndex", data.get("node_index", 0))),
            xpath=data.get("xpath"),
            tag_name=data.get("tagName", data.get("tag_name")),
            bookmark=data.get("bookmark"),
        )


@dataclass(frozen=True)
class BookmarkEntry:
    bookmark_id: str
    title: str
    page_number: int

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "page_number": self.page_number,
            "bookmark_id": self.bookmark_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookmarkEntry":
        return cls(
            bookmark_id=str(data["bookmark_id"]),
            title=data["title"],
            page_number=int(data["page_number"]),
        )


@dataclass(frozen=True)
class VectorHit:
    """Raw index hit: the stored id and the metric value against the query."""
    id: str
    distance: float


@dataclass
class SearchResultMetadata:
    source: str
    node_index: int
    xpath: Optional[str] = None
    tag_name: Optional[str] = None
    bookmark: Optional[str] = None
    title: Optional[str] = None
    page_number: Optional[int] = None


@dataclass
class SearchResult:
    """
    Represents a ranked search result returned to the caller.
    `score` is always higher-is-better, whatever metric produced `distance`.
    """
    id: str
    text: str
    metadata: SearchResultMetadata
    distance: float
    score: float

    @property
    def section(self) -> str:
        """Bookmark title when known, otherwise the start of the passage."""
        return self.metadata.title or self.text[:SECTION_LABEL_LENGTH]

    def __repr__(self) -> str:
        preview = self.text[:80].replace("\n", " ")
        return (
            f"SearchResult(id='{self.id}', score={self.score:.4f}, "
            f"source='{self.metadata.source}', "
            f"preview='{preview}...')"
        )


@dataclass
class IndexMetadata:
    dimension: int
    document_count: int
    space: str
    model_name: str

    def to_dict(self) -> dict:
        return {
            "dimension": self.dimension,
            "numElements": self.document_count,
            "space": self.space,
            "modelName": self.model_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IndexMetadata":
        return cls(
            dimension=int(data.get("dimension", 0)),
            document_count=int(data.get("numElements", data.get("documentCount", 0))),
            space=data.get("space", data.get("distanceFunction", "cosine")),
            model_name=data.get("modelName", ""),
        )


@dataclass(frozen=True)
class EngineStats:
    document_count: int
    dimension: int
    model_name: str
    db_path: str


@dataclass
class IndexingReport:
    indexed_count: int = 0
    skipped_ids: List[str] = field(default_factory=list)
    duplicate_ids: List[str] = field(default_factory=list)
