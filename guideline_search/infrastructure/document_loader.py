# guideline_search/infrastructure/document_loader.py

import json
import logging
import re
from pathlib import Path
from typing import List, Union

from guideline_search.domain.models import Document


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 400
DEFAULT_CHUNK_OVERLAP = 100
# Chunks shorter than this are page furniture (running headers, page numbers)
MIN_CHUNK_LENGTH = 40

TEXT_EXTENSIONS = {".txt", ".md"}


class DocumentLoader:
    """
    Turns build-time extraction output into Documents for the indexing tool.

    - .json: the extractor's passage list, either Document records or the
      [id, document] pairs found in documents.json
    - .txt / .md: plain text split into overlapping chunks, with ids derived
      from the file name and chunk position so they are stable across runs
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ):
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size.")
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    def load(self, path: Union[str, Path]) -> List[Document]:
        path = Path(path)
        if path.is_dir():
            return self.load_directory(path)
        if not path.exists():
            raise FileNotFoundError(f"Corpus not found: {path}")
        return self.load_file(path)

    def load_directory(self, directory_path: Union[str, Path]) -> List[Document]:
        data_dir = Path(directory_path)
        if not data_dir.exists():
            raise FileNotFoundError(f"Data directory not found: {directory_path}")

        all_documents: List[Document] = []
        for file_path in sorted(data_dir.rglob("*")):
            if not file_path.is_file():
                continue
            documents = self.load_file(file_path)
            if documents:
                all_documents.extend(documents)
                logger.info(f"[DocumentLoader] Loaded {len(documents)} documents from {file_path.name}")

        logger.info(f"[DocumentLoader] Total documents loaded: {len(all_documents)}")
        return all_documents

    def load_file(self, file_path: Path) -> List[Document]:
        """Returns an empty list for unsupported file types."""
        suffix = file_path.suffix.lower()
        if suffix == ".json":
            return self._load_json_file(file_path)
        if suffix in TEXT_EXTENSIONS:
            return self._load_text_file(file_path)
        return []

    # ─── Private: File Loaders ────────────────────────────────────────────────

    def _load_json_file(self, file_path: Path) -> List[Document]:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError(f"{file_path.name}: expected a list of documents.")

        documents = []
        for position, item in enumerate(raw):
            if isinstance(item, list) and len(item) == 2:
                doc_id, data = item
                data = {**data, "id": data.get("id", doc_id)}
            else:
                data = item
            data.setdefault("source", file_path.stem)
            data.setdefault("nodeIndex", position)
            documents.append(Document.from_dict(data))
        return documents

    def _load_text_file(self, file_path: Path) -> List[Document]:
        text = file_path.read_text(encoding="utf-8", errors="ignore")
        return self._split_into_documents(self._clean_text(text), source=file_path.name)

    # ─── Private: Text Processing ─────────────────────────────────────────────

    def _split_into_documents(self, text: str, source: str) -> List[Document]:
        documents = []
        start = 0

        while start < len(text):
            chunk = text[start:start + self._chunk_size].strip()

            if len(chunk) >= MIN_CHUNK_LENGTH:
                node_index = len(documents)
                documents.append(Document(
                    id=f"{source}:{node_index}",
                    text=chunk,
                    source=source,
                    node_index=node_index,
                ))

            start += self._chunk_size - self._chunk_overlap

        return documents

    @staticmethod
    def _clean_text(text: str) -> str:
        """Normalize whitespace and drop control characters."""
        text = re.sub(r"[ \t]{2,}", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        text = re.sub(r"[\x00-\x08\x0b-\x1f\x7f]", " ", text)
        return text.strip()
