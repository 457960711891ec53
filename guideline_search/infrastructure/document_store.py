# guideline_search/infrastructure/document_store.py

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from guideline_search.domain.models import Document


logger = logging.getLogger(__name__)


class DocumentStore:
    """
    id → Document lookup, filled during indexing and read-only afterwards.
    Insertion order is preserved so documents.json is written in corpus order.
    """

    def __init__(self):
        self._documents: Dict[str, Document] = {}

    def put(self, document: Document) -> None:
        self._documents[document.id] = document

    def get(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def items(self) -> Iterator[Tuple[str, Document]]:
        return iter(self._documents.items())

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._documents

    def to_pairs(self) -> List[list]:
        """Serialize as the ordered [id, document] pair list of documents.json."""
        return [[doc_id, doc.to_dict()] for doc_id, doc in self._documents.items()]

    @classmethod
    def from_pairs(cls, pairs: List[list]) -> "DocumentStore":
        store = cls()
        for doc_id, data in pairs:
            doc_id = str(doc_id)
            if str(data.get("id", doc_id)) != doc_id:
                logger.warning(
                    f"[DocumentStore] ⚠ Entry keyed '{doc_id}' carries id "
                    f"'{data['id']}'. Using '{doc_id}'."
                )
            store._documents[doc_id] = Document.from_dict({**data, "id": doc_id})
        return store
