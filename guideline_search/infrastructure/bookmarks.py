# guideline_search/infrastructure/bookmarks.py

from typing import Dict, Iterable, List, Optional

from guideline_search.domain.models import BookmarkEntry


class BookmarkMapping:
    """
    Read-only bookmark_id → {title, page_number} table, extracted from the
    manual's section headers at build time and loaded once.
    """

    def __init__(self, entries: Iterable[BookmarkEntry] = ()):
        self._entries: Dict[str, BookmarkEntry] = {
            entry.bookmark_id: entry for entry in entries
        }

    def get(self, bookmark_id: Optional[str]) -> Optional[BookmarkEntry]:
        if not bookmark_id:
            return None
        return self._entries.get(bookmark_id)

    def table_of_contents(self) -> List[BookmarkEntry]:
        """All entries ordered by page, then title."""
        return sorted(
            self._entries.values(),
            key=lambda entry: (entry.page_number, entry.title),
        )

    def __len__(self) -> int:
        return len(self._entries)
