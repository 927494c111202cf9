"""Case-insensitive title search across every item kind."""
import logging
from typing import Dict, List, Optional

from .catalog_service import display_title

logger = logging.getLogger('mcu_rankings.search')

MIN_QUERY_LENGTH = 2
RESULT_LIMIT = 8


def escape_like(text: str) -> str:
    """Escape ``ilike`` wildcards so user input matches literally."""
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def is_searchable(query: Optional[str]) -> bool:
    return bool(query) and len(query.strip()) >= MIN_QUERY_LENGTH


class SearchService:
    """Case-insensitive substring search over every item title.

    Args:
        items: :class:`~app.repositories.item_repository.ItemRepository`
        limit: Maximum rows per kind and in the merged result.
    """

    def __init__(self, items, limit: int = RESULT_LIMIT) -> None:
        self._items = items
        self._limit = limit

    def search(self, query: Optional[str]) -> List[Dict]:
        """Return up to *limit* matches sorted by title.

        Queries shorter than two characters return ``[]`` without touching
        the backend.

        Raises:
            FetchError: The backend query failed.
        """
        if not is_searchable(query):
            return []
        pattern = f'%{escape_like(query.strip())}%'
        rows = self._items.search(pattern, self._limit)
        rows.sort(key=lambda r: r['title'].casefold())
        results = [dict(r, display_title=display_title(r)) for r in rows[:self._limit]]
        logger.debug("Search %r: %d results", query, len(results))
        return results
