"""Repository for ratable items (films, specials and show seasons)."""
from typing import Any, Dict, List, Optional

from ..concurrency import gather
from .base import BaseRepository

MOVIE_COLUMNS = 'id, title, is_special, year, phase, phase_order'
SHOW_COLUMNS = 'id, title, show_key, season_number, year, phase, phase_order'
ITEM_COLUMNS = 'id, title, item_type, show_key, season_number, year, phase, phase_order'

PHASE_ORDER = [('phase', True), ('phase_order', True)]

ITEM_TYPES = ('film', 'special', 'show')


def normalize_item(row: Dict[str, Any], source: str) -> Dict[str, Any]:
    """Map a backend row onto the one item shape the services work with.

    Args:
        row:    Raw row from ``movies``, ``shows`` or the unified ``items``
                table.
        source: Which of those three the row came from.

    Returns:
        ``{id, title, year, item_type, phase, phase_order, show_key,
        season_number}``; the last two are ``None`` unless ``item_type`` is
        ``'show'``.
    """
    if source == 'movies':
        item_type = 'special' if row.get('is_special') else 'film'
    elif source == 'shows':
        item_type = 'show'
    elif source == 'items':
        item_type = row.get('item_type') or 'film'
        if item_type not in ITEM_TYPES:
            raise ValueError(f"Unknown item_type {item_type!r} for item {row.get('id')}")
    else:
        raise ValueError(f"Unknown item source: {source!r}")

    is_show = item_type == 'show'
    return {
        'id': row['id'],
        'title': row.get('title') or '',
        'year': row.get('year'),
        'item_type': item_type,
        'phase': row.get('phase'),
        'phase_order': row.get('phase_order'),
        'show_key': row.get('show_key') if is_show else None,
        'season_number': row.get('season_number') if is_show else None,
    }


def phase_sort_key(item: Dict[str, Any]):
    """Sort by phase, then phase order; rows missing either sort last."""
    phase, order = item.get('phase'), item.get('phase_order')
    return (phase is None, phase or 0, order is None, order or 0)


class ItemRepository(BaseRepository):
    """Reads and edits items in either table layout."""

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_movies(self) -> List[Dict]:
        rows = self._select(self.tables['movies'], MOVIE_COLUMNS, order=PHASE_ORDER)
        return [normalize_item(r, 'movies') for r in rows]

    def list_shows(self) -> List[Dict]:
        rows = self._select(self.tables['shows'], SHOW_COLUMNS, order=PHASE_ORDER)
        return [normalize_item(r, 'shows') for r in rows]

    def list_all(self) -> List[Dict]:
        """Every item, ordered by ``(phase, phase_order)``.

        In the split layout both tables are fetched concurrently and merged.
        """
        if self.is_unified:
            rows = self._select(self.tables['items'], ITEM_COLUMNS, order=PHASE_ORDER)
            items = [normalize_item(r, 'items') for r in rows]
        else:
            movies, shows = gather(self.list_movies, self.list_shows)
            items = movies + shows
        return sorted(items, key=phase_sort_key)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_movie(self, item_id: int) -> Optional[Dict]:
        row = self._select_one(self.tables['movies'], filters=[('id', 'eq', item_id)])
        return normalize_item(row, 'movies') if row else None

    def find_show(self, item_id: int) -> Optional[Dict]:
        row = self._select_one(self.tables['shows'], filters=[('id', 'eq', item_id)])
        return normalize_item(row, 'shows') if row else None

    def find_unified(self, item_id: int) -> Optional[Dict]:
        row = self._select_one(self.tables['items'], filters=[('id', 'eq', item_id)])
        return normalize_item(row, 'items') if row else None

    def find(self, item_id: int) -> Optional[Dict]:
        """Return the item with *item_id*, or ``None``.

        The split layout has no kind-agnostic lookup: movies/specials are
        probed first, then shows.
        """
        if self.is_unified:
            return self.find_unified(item_id)
        return self.find_movie(item_id) or self.find_show(item_id)

    def find_kind(self, item_id: int, item_type: str) -> Optional[Dict]:
        """Return the item only if it exists with exactly *item_type*."""
        if self.is_unified:
            item = self.find_unified(item_id)
        elif item_type == 'show':
            item = self.find_show(item_id)
        else:
            item = self.find_movie(item_id)
        return item if item and item['item_type'] == item_type else None

    def siblings(self, show_key: str) -> List[Dict]:
        """All seasons sharing *show_key*, by season number."""
        if self.is_unified:
            table, columns, source = self.tables['items'], ITEM_COLUMNS, 'items'
        else:
            table, columns, source = self.tables['shows'], SHOW_COLUMNS, 'shows'
        rows = self._select(table, columns,
                            filters=[('show_key', 'eq', show_key)],
                            order=['season_number'])
        return [normalize_item(r, source) for r in rows]

    def search(self, pattern: str, limit: int) -> List[Dict]:
        """Items whose title matches the ``ilike`` *pattern*.

        Each kind is capped at *limit* rows and ordered by title; the caller
        merges and re-sorts.
        """
        filters = [('title', 'ilike', pattern)]
        if self.is_unified:
            rows = self._select(self.tables['items'], ITEM_COLUMNS,
                                filters=filters, order=['title'], limit=limit)
            return [normalize_item(r, 'items') for r in rows]

        def _movies():
            return self._select(self.tables['movies'], MOVIE_COLUMNS,
                                filters=filters, order=['title'], limit=limit)

        def _shows():
            return self._select(self.tables['shows'], SHOW_COLUMNS,
                                filters=filters, order=['title'], limit=limit)

        movies, shows = gather(_movies, _shows)
        return ([normalize_item(r, 'movies') for r in movies]
                + [normalize_item(r, 'shows') for r in shows])

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def table_for(self, item_type: str) -> str:
        if self.is_unified:
            return self.tables['items']
        return self.tables['shows'] if item_type == 'show' else self.tables['movies']

    def update(self, item: Dict, patch: Dict[str, Any]) -> Optional[Dict]:
        """Apply *patch* (e.g. ``title``/``year``) to *item*'s row.

        Returns:
            The updated item, or ``None`` if the row no longer exists.
        """
        table = self.table_for(item['item_type'])
        row = self._store.update(table, [('id', 'eq', item['id'])], patch)
        self._log.info("Updated item %s (%s): %s", item['id'], table, sorted(patch))
        if not row:
            return None
        source = 'items' if self.is_unified else ('shows' if item['item_type'] == 'show' else 'movies')
        return normalize_item(row, source)
