"""Repository base class used by all concrete repositories."""
import logging
from typing import Any, Dict, Iterable, List, Optional

# Table names for each backend layout.  ``split`` keeps movies/specials and
# shows apart; ``unified`` is the older single ``mcu_items`` table.
LAYOUTS: Dict[str, Dict[str, Optional[str]]] = {
    'split': {
        'movies': 'mcu_movies_specials',
        'shows': 'mcu_shows',
        'movie_scores': 'mcu_movie_special_rankings',
        'show_scores': 'mcu_show_rankings',
    },
    'unified': {
        'items': 'mcu_items',
        'item_scores': 'mcu_item_rankings',
    },
}

SCORE_COLORS_TABLE = 'score_colors'


class BaseRepository:
    """Holds the persistence adapter and the configured table layout.

    The adapter is anything exposing ``select`` / ``upsert`` / ``update``
    (:class:`supabase_client.SupabaseClient` or :class:`database.SQLStore`).
    Adapter errors propagate unchanged to the caller.
    """

    def __init__(self, store, layout: str = 'split') -> None:
        if layout not in LAYOUTS:
            raise ValueError(f"Unknown schema layout: {layout!r}")
        self._store = store
        self.layout = layout
        self.tables = LAYOUTS[layout]
        self._log = logging.getLogger(f'mcu_rankings.repository.{type(self).__name__}')

    @property
    def is_unified(self) -> bool:
        return self.layout == 'unified'

    def _select(self, table: str, columns: str = '*',
                filters: Optional[Iterable] = None, order=None,
                limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._store.select(table, columns, filters=filters, order=order, limit=limit)

    def _select_one(self, table: str, columns: str = '*',
                    filters: Optional[Iterable] = None) -> Optional[Dict[str, Any]]:
        """Return the single matching row, or ``None`` when there is none."""
        rows = self._select(table, columns, filters=filters, limit=1)
        return rows[0] if rows else None
