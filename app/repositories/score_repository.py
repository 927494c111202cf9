"""Repository for per-item score rows ({item_id, score, updated_at})."""
import datetime
from typing import Dict

from ..concurrency import gather
from ..services.score_codec import DEFAULT_SCORE
from .base import BaseRepository


class ScoreRepository(BaseRepository):
    """Reads and upserts score tokens.

    Schema::

        {
            "item_id":    <int, unique>,
            "score":      <token, e.g. "7+">,
            "updated_at": <ISO-8601 str>
        }

    Items without a row score :data:`DEFAULT_SCORE`.
    """

    CONFLICT_KEY = 'item_id'

    def table_for(self, item_type: str) -> str:
        if self.is_unified:
            return self.tables['item_scores']
        return self.tables['show_scores'] if item_type == 'show' else self.tables['movie_scores']

    def load_all(self) -> Dict[str, Dict[int, str]]:
        """Return ``{table_name: {item_id: score}}`` for every score table.

        The split layout's two tables are read concurrently.
        """
        tables = list(dict.fromkeys(
            [self.table_for('film'), self.table_for('show')]
        ))
        results = gather(*[
            (lambda t=t: self._select(t, 'item_id, score', order=['item_id']))
            for t in tables
        ])
        return {
            table: {row['item_id']: row['score'] for row in rows}
            for table, rows in zip(tables, results)
        }

    def lookup(self, book: Dict[str, Dict[int, str]], item: Dict) -> str:
        """Score for *item* from a :meth:`load_all` result, default ``'5'``."""
        scores = book.get(self.table_for(item['item_type']), {})
        return scores.get(item['id']) or DEFAULT_SCORE

    def get(self, item_id: int, item_type: str) -> str:
        row = self._select_one(self.table_for(item_type), 'item_id, score',
                               filters=[(self.CONFLICT_KEY, 'eq', item_id)])
        return (row or {}).get('score') or DEFAULT_SCORE

    def upsert(self, item_id: int, item_type: str, score: str) -> None:
        """Insert or replace the score for *item_id* (keyed on ``item_id``)."""
        table = self.table_for(item_type)
        self._store.upsert(table, {
            'item_id': item_id,
            'score': score,
            'updated_at': datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }, on_conflict=self.CONFLICT_KEY)
        self._log.info("Score for item %s set to %s (%s)", item_id, score, table)
