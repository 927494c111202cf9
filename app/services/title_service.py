"""Business logic for the per-title detail page and its edit form."""
import logging
from typing import Dict, Optional

from ..concurrency import gather
from ..errors import ValidationError
from . import score_codec

logger = logging.getLogger('mcu_rankings.title')

YEAR_MIN = 1900
YEAR_MAX = 3000


def validate_year(value) -> int:
    """Parse *value* as a release year in ``[1900, 3000]``.

    Raises:
        ValidationError: Not an integer, or out of range.
    """
    text = str(value).strip() if value is not None else ''
    if not (text.isascii() and text.isdigit()):
        raise ValidationError('Year must be a whole number')
    year = int(text)
    if not YEAR_MIN <= year <= YEAR_MAX:
        raise ValidationError(f'Year must be between {YEAR_MIN} and {YEAR_MAX}')
    return year


def validate_title(value) -> str:
    title = (value or '').strip()
    if not title:
        raise ValidationError('Title must not be empty')
    return title


class TitleService:
    """Loads one item with its score and sibling seasons; saves edits.

    Args:
        items:  :class:`~app.repositories.item_repository.ItemRepository`
        scores: :class:`~app.repositories.score_repository.ScoreRepository`
    """

    def __init__(self, items, scores) -> None:
        self._items = items
        self._scores = scores

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _probe(self, item_id: int):
        """Return ``(item, score)`` or ``(None, None)``.

        Each probe fetches the item and its score side by side; shows are
        only probed when the movies/specials table has no such id.
        """
        if self._items.is_unified:
            item = self._items.find_unified(item_id)
            if not item:
                return None, None
            return item, self._scores.get(item_id, item['item_type'])

        movie, movie_score = gather(
            lambda: self._items.find_movie(item_id),
            lambda: self._scores.get(item_id, 'film'),
        )
        if movie:
            return movie, movie_score
        show, show_score = gather(
            lambda: self._items.find_show(item_id),
            lambda: self._scores.get(item_id, 'show'),
        )
        if show:
            return show, show_score
        return None, None

    def load(self, item_id: int) -> Optional[Dict]:
        """Return the detail-page model for *item_id*, or ``None`` if unknown.

        The model is ``{item, score, base, modifier, siblings}``; ``siblings``
        lists every season of the same show (empty for films/specials).

        Raises:
            FetchError: A backend read failed.
        """
        item, score = self._probe(item_id)
        if not item:
            logger.info("Title %s not found", item_id)
            return None
        siblings = []
        if item['item_type'] == 'show' and item.get('show_key'):
            siblings = self._items.siblings(item['show_key'])
        base, modifier = score_codec.parse_score(score)
        return {
            'item': item,
            'score': score_codec.compose_score(base, modifier),
            'base': base,
            'modifier': modifier,
            'siblings': siblings,
            'show_season_switcher': len(siblings) > 1,
        }

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def save(self, item_id: int, title, year, base, modifier='') -> Optional[Dict]:
        """Validate and persist the edit form, then reload from the backend.

        Returns:
            The freshly loaded detail model, or ``None`` if the item vanished.

        Raises:
            ValidationError: Bad title, year or score; nothing was written.
            FetchError:      A backend call failed.
        """
        new_title = validate_title(title)
        new_year = validate_year(year)
        base = str(base or '').strip()
        if base not in score_codec.BASE_SCORE_OPTIONS:
            raise ValidationError(f'Invalid base score: {base!r}')
        if not score_codec.supports_modifier(base):
            modifier = ''
        new_score = score_codec.compose_score(base, modifier)
        if not score_codec.is_valid_score(new_score):
            raise ValidationError(f'Invalid score: {new_score!r}')

        item = self._items.find(item_id)
        if not item:
            return None
        self._items.update(item, {'title': new_title, 'year': new_year})
        self._scores.upsert(item['id'], item['item_type'], new_score)
        logger.info("Saved title %s: %r (%d) = %s", item_id, new_title, new_year, new_score)
        return self.load(item_id)
