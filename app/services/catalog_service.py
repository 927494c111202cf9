"""Business logic for the phase-grouped catalog of ratable items."""
import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..errors import NotFoundError, ValidationError
from . import score_codec
from .score_colors import ScoreColors

logger = logging.getLogger('mcu_rankings.catalog')


def season_counts(items: List[Dict]) -> Dict[str, int]:
    """Return ``{show_key: number of season rows}`` for the show items."""
    counts: Dict[str, int] = {}
    for item in items:
        if item.get('item_type') == 'show' and item.get('show_key'):
            counts[item['show_key']] = counts.get(item['show_key'], 0) + 1
    return counts


def display_title(item: Dict, counts: Optional[Dict[str, int]] = None) -> str:
    """Title as shown in lists.

    Shows get a season suffix (``"Loki (S2)"``) only when their show key has
    more than one season; without *counts* every numbered season gets one.
    """
    if item.get('item_type') != 'show' or not item.get('season_number'):
        return item['title']
    if counts is not None and counts.get(item.get('show_key'), 0) <= 1:
        return item['title']
    return f"{item['title']} (S{item['season_number']})"


def group_by_phase(items: List[Dict]) -> List[Tuple[int, List[Dict]]]:
    """Bucket *items* by phase.

    Buckets come back by ascending phase; items inside a bucket by phase
    order.
    """
    buckets: Dict[int, List[Dict]] = {}
    for item in items:
        buckets.setdefault(item.get('phase'), []).append(item)
    ordered = sorted(buckets, key=lambda p: (p is None, p or 0))
    return [
        (phase, sorted(buckets[phase], key=lambda i: (i.get('phase_order') is None,
                                                      i.get('phase_order') or 0)))
        for phase in ordered
    ]


def filter_by_year(items: List[Dict], year) -> List[Dict]:
    if year in (None, ''):
        return list(items)
    return [i for i in items if str(i.get('year')) == str(year)]


class _CatalogState:
    """Loaded list and colours, shared by every binding of one catalog."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.rankings: List[Dict] = []
        self.colors = ScoreColors()
        self.loaded = False


class CatalogService:
    """Loads the scored catalog and applies score edits.

    Holds the last loaded list in :attr:`rankings`; a successful score write
    patches that list in place, a failed one leaves it untouched.
    :meth:`bound_to` gives a service with other repositories (for example
    ones carrying the admin's token) over the same loaded state.

    Args:
        items:  :class:`~app.repositories.item_repository.ItemRepository`
        scores: :class:`~app.repositories.score_repository.ScoreRepository`
        colors: :class:`~app.repositories.score_color_repository.ScoreColorRepository`
    """

    def __init__(self, items, scores, colors, state: Optional[_CatalogState] = None) -> None:
        self._items = items
        self._scores = scores
        self._colors = colors
        self._state = state or _CatalogState()
        self._lock = self._state.lock

    def bound_to(self, items, scores, colors) -> 'CatalogService':
        return CatalogService(items, scores, colors, state=self._state)

    @property
    def rankings(self) -> List[Dict]:
        return self._state.rankings

    @rankings.setter
    def rankings(self, value: List[Dict]) -> None:
        self._state.rankings = value

    @property
    def colors(self) -> ScoreColors:
        return self._state.colors

    @property
    def loaded(self) -> bool:
        return self._state.loaded

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> List[Dict]:
        """Fetch colours, items and scores; return the merged scored list.

        Raises:
            FetchError: Any backend read failed.  Nothing is replaced.
        """
        colors = ScoreColors(self._colors.all())
        items = self._items.list_all()
        book = self._scores.load_all()
        scored = [dict(item, score=self._scores.lookup(book, item)) for item in items]

        with self._lock:
            self._state.colors = colors
            self._state.rankings = scored
            self._state.loaded = True
        logger.info("Catalog loaded: %d items, %d colours", len(scored), len(colors))
        return scored

    def phases(self, year=None) -> List[Tuple[int, List[Dict]]]:
        return group_by_phase(filter_by_year(self.rankings, year))

    def find(self, item_id: int, item_type: Optional[str] = None) -> Optional[Dict]:
        """Loaded item with *item_id* (and *item_type*, when given)."""
        with self._lock:
            for item in self.rankings:
                if item['id'] == item_id and item_type in (None, item['item_type']):
                    return item
        return None

    def present(self, item: Dict, counts: Dict[str, int], is_dark: bool = False) -> Dict:
        """Decorate *item* with everything a row needs to render."""
        base, modifier = score_codec.parse_score(item.get('score'))
        composed = score_codec.compose_score(base, modifier)
        return dict(
            item,
            display_title=display_title(item, counts),
            base=base,
            modifier=modifier,
            has_modifier=score_codec.supports_modifier(base),
            solid_row=score_codec.is_terminal_grade(base),
            score=composed,
            background=self.colors.background(composed, is_dark),
            text_color=self.colors.text(composed, is_dark),
        )

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def resolve(self, item_id: int, item_type: Optional[str] = None) -> Dict:
        """Fetch the item an edit targets, with its stored score.

        The kind and current score always come from the backend rows, never
        from the caller.

        Raises:
            NotFoundError:   No item has *item_id*.
            ValidationError: The item exists but is not an *item_type*.
            FetchError:      A backend read failed.
        """
        if item_type is None:
            item = self._items.find(item_id)
        else:
            item = self._items.find_kind(item_id, item_type)
            if item is None and self._items.find(item_id) is not None:
                raise ValidationError(f"Item {item_id} is not a {item_type}")
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")
        return dict(item, score=self._scores.get(item['id'], item['item_type']))

    def update_score(self, item: Dict, new_score: str) -> str:
        """Upsert *new_score* for *item*, then patch the in-memory list.

        Raises:
            ValidationError: *new_score* is not a storable token.
            FetchError:      The write failed; local state is unchanged.
        """
        if not score_codec.is_valid_score(new_score):
            raise ValidationError(f"Invalid score: {new_score!r}")
        self._scores.upsert(item['id'], item['item_type'], new_score)
        with self._lock:
            self.rankings = [
                dict(r, score=new_score) if r['id'] == item['id'] and r['item_type'] == item['item_type'] else r
                for r in self.rankings
            ]
        return new_score

    def change_base(self, item: Dict, new_base: str) -> str:
        if new_base not in score_codec.BASE_SCORE_OPTIONS:
            raise ValidationError(f"Invalid base score: {new_base!r}")
        return self.update_score(item, score_codec.change_base(item.get('score'), new_base))

    def toggle_modifier(self, item: Dict) -> str:
        base, _ = score_codec.parse_score(item.get('score'))
        if not score_codec.supports_modifier(base):
            raise ValidationError(f"Score {base} takes no modifier")
        return self.update_score(item, score_codec.toggle_modifier(item.get('score')))
