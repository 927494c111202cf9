"""Repository package: expose all concrete repositories from one import."""
from .base import LAYOUTS, BaseRepository
from .item_repository import ItemRepository, normalize_item
from .score_repository import ScoreRepository
from .score_color_repository import ScoreColorRepository

__all__ = [
    'LAYOUTS',
    'BaseRepository',
    'ItemRepository',
    'normalize_item',
    'ScoreRepository',
    'ScoreColorRepository',
]
