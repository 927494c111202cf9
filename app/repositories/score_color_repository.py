"""Repository for the read-only ``score_colors`` reference table."""
from typing import Dict, List

from .base import SCORE_COLORS_TABLE, BaseRepository


class ScoreColorRepository(BaseRepository):
    """Reads score colour rows.

    Schema::

        {
            "score":           <token>,
            "hex_color_light": "#RRGGBB",
            "hex_color_dark":  "#RRGGBB",
            "color_name":      "white" | "yellow" | ...
        }
    """

    def all(self) -> List[Dict]:
        return self._select(SCORE_COLORS_TABLE)
