"""Colour lookup for score tokens in light and dark mode."""
from typing import Dict, Iterable, Optional

# Fallbacks for tokens with no reference row.
NEUTRAL_BACKGROUND_LIGHT = '#F8F9FA'
NEUTRAL_BACKGROUND_DARK = '#4A5568'
NEUTRAL_TEXT_LIGHT = '#333333'
NEUTRAL_TEXT_DARK = '#E2E8F0'
DARK_TEXT = '#1A202C'
LIGHT_TEXT = '#FFFFFF'


class ScoreColors:
    """Maps exact score tokens to background and text colours.

    Built from ``score_colors`` rows (``score``, ``hex_color_light``,
    ``hex_color_dark``, ``color_name``).  Text colour follows the colour name:
    ``white`` backgrounds get the theme's neutral text, ``yellow`` gets dark
    text for contrast, everything else gets white text.
    """

    def __init__(self, rows: Optional[Iterable[Dict]] = None) -> None:
        self._colors: Dict[str, Dict[str, str]] = {}
        for row in rows or []:
            self._colors[str(row['score'])] = {
                'light': row.get('hex_color_light'),
                'dark': row.get('hex_color_dark'),
                'name': row.get('color_name'),
            }

    def __contains__(self, token) -> bool:
        return str(token) in self._colors

    def __len__(self) -> int:
        return len(self._colors)

    def get(self, token) -> Optional[Dict[str, str]]:
        return self._colors.get(str(token))

    def background(self, token, is_dark: bool = False) -> str:
        color = self.get(token)
        if not color:
            return NEUTRAL_BACKGROUND_DARK if is_dark else NEUTRAL_BACKGROUND_LIGHT
        return color['dark'] if is_dark else color['light']

    def text(self, token, is_dark: bool = False) -> str:
        color = self.get(token)
        if not color or color['name'] == 'white':
            return NEUTRAL_TEXT_DARK if is_dark else NEUTRAL_TEXT_LIGHT
        if color['name'] == 'yellow':
            return DARK_TEXT
        return LIGHT_TEXT
