"""Score tokens: parsing, composing and the editing rules built on them.

A token is a base grade ``0``-``11`` optionally followed by a ``+`` or ``-``
modifier.  Only bases ``1``-``9`` may carry a modifier; ``0``, ``10`` and
``11`` are terminal grades.

Examples::

    >>> parse_score('7+')
    ('7', '+')
    >>> parse_score('garbage')
    ('5', '')
    >>> compose_score('7', '-')
    '7-'
"""
import re
from typing import List, Optional, Tuple

DEFAULT_BASE = '5'
DEFAULT_SCORE = DEFAULT_BASE

MIN_BASE = 0
MAX_BASE = 11
TERMINAL_BASES = ('0', '10', '11')

_SCORE_RE = re.compile(r'^(\d{1,2})([+-])?$')

# Order a modifier moves through on repeated toggles.
_MODIFIER_CYCLE = {'': '+', '+': '-', '-': ''}

BASE_SCORE_OPTIONS: List[str] = [str(i) for i in range(MIN_BASE, MAX_BASE + 1)]


def _build_score_options() -> List[str]:
    options = ['0']
    for i in range(1, 10):
        options.extend([f'{i}-', f'{i}', f'{i}+'])
    options.extend(['10', '11'])
    return options


# Every token a user can end up with, lowest to highest.
SCORE_OPTIONS: List[str] = _build_score_options()


def parse_score(token: Optional[str]) -> Tuple[str, str]:
    """Split *token* into ``(base, modifier)``.

    Missing or malformed tokens are repaired to the default ``('5', '')``
    instead of raising, so a bad row never blocks rendering.
    """
    if not token:
        return DEFAULT_BASE, ''
    match = _SCORE_RE.match(str(token))
    if not match:
        return DEFAULT_BASE, ''
    return match.group(1), match.group(2) or ''


def compose_score(base: str, modifier: Optional[str] = '') -> str:
    """Join *base* and *modifier* back into a token."""
    return f'{base}{modifier or ""}'


def supports_modifier(base) -> bool:
    """Return True iff *base* is an integer grade between 1 and 9."""
    try:
        n = int(base)
    except (TypeError, ValueError):
        return False
    return 1 <= n <= 9


def is_terminal_grade(base) -> bool:
    """Bases 0, 10 and 11 have no shading and render as a solid row."""
    return str(base) in TERMINAL_BASES


def next_modifier(current: str, base=None) -> str:
    """Advance *current* one step along ``'' -> '+' -> '-' -> ''``.

    When *base* is given and cannot carry a modifier the result is always
    ``''``.
    """
    if base is not None and not supports_modifier(base):
        return ''
    return _MODIFIER_CYCLE.get(current or '', '')


def is_valid_score(token: Optional[str]) -> bool:
    """True for tokens a user is allowed to store."""
    if not token:
        return False
    match = _SCORE_RE.match(str(token))
    if not match:
        return False
    base, modifier = match.group(1), match.group(2) or ''
    if str(int(base)) != base or not MIN_BASE <= int(base) <= MAX_BASE:
        return False
    return not modifier or supports_modifier(base)


def change_base(token: Optional[str], new_base: str) -> str:
    """Return the token after picking *new_base* in the base selector.

    The current modifier is kept only when the new base supports one.
    """
    _, modifier = parse_score(token)
    if not supports_modifier(new_base):
        modifier = ''
    return compose_score(new_base, modifier)


def toggle_modifier(token: Optional[str]) -> str:
    """Return the token after one press of the modifier button."""
    base, modifier = parse_score(token)
    return compose_score(base, next_modifier(modifier, base))
