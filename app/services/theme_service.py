"""Light/dark theme preference, kept beside the session state."""
from typing import MutableMapping

_KEY = 'dark_mode'


class ThemeContext:
    """Dark-mode flag stored in *store*; :meth:`toggle` is the only writer."""

    def __init__(self, store: MutableMapping, default_dark: bool = False) -> None:
        self._store = store
        self._default = default_dark

    @property
    def is_dark(self) -> bool:
        return bool(self._store.get(_KEY, self._default))

    @property
    def name(self) -> str:
        return 'dark' if self.is_dark else 'light'

    def toggle(self) -> bool:
        self._store[_KEY] = not self.is_dark
        return self.is_dark
