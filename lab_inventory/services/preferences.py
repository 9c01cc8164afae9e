from __future__ import annotations

from typing import Literal, cast

from ..db.store import THEME_KEY, KeyValueStore

Theme = Literal["light", "dark"]
THEMES: tuple[str, ...] = ("light", "dark")
DEFAULT_THEME: Theme = "light"


def load_theme(store: KeyValueStore) -> Theme:
    stored = store.get(THEME_KEY)
    return cast(Theme, stored) if stored in THEMES else DEFAULT_THEME


def save_theme(store: KeyValueStore, theme: Theme) -> Theme:
    if theme not in THEMES:
        raise ValueError(f"Unsupported theme: {theme}")
    store.set(THEME_KEY, theme)
    return theme
