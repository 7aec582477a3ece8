"""Display preferences kept in the store."""

import structlog

from ..storage.store import KeyValueStore, THEME_KEY


logger = structlog.get_logger()


THEMES = ("light", "dark")
DEFAULT_THEME = "light"


async def get_theme(store: KeyValueStore) -> str:
    """Stored theme, or the default when unset or unrecognized."""
    try:
        saved = await store.get(THEME_KEY)
    except Exception as e:
        logger.error("Failed to load theme from store", error=str(e))
        return DEFAULT_THEME
    return saved if saved in THEMES else DEFAULT_THEME


async def set_theme(store: KeyValueStore, theme: str) -> str:
    if theme not in THEMES:
        raise ValueError(f"Unknown theme: {theme}")
    try:
        await store.set(THEME_KEY, theme)
    except Exception as e:
        logger.error("Failed to save theme to store", error=str(e))
    return theme


async def toggle_theme(store: KeyValueStore) -> str:
    current = await get_theme(store)
    return await set_theme(store, "dark" if current == "light" else "light")
