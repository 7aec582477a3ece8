"""Persistent storage."""

from .store import (
    KeyValueStore,
    MemoryStore,
    JsonFileStore,
    StoreError,
    MODEL_KEY,
    PROMPT_KEY,
    CUSTOM_PROMPT_KEY,
    HISTORY_KEY,
    THEME_KEY,
)

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "StoreError",
    "MODEL_KEY",
    "PROMPT_KEY",
    "CUSTOM_PROMPT_KEY",
    "HISTORY_KEY",
    "THEME_KEY",
]
