"""Service layer helpers (store, settings)."""

from .settings import Settings, SettingsStore
from .store import DEFAULT_STORAGE_KEY, GroupStore, JsonFileBackend, KeyValueBackend, MemoryBackend

__all__ = [
    "DEFAULT_STORAGE_KEY",
    "GroupStore",
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "Settings",
    "SettingsStore",
]
