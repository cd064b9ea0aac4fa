"""
GeoQuiz delivery layer.

Components:
- BlobStorage backends: JSON files, SQLite, memory
- ProgressStore: persisted mastery records
- AliasStore: custom accepted names
- ItemDeck: item pool loading
- Transfer: export files and import sources
- quiz_cli: terminal interface
"""

from .alias_store import AliasStore
from .item_deck import ItemDeck
from .progress_store import ProgressStore
from .storage import JsonFileStorage, MemoryStorage, SqliteBlobStorage, create_storage

__all__ = [
    # Persistence
    "JsonFileStorage",
    "MemoryStorage",
    "SqliteBlobStorage",
    "create_storage",
    # Stores
    "ProgressStore",
    "AliasStore",
    # Items
    "ItemDeck",
]
