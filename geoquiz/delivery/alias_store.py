"""
User-defined answer aliases.

Players can register extra accepted names for an item (a local
nickname, an old spelling). Aliases are kept per item id and persisted
as one JSON blob.
"""

from __future__ import annotations

import json
import sqlite3

from loguru import logger

from geoquiz.delivery.storage import BlobStorage

DEFAULT_ALIASES_KEY = "nl_quiz_custom_aliases"

CustomAliasMap = dict[str, list[str]]


class AliasStore:
    """Persisted map of item id -> extra accepted names."""

    def __init__(self, storage: BlobStorage, storage_key: str = DEFAULT_ALIASES_KEY):
        self.storage = storage
        self.storage_key = storage_key
        self._aliases: CustomAliasMap = {}

    def load(self) -> CustomAliasMap:
        """Read persisted aliases; corrupt or missing data yields an empty map."""
        self._aliases = {}
        try:
            blob = self.storage.get_blob(self.storage_key)
            raw = json.loads(blob) if blob else {}
        except (OSError, sqlite3.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load custom aliases: {e}")
            return self.aliases

        if not isinstance(raw, dict):
            logger.warning("Stored aliases are malformed, starting empty")
            return self.aliases

        for item_id, names in raw.items():
            if isinstance(item_id, str) and isinstance(names, list):
                kept = [n for n in names if isinstance(n, str) and n.strip()]
                if kept:
                    self._aliases[item_id] = kept
        return self.aliases

    def save(self) -> None:
        try:
            self.storage.set_blob(self.storage_key, json.dumps(self._aliases, ensure_ascii=False))
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Failed to save custom aliases: {e}")

    @property
    def aliases(self) -> CustomAliasMap:
        return {item_id: list(names) for item_id, names in self._aliases.items()}

    def aliases_for(self, item_id: str) -> list[str]:
        return list(self._aliases.get(item_id, []))

    def add_alias(self, item_id: str, alias: str) -> bool:
        """
        Add an alias.

        Blank aliases and case-insensitive duplicates are ignored.

        Returns:
            True if the alias was added
        """
        trimmed = alias.strip()
        if not trimmed:
            return False

        current = self._aliases.get(item_id, [])
        if any(a.lower() == trimmed.lower() for a in current):
            return False

        self._aliases[item_id] = [*current, trimmed]
        self.save()
        return True

    def remove_alias(self, item_id: str, alias: str) -> bool:
        """Remove an alias; an item left without aliases is dropped entirely."""
        current = self._aliases.get(item_id, [])
        remaining = [a for a in current if a != alias]
        if len(remaining) == len(current):
            return False

        if remaining:
            self._aliases[item_id] = remaining
        else:
            del self._aliases[item_id]
        self.save()
        return True
