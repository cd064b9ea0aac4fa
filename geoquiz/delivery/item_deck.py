"""
Item Deck - loads the quizzable item pools.

Reads ``cities.json`` and ``roads.json`` from the data directory. Each
file is either a GeoJSON FeatureCollection (feature properties are the
record) or a plain JSON list of records.

Features:
- City ids fall back to the ``identificatie`` property
- Aliases are normalized once at load time
- Invalid records are skipped, a missing or corrupt file is an empty pool
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from geoquiz.core.modes import City, GameModeAdapter, Road, get_mode
from geoquiz.quiz.answers import normalize_answer

# =============================================================================
# Record Extraction
# =============================================================================


def extract_records(data: Any) -> list[dict[str, Any]]:
    """Pull record dicts out of a FeatureCollection or a plain list."""
    if isinstance(data, dict):
        features = data.get("features", [])
        return [
            dict(f.get("properties") or {})
            for f in features
            if isinstance(f, dict)
        ]
    if isinstance(data, list):
        return [dict(r) for r in data if isinstance(r, dict)]
    return []


def prepare_record(record: dict[str, Any]) -> dict[str, Any]:
    """Fill in the id and normalize aliases."""
    if record.get("id") is None and record.get("identificatie") is not None:
        record["id"] = record["identificatie"]
    if record.get("id") is not None:
        record["id"] = str(record["id"])
    record["aliases"] = [
        normalize_answer(a) for a in record.get("aliases") or [] if isinstance(a, str)
    ]
    return record


# =============================================================================
# Item Deck
# =============================================================================


class ItemDeck:
    """
    Item pools for every game mode.

    Pools are loaded lazily on first access and cached.
    """

    DEFAULT_DATA_DIR = Path("data")
    FILES = {
        "city-quiz": "cities.json",
        "road-quiz": "roads.json",
    }

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize the item deck.

        Args:
            data_dir: Directory containing cities.json and roads.json (default: data/)
        """
        self.data_dir = Path(data_dir) if data_dir else self.DEFAULT_DATA_DIR
        self._pools: dict[str, list[Any]] = {}
        self._skipped: dict[str, int] = {}

    @property
    def cities(self) -> list[City]:
        return self.items("city-quiz")

    @property
    def roads(self) -> list[Road]:
        return self.items("road-quiz")

    def skipped(self, mode_id: str) -> int:
        """Number of invalid records dropped while loading a pool."""
        return self._skipped.get(mode_id, 0)

    def items(self, mode_id: str) -> list[Any]:
        """Item pool for a game mode."""
        if mode_id not in self._pools:
            self._pools[mode_id] = self._load(get_mode(mode_id))
        return list(self._pools[mode_id])

    def find(self, mode_id: str, item_id: str) -> Any | None:
        for item in self.items(mode_id):
            if item.id == item_id:
                return item
        return None

    def _load(self, mode: GameModeAdapter) -> list[Any]:
        path = self.data_dir / self.FILES[mode.id]
        if not path.exists():
            logger.warning(f"No item file found at {path}")
            return []

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load {path}: {e}")
            return []

        items = []
        seen: set[str] = set()
        skipped = 0
        for record in extract_records(data):
            try:
                item = mode.parse_item(prepare_record(record))
            except ValidationError as e:
                skipped += 1
                logger.warning(f"Skipping invalid record in {path.name}: {e.error_count()} error(s)")
                continue
            if item.id in seen:
                skipped += 1
                logger.warning(f"Skipping duplicate id {item.id!r} in {path.name}")
                continue
            seen.add(item.id)
            items.append(item)

        self._skipped[mode.id] = skipped
        logger.info(f"ItemDeck loaded: {len(items)} items from {path} ({skipped} skipped)")
        return items
