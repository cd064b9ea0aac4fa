"""
Per-item mastery records.

Each quizzable item has one ``ItemProgress`` record holding its level,
current streak and lifetime counters. The whole ``ProgressMap`` (item id ->
record) is the unit of persistence, import and export.

Levels:
    0            - new, never answered correctly
    1..max-1     - active, being learned
    max_level    - mastered
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

# =============================================================================
# Data Classes
# =============================================================================

# Persisted field name -> attribute name
FIELD_NAMES: dict[str, str] = {
    "level": "level",
    "streak": "streak",
    "totalCorrect": "total_correct",
    "totalWrong": "total_wrong",
    "lastSeen": "last_seen",
}


@dataclass
class LearningConfig:
    """Leveling parameters."""

    streak_threshold: int = 2  # Correct answers in a row per level
    max_level: int = 5
    dedup_window_ms: int = 1000  # Repeated events inside this window are ignored


DEFAULT_LEARNING_CONFIG = LearningConfig()


@dataclass
class ItemProgress:
    """Mastery state for a single item."""

    level: int = 0
    streak: int = 0
    total_correct: int = 0
    total_wrong: int = 0
    last_seen: int = 0  # Epoch ms, 0 = never seen

    def to_dict(self) -> dict[str, int]:
        """Convert to the persisted (camelCase) shape."""
        return {
            "level": self.level,
            "streak": self.streak,
            "totalCorrect": self.total_correct,
            "totalWrong": self.total_wrong,
            "lastSeen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemProgress:
        """Create from the persisted shape. Assumes the data was validated."""
        return cls(**{attr: int(data[key]) for key, attr in FIELD_NAMES.items()})

    def copy(self) -> ItemProgress:
        return ItemProgress(
            level=self.level,
            streak=self.streak,
            total_correct=self.total_correct,
            total_wrong=self.total_wrong,
            last_seen=self.last_seen,
        )

    def merged_with(self, incoming: ItemProgress) -> ItemProgress:
        """
        Combine two records for the same item.

        Levels, streaks and timestamps take the maximum; the lifetime
        counters are summed.
        """
        return ItemProgress(
            level=max(self.level, incoming.level),
            streak=max(self.streak, incoming.streak),
            total_correct=self.total_correct + incoming.total_correct,
            total_wrong=self.total_wrong + incoming.total_wrong,
            last_seen=max(self.last_seen, incoming.last_seen),
        )


ProgressMap = dict[str, ItemProgress]


class MasteryBucket(str, Enum):
    """Partition of items by level."""

    NEW = "new"
    ACTIVE = "active"
    MASTERED = "mastered"


def classify(entry: ItemProgress | None, max_level: int = DEFAULT_LEARNING_CONFIG.max_level) -> MasteryBucket:
    """Bucket an item by its progress record (missing record = new)."""
    if entry is None or entry.level == 0:
        return MasteryBucket.NEW
    if entry.level >= max_level:
        return MasteryBucket.MASTERED
    return MasteryBucket.ACTIVE


# =============================================================================
# Serialization & Validation
# =============================================================================


def progress_to_dict(progress: ProgressMap) -> dict[str, dict[str, int]]:
    """Serialize a progress map to plain JSON-compatible dicts."""
    return {item_id: entry.to_dict() for item_id, entry in progress.items()}


def copy_progress(progress: ProgressMap) -> ProgressMap:
    return {item_id: entry.copy() for item_id, entry in progress.items()}


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a numeric field value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def unwrap_progress_payload(data: Any) -> Any:
    """Return the map inside an export envelope, or the data itself."""
    if isinstance(data, dict) and data.get("progress") is not None:
        return data["progress"]
    return data


def validate_progress_map(raw: Any) -> tuple[ProgressMap | None, str | None]:
    """
    Structurally validate a raw (parsed JSON) progress map.

    Args:
        raw: Bare map of item id -> record dict

    Returns:
        (progress_map, None) when valid, (None, message) otherwise
    """
    if raw is None or not isinstance(raw, dict):
        return None, "Invalid progress data."

    validated: ProgressMap = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key:
            return None, "Invalid progress keys."
        if not isinstance(value, dict):
            return None, f"Invalid progress entry for '{key}'."
        missing = [name for name in FIELD_NAMES if name not in value]
        if missing:
            return None, f"Invalid progress fields for '{key}': missing {', '.join(missing)}."
        bad = [name for name in FIELD_NAMES if not _is_number(value[name])]
        if bad:
            return None, f"Invalid progress fields for '{key}': non-numeric {', '.join(bad)}."
        fractional = [name for name in FIELD_NAMES if value[name] != int(value[name])]
        if fractional:
            return None, f"Invalid progress fields for '{key}': non-integer {', '.join(fractional)}."
        validated[key] = ItemProgress.from_dict(value)

    return validated, None


# =============================================================================
# Import Results
# =============================================================================

ImportMode = Literal["replace", "merge"]


@dataclass
class ImportResult:
    """Outcome of importing progress data."""

    ok: bool
    message: str | None = None
    imported: int = 0  # Records in the accepted payload
