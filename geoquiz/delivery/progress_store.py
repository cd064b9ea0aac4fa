"""
Progress Store for the quiz.

Single source of truth for per-item mastery:
- Leveling state machine driven by correct-answer streaks
- Reset, export and validated import (replace or merge)
- JSON persistence through a BlobStorage backend

Leveling rules:
- Correct: streak + 1; at streak_threshold (or on the first success of a
  new item) the level goes up by one and the streak restarts
- Wrong: streak resets to 0, the level never drops
- Events for an item seen less than dedup_window_ms ago are ignored
"""

from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from loguru import logger

from geoquiz.core.progress import (
    DEFAULT_LEARNING_CONFIG,
    ImportMode,
    ImportResult,
    ItemProgress,
    LearningConfig,
    ProgressMap,
    copy_progress,
    progress_to_dict,
    unwrap_progress_payload,
    validate_progress_map,
)
from geoquiz.delivery.storage import BlobStorage
from geoquiz.delivery.transfer import write_export_file

EXPORT_VERSION = 1
DEFAULT_STORAGE_KEY = "nl_quiz_progress"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class ProgressStore:
    """
    Persisted per-item mastery records.

    Every mutation is applied in memory first and then saved, so the next
    queue build always sees it. Saving is best-effort: storage errors are
    logged, never raised.
    """

    def __init__(
        self,
        storage: BlobStorage,
        config: LearningConfig | None = None,
        clock: Callable[[], int] | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        backup_dir: Path | None = None,
    ):
        """
        Initialize the progress store.

        Args:
            storage: Blob backend holding the serialized map
            config: Leveling parameters (defaults if None)
            clock: Epoch-millisecond clock (wall clock if None)
            storage_key: Key of the progress blob
            backup_dir: Where reset writes a backup export (None disables it)
        """
        self.storage = storage
        self.config = config or DEFAULT_LEARNING_CONFIG
        self.clock = clock or now_ms
        self.storage_key = storage_key
        self.backup_dir = backup_dir

        self._progress: ProgressMap = {}
        self._loaded = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> ProgressStore:
        """Load persisted state once."""
        if not self._loaded:
            self.load()
        return self

    def load(self) -> ProgressMap:
        """
        Replace the in-memory map with the persisted one.

        Missing, unreadable or malformed state yields an empty map.
        """
        self._progress = self._read_persisted()
        self._loaded = True
        logger.info(f"Loaded progress for {len(self._progress)} items")
        return self.progress

    def _read_persisted(self) -> ProgressMap:
        try:
            blob = self.storage.get_blob(self.storage_key)
        except (OSError, sqlite3.Error, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read progress: {e}")
            return {}

        if not blob:
            return {}

        try:
            raw = json.loads(blob)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse stored progress, starting empty: {e}")
            return {}

        progress, message = validate_progress_map(unwrap_progress_payload(raw))
        if progress is None:
            logger.warning(f"Stored progress is malformed, starting empty: {message}")
            return {}
        return progress

    def save(self) -> bool:
        """Persist the current map. Returns False if the write failed."""
        blob = json.dumps(progress_to_dict(self._progress))
        try:
            self.storage.set_blob(self.storage_key, blob)
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Failed to save progress: {e}")
            return False
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def progress(self) -> ProgressMap:
        """Snapshot of the progress map."""
        return copy_progress(self._progress)

    def get(self, item_id: str) -> ItemProgress | None:
        entry = self._progress.get(item_id)
        return entry.copy() if entry else None

    def __len__(self) -> int:
        return len(self._progress)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._progress

    # =========================================================================
    # Mutations
    # =========================================================================

    def _entry_for_event(self, item_id: str, now: int) -> ItemProgress | None:
        """Fetch or create the record, or None if the event is a duplicate."""
        entry = self._progress.get(item_id) or ItemProgress()
        if entry.last_seen and now - entry.last_seen < self.config.dedup_window_ms:
            logger.debug(f"Ignoring repeated event for {item_id}")
            return None
        return entry

    def update_progress(self, correct_ids: Iterable[str], wrong_ids: Iterable[str]) -> None:
        """
        Apply the outcome of a finished round.

        Correct ids are processed before wrong ids; an id in both lists
        goes through both passes in that order; the wrong pass then sees
        the fresh timestamp and is dropped by the duplicate-event window.

        Args:
            correct_ids: Items answered correctly
            wrong_ids: Items answered wrong or given up
        """
        now = self.clock()
        max_level = self.config.max_level
        leveled = 0

        for item_id in correct_ids:
            entry = self._entry_for_event(item_id, now)
            if entry is None:
                continue

            entry.total_correct += 1
            entry.last_seen = now

            if entry.level < max_level:
                entry.streak += 1
                # First success always promotes a new item
                if entry.streak >= self.config.streak_threshold or entry.level == 0:
                    entry.level += 1
                    entry.streak = 0
                    leveled += 1

            self._progress[item_id] = entry

        for item_id in wrong_ids:
            entry = self._entry_for_event(item_id, now)
            if entry is None:
                continue

            entry.total_wrong += 1
            entry.last_seen = now
            entry.streak = 0

            self._progress[item_id] = entry

        logger.debug(f"Progress updated ({leveled} level-ups, {len(self._progress)} items tracked)")
        self.save()

    def reset_progress(self) -> int:
        """
        Clear all progress.

        Confirmation is the caller's job. When a backup directory is
        configured, the current state is exported there first.

        Returns:
            Number of records removed
        """
        count = len(self._progress)
        if count and self.backup_dir is not None:
            try:
                backup = write_export_file(
                    self.export_progress_data(), self.backup_dir, prefix="progress-backup", with_time=True
                )
                logger.info(f"Backup saved: {backup}")
            except OSError as e:
                logger.warning(f"Failed to write progress backup: {e}")

        self._progress = {}
        self.save()
        logger.info(f"Progress reset: {count} records removed")
        return count

    def export_progress_data(self) -> dict[str, Any]:
        """Snapshot in the export envelope format."""
        return {
            "version": EXPORT_VERSION,
            "exportedAt": self.clock(),
            "progress": progress_to_dict(self._progress),
        }

    def import_progress_data(self, data: Any, mode: ImportMode = "replace") -> ImportResult:
        """
        Import progress from parsed JSON.

        Accepts the export envelope or a bare progress map. The payload is
        validated completely before anything changes; an invalid payload
        leaves the store untouched.

        Args:
            data: Parsed JSON payload
            mode: 'replace' swaps the whole map, 'merge' combines per item

        Returns:
            ImportResult with ok=False and a message on invalid input
        """
        if mode not in ("replace", "merge"):
            return ImportResult(ok=False, message=f"Unknown import mode: {mode!r}.")

        incoming, message = validate_progress_map(unwrap_progress_payload(data))
        if incoming is None:
            logger.warning(f"Rejected progress import: {message}")
            return ImportResult(ok=False, message=message)

        if mode == "merge":
            merged = self._progress
            for item_id, entry in incoming.items():
                existing = merged.get(item_id)
                merged[item_id] = existing.merged_with(entry) if existing else entry
        else:
            self._progress = incoming

        self.save()
        logger.info(f"Imported {len(incoming)} progress records ({mode})")
        return ImportResult(ok=True, imported=len(incoming))
