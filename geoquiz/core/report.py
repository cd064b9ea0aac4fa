"""
Progress overview rows for the progress screen.

Joins the item pool with the progress map, then filters, sorts,
summarizes and paginates the result.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from geoquiz.core.progress import (
    DEFAULT_LEARNING_CONFIG,
    ItemProgress,
    MasteryBucket,
    ProgressMap,
    classify,
)

StatusFilter = Literal["all", "new", "active", "mastered"]
SortKey = Literal["name", "level", "streak", "correct", "wrong", "score"]

SORT_KEYS: dict[str, Callable[["ProgressRow"], Any]] = {
    "level": lambda row: row.progress.level,
    "streak": lambda row: row.progress.streak,
    "correct": lambda row: row.progress.total_correct,
    "wrong": lambda row: row.progress.total_wrong,
    "score": lambda row: row.score,
}


@dataclass
class ProgressRow:
    item: Any
    progress: ItemProgress
    status: MasteryBucket
    score: float

    @property
    def name(self) -> str:
        return getattr(self.item, "name", self.item.id)


@dataclass
class ProgressSummary:
    total: int = 0
    new: int = 0
    active: int = 0
    mastered: int = 0
    correct: int = 0
    wrong: int = 0

    @property
    def accuracy_percent(self) -> float:
        answered = self.correct + self.wrong
        return self.correct * 100.0 / answered if answered else 0.0


def build_progress_rows(
    items: Iterable[Any],
    progress: ProgressMap,
    score_fn: Callable[[Any], float],
    max_level: int = DEFAULT_LEARNING_CONFIG.max_level,
) -> list[ProgressRow]:
    """One row per item; items without a record get an empty one."""
    rows = []
    for item in items:
        entry = progress.get(item.id)
        rows.append(
            ProgressRow(
                item=item,
                progress=entry.copy() if entry else ItemProgress(),
                status=classify(entry, max_level),
                score=score_fn(item),
            )
        )
    return rows


def filter_rows(rows: Iterable[ProgressRow], status: StatusFilter = "all") -> list[ProgressRow]:
    if status == "all":
        return list(rows)
    wanted = MasteryBucket(status)
    return [row for row in rows if row.status is wanted]


def sort_rows(rows: Iterable[ProgressRow], key: SortKey = "score") -> list[ProgressRow]:
    """Sort by name (A-Z) or by any numeric column, highest first."""
    if key == "name":
        return sorted(rows, key=lambda row: row.name.casefold())
    try:
        return sorted(rows, key=SORT_KEYS[key], reverse=True)
    except KeyError:
        raise ValueError(f"Unknown sort key: {key!r}") from None


def summarize(rows: Iterable[ProgressRow]) -> ProgressSummary:
    summary = ProgressSummary()
    for row in rows:
        summary.total += 1
        setattr(summary, row.status.value, getattr(summary, row.status.value) + 1)
        summary.correct += row.progress.total_correct
        summary.wrong += row.progress.total_wrong
    return summary


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 1
    return max(1, math.ceil(total / page_size))


def paginate(rows: Sequence[ProgressRow], page: int = 1, page_size: int = 50) -> list[ProgressRow]:
    """
    Return one page of rows.

    Pages are 1-based and clamped to the valid range; ``page_size=0``
    returns everything.
    """
    if page_size <= 0:
        return list(rows)
    safe_page = min(max(page, 1), page_count(len(rows), page_size))
    start = (safe_page - 1) * page_size
    return list(rows[start : start + page_size])
