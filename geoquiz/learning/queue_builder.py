"""
Learning Queue Builder.

Builds a fixed-size, variety-balanced batch of items for one learning
round by mixing three buckets:
- New items (no record or level 0), introduced largest-score first
- Active items (0 < level < max_level), the bulk of every round
- Mastered items (level >= max_level), occasional review

Default mix for a batch of 20:
- 10% new (only while fewer than max_active items are in progress)
- 70% active
- remainder review

Short buckets are backfilled from a wider window of new items, then from
mastered items. The result is shuffled so bucket origin is not visible
in the ordering.
"""
from __future__ import annotations

import math
import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Generic, Optional, Protocol, TypeVar

from loguru import logger

from geoquiz.core.progress import (
    DEFAULT_LEARNING_CONFIG,
    MasteryBucket,
    ProgressMap,
    classify,
)


class HasId(Protocol):
    """Minimal capability every quizzable item provides."""

    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=HasId)


@dataclass
class LearningMixOptions:
    """Configuration for the learning mix."""
    batch_size: int = 20
    new_ratio: float = 0.1
    active_ratio: float = 0.7
    max_active: Optional[int] = None  # None -> batch_size * 3
    randomness: int = 10  # Candidate window for new items

    @property
    def review_ratio(self) -> float:
        return 1.0 - self.new_ratio - self.active_ratio

    @property
    def active_limit(self) -> int:
        """Active-pool size at which new items stop being introduced."""
        if self.max_active is None:
            return self.batch_size * 3
        return self.max_active

    def with_overrides(self, **overrides) -> LearningMixOptions:
        """Copy with the given fields replaced (None values are ignored)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


DEFAULT_MIX_OPTIONS = LearningMixOptions()


@dataclass
class Buckets(Generic[T]):
    """Items partitioned by mastery."""
    new: list[T] = field(default_factory=list)
    active: list[T] = field(default_factory=list)
    mastered: list[T] = field(default_factory=list)


# =============================================================================
# Random Helpers
# =============================================================================

def sample_without_replacement(pool: Sequence[T], k: int, rng: random.Random) -> list[T]:
    """
    Uniformly pick up to ``k`` distinct items.

    Requests larger than the pool return the whole pool (shuffled);
    non-positive requests return nothing.
    """
    k = min(max(k, 0), len(pool))
    if k == 0:
        return []
    return rng.sample(list(pool), k)


def shuffled(items: Iterable[T], rng: random.Random) -> list[T]:
    """Return a shuffled copy."""
    result = list(items)
    rng.shuffle(result)
    return result


# =============================================================================
# Queue Building
# =============================================================================

def bucketize(
    items: Iterable[T],
    progress: ProgressMap,
    max_level: int = DEFAULT_LEARNING_CONFIG.max_level,
) -> Buckets[T]:
    """Split items into new/active/mastered by their progress records."""
    buckets: Buckets[T] = Buckets()
    for item in items:
        bucket = classify(progress.get(item.id), max_level)
        if bucket is MasteryBucket.NEW:
            buckets.new.append(item)
        elif bucket is MasteryBucket.ACTIVE:
            buckets.active.append(item)
        else:
            buckets.mastered.append(item)
    return buckets


def create_learning_queue(
    all_items: Iterable[T],
    progress: ProgressMap,
    score_fn: Callable[[T], float],
    options: Optional[LearningMixOptions] = None,
    rng: Optional[random.Random] = None,
    max_level: int = DEFAULT_LEARNING_CONFIG.max_level,
) -> list[T]:
    """
    Build the next learning batch.

    Args:
        all_items: Full item pool
        progress: Current progress map
        score_fn: Significance of an item (population, length, ...)
        options: Mix configuration (defaults if None)
        rng: Random source (fresh unseeded Random if None)
        max_level: Level at which items count as mastered

    Returns:
        Distinct items in random order: ``batch_size`` of them when the
        pool allows, fewer when it runs dry, more only when the new and
        active ratios together exceed 1
    """
    cfg = options or DEFAULT_MIX_OPTIONS
    rng = rng or random.Random()
    batch_size = max(cfg.batch_size, 0)

    buckets = bucketize(all_items, progress, max_level)

    # Larger items are introduced before obscure ones
    buckets.new.sort(key=score_fn, reverse=True)

    count_new = (
        math.floor(batch_size * cfg.new_ratio)
        if len(buckets.active) < cfg.active_limit
        else 0
    )
    count_active = math.floor(batch_size * cfg.active_ratio)
    count_review = max(batch_size - count_new - count_active, 0)

    queue: list[T] = []

    # New: random pick from the top of the score-sorted bucket
    queue.extend(sample_without_replacement(buckets.new[: cfg.randomness], count_new, rng))
    queue.extend(sample_without_replacement(buckets.active, count_active, rng))
    queue.extend(sample_without_replacement(buckets.mastered, count_review, rng))

    # Backfill with new items from a wider window
    if len(queue) < batch_size:
        missing = batch_size - len(queue)
        picked = {item.id for item in queue}
        remaining_new = [item for item in buckets.new if item.id not in picked]
        queue.extend(sample_without_replacement(remaining_new[: cfg.randomness * 2], missing, rng))

    # Then with mastered items
    if len(queue) < batch_size:
        missing = batch_size - len(queue)
        picked = {item.id for item in queue}
        remaining_mastered = [item for item in buckets.mastered if item.id not in picked]
        queue.extend(sample_without_replacement(remaining_mastered, missing, rng))

    logger.debug(
        f"Learning queue: {len(queue)}/{batch_size} items "
        f"(buckets new={len(buckets.new)} active={len(buckets.active)} "
        f"mastered={len(buckets.mastered)}; targets new={count_new} "
        f"active={count_active} review={count_review})"
    )

    return shuffled(queue, rng)


def create_standard_queue(
    items: Iterable[T],
    predicate: Optional[Callable[[T], bool]] = None,
    rng: Optional[random.Random] = None,
) -> list[T]:
    """Non-learning path: keep matching items and shuffle them."""
    rng = rng or random.Random()
    pool = [item for item in items if predicate is None or predicate(item)]
    return shuffled(pool, rng)
