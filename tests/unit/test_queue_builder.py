"""
Unit tests for the learning queue builder.

Tests:
- Bucket partitioning by level
- Target counts and the new-item gate
- Backfill from new, then mastered items
- Size, uniqueness and determinism under a seeded random source
"""

import random
from dataclasses import dataclass

import pytest

from geoquiz.core.progress import ItemProgress
from geoquiz.learning.queue_builder import (
    LearningMixOptions,
    bucketize,
    create_learning_queue,
    create_standard_queue,
    sample_without_replacement,
)


@dataclass(frozen=True)
class Item:
    id: str
    score: float = 0


def score(item: Item) -> float:
    return item.score


def make_items(prefix: str, count: int, start_score: int = 0) -> list[Item]:
    return [Item(id=f"{prefix}{i}", score=start_score + i) for i in range(count)]


def levels(items: list[Item], level: int) -> dict[str, ItemProgress]:
    return {item.id: ItemProgress(level=level, last_seen=1) for item in items}


class TestBucketize:
    """Tests for bucket partitioning."""

    def test_partition(self):
        items = make_items("i", 4)
        progress = {
            "i1": ItemProgress(level=0),
            "i2": ItemProgress(level=3),
            "i3": ItemProgress(level=5),
        }

        buckets = bucketize(items, progress, max_level=5)

        assert [i.id for i in buckets.new] == ["i0", "i1"]
        assert [i.id for i in buckets.active] == ["i2"]
        assert [i.id for i in buckets.mastered] == ["i3"]

    def test_above_max_counts_as_mastered(self):
        items = make_items("i", 1)
        buckets = bucketize(items, {"i0": ItemProgress(level=9)}, max_level=5)

        assert buckets.mastered == items


class TestSampling:
    """Tests for the sampling helper."""

    def test_clamps_to_pool(self, rng):
        assert len(sample_without_replacement(make_items("i", 3), 10, rng)) == 3

    def test_non_positive_returns_nothing(self, rng):
        assert sample_without_replacement(make_items("i", 3), -2, rng) == []

    def test_distinct(self, rng):
        picked = sample_without_replacement(make_items("i", 50), 20, rng)
        assert len({i.id for i in picked}) == 20


class TestLearningQueue:
    """Tests for create_learning_queue."""

    def test_empty_pool(self, rng):
        assert create_learning_queue([], {}, score, rng=rng) == []

    def test_all_new_takes_top_scores(self, rng):
        """With only new items the batch comes from the top of the score ranking."""
        items = make_items("n", 100)
        options = LearningMixOptions(batch_size=20, new_ratio=0.1, active_ratio=0.7, randomness=10)

        queue = create_learning_queue(items, {}, score, options, rng=rng)

        assert len(queue) == 20
        assert len({i.id for i in queue}) == 20
        # 2 from the top 10, backfill from the next-best 20 of the rest
        assert all(item.score >= 70 for item in queue)

    def test_bucket_mix(self, rng):
        new = make_items("n", 50, start_score=1000)
        active = make_items("a", 50)
        mastered = make_items("m", 50)
        progress = {**levels(active, 2), **levels(mastered, 5)}
        options = LearningMixOptions(batch_size=20)

        queue = create_learning_queue(new + active + mastered, progress, score, options, rng=rng)

        ids = [i.id for i in queue]
        assert len(ids) == 20
        assert sum(1 for i in ids if i.startswith("n")) == 2
        assert sum(1 for i in ids if i.startswith("a")) == 14
        assert sum(1 for i in ids if i.startswith("m")) == 4

    def test_saturated_active_pool_blocks_new(self, rng):
        """No new items once the active pool reaches 3 x batch size."""
        new = make_items("n", 10)
        active = make_items("a", 60)
        progress = levels(active, 2)
        options = LearningMixOptions(batch_size=20)

        queue = create_learning_queue(new + active, progress, score, options, rng=rng)

        ids = [i.id for i in queue]
        assert len(ids) == 20
        # Gate closes the new quota, but backfill still fills the batch
        assert sum(1 for i in ids if i.startswith("a")) == 14
        assert sum(1 for i in ids if i.startswith("n")) == 6

    def test_custom_max_active(self, rng):
        new = make_items("n", 10)
        active = make_items("a", 5)
        options = LearningMixOptions(batch_size=10, new_ratio=0.5, active_ratio=0.5, max_active=5)

        queue = create_learning_queue(new + active, levels(active, 1), score, options, rng=rng)

        # Gate closed: 5 active, then backfill from new
        assert sum(1 for i in queue if i.id.startswith("a")) == 5
        assert len(queue) == 10

    def test_backfill_from_mastered(self, rng):
        mastered = make_items("m", 30)
        options = LearningMixOptions(batch_size=20)

        queue = create_learning_queue(mastered, levels(mastered, 5), score, options, rng=rng)

        assert len(queue) == 20
        assert len({i.id for i in queue}) == 20

    def test_short_pool_returns_everything(self, rng):
        items = make_items("n", 3) + make_items("a", 2) + make_items("m", 2)
        progress = {**levels(items[3:5], 1), **levels(items[5:], 5)}

        queue = create_learning_queue(items, progress, score, LearningMixOptions(batch_size=20), rng=rng)

        assert sorted(i.id for i in queue) == sorted(i.id for i in items)

    def test_negative_review_count_is_clamped(self, rng):
        new = make_items("n", 20)
        active = make_items("a", 20)
        mastered = make_items("m", 20)
        progress = {**levels(active, 1), **levels(mastered, 5)}
        options = LearningMixOptions(batch_size=10, new_ratio=0.6, active_ratio=0.6)

        queue = create_learning_queue(new + active + mastered, progress, score, options, rng=rng)

        ids = [i.id for i in queue]
        assert len(ids) == 12  # 6 new + 6 active, review quota clamped to 0
        assert not any(i.startswith("m") for i in ids)

    def test_zero_randomness_backfills_from_mastered(self, rng):
        new = make_items("n", 5)
        mastered = make_items("m", 10)
        options = LearningMixOptions(batch_size=10, randomness=0)

        queue = create_learning_queue(new + mastered, levels(mastered, 5), score, options, rng=rng)

        assert all(i.id.startswith("m") for i in queue)
        assert len(queue) == 10

    def test_seeded_rng_is_deterministic(self):
        items = make_items("n", 40)
        progress = levels(items[:20], 2)

        first = create_learning_queue(items, progress, score, rng=random.Random(7))
        second = create_learning_queue(items, progress, score, rng=random.Random(7))

        assert first == second

    def test_does_not_mutate_inputs(self, rng):
        items = make_items("n", 30)
        original = list(items)
        progress = levels(items[:10], 2)
        snapshot = {k: v.copy() for k, v in progress.items()}

        create_learning_queue(items, progress, score, rng=rng)

        assert items == original
        assert progress == snapshot


class TestStandardQueue:
    """Tests for the non-learning path."""

    def test_filters_and_keeps_all_matches(self, rng):
        items = make_items("i", 10)
        queue = create_standard_queue(items, lambda i: i.score % 2 == 0, rng=rng)

        assert sorted(i.id for i in queue) == ["i0", "i2", "i4", "i6", "i8"]

    def test_no_predicate(self, rng):
        items = make_items("i", 5)
        assert sorted(create_standard_queue(items, rng=rng), key=lambda i: i.id) == items


class TestOptions:
    """Tests for LearningMixOptions."""

    def test_defaults(self):
        options = LearningMixOptions()
        assert options.active_limit == 60
        assert options.review_ratio == pytest.approx(0.2)

    def test_with_overrides_ignores_none(self):
        options = LearningMixOptions().with_overrides(batch_size=30, new_ratio=None)
        assert options.batch_size == 30
        assert options.new_ratio == 0.1
        assert options.active_limit == 90
