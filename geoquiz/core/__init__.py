"""
Core domain: mastery records, game modes and progress reports.
"""

from .progress import (
    DEFAULT_LEARNING_CONFIG,
    ImportResult,
    ItemProgress,
    LearningConfig,
    MasteryBucket,
    ProgressMap,
    classify,
    validate_progress_map,
)

__all__ = [
    "DEFAULT_LEARNING_CONFIG",
    "ImportResult",
    "ItemProgress",
    "LearningConfig",
    "MasteryBucket",
    "ProgressMap",
    "classify",
    "validate_progress_map",
]
