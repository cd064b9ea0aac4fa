"""
Learning queue construction.
"""

from .queue_builder import (
    DEFAULT_MIX_OPTIONS,
    LearningMixOptions,
    create_learning_queue,
    create_standard_queue,
)

__all__ = [
    "DEFAULT_MIX_OPTIONS",
    "LearningMixOptions",
    "create_learning_queue",
    "create_standard_queue",
]
