"""
Game Modes - what is being quizzed and how answers are checked.

Two modes ship with the quiz:
- city-quiz: municipalities, scored by population
- road-quiz: motorways and national roads, scored by length in km

Each mode turns an item pool plus a configuration into a question queue:
- Replay: only the previously missed items, earlier hits pre-credited
- Learn mode: the adaptive learning queue over the whole pool
- Otherwise: the items matching the configured filters, shuffled
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, Literal, Optional, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from geoquiz.core.progress import DEFAULT_LEARNING_CONFIG, ProgressMap
from geoquiz.learning.queue_builder import (
    LearningMixOptions,
    create_learning_queue,
    create_standard_queue,
)
from geoquiz.quiz.answers import matches_name, matches_point
from geoquiz.quiz.session import Question, QuizState, to_question

RoadType = Literal["A", "N", "S", "E"]


class AnswerMode(str, Enum):
    """How the player answers."""

    POINT = "POINT"  # Click the item on the map
    NAME = "NAME"  # Type the item's name


# =============================================================================
# Item Records
# =============================================================================


class City(BaseModel):
    """A municipality."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    aliases: list[str] = Field(default_factory=list)
    population: int = 0
    province: str = ""


class Road(BaseModel):
    """A numbered road."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    label: Optional[str] = None  # Short label, e.g. "A1"
    type: RoadType = "A"
    length_km: float = Field(default=0.0, alias="lengthKm")
    aliases: list[str] = Field(default_factory=list)


# =============================================================================
# Configuration
# =============================================================================


class CityConfig(BaseModel):
    min_population: int = 10_000
    max_population: int = 1_000_000
    selected_provinces: list[str] = Field(default_factory=list)  # Empty = all
    mode: AnswerMode = AnswerMode.POINT
    learn_mode: bool = False
    learning_options: LearningMixOptions = Field(default_factory=LearningMixOptions)


class RoadConfig(BaseModel):
    min_length: float = 0
    max_length: float = 300
    selected_types: list[RoadType] = Field(default_factory=lambda: ["A"])
    mode: AnswerMode = AnswerMode.POINT
    learn_mode: bool = False
    learning_options: LearningMixOptions = Field(default_factory=LearningMixOptions)


@dataclass
class ReplayOptions:
    """Replay of the mistakes of a finished round."""

    to_play_ids: list[str]
    solved_ids: list[str]

    @classmethod
    def from_state(cls, state: QuizState) -> Optional[ReplayOptions]:
        """Build from a finished round; None when nothing was missed."""
        if not state.history.wrong:
            return None
        return cls(
            to_play_ids=[q.id for q in state.history.wrong],
            solved_ids=[q.id for q in state.history.correct],
        )


@dataclass
class GeneratedQuestions:
    queue: list[Question] = field(default_factory=list)
    initial_correct: list[Question] = field(default_factory=list)


# =============================================================================
# Adapters
# =============================================================================

ItemT = TypeVar("ItemT", City, Road)
ConfigT = TypeVar("ConfigT", CityConfig, RoadConfig)


class GameModeAdapter(ABC, Generic[ItemT, ConfigT]):
    """Contract every game mode fulfils."""

    id: ClassVar[str]
    label: ClassVar[str]
    description: ClassVar[str]
    item_type: ClassVar[type]
    config_type: ClassVar[type]

    def default_config(self) -> ConfigT:
        return self.config_type()

    def parse_item(self, data: Mapping[str, Any]) -> ItemT:
        return self.item_type.model_validate(data)

    @abstractmethod
    def score_value(self, item: ItemT) -> float:
        """Score awarded for a correct answer."""

    @abstractmethod
    def matches(self, item: ItemT, config: ConfigT) -> bool:
        """Whether the item passes the configured filters."""

    @abstractmethod
    def answer_names(self, item: ItemT) -> list[str]:
        """Accepted typed answers, before user aliases."""

    def learning_pool(self, items: Sequence[ItemT]) -> list[ItemT]:
        """Items eligible for learn mode."""
        return list(items)

    def validate(
        self,
        question: Question[ItemT],
        answer: Union[str, ItemT],
        custom_aliases: Optional[Mapping[str, list[str]]] = None,
    ) -> bool:
        """
        Check an answer against a question.

        Args:
            question: The asked question
            answer: Typed name (name mode) or clicked item (point mode)
            custom_aliases: User-defined aliases by item id

        Returns:
            True if the answer is correct
        """
        item = question.payload
        if isinstance(answer, str):
            candidates = self.answer_names(item)
            if custom_aliases:
                candidates = candidates + list(custom_aliases.get(item.id, []))
            return matches_name(answer, candidates)
        return matches_point(answer.id, item.id)

    def generate_questions(
        self,
        items: Sequence[ItemT],
        config: ConfigT,
        replay: Optional[ReplayOptions] = None,
        progress: Optional[ProgressMap] = None,
        rng: Optional[random.Random] = None,
        max_level: int = DEFAULT_LEARNING_CONFIG.max_level,
    ) -> GeneratedQuestions:
        """Build the question queue for one round."""
        if replay is not None:
            to_play = set(replay.to_play_ids)
            solved = set(replay.solved_ids)
            return GeneratedQuestions(
                queue=[to_question(i) for i in items if i.id in to_play],
                initial_correct=[to_question(i) for i in items if i.id in solved],
            )

        if config.learn_mode and progress is not None:
            queue = create_learning_queue(
                self.learning_pool(items),
                progress,
                self.score_value,
                config.learning_options,
                rng=rng,
                max_level=max_level,
            )
            logger.info(f"{self.id}: learning round with {len(queue)} questions")
            return GeneratedQuestions(queue=[to_question(i) for i in queue])

        queue = create_standard_queue(items, lambda i: self.matches(i, config), rng=rng)
        logger.info(f"{self.id}: round with {len(queue)} questions")
        return GeneratedQuestions(queue=[to_question(i) for i in queue])


class CityMode(GameModeAdapter[City, CityConfig]):
    id = "city-quiz"
    label = "Cities"
    description = "Find municipalities by name or on the map"
    item_type = City
    config_type = CityConfig

    def score_value(self, item: City) -> float:
        return item.population

    def matches(self, item: City, config: CityConfig) -> bool:
        if not config.min_population <= item.population <= config.max_population:
            return False
        return not config.selected_provinces or item.province in config.selected_provinces

    def answer_names(self, item: City) -> list[str]:
        return [item.name, *item.aliases]


class RoadMode(GameModeAdapter[Road, RoadConfig]):
    id = "road-quiz"
    label = "Roads"
    description = "Find motorways and national roads"
    item_type = Road
    config_type = RoadConfig

    def score_value(self, item: Road) -> float:
        # Whole kilometres, halves rounded up
        return math.floor(item.length_km + 0.5)

    def matches(self, item: Road, config: RoadConfig) -> bool:
        if not config.min_length <= item.length_km <= config.max_length:
            return False
        return item.type in config.selected_types

    def answer_names(self, item: Road) -> list[str]:
        names = [item.name, item.id, *item.aliases]
        if item.label:
            names.append(item.label)
        return names

    def learning_pool(self, items: Sequence[Road]) -> list[Road]:
        # European routes duplicate national numbering
        return [r for r in items if r.type != "E"]


MODES: dict[str, GameModeAdapter] = {
    CityMode.id: CityMode(),
    RoadMode.id: RoadMode(),
}


def get_mode(mode_id: str) -> GameModeAdapter:
    """Look up a game mode by id."""
    try:
        return MODES[mode_id]
    except KeyError:
        raise ValueError(f"Unknown game mode: {mode_id!r} (choose from {', '.join(MODES)})") from None


def available_modes() -> Iterable[GameModeAdapter]:
    return MODES.values()
