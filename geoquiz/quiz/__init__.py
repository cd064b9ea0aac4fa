"""
Generic quiz engine and answer checking.
"""

from .answers import is_give_up, matches_name, matches_point, normalize_answer
from .session import AnswerResult, Feedback, Question, QuizSession, QuizState, QuizStatus

__all__ = [
    "AnswerResult",
    "Feedback",
    "Question",
    "QuizSession",
    "QuizState",
    "QuizStatus",
    "is_give_up",
    "matches_name",
    "matches_point",
    "normalize_answer",
]
