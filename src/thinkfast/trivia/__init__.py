"""Trivia question source (Open Trivia Database)."""

from .client import TriviaAPIError, TriviaClient  # noqa: F401
from .models import (  # noqa: F401
    TriviaCategory,
    TriviaDifficulty,
    TriviaQuestion,
    TriviaQuestionType,
)

__all__ = [
    "TriviaClient",
    "TriviaAPIError",
    "TriviaQuestion",
    "TriviaCategory",
    "TriviaDifficulty",
    "TriviaQuestionType",
]
