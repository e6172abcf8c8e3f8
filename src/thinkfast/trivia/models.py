"""Question types returned by the Open Trivia Database."""

from __future__ import annotations

import html
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

RESPONSE_CODE_MESSAGES: Dict[int, str] = {
    1: "Not enough questions available for your query.",
    2: "Invalid parameters in request.",
    3: "Session token not found.",
    4: "Session token exhausted. Please start a new game.",
    5: "Rate limit exceeded. Please wait a moment.",
}


def response_code_message(code: int) -> Optional[str]:
    if code == 0:
        return None
    return RESPONSE_CODE_MESSAGES.get(code, "Unknown error occurred.")


@dataclass
class TriviaQuestion:
    """A multiple choice or true/false question.

    ``options`` is shuffled exactly once, at construction, and is the single
    ordering used both for display and for the opponent's numbered prompt.
    """

    category: str
    type: str
    difficulty: str
    question: str
    correct_answer: str
    incorrect_answers: List[str]
    options: Optional[List[str]] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if self.options is None:
            self.options = list(self.incorrect_answers) + [self.correct_answer]
            random.shuffle(self.options)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "TriviaQuestion":
        return cls(
            category=str(payload["category"]),
            type=str(payload.get("type", "multiple")),
            difficulty=str(payload["difficulty"]),
            question=str(payload["question"]),
            correct_answer=str(payload["correct_answer"]),
            incorrect_answers=[str(a) for a in payload["incorrect_answers"]],
        )

    @property
    def decoded_question(self) -> str:
        return html.unescape(self.question)

    @property
    def decoded_correct_answer(self) -> str:
        return html.unescape(self.correct_answer)

    @property
    def decoded_options(self) -> List[str]:
        return [html.unescape(option) for option in self.options or []]

    def is_correct(self, answer: Optional[str]) -> bool:
        if answer is None:
            return False
        return answer in (self.correct_answer, self.decoded_correct_answer)


class TriviaCategory(str, Enum):
    ANY = "Any Category"
    GENERAL_KNOWLEDGE = "General Knowledge"
    BOOKS = "Books"
    FILM = "Film"
    MUSIC = "Music"
    MUSICALS_THEATRES = "Musicals & Theatres"
    TELEVISION = "Television"
    VIDEO_GAMES = "Video Games"
    BOARD_GAMES = "Board Games"
    SCIENCE_NATURE = "Science & Nature"
    COMPUTERS = "Computers"
    MATHEMATICS = "Mathematics"
    MYTHOLOGY = "Mythology"
    SPORTS = "Sports"
    GEOGRAPHY = "Geography"
    HISTORY = "History"
    POLITICS = "Politics"
    ART = "Art"
    CELEBRITIES = "Celebrities"
    ANIMALS = "Animals"
    VEHICLES = "Vehicles"
    COMICS = "Comics"
    GADGETS = "Gadgets"
    ANIME = "Anime & Manga"
    CARTOON = "Cartoon & Animations"

    @property
    def api_value(self) -> Optional[str]:
        if self is TriviaCategory.ANY:
            return None
        # Open Trivia DB numbers categories from 9 in declaration order.
        return str(list(TriviaCategory).index(self) + 8)


class TriviaDifficulty(str, Enum):
    ANY = "Any Difficulty"
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @property
    def api_value(self) -> Optional[str]:
        if self is TriviaDifficulty.ANY:
            return None
        return self.value.lower()


class TriviaQuestionType(str, Enum):
    ANY = "Any Type"
    MULTIPLE_CHOICE = "Multiple Choice"
    TRUE_FALSE = "True / False"

    @property
    def api_value(self) -> Optional[str]:
        return {
            TriviaQuestionType.ANY: None,
            TriviaQuestionType.MULTIPLE_CHOICE: "multiple",
            TriviaQuestionType.TRUE_FALSE: "boolean",
        }[self]


__all__ = [
    "TriviaQuestion",
    "TriviaCategory",
    "TriviaDifficulty",
    "TriviaQuestionType",
    "response_code_message",
]
