"""Map raw completions back onto answer options and score them."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .prompting import CONTROL_TOKENS

logger = logging.getLogger(__name__)

MATCH_INDEX = "index"
MATCH_TEXT = "text"
MATCH_RANDOM = "random"

# Simulated confidence ranges per difficulty: (correct, incorrect).
# These are gameplay pacing values, not model probabilities.
CONFIDENCE_RANGES: Dict[str, Tuple[Tuple[float, float], Tuple[float, float]]] = {
    "easy": ((0.85, 0.95), (0.60, 0.75)),
    "medium": ((0.70, 0.85), (0.45, 0.60)),
    "hard": ((0.55, 0.70), (0.30, 0.45)),
}
DEFAULT_CONFIDENCE = 0.5


@dataclass(frozen=True)
class ParsedAnswer:
    index: int
    text: str
    match: str


def clean_response(response: str) -> str:
    """Strip chat-template control tokens and surrounding whitespace."""

    cleaned = response.strip()
    for token in CONTROL_TOKENS:
        cleaned = cleaned.replace(token, "")
    return cleaned.strip()


def parse_answer(
    response: Optional[str],
    options: Sequence[str],
    *,
    rng: Optional[random.Random] = None,
) -> ParsedAnswer:
    """Pick the option a completion refers to.

    Tries a leading option number, then a case-insensitive text match in option
    order, and finally falls back to a uniformly random option. Never raises for
    non-empty ``options``.
    """

    if not options:
        raise ValueError("parse_answer requires at least one option")

    cleaned = clean_response(response or "")
    logger.debug("Cleaned AI response: %r", cleaned)

    if cleaned and cleaned[0] in "0123456789":
        number = int(cleaned[0])
        if 1 <= number <= len(options):
            logger.debug("AI selected option %d: %s", number, options[number - 1])
            return ParsedAnswer(number - 1, options[number - 1], MATCH_INDEX)

    lowered = cleaned.casefold()
    for index, option in enumerate(options):
        if option.casefold() in lowered:
            logger.debug("AI selected by text match: %s", option)
            return ParsedAnswer(index, option, MATCH_TEXT)

    index = (rng or random).randrange(len(options))
    logger.info(
        "AI response parsing failed, selecting random option: %s", options[index]
    )
    return ParsedAnswer(index, options[index], MATCH_RANDOM)


def calculate_confidence(
    difficulty: str,
    is_correct: bool,
    *,
    rng: Optional[random.Random] = None,
) -> float:
    ranges = CONFIDENCE_RANGES.get((difficulty or "").lower())
    if ranges is None:
        return DEFAULT_CONFIDENCE
    low, high = ranges[0] if is_correct else ranges[1]
    return (rng or random).uniform(low, high)


def minimum_thinking_time(
    difficulty: str, *, normal: float = 1.5, hard: float = 2.0
) -> float:
    return hard if (difficulty or "").lower() == "hard" else normal


__all__ = [
    "ParsedAnswer",
    "CONFIDENCE_RANGES",
    "clean_response",
    "parse_answer",
    "calculate_confidence",
    "minimum_thinking_time",
]
