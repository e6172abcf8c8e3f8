"""Thin client for the Open Trivia Database HTTP API."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

import requests

from .models import (
    TriviaCategory,
    TriviaDifficulty,
    TriviaQuestion,
    TriviaQuestionType,
    response_code_message,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://opentdb.com/api.php"


class TriviaAPIError(RuntimeError):
    """Raised when the trivia service rejects a request."""


def _api_value(value: Union[str, TriviaCategory, TriviaDifficulty, TriviaQuestionType, None]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (TriviaCategory, TriviaDifficulty, TriviaQuestionType)):
        return value.api_value
    return str(value)


class TriviaClient:
    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def fetch_questions(
        self,
        amount: int,
        category: Union[str, TriviaCategory, None] = None,
        difficulty: Union[str, TriviaDifficulty, None] = None,
        type: Union[str, TriviaQuestionType, None] = None,  # noqa: A002 - API name
    ) -> List[TriviaQuestion]:
        params: Dict[str, str] = {"amount": str(amount)}
        for key, value in (
            ("category", category),
            ("difficulty", difficulty),
            ("type", type),
        ):
            api_value = _api_value(value)
            if api_value:
                params[key] = api_value

        logger.info("Fetching %d trivia question(s) with %s", amount, params)
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TriviaAPIError(f"Trivia request failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise TriviaAPIError(f"Trivia service returned HTTP {response.status_code}")

        payload = response.json()
        code = int(payload.get("response_code", -1))
        message = response_code_message(code)
        if message:
            raise TriviaAPIError(message)

        questions = [TriviaQuestion.from_api(item) for item in payload.get("results", [])]
        logger.info("Fetched %d question(s)", len(questions))
        return questions


__all__ = ["TriviaClient", "TriviaAPIError"]
