import random

import pytest

from thinkfast.opponent.parsing import (
    MATCH_INDEX,
    MATCH_RANDOM,
    MATCH_TEXT,
    calculate_confidence,
    clean_response,
    minimum_thinking_time,
    parse_answer,
)

OPTIONS = ["Berlin", "Paris", "Madrid", "Rome"]


def test_leading_number_selects_option():
    parsed = parse_answer("2. Paris", OPTIONS)
    assert (parsed.index, parsed.text, parsed.match) == (1, "Paris", MATCH_INDEX)


def test_number_wins_over_text():
    parsed = parse_answer("3 - actually I think Paris", OPTIONS)
    assert parsed.text == "Madrid"


def test_out_of_range_number_falls_through_to_text():
    parsed = parse_answer("9 Rome", OPTIONS)
    assert parsed.text == "Rome"
    assert parsed.match == MATCH_TEXT


def test_text_match_is_case_insensitive():
    parsed = parse_answer("I think it's berlin", OPTIONS)
    assert (parsed.index, parsed.match) == (0, MATCH_TEXT)


def test_unparseable_response_picks_random_option():
    parsed = parse_answer("xyz123", OPTIONS, rng=random.Random(3))
    assert parsed.match == MATCH_RANDOM
    assert parsed.text in OPTIONS
    assert OPTIONS[parsed.index] == parsed.text


def test_empty_response_still_returns_an_option():
    parsed = parse_answer(None, OPTIONS, rng=random.Random(0))
    assert parsed.match == MATCH_RANDOM


def test_control_tokens_are_stripped():
    assert clean_response("<|im_start|>assistant\n1. Berlin<|im_end|>") == "assistant\n1. Berlin"
    assert parse_answer("<|assistant|>4. Rome<|end|>", OPTIONS).text == "Rome"
    assert parse_answer("<end_of_turn>2<end_of_turn>", OPTIONS).text == "Paris"


def test_parse_requires_options():
    with pytest.raises(ValueError):
        parse_answer("1", [])


@pytest.mark.parametrize(
    "difficulty,is_correct,low,high",
    [
        ("easy", True, 0.85, 0.95),
        ("easy", False, 0.60, 0.75),
        ("medium", True, 0.70, 0.85),
        ("medium", False, 0.45, 0.60),
        ("hard", True, 0.55, 0.70),
        ("hard", False, 0.30, 0.45),
    ],
)
def test_confidence_ranges(difficulty, is_correct, low, high):
    rng = random.Random(11)
    for _ in range(50):
        assert low <= calculate_confidence(difficulty, is_correct, rng=rng) <= high


def test_unknown_difficulty_uses_default_confidence():
    assert calculate_confidence("legendary", True) == 0.5


def test_minimum_thinking_time():
    assert minimum_thinking_time("hard") == 2.0
    assert minimum_thinking_time("HARD") == 2.0
    assert minimum_thinking_time("easy") == 1.5
    assert minimum_thinking_time("medium", normal=0.5) == 0.5


def test_reference_responses():
    options = ["London", "Paris", "Berlin", "Rome"]
    assert parse_answer("2. Paris", options).text == "Paris"
    assert parse_answer("I think it's berlin", options).text == "Berlin"
    assert parse_answer("xyz123", options).text in options
