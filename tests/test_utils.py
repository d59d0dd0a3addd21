import random

import pytest

from utils import (total_batches, batch_slice, normalize_question, answer_distribution,
                   rebalance_answers, is_balanced, percentage)
from conftest import make_question


@pytest.mark.parametrize("units,size,expected", [
    (12, 5, 3),
    (10, 5, 2),
    (1, 10, 1),
    (11, 1, 11),
    (0, 10, 1),
])
def test_total_batches(units, size, expected):
    assert total_batches(units, size) == expected


def test_total_batches_rejects_zero_size():
    with pytest.raises(ValueError):
        total_batches(3, 0)


@pytest.mark.parametrize("units,size", [(12, 5), (7, 7), (23, 4), (3, 10)])
def test_batches_partition_units(units, size):
    items = list(range(units))
    batches = [batch_slice(items, i, size) for i in range(total_batches(units, size))]
    assert [x for b in batches for x in b] == items
    assert all(0 < len(b) <= size for b in batches)


def test_twelve_terms_in_batches_of_five():
    items = [f"t{i}" for i in range(12)]
    assert [len(batch_slice(items, i, 5)) for i in range(3)] == [5, 5, 2]


def test_normalize_accepts_letter_and_strips_option_prefixes():
    raw = make_question(options=["A. one", "B: two", "C) three", "four"], correct=" c ")
    q, reason = normalize_question(raw)
    assert reason is None
    assert q["options"] == ["one", "two", "three", "four"]
    assert q["correctAnswer"] == 2
    assert q["correct"] == "C"


@pytest.mark.parametrize("overrides,reason_part", [
    ({"options": ["a", "b", "c"]}, "exactly 4"),
    ({"options": ["a", "b", "c", "d", "e"]}, "exactly 4"),
    ({"options": ["a", "", "c", "d"]}, "empty option"),
    ({"correct": "E"}, "A, B, C, D"),
    ({"correct": None}, "A, B, C, D"),
    ({"explanation": ""}, "explanation"),
    ({"question": "   "}, "question"),
])
def test_normalize_rejects_invalid_questions(overrides, reason_part):
    q, reason = normalize_question(make_question(**overrides))
    assert q is None
    assert reason_part in reason


def test_normalize_index_format():
    raw = {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": 3, "explanation": "x"}
    q, _ = normalize_question(raw, answer_format="index")
    assert q["correctAnswer"] == 3 and q["correct"] == "D"

    for bad in (4, -1, True, "2"):
        q, reason = normalize_question({**raw, "correctAnswer": bad}, answer_format="index")
        assert q is None and "correctAnswer" in reason


def test_normalize_rejects_non_objects():
    assert normalize_question("just text")[0] is None


def _normalized(n, letter):
    return normalize_question(make_question(n, letter))[0]


def test_rebalance_spreads_letters_and_keeps_correct_text():
    questions = [_normalized(i, "A") for i in range(8)]
    assert not is_balanced(questions)

    balanced = rebalance_answers(questions, random.Random(7))

    assert answer_distribution(balanced) == {"A": 2, "B": 2, "C": 2, "D": 2}
    for before, after in zip(questions, balanced):
        assert after["options"][after["correctAnswer"]] == before["options"][before["correctAnswer"]]
        assert sorted(after["options"]) == sorted(before["options"])


def test_rebalance_leaves_balanced_or_short_lists_alone():
    short = [_normalized(i, "A") for i in range(3)]
    assert rebalance_answers(short) is short
    even = [_normalized(i, letter) for i, letter in enumerate("ABCD")]
    assert rebalance_answers(even) is even


@pytest.mark.parametrize("score,total,expected", [(17, 20, 85), (1, 2, 50), (2, 3, 67), (1, 8, 13), (0, 5, 0), (0, 0, 0)])
def test_percentage_rounds_half_up(score, total, expected):
    assert percentage(score, total) == expected
