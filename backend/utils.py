# utils.py
import math
import random
import re
from typing import Any, Dict, List, Optional, Tuple

LETTERS = ("A", "B", "C", "D")
OPTION_PREFIX_RE = re.compile(r"^[A-D][.:)]\s*")

# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------
def total_batches(total_units: int, batch_size: int) -> int:
    """ceil(total_units / batch_size); an empty unit list still has one (empty) batch."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    if total_units <= 0:
        return 1
    return math.ceil(total_units / batch_size)

def batch_slice(units: List[Any], batch_index: int, batch_size: int) -> List[Any]:
    start = batch_index * batch_size
    return units[start:start + batch_size]

# ---------------------------------------------------------------------------
# Question validation
# ---------------------------------------------------------------------------
def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""

def normalize_question(raw: Any, answer_format: str = "letter") -> Tuple[Optional[dict], Optional[str]]:
    """
    Validates one question object from the model.

    answer_format "letter" expects `correct` in A-D, "index" expects
    `correctAnswer` in 0-3. Returns (question, None) or (None, reason).
    """
    if not isinstance(raw, dict):
        return None, "not an object"

    question = _text(raw.get("question"))
    if not question:
        return None, "missing question text"

    options = raw.get("options")
    if not isinstance(options, list) or len(options) != 4:
        return None, "options must be a list of exactly 4 strings"
    options = [OPTION_PREFIX_RE.sub("", _text(o)) for o in options]
    if not all(options):
        return None, "empty option"

    if answer_format == "index":
        index = raw.get("correctAnswer")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= 3:
            return None, f"correctAnswer out of range: {index!r}"
    else:
        letter = _text(raw.get("correct")).upper()
        if letter not in LETTERS:
            return None, f"correct must be one of A, B, C, D: {raw.get('correct')!r}"
        index = LETTERS.index(letter)

    explanation = _text(raw.get("explanation"))
    if not explanation:
        return None, "missing explanation"

    return {
        "question": question,
        "options": options,
        "correctAnswer": index,
        "correct": LETTERS[index],
        "explanation": explanation,
        "objective": _text(raw.get("objective")) or None,
        "questionType": _text(raw.get("questionType")) or None,
    }, None

# ---------------------------------------------------------------------------
# Answer distribution
# ---------------------------------------------------------------------------
def answer_distribution(questions: List[dict]) -> Dict[str, int]:
    counts = {letter: 0 for letter in LETTERS}
    for q in questions:
        counts[LETTERS[q["correctAnswer"]]] += 1
    return counts

def is_balanced(questions: List[dict], threshold: float = 0.2) -> bool:
    if not questions:
        return True
    avg = len(questions) / 4
    return all(abs(c - avg) / len(questions) <= threshold for c in answer_distribution(questions).values())

def rebalance_answers(questions: List[dict], rng: Optional[random.Random] = None) -> List[dict]:
    """
    Spreads the correct answers evenly over A-D by swapping options.

    Each question keeps the same correct option text; only its position moves.
    Lists shorter than 4 or already balanced are returned unchanged.
    """
    if len(questions) < 4 or is_balanced(questions):
        return questions
    rng = rng or random.Random()
    targets = [i % 4 for i in range(len(questions))]
    rng.shuffle(targets)

    out = []
    for q, target in zip(questions, targets):
        current = q["correctAnswer"]
        if current == target:
            out.append(q)
            continue
        options = list(q["options"])
        options[current], options[target] = options[target], options[current]
        out.append({**q, "options": options, "correctAnswer": target, "correct": LETTERS[target]})
    return out

def percentage(score: int, total: int) -> int:
    if total <= 0:
        return 0
    # half up, as the dashboards display it
    return int(math.floor(score / total * 100 + 0.5))
