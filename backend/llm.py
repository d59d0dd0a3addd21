# llm.py: calls the openai SDK directly (no LangChain wrapper)
import os
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Tuple, Union

from dotenv import load_dotenv
from openai import OpenAI

from errors import LLMError
from utils import normalize_question

load_dotenv()

logger = logging.getLogger(__name__)

API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
if not API_KEY:
    raise RuntimeError("OPENAI_API_KEY is missing in .env")

# The term and plain quizzes run on the cheap model, objective quizzes on the stronger one.
MODEL = (os.getenv("OPENAI_MODEL") or "gpt-4o-mini").strip()
OBJECTIVE_MODEL = (os.getenv("OPENAI_OBJECTIVE_MODEL") or "gpt-4o").strip()

PROMPT_DIR = os.path.join(os.path.dirname(__file__), "prompts")

def _load_prompt(name: str) -> str:
    with open(os.path.join(PROMPT_DIR, name), "r", encoding="utf-8") as f:
        return f.read()

TERM_PROMPT_MD = _load_prompt("term_quiz_prompt.md")
OBJECTIVE_PROMPT_MD = _load_prompt("objective_quiz_prompt.md")
QUIZ_PROMPT_MD = _load_prompt("quiz_prompt.md")
READABILITY_PROMPT_MD = _load_prompt("readability_prompt.md")

SYSTEM_PROMPT = (
    "You are an experienced teaching assistant who writes high-quality multiple-choice questions. "
    "Your answers are always valid JSON, without Markdown or other formatting."
)

# One shot per batch: failures go back to the caller instead of being retried.
client = OpenAI(api_key=API_KEY, max_retries=0)

# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------
def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)

def format_term_prompt(book_title: str, source: str, content: str,
                       terms: List[str], questions_per_term: int) -> str:
    return f"""{TERM_PROMPT_MD}

Write exactly {questions_per_term} question(s) for EACH of these {len(terms)} terms ({questions_per_term * len(terms)} in total):
{_bullets(terms)}

Book: {book_title}
{source}

Passage:
{content}
"""

def format_objective_prompt(book_title: str, source: str, content: str,
                            objectives: List[str], questions_per_objective: int) -> str:
    return f"""{OBJECTIVE_PROMPT_MD}

Write exactly {questions_per_objective} question(s) for EACH of these {len(objectives)} learning objectives ({questions_per_objective * len(objectives)} in total):
{_bullets(objectives)}

Book: {book_title}
{source}

Chapter content:
{content}
"""

def format_quiz_prompt(book_title: str, source: str, content: str, number_of_questions: int) -> str:
    return f"""{QUIZ_PROMPT_MD}

Generate {number_of_questions} questions.

Book: {book_title}
{source}

Content:
{content}
"""

def format_readability_prompt(book_title: str, chapter_title: str, passage: str) -> str:
    return f'Here is the text from the book "{book_title}", chapter: "{chapter_title}":\n\n{passage}'

# -----------------------------------------------------------------------------
# Completion call
# -----------------------------------------------------------------------------
def complete(prompt_text: str, model: str = MODEL, temperature: float = 0.7,
             max_tokens: int = 2000, system: str = SYSTEM_PROMPT) -> Tuple[str, dict]:
    """
    One chat-completion request. Returns (reply text, raw response as dict).
    Raises LLMError on any transport or API failure, or on an empty reply.
    """
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt_text},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.error("OpenAI request failed: %s", e)
        raise LLMError(f"LLM request failed: {e}")

    if not resp.choices or not resp.choices[0].message or not resp.choices[0].message.content:
        raise LLMError(f"Model {model} returned empty response.")
    return resp.choices[0].message.content.strip(), resp.model_dump()

# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------
@dataclass
class Parsed:
    questions: List[dict]
    dropped: List[str] = field(default_factory=list)

@dataclass
class MalformedJson:
    raw: str

@dataclass
class SchemaInvalid:
    reasons: List[str]

ParseOutcome = Union[Parsed, MalformedJson, SchemaInvalid]

def _strip_fences(content: str) -> str:
    # Some models wrap JSON in ``` blocks; strip if present
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
        if content.rstrip().endswith("```"):
            content = content.rstrip()[:-3]
    return content.strip()

def _load_json(content: str) -> Any:
    """Direct parse first, then the outermost [...] span. Raises ValueError."""
    try:
        return json.loads(content)
    except ValueError:
        pass
    start, end = content.find("["), content.rfind("]")
    if start == -1 or end <= start:
        raise ValueError("no JSON array in reply")
    return json.loads(content[start:end + 1])

def parse_questions(text: str, answer_format: str = "letter") -> ParseOutcome:
    try:
        data = _load_json(_strip_fences(text or ""))
    except ValueError as e:
        logger.warning("Reply is not valid JSON: %s; raw: %s", e, (text or "")[:400])
        return MalformedJson(raw=text or "")

    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        return SchemaInvalid(reasons=[f"expected a JSON array of questions, got {type(data).__name__}"])

    questions, dropped = [], []
    for i, raw in enumerate(data):
        question, reason = normalize_question(raw, answer_format)
        if question is None:
            logger.warning("Filtered out invalid question #%d: %s", i, reason)
            dropped.append(f"#{i}: {reason}")
        else:
            questions.append(question)

    if data and not questions:
        return SchemaInvalid(reasons=dropped)
    return Parsed(questions=questions, dropped=dropped)

# --- Simple ping for /api/llm-test
def ping_llm() -> dict:
    """
    Returns {"ok": True, "model": <model>, "content": "..."} on success,
            or {"ok": False, "error": "..."} on failure.
    """
    try:
        text, _ = complete("Reply with OK", max_tokens=5)
        return {"ok": True, "model": MODEL, "content": text[:200]}
    except LLMError as e:
        return {"ok": False, "error": str(e)}
