# generator.py
"""
Question generation, one LLM call per request, plus the readability rewrite.

The batched variants slice the scope's unit list (marked terms or learning
objectives) into fixed-size batches; the caller asks for batch 0, 1, ... until
the response says `isLastBatch`. Nothing here is stored: questions only live
in the response.
"""
import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

import llm
import schemas
from content import ContentScope, resolve_scope, chapter_rows, extract_marked_terms, extract_objectives
from errors import ScopeError, ParseError
from utils import total_batches, batch_slice, answer_distribution, rebalance_answers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Variant:
    name: str
    unit_label: str                                  # "Terms" / "Objectives" in metadata keys
    units: Callable[[ContentScope], List[str]]
    prompt: Callable[..., str]
    model: str
    temperature: float
    max_tokens: int
    rebalance: bool


VARIANTS = {
    "term": Variant(
        name="term",
        unit_label="Terms",
        units=lambda scope: extract_marked_terms(scope.full_content or scope.content),
        prompt=llm.format_term_prompt,
        model=llm.MODEL,
        temperature=0.7,
        max_tokens=3000,
        rebalance=False,
    ),
    "objective": Variant(
        name="objective",
        unit_label="Objectives",
        units=lambda scope: extract_objectives(scope.objectives),
        prompt=llm.format_objective_prompt,
        model=llm.OBJECTIVE_MODEL,
        # a little more randomness helps against letter bias
        temperature=0.9,
        max_tokens=3500,
        rebalance=True,
    ),
}


def _questions_or_raise(outcome: llm.ParseOutcome) -> List[dict]:
    if isinstance(outcome, llm.MalformedJson):
        raise ParseError("Could not parse quiz questions from the LLM response",
                         context={"raw": outcome.raw[:400]})
    if isinstance(outcome, llm.SchemaInvalid):
        raise ParseError("LLM response did not contain valid quiz questions",
                         context={"reasons": outcome.reasons})
    return outcome.questions


def _count_by_unit(questions: List[dict], units: List[str]) -> dict:
    counts = {unit: 0 for unit in units}
    for q in questions:
        key = q.get("objective") or "unassigned"
        counts[key] = counts.get(key, 0) + 1
    return counts


def generate_batch(db: Session, payload: schemas.BatchGenerateIn, variant_name: str,
                   rng: Optional[random.Random] = None) -> dict:
    variant = VARIANTS[variant_name]
    if payload.batch_size < 1:
        raise ScopeError("batchSize must be at least 1")
    if payload.questions_per_objective < 1:
        raise ScopeError("questionsPerObjective must be at least 1")
    if payload.batch_index < 0:
        raise ScopeError("batchIndex must not be negative")

    scope = resolve_scope(db, payload.book_id, payload.chapter_id, payload.paragraph_id)
    units = variant.units(scope)
    n_batches = total_batches(len(units), payload.batch_size)
    if payload.batch_index >= n_batches:
        raise ScopeError(
            f"batchIndex {payload.batch_index} out of range: only {n_batches} batch(es) available",
            context={"totalBatches": n_batches},
        )

    batch_units = batch_slice(units, payload.batch_index, payload.batch_size)
    logger.info(
        "Generating %s batch %d/%d for book %s (chapter %s, paragraph %s): %d of %d units",
        variant.name, payload.batch_index + 1, n_batches, scope.book_id,
        scope.chapter_id or "all", scope.paragraph_id or "all", len(batch_units), len(units),
    )

    prompt_text, raw_response, questions = None, None, []
    if batch_units:
        prompt_text = variant.prompt(scope.book_title, scope.source, scope.content,
                                     batch_units, payload.questions_per_objective)
        text, raw_response = llm.complete(prompt_text, model=variant.model,
                                          temperature=variant.temperature,
                                          max_tokens=variant.max_tokens)
        questions = _questions_or_raise(llm.parse_questions(text, answer_format="letter"))
        limit = len(batch_units) * payload.questions_per_objective
        if len(questions) > limit:
            logger.info("Model returned %d questions, keeping %d", len(questions), limit)
            questions = questions[:limit]
        distribution = answer_distribution(questions)
        logger.info("Answer distribution check: %s", distribution)
        if variant.rebalance:
            questions = rebalance_answers(questions, rng)
    else:
        logger.info("Batch %d has no units, returning an empty batch", payload.batch_index)

    processed = min((payload.batch_index + 1) * payload.batch_size, len(units))
    response = {
        "success": True,
        "message": f"Generated {len(questions)} questions successfully",
        "questions": questions,
        "metadata": {
            "currentBatch": payload.batch_index,
            "totalBatches": n_batches,
            f"processed{variant.unit_label}": processed,
            f"total{variant.unit_label}": len(units),
            "isLastBatch": payload.batch_index == n_batches - 1,
            "questionsByObjective": _count_by_unit(questions, batch_units),
        },
        "context": {"bookTitle": scope.book_title, "source": scope.source},
    }
    if payload.debug:
        response["debug"] = {
            "prompt": prompt_text,
            "response": raw_response,
            "answerDistribution": answer_distribution(questions),
            f"all{variant.unit_label}": units,
            "objectives": scope.objectives,
        }
    return response


def generate_quiz(db: Session, payload: schemas.QuizGenerateIn) -> dict:
    """All questions in one call; the model answers with numeric indices."""
    if payload.number_of_questions < 1:
        raise ScopeError("numberOfQuestions must be at least 1")
    scope = resolve_scope(db, payload.book_id, payload.chapter_id, payload.paragraph_id)
    logger.info("Generating quiz for book %s, chapter %s, paragraph %s, %d questions",
                scope.book_id, scope.chapter_id or "all", scope.paragraph_id or "all",
                payload.number_of_questions)

    prompt_text = llm.format_quiz_prompt(scope.book_title, scope.source, scope.content,
                                         payload.number_of_questions)
    text, raw_response = llm.complete(prompt_text)
    questions = _questions_or_raise(llm.parse_questions(text, answer_format="index"))
    if not questions:
        raise ParseError("No valid questions were generated")

    response = {
        "success": True,
        "message": f"Generated {len(questions)} questions successfully",
        "questions": questions,
        "context": {"bookTitle": scope.book_title, "source": scope.source},
    }
    if payload.debug:
        response["debug"] = {"prompt": prompt_text, "response": raw_response}
    return response


def enhance_readability(db: Session, payload: schemas.EnhanceReadabilityIn) -> dict:
    """
    Rewrites a chapter (or one paragraph of it) in plainer language.
    The whole passage goes to the model; nothing is summarised or stored.
    """
    rows = chapter_rows(db, payload.book_id, payload.chapter_id, payload.paragraph_id)
    book_title = rows[0].book_title or ""
    chapter_title = rows[0].chapter_title or ""
    original = "\n\n".join(f"Paragraph {r.paragraph_number}: {r.content or ''}" for r in rows)
    logger.info("Enhancing readability of chapter %s%s (%d paragraphs)", payload.chapter_id,
                f" paragraph {payload.paragraph_id}" if payload.paragraph_id is not None else "", len(rows))

    enhanced, _ = llm.complete(llm.format_readability_prompt(book_title, chapter_title, original),
                               model=llm.MODEL, temperature=0.5, max_tokens=4096,
                               system=llm.READABILITY_PROMPT_MD)
    return {
        "success": True,
        "originalContent": original,
        "enhancedContent": enhanced,
        "bookTitle": book_title,
        "chapterTitle": chapter_title,
        "paragraphs": [
            {"id": r.id, "paragraphNumber": r.paragraph_number, "content": r.content or ""}
            for r in rows
        ],
    }
