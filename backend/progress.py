# progress.py
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
import schemas
from content import get_book
from errors import ScopeError, NotFoundError, StorageError
from utils import percentage

logger = logging.getLogger(__name__)

PASSING_PERCENTAGE = 70


def result_to_dict(r: models.QuizResult) -> dict:
    return {
        "id": r.id,
        "book_id": r.book_id,
        "chapter_id": r.chapter_id,
        "paragraph_id": r.paragraph_id,
        "score": r.score,
        "total_questions": r.total_questions,
        "percentage": r.percentage,
        "completed": r.completed,
        "created_at": r.created_at.isoformat(),
    }


def progress_to_dict(p: models.ParagraphProgress) -> dict:
    return {
        "book_id": p.book_id,
        "chapter_id": p.chapter_id,
        "paragraph_id": p.paragraph_id,
        "completed": p.completed,
        "score": p.score,
        "total_questions": p.total_questions,
        "percentage": p.percentage,
        "last_attempted": p.last_attempted.isoformat(),
        "completed_date": p.completed_date.isoformat() if p.completed_date else None,
    }


def _apply_attempt(db: Session, user_id: str, payload: schemas.QuizResultIn, chapter_id: Optional[int],
                   pct: int, now: datetime) -> models.ParagraphProgress:
    """
    Upserts the (user, paragraph) progress row.

    Score and percentage always follow the latest attempt. A pass is sticky:
    `completed` never goes back to False, and `completed_date` is only
    written by a passing attempt.
    """
    passed = pct >= PASSING_PERCENTAGE
    row = (
        db.query(models.ParagraphProgress)
        .filter(models.ParagraphProgress.user_id == user_id,
                models.ParagraphProgress.paragraph_id == payload.paragraph_id)
        .first()
    )
    if row is None:
        row = models.ParagraphProgress(
            user_id=user_id,
            book_id=payload.book_id,
            chapter_id=chapter_id,
            paragraph_id=payload.paragraph_id,
            completed=passed,
            completed_date=now if passed else None,
        )
        db.add(row)
    elif passed:
        row.completed = True
        row.completed_date = now

    row.score = payload.score
    row.total_questions = payload.total_questions
    row.percentage = pct
    row.last_attempted = now
    return row


def record_result(db: Session, user_id: str,
                  payload: schemas.QuizResultIn) -> Tuple[models.QuizResult, Optional[models.ParagraphProgress]]:
    """
    Stores one finished quiz: a quiz_results row, plus the paragraph_progress
    upsert when the quiz covered a single paragraph. Both writes share one
    transaction.
    """
    if payload.score > payload.total_questions:
        raise ScopeError("score cannot exceed totalQuestions")
    book = get_book(db, payload.book_id)

    chapter_id = payload.chapter_id
    if payload.paragraph_id is not None:
        paragraph = db.query(models.BookParagraph).filter(models.BookParagraph.id == payload.paragraph_id).first()
        if not paragraph or paragraph.book_title != book.book_title:
            raise NotFoundError(f"No paragraph found with ID: {payload.paragraph_id}")
        if chapter_id is None:
            chapter_id = paragraph.chapter_number
        elif chapter_id != paragraph.chapter_number:
            raise ScopeError(f"Paragraph {payload.paragraph_id} is not part of chapter {chapter_id}")

    pct = percentage(payload.score, payload.total_questions)
    now = datetime.utcnow()
    try:
        result = models.QuizResult(
            user_id=user_id,
            book_id=payload.book_id,
            chapter_id=chapter_id,
            paragraph_id=payload.paragraph_id,
            score=payload.score,
            total_questions=payload.total_questions,
            percentage=pct,
            completed=True,
            created_at=now,
        )
        db.add(result)
        progress = None
        if payload.paragraph_id is not None:
            progress = _apply_attempt(db, user_id, payload, chapter_id, pct, now)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Saving quiz result for user %s failed: %s", user_id, e)
        raise StorageError(f"Could not save quiz result: {e}")

    db.refresh(result)
    if progress is not None:
        db.refresh(progress)
    logger.info("Saved quiz result %s for user %s: %d/%d (%d%%)",
                result.id, user_id, payload.score, payload.total_questions, pct)
    return result, progress


# -----------------------------------------------------------------------------
# Dashboard reads
# -----------------------------------------------------------------------------
def list_results(db: Session, user_id: str) -> dict:
    """Results newest first, also grouped per chapter and paragraph."""
    rows = (
        db.query(models.QuizResult)
        .filter(models.QuizResult.user_id == user_id)
        .order_by(models.QuizResult.created_at.desc())
        .all()
    )
    items = [result_to_dict(r) for r in rows]

    chapters = {}
    for item in items:
        if item["chapter_id"] is None:
            continue
        chapter = chapters.setdefault(f"chapter-{item['chapter_id']}", {
            "chapter_id": item["chapter_id"],
            "paragraphs": {},
        })
        if item["paragraph_id"] is None:
            continue
        key = f"paragraph-{item['paragraph_id']}"
        if key not in chapter["paragraphs"]:
            # rows are newest first, so the first one seen is the latest
            chapter["paragraphs"][key] = {
                "paragraph_id": item["paragraph_id"],
                "results": [item],
                "latest_result": item,
            }
        else:
            chapter["paragraphs"][key]["results"].append(item)
    return {"items": items, "chapters": chapters}


def user_stats(db: Session, user_id: str) -> dict:
    total_quizzes, total_questions, total_correct, avg_pct = (
        db.query(
            func.count(models.QuizResult.id),
            func.coalesce(func.sum(models.QuizResult.total_questions), 0),
            func.coalesce(func.sum(models.QuizResult.score), 0),
            func.avg(models.QuizResult.percentage),
        )
        .filter(models.QuizResult.user_id == user_id)
        .one()
    )
    completed = (
        db.query(func.count(models.ParagraphProgress.id))
        .filter(models.ParagraphProgress.user_id == user_id, models.ParagraphProgress.completed.is_(True))
        .scalar()
    )
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    return {
        "user_id": user_id,
        "username": profile.username if profile else None,
        "total_quizzes": total_quizzes,
        "total_questions": int(total_questions),
        "total_correct": int(total_correct),
        "average_percentage": round(float(avg_pct), 1) if avg_pct is not None else 0.0,
        "paragraphs_completed": completed or 0,
    }


def chapter_progress(db: Session, user_id: str, book_id: int, chapter_id: int) -> dict:
    book = get_book(db, book_id)
    paragraph_ids = [
        pid for (pid,) in db.query(models.BookParagraph.id)
        .filter(models.BookParagraph.book_title == book.book_title,
                models.BookParagraph.chapter_number == chapter_id)
        .all()
    ]
    if not paragraph_ids:
        raise NotFoundError(f"No chapter found with number: {chapter_id}")
    completed = (
        db.query(func.count(models.ParagraphProgress.id))
        .filter(models.ParagraphProgress.user_id == user_id,
                models.ParagraphProgress.paragraph_id.in_(paragraph_ids),
                models.ParagraphProgress.completed.is_(True))
        .scalar()
    ) or 0
    return {
        "book_id": book_id,
        "chapter_id": chapter_id,
        "total_paragraphs": len(paragraph_ids),
        "completed_paragraphs": completed,
        "percentage": percentage(completed, len(paragraph_ids)),
    }
