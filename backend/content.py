# content.py
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

import models
from errors import ScopeError, NotFoundError

logger = logging.getLogger(__name__)

# Limit size for LLM cost
MAX_CONTENT_CHARS = 4000

MARKED_TERM_RE = re.compile(r"\*\*(.+?)\*\*", re.S)
BULLET_RE = re.compile(r"^\s*(?:[-*•·]+|\d+[.)])\s*")


@dataclass
class ContentScope:
    book_id: int
    book_title: str
    content: str
    objectives: str
    source: str
    chapter_id: Optional[int] = None
    paragraph_id: Optional[int] = None
    # untruncated text; marked terms are read from here, the prompt gets `content`
    full_content: str = ""


def extract_marked_terms(content: str) -> List[str]:
    """
    Returns every **term** in the content, in order of first appearance.
    """
    terms = []
    seen = set()
    for match in MARKED_TERM_RE.finditer(content or ""):
        term = " ".join(match.group(1).split())
        if term and term not in seen:
            seen.add(term)
            terms.append(term)
    return terms


def extract_objectives(text: str) -> List[str]:
    objectives = []
    for line in (text or "").splitlines():
        line = BULLET_RE.sub("", line).strip()
        if line:
            objectives.append(line)
    return objectives


def _truncate(content: str) -> str:
    if len(content) > MAX_CONTENT_CHARS:
        logger.info("Content too long (%d chars), truncating to %d", len(content), MAX_CONTENT_CHARS)
        return content[:MAX_CONTENT_CHARS] + "..."
    return content


def get_book(db: Session, book_id: Optional[int]) -> models.BookParagraph:
    if book_id is None:
        raise ScopeError("Book ID is required")
    book = db.query(models.BookParagraph).filter(models.BookParagraph.id == book_id).first()
    if not book:
        raise NotFoundError(f"No book found with ID: {book_id}")
    return book


def resolve_scope(db: Session, book_id: Optional[int], chapter_id: Optional[int] = None,
                  paragraph_id: Optional[int] = None) -> ContentScope:
    """
    Finds the text a quiz is generated from.

    A paragraph id wins over a chapter id; with neither, the first paragraph
    of the book's lowest-numbered chapter is used.
    """
    book = get_book(db, book_id)
    title = book.book_title
    Paragraph = models.BookParagraph

    if paragraph_id is not None:
        row = db.query(Paragraph).filter(Paragraph.id == paragraph_id).first()
        if not row or row.book_title != title:
            raise NotFoundError(f"No paragraph found with ID: {paragraph_id}")
        content = row.content or ""
        objectives = row.objectives or ""
        source = f"Chapter {row.chapter_number}: {row.chapter_title}, Paragraph {row.paragraph_number}"
        chapter_id = row.chapter_number

    elif chapter_id is not None:
        rows = (
            db.query(Paragraph)
            .filter(Paragraph.book_title == title, Paragraph.chapter_number == chapter_id)
            .order_by(Paragraph.paragraph_number.asc())
            .all()
        )
        if not rows:
            raise NotFoundError(f"No chapter found with number: {chapter_id}")
        logger.info("Found %d paragraphs for chapter %s", len(rows), chapter_id)
        content = "\n\n".join(r.content for r in rows if r.content)
        objectives = next((r.objectives for r in rows if r.objectives), "")
        source = f"Chapter {chapter_id}: {rows[0].chapter_title}"

    else:
        first = (
            db.query(Paragraph)
            .filter(Paragraph.book_title == title)
            .order_by(Paragraph.chapter_number.asc(), Paragraph.paragraph_number.asc())
            .first()
        )
        content = first.content or ""
        objectives = first.objectives or ""
        source = f"Chapter {first.chapter_number}: {first.chapter_title}, Paragraph {first.paragraph_number}"

    if not content.strip():
        logger.warning("No content found for book %s, using book info", book_id)
        content = f'This is a book titled "{title}". Please generate some general knowledge questions about this topic.'
        source = f"Book: {title}"

    return ContentScope(
        book_id=book.id,
        book_title=title,
        content=_truncate(content),
        full_content=content,
        objectives=objectives,
        source=source,
        chapter_id=chapter_id,
        paragraph_id=paragraph_id,
    )


def list_chapters(db: Session, book_id: int) -> List[dict]:
    book = get_book(db, book_id)
    Paragraph = models.BookParagraph
    rows = (
        db.query(Paragraph)
        .filter(Paragraph.book_title == book.book_title)
        .order_by(Paragraph.chapter_number.asc(), Paragraph.paragraph_number.asc())
        .all()
    )
    chapters = {}
    for r in rows:
        ch = chapters.setdefault(r.chapter_number, {
            "chapterNumber": r.chapter_number,
            "chapterTitle": r.chapter_title,
            "paragraphCount": 0,
        })
        ch["paragraphCount"] += 1
    return list(chapters.values())


def list_paragraphs(db: Session, book_id: int, chapter_number: int) -> List[dict]:
    book = get_book(db, book_id)
    Paragraph = models.BookParagraph
    rows = (
        db.query(Paragraph)
        .filter(Paragraph.book_title == book.book_title, Paragraph.chapter_number == chapter_number)
        .order_by(Paragraph.paragraph_number.asc())
        .all()
    )
    if not rows:
        raise NotFoundError(f"No chapter found with number: {chapter_number}")
    return [
        {
            "id": r.id,
            "paragraphNumber": r.paragraph_number,
            "chapterNumber": r.chapter_number,
            "chapterTitle": r.chapter_title,
            "content": r.content or "",
            "objectives": r.objectives,
        }
        for r in rows
    ]


def chapter_rows(db: Session, book_id: Optional[int], chapter_id: Optional[int],
                 paragraph_id: Optional[int] = None) -> List[models.BookParagraph]:
    """
    Paragraph rows of one chapter, or the single requested paragraph in it.
    Without a book id the chapter number is matched across all books.
    """
    if chapter_id is None:
        raise ScopeError("Chapter ID is required")
    Paragraph = models.BookParagraph
    query = db.query(Paragraph).filter(Paragraph.chapter_number == chapter_id)
    if book_id is not None:
        query = query.filter(Paragraph.book_title == get_book(db, book_id).book_title)
    if paragraph_id is not None:
        query = query.filter(Paragraph.id == paragraph_id)
    rows = query.order_by(Paragraph.paragraph_number.asc()).all()
    if not rows:
        raise NotFoundError("No content found for the specified chapter/paragraph")
    return rows
