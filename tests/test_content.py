import pytest

import models
from content import (extract_marked_terms, extract_objectives, resolve_scope, list_chapters,
                     list_paragraphs, MAX_CONTENT_CHARS)
from errors import ScopeError, NotFoundError


def test_marked_terms_keep_order_and_drop_duplicates():
    text = "The **funnel** leads to **conversion**; a **funnel** again and **  unique  selling point **."
    assert extract_marked_terms(text) == ["funnel", "conversion", "unique selling point"]


def test_marked_terms_ignore_empty_and_missing():
    assert extract_marked_terms("no terms **** here") == []
    assert extract_marked_terms(None) == []


def test_objectives_strip_bullets_and_blank_lines():
    text = "- Explain a lead\n\n* Describe a prospect\n• Name the phases\n1. Apply AIDA\n2) Compare models\nPlain line"
    assert extract_objectives(text) == [
        "Explain a lead", "Describe a prospect", "Name the phases", "Apply AIDA", "Compare models", "Plain line",
    ]


def test_paragraph_scope_uses_exactly_that_row(db, books):
    scope = resolve_scope(db, books["sales"], paragraph_id=books["p2"])
    assert scope.content == "The **closing** phase ends the talk."
    assert scope.source == "Chapter 1: Selling, Paragraph 2"
    assert scope.chapter_id == 1


def test_chapter_scope_joins_paragraphs_in_order(db, books):
    scope = resolve_scope(db, books["sales"], chapter_id=1)
    assert scope.content.startswith("A **lead**")
    assert scope.content.endswith("ends the talk.")
    assert "\n\n" in scope.content
    assert scope.objectives.startswith("- Explain what a lead is")
    assert scope.source == "Chapter 1: Selling"


def test_book_scope_samples_first_paragraph(db, books):
    scope = resolve_scope(db, books["sales"])
    assert scope.content.startswith("A **lead** becomes")
    assert scope.source == "Chapter 1: Selling, Paragraph 1"


def test_missing_book_id_is_a_scope_error(db, books):
    with pytest.raises(ScopeError):
        resolve_scope(db, None)


@pytest.mark.parametrize("kwargs", [
    {"book_id": 999},
    {"book_id": "sales", "chapter_id": 42},
    {"book_id": "sales", "paragraph_id": 999},
    {"book_id": "sales", "paragraph_id": "marketing"},
])
def test_lookup_misses_are_not_found(db, books, kwargs):
    kwargs = {k: books.get(v, v) if isinstance(v, str) else v for k, v in kwargs.items()}
    with pytest.raises(NotFoundError):
        resolve_scope(db, **kwargs)


def test_long_content_is_truncated(db):
    row = models.BookParagraph(book_title="Long", chapter_number=1, chapter_title="x",
                               paragraph_number=1, content="a" * (MAX_CONTENT_CHARS + 50))
    db.add(row)
    db.commit()
    scope = resolve_scope(db, row.id)
    assert len(scope.content) == MAX_CONTENT_CHARS + 3
    assert scope.content.endswith("...")


def test_empty_content_falls_back_to_book_description(db):
    row = models.BookParagraph(book_title="Empty", chapter_number=1, chapter_title="x",
                               paragraph_number=1, content="   ")
    db.add(row)
    db.commit()
    scope = resolve_scope(db, row.id)
    assert 'titled "Empty"' in scope.content
    assert scope.source == "Book: Empty"


def test_list_chapters_and_paragraphs(db, books):
    chapters = list_chapters(db, books["sales"])
    assert [(c["chapterNumber"], c["paragraphCount"]) for c in chapters] == [(1, 2), (2, 1)]

    paragraphs = list_paragraphs(db, books["sales"], 1)
    assert [p["paragraphNumber"] for p in paragraphs] == [1, 2]
    with pytest.raises(NotFoundError):
        list_paragraphs(db, books["sales"], 9)
