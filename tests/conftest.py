import json
import os

# Configure before the app modules read the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest
from fastapi.testclient import TestClient

import db as db_module
import llm
import models
from main import app


def make_question(n=1, letter="A", objective=None, **overrides):
    q = {
        "question": f"Question {n}?",
        "options": [f"Option {n}{c}" for c in "ABCD"],
        "correct": letter,
        "explanation": f"Because of reason {n}.",
    }
    if objective:
        q["objective"] = objective
    q.update(overrides)
    return q


def make_reply(count=2, letter="A"):
    return json.dumps([make_question(i, letter) for i in range(1, count + 1)])


class FakeLLM:
    """Stands in for llm.complete; replies are consumed in order."""

    def __init__(self):
        self.replies = []
        self.prompts = []
        self.systems = []

    def __call__(self, prompt_text, model=None, temperature=None, max_tokens=None, system=None):
        self.prompts.append(prompt_text)
        self.systems.append(system)
        reply = self.replies.pop(0) if self.replies else make_reply()
        if isinstance(reply, Exception):
            raise reply
        return reply, {"id": "chatcmpl-test", "model": model}


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(llm, "complete", fake)
    return fake


@pytest.fixture
def db():
    db_module.Base.metadata.drop_all(bind=db_module.engine)
    db_module.Base.metadata.create_all(bind=db_module.engine)
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


TWELVE_TERMS = " ".join(f"**term{i}**" for i in range(1, 13))


@pytest.fixture
def books(db):
    """Two books; returns the row ids the tests address them by."""
    rows = [
        models.BookParagraph(book_title="Basisboek Sales", chapter_number=1, chapter_title="Selling",
                             paragraph_number=1, content="A **lead** becomes a **prospect**. Then a **lead** again.",
                             objectives="- Explain what a lead is\n- Describe a prospect"),
        models.BookParagraph(book_title="Basisboek Sales", chapter_number=1, chapter_title="Selling",
                             paragraph_number=2, content="The **closing** phase ends the talk."),
        models.BookParagraph(book_title="Basisboek Sales", chapter_number=2, chapter_title="Terms",
                             paragraph_number=1, content=TWELVE_TERMS),
        models.BookParagraph(book_title="Online Marketing", chapter_number=1, chapter_title="Strategy",
                             paragraph_number=1, content="Plain text without any marked words.",
                             objectives=""),
    ]
    db.add_all(rows)
    db.commit()
    return {
        "sales": rows[0].id,
        "p1": rows[0].id,
        "p2": rows[1].id,
        "terms": rows[2].id,
        "marketing": rows[3].id,
    }


@pytest.fixture
def api(db):
    with TestClient(app) as c:
        yield c
