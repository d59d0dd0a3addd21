import json
import os
from types import SimpleNamespace

import pytest

import llm
from errors import LLMError
from conftest import make_question, make_reply


def test_parses_plain_array():
    outcome = llm.parse_questions(make_reply(3))
    assert isinstance(outcome, llm.Parsed)
    assert len(outcome.questions) == 3
    assert outcome.dropped == []


def test_parses_fenced_block():
    text = "```json\n" + make_reply(2) + "\n```"
    outcome = llm.parse_questions(text)
    assert isinstance(outcome, llm.Parsed)
    assert len(outcome.questions) == 2


def test_extracts_array_from_surrounding_prose():
    text = "Here are your questions:\n" + make_reply(2) + "\nGood luck!"
    outcome = llm.parse_questions(text)
    assert isinstance(outcome, llm.Parsed)
    assert [q["question"] for q in outcome.questions] == ["Question 1?", "Question 2?"]


def test_accepts_questions_wrapper_object():
    text = json.dumps({"questions": [make_question(1)]})
    assert len(llm.parse_questions(text).questions) == 1


@pytest.mark.parametrize("text", [
    "not json at all",
    '[{"question": "Q?", "options": ["a", "b"',
    "",
])
def test_malformed_json_is_not_repaired(text):
    outcome = llm.parse_questions(text)
    assert isinstance(outcome, llm.MalformedJson)
    assert outcome.raw == text


def test_non_array_payload_is_schema_invalid():
    outcome = llm.parse_questions(json.dumps({"question": "Q?"}))
    assert isinstance(outcome, llm.SchemaInvalid)


def test_invalid_entries_are_dropped():
    reply = json.dumps([
        make_question(1),
        make_question(2, options=["a", "b", "c"]),
        make_question(3, explanation=""),
        make_question(4, correct="Z"),
        make_question(5, letter="D"),
    ])
    outcome = llm.parse_questions(reply)
    assert isinstance(outcome, llm.Parsed)
    assert [q["question"] for q in outcome.questions] == ["Question 1?", "Question 5?"]
    assert len(outcome.dropped) == 3


def test_all_entries_invalid_is_schema_invalid():
    reply = json.dumps([make_question(1, correct="X"), make_question(2, options=[])])
    outcome = llm.parse_questions(reply)
    assert isinstance(outcome, llm.SchemaInvalid)
    assert len(outcome.reasons) == 2


def test_empty_array_parses_to_no_questions():
    outcome = llm.parse_questions("[]")
    assert isinstance(outcome, llm.Parsed)
    assert outcome.questions == []


def _fake_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_complete_wraps_api_errors(monkeypatch):
    def boom(**kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(llm, "client", _fake_client(boom))
    with pytest.raises(LLMError, match="connection reset"):
        llm.complete("prompt")


def test_complete_rejects_empty_reply(monkeypatch):
    resp = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=""))])
    monkeypatch.setattr(llm, "client", _fake_client(lambda **kwargs: resp))
    with pytest.raises(LLMError, match="empty"):
        llm.complete("prompt")


def test_complete_returns_text_and_raw(monkeypatch):
    calls = []
    resp = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="  [1]  "))],
        model_dump=lambda: {"id": "x"},
    )

    def create(**kwargs):
        calls.append(kwargs)
        return resp

    monkeypatch.setattr(llm, "client", _fake_client(create))
    text, raw = llm.complete("hello", model="gpt-test", temperature=0.1, max_tokens=10)
    assert text == "[1]"
    assert raw == {"id": "x"}
    assert calls[0]["model"] == "gpt-test"
    assert calls[0]["messages"][-1] == {"role": "user", "content": "hello"}


def test_term_prompt_lists_each_term_and_count():
    prompt = llm.format_term_prompt("Book", "Chapter 1", "text", ["alpha", "beta"], 3)
    assert "- alpha\n- beta" in prompt
    assert "exactly 3 question(s) for EACH of these 2 terms (6 in total)" in prompt


def test_prompt_files_load_from_beside_the_module():
    assert os.path.abspath(os.path.dirname(llm.PROMPT_DIR)) == os.path.dirname(os.path.abspath(llm.__file__))
    names = sorted(n for n in os.listdir(llm.PROMPT_DIR) if n.endswith(".md"))
    assert names == ["objective_quiz_prompt.md", "quiz_prompt.md", "readability_prompt.md", "term_quiz_prompt.md"]
    for text in (llm.TERM_PROMPT_MD, llm.OBJECTIVE_PROMPT_MD, llm.QUIZ_PROMPT_MD, llm.READABILITY_PROMPT_MD):
        assert text.strip()
