import llm
from client import StudyJoyClient
from errors import LLMError
from test_orchestrator import FakeSession


def test_chapter_is_rewritten(api, books, fake_llm):
    fake_llm.replies.append("## Paragraph 1\nA lead is a possible customer.")
    r = api.post("/api/enhance-readability", json={"bookId": books["sales"], "chapterId": 1})
    body = r.json()
    assert r.status_code == 200, r.text
    assert body["success"] is True
    assert body["enhancedContent"].startswith("## Paragraph 1")
    assert body["bookTitle"] == "Basisboek Sales"
    assert body["chapterTitle"] == "Selling"
    assert [p["id"] for p in body["paragraphs"]] == [books["p1"], books["p2"]]
    assert body["originalContent"].startswith("Paragraph 1: A **lead**")
    assert "\n\nParagraph 2: The **closing**" in body["originalContent"]

    assert 'chapter: "Selling"' in fake_llm.prompts[0]
    assert fake_llm.systems[0] == llm.READABILITY_PROMPT_MD


def test_single_paragraph(api, books, fake_llm):
    fake_llm.replies.append("Closing, explained.")
    r = api.post("/api/enhance-readability",
                 json={"bookId": books["sales"], "chapterId": 1, "paragraphId": books["p2"]})
    body = r.json()
    assert [p["paragraphNumber"] for p in body["paragraphs"]] == [2]
    assert body["originalContent"] == "Paragraph 2: The **closing** phase ends the talk."


def test_without_book_matches_chapter_in_every_book(api, books, fake_llm):
    fake_llm.replies.append("ok")
    r = api.post("/api/enhance-readability", json={"chapterId": 1})
    assert len(r.json()["paragraphs"]) == 3


def test_readability_errors(api, books, fake_llm):
    r = api.post("/api/enhance-readability", json={"bookId": books["sales"]})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Chapter ID is required"}

    r = api.post("/api/enhance-readability", json={"bookId": books["sales"], "chapterId": 9})
    assert r.status_code == 404

    fake_llm.replies.append(LLMError("Model gpt-4o-mini returned empty response."))
    r = api.post("/api/enhance-readability", json={"chapterId": 1})
    assert r.status_code == 500
    assert "empty response" in r.json()["error"]


def test_client_posts_readability_request():
    session = FakeSession(200, {"success": True, "enhancedContent": "x"})
    StudyJoyClient("http://api.test", session=session).enhance_readability(3, paragraph_id=7)
    sent = session.requests[0]
    assert sent["url"] == "http://api.test/api/enhance-readability"
    assert sent["json"] == {"chapterId": 3, "paragraphId": 7, "bookId": None}
