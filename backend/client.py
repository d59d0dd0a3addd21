# client.py
"""HTTP client for the StudyJoy API, used by the batch orchestrator and quiz sessions."""
import logging
import os
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

API_URL = (os.getenv("STUDYJOY_API_URL") or "http://localhost:8000").rstrip("/")
# No timeout unless one is configured
_timeout = os.getenv("STUDYJOY_CLIENT_TIMEOUT")
DEFAULT_TIMEOUT = float(_timeout) if _timeout else None

ENDPOINTS = {
    "term": "/api/generate-term-quiz",
    "objective": "/api/generate-objective-quiz",
    "quiz": "/api/generate-quiz",
    "readability": "/api/enhance-readability",
}

HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class GeneratorClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StudyJoyClient:
    def __init__(self, base_url: str = API_URL, user_id: Optional[str] = None,
                 timeout: Optional[float] = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = dict(HEADERS)
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        return headers

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = self.base_url + path
        try:
            resp = self.session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise GeneratorClientError(f"Request to {path} failed: {e}")

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code != 200:
            error = data.get("error") if isinstance(data, dict) else None
            raise GeneratorClientError(error or f"HTTP {resp.status_code} from {path}", resp.status_code)
        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise GeneratorClientError(error or f"No valid data returned from {path}", resp.status_code)
        return data

    def generate_batch(self, variant: str, book_id: int, chapter_id: Optional[int] = None,
                       paragraph_id: Optional[int] = None, batch_index: int = 0, batch_size: int = 10,
                       questions_per_objective: int = 3, debug: bool = False) -> Dict[str, Any]:
        body = {
            "bookId": book_id,
            "batchIndex": batch_index,
            "batchSize": batch_size,
            "questionsPerObjective": questions_per_objective,
            "debug": debug,
        }
        if chapter_id is not None:
            body["chapterId"] = chapter_id
        if paragraph_id is not None:
            body["paragraphId"] = paragraph_id
        logger.info("Sending batch payload to %s: %s", ENDPOINTS[variant], body)
        return self._post(ENDPOINTS[variant], body)

    def generate_quiz(self, book_id: int, chapter_id: Optional[int] = None, paragraph_id: Optional[int] = None,
                      number_of_questions: int = 5) -> Dict[str, Any]:
        body = {"bookId": book_id, "chapterId": chapter_id, "paragraphId": paragraph_id,
                "numberOfQuestions": number_of_questions}
        return self._post(ENDPOINTS["quiz"], body)

    def save_result(self, book_id: int, chapter_id: Optional[int], paragraph_id: Optional[int],
                    score: int, total_questions: int) -> Dict[str, Any]:
        if not self.user_id:
            raise GeneratorClientError("Not signed in", 401)
        body = {"bookId": book_id, "chapterId": chapter_id, "paragraphId": paragraph_id,
                "score": score, "totalQuestions": total_questions}
        return self._post("/api/quiz-results", body)

    def enhance_readability(self, chapter_id: int, paragraph_id: Optional[int] = None,
                            book_id: Optional[int] = None) -> Dict[str, Any]:
        body = {"chapterId": chapter_id, "paragraphId": paragraph_id, "bookId": book_id}
        return self._post(ENDPOINTS["readability"], body)
