# session.py
"""
Client-side quiz session.

One QuizSession drives one quiz for one scope (book, chapter, paragraph).
Its phase replaces the old trio of isGenerating / isAnswerSubmitted /
isQuizComplete flags; those names survive only as read-only properties and
in the saved snapshots. Every change except picking an answer is written to
the SessionStore straight away, so a restarted client can pick up where it
left off.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from client import StudyJoyClient, GeneratorClientError
from orchestrator import BatchOrchestrator
from session_store import SessionStore
from utils import percentage

logger = logging.getLogger(__name__)

LAST_ACTIVE_KEY = "lastActiveQuiz"
LAST_COMPLETED_KEY = "lastCompletedQuiz"
NO_ANSWER_MESSAGE = "Select an answer before submitting"
NO_QUESTIONS_MESSAGE = "No quiz questions were received from the server"


class Phase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    ANSWERING = "answering"
    SUBMITTED = "submitted"
    COMPLETE = "complete"
    ERRORED = "errored"


def _part(value: Optional[int]) -> str:
    return "none" if value is None else str(value)

def quiz_state_key(book_id: Optional[int], chapter_id: Optional[int] = None, paragraph_id: Optional[int] = None) -> str:
    return f"quizState_{_part(book_id)}_{_part(chapter_id)}_{_part(paragraph_id)}"

def quiz_result_key(book_id: Optional[int], chapter_id: Optional[int] = None, paragraph_id: Optional[int] = None) -> str:
    return f"quizResult_{_part(book_id)}_{_part(chapter_id)}_{_part(paragraph_id)}"


class QuizSession:
    def __init__(self, store: SessionStore, book_id: int, chapter_id: Optional[int] = None,
                 paragraph_id: Optional[int] = None, orchestrator: Optional[BatchOrchestrator] = None,
                 client: Optional[StudyJoyClient] = None, questions_per_objective: int = 3):
        self.store = store
        self.book_id = book_id
        self.chapter_id = chapter_id
        self.paragraph_id = paragraph_id
        self.orchestrator = orchestrator
        self.client = client
        self.questions_per_objective = questions_per_objective

        self.phase = Phase.IDLE
        self.questions: List[dict] = []
        self.current_question_index = 0
        self.selected_answer: Optional[int] = None
        self.score = 0
        self.show_explanation = False
        self.quiz_error: Optional[str] = None
        self.message: Optional[str] = None

    # ------------------------------------------------------------------
    # derived flags
    # ------------------------------------------------------------------
    @property
    def key(self) -> str:
        return quiz_state_key(self.book_id, self.chapter_id, self.paragraph_id)

    @property
    def is_generating(self) -> bool:
        return self.phase == Phase.GENERATING

    @property
    def is_answer_submitted(self) -> bool:
        return self.phase in (Phase.SUBMITTED, Phase.COMPLETE)

    @property
    def is_quiz_complete(self) -> bool:
        return self.phase == Phase.COMPLETE

    @property
    def current_question(self) -> Optional[dict]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def to_snapshot(self) -> dict:
        return {
            "questions": self.questions,
            "currentQuestionIndex": self.current_question_index,
            "selectedAnswer": self.selected_answer,
            "isAnswerSubmitted": self.is_answer_submitted,
            "score": self.score,
            "isQuizComplete": self.is_quiz_complete,
            "phase": self.phase.value,
            "quizError": self.quiz_error,
            "bookId": self.book_id,
            "chapterId": self.chapter_id,
            "paragraphId": self.paragraph_id,
        }

    def _persist(self):
        self.store.save(self.key, self.to_snapshot())
        self.store.save(LAST_ACTIVE_KEY, self.key)

    @classmethod
    def restore(cls, store: SessionStore, book_id: Optional[int] = None, chapter_id: Optional[int] = None,
                paragraph_id: Optional[int] = None, **kwargs) -> Optional["QuizSession"]:
        """
        Rebuilds a session from its saved snapshot. Without a book id the
        most recently active quiz is used. Returns None if nothing is saved.
        """
        key = quiz_state_key(book_id, chapter_id, paragraph_id) if book_id is not None else store.load(LAST_ACTIVE_KEY)
        if not key:
            return None
        snap = store.load(key)
        if not snap:
            return None

        session = cls(store, snap["bookId"], snap.get("chapterId"), snap.get("paragraphId"), **kwargs)
        session.questions = snap.get("questions") or []
        session.current_question_index = snap.get("currentQuestionIndex", 0)
        session.selected_answer = snap.get("selectedAnswer")
        session.score = snap.get("score", 0)
        session.quiz_error = snap.get("quizError")
        phase = Phase(snap.get("phase", Phase.IDLE.value))
        # an interrupted generation is not resumed
        if phase == Phase.GENERATING:
            phase = Phase.IDLE
        session.phase = phase
        logger.info("Restored quiz state from %s (question %d, score %d)",
                    key, session.current_question_index + 1, session.score)
        return session

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------
    def _reset(self):
        self.questions = []
        self.current_question_index = 0
        self.selected_answer = None
        self.score = 0
        self.show_explanation = False
        self.quiz_error = None
        self.message = None

    def start(self):
        """Generates questions for the scope and moves to the first question."""
        if self.orchestrator is None:
            raise RuntimeError("QuizSession has no orchestrator to generate questions with")
        self._reset()
        self.phase = Phase.GENERATING
        self._persist()

        result = self.orchestrator.generate(self.book_id, self.chapter_id, self.paragraph_id,
                                            questions_per_objective=self.questions_per_objective)
        self.questions = result.questions
        self.quiz_error = result.error
        if self.questions:
            self.phase = Phase.ANSWERING
        else:
            self.quiz_error = self.quiz_error or NO_QUESTIONS_MESSAGE
            self.phase = Phase.ERRORED
        self._persist()

    def select_answer(self, index: int) -> bool:
        if self.phase != Phase.ANSWERING:
            return False
        question = self.current_question
        if question is None or not 0 <= index < len(question["options"]):
            return False
        self.selected_answer = index
        return True

    def submit_answer(self) -> bool:
        if self.phase != Phase.ANSWERING:
            return False
        if self.selected_answer is None:
            self.message = NO_ANSWER_MESSAGE
            return False
        self.message = None
        self.phase = Phase.SUBMITTED
        if self.selected_answer == self.current_question["correctAnswer"]:
            self.score += 1
        self._persist()
        return True

    def toggle_explanation(self):
        if self.phase in (Phase.SUBMITTED, Phase.COMPLETE):
            self.show_explanation = not self.show_explanation

    def next_question(self) -> bool:
        if self.phase != Phase.SUBMITTED:
            return False
        if self.current_question_index < len(self.questions) - 1:
            self.current_question_index += 1
            self.selected_answer = None
            self.show_explanation = False
            self.phase = Phase.ANSWERING
            self._persist()
        else:
            self.phase = Phase.COMPLETE
            self._persist()
            self._on_complete()
        return True

    def restart(self):
        """Throws the saved state away and generates a fresh quiz for the same scope."""
        self.store.clear(self.key)
        self._reset()
        self.phase = Phase.IDLE
        self.start()

    def _on_complete(self):
        total = len(self.questions)
        pct = percentage(self.score, total)
        result_key = quiz_result_key(self.book_id, self.chapter_id, self.paragraph_id)
        self.store.save(result_key, {
            "score": self.score,
            "totalQuestions": total,
            "percentage": pct,
            "bookId": self.book_id,
            "chapterId": self.chapter_id,
            "paragraphId": self.paragraph_id,
            "completedAt": datetime.utcnow().isoformat(),
        })
        self.store.save(LAST_COMPLETED_KEY, result_key)

        if self.client is None or not self.client.user_id:
            logger.info("Quiz finished with %d/%d (%d%%); not signed in, result not saved", self.score, total, pct)
            self.message = f"You scored {pct}%. Sign in to save your results."
            return
        try:
            self.client.save_result(self.book_id, self.chapter_id, self.paragraph_id, self.score, total)
            self.message = f"Result saved: {self.score}/{total} ({pct}%)"
        except GeneratorClientError as e:
            logger.error("Saving quiz result failed: %s", e)
            self.message = f"Could not save your result: {e}"
