# orchestrator.py
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from client import StudyJoyClient, GeneratorClientError

logger = logging.getLogger(__name__)

INCREMENTAL = "incremental"
UPFRONT = "upfront"


@dataclass
class BatchProgress:
    current_batch: int
    total_batches: int
    processed: int
    total: int
    start_time: float

    def to_dict(self, unit_label: str = "Objectives") -> dict:
        return {
            "currentBatch": self.current_batch,
            "totalBatches": self.total_batches,
            f"processed{unit_label}": self.processed,
            f"total{unit_label}": self.total,
            "startTime": self.start_time,
        }


@dataclass
class GenerationResult:
    questions: List[dict] = field(default_factory=list)
    error: Optional[str] = None
    batches_completed: int = 0
    questions_by_objective: dict = field(default_factory=dict)


def format_question(q: dict) -> dict:
    """Accepts letter or index answers and returns the session's question shape."""
    if isinstance(q.get("correctAnswer"), int) and not isinstance(q.get("correctAnswer"), bool):
        index = q["correctAnswer"]
    elif isinstance(q.get("correct"), str) and len(q["correct"]) == 1:
        index = ord(q["correct"].upper()) - ord("A")
    elif isinstance(q.get("correct"), int):
        index = q["correct"]
    else:
        index = 0
    return {
        "question": q["question"],
        "options": list(q["options"]),
        "correctAnswer": index,
        "explanation": q.get("explanation") or "",
        "objective": q.get("objective"),
        "questionType": q.get("questionType"),
    }


class BatchOrchestrator:
    """
    Requests batches one after the other until the server reports the last one.

    A failed batch stops the loop; questions from earlier batches are kept and
    returned together with the error text. Each run starts again at batch 0.
    """

    def __init__(self, client: StudyJoyClient, variant: str = "objective", batch_size: int = 10,
                 reveal: str = INCREMENTAL, on_batch: Optional[Callable[[List[dict], BatchProgress], None]] = None):
        if reveal not in (INCREMENTAL, UPFRONT):
            raise ValueError(f"unknown reveal mode: {reveal}")
        self.client = client
        self.variant = variant
        self.batch_size = batch_size
        self.reveal = reveal
        self.on_batch = on_batch
        self.state = "idle"
        self.progress: Optional[BatchProgress] = None
        self.accumulated: List[dict] = []
        self.visible_questions: List[dict] = []
        self.error: Optional[str] = None

    @property
    def is_generating(self) -> bool:
        return self.state == "generating"

    def _reset(self):
        self.accumulated = []
        self.visible_questions = []
        self.error = None
        self.progress = None

    def generate(self, book_id: int, chapter_id: Optional[int] = None, paragraph_id: Optional[int] = None,
                 questions_per_objective: int = 3) -> GenerationResult:
        self._reset()
        self.state = "generating"
        start_time = time.time()
        result = GenerationResult()
        unit_label = "Terms" if self.variant == "term" else "Objectives"

        batch_index = 0
        while True:
            logger.info("Processing batch %d", batch_index + 1)
            try:
                data = self.client.generate_batch(
                    self.variant, book_id, chapter_id=chapter_id, paragraph_id=paragraph_id,
                    batch_index=batch_index, batch_size=self.batch_size,
                    questions_per_objective=questions_per_objective,
                )
            except GeneratorClientError as e:
                logger.error("Error in batch %d: %s", batch_index + 1, e)
                self.error = str(e)
                break

            questions = [format_question(q) for q in data.get("questions") or []]
            self.accumulated.extend(questions)
            result.batches_completed += 1

            meta = data.get("metadata") or {}
            self.progress = BatchProgress(
                current_batch=meta.get("currentBatch", batch_index),
                total_batches=meta.get("totalBatches", batch_index + 1),
                processed=meta.get(f"processed{unit_label}", 0),
                total=meta.get(f"total{unit_label}", 0),
                start_time=start_time,
            )
            result.questions_by_objective.update(meta.get("questionsByObjective") or {})

            if self.reveal == INCREMENTAL:
                self.visible_questions.extend(questions)
                if self.on_batch:
                    self.on_batch(questions, self.progress)
            logger.info("Added %d questions from batch %d", len(questions), batch_index + 1)

            if meta.get("isLastBatch", True):
                break
            batch_index += 1

        # whatever arrived is shown, also after a failure
        self.visible_questions = list(self.accumulated)
        result.questions = list(self.accumulated)
        result.error = self.error
        self.state = "error" if self.error else "idle"
        self.progress = None
        return result
